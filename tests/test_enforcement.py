"""
Tests for plan enforcement checks.
"""

import pytest

from conftest import set_plan
from erm.exceptions import ErrorCode, ValidationError
from erm.types.plans import UNLIMITED, Feature, PlanTier
from erm.types.workspace import User, Workspace
from erm.usage.enforcement import FEATURE_BLOCKED, LIMIT_REACHED


def items(n):
    return [{"id": f"item-{i}"} for i in range(n)]


class TestCreateChecks:
    """Tests for the per-resource create checks."""

    @pytest.mark.asyncio
    async def test_allowed_below_limit(self, services):
        await services.store.set("registers", items(4))

        result = await services.enforcement.can_create_risk_register()

        assert result.allowed is True
        assert result.reason is None

    @pytest.mark.asyncio
    async def test_denied_at_limit(self, services):
        await services.store.set("registers", items(5))

        result = await services.enforcement.can_create_risk_register()

        assert result.allowed is False
        assert result.reason == LIMIT_REACHED
        assert result.feature == "riskRegisters"
        assert result.current == 5
        assert result.limit == 5
        assert result.message == "You've created 5 of 5 risk registers."
        assert result.upgrade_message == "Upgrade to create unlimited risk registers."

    @pytest.mark.asyncio
    async def test_risks_message_has_no_counts(self, services):
        await services.store.set("risks", items(25))

        result = await services.enforcement.can_create_risk()

        assert result.allowed is False
        assert result.message == "You've reached the maximum number of risks on the free plan."

    @pytest.mark.asyncio
    async def test_controls_reports_and_members(self, services):
        store = services.store
        await store.set("controls", items(10))
        await store.set("recentReports", items(5))
        await store.set("workspaceMembers", items(3))
        enforcement = services.enforcement

        assert (await enforcement.can_create_control()).allowed is False
        assert (await enforcement.can_generate_report()).allowed is False
        members = await enforcement.can_invite_members()
        assert members.allowed is False
        assert members.message == "You've added 3 of 3 team members."

    @pytest.mark.asyncio
    async def test_unlimited_plan_always_allows(self, services):
        await set_plan(services, PlanTier.PRO)
        await services.store.set("registers", items(200))

        assert (await services.enforcement.can_create_risk_register()).allowed is True


class TestCanUseAI:
    """Tests for the AI permission check."""

    @pytest.mark.asyncio
    async def test_denied_at_cap(self, services):
        await services.store.set("aiCallCount", 50)

        result = await services.enforcement.can_use_ai()

        assert result.allowed is False
        assert result.feature == "aiCalls"
        assert result.message == "You've used 50 of 50 AI suggestions this month."

    @pytest.mark.asyncio
    async def test_unlimited_plan_is_allowed(self, services):
        """An unlimited AI plan should never be blocked, whatever the count."""
        await set_plan(services, PlanTier.PRO)
        await services.store.set("aiCallCount", 10000)

        assert (await services.enforcement.can_use_ai()).allowed is True


class TestAdminOverride:
    """Tests for the platform admin and workspace overrides."""

    @pytest.mark.asyncio
    async def test_platform_admin_bypasses_limits(self, root_store, session_store, clock):
        from erm.services import build_workspace_services

        admin = User(id="admin", name="Ada Admin", is_platform_admin=True)
        services = build_workspace_services(
            root_store, "ws1", acting_user=admin, session_store=session_store, clock=clock
        )
        await services.store.set("registers", items(50))

        assert await services.enforcement.is_admin_override() is True
        assert (await services.enforcement.can_create_risk_register()).allowed is True
        assert (await services.enforcement.can_export("excel")).allowed is True

    @pytest.mark.asyncio
    async def test_persisted_admin_user(self, services):
        await services.workspace.set_current_user(User(id="a", is_platform_admin=True))
        await services.store.set("controls", items(10))

        assert (await services.enforcement.can_create_control()).allowed is True

    @pytest.mark.asyncio
    async def test_workspace_limits_override(self, services):
        await services.workspace.save_workspace(Workspace(id="ws1", limits_override=True))
        await services.store.set("recentReports", items(9))

        assert (await services.enforcement.can_generate_report()).allowed is True

    @pytest.mark.asyncio
    async def test_status_can_create_under_override(self, services):
        await services.workspace.save_workspace(Workspace(id="ws1", limits_override=True))
        await services.store.set("registers", items(5))

        status = await services.enforcement.get_status(Feature.RISK_REGISTERS)

        assert status.at_limit is True
        assert status.can_create is True


class TestCanExport:
    """Tests for export format gating."""

    @pytest.mark.asyncio
    async def test_pdf_allowed_on_free(self, services):
        assert (await services.enforcement.can_export("pdf")).allowed is True

    @pytest.mark.asyncio
    async def test_excel_blocked_on_free(self, services):
        result = await services.enforcement.can_export("excel")

        assert result.allowed is False
        assert result.reason == FEATURE_BLOCKED
        assert result.feature == "export_excel"
        assert result.message == "EXCEL export is not available on the free plan."
        assert result.upgrade_message == "Upgrade to export to Excel and CSV formats."

    @pytest.mark.asyncio
    async def test_csv_allowed_on_pro(self, services):
        await set_plan(services, PlanTier.PRO)

        assert (await services.enforcement.can_export("CSV")).allowed is True

    @pytest.mark.asyncio
    async def test_unknown_format_raises(self, services):
        with pytest.raises(ValidationError):
            await services.enforcement.can_export("docx")


class TestValidateCreate:
    """Tests for validate_create dispatch."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "resource,key,count",
        [
            ("riskRegister", "registers", 5),
            ("risk", "risks", 25),
            ("control", "controls", 10),
            ("report", "recentReports", 5),
            ("teamMember", "workspaceMembers", 3),
        ],
    )
    async def test_dispatches_to_resource_check(self, services, resource, key, count):
        assert (await services.enforcement.validate_create(resource)).allowed is True

        await services.store.set(key, items(count))

        assert (await services.enforcement.validate_create(resource)).allowed is False

    @pytest.mark.asyncio
    async def test_unknown_resource_raises(self, services):
        with pytest.raises(ValidationError) as exc_info:
            await services.enforcement.validate_create("widget")

        assert exc_info.value.error_code == ErrorCode.INVALID_RESOURCE
        assert exc_info.value.status_code == 400


class TestGetStatus:
    """Tests for the feature status view."""

    @pytest.mark.asyncio
    async def test_near_limit(self, services):
        await services.store.set("controls", items(8))

        status = await services.enforcement.get_status("controls")

        assert status.current == 8
        assert status.remaining == 2
        assert status.percentage == 80
        assert status.near_limit is True
        assert status.at_limit is False
        assert status.can_create is True

    @pytest.mark.asyncio
    async def test_at_limit_is_not_near_limit(self, services):
        await services.store.set("controls", items(10))

        status = await services.enforcement.get_status(Feature.CONTROLS)

        assert status.at_limit is True
        assert status.near_limit is False
        assert status.can_create is False

    @pytest.mark.asyncio
    async def test_unlimited_status(self, services):
        await set_plan(services, PlanTier.ENTERPRISE)

        status = await services.enforcement.get_status("teamMembers")

        assert status.limit == UNLIMITED
        assert status.remaining == UNLIMITED
        assert status.percentage == 0
        assert status.can_create is True
