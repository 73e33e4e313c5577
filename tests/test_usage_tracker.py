"""
Tests for the usage tracker.
"""

import pytest

from conftest import set_plan
from erm.types.plans import UNLIMITED, Feature, PlanTier


def items(n):
    return [{"id": f"item-{i}"} for i in range(n)]


class TestGetUsage:
    """Tests for the usage snapshot."""

    @pytest.mark.asyncio
    async def test_empty_workspace(self, services):
        usage = await services.tracker.get_usage()

        assert usage.risk_registers == 0
        assert usage.risks == 0
        assert usage.controls == 0
        assert usage.reports == 0
        assert usage.team_members == 0
        assert usage.ai_calls == 0

    @pytest.mark.asyncio
    async def test_counts_collections(self, services):
        store = services.store
        await store.set("registers", items(2))
        await store.set("risks", items(7))
        await store.set("controls", items(3))
        await store.set("recentReports", items(4))
        await store.set("workspaceMembers", items(2))
        await store.set("aiCallCount", 12)

        usage = await services.tracker.get_usage()

        assert usage.risk_registers == 2
        assert usage.risks == 7
        assert usage.controls == 3
        assert usage.reports == 4
        assert usage.team_members == 2
        assert usage.ai_calls == 12

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw,expected", [("7", 7), (" 12 ", 12), ("lots", 0), (True, 0), (-3, 0)])
    async def test_ai_calls_match_counter(self, services, raw, expected):
        await services.store.set("aiCallCount", raw)

        usage = await services.tracker.get_usage()

        assert usage.ai_calls == expected
        assert await services.ai_counter.get_count() == expected

    @pytest.mark.asyncio
    async def test_current_user_counts_as_member(self, user_services):
        await user_services.store.set("workspaceMembers", items(2))

        usage = await user_services.tracker.get_usage()

        assert usage.team_members == 3

    @pytest.mark.asyncio
    async def test_risks_fall_back_to_per_register_lists(self, services):
        """Per-register risk lists are summed only when the global list is empty."""
        store = services.store
        await store.set("registers", [{"id": "a"}, {"id": "b"}])
        await store.set("risks_a", items(3))
        await store.set("risks_b", items(4))

        assert (await services.tracker.get_usage()).risks == 7

        await store.set("risks", items(1))
        assert (await services.tracker.get_usage()).risks == 1

    @pytest.mark.asyncio
    async def test_malformed_collections_count_as_zero(self, services):
        services.store._backend.data["erm_ws1:registers"] = "{broken"
        await services.store.set("controls", {"not": "a list"})

        usage = await services.tracker.get_usage()

        assert usage.risk_registers == 0
        assert usage.controls == 0

    @pytest.mark.asyncio
    async def test_storage_is_rounded_kilobytes(self, services):
        # 12-character key plus the JSON string with its two quotes is 3072 bytes
        await services.store.set("blob", "x" * (3 * 1024 - 14))

        assert (await services.tracker.get_usage()).storage == 3

    @pytest.mark.asyncio
    async def test_storage_only_counts_own_workspace(self, services, root_store):
        await root_store.namespaced("other").set("blob", "x" * 10000)

        assert (await services.tracker.get_usage()).storage == 0


class TestLimitChecks:
    """Tests for at/over limit, remaining and percentage."""

    @pytest.mark.asyncio
    async def test_over_limit_scenario(self, services):
        """Six registers against a FREE cap of five."""
        await services.store.set("registers", items(6))
        tracker = services.tracker

        assert await tracker.is_over_limit(Feature.RISK_REGISTERS) is True
        assert await tracker.is_at_limit(Feature.RISK_REGISTERS) is True
        assert await tracker.get_remaining(Feature.RISK_REGISTERS) == 0

    @pytest.mark.asyncio
    async def test_at_limit_but_not_over(self, services):
        await services.store.set("registers", items(5))
        tracker = services.tracker

        assert await tracker.is_at_limit("riskRegisters") is True
        assert await tracker.is_over_limit("riskRegisters") is False

    @pytest.mark.asyncio
    async def test_below_limit(self, services):
        await services.store.set("controls", items(4))
        tracker = services.tracker

        assert await tracker.is_at_limit(Feature.CONTROLS) is False
        assert await tracker.get_remaining(Feature.CONTROLS) == 6
        assert await tracker.get_usage_percentage(Feature.CONTROLS) == 40

    @pytest.mark.asyncio
    async def test_percentage_rounds_half_up(self, services):
        # 1 of 3 members is 33.3%
        await services.store.set("workspaceMembers", items(1))

        assert await services.tracker.get_usage_percentage(Feature.TEAM_MEMBERS) == 33

    @pytest.mark.asyncio
    @pytest.mark.parametrize("plan", [PlanTier.PRO, PlanTier.ENTERPRISE])
    async def test_unlimited_features_are_never_at_limit(self, services, plan):
        await set_plan(services, plan)
        await services.store.set("registers", items(500))
        tracker = services.tracker

        limits = await tracker.get_limits()
        for feature in Feature:
            if limits.limit_for(feature) == UNLIMITED:
                assert await tracker.is_at_limit(feature) is False
                assert await tracker.is_over_limit(feature) is False
                assert await tracker.get_remaining(feature) == UNLIMITED
                assert await tracker.get_usage_percentage(feature) == 0


class TestPlanAndSummary:
    """Tests for plan lookup and dashboard helpers."""

    @pytest.mark.asyncio
    async def test_missing_workspace_is_free(self, services):
        assert await services.tracker.get_plan() == PlanTier.FREE

    @pytest.mark.asyncio
    async def test_plan_from_workspace_record(self, services):
        await set_plan(services, PlanTier.PRO)

        assert await services.tracker.get_plan() == PlanTier.PRO

    @pytest.mark.asyncio
    async def test_workspace_over_limit_ignores_team_members(self, services):
        await services.store.set("workspaceMembers", items(10))

        assert await services.tracker.is_workspace_over_limit() is False

        await services.store.set("recentReports", items(6))
        assert await services.tracker.is_workspace_over_limit() is True

    @pytest.mark.asyncio
    async def test_features_at_limit(self, services):
        await services.store.set("registers", items(5))
        await services.store.set("workspaceMembers", items(3))

        at_limit = await services.tracker.get_features_at_limit()

        assert at_limit == [Feature.RISK_REGISTERS, Feature.TEAM_MEMBERS]

    @pytest.mark.asyncio
    async def test_can_export_format(self, services):
        assert await services.tracker.can_export_format("pdf") is True
        assert await services.tracker.can_export_format("excel") is False

        await set_plan(services, PlanTier.PRO)
        assert await services.tracker.can_export_format("csv") is True

    @pytest.mark.asyncio
    async def test_usage_summary(self, services):
        await services.store.set("controls", items(10))

        summary = await services.tracker.get_usage_summary()
        dumped = summary.model_dump(mode="json", by_alias=True)

        assert dumped["plan"] == "FREE"
        assert dumped["planName"] == "Free Plan"
        assert dumped["features"]["controls"]["atLimit"] is True
        assert dumped["features"]["riskRegisters"]["name"] == "Risk Registers"
        assert dumped["overLimit"] is False
