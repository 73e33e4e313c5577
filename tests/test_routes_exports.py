"""
Tests for export gating endpoints.

Covers the check-before-export and record-after-export flow.
"""

import pytest

from conftest import seed

WS = {"X-Workspace-ID": "acme", "X-User-ID": "u-1", "X-User-Name": "Jane Smith"}


def record(client, item_id, export_type="riskRegister", name=None):
    return client.post(
        "/exports/record",
        json={"type": export_type, "itemId": item_id, "itemName": name or item_id},
        headers=WS,
    )


class TestExportCheck:
    """Tests for POST /exports/{type}/{id}/check."""

    def test_first_export_is_watermarked(self, client):
        response = client.post("/exports/riskRegister/r1/check", headers=WS)

        assert response.status_code == 200
        data = response.json()
        assert data["allowed"] is True
        assert data["watermark"] is True
        assert data["isNewExport"] is True
        assert data["remaining"] == 4
        assert data["watermarkConfig"]["position"] == "top-right"
        assert data["watermarkConfig"]["width"] == 40

    def test_check_then_record_flow(self, client):
        """Checking twice costs nothing; recording consumes one slot."""
        first = client.post("/exports/riskRegister/r1/check", headers=WS).json()
        second = client.post("/exports/riskRegister/r1/check", headers=WS).json()
        assert first["remaining"] == 4
        assert second["remaining"] == 4

        assert record(client, "r1").status_code == 201

        other = client.post("/exports/riskRegister/r2/check", headers=WS).json()
        assert other["remaining"] == 3

    def test_limit_reached_is_402(self, client):
        for i in range(5):
            record(client, f"rep-{i}", export_type="report")

        response = client.post("/exports/report/rep-new/check", headers=WS)

        assert response.status_code == 402
        body = response.json()
        assert body["error_code"] == "EXPORT_LIMIT_REACHED"
        assert body["error"] == "You've exported 5 of 5 reports on the free plan."
        assert body["details"]["remaining"] == 0

    def test_re_export_at_cap_is_allowed(self, client):
        for i in range(5):
            record(client, f"rep-{i}", export_type="report")

        response = client.post("/exports/report/rep-3/check", headers=WS)

        assert response.status_code == 200
        assert response.json()["isNewExport"] is False

    def test_excel_is_blocked_on_free(self, client):
        response = client.post("/exports/report/rep-1/check", params={"format": "excel"}, headers=WS)

        assert response.status_code == 402
        assert response.json()["error_code"] == "FEATURE_BLOCKED"

    def test_unknown_format_is_400(self, client):
        response = client.post("/exports/report/rep-1/check", params={"format": "docx"}, headers=WS)

        assert response.status_code == 400

    def test_unknown_export_type_is_400(self, client):
        response = client.post("/exports/dashboard/d1/check", headers=WS)

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_EXPORT_TYPE"

    def test_corrupt_history_is_503(self, client, root_store):
        root_store._backend.data["erm_acme:exportHistory"] = "{broken"

        response = client.post("/exports/report/rep-1/check", headers=WS)

        assert response.status_code == 503
        assert response.json()["error_code"] == "STORAGE_UNAVAILABLE"

    def test_pro_plan_is_unwatermarked(self, client, root_store):
        seed(root_store.namespaced("acme"), "workspace", {"id": "acme", "plan": "PRO"})

        data = client.post("/exports/report/rep-1/check", params={"format": "csv"}, headers=WS).json()

        assert data["watermark"] is False
        assert data["remaining"] == -1
        assert data["watermarkConfig"] is None


class TestExportRecordAndStats:
    """Tests for /exports/record, /exports/stats and /exports/history."""

    def test_record_returns_created_record(self, client):
        response = record(client, "r1", name="Main register")

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "riskRegister"
        assert data["itemId"] == "r1"
        assert data["itemName"] == "Main register"
        assert data["plan"] == "FREE"

    def test_record_is_audited(self, client):
        record(client, "rep-1", export_type="report", name="Board pack")

        activities = client.get("/activity", headers=WS).json()["activities"]

        assert activities[0]["action"] == "exported"
        assert activities[0]["type"] == "report"
        assert activities[0]["message"] == 'Jane Smith exported "Board pack" report'

    def test_record_requires_item_id(self, client):
        response = client.post("/exports/record", json={"type": "report"}, headers=WS)

        assert response.status_code == 422

    def test_stats_and_history(self, client):
        record(client, "r1")
        record(client, "r1")
        record(client, "rep-1", export_type="report")

        stats = client.get("/exports/stats", headers=WS).json()
        history = client.get("/exports/history", headers=WS).json()

        assert stats["riskRegisters"] == {"total": 2, "unique": 1, "limit": 5, "remaining": 4}
        assert stats["reports"]["unique"] == 1
        assert [h["itemId"] for h in history] == ["r1", "r1", "rep-1"]

    @pytest.mark.parametrize("workspace", ["globex", "initech"])
    def test_history_is_per_workspace(self, client, workspace):
        record(client, "r1")

        history = client.get("/exports/history", headers={"X-Workspace-ID": workspace}).json()

        assert history == []
