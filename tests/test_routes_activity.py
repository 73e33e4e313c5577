"""
Tests for activity log endpoints.
"""

import csv
import io

WS = {"X-Workspace-ID": "acme", "X-User-ID": "u-1", "X-User-Name": "Jane Smith"}


def log(client, type_, action, name=None, **details):
    return client.post(
        "/activity",
        json={"type": type_, "action": action, "entityName": name, "details": details},
        headers=WS,
    )


class TestLogActivity:
    """Tests for POST /activity."""

    def test_log_returns_record_with_message(self, client):
        response = log(client, "risk", "created", "Supplier fraud")

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "risk"
        assert data["user"] == "Jane Smith"
        assert data["userId"] == "u-1"
        assert data["message"] == 'Jane Smith created "Supplier fraud" risk'

    def test_unknown_action_is_422(self, client):
        response = log(client, "risk", "launched", "Supplier fraud")

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_bulk_delete_is_audited(self, client):
        response = log(client, "report", "bulk_deleted", "3 reports", ids=["rep-1", "rep-2", "rep-3"])

        assert response.status_code == 201
        assert response.json()["message"] == 'Jane Smith bulk deleted "3 reports" report'


class TestListActivities:
    """Tests for GET /activity filters."""

    def test_newest_first_with_total(self, client):
        log(client, "risk", "created", "First")
        log(client, "control", "updated", "Second")
        log(client, "risk", "deleted", "Third")

        data = client.get("/activity", params={"limit": 2}, headers=WS).json()

        assert data["total"] == 3
        assert [a["entityName"] for a in data["activities"]] == ["Third", "Second"]

    def test_filter_by_type_and_action(self, client):
        log(client, "risk", "created", "First")
        log(client, "control", "updated", "Second")
        log(client, "risk", "deleted", "Third")

        by_type = client.get("/activity", params={"type": "risk"}, headers=WS).json()
        by_both = client.get("/activity", params={"type": "risk", "action": "created"}, headers=WS).json()

        assert by_type["total"] == 2
        assert [a["entityName"] for a in by_both["activities"]] == ["First"]

    def test_search(self, client):
        log(client, "risk", "created", "Supplier fraud")
        log(client, "control", "created", "MFA rollout")

        data = client.get("/activity", params={"q": "mfa"}, headers=WS).json()

        assert [a["entityName"] for a in data["activities"]] == ["MFA rollout"]

    def test_date_range(self, client):
        log(client, "risk", "created", "Supplier fraud")

        past = client.get("/activity", params={"end": "2000-01-01T00:00:00Z"}, headers=WS).json()
        open_ended = client.get("/activity", params={"start": "2000-01-01"}, headers=WS).json()

        assert past["total"] == 0
        assert open_ended["total"] == 1

    def test_invalid_date_is_400(self, client):
        response = client.get("/activity", params={"start": "last week"}, headers=WS)

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_DATE"

    def test_clear(self, client):
        log(client, "risk", "created", "Supplier fraud")

        assert client.delete("/activity", headers=WS).json() == {"success": True}
        assert client.get("/activity", headers=WS).json()["total"] == 0


class TestActivityCsv:
    """Tests for GET /activity/export."""

    def test_csv_download(self, client):
        log(client, "report", "exported", "Board pack", format="pdf")

        response = client.get("/activity/export", headers=WS)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["cache-control"] == "no-cache"
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="activity-log-')
        assert disposition.endswith('.csv"')

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0] == ["Timestamp", "Date", "Time", "User", "Action", "Type", "Entity", "Details"]
        assert rows[1][3:7] == ["Jane Smith", "exported", "report", "Board pack"]
        assert rows[1][7] == '{"format":"pdf"}'

    def test_empty_log_is_header_only(self, client):
        response = client.get("/activity/export", headers=WS)

        assert response.text == "Timestamp,Date,Time,User,Action,Type,Entity,Details\n"
