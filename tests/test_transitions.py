"""Tests for the configurable complaint status transition table."""

import pytest

from utils.complaint_lifecycle import OPEN_TRANSITIONS, STRICT_TRANSITIONS, transition_table
from tests.conftest import PHOTO_AFTER


class TestTransitionTable:
    def test_open_policy_is_default(self):
        assert transition_table({}) is OPEN_TRANSITIONS

    def test_strict_policy(self):
        assert transition_table({"STATUS_TRANSITION_POLICY": "strict"}) is STRICT_TRANSITIONS

    def test_explicit_table_wins(self):
        table = transition_table(
            {"STATUS_TRANSITION_POLICY": "strict", "COMPLAINT_STATUS_TRANSITIONS": {"pending": ["verified"]}}
        )
        assert table == {"pending": {"verified"}}


class TestOpenPolicy:
    def test_resolved_complaint_can_be_reopened(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        client.patch(f"/api/complaints/{complaint_id}", json={"status": "resolved", "photo_after": PHOTO_AFTER})
        response = client.patch(f"/api/complaints/{complaint_id}", json={"status": "pending"})
        assert response.status_code == 200
        assert client.get(f"/api/complaints/{complaint_id}").get_json()["status"] == "pending"


class TestStrictPolicy:
    @pytest.fixture(autouse=True)
    def strict(self, app):
        app.config["STATUS_TRANSITION_POLICY"] = "strict"

    def test_forward_moves_are_allowed(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        assert client.patch(f"/api/complaints/{complaint_id}", json={"status": "verified"}).status_code == 200
        assert client.patch(f"/api/complaints/{complaint_id}", json={"status": "verified"}).status_code == 200

    def test_reopening_is_rejected(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        client.patch(f"/api/complaints/{complaint_id}", json={"status": "resolved", "photo_after": PHOTO_AFTER})
        response = client.patch(f"/api/complaints/{complaint_id}", json={"status": "pending"})
        assert response.status_code == 409
        assert "resolved" in response.get_json()["error"]

    def test_assigning_resolved_complaint_is_rejected(self, app, client, citizen, authority, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        client.patch(f"/api/complaints/{complaint_id}", json={"status": "resolved", "photo_after": PHOTO_AFTER})
        response = client.post(
            f"/api/complaints/{complaint_id}/assign",
            json={"assigned_to": authority["id"], "assigned_name": "K"},
        )
        assert response.status_code == 409
        assert client.get(f"/api/notifications/{authority['id']}").get_json() == []

    def test_assigned_can_be_reassigned(self, client, citizen, authority, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        body = {"assigned_to": authority["id"], "assigned_name": "K"}
        assert client.post(f"/api/complaints/{complaint_id}/assign", json=body).status_code == 200
        assert client.post(f"/api/complaints/{complaint_id}/assign", json=body).status_code == 200
