"""Tests for complaint intake, listing, retrieval, and partial updates."""

from datetime import datetime, timedelta

import pytest

from extensions import db
from models import Complaint
from tests.conftest import PHOTO_AFTER, PHOTO_BEFORE


def _set_updated_at(app, complaint_id, value):
    with app.app_context():
        complaint = db.session.get(Complaint, complaint_id)
        complaint.updated_at = value
        db.session.commit()


class TestCreateAndList:
    def test_created_complaint_round_trips_through_citizen_list(self, client, citizen):
        analysis = {
            "isWaste": True,
            "wasteType": "mixed",
            "urgency": "High",
            "confidence": 0.81,
            "description": "Pile of mixed waste",
            "tags": ["plastic", {"nested": [1, 2.5, None]}],
        }
        body = {
            "citizen_id": citizen["id"],
            "type": "garbage",
            "category": "Illegal Dumping",
            "photo_before": PHOTO_BEFORE,
            "latitude": 9.9252,
            "longitude": 78.1198,
            "address": "Near Meenakshi Temple",
            "ai_analysis": analysis,
            "urgency": "High",
        }
        created = client.post("/api/complaints", json=body)
        assert created.status_code == 201

        listed = client.get(f"/api/complaints?role=citizen&user_id={citizen['id']}").get_json()
        assert len(listed) == 1
        complaint = listed[0]
        assert complaint["id"] == created.get_json()["id"]
        for field in ("citizen_id", "type", "category", "photo_before", "latitude", "longitude", "address", "urgency"):
            assert complaint[field] == body[field]
        assert complaint["ai_analysis"] == analysis
        assert complaint["status"] == "pending"
        assert complaint["photo_after"] is None
        assert complaint["assigned_to"] is None
        assert complaint["assigned_name"] is None

    def test_defaults_to_pending_and_medium_urgency(self, client, citizen, submit_complaint):
        submit_complaint(citizen["id"])
        listed = client.get("/api/complaints").get_json()
        assert listed[0]["status"] == "pending"
        assert listed[0]["urgency"] == "Medium"

    def test_urgency_is_normalised(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"], urgency="low")
        assert client.get(f"/api/complaints/{complaint_id}").get_json()["urgency"] == "Low"

    def test_missing_analysis_reads_as_empty_object(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"], ai_analysis=None, type="missed_pickup")
        assert client.get(f"/api/complaints/{complaint_id}").get_json()["ai_analysis"] == {}

    def test_corrupt_stored_analysis_fails_soft(self, app, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        with app.app_context():
            complaint = db.session.get(Complaint, complaint_id)
            complaint.ai_analysis_raw = "{not json"
            db.session.commit()
        assert client.get(f"/api/complaints/{complaint_id}").get_json()["ai_analysis"] == {}
        assert client.get("/api/complaints").get_json()[0]["ai_analysis"] == {}

    def test_list_is_newest_first_and_filters_by_citizen(self, client, citizen, other_citizen, submit_complaint):
        first = submit_complaint(citizen["id"])
        second = submit_complaint(other_citizen["id"], type="dead_animal")
        third = submit_complaint(citizen["id"])

        all_ids = [c["id"] for c in client.get("/api/complaints").get_json()]
        assert all_ids == [third, second, first]

        mine = client.get(f"/api/complaints?role=citizen&user_id={citizen['id']}").get_json()
        assert [c["id"] for c in mine] == [third, first]

    def test_status_filter(self, client, citizen, submit_complaint):
        first = submit_complaint(citizen["id"])
        submit_complaint(citizen["id"])
        client.patch(f"/api/complaints/{first}", json={"status": "verified"})
        verified = client.get("/api/complaints?status=verified").get_json()
        assert [c["id"] for c in verified] == [first]

    def test_citizen_listing_requires_user_id(self, client):
        response = client.get("/api/complaints?role=citizen")
        assert response.status_code == 400

    def test_unknown_type_is_rejected(self, client, citizen, submit_complaint):
        response = client.post(
            "/api/complaints",
            json={"citizen_id": citizen["id"], "type": "noise", "photo_before": PHOTO_BEFORE},
        )
        assert response.status_code == 400
        assert "noise" in response.get_json()["error"]

    def test_unknown_citizen_is_rejected(self, client):
        response = client.post(
            "/api/complaints",
            json={"citizen_id": 999, "type": "garbage", "photo_before": PHOTO_BEFORE},
        )
        assert response.status_code == 400
        assert response.get_json() == {"error": "Unknown citizen"}

    def test_missing_photo_is_rejected(self, client, citizen):
        response = client.post("/api/complaints", json={"citizen_id": citizen["id"], "type": "garbage"})
        assert response.status_code == 400

    @pytest.mark.parametrize("field", ["category", "address"])
    def test_non_string_text_fields_are_rejected(self, app, client, citizen, field):
        response = client.post(
            "/api/complaints",
            json={"citizen_id": citizen["id"], "type": "garbage", "photo_before": PHOTO_BEFORE, field: {"x": 1}},
        )
        assert response.status_code == 400
        assert response.get_json() == {"error": f"{field} must be a string"}
        with app.app_context():
            assert Complaint.query.count() == 0

    def test_out_of_range_coordinates_are_rejected(self, client, citizen):
        response = client.post(
            "/api/complaints",
            json={"citizen_id": citizen["id"], "type": "garbage", "photo_before": PHOTO_BEFORE, "latitude": 123.0},
        )
        assert response.status_code == 400

    def test_coordinates_are_optional(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"], latitude=None, longitude=None, address=None)
        complaint = client.get(f"/api/complaints/{complaint_id}").get_json()
        assert complaint["latitude"] is None
        assert complaint["longitude"] is None


class TestGet:
    def test_unknown_id_is_not_found(self, client):
        response = client.get("/api/complaints/4242")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Complaint not found"}

    def test_non_numeric_id_is_not_found(self, client):
        response = client.get("/api/complaints/abc")
        assert response.status_code == 404
        assert "error" in response.get_json()


class TestPatch:
    def test_status_only_leaves_photo_after_unchanged(self, app, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        client.patch(f"/api/complaints/{complaint_id}", json={"photo_after": PHOTO_AFTER})
        stale = datetime(2020, 1, 1)
        _set_updated_at(app, complaint_id, stale)

        response = client.patch(f"/api/complaints/{complaint_id}", json={"status": "verified"})
        assert response.get_json() == {"success": True}

        complaint = client.get(f"/api/complaints/{complaint_id}").get_json()
        assert complaint["status"] == "verified"
        assert complaint["photo_after"] == PHOTO_AFTER
        assert datetime.fromisoformat(complaint["updated_at"]) > stale

    def test_photo_only_leaves_status_unchanged(self, app, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        stale = datetime.utcnow() - timedelta(days=3)
        _set_updated_at(app, complaint_id, stale)

        client.patch(f"/api/complaints/{complaint_id}", json={"photo_after": PHOTO_AFTER})

        complaint = client.get(f"/api/complaints/{complaint_id}").get_json()
        assert complaint["status"] == "pending"
        assert complaint["photo_after"] == PHOTO_AFTER
        assert datetime.fromisoformat(complaint["updated_at"]) > stale

    def test_empty_patch_only_refreshes_timestamp(self, app, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        stale = datetime(2021, 6, 1)
        _set_updated_at(app, complaint_id, stale)

        assert client.patch(f"/api/complaints/{complaint_id}", json={}).status_code == 200
        complaint = client.get(f"/api/complaints/{complaint_id}").get_json()
        assert complaint["status"] == "pending"
        assert complaint["photo_after"] is None
        assert datetime.fromisoformat(complaint["updated_at"]) > stale

    def test_resolving_requires_after_photo(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        response = client.patch(f"/api/complaints/{complaint_id}", json={"status": "resolved"})
        assert response.status_code == 400
        assert client.get(f"/api/complaints/{complaint_id}").get_json()["status"] == "pending"

    def test_resolving_with_after_photo(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        response = client.patch(
            f"/api/complaints/{complaint_id}",
            json={"status": "resolved", "photo_after": PHOTO_AFTER},
        )
        assert response.status_code == 200
        complaint = client.get(f"/api/complaints/{complaint_id}").get_json()
        assert complaint["status"] == "resolved"
        assert complaint["photo_after"] == PHOTO_AFTER

    @pytest.mark.parametrize("photo", [{"x": 1}, 5, "   "])
    def test_malformed_after_photo_is_rejected(self, client, citizen, submit_complaint, photo):
        complaint_id = submit_complaint(citizen["id"])
        response = client.patch(f"/api/complaints/{complaint_id}", json={"photo_after": photo})
        assert response.status_code == 400
        assert response.get_json() == {"error": "photo_after must be an image payload string"}

    def test_numeric_after_photo_cannot_resolve(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        response = client.patch(f"/api/complaints/{complaint_id}", json={"status": "resolved", "photo_after": 5})
        assert response.status_code == 400
        complaint = client.get(f"/api/complaints/{complaint_id}").get_json()
        assert complaint["status"] == "pending"
        assert complaint["photo_after"] is None

    def test_unknown_status_is_rejected(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        response = client.patch(f"/api/complaints/{complaint_id}", json={"status": "closed"})
        assert response.status_code == 400

    def test_patch_unknown_complaint(self, client):
        response = client.patch("/api/complaints/77", json={"status": "verified"})
        assert response.status_code == 404

    def test_cleanup_verification_is_merged_into_analysis(self, client, citizen, submit_complaint):
        complaint_id = submit_complaint(citizen["id"])
        verification = {"verified": True, "score": 88, "feedback": "Clean"}
        client.patch(f"/api/complaints/{complaint_id}", json={"ai_cleanup_verification": verification})
        analysis = client.get(f"/api/complaints/{complaint_id}").get_json()["ai_analysis"]
        assert analysis["cleanup_verification"] == verification
        assert analysis["wasteType"] == "plastic"
