"""
Pytest configuration for all tests.

Builds a fresh in-memory application per test with a deterministic AI gateway.
"""

import pytest

from app import create_app
from extensions import db
from models import User, UserRole
from utils.ai_vision import AIGateway, AIVisionError

PHOTO_BEFORE = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD/2wBDAAgGBgcGBQgHBwcJCQgKDBQN"
PHOTO_AFTER = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD/2wBDAAgGBgcGBQgHBwcJCQgKDCLE"


class StubGateway(AIGateway):
    """Deterministic stand-in for the Gemini gateway."""

    def __init__(self):
        self.waste_result = {
            "isWaste": True,
            "wasteType": "plastic",
            "urgency": "High",
            "confidence": 0.93,
            "description": "Overflowing bin with plastic bags",
        }
        self.animal_result = {
            "isDeadAnimal": True,
            "animalType": "dog",
            "urgency": "High",
            "confidence": 0.88,
            "description": "Carcass near the roadside",
        }
        self.cleanup_result = {"verified": True, "score": 92.0, "feedback": "The area is clear."}
        self.reply = "Please segregate organic and inorganic waste."
        self.fail = False
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))
        if self.fail:
            raise AIVisionError("AI service request failed")

    def classify_waste(self, image):
        self._record("classify_waste", image)
        return dict(self.waste_result)

    def classify_dead_animal(self, image):
        self._record("classify_dead_animal", image)
        return dict(self.animal_result)

    def verify_cleanup(self, before_image, after_image):
        self._record("verify_cleanup", before_image, after_image)
        return dict(self.cleanup_result)

    def converse(self, message, history=None):
        self._record("converse", message, history)
        return self.reply


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def app(gateway):
    app = create_app("testing", ai_gateway=gateway)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _register(client, email, name, role, password="s3cret-pass"):
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "role": role, "name": name},
    )
    assert response.status_code == 201, response.get_json()
    return response.get_json()["user"]


@pytest.fixture
def citizen(client):
    return _register(client, "meena@example.com", "Meena", "citizen")


@pytest.fixture
def other_citizen(client):
    return _register(client, "ravi@example.com", "Ravi", "citizen")


@pytest.fixture
def authority(client):
    return _register(client, "officer.kumar@mcc.tn.gov.in", "Officer Kumar", "authority")


@pytest.fixture
def make_user(app):
    """Insert a user row directly, optionally with a fixed id."""

    def _make(name, role=UserRole.AUTHORITY.value, user_id=None, email=None):
        with app.app_context():
            user = User(id=user_id, email=email or f"{name.lower().replace(' ', '.')}@example.com", role=role, name=name)
            user.set_password("irrelevant")
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make


@pytest.fixture
def submit_complaint(client):
    def _submit(citizen_id, **overrides):
        body = {
            "citizen_id": citizen_id,
            "type": "garbage",
            "category": "Overflowing Bin",
            "photo_before": PHOTO_BEFORE,
            "latitude": 9.9252,
            "longitude": 78.1198,
            "address": "West Masi Street, Madurai",
            "ai_analysis": {"isWaste": True, "wasteType": "plastic", "urgency": "High"},
        }
        body.update(overrides)
        response = client.post("/api/complaints", json=body)
        assert response.status_code == 201, response.get_json()
        return response.get_json()["id"]

    return _submit
