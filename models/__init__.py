"""Core data models for accounts, waste complaints, and assignment notifications."""
import enum
import json
from datetime import datetime

from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


class UserRole(str, enum.Enum):
	CITIZEN = "citizen"
	AUTHORITY = "authority"


class ComplaintType(str, enum.Enum):
	GARBAGE = "garbage"
	MISSED_PICKUP = "missed_pickup"
	DEAD_ANIMAL = "dead_animal"


class ComplaintStatus(str, enum.Enum):
	PENDING = "pending"
	VERIFIED = "verified"
	ASSIGNED = "assigned"
	RESOLVED = "resolved"


class Urgency(str, enum.Enum):
	LOW = "Low"
	MEDIUM = "Medium"
	HIGH = "High"

	@classmethod
	def parse(cls, value):
		"""Match an urgency label case-insensitively; None when it is not one of ours."""
		if isinstance(value, cls):
			return value
		if value is None:
			return None
		normalized = str(value).strip().lower()
		for member in cls:
			if member.value.lower() == normalized:
				return member
		return None


def _enum_value(value):
	return value.value if isinstance(value, enum.Enum) else value


def serialize_analysis(value) -> str | None:
	if value is None:
		return None
	return json.dumps(value)


def deserialize_analysis(raw) -> dict:
	"""Parse a stored analysis blob, falling back to an empty dict for missing or corrupt data."""
	if not raw:
		return {}
	try:
		parsed = json.loads(raw)
	except (TypeError, ValueError):
		return {}
	return parsed if isinstance(parsed, dict) else {}


def _isoformat(value: datetime | None) -> str | None:
	return value.isoformat() if value else None


class User(db.Model):
	__tablename__ = "users"

	id = db.Column(db.Integer, primary_key=True)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	password_hash = db.Column(db.String(255), nullable=False)
	role = db.Column(db.String(20), nullable=False, default=UserRole.CITIZEN.value, index=True)
	name = db.Column(db.String(150), nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	complaints = db.relationship(
		"Complaint", back_populates="citizen", lazy="dynamic", foreign_keys="Complaint.citizen_id"
	)
	notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		return check_password_hash(self.password_hash, password)

	@property
	def is_authority(self) -> bool:
		return self.role == UserRole.AUTHORITY.value

	def to_payload(self) -> dict:
		return {"id": self.id, "email": self.email, "role": self.role, "name": self.name}

	def member_payload(self) -> dict:
		return {"id": self.id, "name": self.name, "role": self.role}


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.Integer, primary_key=True)
	citizen_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
	type = db.Column(db.String(30), nullable=False, index=True)
	category = db.Column(db.String(120), nullable=True)
	photo_before = db.Column(db.Text, nullable=False)
	photo_after = db.Column(db.Text, nullable=True)
	latitude = db.Column(db.Float, nullable=True)
	longitude = db.Column(db.Float, nullable=True)
	address = db.Column(db.String(500), nullable=True)
	status = db.Column(db.String(20), nullable=False, default=ComplaintStatus.PENDING.value, index=True)
	ai_analysis_raw = db.Column("ai_analysis", db.Text, nullable=True)
	urgency = db.Column(db.String(10), nullable=True, default=Urgency.MEDIUM.value)
	assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
	assigned_name = db.Column(db.String(150), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint(
			"(assigned_to IS NULL AND assigned_name IS NULL) OR (assigned_to IS NOT NULL AND assigned_name IS NOT NULL)",
			name="ck_complaint_assignee_pair",
		),
		db.CheckConstraint(
			"status != 'resolved' OR photo_after IS NOT NULL",
			name="ck_complaint_resolved_has_after_photo",
		),
	)

	citizen = db.relationship("User", back_populates="complaints", foreign_keys=[citizen_id])
	assignee = db.relationship("User", foreign_keys=[assigned_to])

	@property
	def ai_analysis(self) -> dict:
		return deserialize_analysis(self.ai_analysis_raw)

	@ai_analysis.setter
	def ai_analysis(self, value) -> None:
		self.ai_analysis_raw = serialize_analysis(value)

	def touch(self) -> None:
		self.updated_at = datetime.utcnow()

	def set_status(self, status) -> None:
		self.status = _enum_value(status)

	def to_payload(self) -> dict:
		return {
			"id": self.id,
			"citizen_id": self.citizen_id,
			"type": self.type,
			"category": self.category,
			"photo_before": self.photo_before,
			"photo_after": self.photo_after,
			"latitude": self.latitude,
			"longitude": self.longitude,
			"address": self.address,
			"status": self.status,
			"ai_analysis": self.ai_analysis,
			"urgency": self.urgency,
			"assigned_to": self.assigned_to,
			"assigned_name": self.assigned_name,
			"created_at": _isoformat(self.created_at),
			"updated_at": _isoformat(self.updated_at),
		}


class Notification(db.Model):
	__tablename__ = "notifications"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
	message = db.Column(db.String(500), nullable=False)
	is_read = db.Column(db.Boolean, default=False, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	user = db.relationship("User", back_populates="notifications")

	def to_payload(self) -> dict:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"message": self.message,
			"is_read": self.is_read,
			"created_at": _isoformat(self.created_at),
		}
