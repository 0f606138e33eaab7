"""Complaint intake, status transitions, assignment, and the verified-cleanup gate.

Concurrent PATCH and assignment requests on the same complaint are
last-write-wins: rows carry no version column.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Complaint, ComplaintStatus, ComplaintType, Urgency, User
from utils.ai_vision import AIGateway, AIVisionError
from utils.errors import CleanupNotVerified, InvalidTransition, NotFound, StorageFailure, ValidationFailure
from utils.notifications import assignment_message, notify_user

_ALL_STATUSES = {s.value for s in ComplaintStatus}

# Any status may follow any other.
OPEN_TRANSITIONS: Dict[str, Set[str]] = {status: set(_ALL_STATUSES) for status in _ALL_STATUSES}

STRICT_TRANSITIONS: Dict[str, Set[str]] = {
    ComplaintStatus.PENDING.value: {
        ComplaintStatus.VERIFIED.value,
        ComplaintStatus.ASSIGNED.value,
        ComplaintStatus.RESOLVED.value,
    },
    ComplaintStatus.VERIFIED.value: {ComplaintStatus.ASSIGNED.value, ComplaintStatus.RESOLVED.value},
    ComplaintStatus.ASSIGNED.value: {ComplaintStatus.RESOLVED.value},
    ComplaintStatus.RESOLVED.value: set(),
}

TRANSITION_POLICIES = {"open": OPEN_TRANSITIONS, "strict": STRICT_TRANSITIONS}


def transition_table(config=None) -> Dict[str, Set[str]]:
    config = config if config is not None else current_app.config
    explicit = config.get("COMPLAINT_STATUS_TRANSITIONS")
    if explicit is not None:
        return {source: set(targets) for source, targets in explicit.items()}
    policy = (config.get("STATUS_TRANSITION_POLICY") or "open").lower()
    return TRANSITION_POLICIES.get(policy, OPEN_TRANSITIONS)


def ensure_transition_allowed(current: str, target: str) -> None:
    # Rewriting the same status is a no-op and always permitted.
    if current == target:
        return
    if target not in transition_table().get(current, set()):
        raise InvalidTransition(f"Cannot move complaint from {current} to {target}")


def parse_status(value: Any) -> ComplaintStatus:
    if isinstance(value, ComplaintStatus):
        return value
    try:
        return ComplaintStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationFailure(f"Unknown status: {value}")


def parse_complaint_type(value: Any) -> ComplaintType:
    if value is None or not str(value).strip():
        raise ValidationFailure("type is required")
    try:
        return ComplaintType(str(value).strip().lower())
    except ValueError:
        raise ValidationFailure(f"Unknown complaint type: {value}")


def parse_urgency(value: Any) -> Urgency:
    if value is None or value == "":
        return Urgency.MEDIUM
    urgency = Urgency.parse(value)
    if urgency is None:
        raise ValidationFailure(f"Unknown urgency: {value}")
    return urgency


def parse_id(value: Any, field: str) -> int:
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationFailure(f"{field} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailure(f"{field} must be an integer")


def _optional_coordinate(value: Any, field: str, bound: float) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationFailure(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationFailure(f"{field} must be a number")
    if not -bound <= number <= bound:
        raise ValidationFailure(f"{field} is out of range")
    return number


def _optional_text(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationFailure(f"{field} must be a string")
    return value


def _commit(action: str, **extra) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error during %s", action, extra=extra)
        raise StorageFailure()


def create_complaint(
    citizen_id: Any,
    complaint_type: Any,
    photo_before: Any,
    category: Optional[str] = None,
    latitude: Any = None,
    longitude: Any = None,
    address: Optional[str] = None,
    ai_analysis: Optional[Dict[str, Any]] = None,
    urgency: Any = None,
) -> Complaint:
    citizen_pk = parse_id(citizen_id, "citizen_id")
    kind = parse_complaint_type(complaint_type)
    if not photo_before or not isinstance(photo_before, str):
        raise ValidationFailure("photo_before is required")
    if ai_analysis is not None and not isinstance(ai_analysis, dict):
        raise ValidationFailure("ai_analysis must be an object")
    if not db.session.get(User, citizen_pk):
        raise ValidationFailure("Unknown citizen")

    complaint = Complaint(
        citizen_id=citizen_pk,
        type=kind.value,
        category=_optional_text(category, "category"),
        photo_before=photo_before,
        latitude=_optional_coordinate(latitude, "latitude", 90.0),
        longitude=_optional_coordinate(longitude, "longitude", 180.0),
        address=_optional_text(address, "address"),
        status=ComplaintStatus.PENDING.value,
        urgency=parse_urgency(urgency).value,
    )
    complaint.ai_analysis = ai_analysis
    db.session.add(complaint)
    _commit("complaint creation", citizen_id=citizen_pk)
    current_app.logger.info(
        "Complaint created",
        extra={"complaint_id": complaint.id, "citizen_id": citizen_pk, "complaint_type": kind.value},
    )
    return complaint


def list_complaints(citizen_id: Optional[int] = None, status: Optional[str] = None) -> List[Complaint]:
    query = Complaint.query
    if citizen_id is not None:
        query = query.filter(Complaint.citizen_id == citizen_id)
    if status:
        query = query.filter(Complaint.status == parse_status(status).value)
    return query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()


def get_complaint(complaint_id: Any) -> Complaint:
    try:
        pk = int(complaint_id)
    except (TypeError, ValueError):
        raise NotFound("Complaint not found")
    complaint = db.session.get(Complaint, pk)
    if not complaint:
        raise NotFound("Complaint not found")
    return complaint


def update_complaint(
    complaint_id: Any,
    status: Any = None,
    photo_after: Optional[str] = None,
    cleanup_verification: Optional[Dict[str, Any]] = None,
) -> Complaint:
    """Apply a partial update; fields left as None keep their stored value."""
    complaint = get_complaint(complaint_id)
    if photo_after is not None and (not isinstance(photo_after, str) or not photo_after.strip()):
        raise ValidationFailure("photo_after must be an image payload string")

    target = parse_status(status).value if status else None
    if target:
        ensure_transition_allowed(complaint.status, target)
        if target == ComplaintStatus.RESOLVED.value and not (photo_after or complaint.photo_after):
            raise ValidationFailure("An after photo is required to resolve a complaint")
    if cleanup_verification is not None and not isinstance(cleanup_verification, dict):
        raise ValidationFailure("ai_cleanup_verification must be an object")

    previous = complaint.status
    if photo_after:
        complaint.photo_after = photo_after
    if target:
        complaint.set_status(target)
    if cleanup_verification is not None:
        analysis = complaint.ai_analysis
        analysis["cleanup_verification"] = cleanup_verification
        complaint.ai_analysis = analysis
    complaint.touch()
    _commit("complaint update", complaint_id=complaint.id)

    if target and target != previous:
        current_app.logger.info(
            "Complaint status changed",
            extra={"complaint_id": complaint.id, "previous_status": previous, "new_status": target},
        )
    return complaint


def assign_complaint(complaint_id: Any, assignee_id: Any, assignee_name: Optional[str]) -> Complaint:
    """Bind a complaint to an authority member and notify them in one transaction."""
    complaint = get_complaint(complaint_id)
    assignee_pk = parse_id(assignee_id, "assigned_to")
    name = (assignee_name or "").strip() if isinstance(assignee_name, str) else ""
    if not name:
        raise ValidationFailure("assigned_name is required")
    assignee = db.session.get(User, assignee_pk)
    if not assignee or not assignee.is_authority:
        raise ValidationFailure("Assignee must be an authority member")
    ensure_transition_allowed(complaint.status, ComplaintStatus.ASSIGNED.value)

    try:
        complaint.assigned_to = assignee.id
        complaint.assigned_name = name
        complaint.set_status(ComplaintStatus.ASSIGNED)
        complaint.touch()
        notify_user(assignee.id, assignment_message(complaint.id))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Assignment rolled back", extra={"complaint_id": complaint.id, "assignee_id": assignee_pk}
        )
        raise StorageFailure("Unable to assign complaint")

    current_app.logger.info(
        "Complaint assigned", extra={"complaint_id": complaint.id, "assignee_id": assignee.id}
    )
    return complaint


def resolve_with_verification(gateway: AIGateway, complaint_id: Any, photo_after: Optional[str]) -> Tuple[Complaint, Dict[str, Any]]:
    """Mark a complaint resolved only when the AI confirms the cleanup.

    Raises CleanupNotVerified, leaving the complaint untouched, when the model
    rejects the after photo or cannot be reached.
    """
    complaint = get_complaint(complaint_id)
    if not photo_after or not isinstance(photo_after, str):
        raise ValidationFailure("photo_after is required")
    ensure_transition_allowed(complaint.status, ComplaintStatus.RESOLVED.value)

    try:
        verification = gateway.verify_cleanup(complaint.photo_before, photo_after)
    except AIVisionError as exc:
        current_app.logger.warning(
            "Cleanup verification unavailable", extra={"complaint_id": complaint.id, "error": str(exc)}
        )
        raise CleanupNotVerified(
            "Cleanup verification is unavailable; the complaint stays open",
            warning="analysis unavailable",
        )

    if not verification.get("verified"):
        current_app.logger.info(
            "Cleanup rejected", extra={"complaint_id": complaint.id, "score": verification.get("score")}
        )
        raise CleanupNotVerified("Cleanup was not verified", verification=verification)

    complaint = update_complaint(
        complaint.id,
        status=ComplaintStatus.RESOLVED.value,
        photo_after=photo_after,
        cleanup_verification=verification,
    )
    return complaint, verification
