"""Assignment notifications and the authority roster used by the assignment picker."""
from typing import List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Notification, User, UserRole
from utils.errors import NotFound, StorageFailure

ASSIGNMENT_MESSAGE = "You have been assigned to complaint #{complaint_id}"


def assignment_message(complaint_id: int) -> str:
    return ASSIGNMENT_MESSAGE.format(complaint_id=complaint_id)


def notify_user(user_id: int, message: str) -> Notification:
    """Stage a notification on the current session; the caller owns the commit."""
    notification = Notification(user_id=user_id, message=message)
    db.session.add(notification)
    return notification


def list_notifications(user_id: int, limit: int | None = None) -> List[Notification]:
    if limit is None:
        limit = int(current_app.config.get("NOTIFICATION_FEED_LIMIT", 20))
    return (
        Notification.query.filter_by(user_id=user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def mark_notification_read(notification_id: int) -> Notification:
    notification = db.session.get(Notification, notification_id)
    if not notification:
        raise NotFound("Notification not found")
    if notification.is_read:
        return notification
    notification.is_read = True
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error while marking notification read")
        raise StorageFailure()
    return notification


def list_authorities() -> List[User]:
    return User.query.filter_by(role=UserRole.AUTHORITY.value).order_by(User.id).all()
