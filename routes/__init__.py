"""Blueprint registration plus dashboard, roster, and notification endpoints."""
from flask import Blueprint, jsonify

from utils.analytics import dashboard_summary
from utils.notifications import list_authorities, list_notifications, mark_notification_read
from .ai import ai_bp
from .auth import auth_bp
from .complaints import complaints_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})


@main_bp.route("/analytics", methods=["GET"])
def analytics():
    return jsonify(dashboard_summary())


@main_bp.route("/notifications/<int:user_id>", methods=["GET"])
def notifications(user_id):
    return jsonify([n.to_payload() for n in list_notifications(user_id)])


@main_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
def read_notification(notification_id):
    mark_notification_read(notification_id)
    return jsonify({"success": True})


@main_bp.route("/members", methods=["GET"])
def members():
    return jsonify([member.member_payload() for member in list_authorities()])


__all__ = ["main_bp", "auth_bp", "complaints_bp", "ai_bp"]
