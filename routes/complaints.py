"""Complaint intake, triage, assignment, and verified resolution endpoints."""
from flask import Blueprint, g, jsonify

from models import UserRole
from utils.ai_vision import get_gateway
from utils.complaint_lifecycle import (
    assign_complaint,
    create_complaint,
    get_complaint,
    list_complaints,
    parse_id,
    resolve_with_verification,
    update_complaint,
)
from utils.decorators import json_body_required

complaints_bp = Blueprint("complaints", __name__)


@complaints_bp.route("", methods=["POST"], strict_slashes=False)
@json_body_required("citizen_id", "type", "photo_before")
def submit_complaint():
    body = g.json_body
    complaint = create_complaint(
        citizen_id=body.get("citizen_id"),
        complaint_type=body.get("type"),
        photo_before=body.get("photo_before"),
        category=body.get("category"),
        latitude=body.get("latitude"),
        longitude=body.get("longitude"),
        address=body.get("address"),
        ai_analysis=body.get("ai_analysis"),
        urgency=body.get("urgency"),
    )
    return jsonify({"id": complaint.id}), 201


@complaints_bp.route("", methods=["GET"], strict_slashes=False)
def list_all_complaints():
    args = g.sanitized_args
    citizen_id = None
    if (args.get("role") or "").lower() == UserRole.CITIZEN.value:
        citizen_id = parse_id(args.get("user_id"), "user_id")
    complaints = list_complaints(citizen_id=citizen_id, status=args.get("status") or None)
    return jsonify([complaint.to_payload() for complaint in complaints])


@complaints_bp.route("/<int:complaint_id>", methods=["GET"])
def view_complaint(complaint_id):
    return jsonify(get_complaint(complaint_id).to_payload())


@complaints_bp.route("/<int:complaint_id>", methods=["PATCH"])
@json_body_required()
def patch_complaint(complaint_id):
    body = g.json_body
    update_complaint(
        complaint_id,
        status=body.get("status"),
        photo_after=body.get("photo_after"),
        cleanup_verification=body.get("ai_cleanup_verification"),
    )
    return jsonify({"success": True})


@complaints_bp.route("/<int:complaint_id>/assign", methods=["POST"])
@json_body_required("assigned_to", "assigned_name")
def assign(complaint_id):
    body = g.json_body
    assign_complaint(complaint_id, body.get("assigned_to"), body.get("assigned_name"))
    return jsonify({"success": True})


@complaints_bp.route("/<int:complaint_id>/resolve", methods=["POST"])
@json_body_required("photo_after")
def resolve(complaint_id):
    complaint, verification = resolve_with_verification(get_gateway(), complaint_id, g.json_body.get("photo_after"))
    return jsonify({"success": True, "verification": verification, "complaint": complaint.to_payload()})
