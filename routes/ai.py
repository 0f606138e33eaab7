"""AI-assisted report triage, cleanup checks, and the citizen assistant."""
from flask import Blueprint, current_app, g, jsonify

from utils.ai_vision import ANALYSIS_UNAVAILABLE_WARNING, AIVisionError, classify_report_image, get_gateway
from utils.complaint_lifecycle import get_complaint, parse_complaint_type
from utils.decorators import json_body_required
from utils.errors import ValidationFailure

ai_bp = Blueprint("ai", __name__)

ASSISTANT_FALLBACK_REPLY = "I'm having some trouble connecting right now. Please try again later."


@ai_bp.route("/analyze", methods=["POST"])
@json_body_required("image")
def analyze_image():
    body = g.json_body
    complaint_type = parse_complaint_type(body.get("type") or "garbage")
    return jsonify(classify_report_image(get_gateway(), complaint_type.value, body["image"]))


@ai_bp.route("/verify-cleanup", methods=["POST"])
@json_body_required("after_image")
def verify_cleanup():
    body = g.json_body
    before_image = body.get("before_image")
    if not before_image and body.get("complaint_id") is not None:
        before_image = get_complaint(body["complaint_id"]).photo_before
    if not before_image:
        raise ValidationFailure("before_image or complaint_id is required")

    try:
        verification = get_gateway().verify_cleanup(before_image, body["after_image"])
    except AIVisionError as exc:
        current_app.logger.warning("Cleanup verification unavailable", extra={"error": str(exc)})
        return jsonify({"available": False, "verification": None, "warning": ANALYSIS_UNAVAILABLE_WARNING})
    return jsonify({"available": True, "verification": verification})


@ai_bp.route("/chat", methods=["POST"])
@json_body_required("message")
def chat():
    body = g.json_body
    history = body.get("history") or []
    if not isinstance(history, list):
        raise ValidationFailure("history must be a list of turns")

    try:
        reply = get_gateway().converse(str(body["message"]), history)
    except AIVisionError as exc:
        current_app.logger.warning("Assistant unavailable", extra={"error": str(exc)})
        return jsonify({"available": False, "reply": ASSISTANT_FALLBACK_REPLY, "warning": ANALYSIS_UNAVAILABLE_WARNING})
    return jsonify({"available": True, "reply": reply})
