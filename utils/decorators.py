"""Request validation decorators for the JSON API."""
from functools import wraps

from flask import current_app, g, request

from utils.errors import ValidationFailure


def json_body_required(*fields):
    """Require a JSON object body carrying every named field; exposes it as ``g.json_body``."""

    def decorator(view_func):
        @wraps(view_func)
        def wrapped(*args, **kwargs):
            payload = request.get_json(silent=True)
            if not isinstance(payload, dict):
                current_app.logger.warning("Rejected non-JSON body", extra={"path": request.path})
                raise ValidationFailure("Request body must be a JSON object")

            missing = [name for name in fields if payload.get(name) in (None, "")]
            if missing:
                raise ValidationFailure(f"Missing required field(s): {', '.join(missing)}")

            g.json_body = payload
            return view_func(*args, **kwargs)

        return wrapped

    return decorator
