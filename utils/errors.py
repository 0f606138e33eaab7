"""Error taxonomy shared by services and the JSON API."""
from typing import Any, Dict, Optional


class ApiError(Exception):
    """Base class for failures that map onto a structured JSON error body."""

    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: Optional[str] = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        payload.update({key: value for key, value in self.details.items() if value is not None})
        return payload


class ValidationFailure(ApiError):
    status_code = 400
    default_message = "Invalid request"


class InvalidTransition(ValidationFailure):
    status_code = 409
    default_message = "Status transition not allowed"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class ConflictFailure(ApiError):
    status_code = 400
    default_message = "Email already exists"


class AuthenticationFailure(ApiError):
    status_code = 401
    default_message = "Invalid credentials"


class StorageFailure(ApiError):
    status_code = 500
    default_message = "Unable to save changes"


class CleanupNotVerified(ApiError):
    """The cleanup gate refused to mark a complaint resolved."""

    status_code = 422
    default_message = "Cleanup could not be verified"
