"""
Domain errors.

Services raise these; the handlers registered in main.py turn them into the
``{"error": ..., "details": ...}`` envelope with the matching HTTP status.
"""

from typing import Optional


class TempleHubError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationFailed(TempleHubError):
    status_code = 400
    message = "Invalid request"


class InvalidOrExpiredCode(ValidationFailed):
    message = "Invalid or expired OTP"


class AuthenticationFailed(TempleHubError):
    status_code = 401
    message = "Unauthorized"


class PermissionDenied(TempleHubError):
    status_code = 403
    message = "Forbidden"


class NotFound(TempleHubError):
    status_code = 404
    message = "Not found"


class Conflict(TempleHubError):
    status_code = 409
    message = "Conflict"


class AccountExists(Conflict):
    message = "Account already exists. Please login instead."


class PhoneAlreadyRegistered(Conflict):
    message = "Phone number already registered. Please login."


class OtpDeliveryError(TempleHubError):
    """The code was stored but the SMS/email provider rejected or failed the send."""

    status_code = 502
    message = "Failed to deliver verification code"


class DuplicateFollowUp(Conflict):
    message = "Follow-up already exists for this contact and program date"
