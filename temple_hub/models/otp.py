"""
One-time code models.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OtpChannel(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class OtpPurpose(str, Enum):
    SIGNUP = "signup"
    PASSWORD_RESET = "password-reset"


@dataclass(frozen=True)
class OtpVerification:
    """Outcome of checking a submitted code."""
    success: bool
    reason: Optional[str] = None
    otp_id: Optional[str] = None

    INVALID_OR_EXPIRED = "invalid_or_expired"
    TOO_MANY_ATTEMPTS = "too_many_attempts"

    @classmethod
    def ok(cls, otp_id: str) -> "OtpVerification":
        return cls(success=True, otp_id=otp_id)

    @classmethod
    def failed(cls, reason: str = INVALID_OR_EXPIRED) -> "OtpVerification":
        return cls(success=False, reason=reason)
