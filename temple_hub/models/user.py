"""
User models for authentication and account management.
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field

from temple_hub.models.base import CamelModel, VerbatimStr


class Role(str, Enum):
    ADMIN = "admin"
    VOLUNTEER = "volunteer"
    PARTICIPANT = "participant"
    GUEST = "guest"
    OUTREACH = "outreach"


# Roles that can be assigned through a role change; "outreach" only
# describes contacts that are not accounts yet.
ASSIGNABLE_ROLES = (Role.ADMIN, Role.VOLUNTEER, Role.PARTICIPANT, Role.GUEST)

STAFF_ROLES = (Role.ADMIN, Role.VOLUNTEER)


class AccountStatus(str, Enum):
    """
    Explicit lifecycle state of an account.

    PENDING     placeholder without credentials (created by staff or from an
                outreach contact); can only be claimed through signup + OTP
    REGISTERED  credentials set, waiting for the signup OTP
    ACTIVE      verified; the only state that can log in
    """
    PENDING = "pending"
    REGISTERED = "registered"
    ACTIVE = "active"


class ProfileFields(CamelModel):
    """Optional devotee profile attributes shared by signup and staff forms."""
    profession: Optional[str] = None
    home_town: Optional[str] = None
    connected_to_temple: Optional[str] = None
    joined_at: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[str] = None
    address: Optional[str] = None
    how_did_you_hear_about_us: Optional[str] = None
    number_of_rounds: Optional[int] = Field(None, ge=0)
    level: Optional[int] = None
    grade: Optional[str] = None
    marital_status: Optional[str] = None


class SignupRequest(ProfileFields):
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=254)
    password: Optional[VerbatimStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    handled_by: Optional[str] = None
    registered_by: Optional[str] = None


class VerifySignupRequest(CamelModel):
    user_id: Optional[str] = None
    target: Optional[str] = None
    code: Optional[VerbatimStr] = None


class ResendOtpRequest(CamelModel):
    user_id: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[VerbatimStr] = None


class ForgotPasswordSendRequest(CamelModel):
    email: Optional[str] = None


class ForgotPasswordVerifyRequest(CamelModel):
    user_id: Optional[str] = None
    otp: Optional[VerbatimStr] = None
    channel: Optional[str] = "email"


class ResetPasswordRequest(CamelModel):
    token: Optional[VerbatimStr] = None
    new_password: Optional[VerbatimStr] = None


class StaffCreateUserRequest(ProfileFields):
    """Participant/volunteer record created by staff (no credentials)."""
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=254)
    phone: Optional[str] = Field(None, max_length=20)
    handled_by: Optional[str] = None
    registered_by: Optional[str] = None
    programs: Optional[List[str]] = None


class UserUpdateRequest(ProfileFields):
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=254)
    phone: Optional[str] = Field(None, max_length=20)
    role: Optional[Role] = None
    registered_by: Optional[str] = None
    handled_by: Optional[str] = None
    participants_under: Optional[int] = None
    programs: Optional[List[str]] = None


# Document fields never returned to clients
PRIVATE_USER_FIELDS = ("password", "pendingPassword")


def public_user(user: dict) -> dict:
    """Strip credential material from a stored user document."""
    return {key: value for key, value in user.items() if key not in PRIVATE_USER_FIELDS}
