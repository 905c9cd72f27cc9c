"""
Account Service - signup, OTP activation, login and password reset.

Account states (``status`` field):

    pending     placeholder without credentials, created by staff or from an
                outreach contact; a signup with its email/phone claims it
    registered  credentials set, waiting for the signup OTP
    active      OTP verified; the only state that can log in

Signup decision table, evaluated in order:

    1. email matches an account with a password   -> AccountExists
    2. email matches a placeholder                -> OTP to email
    3. phone matches an account with a password   -> PhoneAlreadyRegistered
    4. phone matches a placeholder                -> OTP to phone; the
                                                     placeholder takes the
                                                     signup email, or is
                                                     refused if it has another
    5. no match                                   -> new guest account,
                                                     OTP to phone if given,
                                                     else to email

In branches 2 and 4 the submitted password is kept as ``pendingPassword``
and only becomes the account password once the OTP is verified.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging

from firebase_admin import firestore

from temple_hub.core.errors import (
    AccountExists,
    AuthenticationFailed,
    InvalidOrExpiredCode,
    NotFound,
    PermissionDenied,
    PhoneAlreadyRegistered,
    ValidationFailed,
)
from temple_hub.core.security import (
    PASSWORD_RESET_PURPOSE,
    create_reset_token,
    create_session_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from temple_hub.models.otp import OtpChannel, OtpPurpose
from temple_hub.models.user import AccountStatus, Role, SignupRequest, public_user
from temple_hub.services.otp_service import OtpService, get_otp_service
from temple_hub.services.user_service import (
    UserService,
    get_user_service,
    is_active,
    normalize_email,
    normalize_phone,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

ActivationHook = Callable[[Dict], None]


@dataclass(frozen=True)
class SignupOutcome:
    user_id: str
    target: OtpChannel
    created: bool
    message: str

    def to_dict(self) -> Dict:
        return {
            "message": self.message,
            "next": "verify-otp",
            "target": self.target.value,
            "userId": self.user_id,
        }


def has_credentials(user: Dict) -> bool:
    return bool(user.get("password"))


def log_activation(user: Dict) -> None:
    logger.info(f"Account activated: {user['id']} ({user.get('email') or user.get('phone')})")


class AccountService:
    """
    Account lifecycle over the users collection.

    ``on_activated`` hooks run once per account, on the transition to
    ``active`` after a successful signup verification.
    """

    def __init__(self, users: Optional[UserService] = None, otp: Optional[OtpService] = None,
                 on_activated: Optional[List[ActivationHook]] = None):
        self.users = users or get_user_service()
        self.otp = otp or get_otp_service()
        self.on_activated = list(on_activated) if on_activated is not None else [log_activation]

    # ------------------------------------------------------------------
    # Signup
    # ------------------------------------------------------------------

    def signup(self, request: SignupRequest) -> SignupOutcome:
        if not request.name or not request.email or not request.password:
            raise ValidationFailed("Name, email and password are required")
        if len(request.password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        email = normalize_email(request.email)
        phone = normalize_phone(request.phone)

        by_email = self.users.get_user_by_email(email)
        if by_email:
            if has_credentials(by_email):
                if not is_active(by_email):
                    raise AccountExists(details="Account is not verified yet. Request a new code to verify it.")
                raise AccountExists()
            return self._claim_placeholder(by_email, request.password, OtpChannel.EMAIL, email)

        by_phone = self.users.get_user_by_phone(phone)
        if by_phone:
            if has_credentials(by_phone):
                raise PhoneAlreadyRegistered()
            # An email already on file is never replaced by a signup
            if by_phone.get("email"):
                raise ValidationFailed(
                    "This phone number is linked to a different email. Sign up with that email instead."
                )
            return self._claim_placeholder(by_phone, request.password, OtpChannel.PHONE, phone, {"email": email})

        return self._register(request, email, phone)

    def _claim_placeholder(self, user: Dict, password: str, channel: OtpChannel, target: str,
                           extra: Optional[Dict] = None) -> SignupOutcome:
        self.users.update_fields(user["id"], {
            **(extra or {}),
            "pendingPassword": hash_password(password),
            "verificationChannel": channel.value,
        })
        self.otp.issue(target, channel, OtpPurpose.SIGNUP)
        logger.info(f"Signup claims placeholder {user['id']}, OTP sent via {channel.value}")
        return SignupOutcome(
            user_id=user["id"],
            target=channel,
            created=False,
            message="Account found. Verify the OTP to activate it.",
        )

    def _register(self, request: SignupRequest, email: str, phone: Optional[str]) -> SignupOutcome:
        channel = OtpChannel.PHONE if phone else OtpChannel.EMAIL
        profile = request.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude={"name", "email", "password", "phone"},
        )
        user = self.users.create_account({
            **profile,
            "name": request.name,
            "email": email,
            "phone": phone,
            "password": hash_password(request.password),
            "role": Role.GUEST.value,
            "status": AccountStatus.REGISTERED.value,
            "verificationChannel": channel.value,
        })
        self.otp.issue(phone if channel == OtpChannel.PHONE else email, channel, OtpPurpose.SIGNUP)
        return SignupOutcome(
            user_id=user["id"],
            target=channel,
            created=True,
            message="Signup successful. Verify the OTP to activate your account.",
        )

    def _channel_for_target(self, user: Dict, target: Optional[str]) -> Tuple[OtpChannel, str]:
        # Clients may echo the channel name from the signup response
        if target in (OtpChannel.EMAIL.value, OtpChannel.PHONE.value):
            channel = OtpChannel(target)
            value = user.get("email") if channel == OtpChannel.EMAIL else user.get("phone")
            if not value:
                raise ValidationFailed(f"Account has no {channel.value}")
            return channel, value

        email = normalize_email(target)
        if email and email == user.get("email"):
            return OtpChannel.EMAIL, email
        phone = normalize_phone(target)
        if phone and phone == user.get("phone"):
            return OtpChannel.PHONE, phone
        raise ValidationFailed("Target does not match this account")

    def verify_signup(self, user_id: Optional[str], target: Optional[str], code: Optional[str]) -> Tuple[Dict, str]:
        """
        Activate an account with its signup OTP.

        Returns:
            (public user, session token)
        """
        if not user_id or not target or not code:
            raise ValidationFailed("userId, target and code are required")

        user = self.users.get_user(user_id)
        if user is None:
            raise NotFound("User not found")

        channel, normalized_target = self._channel_for_target(user, target)
        if not has_credentials(user) and not user.get("pendingPassword"):
            raise ValidationFailed("No password set for this account. Please sign up again.")

        result = self.otp.verify(normalized_target, code, channel, OtpPurpose.SIGNUP)
        if not result.success:
            raise InvalidOrExpiredCode(details=result.reason)

        was_active = is_active(user)
        update = {
            "status": AccountStatus.ACTIVE.value,
            "isActive": True,
            "verifiedAt": firestore.SERVER_TIMESTAMP,
        }
        if user.get("pendingPassword"):
            update["password"] = user["pendingPassword"]
            update["pendingPassword"] = firestore.DELETE_FIELD
        user = self.users.update_fields(user_id, update)

        if not was_active:
            for hook in self.on_activated:
                hook(user)

        token = create_session_token(user["id"], user.get("role") or Role.GUEST.value, user.get("name"))
        return public_user(user), token

    def resend_signup_otp(self, user_id: Optional[str]) -> OtpChannel:
        if not user_id:
            raise ValidationFailed("userId is required")
        user = self.users.require_user(user_id)
        if is_active(user):
            raise ValidationFailed("Account is already verified")
        if not has_credentials(user) and not user.get("pendingPassword"):
            raise ValidationFailed("No signup in progress for this account")

        stored = user.get("verificationChannel")
        if stored:
            channel = OtpChannel(stored)
        else:
            channel = OtpChannel.PHONE if user.get("phone") else OtpChannel.EMAIL
        target = user.get("phone") if channel == OtpChannel.PHONE else user.get("email")
        if not target:
            raise ValidationFailed(f"Account has no {channel.value} to send a code to")

        self.otp.issue(target, channel, OtpPurpose.SIGNUP)
        return channel

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def login(self, email: Optional[str], password: Optional[str]) -> Tuple[Dict, str]:
        if not email or not password:
            raise ValidationFailed("Email and password are required")

        user = self.users.get_user_by_email(email)
        if user is None or not verify_password(password, user.get("password")):
            raise AuthenticationFailed("Invalid email or password")
        if not is_active(user):
            raise PermissionDenied("Please verify your account before logging in")

        token = create_session_token(user["id"], user.get("role") or Role.GUEST.value, user.get("name"))
        logger.info(f"User logged in: {user['id']}")
        return public_user(user), token

    def me(self, user_id: str) -> Dict:
        user = self.users.get_user(user_id)
        if user is None:
            raise AuthenticationFailed("User no longer exists")
        return public_user(user)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def send_reset_otp(self, email: Optional[str]) -> str:
        if not email:
            raise ValidationFailed("Email is required")
        user = self.users.get_user_by_email(email)
        if user is None:
            raise NotFound("No account found with this email")

        self.otp.issue(user["email"], OtpChannel.EMAIL, OtpPurpose.PASSWORD_RESET)
        return user["id"]

    def verify_reset_otp(self, user_id: Optional[str], code: Optional[str], channel: Optional[str] = "email") -> str:
        """Check a password-reset OTP and return a short-lived reset token."""
        if not user_id or not code:
            raise ValidationFailed("User ID and OTP are required")
        try:
            channel = OtpChannel(channel or OtpChannel.EMAIL.value)
        except ValueError:
            raise ValidationFailed("Invalid channel")

        user = self.users.require_user(user_id)
        target = user.get("email") if channel == OtpChannel.EMAIL else user.get("phone")
        if not target:
            raise ValidationFailed(f"Account has no {channel.value}")

        result = self.otp.verify(target, code, channel, OtpPurpose.PASSWORD_RESET)
        if not result.success:
            raise InvalidOrExpiredCode(details=result.reason)

        return create_reset_token(user_id)

    def reset_password(self, token: Optional[str], new_password: Optional[str]) -> None:
        if not token or not new_password:
            raise ValidationFailed("Token and new password are required")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        payload = decode_access_token(token)
        if not payload:
            raise ValidationFailed("Invalid or expired reset token")
        if payload.get("purpose") != PASSWORD_RESET_PURPOSE:
            raise ValidationFailed("Invalid reset token")

        user = self.users.require_user(payload.get("userId"))
        update = {
            "password": hash_password(new_password),
            "pendingPassword": firestore.DELETE_FIELD,
        }
        if not is_active(user):
            # Setting a password does not verify the account
            update["status"] = AccountStatus.REGISTERED.value
            update["isActive"] = False
        self.users.update_fields(user["id"], update)
        logger.info(f"Password reset for user {user['id']}")


_account_service = None


def get_account_service() -> AccountService:
    """Get or create AccountService singleton instance."""
    global _account_service
    if _account_service is None:
        _account_service = AccountService()
    return _account_service
