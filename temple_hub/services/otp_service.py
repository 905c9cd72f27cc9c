"""
OTP Service - Generate, store, deliver and verify one-time codes.
"""

from datetime import timedelta
from typing import Callable, Dict, Optional
import logging
import secrets

from temple_hub.config.firebase import get_db
from temple_hub.core.settings import settings
from temple_hub.models.otp import OtpChannel, OtpPurpose, OtpVerification
from temple_hub.services.delivery import OtpDispatcher, get_otp_dispatcher
from temple_hub.utils.firestore_helpers import snapshot_to_dict, to_datetime, utc_now, where_filter

logger = logging.getLogger(__name__)


class OtpService:
    """
    Service for one-time code issuance and verification.

    Codes are stored in the ``otps`` collection with an expiry time. Several
    codes may be outstanding for one target; verification only looks at the
    most recent unused, unexpired one for the same channel and purpose.
    """

    COLLECTION = "otps"
    CODE_LENGTH = 6

    def __init__(self, db=None, dispatcher: Optional[OtpDispatcher] = None,
                 clock: Optional[Callable] = None):
        self.db = db if db is not None else get_db()
        self.dispatcher = dispatcher or get_otp_dispatcher()
        self.clock = clock or utc_now
        self.expiry = timedelta(minutes=settings.OTP_EXPIRY_MINUTES)
        self.max_attempts = settings.OTP_MAX_ATTEMPTS

    def generate_code(self) -> str:
        """Random 6-digit code in 100000-999999."""
        return str(100000 + secrets.randbelow(900000))

    def issue(self, target: str, channel: OtpChannel, purpose: OtpPurpose) -> str:
        """
        Store a new code for ``target`` and send it over ``channel``.

        The record is written before delivery, so a failed send leaves a
        valid code behind and the user can ask for a resend.

        Raises:
            OtpDeliveryError: provider rejected or failed the send
        """
        channel = OtpChannel(channel)
        purpose = OtpPurpose(purpose)
        code = self.generate_code()
        now = self.clock()

        otp_ref = self.db.collection(self.COLLECTION).document()
        otp_ref.set({
            "target": target,
            "code": code,
            "channel": channel.value,
            "purpose": purpose.value,
            "attempts": 0,
            "used": False,
            "createdAt": now,
            "expiresAt": now + self.expiry,
        })
        logger.info(f"OTP {otp_ref.id} issued for {target} ({channel.value}/{purpose.value})")

        self.dispatcher.dispatch(target, channel, code)
        return code

    def verify(self, target: str, code: str, channel: OtpChannel, purpose: OtpPurpose) -> OtpVerification:
        """
        Check ``code`` against the latest live code for target/channel/purpose.

        A match consumes the record. A mismatch counts an attempt; once
        OTP_MAX_ATTEMPTS is reached the record is burned.
        """
        channel = OtpChannel(channel)
        purpose = OtpPurpose(purpose)

        candidate = self._latest_live_record(target, channel, purpose)
        if candidate is None:
            return OtpVerification.failed()

        otp_ref = self.db.collection(self.COLLECTION).document(candidate["id"])

        if isinstance(code, str) and len(code) == self.CODE_LENGTH and code == candidate.get("code"):
            otp_ref.update({"used": True, "usedAt": self.clock()})
            logger.info(f"OTP {candidate['id']} verified for {target}")
            return OtpVerification.ok(candidate["id"])

        attempts = int(candidate.get("attempts") or 0) + 1
        update: Dict = {"attempts": attempts}
        if attempts >= self.max_attempts:
            update["used"] = True
            logger.warning(f"OTP {candidate['id']} for {target} burned after {attempts} attempts")
        otp_ref.update(update)

        if attempts >= self.max_attempts:
            return OtpVerification.failed(OtpVerification.TOO_MANY_ATTEMPTS)
        return OtpVerification.failed()

    def _latest_live_record(self, target: str, channel: OtpChannel, purpose: OtpPurpose) -> Optional[Dict]:
        # Single equality filter; the rest is filtered here to avoid composite indexes
        query = where_filter(self.db.collection(self.COLLECTION), "target", "==", target)
        now = self.clock()

        latest = None
        for doc in query.stream():
            record = snapshot_to_dict(doc)
            if record is None:
                continue
            if record.get("channel") != channel.value or record.get("purpose") != purpose.value:
                continue
            if record.get("used"):
                continue
            expires_at = to_datetime(record.get("expiresAt"))
            if expires_at is None or expires_at <= now:
                continue
            created_at = to_datetime(record.get("createdAt")) or expires_at
            if latest is None or created_at > latest[0]:
                latest = (created_at, record)

        return latest[1] if latest else None


_otp_service: Optional[OtpService] = None


def get_otp_service() -> OtpService:
    """Get or create the OtpService singleton."""
    global _otp_service
    if _otp_service is None:
        _otp_service = OtpService()
    return _otp_service
