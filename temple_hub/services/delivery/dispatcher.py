import logging
from typing import Dict, Optional

from temple_hub.core.settings import settings
from temple_hub.models.otp import OtpChannel
from .base import OtpSender
from .logging_sender import LoggingSender
from .msg91_provider import Msg91SmsSender
from .smtp_provider import SmtpEmailSender

logger = logging.getLogger(__name__)


class OtpDispatcher:
    """Routes a code to the sender registered for its channel."""

    def __init__(self, senders: Dict[OtpChannel, OtpSender]):
        self.senders = senders

    def dispatch(self, target: str, channel: OtpChannel, code: str) -> None:
        sender = self.senders[OtpChannel(channel)]
        logger.debug(f"Dispatching {channel.value} OTP to {target} via {sender.name}")
        sender.send(target, code)


_dispatcher: Optional[OtpDispatcher] = None


def get_otp_dispatcher() -> OtpDispatcher:
    """
    Get or create the OtpDispatcher singleton.

    Real providers are used only when OTP_DELIVERY_ENABLED is set.
    """
    global _dispatcher
    if _dispatcher is not None:
        return _dispatcher

    if settings.OTP_DELIVERY_ENABLED:
        senders = {
            OtpChannel.PHONE: Msg91SmsSender(
                settings.MSG91_AUTH_KEY, settings.MSG91_OTP_URL, settings.SMS_TIMEOUT_SECONDS
            ),
            OtpChannel.EMAIL: SmtpEmailSender(
                settings.SMTP_HOST,
                settings.SMTP_PORT,
                settings.SMTP_USER,
                settings.SMTP_PASSWORD,
                settings.SMTP_FROM,
                settings.OTP_EXPIRY_MINUTES,
            ),
        }
        logger.info("OTP delivery enabled: msg91 (sms), smtp (email)")
    else:
        senders = {
            OtpChannel.PHONE: LoggingSender("phone"),
            OtpChannel.EMAIL: LoggingSender("email"),
        }
        logger.info("OTP delivery disabled: codes are logged only")

    _dispatcher = OtpDispatcher(senders)
    return _dispatcher
