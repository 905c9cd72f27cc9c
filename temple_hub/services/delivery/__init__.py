"""
OTP delivery channels.

SMS codes go through the MSG91 OTP API, email codes through SMTP. With
OTP_DELIVERY_ENABLED=false both are replaced by a sender that only logs.
"""

from temple_hub.services.delivery.base import OtpSender
from temple_hub.services.delivery.dispatcher import OtpDispatcher, get_otp_dispatcher
from temple_hub.services.delivery.logging_sender import LoggingSender
from temple_hub.services.delivery.msg91_provider import Msg91SmsSender
from temple_hub.services.delivery.smtp_provider import SmtpEmailSender

__all__ = [
    "OtpSender",
    "OtpDispatcher",
    "LoggingSender",
    "Msg91SmsSender",
    "SmtpEmailSender",
    "get_otp_dispatcher",
]
