import logging

from .base import OtpSender

logger = logging.getLogger(__name__)


class LoggingSender(OtpSender):
    """Development sender: writes the code to the log instead of sending it."""

    def __init__(self, channel: str):
        self.name = f"log-{channel}"
        self.channel = channel

    def send(self, target: str, code: str) -> None:
        logger.info(f"[OTP] {self.channel} code for {target}: {code} (delivery disabled)")
