import logging
from typing import Optional

import requests

from temple_hub.core.errors import OtpDeliveryError
from .base import OtpSender

logger = logging.getLogger(__name__)


class Msg91SmsSender(OtpSender):
    """
    MSG91 OTP API sender.

    POSTs ``{"mobile": ..., "otp": ...}`` with the account auth key in the
    ``authkey`` header.
    """

    name = "msg91"

    def __init__(self, auth_key: Optional[str], url: str, timeout: float = 10.0):
        self.auth_key = auth_key
        self.url = url
        self.timeout = timeout

    def send(self, target: str, code: str) -> None:
        if not self.auth_key:
            raise OtpDeliveryError("SMS delivery is not configured", details="MSG91_AUTH_KEY is not set")

        try:
            resp = requests.post(
                self.url,
                json={"mobile": target, "otp": code},
                headers={"authkey": self.auth_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"MSG91 request failed for {target}: {e}")
            raise OtpDeliveryError("Failed to send SMS verification code", details=str(e)) from e

        if resp.status_code >= 400:
            logger.error(f"MSG91 rejected OTP for {target}: {resp.status_code} {resp.text}")
            raise OtpDeliveryError(
                "Failed to send SMS verification code",
                details=f"MSG91 responded with status {resp.status_code}",
            )

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("type") == "error":
            logger.error(f"MSG91 error response for {target}: {body}")
            raise OtpDeliveryError("Failed to send SMS verification code", details=str(body.get("message")))

        logger.info(f"MSG91 accepted OTP for {target}")
