import logging
import smtplib
from email.mime.text import MIMEText
from typing import Optional

from temple_hub.core.errors import OtpDeliveryError
from .base import OtpSender

logger = logging.getLogger(__name__)

EMAIL_TEMPLATE = """
<div style="font-family: Arial; padding: 10px;">
  <h2>Your OTP Verification Code</h2>
  <p style="font-size: 20px; font-weight: bold">{code}</p>
  <p>This OTP will expire in {minutes} minutes. Do not share it with anyone.</p>
</div>
"""


class SmtpEmailSender(OtpSender):
    """Sends the code as an HTML email over SMTP with STARTTLS."""

    name = "smtp"

    def __init__(self, host: Optional[str], port: int, user: Optional[str],
                 password: Optional[str], from_address: str, expiry_minutes: int):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.expiry_minutes = expiry_minutes

    def send(self, target: str, code: str) -> None:
        if not self.host:
            raise OtpDeliveryError("Email delivery is not configured", details="SMTP_HOST is not set")

        msg = MIMEText(EMAIL_TEMPLATE.format(code=code, minutes=self.expiry_minutes), "html")
        msg["Subject"] = "Your OTP Verification Code"
        msg["From"] = self.from_address
        msg["To"] = target

        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery failed for {target}: {e}")
            raise OtpDeliveryError("Failed to send email verification code", details=str(e)) from e

        logger.info(f"OTP email sent to {target}")
