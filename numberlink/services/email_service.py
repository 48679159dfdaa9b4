# numberlink/services/email_service.py
"""
Outbound mail. MailTransport is the interface the reset flow depends on;
SmtpMailTransport delivers over STARTTLS with the SMTP_* settings.
Failures surface as ExternalServiceError so callers decide whether to swallow them.
"""

import smtplib
import socket
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from numberlink.config import settings
from numberlink.errors import ExternalServiceError
from numberlink.utils.logger import get_logger

logger = get_logger(__name__)


class MailTransport(ABC):
    @abstractmethod
    def send(self, to_email: str, subject: str, html_body: str) -> None:
        ...


class SmtpMailTransport(MailTransport):
    def __init__(self, server: str, port: int, user: Optional[str], password: Optional[str],
                 sender: str, timeout: float = 10.0):
        self.server = server
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def send(self, to_email: str, subject: str, html_body: str) -> None:
        if not self.user or not self.password:
            raise ExternalServiceError("Mail transport is not configured",
                                       kind="unavailable", service="smtp")

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{settings.APP_NAME} <{self.sender}>"
        message["To"] = to_email
        message.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                smtp.login(self.user, self.password)
                smtp.sendmail(self.sender, [to_email], message.as_string())
        except socket.timeout:
            raise ExternalServiceError("Mail server timed out", kind="timeout", service="smtp")
        except smtplib.SMTPAuthenticationError:
            raise ExternalServiceError("Mail server rejected credentials", kind="rejected", service="smtp")
        except (smtplib.SMTPException, OSError) as e:
            raise ExternalServiceError(f"Mail delivery failed: {e}", kind="unreachable", service="smtp")

        logger.info(f"Mail sent: subject='{subject}'")


def build_mail_transport() -> MailTransport:
    return SmtpMailTransport(
        settings.SMTP_SERVER,
        settings.SMTP_PORT,
        settings.SMTP_USER,
        settings.SMTP_PASSWORD,
        settings.MAIL_FROM,
    )


def render_password_reset_email(name: str, reset_url: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family: 'Malgun Gothic', sans-serif; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: #667eea;">{settings.APP_NAME}</h2>
    <p>Hello {name},</p>
    <p>We received a request to reset your password. Click the button below to choose a new one.</p>
    <p style="text-align: center; margin: 30px 0;">
      <a href="{reset_url}"
         style="background: #667eea; color: #fff; padding: 14px 28px; text-decoration: none; border-radius: 6px;">
        Reset password
      </a>
    </p>
    <p style="font-size: 13px; color: #666;">
      This link expires in {settings.PASSWORD_RESET_TTL_HOURS} hours and can be used once.
      If you did not request a reset, you can ignore this email.
    </p>
    <p style="font-size: 12px; color: #999; word-break: break-all;">{reset_url}</p>
  </div>
</body>
</html>
"""
