"""Outbound email over SMTP.

Messages are plain text. When SMTP is not configured the message is logged
instead of sent and ``send`` returns False, so callers can tell the mail did
not go out (the password-recovery flow relies on this in development).
"""
import smtplib
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Optional

from viticult.core.config import Settings, settings as default_settings
from viticult.core.logging import get_logger

logger = get_logger(__name__)


class EmailService:
    """Thin SMTP sender.

    Example:
        >>> mailer = EmailService()
        >>> mailer.send("client@example.com", "Thank you", "We will be in touch.")
        True
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    @property
    def configured(self) -> bool:
        return self.config.smtp_configured

    def send(self, to: str, subject: str, body: str, reply_to: Optional[str] = None) -> bool:
        """Send a plain-text email.

        Args:
            to: Recipient address
            subject: Subject line
            body: Plain-text body
            reply_to: Optional Reply-To address

        Returns:
            True if the message was handed to the SMTP server
        """
        if not self.configured:
            logger.warning("SMTP not configured - logging email instead of sending")
            logger.info(f"EMAIL WOULD BE SENT: to={to} subject={subject}")
            return False

        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = f"Viticult Whisky <{self.config.email_from}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = make_msgid(domain="viticultwhisky.co.uk")
        if reply_to:
            msg["Reply-To"] = reply_to

        try:
            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=10) as server:
                if self.config.smtp_use_tls:
                    server.starttls()
                server.login(self.config.smtp_username, self.config.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}", extra={"error_type": type(e).__name__})
            return False

        logger.info(f"Email sent to {to}: {subject}")
        return True
