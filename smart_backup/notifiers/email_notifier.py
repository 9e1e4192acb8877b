"""Email notifications for backup events."""

import logging
import re
import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from typing import List

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


class EmailNotifier:
    """Sends backup notifications via SMTP."""

    def __init__(self, smtp_server: str = None, smtp_port: int = 587, smtp_user: str = None,
                 smtp_pass: str = None, from_address: str = None,
                 to_addresses: List[str] = None, use_tls: bool = True,
                 subject_prefix: str = "Smart Backup"):
        """Initialize email notifier.

        Args:
            smtp_server: SMTP server hostname.
            smtp_port: SMTP server port.
            smtp_user: SMTP username.
            smtp_pass: SMTP password.
            from_address: From email address.
            to_addresses: List of recipient email addresses.
            use_tls: Whether to use TLS encryption.
            subject_prefix: Text prepended to every subject line.
        """
        self.smtp_server = smtp_server
        self.smtp_port = int(smtp_port)
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.from_address = from_address
        self.to_addresses = to_addresses or []
        self.use_tls = use_tls
        self.subject_prefix = subject_prefix
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, email_config: dict) -> "EmailNotifier":
        """Create a notifier from the ``email`` settings section."""
        return cls(
            smtp_server=email_config.get('smtp_server'),
            smtp_port=email_config.get('smtp_port', 587),
            smtp_user=email_config.get('smtp_user'),
            smtp_pass=email_config.get('smtp_pass'),
            from_address=email_config.get('from_address'),
            to_addresses=email_config.get('to_addresses') or [],
            use_tls=email_config.get('use_tls', True),
        )

    def notify(self, title: str, body: str) -> bool:
        """Send a notification email.

        Args:
            title: Notification title, used as the subject.
            body: Plain text body.

        Returns:
            True if the email was sent.
        """
        if not self.to_addresses:
            self.logger.error("No recipient addresses configured")
            return False

        try:
            msg = self._create_message(f"[{self.subject_prefix}] {title}", body)
            self._send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error(f"Failed to send notification '{title}': {e}")
            return False

        self.logger.info(f"Notification '{title}' sent to {len(self.to_addresses)} recipients")
        return True

    def _create_message(self, subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, 'plain', 'utf-8')
        msg['Subject'] = subject
        msg['From'] = self.from_address
        msg['To'] = ', '.join(self.to_addresses)
        return msg

    def _send_message(self, msg: MIMEText) -> None:
        """Send email message via SMTP.

        Args:
            msg: Email message to send.
        """
        self.logger.debug(f"Connecting to SMTP server {self.smtp_server}:{self.smtp_port}")

        with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
                self.logger.debug("Started TLS encryption")

            if self.smtp_user and self.smtp_pass:
                server.login(self.smtp_user, self.smtp_pass)
                self.logger.debug(f"Authenticated as {self.smtp_user}")

            server.send_message(msg)

    def send_test_email(self) -> bool:
        """Send a test email to verify configuration."""
        body = f"""
This is a test email from Smart Backup.

Configuration:
- SMTP Server: {self.smtp_server}:{self.smtp_port}
- From: {self.from_address}
- Recipients: {', '.join(self.to_addresses)}
- TLS Enabled: {self.use_tls}

Generated at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}
        """.strip()

        return self.notify("Test Email", body)

    def validate_configuration(self) -> List[str]:
        """Validate email configuration.

        Returns:
            List of validation errors (empty if valid).
        """
        errors = []

        if not self.smtp_server:
            errors.append("SMTP server not configured")

        if not self.from_address:
            errors.append("From address not configured")

        if not self.to_addresses:
            errors.append("No recipient addresses configured")

        if not (1 <= self.smtp_port <= 65535):
            errors.append(f"Invalid SMTP port: {self.smtp_port}")

        if self.from_address and not EMAIL_PATTERN.match(self.from_address):
            errors.append(f"Invalid from address: {self.from_address}")

        for addr in self.to_addresses:
            if not EMAIL_PATTERN.match(addr):
                errors.append(f"Invalid recipient address: {addr}")

        return errors
