"""
SMTP delivery for the combined notification.

Alternative to the Gmail API sender for deployments that relay through an
SMTP account (app password) instead of OAuth send scope.
"""

from __future__ import annotations

import os
import smtplib

from mailcycle.cycle.errors import ConfigurationError, TransientAdapterError
from mailcycle.delivery.models import ComposedMessage
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter, log_event, time_block

logger = get_logger(__name__)


class SmtpMailSender:
    """Handles STARTTLS SMTP delivery of a ComposedMessage"""

    def __init__(
        self,
        smtp_host: str | None = None,
        smtp_port: int | None = None,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize SMTP delivery

        Environment variables (if params not provided):
        - SMTP_HOST: SMTP server hostname (default: smtp.gmail.com)
        - SMTP_PORT: SMTP server port (default: 587)
        - SMTP_USER: SMTP username
        - SMTP_PASSWORD: SMTP password

        Raises:
            ConfigurationError: If user or password is missing
        """
        self.smtp_host = smtp_host or os.getenv("SMTP_HOST", "smtp.gmail.com")
        self.smtp_port = smtp_port or int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = smtp_user or os.getenv("SMTP_USER")
        self.smtp_password = smtp_password or os.getenv("SMTP_PASSWORD")
        self.timeout_seconds = timeout_seconds

        if not all([self.smtp_host, self.smtp_user, self.smtp_password]):
            raise ConfigurationError("SMTP not fully configured. Set SMTP_* environment variables.")

        logger.info(
            "SMTP delivery configured: %s@%s:%s",
            self.smtp_user,
            self.smtp_host,
            self.smtp_port,
        )

    def send(self, message: ComposedMessage) -> str | None:
        """
        Send the message over SMTP.

        Returns:
            None (SMTP does not hand back a provider id)

        Raises:
            TransientAdapterError: On any SMTP or socket failure
        """
        logger.info("Connecting to %s:%s", self.smtp_host, self.smtp_port)
        try:
            with time_block("smtp.send.latency"):
                with smtplib.SMTP(
                    self.smtp_host, self.smtp_port, timeout=self.timeout_seconds
                ) as server:
                    server.starttls()
                    server.login(self.smtp_user, self.smtp_password)
                    server.send_message(message.mime)
        except smtplib.SMTPResponseException as e:
            logger.error("SMTP server rejected message: %s %s", e.smtp_code, e.smtp_error)
            log_event("smtp.send.error", status=e.smtp_code)
            counter("smtp.send.errors")
            raise TransientAdapterError(f"smtp send failed: {e.smtp_code}", e.smtp_code) from e
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send failed: %s", e)
            log_event("smtp.send.error", error=type(e).__name__)
            counter("smtp.send.errors")
            raise TransientAdapterError(f"smtp send failed: {e}") from e

        logger.info("Notification for %s sent via SMTP", message.period)
        counter("smtp.sent.count")
        return None

