"""
Outbound message model.

ComposedMessage wraps the finished MIME tree plus the facts tests and logs
care about (period, recipient, attachment name). It is built once by the
composer and handed unchanged to whichever sender is configured.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.policy import SMTP


@dataclass(frozen=True)
class ComposedMessage:
    """A fully composed multipart/mixed notification for one period."""

    period: str
    to_address: str
    from_address: str
    subject: str
    attachment_filename: str
    attachment_mime_type: str
    mime: MIMEMultipart

    def as_bytes(self) -> bytes:
        """RFC 5322 bytes with CRLF line endings."""
        return self.mime.as_bytes(policy=SMTP)

    def as_gmail_raw(self) -> str:
        """base64url-encoded message, as users.messages.send expects in `raw`."""
        return base64.urlsafe_b64encode(self.as_bytes()).decode("ascii")
