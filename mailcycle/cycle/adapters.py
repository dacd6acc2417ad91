"""Interfaces the cycle consumes from its I/O collaborators.

StateStore lives in mailcycle.storage.state_store; the mail-side contracts
live here. Gmail and SMTP implementations satisfy them structurally.
"""

from __future__ import annotations

from typing import Protocol

from mailcycle.delivery.models import ComposedMessage
from mailcycle.gmail.models import MailMessage, MailQuery


class MailSource(Protocol):
    def search(self, query: MailQuery) -> list[str]:
        """Matching message ids in provider order; empty when nothing matches."""
        ...

    def fetch_message(self, message_id: str) -> MailMessage: ...

    def fetch_attachment(self, message_id: str, attachment_id: str) -> bytes: ...


class MailSender(Protocol):
    def send(self, message: ComposedMessage) -> str | None:
        """Dispatch the message; raise on failure."""
        ...
