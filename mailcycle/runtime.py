"""
Runtime wiring: Settings in, CycleController out.

Adapters are constructed here and injected; nothing holds a module-level
client. Tests pass their own store/source/sender and skip Gmail entirely.
"""

from __future__ import annotations

from mailcycle.config import Settings
from mailcycle.cycle.adapters import MailSender, MailSource
from mailcycle.cycle.composer import Composer
from mailcycle.cycle.controller import CycleController
from mailcycle.cycle.gate import CompletionGate
from mailcycle.cycle.tracker import ArrivalTracker
from mailcycle.observability.logging import get_logger
from mailcycle.storage.state_store import SQLiteStateStore, StateStore

logger = get_logger(__name__)


def build_gmail_adapters(settings: Settings) -> tuple[MailSource, MailSender | None]:
    """Gmail mail source, plus a Gmail sender when that backend is selected."""
    from mailcycle.gmail.client import GmailMailSender, GmailMailSource
    from mailcycle.gmail.oauth import build_credentials, build_gmail_service

    credentials = build_credentials(
        settings.gmail_client_id,
        settings.gmail_client_secret,
        settings.gmail_refresh_token,
    )
    service = build_gmail_service(credentials, timeout_seconds=settings.http_timeout_seconds)
    source = GmailMailSource(service, max_results=settings.search_max_results)
    sender = GmailMailSender(service) if settings.sender_backend == "gmail" else None
    return source, sender


def build_sender(settings: Settings) -> MailSender:
    """Non-Gmail sender for the configured backend."""
    from mailcycle.delivery.smtp import SmtpMailSender

    return SmtpMailSender(timeout_seconds=settings.http_timeout_seconds)


def build_controller(
    settings: Settings,
    store: StateStore | None = None,
    source: MailSource | None = None,
    sender: MailSender | None = None,
) -> CycleController:
    """
    Assemble a CycleController from settings.

    Any adapter passed in is used as-is; the rest are built from settings.

    Raises:
        ConfigurationError: If the selected backend is missing credentials
    """
    if source is None or (sender is None and settings.sender_backend == "gmail"):
        gmail_source, gmail_sender = build_gmail_adapters(settings)
        source = source or gmail_source
        sender = sender or gmail_sender
    if sender is None:
        sender = build_sender(settings)
    if store is None:
        store = SQLiteStateStore(settings.db_path)

    gate = CompletionGate(store)
    tracker = ArrivalTracker(store, source, settings.categories, timezone=settings.timezone)
    composer = Composer(
        store=store,
        source=source,
        sender=sender,
        gate=gate,
        text_category=settings.text_category,
        attachment_category=settings.attachment_category,
        to_address=settings.target_email,
        from_address=settings.sender_email,
        subject_template=settings.subject_template,
        greeting=settings.greeting,
        signature=settings.signature,
    )

    logger.info(
        "Controller wired: backend=%s db=%s timezone=%s",
        settings.sender_backend,
        settings.db_path,
        settings.timezone,
    )
    return CycleController(
        gate=gate,
        tracker=tracker,
        composer=composer,
        timezone=settings.timezone,
        send_timeout_seconds=settings.send_timeout_seconds,
    )
