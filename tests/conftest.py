"""
Pytest configuration for mailcycle tests

Provides in-memory fakes for the mail source and sender, plus a factory that
wires a CycleController around them.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from mailcycle.cycle.composer import Composer
from mailcycle.cycle.controller import CycleController
from mailcycle.cycle.gate import CompletionGate
from mailcycle.cycle.tracker import ArrivalTracker
from mailcycle.delivery.models import ComposedMessage
from mailcycle.gmail.models import MailMessage, MailQuery, MessagePart
from mailcycle.observability.telemetry import reset_telemetry
from mailcycle.storage.models import Category, CategoryRole
from mailcycle.storage.state_store import InMemoryStateStore

BVG_ADDRESS = "bvg@example.com"
CHARGES_ADDRESS = "bvgcharges@example.com"
TARGET = "hr@example.com"
SENDER = "me@example.com"

# 2024-03-05 07:00 UTC, the daily schedule slot
MARCH_5 = datetime(2024, 3, 5, 7, 0, tzinfo=UTC)

PDF_BYTES = b"%PDF-1.4\n\x00\x01\x02\xff binary charges statement \x80\x81"


class FakeMailSource:
    """Mail source backed by dicts; records every call."""

    def __init__(self) -> None:
        self.by_address: dict[str, list[str]] = {}
        self.messages: dict[str, MailMessage] = {}
        self.attachments: dict[tuple[str, str], bytes] = {}
        self.queries: list[MailQuery] = []
        self.fetched: list[str] = []
        self.fail_with: Exception | None = None

    def add(self, address: str, message: MailMessage) -> None:
        self.by_address.setdefault(address, []).append(message.message_id)
        self.messages[message.message_id] = message

    def search(self, query: MailQuery) -> list[str]:
        self.queries.append(query)
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.by_address.get(query.address, []))

    def fetch_message(self, message_id: str) -> MailMessage:
        self.fetched.append(message_id)
        if self.fail_with is not None:
            raise self.fail_with
        return self.messages[message_id]

    def fetch_attachment(self, message_id: str, attachment_id: str) -> bytes:
        return self.attachments[(message_id, attachment_id)]

    @property
    def call_count(self) -> int:
        return len(self.queries) + len(self.fetched)


class FakeSender:
    """Sender that records messages, or raises `fail_with`."""

    def __init__(self) -> None:
        self.sent: list[ComposedMessage] = []
        self.fail_with: Exception | None = None
        self.before_send: Callable[[], None] | None = None

    def send(self, message: ComposedMessage) -> str | None:
        if self.before_send is not None:
            self.before_send()
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)
        return f"sent-{len(self.sent)}"


def build_bvg_message(message_id: str = "bvg-1", text: str = "Ticket BVG-2024-03 confirmed.") -> MailMessage:
    return MailMessage(
        message_id=message_id,
        subject="Your BVG ticket",
        parts=[MessagePart(mime_type="text/plain", data=text.encode("utf-8"), charset="utf-8")],
    )


def build_charges_message(
    message_id: str = "charges-1",
    data: bytes | None = PDF_BYTES,
    filename: str = "statement.pdf",
    attachment_id: str | None = None,
) -> MailMessage:
    return MailMessage(
        message_id=message_id,
        subject="Your charges",
        parts=[
            MessagePart(mime_type="text/plain", data=b"See attached."),
            MessagePart(
                mime_type="application/pdf",
                filename=filename,
                data=data,
                attachment_id=attachment_id,
                size=len(data or b""),
            ),
        ],
    )


@pytest.fixture(autouse=True)
def _reset_telemetry():
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
def categories() -> tuple[Category, Category]:
    return (
        Category(name="BVG", address=BVG_ADDRESS, role=CategoryRole.TEXT),
        Category(name="Charges", address=CHARGES_ADDRESS, role=CategoryRole.ATTACHMENT),
    )


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def source() -> FakeMailSource:
    return FakeMailSource()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: MARCH_5


@pytest.fixture
def gate(store, clock) -> CompletionGate:
    return CompletionGate(store, clock=clock)


@pytest.fixture
def tracker(store, source, categories, clock) -> ArrivalTracker:
    return ArrivalTracker(store, source, categories, clock=clock)


@pytest.fixture
def composer(store, source, sender, gate, categories, clock) -> Composer:
    return Composer(
        store=store,
        source=source,
        sender=sender,
        gate=gate,
        text_category=categories[0],
        attachment_category=categories[1],
        to_address=TARGET,
        from_address=SENDER,
        clock=clock,
    )


@pytest.fixture
def make_controller(gate, store, source, categories, composer, clock) -> Callable[..., CycleController]:
    def _make(send_timeout_seconds: float = 5.0, timezone: str = "UTC") -> CycleController:
        return CycleController(
            gate=gate,
            tracker=ArrivalTracker(store, source, categories, timezone=timezone, clock=clock),
            composer=composer,
            timezone=timezone,
            send_timeout_seconds=send_timeout_seconds,
            clock=clock,
        )

    return _make


@pytest.fixture
def controller(make_controller) -> CycleController:
    return make_controller()


@pytest.fixture
def bvg_message() -> Callable[..., MailMessage]:
    return build_bvg_message


@pytest.fixture
def charges_message() -> Callable[..., MailMessage]:
    return build_charges_message


@pytest.fixture
def pdf_bytes() -> bytes:
    return PDF_BYTES


@pytest.fixture
def now() -> datetime:
    return MARCH_5


@pytest.fixture
def seed_bvg(source) -> Callable[..., MailMessage]:
    """Put a BVG confirmation in the inbox."""

    def _seed(**kwargs) -> MailMessage:
        message = build_bvg_message(**kwargs)
        source.add(BVG_ADDRESS, message)
        return message

    return _seed


@pytest.fixture
def seed_charges(source) -> Callable[..., MailMessage]:
    """Put a charges statement in the inbox."""

    def _seed(**kwargs) -> MailMessage:
        message = build_charges_message(**kwargs)
        source.add(CHARGES_ADDRESS, message)
        return message

    return _seed
