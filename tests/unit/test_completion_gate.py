"""Tests for CompletionGate"""

from __future__ import annotations

from datetime import UTC, datetime

from mailcycle.cycle.gate import CompletionGate
from mailcycle.storage.models import ProcessingStatus


def test_absent_record_is_pending(gate):
    assert gate.get_status("2024-03") == ProcessingStatus.PENDING
    assert gate.is_complete("2024-03") is False


def test_mark_complete(gate, store, now):
    gate.mark_complete("2024-03")

    assert gate.is_complete("2024-03") is True
    assert store.get_status("2024-03").last_updated == now


def test_mark_complete_is_idempotent(store):
    first = datetime(2024, 3, 5, tzinfo=UTC)
    later = datetime(2024, 3, 9, tzinfo=UTC)

    CompletionGate(store, clock=lambda: first).mark_complete("2024-03")
    CompletionGate(store, clock=lambda: later).mark_complete("2024-03")

    record = store.get_status("2024-03")
    assert record.status == ProcessingStatus.COMPLETE
    assert record.last_updated == first


def test_completion_is_per_period(gate):
    gate.mark_complete("2024-02")

    assert gate.is_complete("2024-02") is True
    assert gate.is_complete("2024-03") is False
