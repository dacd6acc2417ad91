"""Completion Gate - the authority on whether a period is finished."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter, log_event
from mailcycle.storage.models import ProcessingRecord, ProcessingStatus, utc_now
from mailcycle.storage.state_store import StateStore

logger = get_logger(__name__)


class CompletionGate:
    """Reads and advances the per-period ProcessingRecord."""

    def __init__(self, store: StateStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def get_status(self, period: str) -> ProcessingStatus:
        """Current status; an absent record is PENDING."""
        record = self.store.get_status(period)
        status = record.status if record else ProcessingStatus.PENDING
        logger.info("Processing status for %s: %s", period, status.value)
        return status

    def is_complete(self, period: str) -> bool:
        return self.get_status(period) == ProcessingStatus.COMPLETE

    def mark_complete(self, period: str) -> None:
        """
        Set status=COMPLETE, last_updated=now.

        Idempotent: when the period is already COMPLETE the conditional write
        is refused and the existing record is left as-is.

        Side Effects:
            - Conditional write to the processing_status table
        """
        written = self.store.put_status(
            ProcessingRecord(
                period=period,
                status=ProcessingStatus.COMPLETE,
                last_updated=self.clock(),
            )
        )
        if written:
            logger.info("Marked %s as COMPLETE", period)
            log_event("gate.completed", period=period)
            counter("gate.completed")
        else:
            logger.info("%s was already COMPLETE", period)
