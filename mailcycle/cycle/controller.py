"""
Cycle Controller - the once-per-invocation monthly state machine.

    CHECK_STATUS ──COMPLETE──▶ HALT (already_complete)
        │ PENDING
        ▼
    CHECK_ARRIVALS ──all received──▶ COMPOSE_AND_SEND ──▶ HALT (sent)
        │ missing, first pass          ▲
        ▼                              │
    RECORD_ARRIVALS ─▶ CHECK_ARRIVALS ─┘ (or HALT waiting if still missing)

RECORD_ARRIVALS runs at most once per invocation. Re-invocation (the daily
schedule) is the only retry; nothing is retried inside a run. All state
lives in the store, so the controller itself holds nothing between runs.
"""

from __future__ import annotations

import concurrent.futures
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TypeVar

from mailcycle.cycle.composer import Composer
from mailcycle.cycle.errors import CycleTimeoutError
from mailcycle.cycle.gate import CompletionGate
from mailcycle.cycle.period import period_for
from mailcycle.cycle.tracker import ArrivalTracker
from mailcycle.delivery.models import ComposedMessage
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter, log_event
from mailcycle.storage.models import utc_now

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_SEND_TIMEOUT_SECONDS = 30.0


class CycleState(str, Enum):
    CHECK_STATUS = "CHECK_STATUS"
    CHECK_ARRIVALS = "CHECK_ARRIVALS"
    RECORD_ARRIVALS = "RECORD_ARRIVALS"
    COMPOSE_AND_SEND = "COMPOSE_AND_SEND"
    HALT = "HALT"


class CycleResult(str, Enum):
    ALREADY_COMPLETE = "already_complete"
    WAITING = "waiting"
    SENT = "sent"
    COMPOSED = "composed"  # dry run: built but not dispatched


@dataclass
class CycleOutcome:
    """What one invocation observed and did."""

    period: str
    result: CycleResult | None = None
    missing: frozenset[str] = frozenset()
    recorded: list[str] = field(default_factory=list)
    visited: list[CycleState] = field(default_factory=list)
    message: ComposedMessage | None = None

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "result": self.result.value if self.result else None,
            "missing": sorted(self.missing),
            "recorded": list(self.recorded),
            "visited": [state.value for state in self.visited],
            "attachment_filename": self.message.attachment_filename if self.message else None,
        }


class CycleController:
    """Drives one invocation through the cycle states for the current period."""

    def __init__(
        self,
        gate: CompletionGate,
        tracker: ArrivalTracker,
        composer: Composer,
        timezone: str = "UTC",
        send_timeout_seconds: float = DEFAULT_SEND_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.gate = gate
        self.tracker = tracker
        self.composer = composer
        self.timezone = timezone
        self.send_timeout_seconds = send_timeout_seconds
        self.clock = clock

    def run(self, now: datetime | None = None, *, dry_run: bool = False) -> CycleOutcome:
        """
        Execute one invocation.

        Args:
            now: Moment to derive the period from (defaults to the clock)
            dry_run: Compose but never send or mark complete

        Returns:
            CycleOutcome describing the halt reason and the states visited

        Raises:
            MailCycleError: Any adapter, content or prerequisite failure,
                after it has been logged. Status stays PENDING.
        """
        period = period_for(now or self.clock(), self.timezone)
        outcome = CycleOutcome(period=period)
        logger.info("Starting cycle for %s%s", period, " (dry run)" if dry_run else "")

        try:
            self._drive(outcome, dry_run)
        except Exception as e:
            logger.error("Cycle for %s failed in %s: %s", period, outcome.visited[-1].value, e)
            log_event(
                "cycle.failed",
                period=period,
                state=outcome.visited[-1].value,
                error_type=type(e).__name__,
            )
            counter("cycle.failed")
            raise

        outcome.visited.append(CycleState.HALT)
        log_event(
            "cycle.halted",
            period=period,
            result=outcome.result.value,
            missing=sorted(outcome.missing),
            recorded=outcome.recorded,
        )
        counter(f"cycle.{outcome.result.value}")
        return outcome

    def _drive(self, outcome: CycleOutcome, dry_run: bool) -> None:
        period = outcome.period

        outcome.visited.append(CycleState.CHECK_STATUS)
        if self.gate.is_complete(period):
            logger.info("Emails already processed for %s", period)
            outcome.result = CycleResult.ALREADY_COMPLETE
            return

        record_pass_done = False
        while True:
            outcome.visited.append(CycleState.CHECK_ARRIVALS)
            check = self.tracker.check_received(period)
            outcome.missing = check.missing

            if check.all_received:
                break
            if record_pass_done:
                logger.info("Still waiting on %s for %s", ", ".join(sorted(check.missing)), period)
                outcome.result = CycleResult.WAITING
                return

            outcome.visited.append(CycleState.RECORD_ARRIVALS)
            written = self.tracker.record_arrivals(period, check.missing)
            outcome.recorded.extend(record.category for record in written)
            record_pass_done = True

        outcome.visited.append(CycleState.COMPOSE_AND_SEND)
        if dry_run:
            outcome.message = self._with_deadline(period, lambda: self.composer.compose(period))
            outcome.result = CycleResult.COMPOSED
            return

        def _compose_and_send() -> ComposedMessage:
            message = self.composer.compose(period)
            self.composer.send(period, message)
            return message

        self._with_deadline(period, _compose_and_send)
        outcome.result = CycleResult.SENT

    def _with_deadline(self, period: str, func: Callable[[], T]) -> T:
        """
        Run `func` on a worker thread and wait at most send_timeout_seconds.

        On timeout the worker is abandoned, not joined, and run() raises
        CycleTimeoutError at once. If it later finishes and marks the period
        complete, that is the same state a successful run would have written.

        The worker is not a daemon thread. concurrent.futures joins it at
        interpreter exit, so a `mailcycle-run run` process that timed out
        still exits only after the abandoned send returns or its socket
        timeout fires. A long-lived API process is not held up.
        """
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="mailcycle-send"
        )
        try:
            future = executor.submit(func)
            try:
                return future.result(timeout=self.send_timeout_seconds)
            except concurrent.futures.TimeoutError:
                future.cancel()
                log_event("cycle.timeout", period=period, timeout_seconds=self.send_timeout_seconds)
                raise CycleTimeoutError(
                    f"compose-and-send for {period} exceeded {self.send_timeout_seconds}s"
                ) from None
        finally:
            executor.shutdown(wait=False)
