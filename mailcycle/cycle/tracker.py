"""
Arrival Tracker - which required mails have arrived this period.

check_received() is a pure read of the store. record_arrivals() polls the
mail source once per missing category and persists each first sighting on
its own, so a failure on the second category keeps the first one recorded.
There is no in-run retry: a category that is not found today is searched
again by tomorrow's run.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from mailcycle.cycle.adapters import MailSource
from mailcycle.cycle.period import period_window
from mailcycle.gmail.models import MailQuery
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter, hash_id, log_event
from mailcycle.storage.models import ArrivalRecord, Category, utc_now
from mailcycle.storage.state_store import StateStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ArrivalCheck:
    """Result of check_received()."""

    missing: frozenset[str]
    all_received: bool


class ArrivalTracker:
    """Reads and records per-category arrivals for a period."""

    def __init__(
        self,
        store: StateStore,
        source: MailSource,
        categories: Sequence[Category],
        timezone: str = "UTC",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.source = source
        self.categories = {category.name: category for category in categories}
        self.timezone = timezone
        self.clock = clock

    def check_received(self, period: str) -> ArrivalCheck:
        """
        Report which categories have no received record for `period`.

        An absent record counts as not received. Store errors propagate.
        """
        missing = frozenset(
            name
            for name in self.categories
            if not self._is_received(self.store.get_arrival(period, name))
        )
        logger.info(
            "Arrivals for %s: missing=%s",
            period,
            ", ".join(sorted(missing)) or "None",
        )
        return ArrivalCheck(missing=missing, all_received=not missing)

    def record_arrivals(self, period: str, missing: Iterable[str]) -> list[ArrivalRecord]:
        """
        Search for each missing category and persist the first match.

        Returns:
            Records written by this call (empty when nothing new was found)

        Raises:
            ValueError: If a category name is not configured
            TransientAdapterError: If the mail source or store is unavailable
        """
        start, end = period_window(period, self.timezone)
        recorded: list[ArrivalRecord] = []

        for name in sorted(missing):
            category = self.categories.get(name)
            if category is None:
                raise ValueError(f"unknown category: {name!r}")

            query = MailQuery(
                address=category.address,
                match_field=category.match_field,
                start=start,
                end=end,
            )
            matches = self.source.search(query)

            if not matches:
                logger.info("%s email not found for %s", name, period)
                counter("tracker.not_found")
                continue

            if len(matches) > 1:
                # Provider order decides; recency is not guaranteed
                log_event("tracker.multiple_matches", category=name, period=period, count=len(matches))

            record = ArrivalRecord(
                period=period,
                category=name,
                received=True,
                message_id=matches[0],
                observed_at=self.clock(),
            )
            if self.store.put_arrival(record):
                logger.info("%s email found for %s", name, period)
                log_event(
                    "tracker.recorded",
                    category=name,
                    period=period,
                    message_id_hash=hash_id(matches[0]),
                )
                counter("tracker.recorded")
                recorded.append(record)
            else:
                # A concurrent run recorded it first; its record stands
                logger.info("%s already recorded for %s, keeping existing record", name, period)

        return recorded

    @staticmethod
    def _is_received(record: ArrivalRecord | None) -> bool:
        return record is not None and record.received
