"""
Period derivation: the YYYY-MM key that scopes all persisted state.

Every component derives the period through period_for() with the same
configured timezone, so a run just after midnight UTC cannot read one month
and write another.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from mailcycle.storage.models import validate_period


def period_for(moment: datetime, timezone: str = "UTC") -> str:
    """
    Derive the period key for a timestamp.

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    local = moment.astimezone(ZoneInfo(timezone))
    return f"{local.year:04d}-{local.month:02d}"


def period_bounds(period: str) -> tuple[date, date]:
    """
    Return [first day of period, first day of next period).

    >>> period_bounds("2024-12")
    (datetime.date(2024, 12, 1), datetime.date(2025, 1, 1))
    """
    validate_period(period)
    year, month = int(period[:4]), int(period[5:7])
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def period_window(period: str, timezone: str = "UTC") -> tuple[datetime, datetime]:
    """
    Return the period's [start, end) as aware datetimes at local midnight.

    Mail searches use these instants rather than the bare dates, since the
    provider would otherwise read a date in its own zone.

    >>> period_window("2024-04", "Europe/Berlin")[0].isoformat()
    '2024-04-01T00:00:00+02:00'
    """
    start, end = period_bounds(period)
    zone = ZoneInfo(timezone)
    return (
        datetime(start.year, start.month, start.day, tzinfo=zone),
        datetime(end.year, end.month, end.day, tzinfo=zone),
    )
