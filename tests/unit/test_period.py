"""Tests for period derivation and bounds"""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from mailcycle.cycle.period import period_bounds, period_for, period_window


def test_period_for_utc():
    assert period_for(datetime(2024, 3, 5, 7, 0, tzinfo=UTC)) == "2024-03"


def test_period_for_uses_configured_timezone():
    """23:30 UTC on Mar 31 is already April in Berlin"""
    moment = datetime(2024, 3, 31, 23, 30, tzinfo=UTC)

    assert period_for(moment, "UTC") == "2024-03"
    assert period_for(moment, "Europe/Berlin") == "2024-04"


def test_period_for_treats_naive_as_utc():
    assert period_for(datetime(2024, 12, 31, 23, 59)) == "2024-12"
    assert period_for(datetime(2024, 12, 31, 23, 59), "Asia/Tokyo") == "2025-01"


def test_period_bounds_mid_year():
    assert period_bounds("2024-03") == (date(2024, 3, 1), date(2024, 4, 1))


def test_period_bounds_december_rolls_over():
    assert period_bounds("2024-12") == (date(2024, 12, 1), date(2025, 1, 1))


@pytest.mark.parametrize("bad", ["2024-13", "2024-3", "24-03", "2024/03", ""])
def test_period_bounds_rejects_malformed(bad):
    with pytest.raises(ValueError):
        period_bounds(bad)


def test_period_window_is_local_midnight():
    start, end = period_window("2024-04", "Europe/Berlin")

    assert start == datetime(2024, 3, 31, 22, 0, tzinfo=UTC)
    assert end == datetime(2024, 4, 30, 22, 0, tzinfo=UTC)


def test_period_window_december_rolls_over():
    assert period_window("2024-12") == (datetime(2024, 12, 1, tzinfo=UTC), datetime(2025, 1, 1, tzinfo=UTC))
