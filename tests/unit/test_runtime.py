"""Tests for controller wiring"""

from __future__ import annotations

from mailcycle.config import Settings
from mailcycle.runtime import build_controller
from mailcycle.storage.state_store import SQLiteStateStore


def test_dry_run_records_arrivals_in_sqlite_store(categories, source, sender, bvg_message, now, tmp_path):
    settings = Settings(
        categories=categories,
        target_email="hr@example.com",
        sender_email="me@example.com",
        db_path=tmp_path / "state.db",
    )
    source.add("bvg@example.com", bvg_message())

    controller = build_controller(settings, source=source, sender=sender)
    outcome = controller.run(now, dry_run=True)

    assert outcome.recorded == ["BVG"]
    assert sender.sent == []
    reopened = SQLiteStateStore(settings.db_path, initialize=False)
    assert reopened.get_arrival("2024-03", "BVG").received is True
