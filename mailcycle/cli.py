#!/usr/bin/env python3
"""
mailcycle command line.

    mailcycle-run run [--now 2024-03-05T07:00:00+00:00] [--dry-run] [--preview-out msg.eml]
    mailcycle-run status [--period 2024-03]
    mailcycle-run init-db

`run` is what the daily scheduler invokes. Exit codes: 0 on any clean halt
(already complete, waiting, sent), 1 on a cycle failure, 2 on bad
configuration.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

from mailcycle.config import load_settings
from mailcycle.cycle.errors import ConfigurationError, MailCycleError
from mailcycle.cycle.period import period_for
from mailcycle.observability.logging import get_logger
from mailcycle.storage.models import ProcessingStatus, utc_now, validate_period

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_CYCLE_FAILED = 1
EXIT_CONFIG = 2


def _parse_now(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value!r}") from e


def _parse_period(value: str) -> str:
    try:
        return validate_period(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mailcycle-run",
        description="Monthly reimbursement mail cycle",
    )
    parser.add_argument("--env-file", type=Path, default=None, help="Path to a .env file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run one invocation of the cycle")
    run.add_argument("--now", type=_parse_now, default=None, help="Override current time (ISO-8601)")
    run.add_argument("--dry-run", action="store_true", help="Compose but do not send")
    run.add_argument(
        "--preview-out",
        type=Path,
        default=None,
        help="With --dry-run, write the composed message (.eml) here",
    )

    status = subparsers.add_parser("status", help="Show a period's recorded state")
    status.add_argument("--period", type=_parse_period, default=None, help="YYYY-MM (default: current)")

    subparsers.add_parser("init-db", help="Create the state database schema")

    return parser


def _cmd_run(args: argparse.Namespace) -> int:
    from mailcycle.runtime import build_controller

    settings = load_settings(args.env_file)
    controller = build_controller(settings)
    outcome = controller.run(args.now, dry_run=args.dry_run)

    if args.preview_out and outcome.message is not None:
        args.preview_out.write_bytes(outcome.message.as_bytes())
        logger.info("Wrote preview to %s", args.preview_out)

    print(json.dumps(outcome.to_dict(), indent=2))
    return EXIT_OK


def _cmd_status(args: argparse.Namespace) -> int:
    from mailcycle.storage.state_store import SQLiteStateStore

    settings = load_settings(args.env_file)
    period = args.period or period_for(utc_now(), settings.timezone)
    # Read-only: never create a schema just to report on it
    store = SQLiteStateStore(settings.db_path, initialize=False)

    record = store.get_status(period)
    print(f"Period:  {period}")
    print(f"Status:  {(record.status if record else ProcessingStatus.PENDING).value}")
    for arrival in store.list_arrivals(period):
        observed = arrival.observed_at.isoformat() if arrival.observed_at else "-"
        print(f"  {arrival.category:<12} received={arrival.received!s:<5} observed_at={observed}")
    return EXIT_OK


def _cmd_init_db(args: argparse.Namespace) -> int:
    from mailcycle.infrastructure.database_schema import init_database

    settings = load_settings(args.env_file)
    init_database(settings.db_path)
    print(f"Initialized {settings.db_path}")
    return EXIT_OK


COMMANDS = {
    "run": _cmd_run,
    "status": _cmd_status,
    "init-db": _cmd_init_db,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        return COMMANDS[args.command](args)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except MailCycleError as e:
        logger.error("Cycle failed: %s: %s", type(e).__name__, e)
        print(f"Cycle failed: {type(e).__name__}: {e}", file=sys.stderr)
        return EXIT_CYCLE_FAILED


if __name__ == "__main__":
    sys.exit(main())
