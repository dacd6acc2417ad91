"""Cycle endpoints: trigger a run and inspect a period's state."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from mailcycle.api.middleware.auth import require_admin_auth
from mailcycle.config import Settings, load_settings
from mailcycle.cycle.controller import CycleController
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter, hash_id
from mailcycle.runtime import build_controller
from mailcycle.storage.models import ProcessingStatus, validate_period
from mailcycle.storage.state_store import SQLiteStateStore, StateStore

logger = get_logger(__name__)

router = APIRouter(prefix="/cycle", tags=["cycle"])


class RunRequest(BaseModel):
    now: datetime | None = None
    dry_run: bool = False


def get_settings() -> Settings:
    return load_settings()


def get_controller(settings: Settings = Depends(get_settings)) -> CycleController:
    return build_controller(settings)


def get_store(settings: Settings = Depends(get_settings)) -> StateStore:
    return SQLiteStateStore(settings.db_path)


@router.post("/run")
def run_cycle(
    request: RunRequest | None = None,
    _authenticated: bool = Depends(require_admin_auth),
    controller: CycleController = Depends(get_controller),
) -> dict[str, Any]:
    """
    Run one invocation of the cycle.

    Intended for a daily scheduler hit. Errors are mapped by the app's
    exception handlers (503 transient, 500 content/prerequisite).
    """
    request = request or RunRequest()
    logger.info("Cycle run requested (dry_run=%s)", request.dry_run)
    counter("api.cycle.run")
    outcome = controller.run(request.now, dry_run=request.dry_run)
    return outcome.to_dict()


@router.get("/{period}")
def get_cycle_state(
    period: str,
    _authenticated: bool = Depends(require_admin_auth),
    store: StateStore = Depends(get_store),
) -> dict[str, Any]:
    """Processing status and arrivals recorded for `period` (YYYY-MM)."""
    try:
        validate_period(period)
    except ValueError as e:
        raise HTTPException(
            status_code=422,
            detail="period must be YYYY-MM",
        ) from e

    record = store.get_status(period)
    arrivals = store.list_arrivals(period)

    return {
        "period": period,
        "status": (record.status if record else ProcessingStatus.PENDING).value,
        "last_updated": (
            record.last_updated.isoformat() if record and record.last_updated else None
        ),
        "arrivals": [
            {
                "category": arrival.category,
                "received": arrival.received,
                "message_id_hash": hash_id(arrival.message_id) if arrival.message_id else None,
                "observed_at": arrival.observed_at.isoformat() if arrival.observed_at else None,
            }
            for arrival in arrivals
        ],
    }
