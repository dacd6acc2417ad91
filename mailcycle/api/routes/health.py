"""Health check endpoint for the mailcycle API.

Liveness probe for the scheduler and container platform.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from mailcycle.config import APP_VERSION
from mailcycle.observability.telemetry import get_latency_stats

router = APIRouter(tags=["health"])

# Timed blocks summarized here; samples are seconds kept for the process lifetime
LATENCY_METRICS = ("composer.compose", "composer.send", "gmail.search.latency")


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Returns service status, version, Gmail credential readiness (presence
    only; no API call is made) and latency stats for this process.
    """
    gmail_ready = all(
        os.getenv(key)
        for key in ("GMAIL_CLIENT_ID", "GMAIL_CLIENT_SECRET", "GMAIL_REFRESH_TOKEN")
    )

    return {
        "status": "healthy",
        "service": "mailcycle",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "gmail": {"ready": gmail_ready},
        "latency": {name: get_latency_stats(name) for name in LATENCY_METRICS},
    }
