"""FastAPI server for the monthly mail cycle"""

from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mailcycle.api.routes.cycle import router as cycle_router
from mailcycle.api.routes.health import router as health_router
from mailcycle.config import APP_VERSION, is_production
from mailcycle.cycle.errors import (
    ConfigurationError,
    ContentShapeError,
    MailCycleError,
    PrerequisiteViolation,
    TransientAdapterError,
)
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter, log_event

# Load environment variables from .env file
load_dotenv()

# Interactive docs only outside production
app = FastAPI(
    title="mailcycle API",
    version=APP_VERSION,
    docs_url=None if is_production() else "/docs",
    redoc_url=None,
)

logger = get_logger(__name__)


# Custom validation error handler to prevent information leakage
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


@app.exception_handler(TransientAdapterError)
async def transient_error_handler(request: Request, exc: TransientAdapterError) -> JSONResponse:
    """Store/mail provider unavailable: the scheduler should simply try again later."""
    logger.error("Transient failure on %s: %s", request.url.path, exc)
    counter("api.errors.transient")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Upstream service unavailable. Retry on the next run."},
    )


@app.exception_handler(MailCycleError)
async def cycle_error_handler(request: Request, exc: MailCycleError) -> JSONResponse:
    """Content, prerequisite and configuration failures."""
    if isinstance(exc, ContentShapeError):
        detail = "A required email did not have the expected content."
    elif isinstance(exc, PrerequisiteViolation):
        detail = "Required emails have not all been received."
    elif isinstance(exc, ConfigurationError):
        detail = "Service is not configured."
    else:
        detail = "Cycle failed."

    logger.error("Cycle error on %s: %s: %s", request.url.path, type(exc).__name__, exc)
    log_event("api.cycle_error", error_type=type(exc).__name__)
    counter("api.errors.cycle")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": detail},
    )


app.include_router(health_router)
app.include_router(cycle_router)

log_event("api.startup", service="mailcycle", version=APP_VERSION)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "mailcycle API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "run": "/cycle/run",
            "period": "/cycle/{period}",
        },
    }


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "mailcycle.api.app:app",
        host=os.getenv("MAILCYCLE_HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        log_level=os.getenv("MAILCYCLE_LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
