"""Bearer API-key check for the cycle endpoints"""

from __future__ import annotations

import os
import secrets

from fastapi import Header, HTTPException, status

from mailcycle.config import is_production
from mailcycle.observability.logging import get_logger

logger = get_logger(__name__)

_BEARER_HEADERS = {"WWW-Authenticate": "Bearer"}


def _bearer_token(authorization: str | None) -> str:
    """Extract the token from "Bearer {token}" or raise 401."""
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers=_BEARER_HEADERS,
        )

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token or " " in token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer {api_key}",
            headers=_BEARER_HEADERS,
        )
    return token.strip()


class APIKeyAuth:
    """
    API key check for POST /cycle/run and GET /cycle/{period}.

    The key comes from MAILCYCLE_ADMIN_API_KEY. Without a key the endpoints
    are open in development and refused in production, since a run can send
    mail on the operator's behalf.
    """

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key if api_key is not None else os.getenv("MAILCYCLE_ADMIN_API_KEY")
        if not self.api_key:
            logger.warning("MAILCYCLE_ADMIN_API_KEY not set - cycle endpoints are unprotected!")

    def verify_api_key(self, authorization: str | None = Header(None)) -> bool:
        if not self.api_key:
            if is_production():
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail="Admin API key not configured",
                )
            return True

        token = _bearer_token(authorization)

        # Timing-safe comparison
        if not secrets.compare_digest(token.encode(), self.api_key.encode()):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid API key",
            )

        return True


# Global auth instance
auth = APIKeyAuth()


def require_admin_auth(authorization: str | None = Header(None)) -> bool:
    """FastAPI dependency guarding the cycle endpoints."""
    return auth.verify_api_key(authorization)
