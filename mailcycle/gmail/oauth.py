"""Gmail API service construction from configured OAuth secrets.

The deployment ships a long-lived refresh token (GMAIL_REFRESH_TOKEN) plus the
OAuth client id/secret; there is no interactive flow here. The access token
is refreshed on demand by google-auth whenever the service makes a call.
"""

from __future__ import annotations

from typing import Any

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build

from mailcycle.cycle.errors import ConfigurationError
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter

logger = get_logger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",  # Search + fetch
    "https://www.googleapis.com/auth/gmail.send",  # Send the combined mail
]


def build_credentials(client_id: str, client_secret: str, refresh_token: str) -> Credentials:
    """
    Build refreshable OAuth2 credentials.

    Raises:
        ConfigurationError: If any secret is empty
    """
    missing = [
        name
        for name, value in (
            ("GMAIL_CLIENT_ID", client_id),
            ("GMAIL_CLIENT_SECRET", client_secret),
            ("GMAIL_REFRESH_TOKEN", refresh_token),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"missing Gmail OAuth settings: {', '.join(missing)}")

    return Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=GMAIL_SCOPES,
    )


def build_gmail_service(credentials: Credentials, timeout_seconds: float = 10.0) -> Any:
    """
    Build authenticated Gmail API service with a bounded HTTP timeout.

    Returns:
        googleapiclient.discovery.Resource for gmail v1

    Raises:
        ConfigurationError: If the discovery document cannot be built
    """
    http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout_seconds))
    try:
        service = build("gmail", "v1", http=http, cache_discovery=False)
    except Exception as e:
        logger.error("Failed to build Gmail service: %s", e)
        raise ConfigurationError(f"Failed to build Gmail service: {e}") from e

    counter("gmail.service_built.count")
    logger.info("Built Gmail API service (timeout=%.1fs)", timeout_seconds)
    return service
