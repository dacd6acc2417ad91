"""Tests for Gmail credential and service construction"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from mailcycle.cycle.errors import ConfigurationError
from mailcycle.gmail.oauth import GMAIL_SCOPES, TOKEN_URI, build_credentials, build_gmail_service


def test_build_credentials_from_refresh_token():
    creds = build_credentials("client-id", "client-secret", "refresh-token")

    assert creds.refresh_token == "refresh-token"
    assert creds.client_id == "client-id"
    assert creds.client_secret == "client-secret"
    assert creds.token_uri == TOKEN_URI
    assert set(creds.scopes) == set(GMAIL_SCOPES)


def test_build_credentials_names_missing_settings():
    with pytest.raises(ConfigurationError, match="GMAIL_CLIENT_SECRET, GMAIL_REFRESH_TOKEN"):
        build_credentials("client-id", "", "")


def test_build_gmail_service_uses_timeout_and_no_discovery_cache():
    creds = build_credentials("client-id", "client-secret", "refresh-token")

    with patch("mailcycle.gmail.oauth.build") as mock_build, patch(
        "mailcycle.gmail.oauth.httplib2.Http"
    ) as mock_http:
        service = build_gmail_service(creds, timeout_seconds=4.5)

    mock_http.assert_called_once_with(timeout=4.5)
    args, kwargs = mock_build.call_args
    assert args == ("gmail", "v1")
    assert kwargs["cache_discovery"] is False
    assert service is mock_build.return_value


def test_build_gmail_service_failure_is_configuration_error():
    creds = build_credentials("client-id", "client-secret", "refresh-token")

    with patch("mailcycle.gmail.oauth.build", side_effect=RuntimeError("no discovery")):
        with pytest.raises(ConfigurationError, match="Failed to build Gmail service"):
            build_gmail_service(creds)
