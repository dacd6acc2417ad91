"""Gmail-backed mail source and mail sender.

Both adapters take an already-built Gmail service (see mailcycle.gmail.oauth)
so nothing here holds module-level client state. Provider failures are
translated into TransientAdapterError carrying the HTTP status; nothing is
retried here, the next scheduled run is the retry.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import httplib2
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from mailcycle.cycle.errors import TransientAdapterError
from mailcycle.delivery.models import ComposedMessage
from mailcycle.gmail.models import MailMessage, MailQuery
from mailcycle.gmail.parser import decode_base64url, parse_message_strict
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter, hash_id, log_event, time_block

logger = get_logger(__name__)

T = TypeVar("T")


def _call_gmail(stage: str, request: Callable[[], T]) -> T:
    """Execute a Gmail request, translating transport/provider failures."""
    try:
        with time_block(f"gmail.{stage}.latency"):
            return request()
    except HttpError as e:
        status = getattr(e.resp, "status", None)
        logger.error("Gmail API error during %s: %s", stage, e)
        log_event(f"gmail.{stage}.error", status=status)
        counter(f"gmail.{stage}.errors")
        raise TransientAdapterError(f"gmail {stage} failed: HTTP {status}", status) from e
    except RefreshError as e:
        logger.error("Gmail token refresh failed during %s: %s", stage, e)
        log_event(f"gmail.{stage}.error", error="refresh_failed")
        raise TransientAdapterError(f"gmail {stage} failed: token refresh", 401) from e
    except (httplib2.HttpLib2Error, OSError) as e:
        logger.error("Gmail transport error during %s: %s", stage, e)
        log_event(f"gmail.{stage}.error", error=type(e).__name__)
        counter(f"gmail.{stage}.errors")
        raise TransientAdapterError(f"gmail {stage} failed: {e}") from e


class GmailMailSource:
    """
    Read side of Gmail: bounded search, full message fetch, attachment fetch.
    """

    def __init__(self, service: Any, max_results: int = 10, user_id: str = "me"):
        self.service = service
        self.max_results = max_results
        self.user_id = user_id

    def search(self, query: MailQuery) -> list[str]:
        """
        Return matching message ids in provider order (possibly empty).
        """
        q = query.to_gmail_query()

        def list_ids() -> list[str]:
            response = (
                self.service.users()
                .messages()
                .list(userId=self.user_id, q=q, maxResults=self.max_results)
                .execute()
            )
            return [msg["id"] for msg in response.get("messages", [])]

        ids = _call_gmail("search", list_ids)
        counter("gmail.messages.listed", len(ids))
        log_event("gmail.search", address_hash=hash_id(query.address), matches=len(ids))
        return ids

    def fetch_message(self, message_id: str) -> MailMessage:
        """Fetch a message with format="full" and parse it."""

        def get_message() -> dict[str, Any]:
            return (
                self.service.users()
                .messages()
                .get(userId=self.user_id, id=message_id, format="full")
                .execute()
            )

        return parse_message_strict(_call_gmail("fetch_message", get_message))

    def fetch_attachment(self, message_id: str, attachment_id: str) -> bytes:
        """Fetch raw attachment bytes (decoded from base64url)."""

        def get_attachment() -> dict[str, Any]:
            return (
                self.service.users()
                .messages()
                .attachments()
                .get(userId=self.user_id, messageId=message_id, id=attachment_id)
                .execute()
            )

        response = _call_gmail("fetch_attachment", get_attachment)
        data = decode_base64url(response.get("data", ""))
        counter("gmail.attachment_bytes", len(data))
        return data


class GmailMailSender:
    """Dispatch a ComposedMessage through users.messages.send."""

    def __init__(self, service: Any, user_id: str = "me"):
        self.service = service
        self.user_id = user_id

    def send(self, message: ComposedMessage) -> str | None:
        """
        Send the message.

        Returns:
            Gmail id of the sent message, when the API reports one

        Raises:
            TransientAdapterError: If the API call fails
        """

        def send_raw() -> dict[str, Any]:
            return (
                self.service.users()
                .messages()
                .send(userId=self.user_id, body={"raw": message.as_gmail_raw()})
                .execute()
            )

        response = _call_gmail("send", send_raw)
        sent_id = response.get("id")
        logger.info("Sent notification for %s via Gmail", message.period)
        log_event("gmail.sent", period=message.period, message_id_hash=hash_id(sent_id))
        counter("gmail.sent.count")
        return sent_id
