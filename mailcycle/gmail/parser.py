"""
Gmail adapter utilities for converting API payloads into domain models.

Parsing is deterministic and side-effect free apart from telemetry. Failures
surface as MessageParseError with hashed identifiers, never raw addresses.
"""

from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import ValidationError

from mailcycle.cycle.errors import MessageParseError
from mailcycle.gmail.models import MailMessage, MessagePart
from mailcycle.observability.telemetry import counter, hash_id, log_event

_CHARSET_RE = re.compile(r"charset\s*=\s*\"?([^\";\s]+)\"?", re.IGNORECASE)


def _header_lookup(headers: Iterable[dict[str, str]], name: str) -> str | None:
    name_lower = name.lower()
    for header in headers:
        if header.get("name", "").lower() == name_lower:
            return header.get("value")
    return None


def decode_base64url(data: str) -> bytes:
    """Decode Gmail's URL-safe base64 payloads (padding optional)."""
    padding = "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode((data + padding).encode("ascii"))
    except (binascii.Error, ValueError) as exc:
        raise MessageParseError("failed to decode base64url body") from exc


def _iter_leaf_parts(payload: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Depth-first walk over nested multiparts, yielding leaf parts in order."""
    children = payload.get("parts") or []
    if not children:
        yield payload
        return
    for child in children:
        yield from _iter_leaf_parts(child)


def _to_part(raw_part: dict[str, Any]) -> MessagePart:
    body = raw_part.get("body") or {}
    headers = raw_part.get("headers") or []
    content_type = _header_lookup(headers, "Content-Type") or ""
    charset_match = _CHARSET_RE.search(content_type)

    data = body.get("data")
    return MessagePart(
        mime_type=(raw_part.get("mimeType") or "application/octet-stream").lower(),
        filename=raw_part.get("filename") or "",
        data=decode_base64url(data) if data else None,
        attachment_id=body.get("attachmentId"),
        size=int(body.get("size") or 0),
        charset=charset_match.group(1) if charset_match else None,
    )


def parse_message(message: dict[str, Any]) -> MailMessage:
    """
    Convert a Gmail API message (format="full") into `MailMessage`.

    Raises:
        MessageParseError: If required fields are missing or a body cannot be decoded
    """
    if not isinstance(message, dict):
        raise MessageParseError("message must be a dict")

    try:
        message_id = message["id"]
        payload = message["payload"]
    except KeyError as exc:
        raise MessageParseError(f"missing field: {exc}") from exc

    headers = payload.get("headers") or []
    parts = [_to_part(raw_part) for raw_part in _iter_leaf_parts(payload)]

    try:
        parsed = MailMessage(
            message_id=message_id,
            thread_id=message.get("threadId") or "",
            subject=_header_lookup(headers, "Subject") or "",
            from_address=_header_lookup(headers, "From") or "",
            to_address=_header_lookup(headers, "To") or "",
            internal_date=str(message.get("internalDate") or ""),
            parts=parts,
        )
    except ValidationError as exc:
        counter("schema_validation_failures")
        log_event(
            "gmail.message.validation_failed",
            errors=exc.errors(),
            message_id_hash=hash_id(message_id),
        )
        raise MessageParseError("message validation failed") from exc

    log_event("gmail.parsed", message_id_hash=hash_id(message_id), parts=len(parts))
    counter("gmail.parsed.count")
    return parsed


def parse_message_strict(message: dict[str, Any]) -> MailMessage:
    """
    Wrapper that emits observability signals on failure.
    """
    try:
        return parse_message(message)
    except MessageParseError as exc:
        message_id = message.get("id", "") if isinstance(message, dict) else ""
        log_event("gmail.parse_failed", message_id_hash=hash_id(str(message_id)), error=str(exc))
        counter("gmail.parse_failed.count")
        raise
