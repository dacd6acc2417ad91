"""
Mail-source shapes shared by the Gmail adapter and the composer.

MailMessage is provider-neutral: a flat list of leaf parts tagged by media
type. Inline part bodies are already base64url-decoded into bytes; large
attachments carry only an attachment_id and must be fetched separately.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MailQuery(BaseModel):
    """Search scoped to one address and a half-open window [start, end).

    start and end must be timezone-aware; they are sent as epoch seconds so
    the provider cannot reinterpret them in its own zone.
    """

    model_config = ConfigDict(frozen=True)

    address: str
    match_field: str = "to"
    start: datetime
    end: datetime

    @field_validator("match_field")
    @classmethod
    def _match_field_allowed(cls, value: str) -> str:
        if value not in ("to", "from"):
            raise ValueError("match_field must be 'to' or 'from'")
        return value

    @field_validator("start", "end")
    @classmethod
    def _require_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("query bounds must be timezone-aware")
        return value

    def to_gmail_query(self) -> str:
        """Render as a Gmail search string with epoch-second bounds."""
        return (
            f"{self.match_field}:{self.address} "
            f"after:{int(self.start.timestamp())} before:{int(self.end.timestamp())}"
        )


class MessagePart(BaseModel):
    """One leaf MIME part of a fetched message."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    filename: str = ""
    data: bytes | None = None
    attachment_id: str | None = None
    size: int = 0
    charset: str | None = None

    @property
    def is_attachment(self) -> bool:
        return bool(self.filename) or self.attachment_id is not None

    def text(self) -> str:
        """Decode inline data as text using the declared charset."""
        if self.data is None:
            return ""
        try:
            return self.data.decode(self.charset or "utf-8", errors="replace")
        except LookupError:
            return self.data.decode("utf-8", errors="replace")


class MailMessage(BaseModel):
    """A fetched message with its leaf parts in document order."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    thread_id: str = ""
    subject: str = ""
    from_address: str = ""
    to_address: str = ""
    internal_date: str = ""
    parts: list[MessagePart] = Field(default_factory=list)

    def first_part(self, mime_type: str) -> MessagePart | None:
        for part in self.parts:
            if part.mime_type == mime_type and not part.is_attachment:
                return part
        return None

    def first_attachment(self) -> MessagePart | None:
        for part in self.parts:
            if part.is_attachment:
                return part
        return None
