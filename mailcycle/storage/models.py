"""
Domain models (Pydantic v2) for the persisted mail-cycle state.

All state is partitioned by Period ("YYYY-MM"). ArrivalRecord is keyed by
(period, category); ProcessingRecord by period alone. Both are monotonic:
received only flips false -> true, status only flips PENDING -> COMPLETE.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_PERIOD_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def validate_period(value: str) -> str:
    if not isinstance(value, str) or not _PERIOD_RE.match(value):
        raise ValueError(f"period must look like YYYY-MM, got {value!r}")
    return value


class CategoryRole(str, Enum):
    """What the composer takes from a category's message."""

    TEXT = "text"  # primary readable-text part goes into the body
    ATTACHMENT = "attachment"  # first attachment is forwarded byte-exact


class ProcessingStatus(str, Enum):
    """Per-period workflow status. COMPLETE is terminal."""

    PENDING = "PENDING"
    COMPLETE = "COMPLETE"


class Category(BaseModel):
    """A required email kind tracked once per period."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Category label, e.g. 'BVG'")
    address: str = Field(..., min_length=3, description="Address the mail is sent to/from")
    match_field: str = Field(default="to", description="'to' or 'from' search operator")
    role: CategoryRole

    @field_validator("match_field")
    @classmethod
    def _match_field_allowed(cls, value: str) -> str:
        if value not in ("to", "from"):
            raise ValueError("match_field must be 'to' or 'from'")
        return value


class ArrivalRecord(BaseModel):
    """Persisted fact of whether/when a category's email was observed."""

    model_config = ConfigDict(frozen=True)

    period: str
    category: str
    received: bool = False
    message_id: str | None = None
    observed_at: datetime | None = None

    @field_validator("period")
    @classmethod
    def _period_format(cls, value: str) -> str:
        return validate_period(value)

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "period": self.period,
            "category": self.category,
            "received": 1 if self.received else 0,
            "message_id": self.message_id,
            "observed_at": self.observed_at.isoformat() if self.observed_at else None,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> ArrivalRecord:
        """Create ArrivalRecord from database row."""
        observed_at = row.get("observed_at")
        return cls(
            period=row["period"],
            category=row["category"],
            received=bool(row["received"]),
            message_id=row.get("message_id"),
            observed_at=datetime.fromisoformat(observed_at) if observed_at else None,
        )


class ProcessingRecord(BaseModel):
    """Persisted PENDING/COMPLETE marker for one period."""

    model_config = ConfigDict(frozen=True)

    period: str
    status: ProcessingStatus = ProcessingStatus.PENDING
    last_updated: datetime | None = None

    @field_validator("period")
    @classmethod
    def _period_format(cls, value: str) -> str:
        return validate_period(value)

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "period": self.period,
            "status": self.status.value,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> ProcessingRecord:
        """Create ProcessingRecord from database row."""
        last_updated = row.get("last_updated")
        return cls(
            period=row["period"],
            status=ProcessingStatus(row["status"]),
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        )
