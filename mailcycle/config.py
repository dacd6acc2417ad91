"""Centralized configuration for mailcycle.

Typed module constants hold the tunables (env overrides with safe defaults so
imports never fail). `load_settings()` builds the validated, frozen Settings
object that the runtime wiring needs; it is the only place that insists on
secrets and addresses being present.

Env vars use MAILCYCLE_* for tunables. Addresses and Gmail secrets keep the
names the deployment already uses (BVG_EMAIL, CHARGES_EMAIL, TARGET_EMAIL,
MY_EMAIL, GMAIL_*).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from mailcycle.cycle.errors import ConfigurationError
from mailcycle.infrastructure.env import ensure_env_loaded, get_optional_env, get_required_env
from mailcycle.storage.models import Category, CategoryRole

# --- App ---
APP_VERSION: str = "0.1.0"
ENV: str = os.getenv("MAILCYCLE_ENV", "development")

# --- Period ---
TIMEZONE: str = os.getenv("MAILCYCLE_TIMEZONE", "UTC")

# --- Mail source ---
SEARCH_MAX_RESULTS: int = int(os.getenv("MAILCYCLE_SEARCH_MAX_RESULTS", "10"))
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("MAILCYCLE_HTTP_TIMEOUT_SECONDS", "10"))

# --- Compose / send ---
SEND_TIMEOUT_SECONDS: float = float(os.getenv("MAILCYCLE_SEND_TIMEOUT_SECONDS", "30"))
SUBJECT_TEMPLATE: str = os.getenv(
    "MAILCYCLE_SUBJECT_TEMPLATE", "Reimbursement Request for {period}"
)
GREETING: str = os.getenv("MAILCYCLE_GREETING", "Dear HR Team,")
SIGNATURE: str = os.getenv("MAILCYCLE_SIGNATURE", "Best regards,\nAutomated System")

# --- Database ---
DB_PATH: Path = Path(os.getenv("MAILCYCLE_DB_PATH", "data/mailcycle.db"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("MAILCYCLE_DB_CONNECT_TIMEOUT", "30.0"))
DB_RETRY_MAX: int = int(os.getenv("MAILCYCLE_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("MAILCYCLE_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("MAILCYCLE_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("MAILCYCLE_DB_RETRY_JITTER", "0.1"))

# --- Category defaults (the deployment's two required mails) ---
CATEGORY_A_NAME: str = os.getenv("MAILCYCLE_CATEGORY_A_NAME", "BVG")
CATEGORY_B_NAME: str = os.getenv("MAILCYCLE_CATEGORY_B_NAME", "Charges")
CATEGORY_MATCH_FIELD: str = os.getenv("MAILCYCLE_CATEGORY_MATCH_FIELD", "to")


def is_production() -> bool:
    """Check if running in production"""
    return ENV == "production"


@dataclass(frozen=True)
class Settings:
    """Everything the runtime needs to wire a CycleController."""

    categories: tuple[Category, ...]
    target_email: str
    sender_email: str
    gmail_client_id: str = ""
    gmail_client_secret: str = ""
    gmail_refresh_token: str = ""
    sender_backend: str = "gmail"  # "gmail" | "smtp"
    db_path: Path = DB_PATH
    timezone: str = TIMEZONE
    search_max_results: int = SEARCH_MAX_RESULTS
    http_timeout_seconds: float = HTTP_TIMEOUT_SECONDS
    send_timeout_seconds: float = SEND_TIMEOUT_SECONDS
    subject_template: str = SUBJECT_TEMPLATE
    greeting: str = GREETING
    signature: str = SIGNATURE

    @property
    def text_category(self) -> Category:
        return next(c for c in self.categories if c.role == CategoryRole.TEXT)

    @property
    def attachment_category(self) -> Category:
        return next(c for c in self.categories if c.role == CategoryRole.ATTACHMENT)


def validate_subject_template(template: str) -> str:
    """
    Check that the subject template formats with `{period}` alone.

    Raises:
        ConfigurationError: If the template names another field or is malformed
    """
    try:
        template.format(period="2024-01")
    except (AttributeError, KeyError, IndexError, ValueError) as e:
        raise ConfigurationError(
            f"MAILCYCLE_SUBJECT_TEMPLATE may only use {{period}}, got {template!r}: {e}"
        ) from e
    return template


def load_settings(env_path: Path | None = None) -> Settings:
    """
    Build validated Settings from the environment (.env honoured).

    Raises:
        ConfigurationError: If a required address or secret is missing, or the
            subject template uses a field other than {period}
    """
    ensure_env_loaded(env_path)

    match_field = get_optional_env("MAILCYCLE_CATEGORY_MATCH_FIELD", CATEGORY_MATCH_FIELD)
    if match_field not in ("to", "from"):
        raise ConfigurationError(
            f"MAILCYCLE_CATEGORY_MATCH_FIELD must be 'to' or 'from', got {match_field!r}"
        )

    categories = (
        Category(
            name=get_optional_env("MAILCYCLE_CATEGORY_A_NAME", CATEGORY_A_NAME),
            address=get_required_env("MAILCYCLE_CATEGORY_A_ADDRESS", "BVG_EMAIL"),
            match_field=match_field,
            role=CategoryRole.TEXT,
        ),
        Category(
            name=get_optional_env("MAILCYCLE_CATEGORY_B_NAME", CATEGORY_B_NAME),
            address=get_required_env("MAILCYCLE_CATEGORY_B_ADDRESS", "CHARGES_EMAIL"),
            match_field=match_field,
            role=CategoryRole.ATTACHMENT,
        ),
    )
    if categories[0].name == categories[1].name:
        raise ConfigurationError("category names must be distinct")

    sender_backend = get_optional_env("MAILCYCLE_SENDER_BACKEND", "gmail").lower()
    if sender_backend not in ("gmail", "smtp"):
        raise ConfigurationError(f"unknown MAILCYCLE_SENDER_BACKEND: {sender_backend!r}")

    return Settings(
        categories=categories,
        target_email=get_required_env("MAILCYCLE_TARGET_EMAIL", "TARGET_EMAIL"),
        sender_email=get_required_env("MAILCYCLE_SENDER_EMAIL", "MY_EMAIL"),
        gmail_client_id=get_required_env("GMAIL_CLIENT_ID"),
        gmail_client_secret=get_required_env("GMAIL_CLIENT_SECRET"),
        gmail_refresh_token=get_required_env("GMAIL_REFRESH_TOKEN"),
        sender_backend=sender_backend,
        db_path=Path(get_optional_env("MAILCYCLE_DB_PATH", str(DB_PATH))),
        timezone=get_optional_env("MAILCYCLE_TIMEZONE", TIMEZONE),
        search_max_results=int(
            get_optional_env("MAILCYCLE_SEARCH_MAX_RESULTS", str(SEARCH_MAX_RESULTS))
        ),
        http_timeout_seconds=float(
            get_optional_env("MAILCYCLE_HTTP_TIMEOUT_SECONDS", str(HTTP_TIMEOUT_SECONDS))
        ),
        send_timeout_seconds=float(
            get_optional_env("MAILCYCLE_SEND_TIMEOUT_SECONDS", str(SEND_TIMEOUT_SECONDS))
        ),
        subject_template=validate_subject_template(
            get_optional_env("MAILCYCLE_SUBJECT_TEMPLATE", SUBJECT_TEMPLATE)
        ),
        greeting=get_optional_env("MAILCYCLE_GREETING", GREETING),
        signature=get_optional_env("MAILCYCLE_SIGNATURE", SIGNATURE),
    )
