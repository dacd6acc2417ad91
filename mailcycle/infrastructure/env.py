"""
Centralized environment variable loader for mailcycle.

Entry points call ensure_env_loaded() before reading settings.

Side Effects:
    - Loads .env file from the nearest parent directory that has one
    - Fails fast with ConfigurationError when a required variable is missing

Usage:
    from mailcycle.infrastructure.env import ensure_env_loaded, get_required_env

    ensure_env_loaded()
    client_id = get_required_env("GMAIL_CLIENT_ID")
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from mailcycle.cycle.errors import ConfigurationError

_ENV_LOADED = False


def ensure_env_loaded(env_path: Path | None = None) -> None:
    """
    Ensure .env file is loaded exactly once.

    Args:
        env_path: Optional path to .env file. If None, searches upward from the cwd.

    Side Effects:
        - Loads environment variables from .env file (existing vars win)
        - Sets module-level flag to prevent double-loading
    """
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    if env_path is None:
        current = Path.cwd().resolve()
        for candidate_dir in [current, *current.parents]:
            env_candidate = candidate_dir / ".env"
            if env_candidate.exists():
                env_path = env_candidate
                break

    if env_path and env_path.exists():
        load_dotenv(env_path)
    _ENV_LOADED = True


def reset_env_loaded() -> None:
    """Allow a fresh .env load (tests only)."""
    global _ENV_LOADED
    _ENV_LOADED = False


def get_required_env(key: str, fallback_key: str | None = None) -> str:
    """
    Get required environment variable or raise ConfigurationError.

    Args:
        key: Environment variable name
        fallback_key: Older/alternate name checked when `key` is unset

    Returns:
        Environment variable value
    """
    ensure_env_loaded()
    value = os.getenv(key) or (os.getenv(fallback_key) if fallback_key else None)
    if not value:
        names = f"{key} (or {fallback_key})" if fallback_key else key
        raise ConfigurationError(f"{names} not found in environment or .env")
    return value


def get_optional_env(key: str, default: str = "") -> str:
    """
    Get optional environment variable with default value.
    """
    ensure_env_loaded()
    return os.getenv(key, default)
