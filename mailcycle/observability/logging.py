"""
Process-wide logging setup for mailcycle.

One stream handler on the root logger, level from MAILCYCLE_LOG_LEVEL.
Every record passes through an address-masking filter: this service logs
recipients, SMTP users and Gmail queries, and those must not land in the
scheduler's logs verbatim.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_EMAIL_PATTERN = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")


def mask_addresses(text: str) -> str:
    """
    Keep the first character of the local part and the domain.

    >>> mask_addresses("sent to hr@example.com")
    'sent to h***@example.com'
    """
    return _EMAIL_PATTERN.sub(r"\1***@\2", text)


class AddressMaskingFilter(logging.Filter):
    """Render the record's message once and mask any email addresses in it."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_addresses(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _resolve_level() -> int:
    level_name = os.getenv("MAILCYCLE_LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO")).upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the shared handler is attached on first call."""
    global _HANDLER_ATTACHED

    level = _resolve_level()
    root = logging.getLogger()

    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler.addFilter(AddressMaskingFilter())
        root.addHandler(handler)
        _HANDLER_ATTACHED = True
    root.setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
