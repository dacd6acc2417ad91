"""
Error taxonomy for the monthly mail cycle.

Every error aborts the current invocation; none of them is retried inside a
run. The next scheduled run resumes from persisted state.
"""

from __future__ import annotations


class MailCycleError(Exception):
    """Base exception for mail cycle errors."""

    pass


class ConfigurationError(MailCycleError):
    """A required setting is missing or malformed."""

    pass


class TransientAdapterError(MailCycleError):
    """Store, mail source or mail sender unavailable or rate-limited."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CycleTimeoutError(TransientAdapterError):
    """Compose-and-send did not finish within its deadline."""

    pass


class ContentShapeError(MailCycleError):
    """A fetched message lacks the part it is expected to carry."""

    pass


class CategoryContentNotFound(ContentShapeError):
    """No readable text part in the text category's message."""

    pass


class AttachmentNotFound(ContentShapeError):
    """No attachment part in the attachment category's message."""

    pass


class MessageParseError(ContentShapeError):
    """Provider payload could not be converted into a MailMessage."""

    pass


class PrerequisiteViolation(MailCycleError):
    """Composer invoked before every category was confirmed received."""

    pass


MissingPrerequisite = PrerequisiteViolation
