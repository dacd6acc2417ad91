"""
Composer - builds and dispatches the monthly notification.

compose() is pure with respect to persisted state: it reads the two arrival
records and fetches message content, nothing more. send() is the only place
that both talks to the mail sender and advances the Completion Gate, in that
order, so a failed dispatch never marks the period complete.
"""

from __future__ import annotations

import mimetypes
import os
from collections.abc import Callable
from datetime import datetime
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import format_datetime, make_msgid

from mailcycle.cycle.adapters import MailSender, MailSource
from mailcycle.cycle.errors import (
    AttachmentNotFound,
    CategoryContentNotFound,
    PrerequisiteViolation,
)
from mailcycle.cycle.gate import CompletionGate
from mailcycle.delivery.models import ComposedMessage
from mailcycle.gmail.models import MailMessage, MessagePart
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter, hash_id, log_event, time_block
from mailcycle.storage.models import ArrivalRecord, Category, utc_now
from mailcycle.storage.state_store import StateStore
from mailcycle.utils.html import html_to_text

logger = get_logger(__name__)

DEFAULT_SUBJECT_TEMPLATE = "Reimbursement Request for {period}"
DEFAULT_GREETING = "Dear HR Team,"
DEFAULT_SIGNATURE = "Best regards,\nAutomated System"


def attachment_filename(category_name: str, period: str, source: MessagePart) -> str:
    """
    Name the outgoing attachment `<category>-<period><ext>`.

    The extension comes from the source filename, else from the media type,
    else falls back to .bin.
    """
    ext = os.path.splitext(source.filename)[1] if source.filename else ""
    if not ext:
        ext = mimetypes.guess_extension(source.mime_type) or ".bin"
    return f"{category_name.lower()}-{period}{ext}"


def extract_text(message: MailMessage) -> str | None:
    """Primary readable text: text/plain first, text/html converted second."""
    plain = message.first_part("text/plain")
    if plain is not None:
        text = plain.text().strip()
        if text:
            return text

    html = message.first_part("text/html")
    if html is not None:
        text = html_to_text(html.text())
        if text:
            return text

    return None


class Composer:
    """Builds the combined message from the text and attachment categories."""

    def __init__(
        self,
        store: StateStore,
        source: MailSource,
        sender: MailSender,
        gate: CompletionGate,
        text_category: Category,
        attachment_category: Category,
        to_address: str,
        from_address: str,
        subject_template: str = DEFAULT_SUBJECT_TEMPLATE,
        greeting: str = DEFAULT_GREETING,
        signature: str = DEFAULT_SIGNATURE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.source = source
        self.sender = sender
        self.gate = gate
        self.text_category = text_category
        self.attachment_category = attachment_category
        self.to_address = to_address
        self.from_address = from_address
        self.subject_template = subject_template
        self.greeting = greeting
        self.signature = signature
        self.clock = clock

    def compose(self, period: str) -> ComposedMessage:
        """
        Build the notification for `period`.

        Raises:
            PrerequisiteViolation: If either category is not recorded as received
            CategoryContentNotFound: If the text message has no readable text
            AttachmentNotFound: If the attachment message has no attachment part
            TransientAdapterError: If the store or mail source is unavailable
        """
        text_record = self._require_received(period, self.text_category.name)
        attachment_record = self._require_received(period, self.attachment_category.name)

        with time_block("composer.compose"):
            text_message = self.source.fetch_message(text_record.message_id)
            body_text = extract_text(text_message)
            if body_text is None:
                raise CategoryContentNotFound(
                    f"{self.text_category.name} message for {period} has no readable text"
                )

            attachment_message = self.source.fetch_message(attachment_record.message_id)
            part = attachment_message.first_attachment()
            if part is None:
                raise AttachmentNotFound(
                    f"{self.attachment_category.name} message for {period} has no attachment"
                )
            payload = self._attachment_bytes(attachment_record.message_id, part)

            filename = attachment_filename(self.attachment_category.name, period, part)
            mime = self._build_mime(period, body_text, part.mime_type, payload, filename)

        log_event(
            "composer.composed",
            period=period,
            attachment_bytes=len(payload),
            attachment_mime_type=part.mime_type,
        )
        counter("composer.composed")

        return ComposedMessage(
            period=period,
            to_address=self.to_address,
            from_address=self.from_address,
            subject=mime["Subject"],
            attachment_filename=filename,
            attachment_mime_type=part.mime_type,
            mime=mime,
        )

    def send(self, period: str, message: ComposedMessage) -> None:
        """
        Dispatch `message`, then mark `period` COMPLETE.

        If dispatch raises, the gate is not touched and the error propagates.
        """
        with time_block("composer.send"):
            provider_id = self.sender.send(message)

        logger.info("Sent reimbursement request for %s to %s", period, message.to_address)
        log_event(
            "composer.sent",
            period=period,
            provider_id_hash=hash_id(provider_id) if provider_id else None,
        )
        counter("composer.sent")

        self.gate.mark_complete(period)

    def _require_received(self, period: str, category: str) -> ArrivalRecord:
        record = self.store.get_arrival(period, category)
        if record is None or not record.received or not record.message_id:
            raise PrerequisiteViolation(f"{category} not received for {period}")
        return record

    def _attachment_bytes(self, message_id: str, part: MessagePart) -> bytes:
        if part.data is not None:
            return part.data
        if part.attachment_id:
            return self.source.fetch_attachment(message_id, part.attachment_id)
        raise AttachmentNotFound(f"attachment {part.filename or part.mime_type} has no content")

    def _build_mime(
        self,
        period: str,
        body_text: str,
        mime_type: str,
        payload: bytes,
        filename: str,
    ) -> MIMEMultipart:
        mime = MIMEMultipart("mixed")
        mime["From"] = self.from_address
        mime["To"] = self.to_address
        mime["Subject"] = self.subject_template.format(period=period)
        mime["Date"] = format_datetime(self.clock())
        mime["Message-ID"] = make_msgid(domain=self.from_address.rpartition("@")[2] or None)

        body = (
            f"{self.greeting}\n\n"
            f"Please find the reimbursement details for {period}:\n\n"
            f"{body_text}\n\n"
            f"{self.signature}\n"
        )
        mime.attach(MIMEText(body, "plain", "utf-8"))

        maintype, _, subtype = mime_type.partition("/")
        if not maintype or not subtype:
            maintype, subtype = "application", "octet-stream"
        attachment = MIMEBase(maintype, subtype)
        attachment.set_payload(payload)
        encoders.encode_base64(attachment)
        attachment.add_header("Content-Disposition", "attachment", filename=filename)
        mime.attach(attachment)

        return mime
