"""
Invoice sharing over WhatsApp.

``ShareDispatcher`` picks the channel for an invoice and always returns a
``ShareResult``; channel failures are reported, never raised.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from kirana.config import settings
from kirana.exceptions import BillingException, DocumentNotReadyError, ShareFailedError
from kirana.schemas.invoice import Invoice

logger = logging.getLogger(__name__)

CONTACT_CHANNEL = "whatsapp_contact"
GENERIC_CHANNEL = "whatsapp_generic"


@dataclass(frozen=True)
class ShareResult:
    """Outcome of one share attempt."""

    success: bool
    channel: Optional[str] = None
    message_id: Optional[str] = None
    link: Optional[str] = None
    error: Optional[BillingException] = None

    @classmethod
    def ok(cls, channel: str, message_id: Optional[str] = None, link: Optional[str] = None) -> "ShareResult":
        return cls(success=True, channel=channel, message_id=message_id, link=link)

    @classmethod
    def failed(cls, error: BillingException, channel: Optional[str] = None) -> "ShareResult":
        return cls(success=False, channel=channel, error=error)

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error.detail) if self.error else None


def clean_phone_number(phone: str) -> str:
    """Strip everything but digits and a leading plus."""
    return re.sub(r"[^0-9+]", "", phone)


class DocumentSharer(ABC):
    """A channel that can deliver an invoice PDF."""

    @abstractmethod
    async def share_to_contact(self, pdf_path: str, phone: str) -> ShareResult:
        """Deliver the document to one customer."""

    @abstractmethod
    async def share_generic(self, pdf_path: str) -> ShareResult:
        """Hand the document off without a recipient."""


class TwilioWhatsAppSharer(DocumentSharer):
    """Sends invoice PDFs through the Twilio WhatsApp API."""

    def __init__(self):
        self.account_sid = settings.TWILIO_ACCOUNT_SID
        self.auth_token = settings.TWILIO_AUTH_TOKEN
        self.whatsapp_number = settings.TWILIO_WHATSAPP_NUMBER
        self.document_base_url = settings.DOCUMENT_BASE_URL.rstrip("/")

        if self.account_sid and self.auth_token:
            self.client = Client(self.account_sid, self.auth_token)
        else:
            self.client = None
            logger.warning("Twilio credentials not configured")

    @property
    def is_configured(self) -> bool:
        return self.client is not None and bool(self.whatsapp_number)

    def _document_url(self, pdf_path: str) -> str:
        return f"{self.document_base_url}/{quote(os.path.basename(pdf_path))}"

    async def share_to_contact(self, pdf_path: str, phone: str) -> ShareResult:
        if not os.path.exists(pdf_path):
            return ShareResult.failed(ShareFailedError(CONTACT_CHANNEL, "PDF file not found"), CONTACT_CHANNEL)
        if not self.is_configured:
            return ShareResult.failed(
                ShareFailedError(CONTACT_CHANNEL, "Twilio WhatsApp not configured"), CONTACT_CHANNEL
            )

        to = f"whatsapp:{clean_phone_number(phone)}"
        try:
            message = self.client.messages.create(
                to=to,
                from_=f"whatsapp:{self.whatsapp_number}",
                body="Here is your invoice. Thank you!",
                media_url=[self._document_url(pdf_path)],
            )
            logger.info(f"WhatsApp invoice sent: {message.sid} to {to}")
            return ShareResult.ok(CONTACT_CHANNEL, message_id=message.sid)
        except TwilioRestException as e:
            logger.error(f"Twilio error: {e.msg}")
            return ShareResult.failed(ShareFailedError(CONTACT_CHANNEL, e.msg), CONTACT_CHANNEL)

    async def share_generic(self, pdf_path: str) -> ShareResult:
        if not os.path.exists(pdf_path):
            return ShareResult.failed(ShareFailedError(GENERIC_CHANNEL, "PDF file not found"), GENERIC_CHANNEL)

        name = os.path.splitext(os.path.basename(pdf_path))[0]
        text = f"Invoice: {name} {self._document_url(pdf_path)}"
        return ShareResult.ok(GENERIC_CHANNEL, link=f"https://wa.me/?text={quote(text)}")


class MockDocumentSharer(DocumentSharer):
    """Mock sharing channel for testing."""

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self._shared = []

    async def share_to_contact(self, pdf_path: str, phone: str) -> ShareResult:
        self._shared.append({"channel": CONTACT_CHANNEL, "pdf_path": pdf_path, "phone": phone})
        if self.fail_with:
            return ShareResult.failed(ShareFailedError(CONTACT_CHANNEL, self.fail_with), CONTACT_CHANNEL)
        logger.info(f"Mock invoice shared to {phone}")
        return ShareResult.ok(CONTACT_CHANNEL, message_id=f"SM{len(self._shared):032d}")

    async def share_generic(self, pdf_path: str) -> ShareResult:
        self._shared.append({"channel": GENERIC_CHANNEL, "pdf_path": pdf_path, "phone": None})
        if self.fail_with:
            return ShareResult.failed(ShareFailedError(GENERIC_CHANNEL, self.fail_with), GENERIC_CHANNEL)
        return ShareResult.ok(GENERIC_CHANNEL, link=f"https://wa.me/?text={quote(pdf_path)}")


class ShareDispatcher:
    """Routes an invoice to the contact or generic channel of a sharer."""

    def __init__(self, sharer: DocumentSharer):
        self.sharer = sharer

    async def share_invoice(self, invoice: Invoice) -> ShareResult:
        if not invoice.pdf_path:
            logger.warning(f"Share skipped for invoice {invoice.display_number}: PDF not generated")
            return ShareResult.failed(DocumentNotReadyError(invoice.display_number))

        try:
            if invoice.customer_phone:
                result = await self.sharer.share_to_contact(invoice.pdf_path, invoice.customer_phone)
            else:
                result = await self.sharer.share_generic(invoice.pdf_path)
        except BillingException as e:
            result = ShareResult.failed(e)
        except Exception as e:
            result = ShareResult.failed(ShareFailedError("whatsapp", str(e) or type(e).__name__))

        if not result.success:
            logger.error(f"Share failed for invoice {invoice.display_number}: {result.error_message}")
        return result
