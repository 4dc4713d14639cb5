"""Inbox message and attachment models."""

from pathlib import PurePath
from typing import Optional

from pydantic import BaseModel, Field

UNREAD_LABEL = "UNREAD"

DOCUMENT_MIME_TYPES = frozenset({"application/pdf"})
DOCUMENT_EXTENSIONS = frozenset({".pdf"})


class EmailAttachment(BaseModel):
    """Attachment details from a Gmail message part."""

    message_id: str
    filename: str
    mime_type: str
    size_bytes: int = 0
    attachment_id: Optional[str] = None
    # Small parts are delivered inline by Gmail and never need a second fetch
    inline_data: Optional[bytes] = None

    @property
    def is_document(self) -> bool:
        """True when the media type or extension identifies a PDF."""
        if self.mime_type.lower() in DOCUMENT_MIME_TYPES:
            return True
        return PurePath(self.filename).suffix.lower() in DOCUMENT_EXTENSIONS


class InboxMessage(BaseModel):
    """A single message inside a labeled Gmail thread."""

    message_id: str
    thread_id: str
    sender: str = ""
    subject: str = ""
    label_ids: list[str] = Field(default_factory=list)
    attachments: list[EmailAttachment] = Field(default_factory=list)

    @property
    def is_unread(self) -> bool:
        return UNREAD_LABEL in self.label_ids

    @property
    def document_attachments(self) -> list[EmailAttachment]:
        return [a for a in self.attachments if a.is_document]
