"""Gmail API integration for the labeled contracts inbox."""

import asyncio
import base64
from email.message import EmailMessage
from typing import Any, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from src.config.settings import GmailConfig
from src.models.email import UNREAD_LABEL, EmailAttachment, InboxMessage
from src.utils.logging import get_logger

logger = get_logger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.labels",
    "https://www.googleapis.com/auth/gmail.send",
]


class AttachmentTooLargeError(Exception):
    """Attachment exceeds the configured size ceiling."""

    def __init__(self, filename: str, size_bytes: int, limit_bytes: int) -> None:
        self.filename = filename
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Attachment {filename} is {size_bytes:,} bytes, over the "
            f"{limit_bytes // (1024 * 1024)} MB limit ({limit_bytes:,} bytes)"
        )


def _collect_attachments(payload: dict[str, Any], message_id: str) -> list[EmailAttachment]:
    """Depth-first walk returning every part carrying a filename, in document order."""
    attachments = []
    stack = [payload]
    while stack:
        part = stack.pop()
        body = part.get("body", {})
        if part.get("filename") and (body.get("attachmentId") or body.get("data")):
            attachment_id = body.get("attachmentId")
            inline_data = None
            if not attachment_id:
                inline_data = base64.urlsafe_b64decode(body["data"])
            attachments.append(
                EmailAttachment(
                    message_id=message_id,
                    filename=part["filename"],
                    mime_type=part.get("mimeType", ""),
                    size_bytes=int(body.get("size", 0)),
                    attachment_id=attachment_id,
                    inline_data=inline_data,
                )
            )
        stack.extend(reversed(part.get("parts", [])))
    return attachments


def parse_message(message: dict[str, Any]) -> InboxMessage:
    """Convert a Gmail message resource (format=full) into an InboxMessage."""
    payload = message.get("payload", {})
    headers = {h["name"].lower(): h["value"] for h in payload.get("headers", [])}
    return InboxMessage(
        message_id=message["id"],
        thread_id=message.get("threadId", ""),
        sender=headers.get("from", ""),
        subject=headers.get("subject", ""),
        label_ids=message.get("labelIds", []),
        attachments=_collect_attachments(payload, message["id"]),
    )


class EmailService:
    """Gmail API access for labels, threads, attachments and notifications."""

    def __init__(self, config: GmailConfig, service: Optional[Any] = None) -> None:
        """Initialize Gmail API client."""
        self.config = config
        self.creds: Optional[Credentials] = None
        if service is not None:
            self.service = service
        else:
            self._authenticate()
            self.service = build("gmail", "v1", credentials=self.creds, cache_discovery=False)
        logger.info("Gmail service initialized")

    def _authenticate(self) -> None:
        """Authenticate with Gmail API using OAuth."""
        # Load existing token
        if self.config.token_path.exists():
            self.creds = Credentials.from_authorized_user_file(
                str(self.config.token_path), SCOPES
            )

        # Refresh or get new token
        if not self.creds or not self.creds.valid:
            if self.creds and self.creds.expired and self.creds.refresh_token:
                try:
                    self.creds.refresh(Request())
                    logger.info("Gmail token refreshed")

                    # Save refreshed token
                    self.config.token_path.parent.mkdir(parents=True, exist_ok=True)
                    with open(self.config.token_path, "w") as token:
                        token.write(self.creds.to_json())
                except Exception as e:
                    logger.error("Failed to refresh Gmail token", error=str(e))
                    raise RuntimeError(
                        "Gmail token refresh failed. Please run "
                        "'python scripts/gmail_auth.py' to reauthorize."
                    ) from e
            else:
                # Cannot run browser-based OAuth in headless environment
                raise RuntimeError(
                    "Gmail token not found or invalid. Please run "
                    "'python scripts/gmail_auth.py' on a machine with a browser "
                    "to generate the token, then copy it to GMAIL_TOKEN_PATH."
                )

    async def get_or_create_label(self, label_name: str) -> tuple[str, bool]:
        """
        Resolve a label by name, creating it when missing.

        Returns:
            (label_id, created)
        """
        try:
            results = await asyncio.to_thread(
                lambda: self.service.users().labels().list(userId="me").execute()
            )
            for label in results.get("labels", []):
                if label["name"] == label_name:
                    return label["id"], False

            label = await asyncio.to_thread(
                lambda: self.service.users()
                .labels()
                .create(
                    userId="me",
                    body={
                        "name": label_name,
                        "labelListVisibility": "labelShow",
                        "messageListVisibility": "show",
                    },
                )
                .execute()
            )

            logger.info("Created new label", label_name=label_name)
            return label["id"], True

        except Exception as e:
            logger.error("Failed to get/create label", label_name=label_name, error=str(e))
            raise

    async def search_unread_threads(self, label_id: str, max_results: int) -> list[str]:
        """Thread ids carrying the label and at least one unread message."""
        results = await asyncio.to_thread(
            lambda: self.service.users()
            .threads()
            .list(
                userId="me",
                labelIds=[label_id, UNREAD_LABEL],
                maxResults=max_results,
            )
            .execute()
        )
        thread_ids = [t["id"] for t in results.get("threads", [])]
        logger.info("Searched labeled threads", label_id=label_id, found_threads=len(thread_ids))
        return thread_ids[:max_results]

    async def get_thread_messages(self, thread_id: str) -> list[InboxMessage]:
        """All messages of a thread with their attachment metadata."""
        thread = await asyncio.to_thread(
            lambda: self.service.users()
            .threads()
            .get(userId="me", id=thread_id, format="full")
            .execute()
        )
        return [parse_message(m) for m in thread.get("messages", [])]

    async def fetch_attachment(self, attachment: EmailAttachment) -> bytes:
        """Raw attachment bytes."""
        if attachment.inline_data is not None:
            return attachment.inline_data

        try:
            result = await asyncio.to_thread(
                lambda: self.service.users()
                .messages()
                .attachments()
                .get(
                    userId="me",
                    messageId=attachment.message_id,
                    id=attachment.attachment_id,
                )
                .execute()
            )
            data = base64.urlsafe_b64decode(result["data"])
            logger.info(
                "Attachment downloaded",
                message_id=attachment.message_id,
                filename=attachment.filename,
                size_bytes=len(data),
            )
            return data

        except Exception as e:
            logger.error(
                "Failed to download attachment",
                message_id=attachment.message_id,
                filename=attachment.filename,
                error=str(e),
            )
            raise

    async def mark_as_read(self, message_id: str) -> None:
        """Remove the UNREAD label from a message."""
        await asyncio.to_thread(
            lambda: self.service.users()
            .messages()
            .modify(userId="me", id=message_id, body={"removeLabelIds": [UNREAD_LABEL]})
            .execute()
        )
        logger.debug("Message marked as read", message_id=message_id)

    async def swap_thread_labels(self, thread_id: str, add_label_id: str, remove_label_id: str) -> None:
        """Add one label and remove another in a single modify call."""
        await asyncio.to_thread(
            lambda: self.service.users()
            .threads()
            .modify(
                userId="me",
                id=thread_id,
                body={"addLabelIds": [add_label_id], "removeLabelIds": [remove_label_id]},
            )
            .execute()
        )
        logger.info("Thread relabeled", thread_id=thread_id)

    async def send_email(self, to: str, subject: str, body: str) -> str:
        """Send a plain-text email from the authenticated account."""
        msg = EmailMessage()
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii")

        sent = await asyncio.to_thread(
            lambda: self.service.users()
            .messages()
            .send(userId="me", body={"raw": raw})
            .execute()
        )
        logger.info("Email sent", to=to, message_id=sent.get("id"))
        return sent.get("id", "")
