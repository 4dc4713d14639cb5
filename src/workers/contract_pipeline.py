"""Inbox-to-worksheet pipeline for purchase agreement attachments."""

import asyncio
import base64
import random
import uuid
from typing import Awaitable, Callable, Optional

import structlog

from src.config.settings import Settings, load_settings
from src.models.email import EmailAttachment, InboxMessage
from src.models.summary import RunSummary
from src.services.email_service import AttachmentTooLargeError, EmailService
from src.services.extraction_service import ExtractionService
from src.services.notification_service import NotificationService
from src.services.sheets_service import SheetsService
from src.utils.logging import configure_logging, get_logger
from src.utils.retry import call_with_rate_limit_retry
from src.utils.row_mapper import map_extraction_to_row

logger = get_logger(__name__)


class ContractPipeline:
    """
    One bounded pass over the labeled inbox.

    Steps per run:
    1. Resolve the unprocessed label (a freshly created label ends the run)
    2. Resolve the processed label
    3. List up to ``max_threads`` threads that are labeled and unread
    4. For each unread message, analyze every PDF attachment and commit
       non-duplicate rows
    5. Mark each scanned message read, then swap the thread's labels
    6. Email the run summary when configured

    Per-attachment failures are recorded in the summary and never stop
    sibling attachments, messages or threads.
    """

    def __init__(
        self,
        settings: Settings,
        email_service: EmailService,
        extraction_service: ExtractionService,
        sheets_service: SheetsService,
        notification_service: Optional[NotificationService] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.email_service = email_service
        self.extraction_service = extraction_service
        self.sheets_service = sheets_service
        self.notification_service = notification_service or NotificationService(
            settings.notification, email_service
        )
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContractPipeline":
        """Wire the pipeline against the real Google and Anthropic services."""
        email_service = EmailService(settings.gmail)
        return cls(
            settings=settings,
            email_service=email_service,
            extraction_service=ExtractionService(settings.anthropic),
            sheets_service=SheetsService(settings.sheets),
            notification_service=NotificationService(settings.notification, email_service),
        )

    async def run(self) -> Optional[RunSummary]:
        """
        Execute one pipeline pass.

        Returns:
            The run summary, or None when the inbox label was just created

        Raises:
            Exception: Label resolution or thread search failures abort the run
        """
        gmail = self.settings.gmail
        with structlog.contextvars.bound_contextvars(run_id=uuid.uuid4().hex[:12]):
            try:
                inbox_label_id, created = await self.email_service.get_or_create_label(
                    gmail.inbox_label
                )
                if created:
                    logger.info(
                        "Inbox label created, nothing to process yet",
                        label=gmail.inbox_label,
                    )
                    return None

                processed_label_id, _ = await self.email_service.get_or_create_label(
                    gmail.processed_label
                )
                thread_ids = await self.email_service.search_unread_threads(
                    inbox_label_id, gmail.max_threads
                )
            except Exception as e:
                logger.error("Pipeline discovery failed, aborting run", error=str(e))
                raise

            summary = RunSummary()
            logger.info("Pipeline run started", threads=len(thread_ids))

            for thread_id in thread_ids:
                try:
                    await self._process_thread(
                        thread_id, inbox_label_id, processed_label_id, summary
                    )
                except Exception as e:
                    logger.error("Failed to process thread", thread_id=thread_id, error=str(e))

            logger.info(
                "Pipeline run finished",
                committed=summary.committed_count,
                duplicates=summary.skipped_count,
                failures=len(summary.failures),
            )

            try:
                await self.notification_service.notify(summary)
            except Exception as e:
                logger.error("Failed to send run summary", error=str(e))

            return summary

    async def _process_thread(
        self,
        thread_id: str,
        inbox_label_id: str,
        processed_label_id: str,
        summary: RunSummary,
    ) -> None:
        messages = await self.email_service.get_thread_messages(thread_id)

        for message in messages:
            if not message.is_unread:
                logger.debug("Skipping read message", message_id=message.message_id)
                continue
            await self._process_message(message, summary)

        await self.email_service.swap_thread_labels(
            thread_id, add_label_id=processed_label_id, remove_label_id=inbox_label_id
        )

    async def _process_message(self, message: InboxMessage, summary: RunSummary) -> None:
        documents = message.document_attachments
        if not documents:
            logger.info("No document attachments", message_id=message.message_id)
        else:
            logger.info(
                "Processing message",
                message_id=message.message_id,
                sender=message.sender,
                attachments=len(documents),
            )

        for attachment in documents:
            await self._process_attachment(message, attachment, summary)

        await self.email_service.mark_as_read(message.message_id)

    async def _process_attachment(
        self,
        message: InboxMessage,
        attachment: EmailAttachment,
        summary: RunSummary,
    ) -> None:
        limit = self.settings.gmail.max_attachment_size_bytes
        anthropic = self.settings.anthropic
        try:
            if attachment.size_bytes > limit:
                raise AttachmentTooLargeError(attachment.filename, attachment.size_bytes, limit)

            content = await self.email_service.fetch_attachment(attachment)
            if len(content) > limit:
                raise AttachmentTooLargeError(attachment.filename, len(content), limit)

            encoded = base64.b64encode(content).decode("ascii")
            result = await call_with_rate_limit_retry(
                self.extraction_service.analyze_document,
                encoded,
                max_attempts=anthropic.max_attempts,
                initial_backoff=anthropic.initial_backoff_seconds,
                sleep=self._sleep,
            )
            row = map_extraction_to_row(
                result, attachment.filename, message.subject, message.sender
            )

            if await self.sheets_service.is_duplicate(row.property_address, row.contract_date):
                logger.info(
                    "Duplicate contract, skipping commit",
                    filename=attachment.filename,
                    address=row.property_address,
                    contract_date=row.contract_date,
                )
                summary.add_success(
                    attachment.filename,
                    message.subject,
                    address=row.property_address,
                    price=row.offer_price,
                    skipped=True,
                )
                return

            await self.sheets_service.append_row(row)
            summary.add_success(
                attachment.filename,
                message.subject,
                address=row.property_address,
                price=row.offer_price,
            )
            logger.info(
                "Contract committed",
                filename=attachment.filename,
                address=row.property_address,
            )

        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(
                "Failed to process attachment",
                message_id=message.message_id,
                filename=attachment.filename,
                error_type=type(e).__name__,
                error=error,
            )
            summary.add_failure(attachment.filename, message.subject, error)


class ContractPollerWorker:
    """Runs the pipeline on a fixed interval until stopped."""

    def __init__(
        self,
        pipeline_factory: Callable[[], ContractPipeline],
        poll_interval: float,
    ) -> None:
        self.pipeline_factory = pipeline_factory
        self.poll_interval = poll_interval
        self.running = False

    async def run(self) -> None:
        """Main worker loop."""
        self.running = True
        logger.info("Contract poller started", poll_interval=self.poll_interval)

        while self.running:
            try:
                await self.pipeline_factory().run()
            except Exception as e:
                logger.error("Polling cycle error", error=str(e))

            # ±20% jitter
            await asyncio.sleep(self.poll_interval * random.uniform(0.8, 1.2))

        logger.info("Contract poller stopped")

    async def stop(self) -> None:
        """Stop worker gracefully."""
        logger.info("Stopping contract poller...")
        self.running = False


def build_pipeline() -> ContractPipeline:
    """Fresh settings and services for one invocation."""
    return ContractPipeline.from_settings(load_settings())


async def main() -> None:
    """Run the pipeline once (for cron or other external schedulers)."""
    settings = load_settings()
    configure_logging(settings.app)
    await ContractPipeline.from_settings(settings).run()


if __name__ == "__main__":
    asyncio.run(main())
