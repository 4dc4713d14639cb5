"""
Integration tests for the inbox-to-worksheet pipeline

Gmail and the extraction endpoint are mocked; the worksheet is in-memory.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.contract import ROW_HEADERS
from src.models.email import EmailAttachment, InboxMessage
from src.services.email_service import EmailService
from src.services.extraction_service import (
    ExtractionService,
    MalformedResponseError,
    RateLimitedError,
)
from src.services.notification_service import NotificationService
from src.services.sheets_service import SheetsService
from src.workers.contract_pipeline import ContractPipeline


def _attachment(message_id, filename="contract.pdf", size=2048, mime="application/pdf"):
    return EmailAttachment(
        message_id=message_id,
        filename=filename,
        mime_type=mime,
        size_bytes=size,
        attachment_id=f"att_{filename}",
    )


def _message(message_id, attachments, unread=True, thread_id="t1"):
    labels = ["Label_U"] + (["UNREAD"] if unread else [])
    return InboxMessage(
        message_id=message_id,
        thread_id=thread_id,
        sender="Alex Agent <alex@realty.example.com>",
        subject=f"Offer {message_id}",
        label_ids=labels,
        attachments=attachments,
    )


class RecordingSleep:
    def __init__(self):
        self.durations = []

    async def __call__(self, seconds):
        self.durations.append(seconds)


@pytest.fixture
def email_service():
    service = MagicMock(spec=EmailService)

    async def get_or_create_label(name):
        return ("Label_P" if name.endswith("Processed") else "Label_U"), False

    service.get_or_create_label = AsyncMock(side_effect=get_or_create_label)
    service.search_unread_threads = AsyncMock(return_value=["t1"])
    service.get_thread_messages = AsyncMock(return_value=[])
    service.fetch_attachment = AsyncMock(return_value=b"%PDF-1.7 contract")
    service.mark_as_read = AsyncMock()
    service.swap_thread_labels = AsyncMock()
    service.send_email = AsyncMock(return_value="sent_1")
    return service


@pytest.fixture
def extraction_service(sample_extraction):
    service = MagicMock(spec=ExtractionService)
    service.analyze_document = AsyncMock(return_value=sample_extraction)
    return service


@pytest.fixture
def worksheet(fake_worksheet):
    return fake_worksheet


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_pipeline(settings, email_service, extraction_service, worksheet, sleep):
    def _make(notify_email=None):
        config = settings.notification.model_copy(update={"notify_email": notify_email})
        return ContractPipeline(
            settings=settings,
            email_service=email_service,
            extraction_service=extraction_service,
            sheets_service=SheetsService(settings.sheets, worksheet=worksheet),
            notification_service=NotificationService(config, email_service),
            sleep=sleep,
        )

    return _make


@pytest.mark.integration
@pytest.mark.worker
class TestContractPipeline:
    """Test suite for ContractPipeline.run()"""

    @pytest.mark.asyncio
    async def test_new_label_ends_run(self, make_pipeline, email_service):
        """
        Given: Inbox label does not exist yet
        When: run() is called
        Then: Label created, no search performed, None returned
        """
        email_service.get_or_create_label = AsyncMock(return_value=("Label_U", True))

        assert await make_pipeline().run() is None
        email_service.search_unread_threads.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_uses_cap(self, make_pipeline, email_service, settings):
        email_service.search_unread_threads = AsyncMock(return_value=[])

        summary = await make_pipeline().run()

        assert summary.is_empty
        email_service.search_unread_threads.assert_awaited_once_with(
            "Label_U", settings.gmail.max_threads
        )

    @pytest.mark.asyncio
    async def test_discovery_failure_aborts(self, make_pipeline, email_service):
        email_service.search_unread_threads = AsyncMock(side_effect=RuntimeError("gmail down"))

        with pytest.raises(RuntimeError, match="gmail down"):
            await make_pipeline().run()

    @pytest.mark.asyncio
    async def test_attachment_committed(self, make_pipeline, email_service, worksheet):
        """
        Given: One unread message with a PDF
        When: run() is called
        Then: Row committed, message marked read, thread relabeled
        """
        email_service.get_thread_messages = AsyncMock(
            return_value=[_message("m1", [_attachment("m1")])]
        )

        summary = await make_pipeline().run()

        assert len(summary.successes) == 1
        assert summary.successes[0].skipped is False
        assert summary.successes[0].address == "123 Main St, Atlanta, GA, 30301"
        assert summary.successes[0].price == 450000
        assert worksheet.values[0] == list(ROW_HEADERS)
        assert len(worksheet.values) == 2
        email_service.mark_as_read.assert_awaited_once_with("m1")
        email_service.swap_thread_labels.assert_awaited_once_with(
            "t1", add_label_id="Label_P", remove_label_id="Label_U"
        )

    @pytest.mark.asyncio
    async def test_same_address_and_date_second_is_skipped(self, make_pipeline, email_service, worksheet):
        """
        Given: Two attachments for "123 Main St" with contract date 2024-01-05
        When: run() is called
        Then: Second recorded as skipped success and not appended
        """
        email_service.get_thread_messages = AsyncMock(
            return_value=[
                _message("m1", [_attachment("m1", "offer.pdf"), _attachment("m1", "offer-copy.pdf")])
            ]
        )

        summary = await make_pipeline().run()

        assert [s.skipped for s in summary.successes] == [False, True]
        assert len(worksheet.values) == 2  # header + one row

    @pytest.mark.asyncio
    async def test_oversized_attachment_never_reaches_endpoint(
        self, make_pipeline, email_service, extraction_service
    ):
        """
        Given: 21,000,000 byte attachment
        When: run() is called
        Then: Size-limit failure recorded, extraction and download never called
        """
        email_service.get_thread_messages = AsyncMock(
            return_value=[_message("m1", [_attachment("m1", "scan.pdf", size=21_000_000)])]
        )

        summary = await make_pipeline().run()

        assert len(summary.failures) == 1
        assert "limit" in summary.failures[0].error
        extraction_service.analyze_document.assert_not_awaited()
        email_service.fetch_attachment.assert_not_awaited()
        email_service.mark_as_read.assert_awaited_once_with("m1")

    @pytest.mark.asyncio
    async def test_fetched_size_is_checked_too(self, make_pipeline, email_service, extraction_service):
        email_service.fetch_attachment = AsyncMock(return_value=b"x" * 21_000_000)
        email_service.get_thread_messages = AsyncMock(
            return_value=[_message("m1", [_attachment("m1", size=0)])]
        )

        summary = await make_pipeline().run()

        assert len(summary.failures) == 1
        extraction_service.analyze_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_does_not_block_siblings(
        self, make_pipeline, email_service, extraction_service, sample_extraction
    ):
        email_service.get_thread_messages = AsyncMock(
            return_value=[
                _message("m1", [_attachment("m1", "bad.pdf"), _attachment("m1", "good.pdf")]),
            ]
        )
        extraction_service.analyze_document = AsyncMock(
            side_effect=[MalformedResponseError("Response is not valid JSON"), sample_extraction]
        )

        summary = await make_pipeline().run()

        assert [f.filename for f in summary.failures] == ["bad.pdf"]
        assert summary.failures[0].error == "Response is not valid JSON"
        assert [s.filename for s in summary.successes] == ["good.pdf"]

    @pytest.mark.asyncio
    async def test_rate_limit_retried_with_backoff(
        self, make_pipeline, email_service, extraction_service, sample_extraction, sleep
    ):
        email_service.get_thread_messages = AsyncMock(
            return_value=[_message("m1", [_attachment("m1")])]
        )
        extraction_service.analyze_document = AsyncMock(
            side_effect=[RateLimitedError(429), RateLimitedError(529), sample_extraction]
        )

        summary = await make_pipeline().run()

        assert len(summary.successes) == 1
        assert sleep.durations == [5, 10]

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted_is_failure(
        self, make_pipeline, email_service, extraction_service
    ):
        email_service.get_thread_messages = AsyncMock(
            return_value=[_message("m1", [_attachment("m1")])]
        )
        extraction_service.analyze_document = AsyncMock(side_effect=RateLimitedError(429))

        summary = await make_pipeline().run()

        assert len(summary.failures) == 1
        assert "Rate limited" in summary.failures[0].error
        assert extraction_service.analyze_document.await_count == 3

    @pytest.mark.asyncio
    async def test_read_messages_skipped_and_non_documents_marked_read(
        self, make_pipeline, email_service, extraction_service
    ):
        """
        Given: A read message and an unread message without PDFs
        When: run() is called
        Then: Read message untouched, unread one marked read, no summary entries
        """
        email_service.get_thread_messages = AsyncMock(
            return_value=[
                _message("m_read", [_attachment("m_read")], unread=False),
                _message("m_img", [_attachment("m_img", "photo.jpg", mime="image/jpeg")]),
            ]
        )

        summary = await make_pipeline().run()

        assert summary.is_empty
        email_service.mark_as_read.assert_awaited_once_with("m_img")
        extraction_service.analyze_document.assert_not_awaited()
        email_service.swap_thread_labels.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_extension_identifies_document(self, make_pipeline, email_service):
        email_service.get_thread_messages = AsyncMock(
            return_value=[
                _message("m1", [_attachment("m1", "Offer.PDF", mime="application/octet-stream")])
            ]
        )

        summary = await make_pipeline().run()

        assert len(summary.successes) == 1

    @pytest.mark.asyncio
    async def test_thread_failure_does_not_stop_other_threads(self, make_pipeline, email_service):
        email_service.search_unread_threads = AsyncMock(return_value=["t_bad", "t_good"])

        async def get_thread_messages(thread_id):
            if thread_id == "t_bad":
                raise RuntimeError("thread fetch failed")
            return [_message("m2", [_attachment("m2")], thread_id=thread_id)]

        email_service.get_thread_messages = AsyncMock(side_effect=get_thread_messages)

        summary = await make_pipeline().run()

        assert len(summary.successes) == 1
        email_service.swap_thread_labels.assert_awaited_once_with(
            "t_good", add_label_id="Label_P", remove_label_id="Label_U"
        )

    @pytest.mark.asyncio
    async def test_notification_sent_when_configured(self, make_pipeline, email_service):
        email_service.get_thread_messages = AsyncMock(
            return_value=[_message("m1", [_attachment("m1")])]
        )

        await make_pipeline(notify_email="ops@example.com").run()

        email_service.send_email.assert_awaited_once()
        assert email_service.send_email.await_args.args[0] == "ops@example.com"

    @pytest.mark.asyncio
    async def test_no_notification_without_outcomes(self, make_pipeline, email_service):
        await make_pipeline(notify_email="ops@example.com").run()

        email_service.send_email.assert_not_awaited()


@pytest.mark.integration
@pytest.mark.worker
class TestContractPollerWorker:
    """Test suite for the interval poller"""

    @pytest.mark.asyncio
    async def test_run_errors_do_not_stop_loop(self, monkeypatch):
        from src.workers import contract_pipeline
        from src.workers.contract_pipeline import ContractPollerWorker

        pipeline = MagicMock()
        pipeline.run = AsyncMock(side_effect=[RuntimeError("gmail down"), None])
        worker = ContractPollerWorker(lambda: pipeline, poll_interval=60)

        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 2:
                await worker.stop()

        monkeypatch.setattr(contract_pipeline.asyncio, "sleep", fake_sleep)

        await worker.run()

        assert pipeline.run.await_count == 2
        assert all(48 <= s <= 72 for s in sleeps)
