"""
Unit tests for run summary notifications
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.settings import NotificationConfig
from src.models.summary import RunSummary
from src.services.email_service import EmailService
from src.services.notification_service import NotificationService, build_body, build_subject


@pytest.fixture
def summary():
    summary = RunSummary()
    summary.add_success("a.pdf", "Offer A", address="123 Main St", price=450000)
    summary.add_success("b.pdf", "Offer A resend", address="123 Main St", price=450000, skipped=True)
    summary.add_failure("c.pdf", "Offer C", "Extraction endpoint error 400: bad pdf")
    return summary


@pytest.fixture
def email_service():
    service = MagicMock(spec=EmailService)
    service.send_email = AsyncMock(return_value="sent_1")
    return service


@pytest.mark.unit
class TestNotificationService:
    """Test suite for NotificationService"""

    def test_body_lists_successes_duplicates_and_failures(self, summary):
        body = build_body(summary)

        assert "Analyzed (2):" in body
        assert "a.pdf" in body
        assert "$450,000" in body
        assert "b.pdf [DUPLICATE - skipped, not added to sheet]" in body
        assert "Failed (1):" in body
        assert "bad pdf" in body

    def test_subject_counts(self, summary):
        subject = build_subject(summary, "[Contract Intake]")

        assert subject == "[Contract Intake] Purchase agreements: 2 analyzed, 1 duplicate, 1 failed"

    @pytest.mark.asyncio
    async def test_sends_when_configured(self, summary, email_service):
        config = NotificationConfig(NOTIFY_EMAIL="ops@example.com")
        service = NotificationService(config, email_service)

        assert await service.notify(summary) == "sent_1"
        to, subject, body = email_service.send_email.await_args.args
        assert to == "ops@example.com"
        assert "2 analyzed" in subject

    @pytest.mark.asyncio
    async def test_not_configured_sends_nothing(self, summary, email_service):
        service = NotificationService(NotificationConfig(NOTIFY_EMAIL=""), email_service)

        assert await service.notify(summary) is None
        email_service.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_summary_sends_nothing(self, email_service):
        service = NotificationService(NotificationConfig(NOTIFY_EMAIL="ops@example.com"), email_service)

        assert await service.notify(RunSummary()) is None
        email_service.send_email.assert_not_awaited()
