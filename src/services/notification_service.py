"""Run summary email notifications."""

from typing import Optional

from src.config.settings import NotificationConfig
from src.models.summary import RunSummary
from src.services.email_service import EmailService
from src.utils.logging import get_logger

logger = get_logger(__name__)


def _format_price(price) -> str:
    if isinstance(price, (int, float)) and not isinstance(price, bool):
        return f"${price:,.0f}"
    return str(price) if price else "n/a"


def build_subject(summary: RunSummary, prefix: str = "") -> str:
    parts = [f"{len(summary.successes)} analyzed"]
    if summary.skipped_count:
        parts.append(f"{summary.skipped_count} duplicate")
    if summary.failures:
        parts.append(f"{len(summary.failures)} failed")
    subject = "Purchase agreements: " + ", ".join(parts)
    return f"{prefix} {subject}".strip()


def build_body(summary: RunSummary) -> str:
    """Plain-text listing of successes and failures."""
    lines: list[str] = []

    if summary.successes:
        lines.append(f"Analyzed ({len(summary.successes)}):")
        for entry in summary.successes:
            note = " [DUPLICATE - skipped, not added to sheet]" if entry.skipped else ""
            lines.append(f"  - {entry.filename}{note}")
            lines.append(f"      Subject: {entry.subject or '(no subject)'}")
            lines.append(f"      Address: {entry.address or 'n/a'}")
            lines.append(f"      Price:   {_format_price(entry.price)}")
        lines.append("")

    if summary.failures:
        lines.append(f"Failed ({len(summary.failures)}):")
        for failure in summary.failures:
            lines.append(f"  - {failure.filename}")
            lines.append(f"      Subject: {failure.subject or '(no subject)'}")
            lines.append(f"      Error:   {failure.error}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


class NotificationService:
    """Sends one aggregate email per run when an address is configured."""

    def __init__(self, config: NotificationConfig, email_service: EmailService) -> None:
        self.config = config
        self.email_service = email_service

    async def notify(self, summary: RunSummary) -> Optional[str]:
        """
        Send the run summary.

        Returns:
            Sent message id, or None when nothing was sent
        """
        if not self.config.notify_email:
            logger.debug("Notification address not configured, skipping")
            return None
        if summary.is_empty:
            logger.debug("Empty run summary, skipping notification")
            return None

        subject = build_subject(summary, self.config.subject_prefix)
        message_id = await self.email_service.send_email(
            self.config.notify_email, subject, build_body(summary)
        )
        logger.info(
            "Run summary sent",
            to=self.config.notify_email,
            successes=len(summary.successes),
            failures=len(summary.failures),
        )
        return message_id
