"""Data models for the purchase agreement intake pipeline."""

from .contract import ROW_HEADERS, CellValue, ContractRow
from .email import EmailAttachment, InboxMessage
from .summary import FailureEntry, RunSummary, SuccessEntry

__all__ = [
    "ROW_HEADERS",
    "CellValue",
    "ContractRow",
    "EmailAttachment",
    "InboxMessage",
    "FailureEntry",
    "RunSummary",
    "SuccessEntry",
]
