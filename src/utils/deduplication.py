"""Duplicate detection keyed on property address and contract date."""

from typing import Any, Iterable, Mapping

from src.models.contract import ADDRESS_COLUMN, CONTRACT_DATE_COLUMN


def normalize_address(address: Any) -> str:
    """Trimmed, lower-cased address used for matching."""
    if address is None:
        return ""
    return str(address).strip().lower()


def _cell(value: Any) -> str:
    return "" if value is None else str(value).strip()


def is_duplicate_row(
    records: Iterable[Mapping[str, Any]],
    address: Any,
    contract_date: Any = "",
) -> bool:
    """
    Check persisted records for an address + contract date match.

    A blank address never matches. A blank contract date matches any row
    with the same address.

    Args:
        records: Header-keyed rows already in the store
        address: Candidate property address
        contract_date: Candidate contract date (ISO string)

    Returns:
        True if an existing row is the same contract
    """
    key = normalize_address(address)
    if not key:
        return False

    date = _cell(contract_date)
    for record in records:
        if normalize_address(record.get(ADDRESS_COLUMN)) != key:
            continue
        if not date or _cell(record.get(CONTRACT_DATE_COLUMN)) == date:
            return True
    return False
