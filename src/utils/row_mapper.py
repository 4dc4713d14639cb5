"""Flatten extraction results into worksheet rows."""

import math
import re
from datetime import datetime
from email.utils import parseaddr
from typing import Any, Mapping, Optional

from src.models.contract import CellValue, ContractRow
from src.utils.logging import get_logger

logger = get_logger(__name__)

MAX_STIPULATIONS_LENGTH = 500

_MONEY_CHARS = re.compile(r"[$,\s]")


def _group(data: Any, key: str) -> Mapping[str, Any]:
    """Nested object or an empty mapping when missing or mistyped."""
    if not isinstance(data, Mapping):
        return {}
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> str:
    if value is None or isinstance(value, (Mapping, list)):
        return ""
    return str(value).strip()


def _money(value: Any) -> CellValue:
    """Numbers pass through, "$450,000" style strings are parsed, rest is ''.

    NaN and infinities become '' since the worksheet cannot store them.
    """
    if isinstance(value, bool):
        return ""
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else ""
    if isinstance(value, str):
        cleaned = _MONEY_CHARS.sub("", value)
        if not cleaned:
            return ""
        try:
            number = float(cleaned)
        except ValueError:
            return ""
        if not math.isfinite(number):
            return ""
        return int(number) if number.is_integer() else number
    return ""


def _tri_state(value: Any) -> str:
    """true -> Yes, false -> Waived, anything else -> ''."""
    if value is True:
        return "Yes"
    if value is False:
        return "Waived"
    return ""


def _names(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if not isinstance(value, list):
        return ""
    names = []
    for entry in value:
        if isinstance(entry, Mapping):
            entry = entry.get("name")
        name = _text(entry)
        if name:
            names.append(name)
    return ", ".join(names)


def _address(prop: Mapping[str, Any]) -> str:
    parts = [_text(prop.get(key)) for key in ("street", "city", "state", "zip")]
    return ", ".join(part for part in parts if part)


def _stipulations(value: Any) -> str:
    if isinstance(value, list):
        text = "; ".join(_text(item) for item in value if _text(item))
    else:
        text = _text(value)
    return text[:MAX_STIPULATIONS_LENGTH]


def map_extraction_to_row(
    result: Mapping[str, Any],
    filename: str,
    subject: str,
    sender: str,
    analyzed_at: Optional[datetime] = None,
) -> ContractRow:
    """
    Build a ContractRow from an extraction result.

    Every group and leaf is optional; missing data becomes an empty cell.
    The document's buyer agent email falls back to the sender address,
    since agents forward their own contracts.

    Args:
        result: Parsed extraction result
        filename: Attachment filename
        subject: Message subject
        sender: Message From header
        analyzed_at: Timestamp to stamp, defaults to now
    """
    if not isinstance(result, Mapping):
        result = {}

    prop = _group(result, "property")
    price = _group(result, "price_terms")
    financing = _group(result, "financing")
    dates = _group(result, "dates")
    settlement = _group(result, "settlement")
    contingencies = _group(result, "contingencies")
    parties = _group(result, "parties")
    buyer_agent = _group(parties, "buyer_agent")
    listing_agent = _group(parties, "listing_agent")

    agent_email = _text(buyer_agent.get("email"))
    if not agent_email:
        agent_email = parseaddr(sender or "")[1]

    stamp = (analyzed_at or datetime.now()).isoformat(timespec="seconds")

    row = ContractRow(
        date_analyzed=stamp,
        property_address=_address(prop),
        buyers=_names(parties.get("buyers")),
        sellers=_names(parties.get("sellers")),
        buyer_agent=_text(buyer_agent.get("name")),
        agent_email=agent_email,
        agent_phone=_text(buyer_agent.get("phone")),
        listing_agent=_text(listing_agent.get("name")),
        offer_price=_money(price.get("offer_price")),
        financing_type=_text(financing.get("type")),
        loan_amount=_money(financing.get("loan_amount")),
        down_payment=_money(financing.get("down_payment")),
        emd_amount=_money(price.get("earnest_money")),
        inspection=_tri_state(contingencies.get("inspection")),
        appraisal=_tri_state(contingencies.get("appraisal")),
        financing_contingency=_tri_state(contingencies.get("financing")),
        title_company=_text(settlement.get("title_company")),
        contract_date=_text(dates.get("contract_date")),
        closing_date=_text(dates.get("closing_date")),
        possession_date=_text(dates.get("possession_date")),
        special_stipulations=_stipulations(result.get("special_stipulations")),
        contract_form=_text(result.get("contract_form_type")),
    )

    logger.debug(
        "Extraction mapped to row",
        filename=filename,
        subject=subject,
        address=row.property_address,
    )
    return row
