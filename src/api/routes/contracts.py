"""Contracts worksheet read/write endpoints."""

import json
import re
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response, status

from src.api.models import ContractListResponse, ContractWriteResponse
from src.services.sheets_service import SheetsService
from src.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/contracts", tags=["Contracts"])

# Dotted JavaScript identifier, e.g. "cb" or "app.handlers.onRows"
_CALLBACK = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


def get_sheets_service(request: Request) -> SheetsService:
    """Worksheet client shared across requests, created on first use."""
    service = getattr(request.app.state, "sheets_service", None)
    if service is None:
        service = SheetsService(request.app.state.settings.sheets)
        request.app.state.sheets_service = service
    return service


def _jsonp(payload: dict[str, Any], callback: str) -> Response:
    if not _CALLBACK.match(callback):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid callback name",
        )
    body = f"{callback}({json.dumps(payload)});"
    return Response(content=body, media_type="application/javascript")


@router.get("", response_model=ContractListResponse)
async def list_contracts(
    address: Optional[str] = Query(None, description="Only rows for this property address"),
    callback: Optional[str] = Query(None, description="Wrap the JSON in this JS callback"),
    sheets: SheetsService = Depends(get_sheets_service),
):
    """
    Read analyzed contracts.

    **Modes:**
    - no `address`: every row, newest first
    - `address`: rows whose address matches case-insensitively after trimming

    With `callback` the response is `callback({...});` for cross-origin
    script-tag consumers.
    """
    try:
        if address is not None and address.strip():
            rows = await sheets.find_by_address(address)
        else:
            rows = await sheets.list_recent()
    except Exception as e:
        logger.error("Failed to read contracts", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to read contracts worksheet",
        )

    payload = ContractListResponse(count=len(rows), rows=rows).model_dump()
    if callback:
        return _jsonp(payload, callback)
    return payload


@router.post("", response_model=ContractWriteResponse, status_code=status.HTTP_201_CREATED)
async def append_contract(
    record: dict[str, Any] = Body(..., description="One header-keyed row"),
    sheets: SheetsService = Depends(get_sheets_service),
) -> ContractWriteResponse:
    """
    Append one row.

    Keys are worksheet column headers; missing columns are left empty and
    unknown keys are ignored.
    """
    try:
        values = await sheets.append_record(record)
    except Exception as e:
        logger.error("Failed to append contract", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to write contracts worksheet",
        )
    return ContractWriteResponse(values=values)
