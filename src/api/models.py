"""API request/response models."""

from typing import Any

from pydantic import BaseModel, Field


class ContractListResponse(BaseModel):
    """Rows returned by the contracts read path."""

    count: int = Field(description="Number of rows returned")
    rows: list[dict[str, Any]] = Field(description="Header-keyed rows, newest first")


class ContractWriteResponse(BaseModel):
    """Acknowledgement for a single appended row."""

    status: str = "ok"
    values: list[Any] = Field(description="Cell values written, in header order")
