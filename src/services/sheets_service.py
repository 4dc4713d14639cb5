"""Google Sheets row store for analyzed purchase agreements."""

import asyncio
from typing import Any, Mapping, Optional

import gspread
from google.oauth2.service_account import Credentials

from src.config.settings import SheetsConfig
from src.models.contract import ADDRESS_COLUMN, ROW_HEADERS, ContractRow
from src.utils.deduplication import is_duplicate_row, normalize_address
from src.utils.logging import get_logger

logger = get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


class SheetsService:
    """
    Header-aligned append and read access to the contracts worksheet.

    The first write to an empty worksheet establishes the header row.
    Every later write and read aligns values by header name, so columns
    can be reordered in the sheet without breaking the pipeline.
    """

    def __init__(
        self,
        config: SheetsConfig,
        worksheet: Optional[gspread.Worksheet] = None,
    ) -> None:
        """Initialize Sheets API client."""
        self.config = config
        if worksheet is not None:
            self.worksheet = worksheet
        else:
            credentials = Credentials.from_service_account_file(
                str(self.config.credentials_path), scopes=SCOPES
            )
            client = gspread.authorize(credentials)
            spreadsheet = client.open_by_key(self.config.spreadsheet_id)
            self.worksheet = self._get_or_create_worksheet(spreadsheet)
        logger.info(
            "Sheets service initialized",
            spreadsheet_id=self.config.spreadsheet_id,
            worksheet=self.config.worksheet_name,
        )

    def _get_or_create_worksheet(self, spreadsheet: gspread.Spreadsheet) -> gspread.Worksheet:
        try:
            return spreadsheet.worksheet(self.config.worksheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self.config.worksheet_name, rows=1000, cols=len(ROW_HEADERS)
            )
            logger.info("Created contracts worksheet", worksheet=self.config.worksheet_name)
            return sheet

    def _append_record_sync(self, record: Mapping[str, Any]) -> list[Any]:
        header = self.worksheet.row_values(1)
        if not header:
            header = list(ROW_HEADERS)
            self.worksheet.append_row(header, value_input_option="RAW")
            logger.info("Header row written", columns=len(header))

        values = []
        for column in header:
            value = record.get(column)
            values.append("" if value is None else value)

        # RAW keeps ISO dates as text so reads compare equal to what was written
        self.worksheet.append_row(values, value_input_option="RAW")
        return values

    def _get_records_sync(self) -> list[dict[str, str]]:
        values = self.worksheet.get_all_values()
        if not values:
            return []
        header = values[0]
        records = []
        for row in values[1:]:
            padded = list(row) + [""] * (len(header) - len(row))
            records.append(dict(zip(header, padded)))
        return records

    async def append_record(self, record: Mapping[str, Any]) -> list[Any]:
        """
        Append one header-keyed record.

        Keys missing from the record become empty cells; keys the header
        does not know are dropped.

        Returns:
            The cell values written, in header order
        """
        try:
            values = await asyncio.to_thread(self._append_record_sync, record)
            logger.info("Row appended", address=record.get(ADDRESS_COLUMN, ""))
            return values
        except Exception as e:
            logger.error("Failed to append row", error=str(e))
            raise

    async def append_row(self, row: ContractRow) -> list[Any]:
        """Append a ContractRow."""
        return await self.append_record(row.to_record())

    async def get_records(self) -> list[dict[str, str]]:
        """All persisted rows, oldest first, keyed by header."""
        return await asyncio.to_thread(self._get_records_sync)

    async def list_recent(self) -> list[dict[str, str]]:
        """All persisted rows, newest first."""
        records = await self.get_records()
        return list(reversed(records))

    async def find_by_address(self, address: str) -> list[dict[str, str]]:
        """Rows whose normalized address equals the given one, newest first."""
        key = normalize_address(address)
        if not key:
            return []
        records = await self.list_recent()
        return [r for r in records if normalize_address(r.get(ADDRESS_COLUMN)) == key]

    async def is_duplicate(self, address: str, contract_date: str = "") -> bool:
        """
        Check whether a contract with this address and date is already stored.

        Full scan of the worksheet on every call.
        """
        if not normalize_address(address):
            return False
        records = await self.get_records()
        duplicate = is_duplicate_row(records, address, contract_date)
        if duplicate:
            logger.info(
                "Duplicate contract found",
                address=address,
                contract_date=contract_date,
            )
        return duplicate
