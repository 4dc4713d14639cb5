"""Per-run outcome aggregation."""

from pydantic import BaseModel, Field

from src.models.contract import CellValue


class SuccessEntry(BaseModel):
    """Attachment analyzed successfully (committed or skipped as duplicate)."""

    filename: str
    subject: str
    address: str = ""
    price: CellValue = ""
    skipped: bool = False


class FailureEntry(BaseModel):
    """Attachment that could not be analyzed."""

    filename: str
    subject: str
    error: str


class RunSummary(BaseModel):
    """Outcomes of one pipeline invocation. Consumed once by notification."""

    successes: list[SuccessEntry] = Field(default_factory=list)
    failures: list[FailureEntry] = Field(default_factory=list)

    def add_success(
        self,
        filename: str,
        subject: str,
        address: str = "",
        price: CellValue = "",
        skipped: bool = False,
    ) -> None:
        self.successes.append(
            SuccessEntry(
                filename=filename,
                subject=subject,
                address=address,
                price=price,
                skipped=skipped,
            )
        )

    def add_failure(self, filename: str, subject: str, error: str) -> None:
        self.failures.append(FailureEntry(filename=filename, subject=subject, error=error))

    @property
    def committed_count(self) -> int:
        return sum(1 for s in self.successes if not s.skipped)

    @property
    def skipped_count(self) -> int:
        return sum(1 for s in self.successes if s.skipped)

    @property
    def is_empty(self) -> bool:
        return not self.successes and not self.failures
