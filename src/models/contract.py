"""Purchase-agreement row model persisted to the contracts worksheet."""

from typing import Union

from pydantic import BaseModel, ConfigDict, Field

CellValue = Union[int, float, str]


class ContractRow(BaseModel):
    """
    One analyzed purchase agreement, flattened for the worksheet.

    Field order is the worksheet column order. Aliases are the column
    headers; ``to_record`` translates attribute names to headers at the
    store boundary.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    date_analyzed: str = Field(default="", alias="Date Analyzed")
    property_address: str = Field(default="", alias="Property Address")
    buyers: str = Field(default="", alias="Buyers")
    sellers: str = Field(default="", alias="Sellers")
    buyer_agent: str = Field(default="", alias="Buyer's Agent")
    agent_email: str = Field(default="", alias="Agent Email")
    agent_phone: str = Field(default="", alias="Agent Phone")
    listing_agent: str = Field(default="", alias="Listing Agent")
    offer_price: CellValue = Field(default="", alias="Offer Price")
    financing_type: str = Field(default="", alias="Financing Type")
    loan_amount: CellValue = Field(default="", alias="Loan Amount")
    down_payment: CellValue = Field(default="", alias="Down Payment")
    emd_amount: CellValue = Field(default="", alias="EMD Amount")
    inspection: str = Field(default="", alias="Inspection")
    appraisal: str = Field(default="", alias="Appraisal")
    financing_contingency: str = Field(default="", alias="Financing Contingency")
    title_company: str = Field(default="", alias="Title Company")
    contract_date: str = Field(default="", alias="Contract Date")
    closing_date: str = Field(default="", alias="Closing Date")
    possession_date: str = Field(default="", alias="Possession Date")
    special_stipulations: str = Field(default="", alias="Special Stipulations")
    contract_form: str = Field(default="", alias="Contract Form")

    def to_record(self) -> dict[str, CellValue]:
        """Header-keyed mapping in column order."""
        return self.model_dump(by_alias=True)


ROW_HEADERS: tuple[str, ...] = tuple(
    field.alias for field in ContractRow.model_fields.values()
)

ADDRESS_COLUMN = ContractRow.model_fields["property_address"].alias
CONTRACT_DATE_COLUMN = ContractRow.model_fields["contract_date"].alias
