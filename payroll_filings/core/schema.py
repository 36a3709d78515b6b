from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, constr

NIL = "NIL"
UNASSIGNED = "Unassigned"

ObligationBucket = Literal["active", "cancelled", "dormant", "no_obligation", "missing"]
DocumentStatusValue = Literal["complete", "incomplete", "nil"]


class Company(BaseModel):
    """Client company with one membership window per service category."""

    model_config = ConfigDict(extra="allow")

    id: str
    company_name: str
    acc_client_effective_from: str | None = None
    acc_client_effective_to: str | None = None
    audit_tax_client_effective_from: str | None = None
    audit_tax_client_effective_to: str | None = None
    cps_sheria_client_effective_from: str | None = None
    cps_sheria_client_effective_to: str | None = None
    imm_client_effective_from: str | None = None
    imm_client_effective_to: str | None = None

    def category_window(self, category: str) -> tuple[str | None, str | None]:
        return (
            getattr(self, f"{category}_client_effective_from", None),
            getattr(self, f"{category}_client_effective_to", None),
        )


class ObligationDetails(BaseModel):
    """PAYE obligation details joined to a company by name."""

    model_config = ConfigDict(extra="allow")

    company_name: str
    pin: str | None = None
    paye_status: str | None = None
    paye_effective_from: str | None = None


class FilingInfo(BaseModel):
    filingDate: str
    isNil: bool = False
    filedBy: str = UNASSIGNED
    isReady: bool | None = None


class RecordStatus(BaseModel):
    finalization_date: str | None = None
    status: Literal["pending", "completed"] = "pending"
    assigned_to: str | None = None
    filing: FilingInfo | None = None

    @property
    def is_nil(self) -> bool:
        return self.finalization_date == NIL

    def to_store(self) -> dict:
        """Serialise for persistence; an absent filing is dropped, not nulled."""

        data = self.model_dump(exclude={"filing"})
        if self.filing is not None:
            data["filing"] = self.filing.model_dump(exclude_none=True)
        return data


class ReceiptExtraction(BaseModel):
    amount: str | float | None = None
    payment_date: str | None = None
    payment_mode: str | None = None
    bank_name: str | None = None


class PayrollCycle(BaseModel):
    id: str
    month_year: constr(pattern=r"^\d{4}-\d{2}$")


class PayrollRecord(BaseModel):
    id: str
    company_id: str
    payroll_cycle_id: str
    documents: dict[str, str | None] = Field(default_factory=dict)
    payment_slips_documents: dict[str, str | None] = Field(default_factory=dict)
    payment_receipts_documents: dict[str, str | None] = Field(default_factory=dict)
    payment_receipts_extractions: dict[str, ReceiptExtraction] = Field(default_factory=dict)
    status: RecordStatus = Field(default_factory=RecordStatus)
    number_of_employees: int = 0


class PayrollRecordView(PayrollRecord):
    """A payroll record joined with its company and obligation details."""

    company: Company
    pin_details: ObligationDetails | None = None

    @property
    def company_name(self) -> str:
        return self.company.company_name
