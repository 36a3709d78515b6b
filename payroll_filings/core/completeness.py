"""Document completeness rules for payroll records."""
from __future__ import annotations

from typing import Mapping

from payroll_filings.core.catalog import get_document_set
from payroll_filings.core.schema import NIL, DocumentStatusValue, PayrollRecord, ReceiptExtraction


def _is_present(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def slot_presence(record: PayrollRecord, document_set: str = "preparation") -> dict[str, bool]:
    """Per-slot presence over the required slots of ``document_set``."""

    definition = get_document_set(document_set)
    documents: Mapping[str, object] = getattr(record, definition.field) or {}
    return {slot: _is_present(documents.get(slot)) for slot in definition.required_slots}


def document_count(record: PayrollRecord, document_set: str = "preparation") -> tuple[int, int]:
    presence = slot_presence(record, document_set)
    return sum(presence.values()), len(presence)


def all_documents_uploaded(record: PayrollRecord | None, document_set: str = "preparation") -> bool:
    if record is None:
        return False
    if record.status.finalization_date == NIL:
        return True
    return all(slot_presence(record, document_set).values())


def document_status(record: PayrollRecord, document_set: str = "preparation") -> DocumentStatusValue:
    if record.status.finalization_date == NIL:
        return "nil"
    return "complete" if all_documents_uploaded(record, document_set) else "incomplete"


def is_extraction_complete(extraction: ReceiptExtraction | Mapping | None) -> bool:
    if extraction is None:
        return False
    if isinstance(extraction, ReceiptExtraction):
        extraction = extraction.model_dump()
    return bool(extraction.get("amount")) and bool(extraction.get("payment_date")) and bool(extraction.get("payment_mode"))
