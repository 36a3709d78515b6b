"""Header-row counts derived from a filtered record set."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Iterable

from payroll_filings.core.catalog import get_document_set
from payroll_filings.core.completeness import all_documents_uploaded, slot_presence
from payroll_filings.core.schema import NIL, PayrollRecord


@dataclass(slots=True)
class DocumentTypeCounts:
    all: int = 0
    complete: int = 0
    pending: int = 0


@dataclass(slots=True)
class RecordSummary:
    total: int = 0
    nil: int = 0
    finalized: int = 0
    complete: int = 0
    pending: int = 0
    ready_to_file: int = 0
    documents: dict[str, DocumentTypeCounts] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def _is_ready_to_file(record: PayrollRecord) -> bool:
    filing = record.status.filing
    return filing is not None and (bool(filing.filingDate) or bool(filing.isReady))


def summarize(records: Iterable[PayrollRecord], document_set: str = "preparation") -> RecordSummary:
    definition = get_document_set(document_set)
    summary = RecordSummary(documents={slot: DocumentTypeCounts() for slot in definition.required_slots})

    for record in records:
        summary.total += 1
        is_nil = record.status.finalization_date == NIL
        if is_nil:
            summary.nil += 1
        if record.status.finalization_date:
            summary.finalized += 1
        if _is_ready_to_file(record):
            summary.ready_to_file += 1

        complete = not is_nil and all_documents_uploaded(record, document_set)
        if not is_nil:
            if complete:
                summary.complete += 1
            else:
                summary.pending += 1

        for slot, present in slot_presence(record, document_set).items():
            if not present:
                continue
            counts = summary.documents[slot]
            counts.all += 1
            if complete:
                counts.complete += 1
            elif not is_nil:
                counts.pending += 1

    return summary
