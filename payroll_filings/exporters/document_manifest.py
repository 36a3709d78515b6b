from __future__ import annotations

from typing import Iterable

import pandas as pd

from payroll_filings.core.catalog import DOCUMENT_LABELS, get_document_set
from payroll_filings.core.schema import PayrollRecordView
from payroll_filings.domain import BulkReport

MANIFEST_COLUMNS = ["company", "document_type", "label", "status", "path", "error"]
LINK_COLUMNS = ["Company Name", "PIN", "Document Type", "Document Path"]


def manifest_csv(report: BulkReport) -> bytes:
    records = []
    for item in report.results:
        records.append({
            "company": item.company_name,
            "document_type": item.document_type,
            "label": DOCUMENT_LABELS.get(item.document_type, item.document_type),
            "status": item.status,
            "path": item.data if isinstance(item.data, str) else "",
            "error": item.error or item.message or "",
        })
    df = pd.DataFrame(records, columns=MANIFEST_COLUMNS)
    return df.to_csv(index=False).encode("utf-8")


def document_links_csv(records: Iterable[PayrollRecordView], document_set: str = "payment_slips") -> bytes:
    definition = get_document_set(document_set)
    rows = []
    for record in records:
        documents = getattr(record, definition.field) or {}
        pin = record.pin_details.pin if record.pin_details and record.pin_details.pin else "Unknown"
        for document_type in definition.slots:
            path = documents.get(document_type)
            if not path:
                continue
            rows.append({
                "Company Name": record.company_name or "Unknown",
                "PIN": pin,
                "Document Type": definition.labels.get(document_type, document_type),
                "Document Path": path,
            })
    df = pd.DataFrame(rows, columns=LINK_COLUMNS)
    return df.to_csv(index=False).encode("utf-8")
