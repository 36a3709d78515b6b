from __future__ import annotations

import re

from payroll_filings.core.catalog import DocumentSet
from payroll_filings.core.completeness import all_documents_uploaded
from payroll_filings.core.schema import PayrollRecord


class ValidationError(Exception):
    """Raised when domain validation fails."""


class PreconditionFailed(ValidationError):
    """Raised when a lifecycle transition is attempted from an illegal state."""


def validate_month_year(value: str) -> str:
    value = str(value or "").strip()
    if not re.fullmatch(r"\d{4}-(0[1-9]|1[0-2])", value):
        raise ValidationError("month_year must use the YYYY-MM format")
    return value


def validate_document_type(document_set: DocumentSet, document_type: str) -> None:
    if document_type not in document_set.labels:
        raise ValidationError(f"{document_type} is not a {document_set.name} document")


def validate_filing(record: PayrollRecord, *, is_nil: bool) -> None:
    if not record.status.finalization_date:
        raise PreconditionFailed("record must be finalized before filing")
    if not is_nil and not all_documents_uploaded(record):
        raise PreconditionFailed("All documents must be uploaded before filing")
