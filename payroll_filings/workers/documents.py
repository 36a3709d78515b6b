"""Single-document storage steps shared by interactive and bulk flows."""
from __future__ import annotations

import io
import logging
import zipfile
from datetime import date
from pathlib import PurePosixPath

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from payroll_filings.core.catalog import get_document_set
from payroll_filings.core.paths import build_document_path, file_extension
from payroll_filings.core.schema import PayrollRecord
from payroll_filings.core.validation import validate_document_type
from payroll_filings.infrastructure.blobs import BlobStore, StorageError
from payroll_filings.infrastructure.records import NotFoundError, RecordStore

logger = logging.getLogger(__name__)


def _discard_blob(blobs: BlobStore, path: str) -> bool:
    try:
        blobs.delete(path)
    except StorageError:
        logger.warning("failed to delete blob %s", path, exc_info=True)
        return False
    return True


def _read_blob(blobs: BlobStore, path: str) -> bytes | None:
    try:
        return blobs.get(path)
    except StorageError:
        return None


def _rollback(blobs: BlobStore, stored: str, overwritten: bytes | None) -> None:
    if overwritten is None:
        _discard_blob(blobs, stored)
        return
    try:
        blobs.put(stored, overwritten)
    except StorageError:
        logger.warning("failed to restore blob %s", stored, exc_info=True)


def store_document(
    records: RecordStore,
    blobs: BlobStore,
    *,
    record: PayrollRecord,
    company_name: str,
    month_year: str,
    document_set: str,
    document_type: str,
    filename: str,
    content: bytes,
    on: date | None = None,
) -> str:
    """Upload ``content`` and point the record's slot at it.

    The previous document is only removed once the record points at the new
    one. When the record update fails the new blob is removed again, or the
    previous bytes are restored if the upload overwrote them.
    """

    definition = get_document_set(document_set)
    validate_document_type(definition, document_type)

    path = build_document_path(
        month_year,
        definition.sub_folder,
        company_name,
        document_type,
        extension=file_extension(filename),
        on=on,
    )
    previous = (getattr(record, definition.field) or {}).get(document_type)
    # Same-day re-uploads land on the previous path; keep its bytes for rollback.
    overwritten = _read_blob(blobs, previous) if previous == path else None

    stored = blobs.put(path, content)
    try:
        records.update_slot(record.id, definition.field, document_type, stored)
    except Exception as exc:
        _rollback(blobs, stored, overwritten)
        if isinstance(exc, NotFoundError):
            raise
        raise StorageError(f"failed to save {document_type} for record {record.id}") from exc

    if previous and previous != stored:
        _discard_blob(blobs, previous)
    return stored


def remove_document(
    records: RecordStore,
    blobs: BlobStore,
    *,
    record: PayrollRecord,
    document_set: str,
    document_type: str,
) -> bool:
    """Delete one stored document; returns ``False`` when the slot was empty."""

    definition = get_document_set(document_set)
    validate_document_type(definition, document_type)
    path = (getattr(record, definition.field) or {}).get(document_type)
    if not path:
        return False
    # A blob that is already gone must not pin the slot.
    _discard_blob(blobs, path)
    records.update_slot(record.id, definition.field, document_type, None)
    return True


def count_employees(content: bytes, filename: str) -> int:
    """Number of employee rows in a PAYE return; unreadable files count as zero."""

    suffix = PurePosixPath(filename or "").suffix.lower()
    if suffix == ".csv":
        try:
            frame = pd.read_csv(io.BytesIO(content), header=None, skip_blank_lines=True, dtype=str)
        except (ValueError, UnicodeDecodeError, pd.errors.ParserError):
            logger.warning("could not parse PAYE CSV %s", filename, exc_info=True)
            return 0
        return int(frame.dropna(how="all").shape[0])

    if suffix in {".xlsx", ".xlsm"}:
        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError):
            logger.warning("could not open PAYE workbook %s", filename, exc_info=True)
            return 0
        try:
            sheet = workbook.active
            return sum(
                1
                for row in sheet.iter_rows(values_only=True)
                if any(cell is not None and str(cell).strip() for cell in row)
            )
        finally:
            workbook.close()

    return 0
