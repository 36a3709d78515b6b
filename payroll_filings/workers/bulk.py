from __future__ import annotations

import asyncio
import io
import logging
import zipfile
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Awaitable, Callable, Iterable, Sequence

from payroll_filings.core.catalog import TAX_TYPES, TaxType, get_document_set
from payroll_filings.core.completeness import is_extraction_complete
from payroll_filings.core.name_normalize import sanitize_company_name
from payroll_filings.core.schema import PayrollRecordView, ReceiptExtraction
from payroll_filings.domain import BulkProgress, BulkReport, BulkUnit, CancellationToken, SkipUnit, UnitResult
from payroll_filings.exporters.document_manifest import manifest_csv
from payroll_filings.infrastructure.blobs import BlobStore
from payroll_filings.infrastructure.extraction import RECEIPT_FIELDS, ExtractionBackend
from payroll_filings.infrastructure.records import RecordStore
from payroll_filings.workers.documents import store_document

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8
EXTRACTION_MODES = ("all", "missing", "failed")

UnitHandler = Callable[[BulkUnit], Awaitable[Any]]
ProgressCallback = Callable[[BulkProgress], None]


@dataclass
class UploadItem:
    record_id: str
    document_type: str
    filename: str
    content: bytes


class BulkOrchestrator:
    """Runs (record, document type) units with bounded concurrency.

    Every unit resolves independently: a failure is recorded on that unit
    only. The cancellation token is checked before each unit is dispatched,
    so units already running are allowed to finish.
    """

    def __init__(self, max_workers: int | None = DEFAULT_MAX_WORKERS) -> None:
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be positive or None")
        self._max_workers = max_workers

    async def run(
        self,
        operation: str,
        units: Sequence[BulkUnit],
        handler: UnitHandler,
        *,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> BulkReport:
        token = cancel or CancellationToken()
        report = BulkReport(operation=operation, results=[UnitResult.pending(unit) for unit in units])
        semaphore = asyncio.Semaphore(self._max_workers) if self._max_workers else None
        completed = 0

        def publish() -> None:
            if progress is None:
                return
            try:
                progress(BulkProgress(completed=completed, total=len(units)))
            except Exception:
                logger.exception("progress callback failed for %s", operation)

        async def execute(index: int, unit: BulkUnit) -> None:
            nonlocal completed
            result = report.results[index]
            try:
                try:
                    result.data = await handler(unit)
                    result.status = "success"
                except SkipUnit as skip:
                    result.status = "skipped"
                    result.message = str(skip) or None
                except Exception as exc:
                    logger.warning("%s failed for %s (%s): %s", operation, unit.company_name, unit.document_type, exc)
                    result.status = "error"
                    result.error = str(exc) or exc.__class__.__name__
                completed += 1
                publish()
            finally:
                if semaphore is not None:
                    semaphore.release()

        tasks: list[asyncio.Task] = []
        for index, unit in enumerate(units):
            if semaphore is not None:
                await semaphore.acquire()
            if token.cancelled:
                if semaphore is not None:
                    semaphore.release()
                report.cancelled = True
                logger.info("%s cancelled after dispatching %d of %d units", operation, index, len(units))
                break
            tasks.append(asyncio.create_task(execute(index, unit)))

        if tasks:
            await asyncio.gather(*tasks)
        return report


class BulkOperations:
    """Extract-all, export-all and batch-upload flows over a filtered record set."""

    def __init__(
        self,
        records: RecordStore,
        blobs: BlobStore,
        backend: ExtractionBackend,
        *,
        max_workers: int | None = DEFAULT_MAX_WORKERS,
    ) -> None:
        self._records = records
        self._blobs = blobs
        self._backend = backend
        self._orchestrator = BulkOrchestrator(max_workers)

    # ------------------------------------------------------------------
    # extraction
    # ------------------------------------------------------------------
    async def extract_all(
        self,
        records: Iterable[PayrollRecordView],
        *,
        mode: str = "all",
        tax_types: Sequence[TaxType] = TAX_TYPES,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> BulkReport:
        if mode not in EXTRACTION_MODES:
            raise ValueError(f"unknown extraction mode: {mode}")

        by_id = {record.id: record for record in records}
        units = [
            BulkUnit(record_id=record.id, company_name=record.company_name, document_type=tax.receipt_type)
            for record in by_id.values()
            for tax in tax_types
        ]

        async def handle(unit: BulkUnit) -> dict[str, Any]:
            record = by_id[unit.record_id]
            path = record.payment_receipts_documents.get(unit.document_type)
            if not path:
                raise SkipUnit("No eligible documents found")

            existing = record.payment_receipts_extractions.get(unit.document_type)
            if mode == "missing" and existing is not None and any(existing.model_dump().values()):
                raise SkipUnit("Already extracted")
            if mode == "failed" and is_extraction_complete(existing):
                raise SkipUnit("Extraction already complete")

            content = await asyncio.to_thread(self._blobs.get, path)
            extracted = await asyncio.to_thread(
                self._backend.extract,
                content,
                filename=PurePosixPath(path).name,
                fields=RECEIPT_FIELDS,
                document_kind="payment_receipt",
            )
            extraction = ReceiptExtraction.model_validate(
                {field.name: extracted.get(field.name) for field in RECEIPT_FIELDS}
            )
            payload = extraction.model_dump()
            await asyncio.to_thread(
                self._records.update_slot,
                unit.record_id,
                "payment_receipts_extractions",
                unit.document_type,
                payload,
            )
            return payload

        return await self._orchestrator.run("extract_all", units, handle, progress=progress, cancel=cancel)

    # ------------------------------------------------------------------
    # export
    # ------------------------------------------------------------------
    async def export_all(
        self,
        records: Iterable[PayrollRecordView],
        *,
        document_set: str = "payment_slips",
        document_types: Sequence[str] | None = None,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> BulkReport:
        definition = get_document_set(document_set)
        types = tuple(document_types or definition.required_slots)
        by_id = {record.id: record for record in records}
        units = [
            BulkUnit(record_id=record.id, company_name=record.company_name, document_type=document_type)
            for record in by_id.values()
            for document_type in types
        ]
        downloads: dict[str, tuple[str, bytes]] = {}

        async def handle(unit: BulkUnit) -> str:
            record = by_id[unit.record_id]
            path = (getattr(record, definition.field) or {}).get(unit.document_type)
            if not path:
                raise SkipUnit("No document uploaded")
            content = await asyncio.to_thread(self._blobs.get, path)
            downloads[unit.key] = (path, content)
            return path

        report = await self._orchestrator.run("export_all", units, handle, progress=progress, cancel=cancel)
        report.archive = self._build_archive(report, units, downloads)
        return report

    @staticmethod
    def _build_archive(
        report: BulkReport,
        units: Sequence[BulkUnit],
        downloads: dict[str, tuple[str, bytes]],
    ) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for unit, result in zip(units, report.results):
                if result.status != "success" or unit.key not in downloads:
                    continue
                path, content = downloads[unit.key]
                suffix = PurePosixPath(path).suffix
                name = f"{sanitize_company_name(unit.company_name)}/{unit.document_type}{suffix}"
                archive.writestr(name, content)
            archive.writestr("manifest.csv", manifest_csv(report))
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # batch upload
    # ------------------------------------------------------------------
    async def batch_upload(
        self,
        records: Iterable[PayrollRecordView],
        items: Sequence[UploadItem],
        *,
        month_year: str,
        document_set: str = "payment_receipts",
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> BulkReport:
        by_id = {record.id: record for record in records}
        units = [
            BulkUnit(
                record_id=item.record_id,
                company_name=by_id[item.record_id].company_name if item.record_id in by_id else "Unknown",
                document_type=item.document_type,
                payload=item,
            )
            for item in items
        ]

        async def handle(unit: BulkUnit) -> str:
            record = by_id.get(unit.record_id)
            if record is None:
                raise LookupError(f"record {unit.record_id} is not part of this upload")
            item: UploadItem = unit.payload
            return await asyncio.to_thread(
                store_document,
                self._records,
                self._blobs,
                record=record,
                company_name=record.company_name,
                month_year=month_year,
                document_set=document_set,
                document_type=item.document_type,
                filename=item.filename,
                content=item.content,
            )

        return await self._orchestrator.run("batch_upload", units, handle, progress=progress, cancel=cancel)
