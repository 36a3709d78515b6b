"""Application service layer for payroll cycles and their records."""
from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any, Callable, Iterable, Sequence

from payroll_filings.core import lifecycle
from payroll_filings.core.catalog import TAX_TYPES, get_document_set
from payroll_filings.core.filters import FilterCriteria, RecordFilter
from payroll_filings.core.name_normalize import normalize
from payroll_filings.core.schema import PayrollCycle, PayrollRecord, PayrollRecordView, RecordStatus
from payroll_filings.core.summary import RecordSummary, summarize
from payroll_filings.core.validation import validate_month_year
from payroll_filings.domain import BulkReport, CancellationToken
from payroll_filings.infrastructure import (
    BlobStore,
    ExtractionBackend,
    InMemoryBlobStore,
    InMemoryRecordStore,
    JobStatus,
    NotFoundError,
    RecordStore,
    StorageError,
    get_extraction_backend,
)
from payroll_filings.workers.bulk import DEFAULT_MAX_WORKERS, BulkOperations, ProgressCallback, UploadItem
from payroll_filings.workers.documents import count_employees, remove_document, store_document
from payroll_filings.workers.polling import DEFAULT_POLL_INTERVAL, JobPoller

logger = logging.getLogger(__name__)

EMPLOYEE_COUNT_SLOT = "paye_csv"


class RecordCache:
    """Joined record views per cycle, patched in place after single-record writes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._views: dict[str, list[PayrollRecordView]] = {}

    def get(self, cycle_id: str) -> list[PayrollRecordView] | None:
        with self._lock:
            return self._views.get(cycle_id)

    def put(self, cycle_id: str, views: list[PayrollRecordView]) -> list[PayrollRecordView]:
        with self._lock:
            self._views[cycle_id] = views
        return views

    def merge(self, record: PayrollRecord) -> PayrollRecordView | None:
        """Replace the cached view of ``record``; the cycle list is rebuilt, never mutated."""

        with self._lock:
            views = self._views.get(record.payroll_cycle_id)
            if views is None:
                return None
            merged: PayrollRecordView | None = None
            rebuilt: list[PayrollRecordView] = []
            for view in views:
                if view.id == record.id:
                    merged = PayrollRecordView(
                        **record.model_dump(),
                        company=view.company,
                        pin_details=view.pin_details,
                    )
                    rebuilt.append(merged)
                else:
                    rebuilt.append(view)
            self._views[record.payroll_cycle_id] = rebuilt
            return merged

    def invalidate(self, cycle_id: str | None = None) -> None:
        with self._lock:
            if cycle_id is None:
                self._views.clear()
            else:
                self._views.pop(cycle_id, None)


class PayrollService:
    """Coordinates cycle, lifecycle, document and bulk use cases."""

    def __init__(
        self,
        records: RecordStore,
        blobs: BlobStore,
        *,
        backend: Callable[[], ExtractionBackend] = get_extraction_backend,
        max_workers: int | None = DEFAULT_MAX_WORKERS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._records = records
        self._blobs = blobs
        self._backend = backend
        self._max_workers = max_workers
        self._poll_interval = poll_interval
        self._cache = RecordCache()
        self._filter = RecordFilter()

    @property
    def records(self) -> RecordStore:
        return self._records

    @property
    def blobs(self) -> BlobStore:
        return self._blobs

    # ------------------------------------------------------------------
    # cycles & views
    # ------------------------------------------------------------------
    def open_cycle(self, month_year: str) -> dict[str, Any]:
        month_year = validate_month_year(month_year)
        cycle = self._records.get_or_create_cycle(month_year)
        company_ids = [company.id for company in self._records.list_companies()]
        inserted = self._records.insert_many(cycle.id, company_ids)
        if inserted:
            logger.info("seeded %d records for cycle %s", inserted, month_year)
            self._invalidate(cycle.id)
        return {"cycle": cycle.model_dump(), "inserted": inserted}

    def get_cycle(self, month_year: str) -> PayrollCycle:
        month_year = validate_month_year(month_year)
        cycle = self._records.find_cycle(month_year)
        if cycle is None:
            raise NotFoundError(f"no payroll cycle for {month_year}")
        return cycle

    def list_record_views(self, month_year: str) -> list[PayrollRecordView]:
        cycle = self.get_cycle(month_year)
        cached = self._cache.get(cycle.id)
        if cached is not None:
            return cached
        return self._cache.put(cycle.id, self._join(self._records.get(cycle.id)))

    def _join(self, records: Iterable[PayrollRecord]) -> list[PayrollRecordView]:
        companies = {company.id: company for company in self._records.list_companies()}
        obligations = {normalize(item.company_name): item for item in self._records.list_obligation_details()}
        views: list[PayrollRecordView] = []
        for record in records:
            company = companies.get(record.company_id)
            if company is None:
                logger.warning("record %s references unknown company %s", record.id, record.company_id)
                continue
            views.append(
                PayrollRecordView(
                    **record.model_dump(),
                    company=company,
                    pin_details=obligations.get(normalize(company.company_name)),
                )
            )
        views.sort(key=lambda view: normalize(view.company_name))
        return views

    def filtered_records(
        self,
        month_year: str,
        criteria: FilterCriteria | None = None,
        today: date | None = None,
    ) -> list[PayrollRecordView]:
        views = self.list_record_views(month_year)
        return self._filter.apply(views, criteria or FilterCriteria(), today)

    def summary(
        self,
        month_year: str,
        criteria: FilterCriteria | None = None,
        *,
        document_set: str = "preparation",
        today: date | None = None,
    ) -> RecordSummary:
        return summarize(self.filtered_records(month_year, criteria, today), document_set)

    def get_record(self, record_id: str) -> PayrollRecord:
        return self._records.get_one(record_id)

    def _invalidate(self, cycle_id: str | None = None) -> None:
        self._cache.invalidate(cycle_id)
        self._filter.invalidate()

    def _refresh(self, record_id: str) -> PayrollRecord:
        record = self._records.get_one(record_id)
        self._cache.merge(record)
        self._filter.invalidate()
        return record

    def _persist_status(self, record_id: str, status: RecordStatus) -> RecordStatus:
        self._records.update(record_id, {"status": status.to_store()})
        return self._refresh(record_id).status

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def finalize(
        self,
        record_id: str,
        *,
        is_nil: bool = False,
        assigned_to: str | None = None,
        date: str | None = None,
    ) -> RecordStatus:
        record = self._records.get_one(record_id)
        status = lifecycle.finalize(record.status, is_nil=is_nil, assigned_to=assigned_to, date=date)
        return self._persist_status(record_id, status)

    def revert_finalize(self, record_id: str) -> RecordStatus:
        record = self._records.get_one(record_id)
        return self._persist_status(record_id, lifecycle.revert_finalize(record.status))

    def file_record(
        self,
        record_id: str,
        *,
        filing_date: str | None = None,
        is_nil: bool | None = None,
    ) -> RecordStatus:
        # Always re-read so a concurrent finalize is not overwritten.
        record = self._records.get_one(record_id)
        status = lifecycle.file(record, filing_date, is_nil=is_nil)
        logger.info("record %s filed (nil=%s)", record_id, status.filing.isNil if status.filing else None)
        return self._persist_status(record_id, status)

    def remove_filing(self, record_id: str) -> RecordStatus:
        record = self._records.get_one(record_id)
        return self._persist_status(record_id, lifecycle.remove_filing(record.status))

    def delete_all_documents(self, record_id: str, document_set: str = "preparation") -> int:
        """Delete every stored document of a set; blob failures are logged, not raised."""

        definition = get_document_set(document_set)
        record = self._records.get_one(record_id)
        documents = getattr(record, definition.field) or {}
        paths = [path for slot in definition.required_slots if (path := documents.get(slot))]
        if not paths:
            return 0
        for path in paths:
            try:
                self._blobs.delete(path)
            except StorageError:
                logger.warning("failed to delete %s for record %s", path, record_id, exc_info=True)
        cleared = dict(documents)
        cleared.update({slot: None for slot in definition.required_slots})
        self._records.update(record_id, {definition.field: cleared})
        self._refresh(record_id)
        return len(paths)

    # ------------------------------------------------------------------
    # documents
    # ------------------------------------------------------------------
    def _record_context(self, record_id: str) -> tuple[PayrollRecord, str, str]:
        record = self._records.get_one(record_id)
        cycle = self._records.get_cycle(record.payroll_cycle_id)
        company = next((item for item in self._records.list_companies() if item.id == record.company_id), None)
        if company is None:
            raise NotFoundError(f"company {record.company_id} not found")
        return record, company.company_name, cycle.month_year

    def upload_document(
        self,
        record_id: str,
        document_type: str,
        *,
        filename: str,
        content: bytes,
        document_set: str = "preparation",
    ) -> str:
        record, company_name, month_year = self._record_context(record_id)
        path = store_document(
            self._records,
            self._blobs,
            record=record,
            company_name=company_name,
            month_year=month_year,
            document_set=document_set,
            document_type=document_type,
            filename=filename,
            content=content,
        )
        self._refresh(record_id)
        return path

    def delete_document(self, record_id: str, document_type: str, *, document_set: str = "preparation") -> bool:
        record = self._records.get_one(record_id)
        removed = remove_document(
            self._records,
            self._blobs,
            record=record,
            document_set=document_set,
            document_type=document_type,
        )
        if removed:
            self._refresh(record_id)
        return removed

    def recompute_employee_counts(self, month_year: str) -> dict[str, int]:
        cycle = self.get_cycle(month_year)
        counts: dict[str, int] = {}
        for record in self._records.get(cycle.id):
            path = (record.documents or {}).get(EMPLOYEE_COUNT_SLOT)
            count = 0
            if path:
                try:
                    count = count_employees(self._blobs.get(path), path)
                except StorageError:
                    logger.warning("PAYE file %s for record %s is unreadable", path, record.id, exc_info=True)
            if count != record.number_of_employees:
                self._records.update(record.id, {"number_of_employees": count})
            counts[record.id] = count
        self._invalidate(cycle.id)
        return counts

    # ------------------------------------------------------------------
    # bulk operations
    # ------------------------------------------------------------------
    def _bulk(self) -> BulkOperations:
        return BulkOperations(self._records, self._blobs, self._backend(), max_workers=self._max_workers)

    async def extract_all(
        self,
        month_year: str,
        criteria: FilterCriteria | None = None,
        *,
        mode: str = "all",
        tax_type_ids: Sequence[str] | None = None,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> BulkReport:
        cycle = self.get_cycle(month_year)
        views = self.filtered_records(month_year, criteria)
        tax_types = [tax for tax in TAX_TYPES if not tax_type_ids or tax.id in tax_type_ids]
        try:
            return await self._bulk().extract_all(
                views, mode=mode, tax_types=tax_types, progress=progress, cancel=cancel
            )
        finally:
            self._invalidate(cycle.id)

    async def export_all(
        self,
        month_year: str,
        criteria: FilterCriteria | None = None,
        *,
        document_set: str = "payment_slips",
        document_types: Sequence[str] | None = None,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> BulkReport:
        views = self.filtered_records(month_year, criteria)
        return await self._bulk().export_all(
            views,
            document_set=document_set,
            document_types=document_types,
            progress=progress,
            cancel=cancel,
        )

    async def batch_upload(
        self,
        month_year: str,
        items: Sequence[UploadItem],
        *,
        document_set: str = "payment_receipts",
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> BulkReport:
        cycle = self.get_cycle(month_year)
        views = self.list_record_views(month_year)
        try:
            return await self._bulk().batch_upload(
                views,
                items,
                month_year=month_year,
                document_set=document_set,
                progress=progress,
                cancel=cancel,
            )
        finally:
            self._invalidate(cycle.id)

    # ------------------------------------------------------------------
    # filing automation
    # ------------------------------------------------------------------
    def submit_filing_job(self, month_year: str, record_ids: Sequence[str]) -> str:
        views = {view.id: view for view in self.list_record_views(month_year)}
        missing = [record_id for record_id in record_ids if record_id not in views]
        if missing:
            raise NotFoundError(f"records not in cycle {month_year}: {', '.join(missing)}")
        companies = [
            {
                "record_id": record_id,
                "company_name": views[record_id].company_name,
                "pin": views[record_id].pin_details.pin if views[record_id].pin_details else None,
            }
            for record_id in record_ids
        ]
        job_id = self._backend().submit({"month_year": month_year, "companies": companies})
        logger.info("submitted filing job %s for %d companies", job_id, len(companies))
        return job_id

    def filing_job_status(self, job_id: str) -> JobStatus:
        return self._backend().poll_status(job_id)

    async def wait_for_filing_job(
        self,
        job_id: str,
        *,
        expected: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> JobStatus | None:
        poller = JobPoller(self._backend(), interval=self._poll_interval)
        return await poller.wait(job_id, expected=expected, cancel=cancel)

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._records.reset()
        reset_blobs = getattr(self._blobs, "reset", None)
        if callable(reset_blobs):
            reset_blobs()
        self._invalidate()


_service = PayrollService(InMemoryRecordStore(), InMemoryBlobStore())


def configure_payroll_service(
    *,
    records: RecordStore | None = None,
    blobs: BlobStore | None = None,
    max_workers: int | None = DEFAULT_MAX_WORKERS,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> PayrollService:
    """Replace the process-wide service, keeping the current stores unless given."""

    global _service
    _service = PayrollService(
        records or _service.records,
        blobs or _service.blobs,
        max_workers=max_workers,
        poll_interval=poll_interval,
    )
    return _service


def get_payroll_service() -> PayrollService:
    """Return the singleton payroll service for the process."""

    return _service


def reset_payroll_state() -> None:
    """Reset the in-memory stores (used in tests)."""

    _service.reset()
