"""Infrastructure layer for payroll record persistence."""
from __future__ import annotations

import copy
import threading
from typing import Any, Iterable, Protocol

from payroll_filings.core.catalog import DOCUMENT_SETS
from payroll_filings.core.schema import Company, ObligationDetails, PayrollCycle, PayrollRecord, RecordStatus


class NotFoundError(LookupError):
    """Raised when a record, cycle or company mapping does not exist."""


class RecordStore(Protocol):
    """Persistence contract for payroll cycles and their records."""

    def get(self, cycle_id: str) -> list[PayrollRecord]: ...

    def get_one(self, record_id: str) -> PayrollRecord: ...

    def update(self, record_id: str, fields: dict[str, Any]) -> None: ...

    def update_slot(self, record_id: str, field: str, slot: str, value: Any) -> None: ...

    def insert_many(self, cycle_id: str, company_ids: Iterable[str]) -> int: ...

    def get_or_create_cycle(self, month_year: str) -> PayrollCycle: ...

    def get_cycle(self, cycle_id: str) -> PayrollCycle: ...

    def find_cycle(self, month_year: str) -> PayrollCycle | None: ...

    def list_companies(self) -> list[Company]: ...

    def list_obligation_details(self) -> list[ObligationDetails]: ...

    def reset(self) -> None: ...


class InMemoryRecordStore:
    """Simple in-memory store for fast iteration and tests."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._cycles: dict[str, dict[str, Any]] = {}
        self._records: dict[str, dict[str, Any]] = {}
        self._companies: dict[str, dict[str, Any]] = {}
        self._obligations: dict[str, dict[str, Any]] = {}
        self._record_counter = 0

    # ------------------------------------------------------------------
    # reference data (owned by other systems, loaded for joins)
    # ------------------------------------------------------------------
    def add_company(self, company: Company | dict[str, Any]) -> Company:
        model = company if isinstance(company, Company) else Company.model_validate(company)
        with self._lock:
            self._companies[model.id] = model.model_dump()
        return model

    def add_obligation_details(self, details: ObligationDetails | dict[str, Any]) -> ObligationDetails:
        model = details if isinstance(details, ObligationDetails) else ObligationDetails.model_validate(details)
        with self._lock:
            self._obligations[model.company_name] = model.model_dump()
        return model

    def list_companies(self) -> list[Company]:
        with self._lock:
            rows = list(self._companies.values())
        return [Company.model_validate(row) for row in rows]

    def list_obligation_details(self) -> list[ObligationDetails]:
        with self._lock:
            rows = list(self._obligations.values())
        return [ObligationDetails.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # cycles
    # ------------------------------------------------------------------
    def get_or_create_cycle(self, month_year: str) -> PayrollCycle:
        with self._lock:
            existing = self.find_cycle(month_year)
            if existing is not None:
                return existing
            cycle = PayrollCycle(id=f"cycle-{month_year}", month_year=month_year)
            self._cycles[cycle.id] = cycle.model_dump()
            return cycle

    def get_cycle(self, cycle_id: str) -> PayrollCycle:
        with self._lock:
            row = self._cycles.get(cycle_id)
        if row is None:
            raise NotFoundError(f"payroll cycle {cycle_id} not found")
        return PayrollCycle.model_validate(row)

    def find_cycle(self, month_year: str) -> PayrollCycle | None:
        with self._lock:
            for row in self._cycles.values():
                if row["month_year"] == month_year:
                    return PayrollCycle.model_validate(row)
        return None

    # ------------------------------------------------------------------
    # records
    # ------------------------------------------------------------------
    def get(self, cycle_id: str) -> list[PayrollRecord]:
        with self._lock:
            rows = [copy.deepcopy(row) for row in self._records.values() if row["payroll_cycle_id"] == cycle_id]
        return [PayrollRecord.model_validate(row) for row in rows]

    def get_one(self, record_id: str) -> PayrollRecord:
        with self._lock:
            row = self._records.get(record_id)
            if row is None:
                raise NotFoundError(f"payroll record {record_id} not found")
            row = copy.deepcopy(row)
        return PayrollRecord.model_validate(row)

    def update(self, record_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            row = self._records.get(record_id)
            if row is None:
                raise NotFoundError(f"payroll record {record_id} not found")
            for key, value in fields.items():
                if key in {"id", "company_id", "payroll_cycle_id"}:
                    continue
                row[key] = copy.deepcopy(value)

    def update_slot(self, record_id: str, field: str, slot: str, value: Any) -> None:
        """Write one entry of a map-valued field, leaving sibling entries untouched."""

        with self._lock:
            row = self._records.get(record_id)
            if row is None:
                raise NotFoundError(f"payroll record {record_id} not found")
            current = row.get(field)
            if not isinstance(current, dict):
                current = {}
                row[field] = current
            current[slot] = copy.deepcopy(value)

    def insert_many(self, cycle_id: str, company_ids: Iterable[str]) -> int:
        with self._lock:
            if cycle_id not in self._cycles:
                raise NotFoundError(f"payroll cycle {cycle_id} not found")
            seeded = {row["company_id"] for row in self._records.values() if row["payroll_cycle_id"] == cycle_id}
            inserted = 0
            for company_id in company_ids:
                if company_id in seeded:
                    continue
                self._record_counter += 1
                record = PayrollRecord(
                    id=f"rec-{self._record_counter:05d}",
                    company_id=company_id,
                    payroll_cycle_id=cycle_id,
                    **{
                        document_set.field: {slot: None for slot in document_set.slots}
                        for document_set in DOCUMENT_SETS.values()
                    },
                    status=RecordStatus(),
                )
                self._records[record.id] = record.model_dump(exclude={"status"}) | {
                    "status": record.status.to_store()
                }
                seeded.add(company_id)
                inserted += 1
            return inserted

    def raw(self, record_id: str) -> dict[str, Any]:
        """Return a copy of the stored row exactly as persisted."""

        with self._lock:
            row = self._records.get(record_id)
            if row is None:
                raise NotFoundError(f"payroll record {record_id} not found")
            return copy.deepcopy(row)

    def reset(self) -> None:
        with self._lock:
            self._cycles.clear()
            self._records.clear()
            self._companies.clear()
            self._obligations.clear()
            self._record_counter = 0
