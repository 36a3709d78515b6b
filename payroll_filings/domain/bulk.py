"""Domain entities for bulk record operations."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Literal

UnitStatus = Literal["pending", "success", "error", "skipped"]
BulkState = Literal["running", "completed", "partial", "cancelled"]


class SkipUnit(Exception):
    """Raised by a unit handler when there is nothing to do for that unit."""


@dataclass(slots=True)
class BulkUnit:
    """One (record, document type) pair scheduled by a bulk operation."""

    record_id: str
    company_name: str
    document_type: str
    payload: Any = None

    @property
    def key(self) -> str:
        return f"{self.record_id}:{self.document_type}"


@dataclass(slots=True)
class UnitResult:
    record_id: str
    company_name: str
    document_type: str
    status: UnitStatus = "pending"
    error: str | None = None
    message: str | None = None
    data: Any = None

    @classmethod
    def pending(cls, unit: BulkUnit) -> "UnitResult":
        return cls(record_id=unit.record_id, company_name=unit.company_name, document_type=unit.document_type)

    def as_dict(self) -> dict[str, Any]:
        data = self.data if isinstance(self.data, (dict, str, int, float, type(None))) else None
        return {
            "record_id": self.record_id,
            "company_name": self.company_name,
            "document_type": self.document_type,
            "status": self.status,
            "error": self.error,
            "message": self.message,
            "data": data,
        }


@dataclass(slots=True)
class BulkProgress:
    completed: int
    total: int

    @property
    def percent(self) -> int:
        if not self.total:
            return 100
        return round(self.completed / self.total * 100)


class CancellationToken:
    """Shared flag checked between units; in-flight work is never interrupted."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(slots=True)
class BulkReport:
    """Terminal summary of a bulk operation."""

    operation: str
    results: list[UnitResult] = field(default_factory=list)
    cancelled: bool = False
    archive: bytes | None = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def completed_count(self) -> int:
        return sum(1 for item in self.results if item.status != "pending")

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.results if item.status == "success")

    @property
    def error_count(self) -> int:
        return sum(1 for item in self.results if item.status == "error")

    @property
    def skipped_count(self) -> int:
        return sum(1 for item in self.results if item.status == "skipped")

    @property
    def state(self) -> BulkState:
        if self.completed_count < self.total:
            return "cancelled"
        if self.success_count < self.total:
            return "partial"
        return "completed"

    def as_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "state": self.state,
            "total": self.total,
            "completed": self.completed_count,
            "success": self.success_count,
            "errors": self.error_count,
            "skipped": self.skipped_count,
            "items": [item.as_dict() for item in self.results],
        }
