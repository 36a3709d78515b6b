"""Extraction and filing automation hooks.

The application talks to an external automation server that extracts payment
details from receipts and files returns with the tax authority. This module
defines the contract; until :func:`configure_extraction_backend` installs a
real client, every call reports :class:`BackendUnavailable` so callers can
show a "service not running" message.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

TERMINAL_COMPANY_STATES = frozenset({"completed", "failed"})


class BackendUnavailable(RuntimeError):
    """Raised when the extraction/filing service cannot be reached."""


@dataclass(slots=True)
class ExtractionField:
    name: str
    type: str = "string"
    required: bool = True


RECEIPT_FIELDS: tuple[ExtractionField, ...] = (
    ExtractionField("amount", "string"),
    ExtractionField("payment_date", "date"),
    ExtractionField("payment_mode", "string"),
    ExtractionField("bank_name", "string", required=False),
)


@dataclass(slots=True)
class JobStatus:
    """Snapshot of a submitted automation job."""

    job_id: str
    state: str = "pending"
    companies: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def completed_count(self) -> int:
        return sum(1 for item in self.companies.values() if item.get("status") in TERMINAL_COMPANY_STATES)

    @property
    def any_failed(self) -> bool:
        return any(item.get("status") == "failed" for item in self.companies.values())

    def is_terminal(self, expected: int | None = None) -> bool:
        if self.state in TERMINAL_COMPANY_STATES and not self.companies:
            return True
        if not self.companies:
            return False
        total = expected if expected is not None else len(self.companies)
        return self.completed_count >= total


class ExtractionBackend(Protocol):
    """Contract for the automation server."""

    def submit(self, job_spec: dict[str, Any]) -> str: ...

    def poll_status(self, job_id: str) -> JobStatus: ...

    def extract(
        self,
        content: bytes,
        *,
        filename: str,
        fields: tuple[ExtractionField, ...] = RECEIPT_FIELDS,
        document_kind: str = "payment_receipt",
    ) -> dict[str, Any]: ...


class NoOpExtractionBackend:
    """Fallback used when no automation server is configured."""

    reason = "extraction service not configured"

    def submit(self, job_spec: dict[str, Any]) -> str:
        raise BackendUnavailable(self.reason)

    def poll_status(self, job_id: str) -> JobStatus:
        raise BackendUnavailable(self.reason)

    def extract(
        self,
        content: bytes,
        *,
        filename: str,
        fields: tuple[ExtractionField, ...] = RECEIPT_FIELDS,
        document_kind: str = "payment_receipt",
    ) -> dict[str, Any]:
        raise BackendUnavailable(self.reason)


_backend: ExtractionBackend = NoOpExtractionBackend()


def configure_extraction_backend(backend: ExtractionBackend) -> None:
    """Install the backend used by extraction and filing flows."""

    global _backend
    _backend = backend


def get_extraction_backend() -> ExtractionBackend:
    """Return the currently configured backend."""

    return _backend
