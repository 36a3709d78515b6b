"""Status transitions for a payroll record.

The functions are pure: they take the current status (or record) and return a
new :class:`RecordStatus`. Persisting the result is the job of the
application service.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from payroll_filings.core.schema import NIL, UNASSIGNED, FilingInfo, PayrollRecord, RecordStatus
from payroll_filings.core.validation import validate_filing


class LifecycleState(str, Enum):
    PENDING = "pending"
    FINALIZED = "finalized"
    FINALIZED_NIL = "finalized_nil"
    FILED = "filed"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def lifecycle_state(status: RecordStatus) -> LifecycleState:
    if status.filing is not None and status.filing.filingDate:
        return LifecycleState.FILED
    if status.finalization_date == NIL:
        return LifecycleState.FINALIZED_NIL
    if status.finalization_date:
        return LifecycleState.FINALIZED
    return LifecycleState.PENDING


def finalize(status: RecordStatus, *, is_nil: bool, assigned_to: str | None, date: str | None = None) -> RecordStatus:
    return status.model_copy(
        update={
            "finalization_date": NIL if is_nil else (date or _now_iso()),
            "status": "completed",
            "assigned_to": assigned_to,
        }
    )


def revert_finalize(status: RecordStatus) -> RecordStatus:
    return status.model_copy(update={"finalization_date": None, "status": "pending", "assigned_to": None})


def file(record: PayrollRecord, filing_date: str | None = None, *, is_nil: bool | None = None) -> RecordStatus:
    """Attach filing details, rejecting records that are not ready.

    ``record.status`` must be the freshly persisted status; only the
    ``filing`` entry is replaced.
    """

    nil = record.status.is_nil if is_nil is None else is_nil
    validate_filing(record, is_nil=nil)
    filing = FilingInfo(
        filingDate=NIL if nil else (filing_date or _now_iso()),
        isNil=nil,
        filedBy=record.status.assigned_to or UNASSIGNED,
        isReady=True,
    )
    return record.status.model_copy(update={"filing": filing})


def remove_filing(status: RecordStatus) -> RecordStatus:
    return status.model_copy(update={"filing": None})
