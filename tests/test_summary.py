from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from payroll_filings.core.schema import FilingInfo, PayrollRecord, RecordStatus
from payroll_filings.core.summary import summarize

SLOTS = ("paye_csv", "hslevy_csv", "zip_file_kra", "shif_exl", "nssf_exl")


def _record(record_id: str, documents: dict, status: RecordStatus | None = None) -> PayrollRecord:
    return PayrollRecord(
        id=record_id,
        company_id=f"c-{record_id}",
        payroll_cycle_id="cycle-2025-03",
        documents=documents,
        status=status or RecordStatus(),
    )


def test_summary_counts_in_one_pass():
    records = [
        _record("1", {slot: f"{slot}.csv" for slot in SLOTS}, RecordStatus(finalization_date="2025-03-31", status="completed")),
        _record("2", {"paye_csv": "paye.csv"}),
        _record(
            "3",
            {"paye_csv": "paye.csv"},
            RecordStatus(
                finalization_date="NIL",
                status="completed",
                filing=FilingInfo(filingDate="NIL", isNil=True, filedBy="Tushar"),
            ),
        ),
        _record("4", {}, RecordStatus(filing=FilingInfo(filingDate="", isReady=True))),
    ]

    summary = summarize(records)

    assert summary.total == 4
    assert summary.nil == 1
    assert summary.finalized == 2
    assert summary.complete == 1
    assert summary.pending == 2
    assert summary.ready_to_file == 2

    paye = summary.documents["paye_csv"]
    assert (paye.all, paye.complete, paye.pending) == (3, 1, 1)
    nssf = summary.documents["nssf_exl"]
    assert (nssf.all, nssf.complete, nssf.pending) == (1, 1, 0)
    assert "all_csv" not in summary.documents


def test_empty_summary():
    summary = summarize([])
    assert summary.as_dict()["total"] == 0
    assert set(summary.documents) == set(SLOTS)
