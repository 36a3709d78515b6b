from __future__ import annotations

import io
import sys
import zipfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

from payroll_filings.application import get_payroll_service, reset_payroll_state
from payroll_filings.infrastructure import BackendUnavailable, configure_extraction_backend
from payroll_filings.infrastructure.extraction import NoOpExtractionBackend


@pytest.fixture(autouse=True)
def reset_state():
    reset_payroll_state()
    configure_extraction_backend(NoOpExtractionBackend())
    yield
    reset_payroll_state()
    configure_extraction_backend(NoOpExtractionBackend())


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.delenv("BLOB_STORE_ROOT", raising=False)
    monkeypatch.delenv("EXTRACTION_API_URL", raising=False)
    from payroll_filings.app import create_app

    app = create_app()
    service = get_payroll_service()
    service.records.add_company(
        {
            "id": "c-1",
            "company_name": "Acme Ltd",
            "acc_client_effective_from": "2020-01-01",
            "acc_client_effective_to": "2099-12-31",
        }
    )
    service.records.add_company({"id": "c-2", "company_name": "Beta Traders"})
    service.records.add_obligation_details(
        {"company_name": "Acme Ltd", "pin": "P051", "paye_status": "Registered", "paye_effective_from": "2020-01-01"}
    )
    with TestClient(app) as test_client:
        yield test_client


def _open_cycle(client: TestClient) -> dict[str, str]:
    response = client.post("/api/cycles", json={"month_year": "2025-03"})
    assert response.status_code == 200
    items = client.get("/api/cycles/2025-03/records").json()["items"]
    return {item["company_name"]: item["id"] for item in items}


def test_cycle_records_and_summary(client):
    ids = _open_cycle(client)
    assert set(ids) == {"Acme Ltd", "Beta Traders"}
    assert client.post("/api/cycles", json={"month_year": "2025-03"}).json()["inserted"] == 0

    response = client.get(
        "/api/cycles/2025-03/records",
        params=[("categories", "acc_status_active"), ("obligations", "active")],
    )
    items = response.json()["items"]
    assert [item["company_name"] for item in items] == ["Acme Ltd"]
    assert items[0]["document_status"] == "incomplete"
    assert items[0]["documents_required"] == 5
    assert items[0]["lifecycle_state"] == "pending"

    summary = client.get("/api/cycles/2025-03/summary").json()
    assert summary["total"] == 2
    assert summary["pending"] == 2


def test_error_translation(client):
    assert client.post("/api/cycles", json={}).status_code == 400
    assert client.post("/api/cycles", json={"month_year": "March"}).status_code == 400
    assert client.get("/api/cycles/2025-04/records").status_code == 404
    assert client.post("/api/records/rec-missing/finalize", json={}).status_code == 404

    ids = _open_cycle(client)
    response = client.post(f"/api/records/{ids['Acme Ltd']}/filing", json={})
    assert response.status_code == 409
    assert client.get("/api/cycles/2025-03/summary", params={"document_set": "bogus"}).status_code == 400


def test_nil_filing_flow(client):
    record_id = _open_cycle(client)["Beta Traders"]

    response = client.post(f"/api/records/{record_id}/finalize", json={"is_nil": True, "assigned_to": "Tushar"})
    assert response.json()["lifecycle_state"] == "finalized_nil"

    response = client.post(f"/api/records/{record_id}/filing", json={"filing_date": "2025-04-01"})
    assert response.status_code == 200
    assert response.json()["status"]["filing"]["isNil"] is True
    assert response.json()["lifecycle_state"] == "filed"

    response = client.delete(f"/api/records/{record_id}/filing")
    assert response.json()["status"]["filing"] is None

    response = client.delete(f"/api/records/{record_id}/finalize")
    assert response.json()["lifecycle_state"] == "pending"


def test_document_upload_and_delete(client):
    record_id = _open_cycle(client)["Acme Ltd"]

    response = client.post(
        f"/api/records/{record_id}/documents/paye_csv",
        files={"file": ("paye.csv", b"A001,Jane\nA002,John\n", "text/csv")},
    )
    assert response.status_code == 200
    assert response.json()["path"].startswith("2025-03/PREP DOCS/Acme Ltd/paye_csv - Acme Ltd - ")

    counts = client.post("/api/cycles/2025-03/employee-counts").json()["counts"]
    assert counts[record_id] == 2

    bad = client.post(
        f"/api/records/{record_id}/documents/paye_slip",
        files={"file": ("slip.pdf", b"%PDF", "application/pdf")},
    )
    assert bad.status_code == 400

    assert client.delete(f"/api/records/{record_id}/documents/paye_csv").json()["deleted"] is True
    assert client.delete(f"/api/records/{record_id}/documents").json()["deleted"] == 0


def test_export_returns_zip(client):
    record_id = _open_cycle(client)["Acme Ltd"]
    client.post(
        f"/api/records/{record_id}/documents/paye_slip",
        params={"document_set": "payment_slips"},
        files={"file": ("slip.pdf", b"%PDF-slip", "application/pdf")},
    )

    response = client.post("/api/cycles/2025-03/export", json={"search": "acme"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert response.headers["x-bulk-success"] == "1"
    with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
        assert "Acme Ltd/paye_slip.pdf" in archive.namelist()
        assert "manifest.csv" in archive.namelist()

    links = client.get("/api/cycles/2025-03/document-links")
    assert links.status_code == 200
    lines = links.text.strip().splitlines()
    assert lines[0] == "Company Name,PIN,Document Type,Document Path"
    assert lines[1].startswith("Acme Ltd,P051,PAYE Payment Slip,2025-03/PAYMENT SLIPS/Acme Ltd/")
    assert len(lines) == 2


def test_batch_upload(client):
    ids = _open_cycle(client)
    response = client.post(
        "/api/cycles/2025-03/upload",
        data={"record_ids": [ids["Acme Ltd"], ids["Beta Traders"]], "document_types": ["paye_receipt", "nita_receipt"]},
        files=[
            ("files", ("a.pdf", b"%PDF-a", "application/pdf")),
            ("files", ("b.pdf", b"%PDF-b", "application/pdf")),
        ],
    )
    assert response.status_code == 200
    assert response.json()["success"] == 2


def test_extraction_reports_unavailable_backend(client):
    record_id = _open_cycle(client)["Acme Ltd"]
    client.post(
        f"/api/records/{record_id}/documents/paye_receipt",
        params={"document_set": "payment_receipts"},
        files={"file": ("r.pdf", b"%PDF", "application/pdf")},
    )

    report = client.post("/api/cycles/2025-03/extract", json={"mode": "all"}).json()
    errors = [item for item in report["items"] if item["status"] == "error"]
    assert report["state"] == "partial"
    assert errors[0]["error"] == "extraction service not configured"
    assert client.post("/api/cycles/2025-03/extract", json={"mode": "bogus"}).status_code == 400


def test_filing_job_requires_running_service(client):
    record_id = _open_cycle(client)["Acme Ltd"]
    response = client.post("/api/cycles/2025-03/filing-jobs", json={"record_ids": [record_id]})
    assert response.status_code == 503
    assert response.json()["detail"] == "extraction service not running"

    class Backend(NoOpExtractionBackend):
        def poll_status(self, job_id):
            raise BackendUnavailable("down")

    configure_extraction_backend(Backend())
    assert client.get("/api/filing-jobs/job-1").status_code == 503
