from __future__ import annotations

import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx
import pytest

from payroll_filings.infrastructure import BackendUnavailable
from payroll_filings.infrastructure.automation_http import AutomationError, HttpAutomationClient


def _client(handler) -> HttpAutomationClient:
    transport = httpx.MockTransport(handler)
    return HttpAutomationClient("http://automation.local:3005/", http_client=httpx.Client(transport=transport))


def test_submit_and_poll_status():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/automate-filing":
            captured["body"] = json.loads(request.content.decode("utf-8"))
            return httpx.Response(200, json={"jobId": "job-42"})
        assert request.url.path == "/filing-status/job-42"
        return httpx.Response(
            200,
            json={
                "status": "running",
                "companies": {"Acme Ltd": {"status": "completed"}, "Beta": {"status": "processing"}},
            },
        )

    client = _client(handler)
    job_id = client.submit({"month_year": "2025-03", "companies": [{"company_name": "Acme Ltd"}]})
    status = client.poll_status(job_id)

    assert job_id == "job-42"
    assert captured["body"]["month_year"] == "2025-03"
    assert status.state == "running"
    assert status.completed_count == 1
    assert not status.is_terminal()


def test_extract_posts_multipart_and_returns_fields():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/extract"
        body = request.content.decode("latin-1")
        assert 'filename="receipt.pdf"' in body
        assert "payment_receipt" in body
        return httpx.Response(
            200,
            json={"success": True, "extractedData": {"amount": "100", "payment_date": "2025-03-01"}},
        )

    result = _client(handler).extract(b"%PDF-1.4", filename="receipt.pdf")
    assert result == {"amount": "100", "payment_date": "2025-03-01"}


def test_extract_failure_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "unreadable scan"})

    with pytest.raises(AutomationError, match="unreadable scan"):
        _client(handler).extract(b"", filename="receipt.pdf")


def test_transport_errors_map_to_backend_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BackendUnavailable):
        _client(handler).submit({})


def test_error_responses_are_not_reported_as_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(AutomationError, match="500"):
        _client(handler).poll_status("job-1")


def test_unknown_job_is_a_server_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "job not found"})

    with pytest.raises(AutomationError, match="404") as excinfo:
        _client(handler).poll_status("job-missing")
    assert not isinstance(excinfo.value, BackendUnavailable)


def test_api_base_requires_scheme():
    with pytest.raises(ValueError):
        HttpAutomationClient("localhost:3005")
