"""HTTP client for the filing/extraction automation server."""
from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from .extraction import RECEIPT_FIELDS, BackendUnavailable, ExtractionField, JobStatus

logger = logging.getLogger(__name__)


class AutomationError(RuntimeError):
    """Raised when the automation server answers but reports a failure."""


class HttpAutomationClient:
    """Client for the automation server's job and extraction endpoints."""

    def __init__(
        self,
        api_base: str = "http://localhost:3005",
        *,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(api_base)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("api_base must include scheme and host")

        self._base_url = api_base.rstrip("/")
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("automation server rejected %s %s: %s", method, path, exc.response.status_code)
            raise AutomationError(f"Server responded with status: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.warning("automation server unreachable for %s %s: %s", method, path, exc)
            raise BackendUnavailable(f"automation server unreachable: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise AutomationError("automation server returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise AutomationError("automation server returned an unexpected payload")
        return payload

    @staticmethod
    def _serialise_fields(fields: tuple[ExtractionField, ...]) -> str:
        return json.dumps([{"name": item.name, "type": item.type, "required": item.required} for item in fields])

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def submit(self, job_spec: dict[str, Any]) -> str:
        payload = self._request("POST", "/automate-filing", json=job_spec)
        job_id = payload.get("jobId") or payload.get("job_id")
        if not job_id:
            raise AutomationError("automation server did not return a job id")
        return str(job_id)

    def poll_status(self, job_id: str) -> JobStatus:
        payload = self._request("GET", f"/filing-status/{job_id}")
        companies = payload.get("companies") or {}
        if not isinstance(companies, dict):
            companies = {}
        return JobStatus(
            job_id=job_id,
            state=str(payload.get("status") or payload.get("state") or "running"),
            companies={str(key): dict(value) for key, value in companies.items() if isinstance(value, dict)},
        )

    def extract(
        self,
        content: bytes,
        *,
        filename: str,
        fields: tuple[ExtractionField, ...] = RECEIPT_FIELDS,
        document_kind: str = "payment_receipt",
    ) -> dict[str, Any]:
        payload = self._request(
            "POST",
            "/extract",
            files={"file": (filename, content)},
            data={"fields": self._serialise_fields(fields), "document_type": document_kind},
        )
        if not payload.get("success", True):
            raise AutomationError(str(payload.get("message") or "extraction failed"))
        extracted = payload.get("extractedData") or payload.get("extracted_data") or {}
        return dict(extracted) if isinstance(extracted, dict) else {}

    def close(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            self._client.close()


__all__ = ["AutomationError", "HttpAutomationClient"]
