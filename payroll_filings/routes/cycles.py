from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from payroll_filings.application import get_payroll_service
from payroll_filings.core.completeness import document_count, document_status
from payroll_filings.core.filters import FilterCriteria, obligation_bucket
from payroll_filings.core.lifecycle import lifecycle_state
from payroll_filings.core.schema import PayrollRecordView
from payroll_filings.exporters.document_manifest import document_links_csv
from payroll_filings.routes.errors import domain_errors, require_document_set

router = APIRouter(prefix="/cycles", tags=["cycles"])


def _criteria(search: str | None, categories: list[str] | None, obligations: list[str] | None) -> FilterCriteria:
    return FilterCriteria.build(search, categories, obligations)


def serialise_record(view: PayrollRecordView, document_set: str = "preparation") -> dict[str, Any]:
    uploaded, required = document_count(view, document_set)
    data = view.model_dump(mode="json")
    data["company_name"] = view.company_name
    data["document_status"] = document_status(view, document_set)
    data["documents_uploaded"] = uploaded
    data["documents_required"] = required
    data["lifecycle_state"] = lifecycle_state(view.status).value
    data["obligation"] = obligation_bucket(view)
    return data


@router.post("")
async def open_cycle(payload: dict) -> dict:
    month_year = payload.get("month_year")
    if not month_year:
        raise HTTPException(status_code=400, detail="month_year is required")
    service = get_payroll_service()
    with domain_errors():
        return service.open_cycle(month_year)


@router.get("/{month_year}/records")
async def list_records(
    month_year: str,
    search: str | None = Query(default=None),
    categories: list[str] | None = Query(default=None),
    obligations: list[str] | None = Query(default=None),
    document_set: str = Query(default="preparation"),
) -> dict:
    require_document_set(document_set)
    service = get_payroll_service()
    with domain_errors():
        records = service.filtered_records(month_year, _criteria(search, categories, obligations))
    return {"month_year": month_year, "items": [serialise_record(view, document_set) for view in records]}


@router.get("/{month_year}/summary")
async def get_summary(
    month_year: str,
    search: str | None = Query(default=None),
    categories: list[str] | None = Query(default=None),
    obligations: list[str] | None = Query(default=None),
    document_set: str = Query(default="preparation"),
) -> dict:
    require_document_set(document_set)
    service = get_payroll_service()
    with domain_errors():
        summary = service.summary(month_year, _criteria(search, categories, obligations), document_set=document_set)
    return summary.as_dict()


@router.post("/{month_year}/employee-counts")
async def recompute_employee_counts(month_year: str) -> dict:
    service = get_payroll_service()
    with domain_errors():
        counts = service.recompute_employee_counts(month_year)
    return {"month_year": month_year, "counts": counts}


@router.get("/{month_year}/document-links")
async def export_document_links(
    month_year: str,
    search: str | None = Query(default=None),
    categories: list[str] | None = Query(default=None),
    obligations: list[str] | None = Query(default=None),
    document_set: str = Query(default="payment_slips"),
) -> Response:
    """CSV listing the stored path of every uploaded document in a set."""
    require_document_set(document_set)
    service = get_payroll_service()
    with domain_errors():
        records = service.filtered_records(month_year, _criteria(search, categories, obligations))
    return Response(
        content=document_links_csv(records, document_set),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{document_set}-links-{month_year}.csv"'},
    )
