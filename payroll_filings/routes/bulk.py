from __future__ import annotations

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from payroll_filings.application import get_payroll_service
from payroll_filings.core.filters import FilterCriteria
from payroll_filings.routes.errors import domain_errors, require_document_set
from payroll_filings.workers.bulk import EXTRACTION_MODES, UploadItem

router = APIRouter(tags=["bulk"])


def _criteria_from_payload(payload: dict) -> FilterCriteria:
    return FilterCriteria.build(
        payload.get("search"),
        payload.get("categories") or (),
        payload.get("obligations") or (),
    )


@router.post("/cycles/{month_year}/extract")
async def extract_all(month_year: str, payload: dict | None = None) -> dict:
    payload = payload or {}
    mode = str(payload.get("mode") or "all")
    if mode not in EXTRACTION_MODES:
        raise HTTPException(status_code=400, detail=f"mode must be one of {', '.join(EXTRACTION_MODES)}")
    service = get_payroll_service()
    with domain_errors():
        report = await service.extract_all(
            month_year,
            _criteria_from_payload(payload),
            mode=mode,
            tax_type_ids=payload.get("tax_types"),
        )
    return report.as_dict()


@router.post("/cycles/{month_year}/export")
async def export_all(month_year: str, payload: dict | None = None) -> Response:
    payload = payload or {}
    document_set = require_document_set(str(payload.get("document_set") or "payment_slips"))
    service = get_payroll_service()
    with domain_errors():
        report = await service.export_all(
            month_year,
            _criteria_from_payload(payload),
            document_set=document_set,
            document_types=payload.get("document_types"),
        )
    return Response(
        content=report.archive or b"",
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{document_set}-{month_year}.zip"',
            "X-Bulk-State": report.state,
            "X-Bulk-Success": str(report.success_count),
            "X-Bulk-Errors": str(report.error_count),
        },
    )


@router.post("/cycles/{month_year}/upload")
async def batch_upload(
    month_year: str,
    files: list[UploadFile] = File(...),
    record_ids: list[str] = Form(...),
    document_types: list[str] = Form(...),
    document_set: str = Form(default="payment_receipts"),
) -> dict:
    """Upload many documents at once; the n-th file goes to the n-th record/type pair."""
    require_document_set(document_set)
    if not (len(files) == len(record_ids) == len(document_types)):
        raise HTTPException(status_code=400, detail="files, record_ids and document_types must align")

    items: list[UploadItem] = []
    for upload, record_id, document_type in zip(files, record_ids, document_types):
        try:
            if not upload.filename:
                raise HTTPException(status_code=400, detail="Uploaded file must have a filename")
            content = await upload.read()
        finally:
            await upload.close()
        items.append(UploadItem(record_id=record_id, document_type=document_type, filename=upload.filename, content=content))

    service = get_payroll_service()
    with domain_errors():
        report = await service.batch_upload(month_year, items, document_set=document_set)
    return report.as_dict()


@router.post("/cycles/{month_year}/filing-jobs")
async def submit_filing_job(month_year: str, payload: dict) -> dict:
    record_ids = payload.get("record_ids") or []
    if not record_ids:
        raise HTTPException(status_code=400, detail="record_ids is required")
    service = get_payroll_service()
    with domain_errors():
        job_id = service.submit_filing_job(month_year, [str(item) for item in record_ids])
    return {"job_id": job_id}


@router.get("/filing-jobs/{job_id}")
async def get_filing_job(job_id: str) -> dict:
    service = get_payroll_service()
    with domain_errors():
        status = service.filing_job_status(job_id)
    return {
        "job_id": status.job_id,
        "state": status.state,
        "companies": status.companies,
        "completed": status.completed_count,
        "terminal": status.is_terminal(),
    }
