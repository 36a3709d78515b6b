from __future__ import annotations

from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from payroll_filings.application import get_payroll_service
from payroll_filings.core.lifecycle import lifecycle_state
from payroll_filings.core.schema import RecordStatus
from payroll_filings.routes.errors import domain_errors, require_document_set

router = APIRouter(prefix="/records", tags=["records"])


def _status_payload(record_id: str, status: RecordStatus) -> dict:
    return {
        "record_id": record_id,
        "status": status.model_dump(mode="json"),
        "lifecycle_state": lifecycle_state(status).value,
    }


@router.get("/{record_id}")
async def get_record(record_id: str) -> dict:
    service = get_payroll_service()
    with domain_errors():
        record = service.get_record(record_id)
    return record.model_dump(mode="json")


@router.post("/{record_id}/finalize")
async def finalize_record(record_id: str, payload: dict | None = None) -> dict:
    payload = payload or {}
    service = get_payroll_service()
    with domain_errors():
        status = service.finalize(
            record_id,
            is_nil=bool(payload.get("is_nil", False)),
            assigned_to=payload.get("assigned_to"),
            date=payload.get("date"),
        )
    return _status_payload(record_id, status)


@router.delete("/{record_id}/finalize")
async def revert_finalize(record_id: str) -> dict:
    service = get_payroll_service()
    with domain_errors():
        status = service.revert_finalize(record_id)
    return _status_payload(record_id, status)


@router.post("/{record_id}/filing")
async def file_record(record_id: str, payload: dict | None = None) -> dict:
    payload = payload or {}
    is_nil = payload.get("is_nil")
    service = get_payroll_service()
    with domain_errors():
        status = service.file_record(
            record_id,
            filing_date=payload.get("filing_date"),
            is_nil=None if is_nil is None else bool(is_nil),
        )
    return _status_payload(record_id, status)


@router.delete("/{record_id}/filing")
async def remove_filing(record_id: str) -> dict:
    service = get_payroll_service()
    with domain_errors():
        status = service.remove_filing(record_id)
    return _status_payload(record_id, status)


@router.delete("/{record_id}/documents")
async def delete_all_documents(record_id: str, document_set: str = Query(default="preparation")) -> dict:
    require_document_set(document_set)
    service = get_payroll_service()
    with domain_errors():
        deleted = service.delete_all_documents(record_id, document_set)
    return {"record_id": record_id, "deleted": deleted}


@router.post("/{record_id}/documents/{document_type}")
async def upload_document(
    record_id: str,
    document_type: str,
    file: UploadFile = File(...),
    document_set: str = Query(default="preparation"),
) -> dict:
    """Store one document and point the record's slot at it."""
    require_document_set(document_set)
    if not file.filename:
        raise HTTPException(status_code=400, detail="Uploaded file must have a filename")
    try:
        content = await file.read()
    finally:
        await file.close()

    service = get_payroll_service()
    with domain_errors():
        path = service.upload_document(
            record_id,
            document_type,
            filename=file.filename,
            content=content,
            document_set=document_set,
        )
    return {"record_id": record_id, "document_type": document_type, "path": path}


@router.delete("/{record_id}/documents/{document_type}")
async def delete_document(
    record_id: str,
    document_type: str,
    document_set: str = Query(default="preparation"),
) -> dict:
    require_document_set(document_set)
    service = get_payroll_service()
    with domain_errors():
        removed = service.delete_document(record_id, document_type, document_set=document_set)
    return {"record_id": record_id, "document_type": document_type, "deleted": removed}
