from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException

from payroll_filings.core.catalog import DOCUMENT_SETS
from payroll_filings.core.validation import PreconditionFailed, ValidationError
from payroll_filings.infrastructure import BackendUnavailable, NotFoundError, StorageError
from payroll_filings.infrastructure.automation_http import AutomationError

logger = logging.getLogger(__name__)


@contextmanager
def domain_errors() -> Iterator[None]:
    """Translate domain exceptions raised by the service into HTTP errors."""

    try:
        yield
    except PreconditionFailed as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StorageError as exc:
        logger.warning("storage failure: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except AutomationError as exc:
        logger.warning("automation server reported a failure: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except BackendUnavailable as exc:
        logger.warning("extraction service unavailable: %s", exc)
        raise HTTPException(status_code=503, detail="extraction service not running") from exc


def require_document_set(name: str) -> str:
    if name not in DOCUMENT_SETS:
        raise HTTPException(status_code=400, detail=f"unknown document set: {name}")
    return name
