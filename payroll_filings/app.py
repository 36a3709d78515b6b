import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_filings.application import configure_payroll_service
from payroll_filings.core.paths import blob_root
from payroll_filings.infrastructure import LocalBlobStore, configure_extraction_backend
from payroll_filings.infrastructure.automation_http import HttpAutomationClient
from payroll_filings.routes import bulk, cycles, records
from payroll_filings.workers.bulk import DEFAULT_MAX_WORKERS
from payroll_filings.workers.polling import DEFAULT_POLL_INTERVAL

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        logger.warning("ignoring invalid %s=%r", name, raw)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("ignoring invalid %s=%r", name, raw)
        return default


def create_app() -> FastAPI:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    app = FastAPI(title="Payroll Filings API", version="0.1.0")

    api_url = os.getenv("EXTRACTION_API_URL")
    if api_url:
        configure_extraction_backend(HttpAutomationClient(api_base=api_url))
        logger.info("extraction backend configured at %s", api_url)

    root: Path | None = blob_root()
    configure_payroll_service(
        blobs=LocalBlobStore(root) if root else None,
        max_workers=_int_env("BULK_MAX_WORKERS", DEFAULT_MAX_WORKERS),
        poll_interval=_float_env("JOB_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
    )

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(cycles.router, prefix="/api")
    app.include_router(records.router, prefix="/api")
    app.include_router(bulk.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root_page() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Payroll Filings API",
                "docs": "/docs",
            }
        )

    return app


app = create_app()
