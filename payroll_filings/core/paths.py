from __future__ import annotations

import os
from datetime import date
from pathlib import Path, PurePosixPath

from payroll_filings.core.name_normalize import sanitize_company_name


def blob_root() -> Path | None:
    """Filesystem root for stored documents, or ``None`` to keep them in memory."""

    env_root = os.getenv("BLOB_STORE_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return None


def file_extension(filename: str | None, default: str = "pdf") -> str:
    suffix = PurePosixPath(filename or "").suffix.lstrip(".").lower()
    return suffix or default


def build_document_path(
    month_year: str,
    sub_folder: str,
    company_name: str,
    document_type: str,
    *,
    extension: str,
    on: date | None = None,
) -> str:
    """Storage path ``{monthYear}/{subFolder}/{company}/{type} - {company} - {date}.{ext}``."""

    company = sanitize_company_name(company_name)
    stamp = (on or date.today()).strftime("%Y-%m-%d")
    filename = f"{document_type} - {company} - {stamp}.{extension.lstrip('.')}"
    return str(PurePosixPath(month_year) / sub_folder / company / filename)


def resolve_under(root: Path, relative: str) -> Path:
    """Resolve ``relative`` beneath ``root`` and refuse paths escaping it."""

    candidate = (root / relative).resolve()
    if not str(candidate).startswith(str(root.resolve())):
        raise ValueError("invalid document path")
    return candidate
