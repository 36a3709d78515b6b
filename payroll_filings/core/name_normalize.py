from __future__ import annotations

import re
import unicodedata


def normalize(name: str) -> str:
    normalized = unicodedata.normalize("NFKC", name or "").strip().lower()
    return " ".join(normalized.split())


def sanitize_company_name(name: str) -> str:
    """Company name reduced to characters safe for a storage path segment."""

    cleaned = re.sub(r"[^a-zA-Z0-9 ]", "", unicodedata.normalize("NFKC", name or ""))
    cleaned = " ".join(cleaned.split())
    return cleaned or "Unknown"
