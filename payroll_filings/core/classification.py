"""Category-window and PAYE obligation classification.

Every function here is total: malformed dates or statuses fall back to the
most conservative answer (``False`` / ``"missing"``) instead of raising.
"""
from __future__ import annotations

import re
from datetime import date, datetime

from payroll_filings.core.schema import Company, ObligationBucket

_SENTINELS = ("no obligation", "missing")
_ISO_DATE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})")


def parse_calendar_date(value: object) -> date | None:
    """Parse ``DD/MM/YYYY`` or ISO ``YYYY-MM-DD[...]`` into a calendar date."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if not raw:
        return None
    try:
        if "/" in raw:
            day, month, year = (int(part) for part in raw.split("/"))
            return date(year, month, day)
        match = _ISO_DATE.match(raw)
        if match:
            year, month, day = (int(part) for part in match.groups())
            return date(year, month, day)
        return datetime.fromisoformat(raw).date()
    except (TypeError, ValueError):
        return None


def date_in_range(now: date | datetime | None, start: object, end: object) -> bool:
    """Return whether ``now`` falls inside the inclusive ``[start, end]`` window."""

    if not start or not end:
        return False
    for bound in (start, end):
        if isinstance(bound, str) and any(token in bound.lower() for token in _SENTINELS):
            return False

    lower = parse_calendar_date(start)
    upper = parse_calendar_date(end)
    if lower is None or upper is None:
        return False

    current = parse_calendar_date(now) if now is not None else date.today()
    if current is None:
        return False
    return lower <= current <= upper


def category_membership(company: Company, category: str, now: date | None = None) -> tuple[bool, bool]:
    """Return ``(in_category, is_active)`` for a company's category window."""

    start, end = company.category_window(category)
    in_category = bool(start or end)
    return in_category, in_category and date_in_range(now, start, end)


def classify_obligation(status: object, effective_from: object) -> ObligationBucket:
    """Place a company in exactly one obligation bucket.

    Precedence: cancelled, dormant, no obligation, missing, active.
    """

    normalised_status = status.strip().lower() if isinstance(status, str) else ""
    if normalised_status == "cancelled":
        return "cancelled"
    if normalised_status == "dormant":
        return "dormant"

    if not isinstance(effective_from, str) or not effective_from.strip():
        return "missing"
    lowered = effective_from.lower()
    if "no obligation" in lowered:
        return "no_obligation"
    if "missing" in lowered:
        return "missing"
    return "active"
