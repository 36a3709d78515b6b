from __future__ import annotations

import sys
from datetime import date, datetime
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from payroll_filings.core.classification import (
    category_membership,
    classify_obligation,
    date_in_range,
    parse_calendar_date,
)
from payroll_filings.core.schema import Company

TODAY = date(2025, 3, 15)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("01/03/2025", date(2025, 3, 1)),
        ("2025-03-01", date(2025, 3, 1)),
        ("2025-03-01T10:30:00Z", date(2025, 3, 1)),
        (datetime(2025, 3, 1, 23, 59), date(2025, 3, 1)),
        ("31/02/2025", None),
        ("not a date", None),
        ("", None),
        (None, None),
        (20250301, None),
    ],
)
def test_parse_calendar_date(value, expected):
    assert parse_calendar_date(value) == expected


def test_date_in_range_is_inclusive_on_both_ends():
    assert date_in_range(TODAY, "15/03/2025", "2025-03-15")
    assert date_in_range(TODAY, "2025-01-01", "31/12/2025")
    assert not date_in_range(TODAY, "2025-03-16", "2025-12-31")
    assert not date_in_range(TODAY, "2024-01-01", "2025-03-14")


@pytest.mark.parametrize("day", range(13, 23))
def test_date_in_range_agrees_across_date_formats(day):
    now = date(2024, 3, day)
    in_window = date_in_range(now, "15/03/2024", "20/03/2024")

    assert in_window == date_in_range(now, "2024-03-15", "2024-03-20")
    assert in_window == date_in_range(now, "15/03/2024", "2024-03-20")
    assert in_window == (15 <= day <= 20)


@pytest.mark.parametrize(
    "start, end",
    [
        (None, "2025-12-31"),
        ("2025-01-01", None),
        ("", "2025-12-31"),
        ("No Obligation", "2025-12-31"),
        ("2025-01-01", "MISSING"),
        ("garbage", "2025-12-31"),
    ],
)
def test_date_in_range_rejects_absent_or_sentinel_bounds(start, end):
    assert date_in_range(TODAY, start, end) is False


def test_date_in_range_defaults_to_today():
    today = date.today()
    assert date_in_range(None, today.isoformat(), today.isoformat())


@pytest.mark.parametrize(
    "status, effective_from, expected",
    [
        ("Cancelled", "2020-01-01", "cancelled"),
        ("  DORMANT ", "2020-01-01", "dormant"),
        ("cancelled", "No Obligation", "cancelled"),
        ("Registered", "No Obligation", "no_obligation"),
        (None, "Missing", "missing"),
        ("Registered", None, "missing"),
        ("Registered", "   ", "missing"),
        ("Registered", "2020-01-01", "active"),
        (None, "01/01/2020", "active"),
        (42, object(), "missing"),
    ],
)
def test_classify_obligation_precedence(status, effective_from, expected):
    assert classify_obligation(status, effective_from) == expected


def test_category_membership_reports_participation_and_activity():
    company = Company(
        id="c-1",
        company_name="Acme Ltd",
        acc_client_effective_from="2024-01-01",
        acc_client_effective_to="2024-12-31",
        imm_client_effective_from="2025-01-01",
        imm_client_effective_to="2025-12-31",
        audit_tax_client_effective_from="2025-01-01",
    )

    assert category_membership(company, "acc", TODAY) == (True, False)
    assert category_membership(company, "imm", TODAY) == (True, True)
    # Only one bound: participates, but never active.
    assert category_membership(company, "audit_tax", TODAY) == (True, False)
    assert category_membership(company, "cps_sheria", TODAY) == (False, False)
