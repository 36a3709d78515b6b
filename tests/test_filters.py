from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from payroll_filings.core.filters import (
    DEFAULT_CRITERIA,
    FilterCriteria,
    RecordFilter,
    filter_records,
    obligation_bucket,
    parse_category_token,
)
from payroll_filings.core.schema import Company, ObligationDetails, PayrollRecordView

TODAY = date(2025, 3, 15)


def _view(record_id: str, name: str, *, obligation: tuple | None = None, **windows) -> PayrollRecordView:
    pin_details = None
    if obligation is not None:
        status, effective_from = obligation
        pin_details = ObligationDetails(company_name=name, paye_status=status, paye_effective_from=effective_from)
    return PayrollRecordView(
        id=record_id,
        company_id=f"c-{record_id}",
        payroll_cycle_id="cycle-2025-03",
        company=Company(id=f"c-{record_id}", company_name=name, **windows),
        pin_details=pin_details,
    )


@pytest.fixture()
def views() -> list[PayrollRecordView]:
    return [
        _view(
            "1",
            "Acme Holdings",
            obligation=("Registered", "2020-01-01"),
            acc_client_effective_from="2024-01-01",
            acc_client_effective_to="2025-12-31",
        ),
        _view(
            "2",
            "Beta Traders",
            obligation=("Dormant", "2020-01-01"),
            acc_client_effective_from="2023-01-01",
            acc_client_effective_to="2024-12-31",
        ),
        _view(
            "3",
            "Acme Logistics",
            obligation=("Registered", "No Obligation"),
            imm_client_effective_from="01/01/2025",
            imm_client_effective_to="31/12/2025",
        ),
        _view("4", "Gamma Foods"),
    ]


def test_parse_category_token():
    assert parse_category_token("acc") == ("acc", "all")
    assert parse_category_token("audit_tax_status_inactive") == ("audit_tax", "inactive")


def test_empty_filters_only_apply_search(views):
    assert len(filter_records(views, FilterCriteria(), TODAY)) == 4
    result = filter_records(views, FilterCriteria.build(search_term="  acme "), TODAY)
    assert [view.id for view in result] == ["1", "3"]


def test_search_is_case_insensitive(views):
    result = filter_records(views, FilterCriteria.build(search_term="BETA"), TODAY)
    assert [view.id for view in result] == ["2"]


def test_category_tokens(views):
    def ids(*tokens: str) -> list[str]:
        return [view.id for view in filter_records(views, FilterCriteria.build(categories=tokens), TODAY)]

    assert ids("acc") == ["1", "2"]
    assert ids("acc_status_active") == ["1"]
    assert ids("acc_status_inactive") == ["2"]
    assert ids("acc_status_active", "imm_status_active") == ["1", "3"]
    assert ids("unknown") == []
    assert ids("acc_status_bogus") == []


def test_obligation_buckets(views):
    assert [obligation_bucket(view) for view in views] == ["active", "dormant", "no_obligation", "missing"]
    result = filter_records(views, FilterCriteria.build(obligations=["missing", "dormant"]), TODAY)
    assert [view.id for view in result] == ["2", "4"]


def test_groups_are_combined_with_and(views):
    result = filter_records(views, DEFAULT_CRITERIA, TODAY)
    assert [view.id for view in result] == ["1"]
    criteria = FilterCriteria.build(search_term="acme", categories=["imm"], obligations=["active"])
    assert filter_records(views, criteria, TODAY) == []


@pytest.mark.parametrize(
    "categories, obligations",
    [
        (["acc"], []),
        ([], ["active"]),
        (["imm_status_inactive"], ["no_obligation"]),
        (["acc", "imm", "audit_tax", "cps_sheria"], ["active", "dormant", "missing", "no_obligation", "cancelled"]),
    ],
)
def test_adding_filters_never_grows_the_result(views, categories, obligations):
    for search in ("", "acme", "a"):
        baseline = filter_records(views, FilterCriteria.build(search_term=search), TODAY)
        narrowed = filter_records(views, FilterCriteria.build(search, categories, obligations), TODAY)
        assert len(narrowed) <= len(baseline)
        assert {view.id for view in narrowed} <= {view.id for view in baseline}


def test_criteria_are_normalised_for_memoisation():
    first = FilterCriteria.build("x", ["b", "a", "a"], ["active"])
    second = FilterCriteria.build("x ", ["a", "b"], ["active", ""])
    assert first == second


def test_record_filter_memoises_until_invalidated(views):
    memo = RecordFilter()
    criteria = FilterCriteria.build(search_term="acme")

    first = memo.apply(views, criteria, TODAY)
    views[0] = _view("1", "Renamed Co")
    assert [view.id for view in memo.apply(views, criteria, TODAY)] == [view.id for view in first]

    memo.invalidate()
    assert [view.id for view in memo.apply(views, criteria, TODAY)] == ["3"]
