"""Search, category and obligation filtering over record views."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Sequence

from payroll_filings.core.catalog import CATEGORIES
from payroll_filings.core.classification import category_membership, classify_obligation
from payroll_filings.core.schema import PayrollRecordView

STATUS_SEPARATOR = "_status_"

Predicate = Callable[[PayrollRecordView], bool]


@dataclass(frozen=True, slots=True)
class FilterCriteria:
    search_term: str = ""
    selected_categories: tuple[str, ...] = ()
    selected_obligations: tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        search_term: str | None = None,
        categories: Iterable[str] | None = None,
        obligations: Iterable[str] | None = None,
    ) -> "FilterCriteria":
        return cls(
            search_term=(search_term or "").strip(),
            selected_categories=tuple(sorted({item for item in categories or () if item})),
            selected_obligations=tuple(sorted({item for item in obligations or () if item})),
        )


DEFAULT_CRITERIA = FilterCriteria(selected_categories=("acc_status_active",), selected_obligations=("active",))


def parse_category_token(token: str) -> tuple[str, str]:
    """Split ``acc_status_active`` into ``("acc", "active")``; bare tokens mean ``all``."""

    if STATUS_SEPARATOR in token:
        base, status = token.split(STATUS_SEPARATOR, 1)
        return base, status
    return token, "all"


def _matches_category_token(record: PayrollRecordView, token: str, today: date | None) -> bool:
    base, status = parse_category_token(token)
    if base not in CATEGORIES:
        return False
    in_category, is_active = category_membership(record.company, base, today)
    if status == "all":
        return in_category
    if status == "active":
        return in_category and is_active
    if status == "inactive":
        return in_category and not is_active
    return False


def obligation_bucket(record: PayrollRecordView) -> str:
    details = record.pin_details
    if details is None:
        return classify_obligation(None, None)
    return classify_obligation(details.paye_status, details.paye_effective_from)


def build_predicate(criteria: FilterCriteria, today: date | None = None) -> Predicate:
    needle = criteria.search_term.lower()
    categories = criteria.selected_categories
    obligations = set(criteria.selected_obligations)

    def predicate(record: PayrollRecordView) -> bool:
        if needle and needle not in (record.company.company_name or "").lower():
            return False
        if categories and not any(_matches_category_token(record, token, today) for token in categories):
            return False
        if obligations and obligation_bucket(record) not in obligations:
            return False
        return True

    return predicate


def filter_records(
    records: Iterable[PayrollRecordView],
    criteria: FilterCriteria,
    today: date | None = None,
) -> list[PayrollRecordView]:
    predicate = build_predicate(criteria, today)
    return [record for record in records if predicate(record)]


class RecordFilter:
    """Memoises the last filter result per record set, criteria and calendar day."""

    def __init__(self) -> None:
        self._key: tuple | None = None
        self._result: list[PayrollRecordView] = []

    def apply(
        self,
        records: Sequence[PayrollRecordView],
        criteria: FilterCriteria,
        today: date | None = None,
    ) -> list[PayrollRecordView]:
        day = today or date.today()
        key = (id(records), len(records), criteria, day)
        if key != self._key:
            self._result = filter_records(records, criteria, day)
            self._key = key
        return list(self._result)

    def invalidate(self) -> None:
        self._key = None
        self._result = []
