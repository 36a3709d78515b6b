"""Static catalog of document sets, service categories and tax types."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

_DEFAULT_CATALOG: dict = {
    "document_sets": {
        "preparation": {
            "field": "documents",
            "sub_folder": "PREP DOCS",
            "excluded": ["all_csv"],
            "slots": {
                "paye_csv": "PAYE Returns (CSV)",
                "hslevy_csv": "Housing Levy Returns (CSV)",
                "zip_file_kra": "KRA ZIP File",
                "shif_exl": "SHIF Returns (Excel)",
                "nssf_exl": "NSSF Returns (Excel)",
                "all_csv": "All CSV Files",
            },
        },
        "payment_slips": {
            "field": "payment_slips_documents",
            "sub_folder": "PAYMENT SLIPS",
            "excluded": [],
            "slots": {
                "paye_slip": "PAYE Payment Slip",
                "housing_levy_slip": "Housing Levy Payment Slip",
                "shif_slip": "SHIF Payment Slip",
                "nssf_slip": "NSSF Payment Slip",
                "nita_slip": "NITA Payment Slip",
            },
        },
        "payment_receipts": {
            "field": "payment_receipts_documents",
            "sub_folder": "PAYMENT RECEIPTS",
            "excluded": [],
            "slots": {
                "paye_receipt": "PAYE Payment Receipt",
                "housing_levy_receipt": "Housing Levy Payment Receipt",
                "nita_receipt": "NITA Payment Receipt",
                "shif_receipt": "SHIF Payment Receipt",
                "nssf_receipt": "NSSF Payment Receipt",
            },
        },
    },
    "categories": {
        "acc": "Accounting",
        "audit_tax": "Audit Tax",
        "cps_sheria": "Sheria",
        "imm": "Immigration",
    },
    "tax_types": [
        {"id": "paye", "label": "PAYE", "receipt_type": "paye_receipt"},
        {"id": "housing_levy", "label": "Housing Levy", "receipt_type": "housing_levy_receipt"},
        {"id": "nita", "label": "NITA", "receipt_type": "nita_receipt"},
        {"id": "shif", "label": "SHIF", "receipt_type": "shif_receipt"},
        {"id": "nssf", "label": "NSSF", "receipt_type": "nssf_receipt"},
    ],
}


@dataclass(frozen=True, slots=True)
class DocumentSet:
    name: str
    field: str
    sub_folder: str
    labels: dict[str, str]
    excluded: frozenset[str]

    @property
    def slots(self) -> tuple[str, ...]:
        return tuple(self.labels)

    @property
    def required_slots(self) -> tuple[str, ...]:
        """Slots that count towards completeness (pseudo-slots removed)."""

        return tuple(slot for slot in self.labels if slot not in self.excluded)


@dataclass(frozen=True, slots=True)
class TaxType:
    id: str
    label: str
    receipt_type: str


def _load_catalog() -> dict:
    path = CONFIG_DIR / "catalog.yaml"
    if not path.exists():
        return _DEFAULT_CATALOG
    with path.open("r", encoding="utf-8") as fp:
        return yaml.safe_load(fp) or _DEFAULT_CATALOG


CATALOG = _load_catalog()

DOCUMENT_SETS: dict[str, DocumentSet] = {
    name: DocumentSet(
        name=name,
        field=str(definition["field"]),
        sub_folder=str(definition.get("sub_folder") or name),
        labels={str(slot): str(label) for slot, label in (definition.get("slots") or {}).items()},
        excluded=frozenset(definition.get("excluded") or ()),
    )
    for name, definition in CATALOG["document_sets"].items()
}

CATEGORIES: dict[str, str] = dict(CATALOG["categories"])

TAX_TYPES: tuple[TaxType, ...] = tuple(
    TaxType(id=item["id"], label=item["label"], receipt_type=item["receipt_type"])
    for item in CATALOG["tax_types"]
)

DOCUMENT_LABELS: dict[str, str] = {
    slot: label for document_set in DOCUMENT_SETS.values() for slot, label in document_set.labels.items()
}


def get_document_set(name: str) -> DocumentSet:
    try:
        return DOCUMENT_SETS[name]
    except KeyError:
        raise KeyError(f"unknown document set: {name}") from None
