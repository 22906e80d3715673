from __future__ import annotations

import re
from enum import Enum
from typing import Any

from wifo_import.models.common import StrictModel

INSURANCE_CATEGORY = "insurance"


class WifoCategory(str, Enum):
    """WIFO line-of-business codes (Sparte)."""

    PKV = "PKV"  # Private health insurance.
    BU = "BU"  # Occupational disability.
    RV = "RV"  # Pension insurance.
    LV = "LV"  # Life insurance.
    SHU = "SHU"  # Property, liability and accident.
    KFZ = "KFZ"  # Motor insurance.
    RS = "RS"  # Legal protection.
    SONSTIGE = "SONSTIGE"  # Everything else.

    @property
    def display_name(self) -> str:
        return CATEGORY_DISPLAY_NAMES[self]

    @property
    def internal_category(self) -> str:
        return CATEGORY_TO_INTERNAL[self]


CATEGORY_DISPLAY_NAMES: dict[WifoCategory, str] = {
    WifoCategory.PKV: "Private Krankenversicherung",
    WifoCategory.BU: "Berufsunfähigkeit",
    WifoCategory.RV: "Rentenversicherung",
    WifoCategory.LV: "Lebensversicherung",
    WifoCategory.SHU: "Sach/Haftpflicht/Unfall",
    WifoCategory.KFZ: "Kraftfahrzeug",
    WifoCategory.RS: "Rechtsschutz",
    WifoCategory.SONSTIGE: "Sonstige",
}

CATEGORY_TO_INTERNAL: dict[WifoCategory, str] = {category: INSURANCE_CATEGORY for category in WifoCategory}

# Checked in order with substring containment.
CATEGORY_ALIASES: tuple[tuple[str, WifoCategory], ...] = (
    ("PRIVATE KRANKENVERSICHERUNG", WifoCategory.PKV),
    ("PRIVATE KRANKEN", WifoCategory.PKV),
    ("KRANKEN", WifoCategory.PKV),
    ("BERUFSUNFÄHIGKEIT", WifoCategory.BU),
    ("BERUFSUNFAEHIGKEIT", WifoCategory.BU),
    ("RENTE", WifoCategory.RV),
    ("RENTENVERSICHERUNG", WifoCategory.RV),
    ("LEBEN", WifoCategory.LV),
    ("LEBENSVERSICHERUNG", WifoCategory.LV),
    ("SACH", WifoCategory.SHU),
    ("HAFTPFLICHT", WifoCategory.SHU),
    ("UNFALL", WifoCategory.SHU),
    ("SACHVERSICHERUNG", WifoCategory.SHU),
    ("KFZ-VERSICHERUNG", WifoCategory.KFZ),
    ("AUTO", WifoCategory.KFZ),
    ("RECHTSSCHUTZ", WifoCategory.RS),
    ("RECHTSSCHUTZVERSICHERUNG", WifoCategory.RS),
)


class CategoryMapping(StrictModel):
    """Result of resolving a raw Sparte value."""

    code: WifoCategory
    internal_category: str
    is_fallback: bool = False


def parse_category(value: Any) -> CategoryMapping | None:
    """Resolve a raw Sparte value; None when the value carries no usable code."""

    if not isinstance(value, str):
        return None
    upper = value.strip().upper()
    if not re.search(r"[A-ZÄÖÜ]", upper):
        return None
    try:
        code = WifoCategory(upper)
    except ValueError:
        code = None
    if code is None:
        for alias, aliased in CATEGORY_ALIASES:
            if alias in upper:
                code = aliased
                break
    if code is None:
        return CategoryMapping(
            code=WifoCategory.SONSTIGE,
            internal_category=WifoCategory.SONSTIGE.internal_category,
            is_fallback=True,
        )
    return CategoryMapping(code=code, internal_category=code.internal_category)


class ProvisionType(str, Enum):
    """Commission kind carried in the AP-VM/Art columns."""

    AP = "AP"  # Abschlussprovision, initial commission.
    BP = "BP"  # Bestandsprovision, recurring commission.

    @property
    def display_name(self) -> str:
        return "Abschlussprovision" if self is ProvisionType.AP else "Bestandsprovision"


def parse_provision_type(value: Any) -> ProvisionType | None:
    if not isinstance(value, str):
        return None
    upper = value.strip().upper()
    if upper.startswith("AP"):
        return ProvisionType.AP
    if upper.startswith("BP"):
        return ProvisionType.BP
    return None
