"""Drug quantity checker.

A drug line is billed in fractions of a package: the claimed quantity must
equal unit price / package price from the drug list, at two decimals.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from ..engine.indexer import KeyPart, KeySpec, ReferenceIndex
from ..engine.models import ActivityRecord, AuxData, RuleContext
from ..engine.registry import RuleRegistry
from ..parsers.tabular import SheetPolicy
from ..utils.normalization import format_number, normalize_identifier, parse_decimal, round_half_up
from .base import CheckerSpec, DatasetSpec

DRUG_CODE = "Drug Code"
PACKAGE_PRICE = "Package Price to Public"
UNIT_PRICE = "Unit Price to Public"

DRUG_TYPE = "5"

DRUG_KEY = KeySpec(parts=(KeyPart("code", (DRUG_CODE,), "code", normalize_identifier, "Drug Code"),))


def derive_quantity(values: Mapping[str, str]) -> dict[str, Any]:
    """Expected quantity of one billed unit, None when either price is missing."""
    package_price = parse_decimal(values.get(PACKAGE_PRICE))
    unit_price = parse_decimal(values.get(UNIT_PRICE))
    if package_price is None or unit_price is None or package_price <= 0 or unit_price <= 0:
        return {"correct_quantity": None}
    return {"correct_quantity": round_half_up(unit_price / package_price, 2)}


def in_drug_list(activity: ActivityRecord, aux: AuxData) -> bool:
    drugs: ReferenceIndex = aux.indexes["drugs"]
    return bool(drugs.lookup(DRUG_KEY.activity_key(activity)))


def activity_type_rule(context: RuleContext) -> list[str]:
    if context.activity.activity_type != DRUG_TYPE:
        return ["Activity type is not 5"]
    return []


def quantity_rule(context: RuleContext) -> list[str]:
    row = context.row
    activity = context.activity
    if row is None or activity.quantity is None:
        return []
    correct: Decimal | None = row.derived["correct_quantity"]
    if correct is None:
        return []
    if round_half_up(activity.quantity, 2) != correct:
        return [
            "XML quantity does not match correct quantity "
            f"(XML={format_number(activity.quantity)}, correct={format_number(correct)})"
        ]
    return []


SPEC = CheckerSpec(
    name="drug_quantities",
    title="Drug Quantities",
    primary=DatasetSpec(
        name="drugs",
        upload="drugs",
        sheet=SheetPolicy(sheet_names=("Drugs",), strict=True),
        key=DRUG_KEY,
        derive=derive_quantity,
        label="drug list",
    ),
    applies=in_drug_list,
    rules=RuleRegistry([activity_type_rule, quantity_rule]),
    precision=0,
)
