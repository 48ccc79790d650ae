"""Dental price-list checker.

Claimed net amounts are compared with the contracted price for the code.
Some facilities are contracted at the secondary price column, and from a
cut-over date endodontic codes are priced by the clinician's specialty.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from ..engine.indexer import KeyPart, KeySpec
from ..engine.models import AuxData, RuleContext
from ..engine.registry import RuleRegistry
from ..errors import UnsupportedDocument
from ..parsers.claim_xml import ClaimDocument
from ..parsers.tabular import SheetPolicy
from ..utils.normalization import format_number, normalize_code, normalize_identifier, parse_decimal
from .base import CheckerSpec, DatasetSpec

CODE = "Code"
PRIMARY_PRICE_HEADER = "other facilities"
SECONDARY_PRICE_HEADER = "alyahar, emirates, al wagan"

_WHITESPACE = re.compile(r"\s+")

PRICE_KEY = KeySpec(parts=(KeyPart("code", (CODE,), "code", normalize_code, "Code"),))


def _header(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip().lower()


def derive_prices(values: Mapping[str, str]) -> dict[str, Any]:
    """Primary and secondary prices, parsed once per price-list row.

    A missing column gives None; so does a cell with no digits in it.
    """
    by_header = {_header(column): column for column in values}
    prices: dict[str, Any] = {}
    for name, header in (("primary", PRIMARY_PRICE_HEADER), ("secondary", SECONDARY_PRICE_HEADER)):
        column = by_header.get(header)
        prices[name] = parse_decimal(values[column], lenient=True) if column else None
    return prices


def receiver_precondition(document: ClaimDocument, aux: AuxData) -> None:
    allowed = [normalize_identifier(r) for r in aux.options.get("receiver_ids") or []]
    receiver = document.receiver_id
    if allowed and normalize_identifier(receiver) not in allowed:
        expected = " or ".join(f'"{r}"' for r in aux.options["receiver_ids"])
        raise UnsupportedDocument(
            f"Pricing checker only supports files with ReceiverID {expected}. "
            f'Found: "{receiver or "(MISSING)"}"'
        )


@dataclass(frozen=True)
class ReferencePrice:
    """Price an activity is compared against, and where it came from."""

    price: Decimal | None
    source: str  # "list", "endo", "gp" or "none"


def _cutoff(options: Mapping[str, Any]) -> datetime:
    return datetime.strptime(str(options.get("endo_cutoff", "2026-02-20")), "%Y-%m-%d")


def reference_price(context: RuleContext) -> ReferencePrice:
    activity = context.activity
    options = context.options

    endo = context.metadata.get("endo_pricing")
    entry = endo.get(activity.code) if endo is not None else None
    encounter = activity.encounter_start_at
    if entry is not None and encounter is not None and encounter >= _cutoff(options):
        licenses = context.metadata.get("clinician_licenses")
        clinician = activity.ordering_clinician_id or activity.performing_clinician_id
        record = licenses.get(clinician) if licenses is not None else None
        specialty = str((record or {}).get("Specialty") or "").strip().lower()
        if specialty == str(options.get("endo_specialty", "Endodontics")).lower():
            return ReferencePrice(parse_decimal(entry.get("endo_price"), lenient=True), "endo")
        return ReferencePrice(parse_decimal(entry.get("gp_price"), lenient=True), "gp")

    row = context.row
    if row is None:
        return ReferencePrice(None, "none")
    secondary = [normalize_identifier(f) for f in options.get("secondary_price_facilities") or []]
    column = "secondary" if normalize_identifier(activity.facility_id) in secondary else "primary"
    return ReferencePrice(row.derived.get(column), "list")


# --- exemptions ---


def zero_net(context: RuleContext) -> str | None:
    activity = context.activity
    if not activity.net_text or activity.net_amount == 0:
        return "Claimed Net is 0 (treated as Valid)"
    return None


# --- rules ---


def quantity_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    quantity = activity.quantity
    if not activity.quantity_text or quantity == 0:
        return ["Quantity is 0 (invalid)"]
    if quantity is None:
        return [f"Quantity is not a number: {activity.quantity_text}"]
    if quantity < 0:
        return ["Quantity is less than 0 (invalid)"]
    return []


def reference_rule(context: RuleContext) -> list[str]:
    reference = reference_price(context)
    if reference.source == "none":
        return ["No pricing match found"]
    if reference.source == "gp" and reference.price is None:
        return [f"Code {context.activity.code} is not available for GP clinicians"]
    if reference.price is None:
        return ["Reference Net Price is not a number"]
    return []


def price_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    net = activity.net_amount
    quantity = activity.quantity
    reference = reference_price(context).price
    if reference is None or quantity is None or quantity <= 0:
        return []
    if net is None:
        return [f"Claimed Net is not a number: {activity.net_text}"]

    if net == reference or net / quantity == reference:
        return []
    double_codes = {normalize_code(c) for c in context.options.get("double_price_codes") or []}
    if normalize_code(activity.code) in double_codes and net == reference * 2:
        return []
    return [f"Claimed Net {format_number(net)} does not match Reference {format_number(reference)}"]


SPEC = CheckerSpec(
    name="pricing",
    title="Pricing",
    primary=DatasetSpec(
        name="pricing",
        upload="pricing",
        sheet=SheetPolicy(),
        key=PRICE_KEY,
        derive=derive_prices,
        label="price list",
    ),
    optional_metadata=("endo_pricing", "clinician_licenses"),
    exemptions=(zero_net,),
    precondition=receiver_precondition,
    rules=RuleRegistry([quantity_rule, reference_rule, price_rule]),
    precision=2,
    options={
        "receiver_ids": ["D001"],
        "secondary_price_facilities": ["MF5357", "MF7231", "MF232"],
        "double_price_codes": ["42702"],
        "endo_cutoff": "2026-02-20",
        "endo_specialty": "Endodontics",
    },
)
