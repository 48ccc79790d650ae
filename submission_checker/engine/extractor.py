"""Flatten a claim document into activity records."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from ..parsers.claim_xml import ClaimDocument, child_text, descendants, first_child, raw_text
from ..utils.normalization import parse_decimal
from .models import ActivityRecord, Observation

logger = logging.getLogger(__name__)

# Alternative tag names, first non-empty wins
CODE_TAGS = ("Code", "ActivityCode", "CPTCode")
NET_TAGS = ("Net", "NetTotal", "GrossAmount", "Price")
QUANTITY_TAGS = ("Quantity", "Qty")
ORDERING_TAGS = ("OrderingClinician", "OrderingClnician", "Ordering_Clinician")
AUTHORIZATION_TAGS = ("PriorAuthorizationID", "PriorAuthorization")
ENCOUNTER_START_TAGS = ("Start", "Date", "EncounterDate")


def _observation(element: ET.Element) -> Observation:
    return Observation(
        code=child_text(element, "Code"),
        value=child_text(element, "Value", "ValueText"),
        value_type=child_text(element, "ValueType"),
        type=child_text(element, "Type"),
        description=child_text(element, "Description"),
    )


def _activity(
    activity: ET.Element,
    claim_fields: dict[str, str],
) -> ActivityRecord:
    quantity_text = child_text(activity, *QUANTITY_TAGS)
    net_text = child_text(activity, *NET_TAGS)
    raw_auth = raw_text(activity, *AUTHORIZATION_TAGS)

    return ActivityRecord(
        activity_id=child_text(activity, "ID"),
        code=child_text(activity, *CODE_TAGS),
        quantity=parse_decimal(quantity_text),
        net_amount=parse_decimal(net_text),
        quantity_text=quantity_text,
        net_text=net_text,
        ordering_clinician_id=child_text(activity, *ORDERING_TAGS),
        performing_clinician_id=child_text(activity, "Clinician"),
        authorization_id=raw_auth.strip(),
        raw_authorization_id=raw_auth,
        activity_type=child_text(activity, "Type"),
        activity_start=child_text(activity, "Start"),
        observations=tuple(_observation(obs) for obs in descendants(activity, "Observation")),
        **claim_fields,
    )


def extract(document: ClaimDocument) -> list[ActivityRecord]:
    """Walk claims and activities in document order.

    Missing elements read as empty strings; checking for required values
    is left to the rules.
    """
    receiver_id = document.receiver_id
    records: list[ActivityRecord] = []
    claim_count = 0

    for claim in document.claims():
        claim_count += 1
        encounter = first_child(claim, "Encounter")
        claim_fields = {
            "claim_id": child_text(claim, "ID"),
            "member_id": child_text(claim, "MemberID"),
            "payer_id": child_text(claim, "PayerID"),
            "provider_id": child_text(claim, "ProviderID"),
            "facility_id": child_text(encounter, "FacilityID"),
            "encounter_start": child_text(encounter, *ENCOUNTER_START_TAGS),
            "encounter_end": child_text(encounter, "End"),
            "encounter_start_type": child_text(encounter, "StartType"),
            "encounter_end_type": child_text(encounter, "EndType"),
            "receiver_id": receiver_id,
        }
        for activity in descendants(claim, "Activity"):
            records.append(_activity(activity, claim_fields))

    logger.info(f"Extracted {len(records)} activities from {claim_count} claims")
    return records


def claim_ids(document: ClaimDocument) -> list[str]:
    """Claim ids in document order, including claims without activities."""
    return [child_text(claim, "ID") for claim in document.claims()]
