"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import xml.etree.ElementTree as ET
from collections.abc import Callable
from typing import Any

import openpyxl
import pytest

from submission_checker.checkers import get_checker
from submission_checker.config import CheckerOverride
from submission_checker.engine.models import RunResult
from submission_checker.parsers.claim_xml import parse_claim_document
from submission_checker.parsers.metadata import build_metadata
from submission_checker.parsers.tabular import read_workbook
from submission_checker.pipeline import run_checker

# Claim-level keys and the element they are written to
CLAIM_FIELDS = {"id": "ID", "member_id": "MemberID", "payer_id": "PayerID", "provider_id": "ProviderID"}
ENCOUNTER_FIELDS = {
    "facility": "FacilityID",
    "start": "Start",
    "end": "End",
    "start_type": "StartType",
    "end_type": "EndType",
}
ACTIVITY_FIELDS = {
    "id": "ID",
    "start": "Start",
    "type": "Type",
    "code": "Code",
    "quantity": "Quantity",
    "net": "Net",
    "ordering": "OrderingClinician",
    "clinician": "Clinician",
    "auth": "PriorAuthorizationID",
}
OBSERVATION_FIELDS = {
    "type": "Type",
    "code": "Code",
    "value": "Value",
    "value_type": "ValueType",
    "description": "Description",
}


def _add_fields(parent: ET.Element, values: dict[str, Any], fields: dict[str, str]) -> None:
    for key, tag in fields.items():
        if values.get(key) is not None:
            ET.SubElement(parent, tag).text = str(values[key])


def make_claim_xml(claims: list[dict[str, Any]], receiver_id: str = "D001", sender_id: str = "MF5357") -> bytes:
    """Build a claim submission from plain dicts; None values are omitted."""
    root = ET.Element("Claim.Submission")
    header = ET.SubElement(root, "Header")
    ET.SubElement(header, "SenderID").text = sender_id
    ET.SubElement(header, "ReceiverID").text = receiver_id

    for claim in claims:
        element = ET.SubElement(root, "Claim")
        _add_fields(element, claim, CLAIM_FIELDS)
        encounter = ET.SubElement(element, "Encounter")
        _add_fields(encounter, claim, ENCOUNTER_FIELDS)
        for activity in claim.get("activities", []):
            node = ET.SubElement(element, "Activity")
            _add_fields(node, activity, ACTIVITY_FIELDS)
            for observation in activity.get("observations", []):
                _add_fields(ET.SubElement(node, "Observation"), observation, OBSERVATION_FIELDS)
    return ET.tostring(root, encoding="utf-8")


def make_xlsx(sheets: dict[str, list[list[Any]]]) -> bytes:
    """Write sheets (name -> rows, first row usually headers) to XLSX bytes."""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def claim(activities: list[dict[str, Any]], **fields: Any) -> dict[str, Any]:
    """A claim with sensible encounter defaults, overridable per test."""
    values = {
        "id": "C1",
        "member_id": "M001",
        "payer_id": "A001",
        "facility": "MF5357",
        "start": "15/01/2024 09:00",
        "end": "15/01/2024 10:00",
        "start_type": "1",
        "end_type": "1",
    }
    values.update(fields)
    values["activities"] = activities
    return values


def activity(**fields: Any) -> dict[str, Any]:
    values = {
        "id": "A1",
        "start": "15/01/2024 09:15",
        "type": "6",
        "code": "D0120",
        "quantity": "1",
        "net": "100",
        "ordering": "GD1001",
        "clinician": "GD1001",
    }
    values.update(fields)
    return values


RunCheck = Callable[..., RunResult]


@pytest.fixture
def run_check() -> RunCheck:
    """Run a checker end to end on in-memory inputs.

    ``uploads`` maps upload kind to sheets (as for ``make_xlsx``) and
    ``metadata`` maps metadata kind to its decoded JSON payload.
    """

    def _run(
        name: str,
        xml: bytes,
        uploads: dict[str, dict[str, list[list[Any]]]] | None = None,
        metadata: dict[str, Any] | None = None,
        overrides: dict[str, CheckerOverride] | None = None,
    ) -> RunResult:
        spec = get_checker(name, overrides)
        workbooks = {kind: read_workbook(make_xlsx(sheets)) for kind, sheets in (uploads or {}).items()}
        documents = {kind: build_metadata(kind, payload) for kind, payload in (metadata or {}).items()}
        return run_checker(spec, parse_claim_document(xml), workbooks, documents)

    return _run


@pytest.fixture
def sample_xml() -> bytes:
    """Two claims, three activities, all dental."""
    return make_claim_xml(
        [
            claim([activity(id="A1"), activity(id="A2", code="D2391")], id="C1"),
            claim([activity(id="A3")], id="C2", member_id="M002"),
        ]
    )


@pytest.fixture
def facilities() -> dict[str, Any]:
    return {"facilities": [{"license": "MF5357"}, {"license": "MF7231"}]}


@pytest.fixture
def tooth_codes() -> list[dict[str, Any]]:
    return [
        {"codes": ["D2391", "D2392"], "description": "Resin composite, posterior", "affiliated_teeth": "Posterior"},
        {"codes": ["D2330"], "description": "Resin composite, anterior", "affiliated_teeth": "Anterior"},
        {"codes": ["D4341"], "description": "Scaling and root planing, per quadrant", "affiliated_teeth": "All"},
        {"codes": ["D4346"], "description": "Scaling, per sextant", "affiliated_teeth": "All"},
        {"codes": ["D4349"], "description": "Debridement, per sextant", "affiliated_teeth": "All"},
        {"codes": ["D0120"], "description": "Periodic oral evaluation", "affiliated_teeth": "All"},
    ]
