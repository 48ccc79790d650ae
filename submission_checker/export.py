"""Export of the invalid subset of a run as an XLSX workbook."""

from __future__ import annotations

import io
import logging

import openpyxl
from openpyxl.styles import Font

from .engine.models import RunResult, ValidationOutcome
from .utils.normalization import format_number

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "Claim ID",
    "Activity ID",
    "Member ID",
    "Code",
    "Type",
    "Quantity",
    "Net",
    "Ordering Clinician",
    "Performing Clinician",
    "Encounter Start",
    "Remarks",
)


def outcome_row(outcome: ValidationOutcome) -> dict[str, str]:
    activity = outcome.activity
    return {
        "Claim ID": outcome.claim_id,
        "Activity ID": outcome.activity_id,
        "Member ID": activity.member_id,
        "Code": activity.code,
        "Type": activity.activity_type,
        "Quantity": format_number(activity.quantity) or activity.quantity_text,
        "Net": format_number(activity.net_amount) or activity.net_text,
        "Ordering Clinician": activity.ordering_clinician_id,
        "Performing Clinician": activity.performing_clinician_id,
        "Encounter Start": activity.encounter_start,
        "Remarks": "\n".join(outcome.remarks),
    }


def invalid_rows(result: RunResult) -> list[dict[str, str]]:
    """Flat rows for every invalid outcome, in extraction order."""
    return [outcome_row(outcome) for outcome in result.invalid_outcomes]


def export_workbook(result: RunResult) -> bytes:
    """Serialize the invalid rows of ``result`` to XLSX bytes."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = result.checker[:31] or "Invalid"

    ws.append(list(EXPORT_COLUMNS))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"

    rows = invalid_rows(result)
    for row in rows:
        ws.append([row[column] for column in EXPORT_COLUMNS])

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info(f"Exported {len(rows)} invalid rows for {result.checker}")
    return buffer.getvalue()
