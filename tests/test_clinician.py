"""Tests for the clinician licensing checker."""

from __future__ import annotations

import pytest
from conftest import activity, claim, make_claim_xml

from submission_checker.engine.models import NoMatch
from submission_checker.errors import MissingReferenceDataset

STATUS_HEADERS = ["License Number", "Facility License Number", "Effective Date", "Status"]
REGISTRY_HEADERS = ["Clinician License", "Clinician Name", "Clinician Category"]


def uploads(status_rows=None, registry_rows=None):
    if status_rows is None:
        status_rows = [["GD1001", "MF5357", "01/01/2023", "Active"]]
    if registry_rows is None:
        registry_rows = [["GD1001", "Dr One", "Dentist"]]
    return {
        "status": {"Clinician Licensing Status": [STATUS_HEADERS, *status_rows]},
        "clinician": {"Clinicians": [REGISTRY_HEADERS, *registry_rows]},
    }


@pytest.fixture
def check(run_check, facilities):
    def _check(activities, status_rows=None, registry_rows=None, **claim_fields):
        xml = make_claim_xml([claim(activities, **claim_fields)])
        return run_check(
            "clinician", xml, uploads=uploads(status_rows, registry_rows), metadata={"facilities": facilities}
        )

    return _check


NO_LICENSE = "No ACTIVE affiliated facility license for encounter date"


class TestLicense:
    """Performing clinician license at an affiliated facility."""

    def test_active_affiliated_license(self, check):
        result = check([activity()])
        assert result.outcomes[0].is_valid

    def test_inactive_license(self, check):
        result = check([activity()], status_rows=[["GD1001", "MF5357", "01/01/2023", "Inactive"]])
        assert result.outcomes[0].remarks == (NO_LICENSE,)
        assert result.outcomes[0].match == NoMatch(candidate_count=1)

    def test_unaffiliated_facility(self, check):
        result = check([activity()], status_rows=[["GD1001", "MF9999", "01/01/2023", "Active"]])
        assert result.outcomes[0].remarks == (NO_LICENSE,)

    def test_effective_after_encounter(self, check):
        result = check([activity()], status_rows=[["GD1001", "MF5357", "16/01/2024", "Active"]])
        assert result.outcomes[0].remarks == (NO_LICENSE,)

    def test_effective_same_day(self, check):
        result = check([activity()], status_rows=[["GD1001", "MF5357", "15/01/2024", "Active"]])
        assert result.outcomes[0].is_valid

    def test_unknown_clinician(self, check):
        result = check([activity(clinician="GD7777", ordering="GD7777")])
        assert result.outcomes[0].remarks == (NO_LICENSE,)
        assert result.outcomes[0].match == NoMatch()

    def test_most_recent_license_preferred(self, check):
        result = check(
            [activity()],
            status_rows=[
                ["GD1001", "MF5357", "01/01/2020", "Active"],
                ["GD1001", "MF7231", "01/06/2023", "Active"],
                ["GD1001", "MF5357", "01/01/2022", "Active"],
            ],
        )
        assert result.outcomes[0].match.row.get("Facility License Number") == "MF7231"

    def test_facilities_required(self, run_check):
        xml = make_claim_xml([claim([activity()])])
        with pytest.raises(MissingReferenceDataset, match="Facility list not loaded"):
            run_check("clinician", xml, uploads=uploads())


class TestCategory:
    """Ordering and performing clinicians must share a category."""

    def test_category_mismatch(self, check):
        result = check(
            [activity(ordering="GD2002")],
            registry_rows=[["GD1001", "Dr One", "Dentist"], ["GD2002", "Dr Two", "General Practitioner"]],
        )
        assert result.outcomes[0].remarks == ("Category mismatch",)

    def test_same_category(self, check):
        result = check(
            [activity(ordering="GD2002")],
            registry_rows=[["GD1001", "Dr One", "Dentist"], ["GD2002", "Dr Two", "Dentist"]],
        )
        assert result.outcomes[0].is_valid

    def test_unknown_category_not_reported(self, check):
        result = check([activity(ordering="GD2002")])
        assert result.outcomes[0].is_valid

    def test_remarks_in_rule_order(self, check):
        result = check(
            [activity(ordering="GD2002")],
            status_rows=[["GD1001", "MF5357", "01/01/2023", "Inactive"]],
            registry_rows=[["GD1001", "Dr One", "Dentist"], ["GD2002", "Dr Two", "GP"]],
        )
        assert result.outcomes[0].remarks == ("Category mismatch", NO_LICENSE)
