"""Tests for the clinician eligibility checker."""

from __future__ import annotations

import pytest
from conftest import activity, claim, make_claim_xml

from submission_checker.errors import MissingReferenceDataset

HEADERS = ["Clinician", "EffectiveDate", "ExpiryDate", "Card Status"]


def roster(*rows):
    rows = rows or (["GD1001", "01/01/2024", "31/12/2024", "Active"],)
    return {"eligibility": {"Eligibility": [HEADERS, *rows]}}


class TestEligibility:
    """Ordering and performing clinicians checked independently."""

    def test_eligible(self, run_check):
        xml = make_claim_xml([claim([activity()])])
        assert run_check("eligibility", xml, uploads=roster()).outcomes[0].is_valid

    def test_performing_not_found(self, run_check):
        xml = make_claim_xml([claim([activity(clinician="GD2002")])])
        result = run_check("eligibility", xml, uploads=roster())
        assert result.outcomes[0].remarks == ("Performing (GD2002) not found in eligibility file",)

    def test_both_roles_reported(self, run_check):
        xml = make_claim_xml([claim([activity(ordering="GD3003", clinician="GD2002")])])
        result = run_check("eligibility", xml, uploads=roster())
        assert result.outcomes[0].remarks == (
            "Ordering (GD3003) not found in eligibility file",
            "Performing (GD2002) not found in eligibility file",
        )

    def test_period_does_not_cover_encounter(self, run_check):
        xml = make_claim_xml([claim([activity(clinician="GD2002")])])
        result = run_check(
            "eligibility",
            xml,
            uploads=roster(
                ["GD1001", "16/01/2024", "31/12/2024", "Active"],
                ["GD2002", "01/01/2023", "14/01/2024", "Active"],
            ),
        )
        assert result.outcomes[0].remarks == (
            "Ordering eligibility period invalid (16/01/2024 - 31/12/2024)",
            "Performing eligibility period invalid (01/01/2023 - 14/01/2024)",
        )

    def test_invalid_dates(self, run_check):
        xml = make_claim_xml([claim([activity()])])
        result = run_check("eligibility", xml, uploads=roster(["GD1001", "unknown", "31/12/2024", "Active"]))
        assert result.outcomes[0].remarks == (
            "Ordering (GD1001) has invalid eligibility dates.",
            "Performing (GD1001) has invalid eligibility dates.",
        )

    def test_inactive_card(self, run_check):
        xml = make_claim_xml([claim([activity()])])
        result = run_check("eligibility", xml, uploads=roster(["GD1001", "01/01/2024", "31/12/2024", "Expired"]))
        assert result.outcomes[0].remarks == ("Ordering card is not active", "Performing card is not active")

    def test_missing_required_columns(self, run_check):
        xml = make_claim_xml([claim([activity()])])
        uploads = {"eligibility": {"Eligibility": [["Clinician", "EffectiveDate"], ["GD1001", "01/01/2024"]]}}
        with pytest.raises(MissingReferenceDataset, match=r"Eligibility file missing required fields \(ExpiryDate, Card Status\)"):
            run_check("eligibility", xml, uploads=uploads)

    def test_percentage(self, run_check):
        xml = make_claim_xml(
            [
                claim([activity(id="A1"), activity(id="A2", clinician="GD2002")], id="C1"),
                claim([activity(id="A3")], id="C2"),
            ]
        )
        result = run_check("eligibility", xml, uploads=roster())
        assert (result.valid_count, result.total_count) == (2, 3)
        assert str(result.percentage) == "67"
        assert [c.is_valid for c in result.claims] == [False, True]
