"""Tests for the tooth code checker."""

from __future__ import annotations

import pytest
from conftest import activity, claim, make_claim_xml

from submission_checker.checkers.teeth import ALL_TEETH, ANTERIOR, POSTERIOR, teeth_for, tooth_region
from submission_checker.errors import MissingReferenceDataset


def teeth(*codes):
    return [{"type": "Universal Dental", "code": code} for code in codes]


@pytest.fixture
def check(run_check, tooth_codes):
    def _check(claims, auth_rules=None):
        metadata = {"tooth_codes": tooth_codes}
        if auth_rules is not None:
            metadata["auth_rules"] = auth_rules
        return run_check("teeth", make_claim_xml(claims), metadata=metadata)

    return _check


class TestToothTables:
    def test_affiliations(self):
        assert teeth_for("Anterior") == ANTERIOR
        assert teeth_for("Posterior/Bicuspid") >= POSTERIOR
        assert teeth_for("") == ALL_TEETH
        assert teeth_for("All") == ALL_TEETH

    def test_regions(self):
        assert tooth_region("8") == "Anterior"
        assert tooth_region("4") == "Bicuspid"
        assert tooth_region("A") == "Posterior"
        assert tooth_region("99") == "Unknown"


class TestCodeScreening:
    def test_placeholder_code(self, check):
        result = check([claim([activity(code="00000")])])
        assert result.outcomes[0].remarks == (
            'Code "00000" is invalid. Please ask IT to delete this activity or set it to "In Progress".',
        )

    def test_code_length(self, check):
        result = check([claim([activity(code="D012", observations=teeth("3"))])])
        assert result.outcomes[0].remarks == ('Code "D012" is invalid: it must have exactly 5 characters.',)

    def test_drug_codes_pass_length_check(self, check):
        result = check([claim([activity(code="0001-2345-67890-01", type="5")])])
        assert result.outcomes[0].is_valid


class TestToothRules:
    """Per-code tooth affinity."""

    def test_allowed_tooth(self, check):
        assert check([claim([activity(code="D2391", observations=teeth("3"))])]).outcomes[0].is_valid

    def test_tooth_outside_group(self, check):
        result = check([claim([activity(code="D2391", observations=teeth("3", "8"))])])
        assert result.outcomes[0].remarks == ("Anterior 8 not allowed for posterior code D2391.",)

    def test_lowercase_primary_tooth(self, check):
        result = check([claim([activity(code="D2330", observations=teeth("a"))])])
        assert result.outcomes[0].remarks == ("Posterior A not allowed for anterior code D2330.",)

    def test_observation_required(self, check):
        result = check([claim([activity(code="D2391")])])
        assert result.outcomes[0].remarks == ("D2391 requires at least one observation but none were provided.",)

    def test_attachments_only_skipped(self, check):
        result = check([claim([activity(code="D2391", observations=[{"code": "PDF"}])])])
        assert result.outcomes[0].is_valid

    def test_attachments_ignored_among_teeth(self, check):
        observations = teeth("3") + [{"code": "Drug Patient Share"}]
        assert check([claim([activity(code="D2391", observations=observations)])]).outcomes[0].is_valid

    def test_unknown_code_without_region(self, check):
        assert check([claim([activity(code="D9999")])]).outcomes[0].is_valid

    def test_unknown_region_code(self, check):
        rules = [{"code": "D4355", "description": "Full mouth debridement per quadrant"}]
        result = check([claim([activity(code="D4355")])], auth_rules=rules)
        assert result.outcomes[0].remarks == (
            'No tooth (Observation) specified for unknown code "D4355" (region type: quadrant).',
        )


class TestSpecialCodes:
    def test_no_observations(self, check):
        result = check([claim([activity(code="17999")])])
        assert result.outcomes[0].remarks == ("17999 requires at least one observation code but none were provided.",)

    def test_tooth_codes_not_allowed(self, check):
        result = check([claim([activity(code="17999", observations=teeth("3"))])])
        assert result.outcomes[0].remarks == (
            "17999 cannot be used with tooth codes: 3",
            '17999 requires an Observation with Description or Code exactly "ACTIVITY DESCRIPTION".',
        )

    def test_activity_description(self, check):
        observations = [{"code": "Text", "description": "activity  description"}]
        assert check([claim([activity(code="17999", observations=observations)])]).outcomes[0].is_valid


class TestRegionDuplicates:
    """Sextant and quadrant codes once per region per claim."""

    def test_duplicate_sextant(self, check):
        result = check(
            [
                claim(
                    [
                        activity(id="A1", code="D4346", observations=teeth("2")),
                        activity(id="A2", code="D4346", observations=teeth("3", "8")),
                    ]
                )
            ]
        )
        assert result.outcomes[0].is_valid
        assert result.outcomes[1].remarks == ('Duplicate sextant code "D4346" in Upper Right Sextant',)

    def test_different_regions(self, check):
        result = check(
            [
                claim(
                    [
                        activity(id="A1", code="D4346", observations=teeth("2")),
                        activity(id="A2", code="D4346", observations=teeth("8")),
                    ]
                )
            ]
        )
        assert all(outcome.is_valid for outcome in result.outcomes)

    def test_repeatable_code(self, check):
        result = check(
            [
                claim(
                    [
                        activity(id="A1", code="D4349", observations=teeth("2")),
                        activity(id="A2", code="D4349", observations=teeth("2")),
                    ]
                )
            ]
        )
        assert all(outcome.is_valid for outcome in result.outcomes)

    def test_duplicate_quadrant(self, check):
        result = check(
            [
                claim(
                    [
                        activity(id="A1", code="D4341", observations=teeth("3")),
                        activity(id="A2", code="D4341", observations=teeth("3")),
                    ]
                )
            ]
        )
        assert result.outcomes[1].remarks == ('Duplicate quadrant code "D4341" in Upper Right',)

    def test_separate_claims(self, check):
        result = check(
            [
                claim([activity(code="D4346", observations=teeth("2"))], id="C1"),
                claim([activity(code="D4346", observations=teeth("2"))], id="C2"),
            ]
        )
        assert all(outcome.is_valid for outcome in result.outcomes)


class TestTeethRun:
    def test_claim_percentage(self, check):
        result = check(
            [
                claim([activity(code="D2391", observations=teeth("3")), activity(id="A2", code="D2391")], id="C1"),
                claim([activity(code="D2391", observations=teeth("3"))], id="C2"),
                claim([activity(code="D9999")], id="C3"),
            ]
        )
        assert result.basis == "claims"
        assert (result.valid_count, result.total_count) == (2, 3)
        assert str(result.percentage) == "66.7"

    def test_tooth_codes_required(self, run_check):
        xml = make_claim_xml([claim([activity()])])
        with pytest.raises(MissingReferenceDataset, match="Tooth code list not loaded"):
            run_check("teeth", xml)
