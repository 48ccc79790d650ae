"""Tests for the prior-authorization checker."""

from __future__ import annotations

from types import MappingProxyType

import pytest
from conftest import activity, claim, make_claim_xml

from submission_checker.checkers.auths import extra_whitespace_rule, field_mismatch_rule, requires_authorization
from submission_checker.engine.models import ActivityRecord, Matched, ReferenceRow, RuleContext
from submission_checker.errors import MissingReferenceDataset
from submission_checker.parsers.metadata import build_metadata

HEADERS = [
    "AuthorizationID",
    "Item Code",
    "Card Number / DHA Member ID",
    "Ordering Clinician",
    "Payer Share",
    "Ordered On",
    "Status",
]


def auth_row(**fields):
    values = {
        "AuthorizationID": "PA1",
        "Item Code": "D0120",
        "Card Number / DHA Member ID": "M001",
        "Ordering Clinician": "GD1001",
        "Payer Share": "100",
        "Ordered On": "14/01/2024",
        "Status": "Approved",
    }
    values.update(fields)
    return [values[header] for header in HEADERS]


def auth_sheet(*rows):
    return {"auth": {"HCPRequests": [HEADERS, *(rows or [auth_row()])]}}


NOT_REQUIRED_RULES = [{"code": "D0120", "approval_details": "Not Required"}]


class TestAuthorizationRequirement:
    """Whether an activity needs an authorization at all."""

    def test_missing_rules_document_requires_auth(self):
        assert requires_authorization("D0120", {}) is True

    def test_not_required_details(self):
        rules = build_metadata("auth_rules", [{"code": "D0120", "approval_details": "Prior approval NOT  REQUIRED"}])
        assert requires_authorization("D0120", {"auth_rules": rules}) is False
        assert requires_authorization("D2391", {"auth_rules": rules}) is True

    def test_missing_required_auth(self, run_check):
        xml = make_claim_xml([claim([activity()])])
        result = run_check("auths", xml, uploads=auth_sheet())
        assert result.outcomes[0].remarks == ("Missing required AuthorizationID for D0120",)

    def test_not_required_and_absent_is_exempt(self, run_check):
        xml = make_claim_xml([claim([activity()])])
        result = run_check("auths", xml, uploads=auth_sheet(), metadata={"auth_rules": NOT_REQUIRED_RULES})
        outcome = result.outcomes[0]
        assert outcome.is_valid
        assert outcome.notes == ("Authorization not required",)

    def test_provided_but_not_required(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA9")])])
        result = run_check("auths", xml, uploads=auth_sheet(), metadata={"auth_rules": NOT_REQUIRED_RULES})
        assert result.outcomes[0].remarks == (
            "AuthorizationID provided but not required",
            "AuthID PA9 not in HCPRequests sheet",
        )

    def test_zero_net_is_exempt(self, run_check):
        xml = make_claim_xml([claim([activity(net="0")])])
        outcome = run_check("auths", xml, uploads=auth_sheet()).outcomes[0]
        assert outcome.is_valid
        assert outcome.notes == ("Claimed Net is 0",)


class TestAuthorizationMatching:
    """Lookup in the HCPRequests sheet and checks on the matched row."""

    def test_valid_authorization(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet())
        assert result.outcomes[0].is_valid
        assert result.percentage == 100

    def test_auth_for_another_item(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(**{"Item Code": "D2391"})))
        assert result.outcomes[0].remarks == ("PA1 has no authorization for D0120.",)

    def test_row_chosen_by_item_code(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1", code="D2391")])])
        result = run_check(
            "auths",
            xml,
            uploads=auth_sheet(auth_row(), auth_row(**{"Item Code": "D2391", "Status": "Totally Approved"})),
        )
        outcome = result.outcomes[0]
        assert outcome.is_valid
        assert isinstance(outcome.match, Matched)
        assert outcome.match.row.get("Status") == "Totally Approved"

    def test_rejected(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(Status="Rejected")))
        assert result.outcomes[0].remarks == ("Has authID but status is rejected",)

    def test_invalid_status(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(Status="Pending")))
        assert result.outcomes[0].remarks == (
            "Invalid status (must be Approved, Totally Approved, or Rejected)",
        )

    def test_partially_approved_accepted(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(Status="Partially Approved")))
        assert result.outcomes[0].is_valid

    def test_clinician_mismatch(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(**{"Ordering Clinician": "GD2002"})))
        assert result.outcomes[0].remarks == ("Clinician mismatch: XML=[GD1001], XLSX=[GD2002]",)

    def test_leading_whitespace(self, run_check):
        xml = make_claim_xml([claim([activity(auth="  PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet())
        assert result.outcomes[0].remarks == ("Leading whitespace in AuthorizationID",)

    def test_ordered_after_activity_start(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(**{"Ordered On": "20/01/2024"})))
        assert result.outcomes[0].remarks == ("Ordered On date must be before or equal to Activity Start date",)

    def test_totally_approved_may_be_ordered_later(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        row = auth_row(**{"Ordered On": "20/01/2024", "Status": "Totally Approved"})
        assert run_check("auths", xml, uploads=auth_sheet(row)).outcomes[0].is_valid

    def test_unparseable_ordered_on(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(**{"Ordered On": "soon"})))
        assert result.outcomes[0].remarks == ("Invalid XLSX Ordered On date",)

    def test_ordered_on_same_day_as_activity(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(**{"Ordered On": "15/01/2024"})))
        assert result.outcomes[0].is_valid

    def test_member_id_leading_zeros(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")], member_id="0012345")])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(**{"Card Number / DHA Member ID": "12345"})))
        outcome = result.outcomes[0]
        assert isinstance(outcome.match, Matched)
        assert outcome.is_valid

    def test_item_code_case(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1", code="d0120")])])
        result = run_check("auths", xml, uploads=auth_sheet(auth_row(**{"Item Code": "D0120"})))
        assert result.outcomes[0].is_valid

    def test_member_mismatch_reports_sheet_value(self):
        row = ReferenceRow(
            position=0,
            values=MappingProxyType(
                {"AuthorizationID": "PA1", "Item Code": "D0120", "Card Number / DHA Member ID": "0099"}
            ),
        )
        record = ActivityRecord(
            claim_id="C1", activity_id="A1", code="D0120", member_id="0012345", authorization_id="PA1"
        )
        context = RuleContext(activity=record, match=Matched(row=row))
        assert field_mismatch_rule(context) == ["MemberID mismatch: XLSX=0099"]

    def test_missing_workbook(self, run_check):
        xml = make_claim_xml([claim([activity(auth="PA1")])])
        with pytest.raises(MissingReferenceDataset, match="has not been uploaded"):
            run_check("auths", xml)


class TestExtraWhitespace:
    def test_each_padded_field_reported(self):
        row = ReferenceRow(
            position=0,
            values=MappingProxyType(
                {"AuthorizationID": "PA1", "Item Code": " D0120", "Payer Share": "100 ", "Ordering Clinician": "GD1"}
            ),
        )
        context = RuleContext(activity=ActivityRecord(claim_id="C1", activity_id="A1"), match=Matched(row=row))
        assert extra_whitespace_rule(context) == [
            'Extra whitespace in field: "Item Code"',
            'Extra whitespace in field: "Payer Share"',
        ]

    def test_no_row_no_remarks(self):
        context = RuleContext(activity=ActivityRecord(claim_id="C1", activity_id="A1"), match=None)
        assert extra_whitespace_rule(context) == []
