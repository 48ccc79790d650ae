"""Tests for checker runs, batch runs and the upload session."""

from __future__ import annotations

import json

import pytest
from conftest import activity, claim, make_claim_xml, make_xlsx

from submission_checker.checkers import CHECKERS, checker_names, get_checker
from submission_checker.config import CheckerOverride
from submission_checker.errors import MalformedDocument, MissingReferenceDataset, RunCancelled, UnknownChecker
from submission_checker.parsers.claim_xml import parse_claim_document
from submission_checker.parsers.tabular import read_workbook
from submission_checker.pipeline import run_all, run_checker, runnable
from submission_checker.session import UploadSession

ROSTER = {"Eligibility": [["Clinician", "EffectiveDate", "ExpiryDate", "Card Status"], ["GD1001", "01/01/2024", "31/12/2024", "Active"]]}


class TestCheckerRegistry:
    def test_all_checkers_registered(self):
        assert checker_names() == (
            "auths",
            "clinician",
            "eligibility",
            "modifiers",
            "pricing",
            "drug_quantities",
            "drug_formulary",
            "teeth",
            "timings",
        )

    def test_unknown_checker(self):
        with pytest.raises(UnknownChecker, match="Unknown checker: nope"):
            get_checker("nope")

    def test_overrides_applied(self):
        spec = get_checker("timings", {"timings": CheckerOverride(precision=2, disabled_rules=["duration_rule"])})
        assert spec.precision == 2
        assert "duration_rule" not in [rule.__name__ for rule in spec.active_rules()]
        assert CHECKERS["timings"].precision == 0

    def test_uploads(self):
        assert get_checker("timings").uploads == ("xml",)
        assert get_checker("clinician").uploads == ("xml", "status", "clinician")
        assert get_checker("modifiers").uploads == ("xml", "eligibility")


class TestRunChecker:
    """Run-level failures and cancellation."""

    def test_missing_document(self):
        with pytest.raises(MissingReferenceDataset, match="Claim XML file has not been uploaded"):
            run_checker(get_checker("timings"), None, {})

    def test_missing_workbook(self):
        document = parse_claim_document(make_claim_xml([claim([activity()])]))
        with pytest.raises(MissingReferenceDataset, match=r"eligibility file \(eligibility\) has not been uploaded"):
            run_checker(get_checker("eligibility"), document, {})

    def test_claims_without_activities_count_when_every_activity_applies(self):
        document = parse_claim_document(make_claim_xml([claim([activity()], id="C1"), claim([], id="C2")]))
        result = run_checker(get_checker("timings"), document, {})
        assert [c.claim_id for c in result.claims] == ["C1", "C2"]

    def test_filtered_checkers_skip_unmatched_claims(self):
        document = parse_claim_document(make_claim_xml([claim([activity()], id="C1")]))
        workbook = read_workbook(make_xlsx(ROSTER))
        result = run_checker(get_checker("modifiers"), document, {"eligibility": workbook})
        assert result.claims == ()

    def test_cancelled_before_start(self):
        document = parse_claim_document(make_claim_xml([claim([activity()])]))
        with pytest.raises(RunCancelled):
            run_checker(get_checker("timings"), document, {}, is_current=lambda: False)

    def test_cancelled_mid_run(self):
        document = parse_claim_document(
            make_claim_xml([claim([activity(id=f"A{n}") for n in range(5)])])
        )
        calls = []

        def is_current():
            calls.append(1)
            return len(calls) < 4

        with pytest.raises(RunCancelled):
            run_checker(get_checker("timings"), document, {}, is_current=is_current)

    def test_deterministic(self):
        document = parse_claim_document(make_claim_xml([claim([activity(), activity(id="A2", type="3")])]))
        spec = get_checker("timings")
        assert run_checker(spec, document, {}) == run_checker(spec, document, {})


class TestRunAll:
    def test_runs_checkers_with_inputs(self):
        document = parse_claim_document(make_claim_xml([claim([activity()])]))
        workbooks = {"eligibility": read_workbook(make_xlsx(ROSTER))}
        specs = [get_checker(name) for name in CHECKERS]
        batch = run_all(specs, document, workbooks)

        assert set(batch.results) == {"eligibility", "modifiers", "timings"}
        assert batch.errors == {"teeth": "Tooth code list not loaded. Please check tooth_codes.json and reload."}
        assert "auths" in batch.skipped
        assert "pricing" in batch.skipped

    def test_runnable(self):
        assert runnable(get_checker("timings"), ["xml"])
        assert not runnable(get_checker("pricing"), ["xml"])

    def test_cancellation_stops_batch(self):
        document = parse_claim_document(make_claim_xml([claim([activity()])]))
        with pytest.raises(RunCancelled):
            run_all([get_checker("timings")], document, {}, is_current=lambda: False)


@pytest.fixture
def session(tmp_path):
    (tmp_path / "tooth_codes.json").write_text(
        json.dumps([{"codes": ["D0120"], "description": "Periodic oral evaluation", "affiliated_teeth": "All"}])
    )
    return UploadSession(metadata_dir=tmp_path, overrides={})


class TestUploadSession:
    """Upload-once state, invalidation and cancellation."""

    def test_upload_and_run(self, session):
        session.upload("xml", "claims.xml", make_claim_xml([claim([activity()])]))
        result = session.run("timings")
        assert result.total_count == 1
        assert session.result("timings") is result

    def test_unknown_kind(self, session):
        with pytest.raises(ValueError):
            session.upload("photos", "a.png", b"data")

    def test_malformed_upload_rejected(self, session):
        with pytest.raises(MalformedDocument):
            session.upload("xml", "claims.xml", b"<Claim>")
        assert session.files() == []

    def test_upload_invalidates_results(self, session):
        session.upload("xml", "claims.xml", make_claim_xml([claim([activity()])]))
        session.run("timings")
        generation = session.generation
        session.upload("eligibility", "roster.xlsx", make_xlsx(ROSTER))
        assert session.generation == generation + 1
        assert session.result("timings") is None

    def test_stale_run_not_stored(self, session):
        session.upload("xml", "claims.xml", make_claim_xml([claim([activity()])]))
        generation = session.generation
        session.upload("xml", "claims.xml", make_claim_xml([claim([activity(id="A2")])]))
        with pytest.raises(RunCancelled):
            session._store(generation, {})
        assert not session.is_current(generation)()

    def test_reupload_reuses_parse(self, session):
        data = make_claim_xml([claim([activity()])])
        first = session.upload("xml", "claims.xml", data)
        second = session.upload("xml", "again.xml", data)
        assert first.digest == second.digest
        assert session.snapshot().document is not None

    def test_remove(self, session):
        session.upload("xml", "claims.xml", make_claim_xml([claim([activity()])]))
        assert session.remove("xml")
        assert not session.remove("xml")
        with pytest.raises(MissingReferenceDataset):
            session.run("timings")

    def test_bundled_metadata_and_uploaded_override(self, session):
        session.upload("xml", "claims.xml", make_claim_xml([claim([activity(code="D2391")])]))
        assert session.run("teeth").outcomes[0].is_valid

        payload = [{"codes": ["D2391"], "description": "Resin composite, posterior", "affiliated_teeth": "Posterior"}]
        session.upload("tooth_codes", "tooth_codes.json", json.dumps(payload).encode())
        result = session.run("teeth")
        assert result.outcomes[0].remarks == ("D2391 requires at least one observation but none were provided.",)

    def test_availability(self, session):
        session.upload("xml", "claims.xml", make_claim_xml([claim([activity()])]))
        status = {entry["name"]: entry for entry in session.availability()}
        assert status["timings"]["ready"]
        assert status["teeth"]["ready"]
        assert status["pricing"]["missing"] == ["pricing"]
        assert status["clinician"]["missing"] == ["status", "clinician", "facilities"]

    def test_run_all_stores_results(self, session):
        session.upload("xml", "claims.xml", make_claim_xml([claim([activity()])]))
        batch = session.run_all()
        assert set(batch.results) == {"teeth", "timings"}
        assert session.result("teeth") is not None

    def test_result_of_unknown_checker(self, session):
        with pytest.raises(UnknownChecker):
            session.result("nope")
