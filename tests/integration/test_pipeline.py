"""End-to-end tests of DiagnosticPipeline against an in-memory database."""

import re

import pytest

from errorlytic import crud
from errorlytic.errors import ErrorKind, InvalidStateError, NotFoundError, ParseError
from errorlytic.models import Analysis, Quotation, QuotationStatus, UploadStatus
from errorlytic.services.enrichment import EnrichmentAdapter
from errorlytic.services.fault_classifier import fault_classifier
from errorlytic.services.pipeline import DiagnosticPipeline
from errorlytic.services.quotation_engine import quotation_engine
from errorlytic.services.report_parser import report_parser
from errorlytic.services.walkthrough_synthesizer import walkthrough_synthesizer
from tests.conftest import FakeReasoningClient, OBD_REPORT, VCDS_REPORT
from tests.helpers import store_upload


@pytest.fixture
def analyzed(db_session, storage, pipeline):
    """A VCDS report uploaded and analyzed."""
    upload = store_upload(db_session, storage, VCDS_REPORT.encode())
    report = pipeline.parse_and_analyze(upload.id).unwrap()
    return upload.id, report


# ── Parse & analyze ──────────────────────────────────────────────────────────

def test_parse_and_analyze_creates_analysis(db_session, analyzed):
    upload_id, report = analyzed

    assert report["upload_id"] == upload_id
    assert [dtc["code"] for dtc in report["dtcs"]] == ["17158", "P0300", "00532"]
    assert report["summary"]["severity"] == "critical"
    assert report["summary"]["critical_errors"] == 1
    assert report["summary"]["overview"] == "Found 3 error codes"
    assert report["causes"] == ["Electrical", "Engine"]
    assert report["vehicle_info"]["vin"] == "WVWZZZ1KZ6W000001"
    assert report["ai_enrichment"] == {"enabled": False, "confidence": 0.0, "provider": None}
    assert report["ai_analysis"] is None

    upload = crud.get_upload(db_session, upload_id)
    assert upload.status == UploadStatus.PARSED
    assert upload.processed_at is not None
    assert upload.source.value == "VCDS"
    assert upload.parse_result["fault_entries"][0]["obd_code"] == "U1123"


def test_upload_is_processed_exactly_once(pipeline, analyzed):
    upload_id, _ = analyzed
    outcome = pipeline.parse_and_analyze(upload_id)

    assert not outcome.ok
    assert isinstance(outcome.error, NotFoundError)


class _ConcurrentlyParsedParser:
    """Parser that lets another worker claim the upload while it runs."""

    def __init__(self, db_session, upload_id):
        self.db_session = db_session
        self.upload_id = upload_id

    def parse(self, content, report_format):
        crud.transition_upload(self.db_session, self.upload_id, UploadStatus.PARSED, parse_result={})
        self.db_session.commit()
        return report_parser.parse(content, report_format)


def test_upload_claimed_during_parse_is_not_analyzed_twice(db_session, storage):
    upload = store_upload(db_session, storage, VCDS_REPORT.encode())
    racing = DiagnosticPipeline(
        db=db_session,
        storage=storage,
        parser=_ConcurrentlyParsedParser(db_session, upload.id),
        classifier=fault_classifier,
        enricher=EnrichmentAdapter(None),
        synthesizer=walkthrough_synthesizer,
        pricer=quotation_engine,
    )

    outcome = racing.parse_and_analyze(upload.id)

    assert isinstance(outcome.error, NotFoundError)
    assert db_session.query(Analysis).count() == 0
    assert crud.get_upload(db_session, upload.id).status == UploadStatus.PARSED


def test_unknown_upload_is_not_found(pipeline):
    outcome = pipeline.parse_and_analyze("missing")
    assert outcome.error.kind == ErrorKind.NOT_FOUND


def test_unparseable_report_marks_upload_failed(db_session, storage, pipeline):
    upload = store_upload(db_session, storage, b"hello world\n")

    outcome = pipeline.parse_and_analyze(upload.id)

    assert isinstance(outcome.error, ParseError)
    assert outcome.error.message == "No diagnostic content could be extracted from the report"
    db_session.expire_all()
    failed = crud.get_upload(db_session, upload.id)
    assert failed.status == UploadStatus.FAILED
    assert failed.error_message == outcome.error.message
    assert failed.analysis is None
    assert isinstance(pipeline.parse_and_analyze(upload.id).error, NotFoundError)


def test_missing_stored_report_is_a_parse_error(db_session, storage, pipeline):
    upload = store_upload(db_session, storage, OBD_REPORT.encode())
    storage.delete(upload.storage_key)

    outcome = pipeline.parse_and_analyze(upload.id)

    assert isinstance(outcome.error, ParseError)
    db_session.expire_all()
    assert crud.get_upload(db_session, upload.id).status == UploadStatus.FAILED


def test_enrichment_is_persisted(db_session, storage, make_pipeline):
    pipeline = make_pipeline(EnrichmentAdapter(FakeReasoningClient(), base_confidence=0.8))
    upload = store_upload(db_session, storage, OBD_REPORT.encode())

    report = pipeline.parse_and_analyze(upload.id).unwrap()

    assert report["ai_enrichment"] == {"enabled": True, "confidence": 0.8, "provider": "fake"}
    assert report["ai_analysis"]["ai_assessment"] == "Assessment of 2 faults"
    assert [e["code"] for e in report["ai_analysis"]["error_explanations"]] == ["P0171", "P0420"]


def test_enrichment_failure_still_creates_analysis(db_session, storage, make_pipeline):
    pipeline = make_pipeline(EnrichmentAdapter(FakeReasoningClient(fail_assess=True)))
    upload = store_upload(db_session, storage, OBD_REPORT.encode())

    report = pipeline.parse_and_analyze(upload.id).unwrap()

    assert report["ai_enrichment"]["enabled"] is False
    assert report["ai_enrichment"]["confidence"] == 0.0
    assert len(report["dtcs"]) == 2


# ── Walkthrough ──────────────────────────────────────────────────────────────

def test_generate_walkthrough(pipeline, analyzed):
    _, report = analyzed
    walkthrough = pipeline.generate_walkthrough(report["analysis_id"]).unwrap()

    assert [step["order"] for step in walkthrough.steps] == list(range(1, 9))
    assert walkthrough.total_estimated_minutes == 245
    assert walkthrough.difficulty.value == "hard"
    assert [part["name"] for part in walkthrough.parts] == ["Wiring Repair Kit", "Spark Plugs", "Ignition Coil"]


def test_regenerating_walkthrough_overwrites_in_place(pipeline, analyzed):
    _, report = analyzed
    first = pipeline.generate_walkthrough(report["analysis_id"]).unwrap()
    first_id = first.id
    pipeline.add_walkthrough_step(first_id, {"title": "Extra", "type": "check", "est_minutes": 5})

    second = pipeline.generate_walkthrough(report["analysis_id"]).unwrap()

    assert second.id == first_id
    assert len(second.steps) == 8


def test_walkthrough_for_unknown_analysis(pipeline):
    assert pipeline.generate_walkthrough("missing").error.message == "Analysis not found"


def test_step_edits_keep_orders_contiguous(pipeline, analyzed):
    _, report = analyzed
    walkthrough = pipeline.generate_walkthrough(report["analysis_id"]).unwrap()

    added = pipeline.add_walkthrough_step(
        walkthrough.id, {"title": "Final road test", "type": "retest", "est_minutes": 15, "order": 2}
    ).unwrap()
    assert [step["order"] for step in added.steps] == list(range(1, 10))
    assert added.steps[-1]["title"] == "Final road test"
    assert added.total_estimated_minutes == 260

    replaced = pipeline.replace_walkthrough_steps(walkthrough.id, [
        {"title": "Retest", "type": "retest", "est_minutes": 10, "order": 5},
        {"title": "Check", "type": "check", "est_minutes": 20, "order": 1},
    ]).unwrap()
    assert [(step["title"], step["order"]) for step in replaced.steps] == [("Check", 1), ("Retest", 2)]
    assert replaced.total_estimated_minutes == 30
    assert replaced.difficulty.value == "easy"


def test_invalid_step_is_a_validation_error(pipeline, analyzed):
    _, report = analyzed
    walkthrough = pipeline.generate_walkthrough(report["analysis_id"]).unwrap()

    outcome = pipeline.add_walkthrough_step(walkthrough.id, {"title": "", "type": "check", "est_minutes": 5})

    assert outcome.error.kind == ErrorKind.VALIDATION_ERROR


# ── Quotation ────────────────────────────────────────────────────────────────

def test_quotation_requires_walkthrough(pipeline, analyzed):
    _, report = analyzed
    outcome = pipeline.generate_quotation(report["analysis_id"])

    assert outcome.error.message == "Walkthrough not found. Please generate walkthrough first."


def test_quotation_for_unknown_analysis(pipeline):
    assert pipeline.generate_quotation("missing").error.message == "Analysis not found"


def test_generate_quotation_with_defaults(pipeline, analyzed):
    _, report = analyzed
    walkthrough = pipeline.generate_walkthrough(report["analysis_id"]).unwrap()

    quotation = pipeline.generate_quotation(report["analysis_id"]).unwrap()

    assert quotation.walkthrough_id == walkthrough.id
    assert quotation.status == QuotationStatus.DRAFT
    assert quotation.currency == "KES"
    assert quotation.labor == {"hours": 5, "rate_per_hour": 2500, "subtotal": 12500}
    assert [line["part_number"] for line in quotation.parts] == ["Febi 36214", "Bosch FR7DPP", "Bosch 0221604001"]
    assert quotation.totals == {
        "parts": 12000,
        "labor": 12500,
        "markup": 1800,
        "tax": 3920,
        "grand": 30220,
    }


def test_generate_quotation_rejects_unsupported_currency(pipeline, analyzed):
    _, report = analyzed
    pipeline.generate_walkthrough(report["analysis_id"])

    outcome = pipeline.generate_quotation(report["analysis_id"], {"currency": "EUR"})

    assert outcome.error.kind == ErrorKind.VALIDATION_ERROR


@pytest.fixture
def quotation(pipeline, analyzed) -> Quotation:
    _, report = analyzed
    pipeline.generate_walkthrough(report["analysis_id"])
    return pipeline.generate_quotation(report["analysis_id"]).unwrap()


def test_update_draft_recomputes_totals(pipeline, quotation):
    updated = pipeline.update_quotation(quotation.id, {
        "labor_hours": 1,
        "tax_pct": 0,
        "markup_pct": 0,
        "parts": [{"name": "Spark Plugs", "unit_price": 1000, "qty": 2}],
        "notes": "Customer supplies coil",
    }).unwrap()

    assert updated.totals == {"parts": 2000, "labor": 2500, "markup": 0, "tax": 0, "grand": 4500}
    assert updated.parts[0]["subtotal"] == 2000
    assert updated.notes == "Customer supplies coil"


def test_lifecycle_draft_sent_approved(pipeline, quotation):
    assert pipeline.change_quotation_status(quotation.id, "sent").unwrap().status == QuotationStatus.SENT

    outcome = pipeline.update_quotation(quotation.id, {"tax_pct": 0})
    assert isinstance(outcome.error, InvalidStateError)

    assert pipeline.change_quotation_status(quotation.id, "approved").unwrap().status == QuotationStatus.APPROVED
    assert isinstance(pipeline.change_quotation_status(quotation.id, "rejected").error, InvalidStateError)


def test_cannot_approve_a_draft(pipeline, quotation):
    outcome = pipeline.change_quotation_status(quotation.id, "approved")
    assert isinstance(outcome.error, InvalidStateError)
    assert outcome.error.message == "Cannot approve a quotation in 'draft' status"


def test_share_link_is_stable(pipeline, quotation):
    token = pipeline.share_quotation(quotation.id).unwrap().share_link_id

    assert re.fullmatch(r"[0-9a-f]{32}", token)
    assert pipeline.share_quotation(quotation.id).unwrap().share_link_id == token
    assert pipeline.get_shared_quotation(token).unwrap().id == quotation.id
    assert pipeline.get_shared_quotation(token).unwrap().id == quotation.id


def test_unknown_share_link(pipeline):
    outcome = pipeline.get_shared_quotation("0" * 32)
    assert outcome.error.message == "Quotation not found or expired"


def test_pricing_helpers(pipeline):
    assert pipeline.convert_currency(15000, "KES", "USD").unwrap() == pytest.approx(100.5)
    assert pipeline.get_part_pricing("Spark Plugs", "KES", True).unwrap() == {"price": 2500, "currency": "KES"}
    assert pipeline.convert_currency(1, "KES", "EUR").error.kind == ErrorKind.VALIDATION_ERROR


# ── Listing & deletion ───────────────────────────────────────────────────────

def test_analysis_pagination(db_session, storage, pipeline):
    for _ in range(5):
        upload = store_upload(db_session, storage, OBD_REPORT.encode())
        pipeline.parse_and_analyze(upload.id).unwrap()

    items, pagination = crud.list_analyses(db_session, page=1, limit=3)
    assert len(items) == 3
    assert pagination == {"page": 1, "limit": 3, "total": 5, "pages": 2}

    items, pagination = crud.list_analyses(db_session, page=2, limit=3)
    assert len(items) == 2


def test_quotation_statistics(db_session, pipeline, quotation):
    pipeline.change_quotation_status(quotation.id, "sent")

    stats = crud.quotation_statistics(db_session)

    assert stats["total"] == 1
    assert stats["by_status"] == {"draft": 0, "sent": 1, "approved": 0, "rejected": 0}
    assert stats["total_value"] == {"KES": 30220}


def test_analysis_statistics(db_session, storage, pipeline):
    for content in (VCDS_REPORT, VCDS_REPORT, OBD_REPORT):
        upload = store_upload(db_session, storage, content.encode())
        pipeline.parse_and_analyze(upload.id).unwrap()

    stats = crud.analysis_statistics(db_session, recent=2)

    assert stats["total"] == 3
    assert stats["by_severity"]["critical"] == 2
    assert sum(stats["by_severity"].values()) == 3
    assert len(stats["recent"]) == 2
    assert stats["top_causes"][:2] == [{"cause": "Electrical", "count": 2}, {"cause": "Engine", "count": 2}]


def test_deleting_upload_cascades(db_session, pipeline, quotation):
    analysis_id = quotation.analysis_id
    upload = crud.get_analysis(db_session, analysis_id).upload

    crud.delete_upload(db_session, upload)

    assert crud.get_analysis(db_session, analysis_id) is None
    assert db_session.query(Quotation).count() == 0
