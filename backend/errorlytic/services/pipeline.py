# errorlytic/services/pipeline.py
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .. import crud
from ..errors import NotFoundError, Outcome, ParseError, PipelineError, ValidationError
from ..models import (
    Analysis,
    AnalysisSeverity,
    Difficulty,
    FaultSeverity,
    FaultStatus,
    Quotation,
    QuotationStatus,
    ReportSource,
    UploadStatus,
    Walkthrough,
)
from .quotation_engine import (
    QuotationOptions,
    convert_currency,
    generate_share_token,
    get_part_pricing,
    next_status,
    STATUS_ACTIONS,
)
from .stages import Classifier, Enricher, Parser, Pricer, Synthesizer
from .storage import ObjectStorage
from .walkthrough_synthesizer import (
    append_step,
    replace_steps,
    score_difficulty,
    total_minutes,
)

logger = logging.getLogger(__name__)

QUOTATION_NOT_SHARED = "Quotation not found or expired"
WALKTHROUGH_REQUIRED = "Walkthrough not found. Please generate walkthrough first."


def analysis_report(analysis: Analysis) -> Dict[str, Any]:
    """Response document of a persisted analysis"""
    return {
        "analysis_id": analysis.id,
        "upload_id": analysis.upload_id,
        "dtcs": [
            {
                "code": entry.code,
                "description": entry.description,
                "severity": entry.severity.value,
                "category": entry.category,
                "estimated_cost": entry.estimated_cost,
                "status": entry.status.value,
                "obd_code": entry.obd_code,
            }
            for entry in analysis.fault_entries
        ],
        "summary": {
            "overview": analysis.overview,
            "severity": analysis.severity.value,
            "total_errors": analysis.total_errors,
            "critical_errors": analysis.critical_errors,
            "estimated_cost": analysis.estimated_cost,
            "primary_code": analysis.primary_code,
        },
        "causes": analysis.causes or [],
        "recommendations": analysis.recommendations or [],
        "ai_enrichment": analysis.ai_enrichment,
        "ai_analysis": analysis.ai_analysis if analysis.ai_enabled else None,
        "vehicle_info": analysis.vehicle_info or {},
        "diagnostic_info": analysis.diagnostic_info or {},
        "created_at": analysis.created_at,
    }


class DiagnosticPipeline:
    """
    Orchestrates Upload -> Parse -> Classify -> Enrich -> Analysis,
    then Walkthrough and Quotation on demand.

    Each operation writes its state in one transaction and returns an
    Outcome; expected failures never raise.
    """

    def __init__(
        self,
        db: Session,
        storage: ObjectStorage,
        parser: Parser,
        classifier: Classifier,
        enricher: Enricher,
        synthesizer: Synthesizer,
        pricer: Pricer,
    ):
        self.db = db
        self.storage = storage
        self.parser = parser
        self.classifier = classifier
        self.enricher = enricher
        self.synthesizer = synthesizer
        self.pricer = pricer

    # ------------------------------------------------------------------
    # Parse & analyze
    # ------------------------------------------------------------------

    def parse_and_analyze(self, upload_id: str) -> Outcome[Dict[str, Any]]:
        """
        Parse a stored upload, classify its faults, enrich and persist the Analysis

        Returns:
            Outcome with the analysis report, NotFoundError when the upload is
            missing or already processed, ParseError when parsing failed
        """
        upload = crud.get_upload(self.db, upload_id)
        if upload is None or upload.status != UploadStatus.UPLOADED:
            return Outcome.failure(NotFoundError(f"Upload {upload_id} not found or already processed"))

        logger.info(f"[Pipeline] Processing upload {upload_id} ({upload.filename})")

        try:
            content = self.storage.get(upload.storage_key)
        except NotFoundError as e:
            return self._fail_upload(upload_id, str(e), None)

        result = self.parser.parse(content, upload.report_format.value)
        if not result.success:
            return self._fail_upload(upload_id, result.error, result.to_dict())

        classification = self.classifier.classify(result.fault_entries)
        # Enrichment may block up to its timeout; it runs before any write
        enrichment = self.enricher.enrich(classification.faults, result.vehicle_info)

        try:
            if not crud.transition_upload(self.db, upload_id, UploadStatus.PARSED,
                                          parse_result=result.to_dict(),
                                          source=ReportSource(result.source)):
                self.db.rollback()
                return Outcome.failure(NotFoundError(f"Upload {upload_id} not found or already processed"))

            summary = classification.summary
            analysis = crud.create_analysis(
                self.db,
                upload_id=upload_id,
                fields={
                    "overview": summary.overview,
                    "severity": AnalysisSeverity(summary.severity),
                    "max_fault_severity": FaultSeverity(summary.max_fault_severity) if summary.max_fault_severity else None,
                    "primary_code": summary.primary_code,
                    "total_errors": summary.total_errors,
                    "critical_errors": summary.critical_errors,
                    "estimated_cost": summary.estimated_cost,
                    "causes": classification.causes,
                    "recommendations": classification.recommendations,
                    "category_breakdown": summary.categories,
                    "vehicle_info": result.vehicle_info,
                    "diagnostic_info": result.diagnostic_info,
                    "ai_enabled": enrichment.enabled,
                    "ai_confidence": enrichment.confidence,
                    "ai_provider": enrichment.provider,
                    "ai_analysis": enrichment.payload(),
                },
                fault_entries=[
                    {
                        "position": fault.position,
                        "code": fault.code,
                        "description": fault.description,
                        "severity": FaultSeverity(fault.severity),
                        "category": fault.category,
                        "estimated_cost": fault.estimated_cost,
                        "status": FaultStatus(fault.status),
                        "obd_code": fault.obd_code,
                    }
                    for fault in classification.faults
                ],
                commit=False,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(analysis)
        logger.info(f"[Pipeline] Analysis {analysis.id} created for upload {upload_id}: "
                    f"{analysis.total_errors} faults, severity={analysis.severity.value}, "
                    f"ai_enabled={analysis.ai_enabled}")
        return Outcome.success(analysis_report(analysis))

    def _fail_upload(self, upload_id: str, error: Optional[str], parse_result: Optional[Dict[str, Any]]) -> Outcome:
        message = error or "Report could not be parsed"
        try:
            moved = crud.transition_upload(self.db, upload_id, UploadStatus.FAILED,
                                           parse_result=parse_result, error_message=message)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        if not moved:
            return Outcome.failure(NotFoundError(f"Upload {upload_id} not found or already processed"))
        logger.warning(f"[Pipeline] Upload {upload_id} failed to parse: {message}")
        return Outcome.failure(ParseError(message))

    # ------------------------------------------------------------------
    # Walkthrough
    # ------------------------------------------------------------------

    def generate_walkthrough(self, analysis_id: str) -> Outcome[Walkthrough]:
        """Synthesize (or regenerate in place) the walkthrough of an analysis"""
        analysis = crud.get_analysis(self.db, analysis_id)
        if analysis is None:
            return Outcome.failure(NotFoundError("Analysis not found"))

        plan = self.synthesizer.synthesize(analysis.causes or [], analysis.fault_entries)
        plan_dict = plan.to_dict()
        try:
            walkthrough = crud.save_walkthrough(self.db, analysis_id, {
                "steps": plan_dict["steps"],
                "parts": plan_dict["parts"],
                "tools": plan_dict["tools"],
                "difficulty": Difficulty(plan.difficulty),
                "total_estimated_minutes": plan.total_estimated_minutes,
            }, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(walkthrough)
        return Outcome.success(walkthrough)

    def replace_walkthrough_steps(self, walkthrough_id: str, steps: List[Dict[str, Any]]) -> Outcome[Walkthrough]:
        walkthrough = crud.get_walkthrough(self.db, walkthrough_id)
        if walkthrough is None:
            return Outcome.failure(NotFoundError("Walkthrough not found"))
        try:
            new_steps = replace_steps(steps)
        except ValueError as e:
            return Outcome.failure(ValidationError(str(e)))
        return self._store_steps(walkthrough, new_steps)

    def add_walkthrough_step(self, walkthrough_id: str, step: Dict[str, Any]) -> Outcome[Walkthrough]:
        walkthrough = crud.get_walkthrough(self.db, walkthrough_id)
        if walkthrough is None:
            return Outcome.failure(NotFoundError("Walkthrough not found"))
        try:
            new_steps = append_step(walkthrough.steps or [], step)
        except ValueError as e:
            return Outcome.failure(ValidationError(str(e)))
        return self._store_steps(walkthrough, new_steps)

    def _store_steps(self, walkthrough: Walkthrough, steps) -> Outcome[Walkthrough]:
        high_categories = {
            entry.category for entry in walkthrough.analysis.fault_entries
            if entry.severity == FaultSeverity.HIGH
        }
        fields = {
            "steps": [asdict(step) for step in steps],
            "difficulty": Difficulty(score_difficulty(steps, high_categories)),
            "total_estimated_minutes": total_minutes(steps),
        }
        try:
            walkthrough = crud.save_walkthrough(self.db, walkthrough.analysis_id, fields, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(walkthrough)
        logger.info(f"[Walkthrough] Walkthrough {walkthrough.id} now has {len(steps)} steps")
        return Outcome.success(walkthrough)

    # ------------------------------------------------------------------
    # Quotation
    # ------------------------------------------------------------------

    def generate_quotation(self, analysis_id: str, options: Optional[Dict[str, Any]] = None) -> Outcome[Quotation]:
        """Price the analysis walkthrough into a new draft quotation"""
        analysis = crud.get_analysis(self.db, analysis_id)
        if analysis is None:
            return Outcome.failure(NotFoundError("Analysis not found"))

        walkthrough = crud.get_walkthrough_by_analysis(self.db, analysis_id)
        if walkthrough is None:
            return Outcome.failure(NotFoundError(WALKTHROUGH_REQUIRED))

        try:
            resolved = QuotationOptions(**(options or {}))
            draft = self.pricer.price(walkthrough.parts or [], walkthrough.total_estimated_minutes or 0, resolved)
        except PipelineError as e:
            return Outcome.failure(e)

        try:
            quotation = crud.create_quotation(self.db, {
                "analysis_id": analysis_id,
                "walkthrough_id": walkthrough.id,
                **self._quotation_fields(draft.lines, draft.totals),
                "currency": draft.currency,
                "labor_hours": draft.labor_hours,
                "labor_rate": draft.labor_rate,
                "tax_pct": draft.tax_pct,
                "markup_pct": draft.markup_pct,
                "notes": draft.notes,
            }, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(quotation)
        logger.info(f"[Quotation] Quotation {quotation.id} created for analysis {analysis_id}: "
                    f"{quotation.totals_grand} {quotation.currency}")
        return Outcome.success(quotation)

    def update_quotation(self, quotation_id: str, updates: Dict[str, Any]) -> Outcome[Quotation]:
        """
        Update a draft quotation and recompute totals from the persisted lines

        Accepted fields: labor_hours, labor_rate, markup_pct, tax_pct, parts, notes
        """
        quotation = crud.get_quotation(self.db, quotation_id)
        if quotation is None:
            return Outcome.failure(NotFoundError("Quotation not found"))

        try:
            next_status(quotation.status.value, "update")
            # Explicit nulls keep the stored value, except notes which can be cleared
            updates = {k: v for k, v in updates.items() if v is not None or k == "notes"}
            labor_hours = updates.get("labor_hours", quotation.labor_hours)
            labor_rate = updates.get("labor_rate", quotation.labor_rate)
            markup_pct = updates.get("markup_pct", quotation.markup_pct)
            tax_pct = updates.get("tax_pct", quotation.tax_pct)
            lines = updates.get("parts", quotation.parts or [])
            rebuilt, totals = self.pricer.reprice(lines, labor_hours, labor_rate, markup_pct, tax_pct)
        except PipelineError as e:
            return Outcome.failure(e)

        fields = {
            **self._quotation_fields(rebuilt, totals),
            "labor_hours": labor_hours,
            "labor_rate": labor_rate,
            "markup_pct": markup_pct,
            "tax_pct": tax_pct,
        }
        if "notes" in updates:
            fields["notes"] = updates["notes"]
        quotation = crud.update_quotation(self.db, quotation, fields)
        return Outcome.success(quotation)

    def change_quotation_status(self, quotation_id: str, status: str) -> Outcome[Quotation]:
        quotation = crud.get_quotation(self.db, quotation_id)
        if quotation is None:
            return Outcome.failure(NotFoundError("Quotation not found"))

        action = STATUS_ACTIONS.get(status)
        if action is None:
            return Outcome.failure(ValidationError(f"Invalid target status: {status}"))
        try:
            target = next_status(quotation.status.value, action)
        except PipelineError as e:
            return Outcome.failure(e)

        quotation = crud.update_quotation(self.db, quotation, {"status": QuotationStatus(target)})
        logger.info(f"[Quotation] Quotation {quotation_id} -> {target}")
        return Outcome.success(quotation)

    def share_quotation(self, quotation_id: str) -> Outcome[Quotation]:
        """Generate the public share token once; later calls return the same token"""
        quotation = crud.get_quotation(self.db, quotation_id)
        if quotation is None:
            return Outcome.failure(NotFoundError("Quotation not found"))
        if not quotation.share_link_id:
            quotation = crud.update_quotation(self.db, quotation, {"share_link_id": generate_share_token()})
            logger.info(f"[Quotation] Share link generated for quotation {quotation_id}")
        return Outcome.success(quotation)

    def get_shared_quotation(self, share_link_id: str) -> Outcome[Quotation]:
        quotation = crud.get_quotation_by_share_link(self.db, share_link_id) if share_link_id else None
        if quotation is None:
            return Outcome.failure(NotFoundError(QUOTATION_NOT_SHARED))
        return Outcome.success(quotation)

    def _quotation_fields(self, lines, totals) -> Dict[str, Any]:
        return {
            "parts": [asdict(line) for line in lines],
            "labor_subtotal": totals.labor,
            "totals_parts": totals.parts,
            "totals_labor": totals.labor,
            "totals_markup": totals.markup,
            "totals_tax": totals.tax,
            "totals_grand": totals.grand,
        }

    # ------------------------------------------------------------------
    # Pricing helpers
    # ------------------------------------------------------------------

    def convert_currency(self, amount: float, from_currency: str, to_currency: str) -> Outcome[float]:
        try:
            return Outcome.success(convert_currency(amount, from_currency, to_currency))
        except PipelineError as e:
            return Outcome.failure(e)

    def get_part_pricing(self, part_name: str, currency: str, is_oem: bool) -> Outcome[Dict[str, Any]]:
        try:
            return Outcome.success(get_part_pricing(part_name, currency, is_oem).to_dict())
        except PipelineError as e:
            return Outcome.failure(e)
