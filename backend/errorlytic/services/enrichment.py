# errorlytic/services/enrichment.py
import concurrent.futures
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config import settings
from ..errors import EnrichmentUnavailable
from .fault_classifier import ClassifiedFault
from .reasoning_client import ReasoningClient

logger = logging.getLogger(__name__)

FALLBACK_TROUBLESHOOTING = "Consult a qualified technician for troubleshooting steps."


@dataclass
class ErrorExplanation:
    """AI (or fallback) text for one fault code"""
    code: str
    explanation: str
    troubleshooting: str
    status: str = "ok"

    def __post_init__(self):
        if self.status not in ("ok", "fallback"):
            raise ValueError(f"Invalid explanation status: {self.status}")


@dataclass
class EnrichmentResult:
    """Outcome of the enrichment stage. Disabled results carry confidence 0."""
    enabled: bool
    confidence: float = 0.0
    provider: Optional[str] = None
    model: Optional[str] = None
    ai_assessment: Optional[str] = None
    error_explanations: List[ErrorExplanation] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    error: Optional[str] = None

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be within 0..1, got {self.confidence}")
        if not self.enabled and self.confidence != 0.0:
            raise ValueError("Disabled enrichment must have zero confidence")

    @classmethod
    def disabled(cls, error: str, provider: Optional[str] = None, model: Optional[str] = None) -> "EnrichmentResult":
        return cls(enabled=False, confidence=0.0, provider=provider, model=model, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def payload(self) -> Dict[str, Any]:
        """Stored AI analysis document (everything except the summary flags)"""
        return {
            "ai_assessment": self.ai_assessment,
            "error_explanations": [asdict(e) for e in self.error_explanations],
            "model": self.model,
            "timestamp": self.timestamp,
            "error": self.error,
        }


def fallback_explanation(fault: ClassifiedFault) -> ErrorExplanation:
    return ErrorExplanation(
        code=fault.code,
        explanation=f"Error code {fault.code}: {fault.description}",
        troubleshooting=FALLBACK_TROUBLESHOOTING,
        status="fallback",
    )


class EnrichmentAdapter:
    """
    Optional AI enrichment of classified faults

    Never raises for provider failures:
    - no client / assessment failure or timeout -> disabled result
    - per-fault failure -> fallback explanation for that fault only
    """

    def __init__(
        self,
        client: Optional[ReasoningClient],
        timeout: Optional[float] = None,
        max_explanations: Optional[int] = None,
        max_workers: Optional[int] = None,
        base_confidence: Optional[float] = None,
    ) -> None:
        self._client = client
        self._timeout = timeout if timeout is not None else settings.AI_TIMEOUT_SECONDS
        self._max_explanations = max_explanations if max_explanations is not None else settings.AI_MAX_EXPLANATIONS
        self._max_workers = max_workers or settings.AI_MAX_WORKERS
        self._base_confidence = base_confidence if base_confidence is not None else settings.AI_BASE_CONFIDENCE
        if self._max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        if self._timeout <= 0:
            raise ValueError("timeout must be > 0")

    def enrich(self, faults: List[ClassifiedFault], vehicle_info: Dict[str, Any]) -> EnrichmentResult:
        """
        Enrich classified faults with an assessment and per-fault explanations

        Args:
            faults: Classified faults in report order
            vehicle_info: Parser vehicle metadata

        Returns:
            EnrichmentResult (enabled=False when the provider is unavailable)
        """
        if self._client is None or not getattr(self._client, "configured", True):
            logger.info("[Enrichment] Skipped: AI provider not configured")
            return EnrichmentResult.disabled("AI provider not configured")

        provider = getattr(self._client, "provider", None)
        model = getattr(self._client, "model", None)

        if not faults:
            return EnrichmentResult.disabled("No fault codes to enrich", provider, model)

        # Not a context manager: leaving the block would wait for hung calls past the timeout
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers)
        try:
            assessment_future = executor.submit(self._client.assess, faults, vehicle_info)
            try:
                assessment = assessment_future.result(timeout=self._timeout)
            except concurrent.futures.TimeoutError:
                logger.warning(f"[Enrichment] Assessment timed out after {self._timeout}s")
                return EnrichmentResult.disabled("AI assessment timed out", provider, model)
            except EnrichmentUnavailable as exc:
                logger.warning(f"[Enrichment] Assessment failed: {exc}")
                return EnrichmentResult.disabled(f"AI assessment failed: {exc}", provider, model)
            except Exception as exc:
                logger.exception(f"[Enrichment] Assessment raised unexpectedly: {exc!r}")
                return EnrichmentResult.disabled(f"AI assessment failed: {exc!r}", provider, model)

            selected = faults[:self._max_explanations]
            explanations = self._explain_all(executor, selected, vehicle_info)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        succeeded = sum(1 for e in explanations if e.status == "ok")
        fraction = succeeded / len(explanations) if explanations else 1.0
        confidence = round(self._base_confidence * fraction, 4)

        logger.info(f"[Enrichment] Completed: {succeeded}/{len(explanations)} explanations, "
                    f"confidence={confidence}")

        return EnrichmentResult(
            enabled=True,
            confidence=confidence,
            provider=provider,
            model=model,
            ai_assessment=assessment,
            error_explanations=explanations,
        )

    def _explain_all(self, executor, faults: List[ClassifiedFault], vehicle_info: Dict[str, Any]) -> List[ErrorExplanation]:
        futures = [executor.submit(self._explain_one, fault, vehicle_info) for fault in faults]
        deadline = time.monotonic() + self._timeout

        explanations = []
        for fault, future in zip(faults, futures):
            try:
                explanations.append(future.result(timeout=max(0.0, deadline - time.monotonic())))
            except concurrent.futures.TimeoutError:
                logger.warning(f"[Enrichment] Explanation for {fault.code} timed out")
                explanations.append(fallback_explanation(fault))
            except EnrichmentUnavailable as exc:
                logger.warning(f"[Enrichment] Explanation for {fault.code} failed: {exc}")
                explanations.append(fallback_explanation(fault))
            except Exception as exc:
                logger.exception(f"[Enrichment] Explanation for {fault.code} raised unexpectedly: {exc!r}")
                explanations.append(fallback_explanation(fault))
        return explanations

    def _explain_one(self, fault: ClassifiedFault, vehicle_info: Dict[str, Any]) -> ErrorExplanation:
        explanation = self._client.explain(fault, vehicle_info)
        troubleshooting = self._client.troubleshoot(fault, vehicle_info)
        return ErrorExplanation(code=fault.code, explanation=explanation, troubleshooting=troubleshooting)
