# errorlytic/services/stages.py
"""Capability protocols for the pipeline stages injected into DiagnosticPipeline."""

from typing import Any, Dict, Iterable, List, Protocol, Sequence

from .enrichment import EnrichmentResult
from .fault_classifier import Classification, ClassifiedFault
from .quotation_engine import QuotationDraft, QuotationOptions
from .report_parser import ParsedFault, ParseResult
from .walkthrough_synthesizer import WalkthroughPlan


class Parser(Protocol):
    def parse(self, content: bytes, report_format: str) -> ParseResult:
        ...


class Classifier(Protocol):
    def classify(self, faults: Sequence[ParsedFault]) -> Classification:
        ...


class Enricher(Protocol):
    def enrich(self, faults: List[ClassifiedFault], vehicle_info: Dict[str, Any]) -> EnrichmentResult:
        ...


class Synthesizer(Protocol):
    def synthesize(self, causes: Sequence[str], faults: Sequence[Any]) -> WalkthroughPlan:
        ...


class Pricer(Protocol):
    def price(self, parts: Iterable[Dict[str, Any]], total_minutes: int, options: QuotationOptions) -> QuotationDraft:
        ...

    def reprice(self, lines: Iterable[Dict[str, Any]], labor_hours: float, labor_rate: float,
                markup_pct: float, tax_pct: float) -> tuple:
        ...
