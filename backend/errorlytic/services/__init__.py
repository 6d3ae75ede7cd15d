# errorlytic/services/__init__.py
from .report_parser import ReportParser, report_parser
from .fault_classifier import FaultClassifier, fault_classifier
from .enrichment import EnrichmentAdapter
from .walkthrough_synthesizer import WalkthroughSynthesizer, walkthrough_synthesizer
from .quotation_engine import QuotationEngine, quotation_engine
from .storage import LocalFileStorage, ObjectStorage
from .pipeline import DiagnosticPipeline

__all__ = [
    "ReportParser",
    "report_parser",
    "FaultClassifier",
    "fault_classifier",
    "EnrichmentAdapter",
    "WalkthroughSynthesizer",
    "walkthrough_synthesizer",
    "QuotationEngine",
    "quotation_engine",
    "LocalFileStorage",
    "ObjectStorage",
    "DiagnosticPipeline",
]
