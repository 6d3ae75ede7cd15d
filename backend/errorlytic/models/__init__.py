# errorlytic/models/__init__.py
from .upload import Upload, UploadStatus, ReportFormat, ReportSource
from .analysis import Analysis, FaultEntry, FaultSeverity, FaultStatus, AnalysisSeverity
from .walkthrough import Walkthrough, StepType, Difficulty
from .quotation import Quotation, QuotationStatus

__all__ = [
    "Upload",
    "UploadStatus",
    "ReportFormat",
    "ReportSource",
    "Analysis",
    "FaultEntry",
    "FaultSeverity",
    "FaultStatus",
    "AnalysisSeverity",
    "Walkthrough",
    "StepType",
    "Difficulty",
    "Quotation",
    "QuotationStatus",
]
