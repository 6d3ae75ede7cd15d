# errorlytic/schemas/__init__.py
from .common import Pagination, MessageResponse
from .upload import UploadResponse, UploadDetailResponse, UploadListResponse
from .analysis import AnalysisResponse, AnalysisListResponse, AnalysisStatistics
from .walkthrough import StepInput, StepsUpdate, WalkthroughResponse
from .quotation import (
    QuotationCreate,
    QuotationUpdate,
    StatusUpdate,
    QuotationResponse,
    QuotationListResponse,
    ShareLinkResponse,
    QuotationStatistics,
)
from .pricing import CurrencyConversion, PartPriceResponse

__all__ = [
    "Pagination",
    "MessageResponse",
    "UploadResponse",
    "UploadDetailResponse",
    "UploadListResponse",
    "AnalysisResponse",
    "AnalysisListResponse",
    "AnalysisStatistics",
    "StepInput",
    "StepsUpdate",
    "WalkthroughResponse",
    "QuotationCreate",
    "QuotationUpdate",
    "StatusUpdate",
    "QuotationResponse",
    "QuotationListResponse",
    "ShareLinkResponse",
    "QuotationStatistics",
    "CurrencyConversion",
    "PartPriceResponse",
]
