# errorlytic/schemas/analysis.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Dict, Any, List
from ..models.analysis import AnalysisSeverity, FaultSeverity, FaultStatus
from .common import Pagination

class FaultCodeResponse(BaseModel):
    """One classified diagnostic trouble code"""
    code: str
    description: str
    severity: FaultSeverity
    category: str
    estimated_cost: float
    status: FaultStatus
    obd_code: Optional[str] = None

class AnalysisSummary(BaseModel):
    overview: str
    severity: AnalysisSeverity
    total_errors: int
    critical_errors: int
    estimated_cost: float
    primary_code: Optional[str] = None

class AIEnrichment(BaseModel):
    enabled: bool
    confidence: float
    provider: Optional[str] = None

class AnalysisResponse(BaseModel):
    """Full analysis document"""
    analysis_id: str
    upload_id: str
    dtcs: List[FaultCodeResponse]
    summary: AnalysisSummary
    causes: List[str]
    recommendations: List[str]
    ai_enrichment: AIEnrichment
    ai_analysis: Optional[Dict[str, Any]] = None
    vehicle_info: Dict[str, Any]
    diagnostic_info: Dict[str, Any]
    created_at: datetime

class AnalysisListItem(BaseModel):
    """Analysis row shown in list views"""
    id: str
    upload_id: str
    overview: str
    severity: AnalysisSeverity
    total_errors: int
    critical_errors: int
    estimated_cost: float
    primary_code: Optional[str] = None
    ai_enrichment: AIEnrichment
    created_at: datetime

    class Config:
        from_attributes = True

class AnalysisListResponse(BaseModel):
    analyses: List[AnalysisListItem]
    pagination: Pagination

class CauseCount(BaseModel):
    cause: str
    count: int

class AnalysisStatistics(BaseModel):
    """Analysis counts per report severity, newest analyses and top causes"""
    total: int
    by_severity: Dict[str, int]
    recent: List[AnalysisListItem]
    top_causes: List[CauseCount]
