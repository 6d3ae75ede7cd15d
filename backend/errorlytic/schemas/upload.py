# errorlytic/schemas/upload.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Dict, Any, List
from ..models.upload import ReportFormat, ReportSource, UploadStatus
from .common import Pagination

# Response schemas
class UploadResponse(BaseModel):
    """Schema for an uploaded report"""
    id: str
    filename: str
    size: int
    mime: str
    report_format: ReportFormat
    source: ReportSource
    status: UploadStatus
    uploaded_at: datetime
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    class Config:
        from_attributes = True  # Pydantic v2

class UploadDetailResponse(UploadResponse):
    """Upload including the cached parser output"""
    parse_result: Optional[Dict[str, Any]] = None

class UploadListResponse(BaseModel):
    """Schema for a page of uploads"""
    uploads: List[UploadResponse]
    pagination: Pagination
