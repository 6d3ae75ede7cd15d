# errorlytic/schemas/quotation.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, List
from ..models.quotation import QuotationStatus
from .common import Pagination

# Request schemas
class QuotationCreate(BaseModel):
    """Pricing options; omitted values use the configured defaults"""
    currency: Optional[str] = None
    labor_rate: Optional[float] = None
    markup_pct: Optional[float] = None
    tax_pct: Optional[float] = None
    use_oem_parts: bool = False
    notes: Optional[str] = None

class QuotationLineInput(BaseModel):
    name: str
    unit_price: float
    qty: int = Field(1, ge=1)
    part_number: Optional[str] = None
    is_oem: bool = False

class QuotationUpdate(BaseModel):
    """Editable fields of a draft quotation"""
    labor_hours: Optional[float] = None
    labor_rate: Optional[float] = None
    markup_pct: Optional[float] = None
    tax_pct: Optional[float] = None
    parts: Optional[List[QuotationLineInput]] = None
    notes: Optional[str] = None

class StatusUpdate(BaseModel):
    status: QuotationStatus

# Response schemas
class QuotationLineResponse(BaseModel):
    name: str
    unit_price: float
    qty: int
    subtotal: float
    part_number: Optional[str] = None
    is_oem: bool = False

class LaborResponse(BaseModel):
    hours: float
    rate_per_hour: float
    subtotal: float

class TotalsResponse(BaseModel):
    parts: float
    labor: float
    markup: float
    tax: float
    grand: float

class QuotationResponse(BaseModel):
    """Schema for a priced quotation"""
    id: str
    analysis_id: str
    walkthrough_id: str
    currency: str
    labor: LaborResponse
    parts: List[QuotationLineResponse]
    markup_pct: float
    tax_pct: float
    totals: TotalsResponse
    status: QuotationStatus
    share_link_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class QuotationListResponse(BaseModel):
    quotations: List[QuotationResponse]
    pagination: Pagination

class ShareLinkResponse(BaseModel):
    share_link_id: str
    share_url: str

class QuotationStatistics(BaseModel):
    """Quotation counts per status and grand totals per currency"""
    total: int
    by_status: Dict[str, int]
    total_value: Dict[str, float]
