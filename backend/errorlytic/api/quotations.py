# errorlytic/api/quotations.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from ..database import get_db
from .. import crud
from ..models.quotation import QuotationStatus
from ..schemas.quotation import (
    QuotationCreate,
    QuotationUpdate,
    StatusUpdate,
    QuotationResponse,
    QuotationListResponse,
    ShareLinkResponse,
    QuotationStatistics,
)
from ..services.pipeline import DiagnosticPipeline
from ..services.quotation_engine import share_url
from .deps import get_pipeline, unwrap_or_raise

router = APIRouter()

@router.post("/analyses/{analysis_id}",
             response_model=QuotationResponse,
             status_code=201,
             summary="Generate Quotation",
             description="""
             Price the analysis walkthrough into a draft quotation.

             **Pricing**:
             - parts = sum(unit price x qty), OEM or aftermarket catalog prices
             - labor = ceil(total minutes / 60) x labor rate
             - markup = parts x markup%
             - tax = (parts + labor) x tax%
             - grand = parts + labor + tax + markup

             Supported currencies: KES, USD, UGX, TZS. Requires a walkthrough.
             """,
             responses={
                 400: {"description": "Unsupported currency or out-of-range rate"},
                 404: {"description": "Analysis or walkthrough not found"}
             })
def generate_quotation(
    analysis_id: str,
    options: Optional[QuotationCreate] = None,
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """Create a draft quotation for an analysis"""
    values = options.model_dump() if options else {}
    return unwrap_or_raise(pipeline.generate_quotation(analysis_id, values))

@router.get("/", response_model=QuotationListResponse)
def list_quotations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: str = Query(None),
    analysis_id: str = Query(None),
    db: Session = Depends(get_db)
):
    """
    List quotations with pagination
    Optional filters by status and analysis
    """
    status_enum = None
    if status:
        try:
            status_enum = QuotationStatus(status)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")

    quotations, pagination = crud.list_quotations(
        db, page=page, limit=limit, status=status_enum, analysis_id=analysis_id
    )
    return QuotationListResponse(quotations=quotations, pagination=pagination)

@router.get("/stats", response_model=QuotationStatistics)
def quotation_statistics(db: Session = Depends(get_db)):
    """Quotation counts per status and grand totals per currency"""
    return crud.quotation_statistics(db)

@router.get("/shared/{share_link_id}", response_model=QuotationResponse)
def get_shared_quotation(
    share_link_id: str,
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """Public lookup of a shared quotation by its share token"""
    return unwrap_or_raise(pipeline.get_shared_quotation(share_link_id))

@router.get("/{quotation_id}", response_model=QuotationResponse)
def get_quotation(
    quotation_id: str,
    db: Session = Depends(get_db)
):
    quotation = crud.get_quotation(db, quotation_id)
    if not quotation:
        raise HTTPException(status_code=404, detail="Quotation not found")
    return quotation

@router.patch("/{quotation_id}",
              response_model=QuotationResponse,
              responses={409: {"description": "Quotation is no longer a draft"}})
def update_quotation(
    quotation_id: str,
    updates: QuotationUpdate,
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """
    Update a draft quotation
    Totals are recomputed from the updated lines and rates
    """
    values = updates.model_dump(exclude_unset=True)
    return unwrap_or_raise(pipeline.update_quotation(quotation_id, values))

@router.post("/{quotation_id}/status",
             response_model=QuotationResponse,
             responses={409: {"description": "Transition not allowed from the current status"}})
def change_status(
    quotation_id: str,
    body: StatusUpdate,
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """
    Move a quotation along draft -> sent -> approved | rejected
    """
    return unwrap_or_raise(pipeline.change_quotation_status(quotation_id, body.status.value))

@router.post("/{quotation_id}/share", response_model=ShareLinkResponse)
def share_quotation(
    quotation_id: str,
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """Create (or return the existing) public share link"""
    quotation = unwrap_or_raise(pipeline.share_quotation(quotation_id))
    return ShareLinkResponse(
        share_link_id=quotation.share_link_id,
        share_url=share_url(quotation.share_link_id)
    )

@router.delete("/{quotation_id}", status_code=204)
def delete_quotation(
    quotation_id: str,
    db: Session = Depends(get_db)
):
    quotation = crud.get_quotation(db, quotation_id)
    if not quotation:
        raise HTTPException(status_code=404, detail="Quotation not found")
    crud.delete_quotation(db, quotation)
    return None
