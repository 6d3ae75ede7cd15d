# errorlytic/api/analyses.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from ..database import get_db
from .. import crud
from ..models.analysis import AnalysisSeverity
from ..schemas.analysis import AnalysisResponse, AnalysisListResponse, AnalysisStatistics
from ..services.pipeline import analysis_report

router = APIRouter()

@router.get("/", response_model=AnalysisListResponse)
def list_analyses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    severity: str = Query(None),
    db: Session = Depends(get_db)
):
    """
    List analyses with pagination, newest first
    Optional filter by report severity (critical, recommended, monitor)
    """
    severity_enum = None
    if severity:
        try:
            severity_enum = AnalysisSeverity(severity)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid severity: {severity}")

    analyses, pagination = crud.list_analyses(db, page=page, limit=limit, severity=severity_enum)
    return AnalysisListResponse(analyses=analyses, pagination=pagination)

@router.get("/stats", response_model=AnalysisStatistics)
def analysis_statistics(db: Session = Depends(get_db)):
    """
    Dashboard statistics
    Counts per report severity, the five newest analyses and the ten most frequent causes
    """
    return crud.analysis_statistics(db)

@router.get("/{analysis_id}", response_model=AnalysisResponse)
def get_analysis(
    analysis_id: str,
    db: Session = Depends(get_db)
):
    """Get the full analysis document with its fault codes"""
    analysis = crud.get_analysis(db, analysis_id)
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return analysis_report(analysis)

@router.delete("/{analysis_id}", status_code=204)
def delete_analysis(
    analysis_id: str,
    db: Session = Depends(get_db)
):
    """
    Delete an analysis (cascades to fault codes, walkthrough and quotations)
    """
    analysis = crud.get_analysis(db, analysis_id)
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    crud.delete_analysis(db, analysis)
    return None
