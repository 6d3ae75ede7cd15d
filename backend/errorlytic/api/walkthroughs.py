# errorlytic/api/walkthroughs.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ..database import get_db
from .. import crud
from ..schemas.walkthrough import StepInput, StepsUpdate, WalkthroughResponse
from ..services.pipeline import DiagnosticPipeline
from .deps import get_pipeline, unwrap_or_raise

router = APIRouter()

@router.post("/analyses/{analysis_id}",
             response_model=WalkthroughResponse,
             status_code=201,
             summary="Generate Repair Walkthrough",
             description="""
             Synthesize the repair procedure for an analysis from its fault
             categories (check -> replace -> retest per category).

             Regenerating overwrites the existing walkthrough in place, so
             quotations keep pointing at it.
             """)
def generate_walkthrough(
    analysis_id: str,
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """Generate (or regenerate) the walkthrough of an analysis"""
    return unwrap_or_raise(pipeline.generate_walkthrough(analysis_id))

@router.get("/analyses/{analysis_id}", response_model=WalkthroughResponse)
def get_walkthrough_for_analysis(
    analysis_id: str,
    db: Session = Depends(get_db)
):
    """Get the walkthrough generated for an analysis"""
    walkthrough = crud.get_walkthrough_by_analysis(db, analysis_id)
    if not walkthrough:
        raise HTTPException(status_code=404, detail="Walkthrough not found")
    return walkthrough

@router.get("/{walkthrough_id}", response_model=WalkthroughResponse)
def get_walkthrough(
    walkthrough_id: str,
    db: Session = Depends(get_db)
):
    walkthrough = crud.get_walkthrough(db, walkthrough_id)
    if not walkthrough:
        raise HTTPException(status_code=404, detail="Walkthrough not found")
    return walkthrough

@router.put("/{walkthrough_id}/steps", response_model=WalkthroughResponse)
def replace_steps(
    walkthrough_id: str,
    body: StepsUpdate,
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """
    Replace the step list
    Steps are renumbered 1..N; difficulty and total minutes are recomputed
    """
    steps = [step.model_dump(mode="json") for step in body.steps]
    return unwrap_or_raise(pipeline.replace_walkthrough_steps(walkthrough_id, steps))

@router.post("/{walkthrough_id}/steps", response_model=WalkthroughResponse, status_code=201)
def add_step(
    walkthrough_id: str,
    step: StepInput,
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """Append a step at the end of the walkthrough"""
    return unwrap_or_raise(pipeline.add_walkthrough_step(walkthrough_id, step.model_dump(mode="json")))

@router.delete("/{walkthrough_id}", status_code=204)
def delete_walkthrough(
    walkthrough_id: str,
    db: Session = Depends(get_db)
):
    """
    Delete a walkthrough and the quotations priced from it
    """
    walkthrough = crud.get_walkthrough(db, walkthrough_id)
    if not walkthrough:
        raise HTTPException(status_code=404, detail="Walkthrough not found")
    crud.delete_walkthrough(db, walkthrough)
    return None
