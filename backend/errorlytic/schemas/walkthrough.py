# errorlytic/schemas/walkthrough.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from ..models.walkthrough import StepType, Difficulty

# Request schemas
class StepInput(BaseModel):
    """A repair step supplied by a technician"""
    title: str = Field(..., min_length=1)
    detail: str = ""
    type: StepType
    est_minutes: int = Field(..., ge=0)
    order: Optional[int] = Field(None, ge=1)  # Position hint; orders are reassigned 1..N
    category: Optional[str] = None

class StepsUpdate(BaseModel):
    """Replace the whole step list"""
    steps: List[StepInput]

# Response schemas
class StepResponse(BaseModel):
    title: str
    detail: str
    type: StepType
    est_minutes: int
    order: int
    category: Optional[str] = None

class PartResponse(BaseModel):
    name: str
    oem: str
    alt: List[str] = []
    qty: int
    estimated_cost: float

class WalkthroughResponse(BaseModel):
    """Schema for a generated walkthrough"""
    id: str
    analysis_id: str
    steps: List[StepResponse]
    parts: List[PartResponse]
    tools: List[str]
    difficulty: Difficulty
    total_estimated_minutes: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
