# errorlytic/models/walkthrough.py
from sqlalchemy import Column, String, Integer, DateTime, Enum as SQLEnum, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum
from ..database import Base

class StepType(str, enum.Enum):
    """Kind of repair step"""
    CHECK = "check"
    REPLACE = "replace"
    RETEST = "retest"

class Difficulty(str, enum.Enum):
    """Overall repair difficulty"""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class Walkthrough(Base):
    """
    Repair procedure generated from an analysis
    One analysis = at most one walkthrough
    """
    __tablename__ = "walkthroughs"

    # Primary key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Foreign key to analysis (1:1)
    analysis_id = Column(String(36), ForeignKey("analyses.id"), nullable=False, unique=True)

    # Procedure (JSON fields)
    steps = Column(JSON, nullable=False, default=list)
    # Example structure:
    # [{"title": "Check ignition system", "detail": "...", "type": "check", "est_minutes": 30, "order": 1}]
    parts = Column(JSON, nullable=False, default=list)
    # Example structure:
    # [{"name": "Spark Plugs", "oem": "NGK BKR6E", "alt": ["Bosch FR7DPP"], "qty": 4, "estimated_cost": 2500}]
    tools = Column(JSON, nullable=False, default=list)

    difficulty = Column(SQLEnum(Difficulty), nullable=False, default=Difficulty.MEDIUM)
    total_estimated_minutes = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    analysis = relationship("Analysis", back_populates="walkthrough")
    quotations = relationship("Quotation", back_populates="walkthrough", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Walkthrough {self.id} steps={len(self.steps or [])} difficulty={self.difficulty}>"
