# errorlytic/models/analysis.py
from sqlalchemy import Column, String, Integer, Float, Boolean, Text, DateTime, Enum as SQLEnum, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum
from ..database import Base

class FaultSeverity(str, enum.Enum):
    """Severity of a single fault code"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class FaultStatus(str, enum.Enum):
    """Fault state as reported by the scan tool"""
    ACTIVE = "active"
    STORED = "stored"
    PENDING = "pending"

class AnalysisSeverity(str, enum.Enum):
    """Report-level severity shown to the customer"""
    CRITICAL = "critical"
    RECOMMENDED = "recommended"
    MONITOR = "monitor"

class Analysis(Base):
    """
    Classified result of one parsed Upload
    One analysis = fault entries + summary + optional AI enrichment
    """
    __tablename__ = "analyses"

    # Primary key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Foreign key to upload (1:1)
    upload_id = Column(String(36), ForeignKey("uploads.id"), nullable=False, unique=True)

    # Summary
    overview = Column(Text, nullable=False)
    severity = Column(SQLEnum(AnalysisSeverity), nullable=False, index=True)
    max_fault_severity = Column(SQLEnum(FaultSeverity), nullable=True)
    primary_code = Column(String(32), nullable=True)
    total_errors = Column(Integer, nullable=False, default=0)
    critical_errors = Column(Integer, nullable=False, default=0)
    estimated_cost = Column(Float, nullable=False, default=0.0)

    causes = Column(JSON, nullable=False, default=list)  # Ordered distinct categories
    recommendations = Column(JSON, nullable=False, default=list)
    category_breakdown = Column(JSON, nullable=True)

    # Parser metadata carried forward
    vehicle_info = Column(JSON, nullable=True)
    diagnostic_info = Column(JSON, nullable=True)

    # AI enrichment
    ai_enabled = Column(Boolean, nullable=False, default=False)
    ai_confidence = Column(Float, nullable=False, default=0.0)
    ai_provider = Column(String(50), nullable=True)
    ai_analysis = Column(JSON, nullable=True)
    # Example structure:
    # {
    #   "ai_assessment": "...",
    #   "error_explanations": [{"code": "P0300", "explanation": "...", "troubleshooting": "...", "status": "ok"}],
    #   "model": "gpt-4o-mini",
    #   "timestamp": "2026-01-01T10:00:00"
    # }

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    upload = relationship("Upload", back_populates="analysis")
    fault_entries = relationship(
        "FaultEntry",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="FaultEntry.position"
    )
    walkthrough = relationship("Walkthrough", back_populates="analysis", uselist=False, cascade="all, delete-orphan")

    @property
    def ai_enrichment(self):
        return {
            "enabled": self.ai_enabled,
            "confidence": self.ai_confidence,
            "provider": self.ai_provider
        }

    def __repr__(self):
        return f"<Analysis {self.id} severity={self.severity} faults={self.total_errors}>"

class FaultEntry(Base):
    """
    One diagnostic trouble code (DTC) of an analysis
    Immutable once classified
    """
    __tablename__ = "fault_entries"

    # Primary key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Foreign key to analysis
    analysis_id = Column(String(36), ForeignKey("analyses.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # Order within the report

    # Fault info
    code = Column(String(32), nullable=False, index=True)
    description = Column(Text, nullable=False)
    severity = Column(SQLEnum(FaultSeverity), nullable=False)
    category = Column(String(100), nullable=False)
    estimated_cost = Column(Float, nullable=False)
    status = Column(SQLEnum(FaultStatus), nullable=False, default=FaultStatus.ACTIVE)
    obd_code = Column(String(16), nullable=True)  # OBD equivalent of a VAG code

    # Relationships
    analysis = relationship("Analysis", back_populates="fault_entries")

    def __repr__(self):
        return f"<FaultEntry {self.code} severity={self.severity}>"
