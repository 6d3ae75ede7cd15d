# errorlytic/models/quotation.py
from sqlalchemy import Column, String, Float, Text, DateTime, Enum as SQLEnum, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum
from ..database import Base

class QuotationStatus(str, enum.Enum):
    """Quotation lifecycle status (one-directional)"""
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"

class Quotation(Base):
    """
    Priced repair offer for a walkthrough
    Totals are persisted with the currency and percentages used to compute them
    """
    __tablename__ = "quotations"

    # Primary key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Foreign keys
    analysis_id = Column(String(36), ForeignKey("analyses.id"), nullable=False, index=True)
    walkthrough_id = Column(String(36), ForeignKey("walkthroughs.id"), nullable=False, index=True)

    # Pricing inputs
    currency = Column(String(3), nullable=False)
    labor_hours = Column(Float, nullable=False)
    labor_rate = Column(Float, nullable=False)
    labor_subtotal = Column(Float, nullable=False)
    tax_pct = Column(Float, nullable=False)
    markup_pct = Column(Float, nullable=False)

    # Priced lines (JSON field)
    parts = Column(JSON, nullable=False, default=list)
    # Example structure:
    # [{"name": "Spark Plugs", "unit_price": 1500.0, "qty": 4, "subtotal": 6000.0,
    #   "part_number": "Bosch FR7DPP", "is_oem": false}]

    # Totals
    totals_parts = Column(Float, nullable=False, default=0.0)
    totals_labor = Column(Float, nullable=False, default=0.0)
    totals_markup = Column(Float, nullable=False, default=0.0)
    totals_tax = Column(Float, nullable=False, default=0.0)
    totals_grand = Column(Float, nullable=False, default=0.0)

    # Lifecycle
    status = Column(SQLEnum(QuotationStatus), nullable=False, default=QuotationStatus.DRAFT, index=True)
    share_link_id = Column(String(32), nullable=True, unique=True, index=True)
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    analysis = relationship("Analysis")
    walkthrough = relationship("Walkthrough", back_populates="quotations")

    @property
    def labor(self):
        return {
            "hours": self.labor_hours,
            "rate_per_hour": self.labor_rate,
            "subtotal": self.labor_subtotal
        }

    @property
    def totals(self):
        return {
            "parts": self.totals_parts,
            "labor": self.totals_labor,
            "markup": self.totals_markup,
            "tax": self.totals_tax,
            "grand": self.totals_grand
        }

    def __repr__(self):
        return f"<Quotation {self.id} status={self.status} grand={self.totals_grand} {self.currency}>"
