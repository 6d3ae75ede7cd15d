# errorlytic/models/upload.py
from sqlalchemy import Column, String, Integer, Text, DateTime, Enum as SQLEnum, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum
from ..database import Base

class ReportFormat(str, enum.Enum):
    """Declared format of an uploaded diagnostic report"""
    TXT = "txt"
    CSV = "csv"
    XLSX = "xlsx"
    XML = "xml"
    PDF = "pdf"

class ReportSource(str, enum.Enum):
    """Scan tool that produced the report"""
    VCDS = "VCDS"
    OBD = "OBD"
    OTHER = "Other"

class UploadStatus(str, enum.Enum):
    """Upload processing status (changes exactly once)"""
    UPLOADED = "uploaded"
    PARSED = "parsed"
    FAILED = "failed"

class Upload(Base):
    """
    Represents an uploaded diagnostic report
    Stores the storage locator and the cached parse result
    """
    __tablename__ = "uploads"

    # Primary key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Storage metadata
    filename = Column(String(255), nullable=False)
    storage_key = Column(String(500), nullable=False)  # Locator in object storage
    size = Column(Integer, nullable=False)  # Bytes
    mime = Column(String(100), nullable=False)
    report_format = Column(SQLEnum(ReportFormat), nullable=False)
    source = Column(SQLEnum(ReportSource), nullable=False, default=ReportSource.OTHER)

    # Processing
    status = Column(SQLEnum(UploadStatus), nullable=False, default=UploadStatus.UPLOADED, index=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    # Cached parser output (JSON field)
    parse_result = Column(JSON, nullable=True)
    # Example structure:
    # {
    #   "fault_entries": [{"code": "17158", "description": "Databus", "status": "active"}],
    #   "vehicle_info": {"vin": "WVWZZZ1KZ6W000001", "mileage": 152340},
    #   "raw_content": "...",
    #   "parse_errors": []
    # }

    # Relationships
    analysis = relationship("Analysis", back_populates="upload", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Upload {self.filename} status={self.status}>"
