# errorlytic/crud.py
"""Database CRUD operations (no business logic here)."""

import math
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from .models import (
    Analysis,
    AnalysisSeverity,
    FaultEntry,
    Quotation,
    QuotationStatus,
    Upload,
    UploadStatus,
    Walkthrough,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def paginate(query: Query, page: int = 1, limit: int = 10) -> Tuple[List[Any], Dict[str, int]]:
    """
    Apply page/limit to a query.

    Returns the page items and {page, limit, total, pages}.
    """
    page = max(page, 1)
    limit = max(limit, 1)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if total else 0,
    }


def _finish(db: Session, instance, commit: bool):
    if commit:
        db.commit()
        db.refresh(instance)
    else:
        db.flush()
    return instance


# ── Upload operations ─────────────────────────────────────────────────────────

def create_upload(
    db: Session,
    filename: str,
    storage_key: str,
    size: int,
    mime: str,
    report_format,
    upload_id: Optional[str] = None,
    commit: bool = True,
) -> Upload:
    """Create a new upload in UPLOADED state."""
    upload = Upload(
        id=upload_id or str(uuid.uuid4()),
        filename=filename,
        storage_key=storage_key,
        size=size,
        mime=mime,
        report_format=report_format,
        status=UploadStatus.UPLOADED,
    )
    db.add(upload)
    return _finish(db, upload, commit)


def get_upload(db: Session, upload_id: str) -> Optional[Upload]:
    return db.query(Upload).filter(Upload.id == upload_id).first()


def list_uploads(db: Session, page: int = 1, limit: int = 10, status: Optional[UploadStatus] = None):
    query = db.query(Upload)
    if status is not None:
        query = query.filter(Upload.status == status)
    return paginate(query.order_by(Upload.uploaded_at.desc()), page, limit)


def transition_upload(
    db: Session,
    upload_id: str,
    status: UploadStatus,
    parse_result: Optional[Dict[str, Any]] = None,
    source=None,
    error_message: Optional[str] = None,
) -> bool:
    """
    Move an upload out of UPLOADED state.

    Conditional update (WHERE status = 'uploaded'); returns False when another
    request already moved it. Not committed.
    """
    values = {
        Upload.status: status,
        Upload.processed_at: datetime.utcnow(),
        Upload.parse_result: parse_result,
        Upload.error_message: error_message,
    }
    if source is not None:
        values[Upload.source] = source
    updated = (
        db.query(Upload)
        .filter(Upload.id == upload_id, Upload.status == UploadStatus.UPLOADED)
        .update(values, synchronize_session=False)
    )
    return updated == 1


def delete_upload(db: Session, upload: Upload) -> None:
    db.delete(upload)
    db.commit()


# ── Analysis operations ───────────────────────────────────────────────────────

def create_analysis(db: Session, upload_id: str, fields: Dict[str, Any],
                    fault_entries: List[Dict[str, Any]], commit: bool = True) -> Analysis:
    analysis = Analysis(id=str(uuid.uuid4()), upload_id=upload_id, **fields)
    for entry in fault_entries:
        analysis.fault_entries.append(FaultEntry(id=str(uuid.uuid4()), **entry))
    db.add(analysis)
    return _finish(db, analysis, commit)


def get_analysis(db: Session, analysis_id: str) -> Optional[Analysis]:
    return db.query(Analysis).filter(Analysis.id == analysis_id).first()


def list_analyses(db: Session, page: int = 1, limit: int = 10, severity: Optional[AnalysisSeverity] = None):
    query = db.query(Analysis)
    if severity is not None:
        query = query.filter(Analysis.severity == severity)
    return paginate(query.order_by(Analysis.created_at.desc()), page, limit)


def delete_analysis(db: Session, analysis: Analysis) -> None:
    db.delete(analysis)
    db.commit()


def analysis_statistics(db: Session, recent: int = 5, top_causes: int = 10) -> Dict[str, Any]:
    """Counts per report severity, the newest analyses and the most frequent causes."""
    counts = dict(
        db.query(Analysis.severity, func.count(Analysis.id)).group_by(Analysis.severity).all()
    )
    by_severity = {severity.value: counts.get(severity, 0) for severity in AnalysisSeverity}
    recent_analyses = db.query(Analysis).order_by(Analysis.created_at.desc()).limit(recent).all()
    # causes is a JSON list column, so it is counted here rather than in SQL
    cause_counts = Counter(
        cause
        for (causes,) in db.query(Analysis.causes).order_by(Analysis.created_at).all()
        for cause in causes or []
    )
    return {
        "total": sum(by_severity.values()),
        "by_severity": by_severity,
        "recent": recent_analyses,
        "top_causes": [{"cause": cause, "count": count} for cause, count in cause_counts.most_common(top_causes)],
    }


# ── Walkthrough operations ────────────────────────────────────────────────────

def get_walkthrough(db: Session, walkthrough_id: str) -> Optional[Walkthrough]:
    return db.query(Walkthrough).filter(Walkthrough.id == walkthrough_id).first()


def get_walkthrough_by_analysis(db: Session, analysis_id: str) -> Optional[Walkthrough]:
    return db.query(Walkthrough).filter(Walkthrough.analysis_id == analysis_id).first()


def save_walkthrough(db: Session, analysis_id: str, fields: Dict[str, Any], commit: bool = True) -> Walkthrough:
    """Create the analysis walkthrough, or overwrite the existing one in place."""
    walkthrough = get_walkthrough_by_analysis(db, analysis_id)
    if walkthrough is None:
        walkthrough = Walkthrough(id=str(uuid.uuid4()), analysis_id=analysis_id)
        db.add(walkthrough)
    for key, value in fields.items():
        setattr(walkthrough, key, value)
    walkthrough.updated_at = datetime.utcnow()
    return _finish(db, walkthrough, commit)


def delete_walkthrough(db: Session, walkthrough: Walkthrough) -> None:
    db.delete(walkthrough)
    db.commit()


# ── Quotation operations ──────────────────────────────────────────────────────

def create_quotation(db: Session, fields: Dict[str, Any], commit: bool = True) -> Quotation:
    quotation = Quotation(id=str(uuid.uuid4()), status=QuotationStatus.DRAFT, **fields)
    db.add(quotation)
    return _finish(db, quotation, commit)


def get_quotation(db: Session, quotation_id: str) -> Optional[Quotation]:
    return db.query(Quotation).filter(Quotation.id == quotation_id).first()


def get_quotation_by_share_link(db: Session, share_link_id: str) -> Optional[Quotation]:
    return db.query(Quotation).filter(Quotation.share_link_id == share_link_id).first()


def list_quotations(
    db: Session,
    page: int = 1,
    limit: int = 10,
    status: Optional[QuotationStatus] = None,
    analysis_id: Optional[str] = None,
):
    query = db.query(Quotation)
    if status is not None:
        query = query.filter(Quotation.status == status)
    if analysis_id is not None:
        query = query.filter(Quotation.analysis_id == analysis_id)
    return paginate(query.order_by(Quotation.created_at.desc()), page, limit)


def update_quotation(db: Session, quotation: Quotation, fields: Dict[str, Any], commit: bool = True) -> Quotation:
    for key, value in fields.items():
        setattr(quotation, key, value)
    quotation.updated_at = datetime.utcnow()
    return _finish(db, quotation, commit)


def delete_quotation(db: Session, quotation: Quotation) -> None:
    db.delete(quotation)
    db.commit()


def quotation_statistics(db: Session) -> Dict[str, Any]:
    """Counts per status and grand totals per currency."""
    counts = dict(
        db.query(Quotation.status, func.count(Quotation.id)).group_by(Quotation.status).all()
    )
    totals = db.query(Quotation.currency, func.sum(Quotation.totals_grand)).group_by(Quotation.currency).all()
    by_status = {status.value: counts.get(status, 0) for status in QuotationStatus}
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "total_value": {currency: round(float(total or 0), 2) for currency, total in totals},
    }
