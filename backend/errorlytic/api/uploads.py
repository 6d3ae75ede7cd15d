# errorlytic/api/uploads.py
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging
import uuid
from ..database import get_db
from ..config import settings
from .. import crud
from ..models.upload import ReportFormat, UploadStatus
from ..schemas.upload import UploadResponse, UploadDetailResponse, UploadListResponse
from ..schemas.analysis import AnalysisResponse
from ..services.pipeline import DiagnosticPipeline
from ..services.storage import ObjectStorage, build_locator
from ..utils.file_handlers import detect_report_format, validate_report_type, read_upload_file, mime_for
from .deps import get_pipeline, get_storage, unwrap_or_raise

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/",
             response_model=UploadResponse,
             status_code=201,
             summary="Upload Diagnostic Report",
             description="""
             Upload a vehicle diagnostic report (VCDS or generic OBD-II scan).

             **Formats Supported**: txt, csv, xlsx, xml, pdf

             The format is detected from the file extension unless `report_format`
             is given, in which case the extension must match it.

             **File Size Limit**: 10 MB per file

             The report is stored as-is; call `POST /api/uploads/{id}/analyze`
             to parse and classify it.
             """,
             responses={
                 400: {"description": "Unsupported or mismatched report format"},
                 413: {"description": "File size exceeds limit"}
             })
def upload_report(
    file: UploadFile = File(..., description="Diagnostic report file"),
    report_format: Optional[str] = Form(None, description="txt, csv, xlsx, xml or pdf"),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage)
):
    """Store a diagnostic report and create its Upload record"""
    if report_format:
        try:
            format_enum = ReportFormat(report_format.lower())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid report_format: {report_format}")
        if not validate_report_type(file.filename, format_enum):
            allowed = settings.ALLOWED_EXTENSIONS[format_enum.value]
            raise HTTPException(
                status_code=400,
                detail=f"Invalid file type for {format_enum.value}. Allowed: {allowed}"
            )
    else:
        format_enum = detect_report_format(file.filename)
        if format_enum is None:
            raise HTTPException(
                status_code=400,
                detail=f"Unsupported report type: {file.filename}. "
                       f"Supported formats: {[f.value for f in ReportFormat]}"
            )

    try:
        content = read_upload_file(file)
    except ValueError as e:
        raise HTTPException(status_code=413, detail=str(e))
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    upload_id = str(uuid.uuid4())
    locator = storage.put(build_locator(upload_id, file.filename), content)
    try:
        upload = crud.create_upload(
            db,
            filename=file.filename,
            storage_key=locator,
            size=len(content),
            mime=mime_for(file, format_enum),
            report_format=format_enum,
            upload_id=upload_id,
        )
    except Exception:
        db.rollback()
        storage.delete(locator)
        raise

    logger.info(f"[Upload] Stored {file.filename} ({len(content)} bytes) as upload {upload.id}")
    return upload

@router.get("/", response_model=UploadListResponse)
def list_uploads(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: str = Query(None),
    db: Session = Depends(get_db)
):
    """
    List uploads with pagination
    Optional filter by status
    """
    status_enum = None
    if status:
        try:
            status_enum = UploadStatus(status)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")

    uploads, pagination = crud.list_uploads(db, page=page, limit=limit, status=status_enum)
    return UploadListResponse(uploads=uploads, pagination=pagination)

@router.get("/{upload_id}", response_model=UploadDetailResponse)
def get_upload(
    upload_id: str,
    db: Session = Depends(get_db)
):
    """
    Get a specific upload by ID
    Includes the cached parser output once processed
    """
    upload = crud.get_upload(db, upload_id)
    if not upload:
        raise HTTPException(status_code=404, detail=f"Upload {upload_id} not found")
    return upload

@router.post("/{upload_id}/analyze",
             response_model=AnalysisResponse,
             status_code=201,
             summary="Parse and Analyze Report",
             description="""
             Parse the stored report, classify every fault code and persist the
             Analysis (with AI enrichment when a provider is configured).

             An upload is processed exactly once:
             - **404** if the upload is missing or already processed
             - **422** if the report could not be parsed (the upload is marked failed)
             """)
def analyze_upload(
    upload_id: str,
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """Run the parse -> classify -> enrich pipeline for an upload"""
    return unwrap_or_raise(pipeline.parse_and_analyze(upload_id))

@router.delete("/{upload_id}", status_code=204)
def delete_upload(
    upload_id: str,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage)
):
    """
    Delete an upload, its analysis chain and the stored report
    """
    upload = crud.get_upload(db, upload_id)
    if not upload:
        raise HTTPException(status_code=404, detail=f"Upload {upload_id} not found")

    storage_key = upload.storage_key

    # Delete from database (cascades to analysis, walkthrough and quotations)
    crud.delete_upload(db, upload)

    # Stored object removal failures are logged, not raised
    storage.delete(storage_key)

    return None
