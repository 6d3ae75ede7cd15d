"""Shared builders for pipeline tests."""

import uuid

from errorlytic import crud
from errorlytic.models import ReportFormat
from errorlytic.services.storage import build_locator


def store_upload(db_session, storage, content: bytes, filename: str = "scan.txt",
                 report_format: ReportFormat = ReportFormat.TXT):
    """Store report bytes and create the Upload record, as the upload route does."""
    upload_id = str(uuid.uuid4())
    locator = storage.put(build_locator(upload_id, filename), content)
    return crud.create_upload(
        db_session,
        filename=filename,
        storage_key=locator,
        size=len(content),
        mime="text/plain",
        report_format=report_format,
        upload_id=upload_id,
    )
