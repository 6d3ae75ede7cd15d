# errorlytic/utils/file_handlers.py
from pathlib import Path
from typing import Optional
from fastapi import UploadFile
from ..models.upload import ReportFormat
from ..config import settings

# Fallback MIME types when the client sends none
DEFAULT_MIME_TYPES = {
    ReportFormat.TXT: "text/plain",
    ReportFormat.CSV: "text/csv",
    ReportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ReportFormat.XML: "application/xml",
    ReportFormat.PDF: "application/pdf",
}

def detect_report_format(filename: str) -> Optional[ReportFormat]:
    """
    Detect the report format from the file extension
    Returns None for unsupported extensions
    """
    extension = Path(filename or "").suffix.lower()
    for format_name, extensions in settings.ALLOWED_EXTENSIONS.items():
        if extension in extensions:
            return ReportFormat(format_name)
    return None

def validate_report_type(filename: str, report_format: ReportFormat) -> bool:
    """
    Validate that file extension matches the declared report format
    """
    extension = Path(filename or "").suffix.lower()
    allowed_extensions = settings.ALLOWED_EXTENSIONS.get(report_format.value, [])
    return extension in allowed_extensions

def read_upload_file(upload_file: UploadFile, max_size: Optional[int] = None) -> bytes:
    """
    Read an uploaded report into memory
    Raises ValueError when the content exceeds max_size
    """
    max_size = max_size or settings.MAX_UPLOAD_SIZE
    content = upload_file.file.read(max_size + 1)
    if len(content) > max_size:
        raise ValueError(f"File too large. Max size: {max_size / (1024 * 1024):.1f} MB")
    return content

def mime_for(upload_file: UploadFile, report_format: ReportFormat) -> str:
    if upload_file.content_type and upload_file.content_type != "application/octet-stream":
        return upload_file.content_type
    return DEFAULT_MIME_TYPES[report_format]
