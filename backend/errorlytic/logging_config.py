"""
Logging configuration for the Errorlytic diagnostic service

Rotating log files under settings.LOG_DIR:
- app.log: everything at LOG_LEVEL and above
- error.log: ERROR and above
- pipeline.log: parser, classifier, enrichment, walkthrough and quotation
  stages only, so a single report can be followed end to end
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import settings

DETAILED_FORMAT = '[%(asctime)s] %(levelname)-8s [%(name)s:%(lineno)d] - %(message)s'
CONSOLE_FORMAT = '[%(asctime)s] %(levelname)-8s - %(message)s'

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = (
    'sqlalchemy.engine',
    'sqlalchemy.pool',
    'sqlalchemy.orm',
    'httpx',
    'openai',
    'pdfminer',          # logs every unparseable PDF object
    'uvicorn.access',
)


class _PipelineFilter(logging.Filter):
    """Pass records emitted by the pipeline stage modules."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.startswith('errorlytic.services')


def _rotating_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def setup_logging(log_dir: str = None):
    """
    Configure application-wide logging. Called once from the startup hook.

    Console output shows WARNING and above; files receive LOG_LEVEL and above.
    Returns the logger of this module.
    """
    log_path = Path(log_dir or settings.LOG_DIR)
    log_path.mkdir(parents=True, exist_ok=True)
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    root_logger.addHandler(_rotating_handler(log_path / "app.log", level))
    root_logger.addHandler(_rotating_handler(log_path / "error.log", logging.ERROR))

    pipeline_handler = _rotating_handler(log_path / "pipeline.log", level)
    pipeline_handler.addFilter(_PipelineFilter())
    root_logger.addHandler(pipeline_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    root_logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info(f"Errorlytic logging initialized at {logging.getLevelName(level)} in {log_path}")
    logger.info("=" * 60)

    return logger
