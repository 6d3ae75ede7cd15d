import logging

import pytest

from errorlytic.logging_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_pipeline_log_only_receives_stage_records(tmp_path, restore_root_logger):
    setup_logging(str(tmp_path))

    logging.getLogger("errorlytic.services.report_parser").info("[Parser] parsed 3 faults")
    logging.getLogger("errorlytic.api.uploads").info("[Upload] stored scan.txt")
    logging.getLogger("errorlytic.services.pipeline").error("[Pipeline] boom")
    for handler in logging.getLogger().handlers:
        handler.flush()

    pipeline_log = (tmp_path / "pipeline.log").read_text()
    app_log = (tmp_path / "app.log").read_text()
    error_log = (tmp_path / "error.log").read_text()

    assert "parsed 3 faults" in pipeline_log
    assert "stored scan.txt" not in pipeline_log
    assert "stored scan.txt" in app_log
    assert "boom" in error_log
    assert "parsed 3 faults" not in error_log
