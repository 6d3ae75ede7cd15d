"""Pytest configuration and fixtures for Errorlytic tests.

Provides an in-memory database, a temporary report store, a scripted
reasoning client and a pipeline wired with the default stages.
"""

import time
from typing import Any, Dict, List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from errorlytic.database import Base, init_db
from errorlytic.errors import EnrichmentUnavailable
from errorlytic.services.enrichment import EnrichmentAdapter
from errorlytic.services.fault_classifier import fault_classifier
from errorlytic.services.pipeline import DiagnosticPipeline
from errorlytic.services.quotation_engine import quotation_engine
from errorlytic.services.report_parser import report_parser
from errorlytic.services.storage import LocalFileStorage
from errorlytic.services.walkthrough_synthesizer import walkthrough_synthesizer


VCDS_REPORT = """VCDS Version: Release 22.3.0
VIN: WVWZZZ1KZ6W000001   Mileage: 152340km
Chassis Type: 1K0

Address 01: Engine       Labels: 06A-906-032-BGU.clb
3 Faults Found:
17158 - Databus
            U1123 00 [009] - Received Error Message
            Intermittent - Confirmed - Tested Since Memory Clear
P0300 - Random/Multiple Cylinder Misfire Detected
00532 - 007 - Supply Voltage B+
            Too Low
Readiness: 0000 0000

Address 03: ABS Brakes
No fault code found.
End---------------------------------------------------------------------
"""

OBD_REPORT = """Generic OBD-II Scan
P0171 - System Too Lean (Bank 1)
P0420: Catalyst System Efficiency Below Threshold
"""


class FakeReasoningClient:
    """Scripted ReasoningClient: answers instantly unless told to fail or stall."""

    provider = "fake"
    model = "fake-model"
    configured = True

    def __init__(self, fail_assess: bool = False, fail_codes=(), delay: float = 0.0):
        self.fail_assess = fail_assess
        self.fail_codes = set(fail_codes)
        self.delay = delay
        self.explained: List[str] = []

    def assess(self, faults, vehicle_info: Dict[str, Any]) -> str:
        if self.delay:
            time.sleep(self.delay)
        if self.fail_assess:
            raise EnrichmentUnavailable("assessment unavailable")
        return f"Assessment of {len(faults)} faults"

    def explain(self, fault, vehicle_info: Dict[str, Any]) -> str:
        if fault.code in self.fail_codes:
            raise EnrichmentUnavailable(f"no explanation for {fault.code}")
        self.explained.append(fault.code)
        return f"{fault.code} explained"

    def troubleshoot(self, fault, vehicle_info: Dict[str, Any]) -> str:
        return f"Troubleshoot {fault.code}"


@pytest.fixture
def engine():
    """Shared in-memory SQLite engine with all tables created."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(root=str(tmp_path / "uploads"))


@pytest.fixture
def fake_client() -> FakeReasoningClient:
    return FakeReasoningClient()


@pytest.fixture
def disabled_enricher() -> EnrichmentAdapter:
    """Enrichment with no provider configured."""
    return EnrichmentAdapter(None)


@pytest.fixture
def make_pipeline(db_session, storage):
    """Build a DiagnosticPipeline around the test session and store."""

    def _make(enricher=None) -> DiagnosticPipeline:
        return DiagnosticPipeline(
            db=db_session,
            storage=storage,
            parser=report_parser,
            classifier=fault_classifier,
            enricher=enricher or EnrichmentAdapter(None),
            synthesizer=walkthrough_synthesizer,
            pricer=quotation_engine,
        )

    return _make


@pytest.fixture
def pipeline(make_pipeline) -> DiagnosticPipeline:
    return make_pipeline()
