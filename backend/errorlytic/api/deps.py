# errorlytic/api/deps.py
"""
Shared FastAPI dependencies

Wires the default stage instances into a DiagnosticPipeline per request and
maps typed pipeline failures to HTTP errors.
"""
from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session
from ..database import get_db
from ..errors import ErrorKind, InvalidStateError, Outcome
from ..services.enrichment import EnrichmentAdapter
from ..services.fault_classifier import fault_classifier
from ..services.openai_client import OpenAIReasoningClient
from ..services.pipeline import DiagnosticPipeline
from ..services.quotation_engine import quotation_engine
from ..services.report_parser import report_parser
from ..services.storage import LocalFileStorage, ObjectStorage
from ..services.walkthrough_synthesizer import walkthrough_synthesizer

# HTTP status per failure kind
STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PARSE_ERROR: 422,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.ENRICHMENT_UNAVAILABLE: 503,
}

# Singleton instances (the OpenAI SDK client is created on first use)
reasoning_client = OpenAIReasoningClient()
enrichment_adapter = EnrichmentAdapter(reasoning_client)

def get_storage() -> ObjectStorage:
    return LocalFileStorage()

def get_enricher() -> EnrichmentAdapter:
    return enrichment_adapter

def get_pipeline(
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    enricher: EnrichmentAdapter = Depends(get_enricher),
) -> DiagnosticPipeline:
    return DiagnosticPipeline(
        db=db,
        storage=storage,
        parser=report_parser,
        classifier=fault_classifier,
        enricher=enricher,
        synthesizer=walkthrough_synthesizer,
        pricer=quotation_engine,
    )

def unwrap_or_raise(outcome: Outcome):
    """
    Return the outcome value or raise the matching HTTPException
    InvalidStateError -> 409, otherwise by error kind
    """
    if outcome.ok:
        return outcome.value
    error = outcome.error
    if isinstance(error, InvalidStateError):
        raise HTTPException(status_code=409, detail=error.message)
    raise HTTPException(status_code=STATUS_BY_KIND.get(error.kind, 400), detail=error.message)
