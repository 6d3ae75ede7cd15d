"""
Error kinds and the Outcome result type used by the diagnostic pipeline.

Expected failures (a missing upload, an unparseable report, an unsupported
currency) are returned as an ``Outcome`` carrying a typed error instead of
being raised through the service layer. ``Outcome.unwrap()`` raises the error
for callers that prefer exceptions.
"""

import enum
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    """Failure categories surfaced by the pipeline"""
    NOT_FOUND = "not_found"
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    ENRICHMENT_UNAVAILABLE = "enrichment_unavailable"


class PipelineError(Exception):
    """Base class for typed pipeline failures."""

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(PipelineError):
    """Referenced record does not exist or is in the wrong state."""
    kind = ErrorKind.NOT_FOUND


class ParseError(PipelineError):
    """Source report could not be structurally interpreted."""
    kind = ErrorKind.PARSE_ERROR


class ValidationError(PipelineError):
    """Caller-supplied value outside the allowed range."""
    kind = ErrorKind.VALIDATION_ERROR


class InvalidStateError(ValidationError):
    """Requested transition is not allowed from the record's current status."""


class EnrichmentUnavailable(PipelineError):
    """AI provider call failed. Absorbed by the enrichment stage."""
    kind = ErrorKind.ENRICHMENT_UNAVAILABLE


@dataclass
class Outcome(Generic[T]):
    """Either a value or a typed pipeline error."""
    value: Optional[T] = None
    error: Optional[PipelineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: PipelineError) -> "Outcome[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value
