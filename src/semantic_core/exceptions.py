"""Error taxonomy for the semantic ingestion engine."""

from typing import Any


class SemanticCoreError(Exception):
    """Base exception for the semantic ingestion engine."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(SemanticCoreError):
    """Raised when a component is constructed with unusable settings."""


class ResponseParseError(SemanticCoreError):
    """Raised when no parser in the chain can read a model response."""


class CallExhausted(SemanticCoreError):
    """Raised when every attempt against the generation endpoint failed.

    Carries the per-call trace so the caller can report what was tried.
    """

    def __init__(self, message: str, trace: Any, last_error: BaseException | None = None):
        super().__init__(message, details={"attempts": len(trace.attempts)})
        self.trace = trace
        self.last_error = last_error


class SegmentationFailed(SemanticCoreError):
    """Raised when a transcript could not be segmented."""


class ClassificationFailed(SemanticCoreError):
    """Raised when no taxonomy label could be obtained."""


class EmbeddingFailed(SemanticCoreError):
    """Raised when a single text could not be embedded."""


class PersistenceFailed(SemanticCoreError):
    """Raised when the atomic ingestion write was aborted."""


class FilingFailed(SemanticCoreError):
    """Raised when a video could not be shelved into the collection tree."""
