"""Pydantic schemas for the semantic ingestion engine."""

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .timestamps import parse_timestamp


def _parse_vector(value: Any) -> Any:
    """Accept pgvector values returned by PostgREST as "[0.1,0.2]" strings."""
    if isinstance(value, str):
        return json.loads(value)
    return value


class VideoStatus(str, Enum):
    """Lifecycle of a core video record."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class CollectionOrigin(str, Enum):
    """Who created a collection. Only SYSTEM nodes take part in taxonomy."""

    SYSTEM = "SYSTEM"
    USER = "USER"


class SourceVideo(BaseModel):
    """Video as handed over by the transcript provider.

    The transcript is plain text with inline timestamp markers such as
    ``[01:05] text``.
    """

    source_id: str
    external_id: str
    title: str
    summary: str | None = None
    transcript: str


class Taxonomy(BaseModel):
    """Three-level topic label of increasing specificity."""

    root: str = Field(min_length=1)
    branch: str = Field(min_length=1)
    leaf: str = ""

    @field_validator("root", "branch", "leaf", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class CoreVideo(BaseModel):
    """Processing unit: one record per unique external video id."""

    id: str
    external_id: str
    source_id: str | None = None
    title: str
    summary: str | None = None
    transcript: str | None = None
    status: VideoStatus = VideoStatus.PENDING
    last_processed_at: datetime | None = None
    error_message: str | None = None
    taxonomy: Taxonomy | None = None
    global_embedding: list[float] | None = None

    @field_validator("global_embedding", mode="before")
    @classmethod
    def _parse_embedding(cls, value: Any) -> Any:
        return _parse_vector(value)


class AISegment(BaseModel):
    """Segment as produced by the segmentation model.

    The model answers with camelCase keys; snake_case is accepted too. Bounds
    may be seconds or clock strings such as "01:05".
    """

    model_config = ConfigDict(populate_by_name=True)

    start_time: float = Field(alias="startTime")
    end_time: float = Field(alias="endTime")
    content: str = ""
    summary: str = ""
    key_takeaway: str = Field(default="", alias="keyTakeaway")
    tags: list[str] = Field(default_factory=list)

    @field_validator("key_takeaway", "summary", "content", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_clock(cls, value: Any) -> Any:
        # Models sometimes answer "01:05" instead of 65
        if isinstance(value, str) and ":" in value:
            return parse_timestamp(value)
        return value


class Segment(BaseModel):
    """Persisted transcript segment owned by exactly one core video."""

    video_id: str
    start_time: float
    end_time: float
    content: str
    summary: str
    tags: list[str] = Field(default_factory=list)
    embedding: list[float] | None = None

    @field_validator("embedding", mode="before")
    @classmethod
    def _parse_embedding(cls, value: Any) -> Any:
        return _parse_vector(value)


class Collection(BaseModel):
    """Node of the taxonomy tree (root has no parent, branch has a root)."""

    id: str
    name: str
    description: str | None = None
    origin: CollectionOrigin = CollectionOrigin.SYSTEM
    parent_id: str | None = None
    centroid: list[float] | None = None
    video_ids: list[str] = Field(default_factory=list)

    @field_validator("centroid", mode="before")
    @classmethod
    def _parse_centroid(cls, value: Any) -> Any:
        return _parse_vector(value)


class WeightedVector(BaseModel):
    """Vector paired with its aggregation weight. Never persisted."""

    vector: list[float]
    weight: float


class ResponseKind(str, Enum):
    """What the resilient model caller should ask the endpoint for."""

    TEXT = "text"
    JSON = "json"
    EMBEDDING = "embedding"


class FailureKind(str, Enum):
    """Classification of a failed attempt, used for backoff and logging."""

    RATE_LIMIT = "rate_limit"
    MODEL_NOT_FOUND = "model_not_found"
    INVALID_CREDENTIAL = "invalid_credential"
    MALFORMED_RESPONSE = "malformed_response"
    OTHER = "other"


class CallAttempt(BaseModel):
    """One attempt made by the resilient model caller."""

    attempt: int
    credential: str  # masked, e.g. "...a1b2"
    model: str
    succeeded: bool
    failure: FailureKind | None = None
    error: str | None = None
    backoff_seconds: float = 0.0


class CallTrace(BaseModel):
    """Structured trace of a single model call."""

    response_kind: ResponseKind
    attempts: list[CallAttempt] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)


class CallResult(BaseModel):
    """Payload of a successful model call together with its trace."""

    payload: Any
    trace: CallTrace


class CollectionMatch(BaseModel):
    """Collection suggested for a video by centroid similarity."""

    collection_id: str
    name: str
    similarity: float


class FilingResult(BaseModel):
    """Where a video was shelved in the collection tree."""

    root_id: str
    branch_id: str
    centroid_updated: bool


class IngestResult(BaseModel):
    """Outcome of one ingestion run.

    Status is one of: completed, failed, skipped.
    """

    source_id: str
    status: str
    video_id: str | None = None
    segments: int = 0
    embedded_segments: int = 0
    taxonomy: Taxonomy | None = None
    error: str | None = None
    hooks: dict[str, str] = Field(default_factory=dict)


class BackfillResult(BaseModel):
    """Result of a bulk backfill run.

    Summary statistics and error information used for reporting.
    """

    total: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
