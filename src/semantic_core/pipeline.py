"""Ingestion orchestrator for the semantic core."""

import asyncio
from typing import Protocol

from src.utils.logging import get_logger

from .centroid import aggregate, weighted_vectors
from .classifier import TaxonomyClassifier
from .config import SemanticCoreConfig, get_config
from .embedding_service import EmbeddingGenerator
from .exceptions import PersistenceFailed
from .librarian import HierarchicalLibrarian
from .model_caller import ResilientModelCaller
from .schemas import CoreVideo, IngestResult, Segment, SourceVideo, VideoStatus
from .segmenter import TranscriptSegmenter
from .storage_service import CoreRepository, SupabaseCoreRepository
from .transcript_service import SourceProvider, estimate_duration_seconds, get_source_provider

logger = get_logger(__name__)


class PostIngestionHook(Protocol):
    """Runs after a successful ingestion; returns a short outcome label."""

    name: str

    async def __call__(self, video: CoreVideo) -> str: ...


class TaxonomyFilingHook:
    """Shelves the video into the root > branch collection tree."""

    name = "taxonomy_filing"

    def __init__(self, librarian: HierarchicalLibrarian):
        self.librarian = librarian

    async def __call__(self, video: CoreVideo) -> str:
        if video.taxonomy is None or video.global_embedding is None:
            logger.info("filing_skipped", video_id=video.id, reason="no_video_vector")
            return "skipped"

        await self.librarian.organize_by_taxonomy(video.id, video.taxonomy)
        return "filed"


class CollectionSuggestionHook:
    """Logs the closest existing collection for a freshly ingested video."""

    name = "collection_suggestion"

    def __init__(self, librarian: HierarchicalLibrarian):
        self.librarian = librarian

    async def __call__(self, video: CoreVideo) -> str:
        if video.global_embedding is None:
            return "skipped"

        matches = await self.librarian.find_relevant_collections(video.id)
        if not matches:
            return "no_match"

        best = matches[0]
        logger.info(
            "collection_suggested",
            video_id=video.id,
            collection_id=best.collection_id,
            name=best.name,
            similarity=round(best.similarity, 4),
        )
        return f"suggested:{best.name}"


class IngestionOrchestrator:
    """Drives the per-video pipeline.

    recycle record -> segment -> embed -> aggregate -> classify -> persist
    atomically -> post-ingestion hooks. Owns the idempotency and transaction
    boundary: a re-run always recycles the existing record, and segments,
    vector and taxonomy become visible together or not at all.
    """

    def __init__(
        self,
        config: SemanticCoreConfig | None = None,
        source_provider: SourceProvider | None = None,
        repository: CoreRepository | None = None,
        segmenter: TranscriptSegmenter | None = None,
        embedding_generator: EmbeddingGenerator | None = None,
        classifier: TaxonomyClassifier | None = None,
        hooks: list[PostIngestionHook] | None = None,
    ):
        """Initialize orchestrator, building missing services from configuration.

        Args:
            config: Configuration object. If None, loads from environment.
            source_provider: Transcript provider.
            repository: Persistence layer.
            segmenter: Transcript segmenter.
            embedding_generator: Segment embedding generator.
            classifier: Taxonomy classifier.
            hooks: Post-ingestion hooks; defaults to taxonomy filing and
                collection suggestion.
        """
        self.config = config or get_config()
        self.source_provider = source_provider or get_source_provider(self.config)
        self.repository = repository or SupabaseCoreRepository(self.config)

        if segmenter is None or classifier is None:
            generation_caller = ResilientModelCaller.for_generation(self.config)
            segmenter = segmenter or TranscriptSegmenter(self.config, generation_caller)
            classifier = classifier or TaxonomyClassifier(self.config, generation_caller)
        self.segmenter = segmenter
        self.classifier = classifier
        self.embedding_generator = embedding_generator or EmbeddingGenerator(
            self.config, ResilientModelCaller.for_embeddings(self.config)
        )

        self.librarian = HierarchicalLibrarian(self.config, self.repository)
        if hooks is None:
            hooks = [TaxonomyFilingHook(self.librarian), CollectionSuggestionHook(self.librarian)]
        self.hooks = hooks

        logger.info("orchestrator_initialized", hooks=[hook.name for hook in self.hooks])

    async def ingest(self, source_id: str) -> IngestResult:
        """Run the full pipeline for one source video.

        A missing transcript is a silent skip and leaves storage untouched.
        Any failure after the core record exists marks it FAILED. Hook
        failures are logged and never change the video's status.

        Args:
            source_id: Id understood by the transcript provider.

        Returns:
            IngestResult with status completed, failed or skipped.
        """
        logger.info("ingestion_started", source_id=source_id)

        try:
            source = await self.source_provider.get_source(source_id)
        except Exception as e:
            logger.exception("source_load_failed", source_id=source_id, error_type=type(e).__name__)
            return IngestResult(source_id=source_id, status="failed", error=_describe(e))

        if source is None or not source.transcript.strip():
            logger.info("ingestion_skipped", source_id=source_id, reason="no_transcript")
            return IngestResult(source_id=source_id, status="skipped")

        try:
            video = await self.repository.upsert_video(source)
        except Exception as e:
            logger.exception("video_recycle_failed", source_id=source_id, error_type=type(e).__name__)
            return IngestResult(source_id=source_id, status="failed", error=_describe(e))

        try:
            result, completed = await self._process(video, source)
        except Exception as e:
            logger.exception(
                "ingestion_failed",
                source_id=source_id,
                video_id=video.id,
                error_type=type(e).__name__,
            )
            await self._mark_failed(video.id, _describe(e))
            return IngestResult(
                source_id=source_id, status="failed", video_id=video.id, error=_describe(e)
            )

        result.hooks = await self._run_hooks(completed)
        logger.info(
            "ingestion_completed",
            source_id=source_id,
            video_id=video.id,
            segments=result.segments,
            embedded_segments=result.embedded_segments,
            hooks=result.hooks,
        )
        return result

    async def _process(
        self, video: CoreVideo, source: SourceVideo
    ) -> tuple[IngestResult, CoreVideo]:
        # 1. Segment
        duration = estimate_duration_seconds(
            source.transcript, self.config.speaking_rate_chars_per_second
        )
        ai_segments = await self.segmenter.segment(source.transcript, duration)

        # 2. Embed (segments without a vector are kept, content only)
        vectors = await self.embedding_generator.embed_segments(
            source.title, source.summary, ai_segments
        )

        # 3. Aggregate
        global_embedding = aggregate(
            weighted_vectors(ai_segments, vectors, self.config.min_segment_weight)
        )

        # 4. Classify
        taxonomy = await self.classifier.classify(source.transcript, source.title)

        # 5. Persist atomically
        segments = [
            Segment(
                video_id=video.id,
                start_time=seg.start_time,
                end_time=seg.end_time,
                content=seg.content,
                summary=seg.summary,
                tags=seg.tags,
                embedding=vector,
            )
            for seg, vector in zip(ai_segments, vectors, strict=True)
        ]
        try:
            await self.repository.save_ingestion(video.id, segments, global_embedding, taxonomy)
        except Exception as e:
            raise PersistenceFailed(f"Atomic write aborted for video {video.id}") from e

        completed = video.model_copy(
            update={
                "status": VideoStatus.COMPLETED,
                "taxonomy": taxonomy,
                "global_embedding": global_embedding,
            }
        )
        result = IngestResult(
            source_id=source.source_id,
            status="completed",
            video_id=video.id,
            segments=len(segments),
            embedded_segments=sum(1 for v in vectors if v is not None),
            taxonomy=taxonomy,
        )
        return result, completed

    async def _mark_failed(self, video_id: str, error_message: str) -> None:
        try:
            await self.repository.mark_failed(video_id, error_message)
        except Exception as e:
            logger.exception(
                "mark_failed_failed", video_id=video_id, error_type=type(e).__name__
            )

    async def _run_hooks(self, video: CoreVideo) -> dict[str, str]:
        """Run all hooks concurrently; one failing never affects another."""
        results = await asyncio.gather(
            *(hook(video) for hook in self.hooks), return_exceptions=True
        )

        outcomes: dict[str, str] = {}
        for hook, outcome in zip(self.hooks, results, strict=True):
            if isinstance(outcome, Exception):
                logger.error(
                    "post_ingestion_hook_failed",
                    hook=hook.name,
                    video_id=video.id,
                    error_type=type(outcome).__name__,
                    exc_info=outcome,
                )
                outcomes[hook.name] = "failed"
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                outcomes[hook.name] = outcome
        return outcomes


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"
