"""Embedding service for turning segment text into vectors."""

import asyncio

from src.utils.logging import get_logger

from .config import SemanticCoreConfig
from .exceptions import CallExhausted, EmbeddingFailed
from .model_caller import ResilientModelCaller
from .schemas import AISegment, ResponseKind

logger = get_logger(__name__)


def compose_segment_text(title: str, summary: str | None, segment: AISegment) -> str:
    """Build the text embedded for one segment.

    The header with the video's title and summary anchors every segment to
    its source video; the body carries the segment's own topic.
    """
    context_header = f"VIDEO: {title}\nDESCRIPTION: {summary or ''}"
    segment_body = (
        f"TOPIC: {segment.summary}\n"
        f"TAKEAWAY: {segment.key_takeaway or ''}\n"
        f"CONTENT: {segment.content}"
    )
    return f"{context_header}\n---\n{segment_body}"


class EmbeddingGenerator:
    """Service for generating text embeddings.

    Retries are left to the resilient model caller. Segment embeddings are
    independent, so they are issued concurrently up to a configured bound.
    """

    def __init__(self, config: SemanticCoreConfig, caller: ResilientModelCaller):
        """Initialize embedding generator.

        Args:
            config: Configuration with the embedding concurrency bound.
            caller: Model caller bound to the embedding endpoint.
        """
        self.config = config
        self.caller = caller
        logger.info(
            "embedding_generator_initialized",
            models=caller.models,
            concurrency=config.embedding_concurrency,
        )

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Text content to embed. Newlines are collapsed to spaces.

        Returns:
            Embedding vector as a list of floats.

        Raises:
            EmbeddingFailed: If the text is blank or no vector of the configured
                dimension was obtained.
        """
        clean_text = text.replace("\n", " ").strip()
        if not clean_text:
            raise EmbeddingFailed("Cannot embed blank text")

        try:
            result = await self.caller.call(clean_text, ResponseKind.EMBEDDING)
        except CallExhausted as e:
            raise EmbeddingFailed(
                "Embedding call exhausted",
                details={"attempts": len(e.trace.attempts), "text_length": len(clean_text)},
            ) from e

        embedding: list[float] = result.payload
        if not embedding:
            raise EmbeddingFailed("Embedding endpoint returned an empty vector")
        if len(embedding) != self.config.embedding_dimensions:
            raise EmbeddingFailed(
                "Embedding has unexpected dimension",
                details={
                    "expected": self.config.embedding_dimensions,
                    "actual": len(embedding),
                    "model": result.trace.attempts[-1].model if result.trace.attempts else None,
                },
            )

        logger.debug(
            "embedding_generated",
            text_length=len(clean_text),
            embedding_dim=len(embedding),
        )
        return embedding

    async def embed_segments(
        self, title: str, summary: str | None, segments: list[AISegment]
    ) -> list[list[float] | None]:
        """Embed every segment of a video.

        Args:
            title: Video title for the context header.
            summary: Video summary for the context header.
            segments: Segments to embed.

        Returns:
            One entry per segment, in order; None where embedding failed.
        """
        semaphore = asyncio.Semaphore(max(1, self.config.embedding_concurrency))

        async def embed_one(index: int, segment: AISegment) -> list[float] | None:
            async with semaphore:
                try:
                    return await self.embed(compose_segment_text(title, summary, segment))
                except EmbeddingFailed as e:
                    logger.warning(
                        "segment_embedding_failed",
                        segment_index=index,
                        start_time=segment.start_time,
                        error=str(e),
                    )
                    return None

        vectors = await asyncio.gather(
            *[embed_one(i, segment) for i, segment in enumerate(segments)]
        )

        logger.info(
            "segment_embeddings_completed",
            segments=len(segments),
            embedded=sum(1 for v in vectors if v is not None),
        )
        return list(vectors)
