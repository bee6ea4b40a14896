"""Transcript providers and duration estimate.

A transcript provider hands the orchestrator a ``SourceVideo`` whose
transcript is plain text with inline ``[MM:SS]`` markers. A missing
transcript is a valid skip condition, reported as ``None``.
"""

from typing import Protocol

from supabase import Client
from supadata import Supadata

from src.utils.clients import get_supabase_client
from src.utils.logging import get_logger

from .config import SemanticCoreConfig
from .schemas import SourceVideo
from .timestamps import format_timestamp

logger = get_logger(__name__)


def estimate_duration_seconds(transcript: str, chars_per_second: float = 15.0) -> float:
    """Estimate a video's duration from its transcript length."""
    return len(transcript) / chars_per_second


class SourceProvider(Protocol):
    """Where transcripts come from."""

    async def get_source(self, source_id: str) -> SourceVideo | None: ...

    async def list_source_ids(self) -> list[str]: ...


class SupabaseSourceProvider:
    """Reads videos and their transcripts from the legacy Supabase tables."""

    def __init__(self, config: SemanticCoreConfig, client: Client | None = None):
        self.config = config
        self.client = client or get_supabase_client(config.supabase_url, config.supabase_key)
        logger.info("supabase_source_provider_initialized", supabase_url=config.supabase_url)

    async def get_source(self, source_id: str) -> SourceVideo | None:
        """Load one legacy video with its transcript.

        Returns:
            The source video, or None if the video or its transcript is missing.
        """
        response = (
            self.client.table("videos")
            .select("id, youtube_id, title, summary, seo_summary, transcript:transcripts(content)")
            .eq("id", source_id)
            .execute()
        )
        if not response.data:
            logger.info("source_video_not_found", source_id=source_id)
            return None

        row = response.data[0]
        transcript = row.get("transcript") or {}
        # One-to-one embeds come back as an object, one-to-many as a list
        if isinstance(transcript, list):
            transcript = transcript[0] if transcript else {}
        content = (transcript.get("content") or "").strip()
        if not content:
            logger.info("transcript_missing", source_id=source_id)
            return None

        return SourceVideo(
            source_id=str(row["id"]),
            external_id=row["youtube_id"],
            title=row.get("title") or "",
            summary=row.get("summary") or row.get("seo_summary"),
            transcript=content,
        )

    async def list_source_ids(self) -> list[str]:
        response = self.client.table("videos").select("id").order("created_at").execute()
        return [str(row["id"]) for row in response.data or []]


class SupadataSourceProvider:
    """Fetches live YouTube transcripts via the Supadata API.

    The source id is the YouTube video id.
    """

    def __init__(self, config: SemanticCoreConfig, client: Supadata | None = None):
        self.config = config
        self.client = client or Supadata(api_key=config.supadata_api_key)
        logger.info(
            "supadata_source_provider_initialized",
            api_key_present=bool(config.supadata_api_key),
        )

    async def get_source(self, source_id: str) -> SourceVideo | None:
        """Fetch transcript and metadata for a YouTube video.

        Returns:
            The source video, or None if no transcript is available.

        Raises:
            Exception: If the API request fails for another reason.
        """
        logger.info("fetching_transcript", video_id=source_id)

        try:
            response = self.client.youtube.transcript(video_id=source_id, text=False)
        except Exception as e:
            # Missing transcripts are reported as errors by the API
            error_str = str(e).lower()
            if "transcript-unavailable" in error_str or "206" in error_str:
                logger.warning("transcript_unavailable", video_id=source_id)
                return None
            logger.exception(
                "transcript_fetch_error",
                video_id=source_id,
                error_type=type(e).__name__,
            )
            raise

        lines = [
            f"{format_timestamp(int(seg.offset) // 1000)} {seg.text.strip()}"
            for seg in response.content
            if seg.text and seg.text.strip()
        ]
        if not lines:
            logger.warning("transcript_empty", video_id=source_id)
            return None

        metadata = self.client.youtube.video(id=source_id)
        logger.info("transcript_fetched", video_id=source_id, lines=len(lines))

        return SourceVideo(
            source_id=source_id,
            external_id=source_id,
            title=getattr(metadata, "title", "") or "",
            summary=getattr(metadata, "description", None),
            transcript="\n".join(lines),
        )

    async def list_source_ids(self) -> list[str]:
        """List video ids of the configured channel (shorts and lives excluded)."""
        response = self.client.youtube.channel.videos(
            id=self.config.youtube_channel_id,
            type="video",
            limit=50,
        )
        logger.info(
            "channel_videos_fetched",
            channel_id=self.config.youtube_channel_id,
            count=len(response.video_ids),
        )
        return list(response.video_ids)


def get_source_provider(config: SemanticCoreConfig) -> SourceProvider:
    """Build the transcript provider selected by SOURCE_PROVIDER."""
    if config.source_provider == "supadata":
        return SupadataSourceProvider(config)
    if config.source_provider == "supabase":
        return SupabaseSourceProvider(config)
    raise ValueError(f"Unknown source provider: {config.source_provider!r}")
