"""Storage service for core videos, segments and the collection tree.

Two repositories share one protocol: ``SupabaseCoreRepository`` talks to
Postgres/pgvector through supabase-py, with every multi-row write done by a
Postgres function (see ``sql/core_schema.sql``) so it runs in a single
transaction. ``InMemoryCoreRepository`` keeps everything in dicts behind one
asyncio lock and backs dry runs and tests.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from supabase import Client

from src.utils.clients import get_supabase_client
from src.utils.logging import get_logger

from .centroid import cosine_similarity, mean_vector
from .config import SemanticCoreConfig
from .schemas import (
    Collection,
    CollectionMatch,
    CollectionOrigin,
    CoreVideo,
    Segment,
    SourceVideo,
    Taxonomy,
    VideoStatus,
)

logger = get_logger(__name__)

_COLLECTION_COLUMNS = "*, members:core_collection_videos(video_id)"


def to_vector_literal(vector: list[float] | None) -> str | None:
    """Render a vector in pgvector text format: '[x,y,z]' (no spaces)."""
    if vector is None:
        return None
    return f"[{','.join(str(x) for x in vector)}]"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _single_row(data: Any) -> dict[str, Any]:
    """RPC functions may return a row or a one-element set of rows."""
    if isinstance(data, list):
        if not data:
            raise LookupError("RPC returned no rows")
        return data[0]
    return data


class CoreRepository(Protocol):
    """Persistence contract the ingestion engine relies on."""

    async def upsert_video(self, source: SourceVideo) -> CoreVideo: ...

    async def get_video(self, video_id: str) -> CoreVideo | None: ...

    async def get_segments(self, video_id: str) -> list[Segment]: ...

    async def save_ingestion(
        self,
        video_id: str,
        segments: list[Segment],
        global_embedding: list[float] | None,
        taxonomy: Taxonomy,
    ) -> None: ...

    async def mark_failed(self, video_id: str, error_message: str) -> None: ...

    async def find_or_create_collection(
        self,
        name: str,
        parent_id: str | None,
        origin: CollectionOrigin,
        description: str,
    ) -> Collection: ...

    async def link_video_and_recompute_centroid(
        self, collection_id: str, video_id: str
    ) -> Collection: ...

    async def get_collection(self, collection_id: str) -> Collection | None: ...

    async def list_collections(self) -> list[Collection]: ...

    async def match_collections(
        self, vector: list[float], threshold: float, limit: int = 1
    ) -> list[CollectionMatch]: ...


class SupabaseCoreRepository:
    """Service for storing core videos, segments and collections in Supabase."""

    def __init__(self, config: SemanticCoreConfig, client: Client | None = None):
        """Initialize storage service with configuration.

        Args:
            config: Configuration object with Supabase credentials.
            client: Pre-built client (tests); built from config when omitted.
        """
        self.config = config
        self.client: Client = client or get_supabase_client(
            config.supabase_url, config.supabase_key
        )
        logger.info("storage_service_initialized", supabase_url=config.supabase_url)

    @staticmethod
    def _to_collection(row: dict[str, Any]) -> Collection:
        members = row.pop("members", None) or []
        return Collection.model_validate(
            {**row, "video_ids": [m["video_id"] for m in members]}
        )

    async def upsert_video(self, source: SourceVideo) -> CoreVideo:
        """Find-or-create the core record for a source video and mark it PROCESSING.

        An existing record with the same external id is updated in place, so
        its id and back-references survive re-ingestion.

        Raises:
            Exception: If database operation fails.
        """
        try:
            data = {
                "external_id": source.external_id,
                "source_id": source.source_id,
                "title": source.title,
                "summary": source.summary,
                "transcript": source.transcript,
                "status": VideoStatus.PROCESSING.value,
                "error_message": None,
                "last_processed_at": _now(),
                "updated_at": _now(),
            }
            response = (
                self.client.table("core_videos")
                .upsert(data, on_conflict="external_id")
                .execute()
            )
            video = CoreVideo.model_validate(response.data[0])
            logger.info("video_upserted", video_id=video.id, external_id=source.external_id)
            return video

        except Exception as e:
            logger.exception(
                "video_upsert_failed",
                external_id=source.external_id,
                error_type=type(e).__name__,
            )
            raise

    async def get_video(self, video_id: str) -> CoreVideo | None:
        """Fetch a core video by id.

        Args:
            video_id: Core video identifier.

        Returns:
            The video, or None if no record exists.

        Raises:
            Exception: If database operation fails.
        """
        response = self.client.table("core_videos").select("*").eq("id", video_id).execute()
        if not response.data:
            return None
        return CoreVideo.model_validate(response.data[0])

    async def get_segments(self, video_id: str) -> list[Segment]:
        """Fetch the stored segments of a video.

        Args:
            video_id: Core video identifier.

        Returns:
            Segments ordered by start time; empty if none are stored.

        Raises:
            Exception: If database operation fails.
        """
        response = (
            self.client.table("core_segments")
            .select("video_id, start_time, end_time, content, summary, tags, embedding")
            .eq("video_id", video_id)
            .order("start_time")
            .execute()
        )
        return [Segment.model_validate(row) for row in response.data or []]

    async def save_ingestion(
        self,
        video_id: str,
        segments: list[Segment],
        global_embedding: list[float] | None,
        taxonomy: Taxonomy,
    ) -> None:
        """Replace segments and write vector, taxonomy and COMPLETED in one transaction.

        Raises:
            Exception: If the database function fails; nothing is written then.
        """
        try:
            payload = [
                {
                    "start_time": segment.start_time,
                    "end_time": segment.end_time,
                    "content": segment.content,
                    "summary": segment.summary,
                    "tags": segment.tags,
                    "embedding": to_vector_literal(segment.embedding),
                }
                for segment in segments
            ]
            self.client.rpc(
                "replace_core_ingestion",
                {
                    "p_video_id": video_id,
                    "p_segments": payload,
                    "p_global_embedding": to_vector_literal(global_embedding),
                    "p_taxonomy": taxonomy.model_dump(),
                },
            ).execute()
            logger.info(
                "ingestion_saved",
                video_id=video_id,
                segments=len(segments),
                has_global_embedding=global_embedding is not None,
            )

        except Exception as e:
            logger.exception(
                "ingestion_save_failed",
                video_id=video_id,
                error_type=type(e).__name__,
            )
            raise

    async def mark_failed(self, video_id: str, error_message: str) -> None:
        """Set status FAILED.

        Raises:
            Exception: If database operation fails.
        """
        try:
            self.client.table("core_videos").update(
                {
                    "status": VideoStatus.FAILED.value,
                    "error_message": error_message,
                    "last_processed_at": _now(),
                    "updated_at": _now(),
                }
            ).eq("id", video_id).execute()
            logger.info("video_status_updated", video_id=video_id, status="FAILED")

        except Exception as e:
            logger.exception(
                "status_update_failed",
                video_id=video_id,
                error_type=type(e).__name__,
            )
            raise

    async def find_or_create_collection(
        self,
        name: str,
        parent_id: str | None,
        origin: CollectionOrigin,
        description: str,
    ) -> Collection:
        """Find the collection keyed by (name, parent_id, origin) or create it.

        The database function performs the lookup and insert atomically, so
        concurrent callers receive the same row.

        Args:
            name: Collection name.
            parent_id: Parent collection id, or None for a root.
            origin: SYSTEM or USER origin.
            description: Description stored when the row is created.

        Returns:
            The existing or newly created collection.

        Raises:
            Exception: If database operation fails.
        """
        response = self.client.rpc(
            "find_or_create_core_collection",
            {
                "p_name": name,
                "p_parent_id": parent_id,
                "p_origin": origin.value,
                "p_description": description,
            },
        ).execute()
        return Collection.model_validate(_single_row(response.data))

    async def link_video_and_recompute_centroid(
        self, collection_id: str, video_id: str
    ) -> Collection:
        """Link a video and recompute the centroid under the collection's row lock.

        Args:
            collection_id: Collection to link into.
            video_id: Core video to link.

        Returns:
            The collection with its refreshed centroid.

        Raises:
            Exception: If database operation fails.
        """
        response = self.client.rpc(
            "link_core_video_to_collection",
            {"p_collection_id": collection_id, "p_video_id": video_id},
        ).execute()
        collection = Collection.model_validate(_single_row(response.data))
        logger.info(
            "collection_linked",
            collection_id=collection_id,
            video_id=video_id,
            has_centroid=collection.centroid is not None,
        )
        return collection

    async def get_collection(self, collection_id: str) -> Collection | None:
        """Fetch a collection by id, or None if it does not exist."""
        response = (
            self.client.table("core_collections")
            .select(_COLLECTION_COLUMNS)
            .eq("id", collection_id)
            .execute()
        )
        if not response.data:
            return None
        return self._to_collection(response.data[0])

    async def list_collections(self) -> list[Collection]:
        response = self.client.table("core_collections").select(_COLLECTION_COLUMNS).execute()
        return [self._to_collection(row) for row in response.data or []]

    async def match_collections(
        self, vector: list[float], threshold: float, limit: int = 1
    ) -> list[CollectionMatch]:
        """Search SYSTEM collection centroids by cosine similarity.

        Raises:
            Exception: If search operation fails.
        """
        try:
            response = self.client.rpc(
                "match_core_collections",
                {
                    "query_embedding": to_vector_literal(vector),
                    "match_threshold": threshold,
                    "match_count": limit,
                },
            ).execute()
            matches = [CollectionMatch.model_validate(row) for row in response.data or []]
            logger.info("collection_search_completed", results=len(matches), threshold=threshold)
            return matches

        except Exception as e:
            logger.exception("collection_search_failed", error_type=type(e).__name__)
            raise


class InMemoryCoreRepository:
    """Dict-backed repository; one asyncio lock serialises every mutation."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.videos: dict[str, CoreVideo] = {}
        self.segments: dict[str, list[Segment]] = {}
        self.collections: dict[str, Collection] = {}

    async def upsert_video(self, source: SourceVideo) -> CoreVideo:
        async with self._lock:
            existing = next(
                (v for v in self.videos.values() if v.external_id == source.external_id),
                None,
            )
            updates = {
                "source_id": source.source_id,
                "title": source.title,
                "summary": source.summary,
                "transcript": source.transcript,
                "status": VideoStatus.PROCESSING,
                "error_message": None,
                "last_processed_at": datetime.now(timezone.utc),
            }
            if existing is not None:
                video = existing.model_copy(update=updates)
            else:
                video = CoreVideo(id=str(uuid.uuid4()), external_id=source.external_id, **updates)
            self.videos[video.id] = video
            return video.model_copy(deep=True)

    async def get_video(self, video_id: str) -> CoreVideo | None:
        video = self.videos.get(video_id)
        return video.model_copy(deep=True) if video else None

    async def get_segments(self, video_id: str) -> list[Segment]:
        return [s.model_copy(deep=True) for s in self.segments.get(video_id, [])]

    async def save_ingestion(
        self,
        video_id: str,
        segments: list[Segment],
        global_embedding: list[float] | None,
        taxonomy: Taxonomy,
    ) -> None:
        async with self._lock:
            video = self.videos.get(video_id)
            if video is None:
                raise LookupError(f"Core video {video_id} does not exist")

            # Build everything first so a failure leaves the old state intact
            new_segments = sorted(
                (s.model_copy(update={"video_id": video_id}, deep=True) for s in segments),
                key=lambda s: s.start_time,
            )
            updated = video.model_copy(
                update={
                    "status": VideoStatus.COMPLETED,
                    "error_message": None,
                    "last_processed_at": datetime.now(timezone.utc),
                    "taxonomy": taxonomy.model_copy(),
                    "global_embedding": list(global_embedding) if global_embedding else None,
                }
            )
            self.segments[video_id] = new_segments
            self.videos[video_id] = updated

    async def mark_failed(self, video_id: str, error_message: str) -> None:
        async with self._lock:
            video = self.videos.get(video_id)
            if video is None:
                raise LookupError(f"Core video {video_id} does not exist")
            self.videos[video_id] = video.model_copy(
                update={
                    "status": VideoStatus.FAILED,
                    "error_message": error_message,
                    "last_processed_at": datetime.now(timezone.utc),
                }
            )

    async def find_or_create_collection(
        self,
        name: str,
        parent_id: str | None,
        origin: CollectionOrigin,
        description: str,
    ) -> Collection:
        async with self._lock:
            for collection in self.collections.values():
                if (
                    collection.name == name
                    and collection.parent_id == parent_id
                    and collection.origin == origin
                ):
                    return collection.model_copy(deep=True)

            collection = Collection(
                id=str(uuid.uuid4()),
                name=name,
                description=description,
                origin=origin,
                parent_id=parent_id,
            )
            self.collections[collection.id] = collection
            return collection.model_copy(deep=True)

    async def link_video_and_recompute_centroid(
        self, collection_id: str, video_id: str
    ) -> Collection:
        async with self._lock:
            collection = self.collections.get(collection_id)
            if collection is None:
                raise LookupError(f"Collection {collection_id} does not exist")
            if video_id not in self.videos:
                raise LookupError(f"Core video {video_id} does not exist")

            video_ids = list(collection.video_ids)
            if video_id not in video_ids:
                video_ids.append(video_id)

            member_vectors = [
                self.videos[vid].global_embedding
                for vid in video_ids
                if vid in self.videos and self.videos[vid].global_embedding is not None
            ]
            updated = collection.model_copy(
                update={"video_ids": video_ids, "centroid": mean_vector(member_vectors)}
            )
            self.collections[collection_id] = updated
            return updated.model_copy(deep=True)

    async def get_collection(self, collection_id: str) -> Collection | None:
        collection = self.collections.get(collection_id)
        return collection.model_copy(deep=True) if collection else None

    async def list_collections(self) -> list[Collection]:
        return [c.model_copy(deep=True) for c in self.collections.values()]

    async def match_collections(
        self, vector: list[float], threshold: float, limit: int = 1
    ) -> list[CollectionMatch]:
        matches = [
            CollectionMatch(
                collection_id=c.id,
                name=c.name,
                similarity=cosine_similarity(vector, c.centroid),
            )
            for c in self.collections.values()
            if c.origin == CollectionOrigin.SYSTEM and c.centroid is not None
        ]
        matches = [m for m in matches if m.similarity >= threshold]
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]
