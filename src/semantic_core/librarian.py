"""Hierarchical librarian: shelves videos into the root -> branch collection tree."""

from src.utils.logging import get_logger

from .config import SemanticCoreConfig
from .exceptions import FilingFailed
from .schemas import CollectionMatch, CollectionOrigin, FilingResult, Taxonomy
from .storage_service import CoreRepository

logger = get_logger(__name__)


class HierarchicalLibrarian:
    """Maintains SYSTEM collections derived from taxonomy labels.

    Videos are linked into the branch, not the root, so roots stay a clean
    list of fields. Only branch centroids are recomputed on insert; root
    centroids would need the whole subtree on every write.
    """

    def __init__(self, config: SemanticCoreConfig, repository: CoreRepository):
        self.config = config
        self.repository = repository

    async def organize_by_taxonomy(self, video_id: str, taxonomy: Taxonomy) -> FilingResult:
        """File a video under ``taxonomy.root`` > ``taxonomy.branch``.

        Root and branch are found-or-created atomically by the repository, and
        linking plus centroid recomputation run in one critical section, so
        concurrent filings of the same labels never duplicate nodes or lose
        a centroid update.

        Args:
            video_id: Core video id.
            taxonomy: Label produced by the classifier.

        Returns:
            Ids of the root and branch, and whether the branch has a centroid.

        Raises:
            FilingFailed: If any repository step fails.
        """
        logger.info(
            "filing_started",
            video_id=video_id,
            root=taxonomy.root,
            branch=taxonomy.branch,
        )

        try:
            root = await self.repository.find_or_create_collection(
                name=taxonomy.root,
                parent_id=None,
                origin=CollectionOrigin.SYSTEM,
                description=f"Top-level category: {taxonomy.root}",
            )
            branch = await self.repository.find_or_create_collection(
                name=taxonomy.branch,
                parent_id=root.id,
                origin=CollectionOrigin.SYSTEM,
                description=f"Subcategory of {taxonomy.root}",
            )
            branch = await self.repository.link_video_and_recompute_centroid(
                branch.id, video_id
            )
        except Exception as e:
            logger.exception(
                "filing_failed",
                video_id=video_id,
                error_type=type(e).__name__,
            )
            raise FilingFailed(
                f"Could not file video {video_id} under {taxonomy.root} > {taxonomy.branch}"
            ) from e

        logger.info(
            "video_filed",
            video_id=video_id,
            root_id=root.id,
            branch_id=branch.id,
            members=len(branch.video_ids),
        )
        return FilingResult(
            root_id=root.id,
            branch_id=branch.id,
            centroid_updated=branch.centroid is not None,
        )

    async def find_relevant_collections(
        self, video_id: str, threshold: float | None = None
    ) -> list[CollectionMatch]:
        """Suggest the SYSTEM collection closest to a video. Read-only.

        Args:
            video_id: Core video id.
            threshold: Minimum cosine similarity; defaults to the configured
                match threshold.

        Returns:
            The best match at or above the threshold, or an empty list when
            there is none or the video has no vector yet.
        """
        threshold = self.config.match_threshold if threshold is None else threshold

        video = await self.repository.get_video(video_id)
        if video is None or video.global_embedding is None:
            logger.info("collection_match_skipped", video_id=video_id, reason="no_vector")
            return []

        matches = await self.repository.match_collections(
            video.global_embedding, threshold=threshold, limit=1
        )
        logger.info(
            "collection_match_completed",
            video_id=video_id,
            threshold=threshold,
            matches=[m.name for m in matches],
        )
        return matches
