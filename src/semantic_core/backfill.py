"""Bulk backfill: re-ingest every known source video, one at a time."""

import asyncio
from collections.abc import Awaitable, Callable

from src.utils.logging import get_logger

from .pipeline import IngestionOrchestrator
from .schemas import BackfillResult

logger = get_logger(__name__)


class BackfillDriver:
    """Iterates source videos and ingests each with a pause in between.

    The pause only keeps the model endpoints under their rate limits.
    """

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        delay_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.orchestrator = orchestrator
        self.delay_seconds = (
            orchestrator.config.backfill_delay_seconds if delay_seconds is None else delay_seconds
        )
        self._sleep = sleep

    async def run(
        self, source_ids: list[str] | None = None, limit: int | None = None
    ) -> BackfillResult:
        """Ingest the given sources, or every source the provider knows.

        Args:
            source_ids: Explicit ids; listed from the provider when None.
            limit: Process at most this many videos.

        Returns:
            BackfillResult with per-status counts and error messages.
        """
        if source_ids is None:
            source_ids = await self.orchestrator.source_provider.list_source_ids()
        if limit is not None:
            source_ids = source_ids[:limit]

        result = BackfillResult(total=len(source_ids))
        logger.info(
            "backfill_started",
            total=result.total,
            delay_seconds=self.delay_seconds,
            estimated_minutes=round(result.total * self.delay_seconds / 60),
        )

        for position, source_id in enumerate(source_ids, start=1):
            logger.info("backfill_video", position=position, total=result.total, source_id=source_id)

            try:
                video_result = await self.orchestrator.ingest(source_id)
            except Exception as e:
                logger.exception(
                    "backfill_video_crashed", source_id=source_id, error_type=type(e).__name__
                )
                result.failed += 1
                result.errors.append(f"{source_id}: {e}")
            else:
                if video_result.status == "completed":
                    result.processed += 1
                elif video_result.status == "skipped":
                    result.skipped += 1
                else:
                    result.failed += 1
                    result.errors.append(f"{source_id}: {video_result.error or 'Unknown error'}")

            if position < result.total:
                await self._sleep(self.delay_seconds)

        logger.info(
            "backfill_completed",
            processed=result.processed,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result
