"""Command-line interface for the semantic ingestion engine."""

import argparse
import asyncio

from src.utils.logging import get_logger

from .backfill import BackfillDriver
from .config import SemanticCoreConfig, get_config
from .pipeline import IngestionOrchestrator
from .storage_service import InMemoryCoreRepository

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Semantic Core - segment, embed, classify and shelve video transcripts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest one video (using .env config)
  python -m src.semantic_core.cli ingest 42

  # Re-ingest everything with a 20s pause between videos
  python -m src.semantic_core.cli backfill --delay 20

  # Suggest the closest collection for a core video
  python -m src.semantic_core.cli match 0b7c... --threshold 0.6

  # Dry run mode (in-memory storage, no database writes)
  python -m src.semantic_core.cli --dry-run backfill --limit 3
        """,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry run mode - process but keep results in memory only",
    )
    parser.add_argument(
        "--source",
        choices=["supabase", "supadata"],
        help="Override the transcript source from environment",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest a single source video")
    ingest.add_argument("source_id", help="Source video id")

    backfill = subparsers.add_parser("backfill", help="Ingest all known source videos")
    backfill.add_argument("--delay", type=float, help="Seconds to wait between videos")
    backfill.add_argument("--limit", type=int, help="Process at most this many videos")

    match = subparsers.add_parser("match", help="Find the closest collection for a core video")
    match.add_argument("video_id", help="Core video id")
    match.add_argument("--threshold", type=float, help="Minimum cosine similarity")

    return parser


def build_orchestrator(config: SemanticCoreConfig, dry_run: bool) -> IngestionOrchestrator:
    repository = InMemoryCoreRepository() if dry_run else None
    return IngestionOrchestrator(config, repository=repository)


async def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Process exit code: 0 on success, 1 if any video failed.
    """
    args = build_parser().parse_args(argv)

    config = get_config()
    if args.source:
        config.source_provider = args.source

    logger.info("cli_started", command=args.command, dry_run=args.dry_run)

    print("\n" + "=" * 60)
    print("Semantic Core")
    print("=" * 60)
    print(f"Source: {config.source_provider}")
    print(f"Generation models: {', '.join(config.llm_models)}")
    print(f"Embedding models: {', '.join(config.embedding_models)}")
    print(f"Credentials in pool: {len(config.llm_api_keys)}")
    if args.dry_run:
        print("\n⚠️  DRY RUN MODE - No database writes will occur")
    print("=" * 60 + "\n")

    orchestrator = build_orchestrator(config, args.dry_run)

    if args.command == "ingest":
        result = await orchestrator.ingest(args.source_id)
        print(f"Status: {result.status}")
        if result.video_id:
            print(f"Core video: {result.video_id}")
        print(f"Segments: {result.segments} ({result.embedded_segments} embedded)")
        if result.taxonomy:
            print(
                f"Taxonomy: {result.taxonomy.root} > {result.taxonomy.branch} > {result.taxonomy.leaf}"
            )
        for hook, outcome in result.hooks.items():
            print(f"Hook {hook}: {outcome}")
        if result.error:
            print(f"\n❌ {result.error}")
        return 1 if result.status == "failed" else 0

    if args.command == "backfill":
        driver = BackfillDriver(orchestrator, delay_seconds=args.delay)
        backfill = await driver.run(limit=args.limit)

        print("\n" + "=" * 60)
        print("Backfill Results")
        print("=" * 60)
        print(f"Total videos: {backfill.total}")
        print(f"Successfully processed: {backfill.processed}")
        print(f"Failed: {backfill.failed}")
        print(f"Skipped (no transcript): {backfill.skipped}")
        if backfill.errors:
            print("\nErrors encountered:")
            for error in backfill.errors:
                print(f"  ❌ {error}")
        else:
            print("\n✅ No errors encountered")
        print("=" * 60 + "\n")
        return 1 if backfill.failed else 0

    matches = await orchestrator.librarian.find_relevant_collections(
        args.video_id, threshold=args.threshold
    )
    if not matches:
        print("No matching collection.")
    for match in matches:
        print(f"{match.name} ({match.collection_id}): similarity {match.similarity:.4f}")
    return 0


def run() -> None:
    """Console script entry point."""
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    run()
