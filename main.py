"""CLI entrypoint for the Câmara legislation crawler."""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from crawl_config import CrawlConfig
from models import CrawlOutcome, RunSummary
from orchestrator import CrawlOrchestrator
from persister import LegislationStore
from store import InMemoryLegislationStore, MongoLegislationStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Harvest legislation from the Câmara catalog into MongoDB")
    parser.add_argument("--max-pages", type=int, default=None, help="Maximum number of search pages to visit")
    parser.add_argument("--start-url", default=None, help="Search page URL to start from")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Crawl normally but keep records in memory instead of writing to MongoDB",
    )
    return parser.parse_args(argv)


def build_store(config: CrawlConfig, dry_run: bool) -> LegislationStore:
    if dry_run:
        logging.info("[dry-run] Records will be kept in memory only")
        return InMemoryLegislationStore()
    if not config.mongodb_uri:
        raise RuntimeError("MONGODB_URI environment variable is required")
    return MongoLegislationStore.connect(config.mongodb_uri, config.mongodb_db, config.mongodb_collection)


def run(config: CrawlConfig, dry_run: bool) -> RunSummary:
    """Run one crawl against the configured store."""
    store = build_store(config, dry_run)
    return CrawlOrchestrator(config, store).run()


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute one crawl run."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    try:
        config = CrawlConfig.from_env().with_overrides(max_pages=args.max_pages, catalog_url=args.start_url)
        summary = run(config, dry_run=args.dry_run)
    except RuntimeError as exc:  # includes StoreError
        logging.error("Critical error during scraping process: %s", exc)
        return 1

    logging.info(
        "Run summary: pages_visited=%s items_processed=%s items_failed=%s",
        summary.pages_visited,
        summary.items_processed,
        summary.items_failed,
    )
    return 0 if summary.outcome is CrawlOutcome.DONE else 1


if __name__ == "__main__":
    sys.exit(main())
