"""Crawl state machine: walk result pages, resolve items, persist in batches."""

from __future__ import annotations

import logging
import time
from enum import Enum
from urllib.parse import urljoin

import camara_parser
from crawl_config import CrawlConfig
from dedup import DedupTracker
from errors import MalformedPageError
from fetcher import Fetcher, RetryPolicy
from models import (
    CrawlOutcome,
    FlushResult,
    LegislationRecord,
    PaginationState,
    RunSummary,
    SearchResultItem,
)
from persister import BatchPersister, LegislationStore
from resolver import DetailResolver
from worker_pool import BoundedWorkerPool

LOGGER = logging.getLogger(__name__)


class CrawlState(str, Enum):
    """Steps of the crawl state machine."""

    FETCHING_PAGE = "fetching_page"
    EXTRACTING = "extracting"
    DEDUPING = "deduping"
    RESOLVING = "resolving"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    ADVANCING = "advancing"
    DONE = "done"
    ABORTED = "aborted"


class CrawlOrchestrator:
    """Drives one crawl run. Create a fresh instance per run.

    The dedup set, visited pages and the batch belong to this instance and are
    only touched from the thread calling ``run``.
    """

    def __init__(
        self,
        config: CrawlConfig,
        store: LegislationStore,
        fetcher: Fetcher | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher(
            policy=RetryPolicy(config.max_retries, config.retry_base_delay_seconds),
            timeout_seconds=config.request_timeout_seconds,
        )
        self.resolver = DetailResolver(self.fetcher)
        self.dedup = DedupTracker()
        self.persister = BatchPersister(
            store,
            batch_size=config.batch_size,
            retry_policy=RetryPolicy(config.flush_max_attempts, config.retry_base_delay_seconds),
            dead_letter_path=config.dead_letter_path,
        )
        self.pagination = PaginationState(current_url=config.catalog_url)
        self.summary = RunSummary()
        self.state = CrawlState.FETCHING_PAGE
        self._started = False

    def run(self) -> RunSummary:
        """Crawl until done or aborted; StoreError from index setup is fatal."""
        if self._started:
            raise RuntimeError("CrawlOrchestrator can only run once; create a new instance")
        self._started = True

        try:
            self.store.ensure_indexes()
        except Exception:
            self.store.close()
            raise

        LOGGER.info(
            "Starting legislation scraping. max_pages=%s concurrency=%s batch_size=%s",
            self.config.max_pages,
            self.config.concurrency,
            self.config.batch_size,
        )
        pool = BoundedWorkerPool(self.config.concurrency, self.config.task_delay_seconds)
        try:
            self._crawl(pool)
        finally:
            pool.close()
            self._record_flush(self.persister.flush())
            self.store.close()
            if self._owns_fetcher:
                self.fetcher.close()

        LOGGER.info(
            "Scraping complete. outcome=%s reason=%s pages=%s processed=%s failed=%s persisted=%s persist_errors=%s",
            self.summary.outcome.value,
            self.summary.reason,
            self.summary.pages_visited,
            self.summary.items_processed,
            self.summary.items_failed,
            self.summary.records_persisted,
            self.summary.persist_errors,
        )
        return self.summary

    def _crawl(self, pool: BoundedWorkerPool) -> None:
        page = self.pagination
        while True:
            self._enter(CrawlState.FETCHING_PAGE)
            LOGGER.info("Scraping search results page %s: %s", page.page_number, page.current_url)
            page.visited.add(page.current_url)
            body = self.fetcher.fetch(page.current_url)
            if body is None:
                LOGGER.error("Failed to fetch search page %s. Stopping pagination.", page.page_number)
                self._terminate(CrawlOutcome.ABORTED, "page_fetch_failed")
                return
            self.summary.pages_visited += 1

            self._enter(CrawlState.EXTRACTING)
            try:
                items, next_ref = camara_parser.extract_search_results(body, page.current_url)
            except MalformedPageError as exc:
                LOGGER.error("Malformed search page %s: %s", page.page_number, exc)
                self._terminate(CrawlOutcome.ABORTED, "malformed_page")
                return
            LOGGER.info("Found %s items on page %s", len(items), page.page_number)
            if not items:
                LOGGER.info("No items found on page, likely end of results.")
                self._terminate(CrawlOutcome.DONE, "no_items")
                return

            self._enter(CrawlState.DEDUPING)
            fresh = self.dedup.filter_new(items)

            self._enter(CrawlState.RESOLVING)
            records = self._resolve_all(pool, fresh)

            self._enter(CrawlState.ACCUMULATING)
            self.persister.add(records)

            next_url = urljoin(page.current_url, next_ref) if next_ref else None
            at_page_cap = page.page_number >= self.config.max_pages
            traversal_ends = next_url is None or at_page_cap
            if self.persister.should_flush(has_next_page=next_url is not None, at_page_cap=at_page_cap):
                self._enter(CrawlState.FLUSHING)
                self._record_flush(self.persister.flush(full_batches_only=not traversal_ends))

            self._enter(CrawlState.ADVANCING)
            if next_url is None:
                LOGGER.info("No next page found.")
                self._terminate(CrawlOutcome.DONE, "no_next_page")
                return
            if next_url in page.visited:
                LOGGER.warning("Detected pagination loop at URL: %s. Stopping.", next_url)
                self._terminate(CrawlOutcome.DONE, "loop_detected")
                return
            if at_page_cap:
                LOGGER.info("Reached max pages=%s.", self.config.max_pages)
                self._terminate(CrawlOutcome.DONE, "page_cap")
                return

            page.current_url = next_url
            page.page_number += 1
            if self.config.page_delay_seconds > 0:
                LOGGER.info("Waiting %ss before next search page...", self.config.page_delay_seconds)
                time.sleep(self.config.page_delay_seconds)

    def _resolve_all(
        self, pool: BoundedWorkerPool, items: list[SearchResultItem]
    ) -> list[LegislationRecord]:
        futures = [pool.submit(self.resolver.resolve, item) for item in items]
        records: list[LegislationRecord] = []
        for item, outcome in zip(items, pool.join(futures)):
            if isinstance(outcome, BaseException):
                LOGGER.error(
                    "Unexpected error resolving url=%s. Storing minimal info.",
                    item.url,
                    exc_info=outcome,
                )
                outcome = LegislationRecord.minimal(item)
            records.append(outcome)
            self.summary.items_processed += 1
            if outcome.fetch_error:
                self.summary.items_failed += 1
        return records

    def _record_flush(self, result: FlushResult) -> None:
        self.summary.records_persisted += result.persisted
        self.summary.persist_errors += result.failed_records + len(result.errors)

    def _terminate(self, outcome: CrawlOutcome, reason: str) -> None:
        self.summary.outcome = outcome
        self.summary.reason = reason
        self._enter(CrawlState.DONE if outcome is CrawlOutcome.DONE else CrawlState.ABORTED)

    def _enter(self, state: CrawlState) -> None:
        LOGGER.debug("Crawl state %s -> %s", self.state.value, state.value)
        self.state = state
