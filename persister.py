"""Batches resolved records and flushes them as bounded bulk upserts."""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Iterable, Sequence
from typing import Protocol

from fetcher import RetryPolicy
from models import BulkUpsertResult, FlushResult, LegislationRecord

LOGGER = logging.getLogger(__name__)


class LegislationStore(Protocol):
    def ensure_indexes(self) -> None: ...

    def bulk_upsert(self, records: Sequence[LegislationRecord]) -> BulkUpsertResult: ...

    def close(self) -> None: ...


class BatchPersister:
    """Owns the pending batch; no single write exceeds ``batch_size`` records."""

    def __init__(
        self,
        store: LegislationStore,
        batch_size: int = 50,
        retry_policy: RetryPolicy | None = None,
        dead_letter_path: str | None = None,
    ) -> None:
        self.store = store
        self.batch_size = batch_size
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=2)
        self.dead_letter_path = dead_letter_path
        self._batch: list[LegislationRecord] = []

    def __len__(self) -> int:
        return len(self._batch)

    def add(self, records: Iterable[LegislationRecord]) -> None:
        self._batch.extend(records)

    def is_full(self) -> bool:
        return len(self._batch) >= self.batch_size

    def should_flush(self, *, has_next_page: bool, at_page_cap: bool) -> bool:
        return self.is_full() or not has_next_page or at_page_cap

    def flush(self, full_batches_only: bool = False) -> FlushResult:
        """Upsert pending records in slices of at most ``batch_size``.

        With ``full_batches_only`` only complete slices are written and the
        remainder stays buffered for a later flush. Never raises for store
        failures.
        """
        if full_batches_only:
            cut = len(self._batch) - len(self._batch) % self.batch_size
        else:
            cut = len(self._batch)
        records, self._batch = self._batch[:cut], self._batch[cut:]

        combined = FlushResult()
        for start in range(0, len(records), self.batch_size):
            combined.absorb(self._write_slice(records[start:start + self.batch_size]))
        return combined

    def _write_slice(self, records: list[LegislationRecord]) -> FlushResult:
        LOGGER.info("Writing %s documents to the store...", len(records))
        max_attempts = self.retry_policy.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                result = self.store.bulk_upsert(records)
            except Exception as exc:  # store driver errors vary; retry then dead-letter
                LOGGER.error(
                    "Bulk write failed attempt=%s/%s records=%s: %s",
                    attempt,
                    max_attempts,
                    len(records),
                    exc,
                )
                if attempt < max_attempts:
                    time.sleep(self.retry_policy.delay_for(attempt))
                continue

            for error in result.errors:
                LOGGER.warning(
                    "Upsert failed url=%s code=%s: %s",
                    error.get("url"),
                    error.get("code"),
                    error.get("message"),
                )
            LOGGER.info(
                "Bulk write: %s inserted, %s updated, %s failed.",
                result.inserted,
                result.updated,
                len(result.errors),
            )
            return FlushResult(
                attempted=len(records),
                inserted=result.inserted,
                updated=result.updated,
                errors=list(result.errors),
            )

        return FlushResult(
            attempted=len(records),
            failed_records=len(records),
            dead_lettered=self._dead_letter(records),
        )

    def _dead_letter(self, records: Sequence[LegislationRecord]) -> int:
        if not self.dead_letter_path:
            LOGGER.error("Dropping %s records after failed flush (no DEAD_LETTER_PATH)", len(records))
            return 0

        directory = os.path.dirname(self.dead_letter_path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.dead_letter_path, "a", encoding="utf-8") as fh:
                for record in records:
                    fh.write(json.dumps(record.to_document(), ensure_ascii=False, default=str) + "\n")
        except OSError as exc:
            LOGGER.error("Could not write dead letter file %s: %s", self.dead_letter_path, exc)
            return 0

        LOGGER.warning("Wrote %s records to dead letter file %s", len(records), self.dead_letter_path)
        return len(records)
