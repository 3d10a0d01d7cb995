"""Run-scoped tracking of already dispatched item identities."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from models import SearchResultItem

LOGGER = logging.getLogger(__name__)


class DedupTracker:
    """Set of identities dispatched during one crawl run.

    Only the driver thread touches it, so no locking.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def seen(self, identity: str) -> bool:
        return identity in self._seen

    def mark_seen(self, identity: str) -> None:
        self._seen.add(identity)

    def filter_new(self, items: Iterable[SearchResultItem]) -> list[SearchResultItem]:
        """Drop seen items (including repeats within ``items``) and mark the rest."""
        fresh: list[SearchResultItem] = []
        for item in items:
            if self.seen(item.url):
                LOGGER.info("Skipping duplicate url=%s", item.url)
                continue
            self.mark_seen(item.url)
            fresh.append(item)
        return fresh
