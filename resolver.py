"""Resolves one search result into a full legislation record."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import camara_parser
from fetcher import Fetcher
from models import LegislationRecord, SearchResultItem

LOGGER = logging.getLogger(__name__)


class DetailResolver:
    """Fetches the detail page (and original text, when linked) for an item."""

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher

    def resolve(self, item: SearchResultItem) -> LegislationRecord:
        LOGGER.info("Fetching details for: %s", item.search_result_title or item.url)

        body = self.fetcher.fetch(item.url)
        if body is None:
            LOGGER.warning("Failed to fetch details for url=%s. Storing minimal info.", item.url)
            return LegislationRecord.minimal(item)

        detail = camara_parser.extract_detail(body, item.url)

        if detail.original_text_url:
            original_body = self.fetcher.fetch(detail.original_text_url)
            if original_body is None:
                LOGGER.warning("Could not fetch original text from %s", detail.original_text_url)
            else:
                detail.original_text = camara_parser.extract_original_text(original_body)

        return LegislationRecord.merge(item, detail, fetched_at=datetime.now(UTC))
