"""Run configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

BASE_URL = "https://www.camara.leg.br/legislacao/busca"
BASE_DETAIL_URL = "https://www2.camara.leg.br"
DEFAULT_CATALOG_URL = (
    f"{BASE_URL}?geral=&ano=&situacao=&abrangencia=&tipo=&origem=&numero=&ordenacao=data%3ADESC"
)
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


@dataclass(frozen=True, slots=True)
class CrawlConfig:
    """Parameters the orchestrator treats as constants for one run."""

    catalog_url: str = DEFAULT_CATALOG_URL
    max_pages: int = 10
    concurrency: int = 5
    batch_size: int = 50
    page_delay_seconds: float = 2.0
    task_delay_seconds: float = 0.5
    max_retries: int = 3
    retry_base_delay_seconds: float = 1.0
    request_timeout_seconds: float = 15.0
    flush_max_attempts: int = 2
    dead_letter_path: str | None = None
    mongodb_uri: str | None = None
    mongodb_db: str = "legisfacil"
    mongodb_collection: str = "legislation"

    @classmethod
    def from_env(cls) -> CrawlConfig:
        """Build a config from environment variables (millisecond delays)."""
        config = cls(
            catalog_url=os.getenv("CATALOG_URL", DEFAULT_CATALOG_URL),
            max_pages=int(os.getenv("MAX_PAGES_TO_SCRAPE", "10")),
            concurrency=int(os.getenv("DETAIL_FETCH_CONCURRENCY", "5")),
            batch_size=int(os.getenv("DB_BATCH_SIZE", "50")),
            page_delay_seconds=int(os.getenv("DELAY_BETWEEN_SEARCH_PAGES_MS", "2000")) / 1000,
            task_delay_seconds=int(os.getenv("DELAY_BETWEEN_DETAIL_FETCHES_MS", "500")) / 1000,
            max_retries=int(os.getenv("MAX_RETRIES_FETCH", "3")),
            retry_base_delay_seconds=int(os.getenv("RETRY_DELAY_MS", "1000")) / 1000,
            request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15")),
            flush_max_attempts=int(os.getenv("FLUSH_MAX_ATTEMPTS", "2")),
            dead_letter_path=os.getenv("DEAD_LETTER_PATH") or None,
            mongodb_uri=os.getenv("MONGODB_URI") or None,
            mongodb_db=os.getenv("MONGODB_DB", "legisfacil"),
            mongodb_collection=os.getenv("MONGODB_COLLECTION", "legislation"),
        )
        config.validate()
        return config

    def with_overrides(self, **changes: object) -> CrawlConfig:
        """Return a copy with the non-None overrides applied."""
        updated = replace(self, **{k: v for k, v in changes.items() if v is not None})
        updated.validate()
        return updated

    def validate(self) -> None:
        for name in ("max_pages", "concurrency", "batch_size", "max_retries", "flush_max_attempts"):
            if getattr(self, name) < 1:
                raise RuntimeError(f"Invalid crawl config: {name} must be >= 1")
        for name in ("page_delay_seconds", "task_delay_seconds", "retry_base_delay_seconds"):
            if getattr(self, name) < 0:
                raise RuntimeError(f"Invalid crawl config: {name} must be >= 0")
        if self.request_timeout_seconds <= 0:
            raise RuntimeError("Invalid crawl config: request_timeout_seconds must be > 0")
