from unittest.mock import patch

import pytest

from crawl_config import DEFAULT_CATALOG_URL, CrawlConfig


def test_from_env_defaults() -> None:
    with patch.dict("os.environ", {}, clear=True):
        config = CrawlConfig.from_env()

    assert config.catalog_url == DEFAULT_CATALOG_URL
    assert config.max_pages == 10
    assert config.concurrency == 5
    assert config.batch_size == 50
    assert config.page_delay_seconds == 2.0
    assert config.task_delay_seconds == 0.5
    assert config.max_retries == 3
    assert config.retry_base_delay_seconds == 1.0
    assert config.request_timeout_seconds == 15.0
    assert config.dead_letter_path is None
    assert config.mongodb_uri is None
    assert (config.mongodb_db, config.mongodb_collection) == ("legisfacil", "legislation")


def test_from_env_reads_overrides_and_converts_milliseconds() -> None:
    env = {
        "MAX_PAGES_TO_SCRAPE": "3",
        "DETAIL_FETCH_CONCURRENCY": "2",
        "DELAY_BETWEEN_SEARCH_PAGES_MS": "250",
        "RETRY_DELAY_MS": "100",
        "DEAD_LETTER_PATH": "/tmp/dead.jsonl",
        "MONGODB_URI": "mongodb://db:27017",
    }
    with patch.dict("os.environ", env, clear=True):
        config = CrawlConfig.from_env()

    assert config.max_pages == 3
    assert config.concurrency == 2
    assert config.page_delay_seconds == 0.25
    assert config.retry_base_delay_seconds == 0.1
    assert config.dead_letter_path == "/tmp/dead.jsonl"
    assert config.mongodb_uri == "mongodb://db:27017"


def test_from_env_rejects_zero_concurrency() -> None:
    with patch.dict("os.environ", {"DETAIL_FETCH_CONCURRENCY": "0"}, clear=True):
        with pytest.raises(RuntimeError, match="concurrency"):
            CrawlConfig.from_env()


def test_with_overrides_ignores_none() -> None:
    config = CrawlConfig().with_overrides(max_pages=None, catalog_url="https://example.test/busca")

    assert config.max_pages == 10
    assert config.catalog_url == "https://example.test/busca"


def test_with_overrides_validates() -> None:
    with pytest.raises(RuntimeError, match="max_pages"):
        CrawlConfig().with_overrides(max_pages=0)
