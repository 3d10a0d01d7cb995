"""Exceptions raised across the crawler."""

from __future__ import annotations


class CrawlError(RuntimeError):
    """Base class for crawler failures."""


class MalformedPageError(CrawlError):
    """A search results page did not have the expected structure."""


class StoreError(CrawlError):
    """The persistent store could not be reached or prepared."""
