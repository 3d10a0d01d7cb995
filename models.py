"""Shared typed models for the legislation crawler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class SearchResultItem:
    """One entry of a search results page. ``url`` is the identity."""

    url: str
    search_result_title: str = ""
    search_result_description: str = ""
    search_result_status: str = ""


@dataclass(slots=True)
class DetailRecord:
    """Fields parsed from a legislation detail page (all optional but url)."""

    url: str
    title: str | None = None
    abstract: str | None = None
    original_text_url: str | None = None
    original_text: str | None = None
    source_proposal: str | None = None
    origin: str | None = None
    status: str | None = None
    subject_tags: list[str] | None = None


# Fields a record may carry from an earlier run that a newer outcome supersedes.
_FAILURE_FIELDS = ("fetch_error", "last_attempted_at")


@dataclass(slots=True)
class LegislationRecord:
    """Persisted unit: search summary merged with detail fields."""

    url: str
    search_result_title: str | None = None
    search_result_description: str | None = None
    search_result_status: str | None = None
    title: str | None = None
    abstract: str | None = None
    original_text_url: str | None = None
    original_text: str | None = None
    source_proposal: str | None = None
    origin: str | None = None
    status: str | None = None
    subject_tags: list[str] | None = None
    last_fetched_at: datetime | None = None
    fetch_error: bool = False
    last_attempted_at: datetime | None = None

    @classmethod
    def merge(
        cls,
        item: SearchResultItem,
        detail: DetailRecord,
        fetched_at: datetime | None = None,
    ) -> LegislationRecord:
        """Merge a summary item with its detail record.

        Detail ``title`` and ``status`` replace the summary title and status
        when non-empty; the replaced summary field is dropped.
        """
        return cls(
            url=item.url,
            search_result_title=None if detail.title else item.search_result_title,
            search_result_description=item.search_result_description,
            search_result_status=None if detail.status else item.search_result_status,
            title=detail.title,
            abstract=detail.abstract,
            original_text_url=detail.original_text_url,
            original_text=detail.original_text,
            source_proposal=detail.source_proposal,
            origin=detail.origin,
            status=detail.status,
            subject_tags=detail.subject_tags,
            last_fetched_at=fetched_at or datetime.now(UTC),
        )

    @classmethod
    def minimal(cls, item: SearchResultItem, attempted_at: datetime | None = None) -> LegislationRecord:
        """Record kept when the detail page could not be fetched."""
        return cls(
            url=item.url,
            search_result_title=item.search_result_title,
            search_result_description=item.search_result_description,
            search_result_status=item.search_result_status,
            fetch_error=True,
            last_attempted_at=attempted_at or datetime.now(UTC),
        )

    def to_document(self) -> dict[str, Any]:
        """Fields to ``$set`` in the store.

        A failed record only carries summary fields and the failure marker so
        that detail fields from an earlier successful run survive.
        """
        if self.fetch_error:
            return {
                "url": self.url,
                "search_result_title": self.search_result_title,
                "search_result_description": self.search_result_description,
                "search_result_status": self.search_result_status,
                "fetch_error": True,
                "last_attempted_at": self.last_attempted_at,
            }

        doc: dict[str, Any] = {
            "url": self.url,
            "search_result_description": self.search_result_description,
            "title": self.title,
            "abstract": self.abstract,
            "original_text_url": self.original_text_url,
            "original_text": self.original_text,
            "source_proposal": self.source_proposal,
            "origin": self.origin,
            "status": self.status,
            "subject_tags": self.subject_tags,
            "last_fetched_at": self.last_fetched_at,
        }
        if self.search_result_title is not None:
            doc["search_result_title"] = self.search_result_title
        if self.search_result_status is not None:
            doc["search_result_status"] = self.search_result_status
        return doc

    def superseded_fields(self) -> list[str]:
        """Fields to ``$unset`` so a stored document matches this record."""
        if self.fetch_error:
            return []
        fields = list(_FAILURE_FIELDS)
        if self.search_result_title is None:
            fields.append("search_result_title")
        if self.search_result_status is None:
            fields.append("search_result_status")
        return fields


@dataclass(slots=True)
class BulkUpsertResult:
    """Outcome of one unordered bulk upsert."""

    inserted: int = 0
    updated: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class FlushResult:
    """Outcome of one batch flush as seen by the orchestrator.

    A flush may write several slices; ``failed_records`` counts records in
    slices whose every write attempt failed.
    """

    attempted: int = 0
    inserted: int = 0
    updated: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    failed_records: int = 0
    dead_lettered: int = 0

    @property
    def failed(self) -> bool:
        return self.failed_records > 0

    @property
    def persisted(self) -> int:
        return self.attempted - self.failed_records - len(self.errors)

    def absorb(self, other: FlushResult) -> None:
        self.attempted += other.attempted
        self.inserted += other.inserted
        self.updated += other.updated
        self.errors.extend(other.errors)
        self.failed_records += other.failed_records
        self.dead_lettered += other.dead_lettered


class CrawlOutcome(str, Enum):
    """Terminal result of a crawl run."""

    DONE = "done"
    ABORTED = "aborted"


@dataclass(slots=True)
class PaginationState:
    """Traversal position of one crawl run."""

    current_url: str
    page_number: int = 1
    visited: set[str] = field(default_factory=set)


@dataclass(slots=True)
class RunSummary:
    """Counts reported to the caller when a run ends."""

    pages_visited: int = 0
    items_processed: int = 0
    items_failed: int = 0
    records_persisted: int = 0
    persist_errors: int = 0
    outcome: CrawlOutcome = CrawlOutcome.DONE
    reason: str = ""
