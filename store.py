"""Persistent stores for legislation records, keyed by URL."""

from __future__ import annotations

import copy
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from pymongo import ASCENDING, MongoClient, UpdateOne
from pymongo.collection import Collection
from pymongo.errors import BulkWriteError, PyMongoError

from errors import StoreError
from models import BulkUpsertResult, LegislationRecord

LOGGER = logging.getLogger(__name__)

SERVER_SELECTION_TIMEOUT_MS = 10_000


def build_update(record: LegislationRecord, now: datetime) -> dict[str, Any]:
    """Upsert document: replace fields, keep ``created_at`` from first insert."""
    update: dict[str, Any] = {
        "$set": {**record.to_document(), "updated_at": now},
        "$setOnInsert": {"created_at": now},
    }
    superseded = record.superseded_fields()
    if superseded:
        update["$unset"] = {name: "" for name in superseded}
    return update


class MongoLegislationStore:
    """MongoDB collection with a unique index on ``url``."""

    def __init__(self, collection: Collection, client: MongoClient | None = None) -> None:
        self.collection = collection
        self.client = client

    @classmethod
    def connect(cls, uri: str, database: str, collection: str) -> MongoLegislationStore:
        client: MongoClient | None = None
        try:
            client = MongoClient(uri, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS)
            client.admin.command("ping")
        except (PyMongoError, ValueError) as exc:
            if client is not None:
                client.close()
            raise StoreError(f"Could not connect to MongoDB: {exc}") from exc
        LOGGER.info("Connected to MongoDB database=%s collection=%s", database, collection)
        return cls(client[database][collection], client=client)

    def ensure_indexes(self) -> None:
        try:
            self.collection.create_index([("url", ASCENDING)], unique=True)
            self.collection.create_index([("title", ASCENDING), ("abstract", ASCENDING)], sparse=True)
        except PyMongoError as exc:
            raise StoreError(f"Could not ensure indexes: {exc}") from exc
        LOGGER.info("Indexes on url and (title, abstract) ensured")

    def bulk_upsert(self, records: Sequence[LegislationRecord]) -> BulkUpsertResult:
        """Unordered bulk upsert; per-item write errors are returned, not raised.

        Connection-level failures still raise PyMongoError.
        """
        if not records:
            return BulkUpsertResult()

        now = datetime.now(UTC)
        operations = [
            UpdateOne({"url": record.url}, build_update(record, now), upsert=True)
            for record in records
        ]
        try:
            result = self.collection.bulk_write(operations, ordered=False)
        except BulkWriteError as exc:
            details = exc.details or {}
            errors = [
                {
                    "url": records[error["index"]].url,
                    "code": error.get("code"),
                    "message": error.get("errmsg", ""),
                }
                for error in details.get("writeErrors", [])
            ]
            return BulkUpsertResult(
                inserted=details.get("nUpserted", 0),
                updated=details.get("nModified", 0),
                errors=errors,
            )
        return BulkUpsertResult(inserted=result.upserted_count, updated=result.modified_count)

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            LOGGER.info("MongoDB connection closed")


class InMemoryLegislationStore:
    """Dict-backed store with the same upsert semantics, for dry runs."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.closed = False

    def ensure_indexes(self) -> None:
        """Uniqueness on url is implied by the dict key."""

    def bulk_upsert(self, records: Sequence[LegislationRecord]) -> BulkUpsertResult:
        result = BulkUpsertResult()
        now = datetime.now(UTC)
        for record in records:
            update = build_update(record, now)
            existing = self.documents.get(record.url)
            if existing is None:
                doc = {**update["$setOnInsert"], **copy.deepcopy(update["$set"])}
                self.documents[record.url] = doc
                result.inserted += 1
                continue
            existing.update(copy.deepcopy(update["$set"]))
            for name in update.get("$unset", {}):
                existing.pop(name, None)
            result.updated += 1
        return result

    def close(self) -> None:
        self.closed = True
