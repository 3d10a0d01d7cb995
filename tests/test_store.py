from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from pymongo import UpdateOne
from pymongo.errors import BulkWriteError, PyMongoError

from errors import StoreError
from models import DetailRecord, LegislationRecord, SearchResultItem
from store import InMemoryLegislationStore, MongoLegislationStore, build_update

_NOW = datetime(2026, 10, 1, tzinfo=UTC)


def _item(n: int, title: str = "Resumo") -> SearchResultItem:
    return SearchResultItem(url=f"https://www2.camara.leg.br/legin/lei-{n}.html", search_result_title=title)


def _resolved(n: int, title: str = "Lei") -> LegislationRecord:
    return LegislationRecord.merge(_item(n), DetailRecord(url=_item(n).url, title=title), fetched_at=_NOW)


def test_build_update_sets_fields_and_creation_timestamp_on_insert_only() -> None:
    update = build_update(_resolved(1), _NOW)

    assert update["$set"]["title"] == "Lei"
    assert update["$set"]["updated_at"] == _NOW
    assert update["$setOnInsert"] == {"created_at": _NOW}
    assert "search_result_title" in update["$unset"]
    assert "created_at" not in update["$set"]


def test_build_update_for_minimal_record_has_no_unset() -> None:
    update = build_update(LegislationRecord.minimal(_item(1), attempted_at=_NOW), _NOW)

    assert update["$set"]["fetch_error"] is True
    assert "$unset" not in update


def test_in_memory_store_upsert_inserts_then_updates() -> None:
    store = InMemoryLegislationStore()

    first = store.bulk_upsert([_resolved(1), _resolved(2)])
    created_at = store.documents[_item(1).url]["created_at"]
    second = store.bulk_upsert([_resolved(1, title="Lei alterada")])

    assert (first.inserted, first.updated) == (2, 0)
    assert (second.inserted, second.updated) == (0, 1)
    assert len(store.documents) == 2
    assert store.documents[_item(1).url]["title"] == "Lei alterada"
    assert store.documents[_item(1).url]["created_at"] == created_at


def test_in_memory_store_success_clears_earlier_failure_marker() -> None:
    store = InMemoryLegislationStore()
    store.bulk_upsert([LegislationRecord.minimal(_item(1), attempted_at=_NOW)])

    store.bulk_upsert([_resolved(1)])

    doc = store.documents[_item(1).url]
    assert "fetch_error" not in doc
    assert "last_attempted_at" not in doc
    assert "search_result_title" not in doc
    assert doc["title"] == "Lei"


def test_mongo_bulk_upsert_is_unordered_and_keyed_by_url() -> None:
    collection = MagicMock()
    collection.bulk_write.return_value = MagicMock(upserted_count=1, modified_count=1)
    store = MongoLegislationStore(collection)

    result = store.bulk_upsert([_resolved(1), _resolved(2)])

    operations = collection.bulk_write.call_args.args[0]
    assert collection.bulk_write.call_args.kwargs == {"ordered": False}
    assert all(isinstance(op, UpdateOne) for op in operations)
    assert len(operations) == 2
    assert (result.inserted, result.updated, result.errors) == (1, 1, [])


def test_mongo_bulk_upsert_reports_per_item_errors() -> None:
    collection = MagicMock()
    collection.bulk_write.side_effect = BulkWriteError({
        "writeErrors": [{"index": 1, "code": 11000, "errmsg": "E11000 duplicate key"}],
        "nUpserted": 2,
        "nModified": 0,
    })
    store = MongoLegislationStore(collection)

    result = store.bulk_upsert([_resolved(1), _resolved(2), _resolved(3)])

    assert result.inserted == 2
    assert result.errors == [{"url": _item(2).url, "code": 11000, "message": "E11000 duplicate key"}]


def test_mongo_bulk_upsert_skips_empty_batches() -> None:
    collection = MagicMock()
    MongoLegislationStore(collection).bulk_upsert([])
    collection.bulk_write.assert_not_called()


def test_mongo_ensure_indexes_creates_unique_url_index() -> None:
    collection = MagicMock()
    MongoLegislationStore(collection).ensure_indexes()

    first_call = collection.create_index.call_args_list[0]
    assert first_call.args[0] == [("url", 1)]
    assert first_call.kwargs == {"unique": True}


def test_mongo_ensure_indexes_failure_raises_store_error() -> None:
    collection = MagicMock()
    collection.create_index.side_effect = PyMongoError("connection refused")

    with pytest.raises(StoreError, match="indexes"):
        MongoLegislationStore(collection).ensure_indexes()


def test_mongo_connect_failure_raises_store_error_and_closes_client() -> None:
    client = MagicMock()
    client.admin.command.side_effect = PyMongoError("no servers")

    with patch("store.MongoClient", return_value=client):
        with pytest.raises(StoreError, match="connect"):
            MongoLegislationStore.connect("mongodb://localhost:1", "legisfacil", "legislation")

    client.close.assert_called_once()


def test_mongo_connect_with_malformed_uri_raises_store_error() -> None:
    with pytest.raises(StoreError, match="connect"):
        MongoLegislationStore.connect("mongodb://localhost:notaport", "legisfacil", "legislation")


def test_mongo_connect_constructor_error_raises_store_error() -> None:
    with patch("store.MongoClient", side_effect=ValueError("Port contains non-digit characters")):
        with pytest.raises(StoreError, match="non-digit"):
            MongoLegislationStore.connect("mongodb://db:27017", "legisfacil", "legislation")
