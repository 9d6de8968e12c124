"""Shared fixtures: a small CMS schema, a SQLite record store and index."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from indexsync.configuration import IndexConfiguration, SearchSettings
from indexsync.index.storage import SQLiteDocumentIndex
from indexsync.models import Record, RecordType
from indexsync.schema import Schema
from indexsync.services import SearchServices
from indexsync.store.sqlite import SQLiteRecordStore

SEARCH_CONFIG: dict[str, Any] = {
    "batch_size": 2,
    "indexes": {
        "main": {
            "includeClasses": {
                "Article": {
                    "fields": {
                        "title": True,
                        "tags": {"property": "Tags.Title"},
                        "author_name": {"property": "Author.Name"},
                    }
                },
                "Page": {"fields": {"title": True, "content": True}},
                "File": {"fields": {"name": True}},
            }
        }
    },
}


def build_schema() -> Schema:
    return Schema(
        [
            RecordType(
                "Page",
                db={"Title": "Varchar", "Content": "HTMLText", "Link": "Varchar", "SubsiteID": "Int"},
                versioned=True,
            ),
            RecordType("BlogPage", parent="Page", db={"Summary": "Text"}),
            RecordType(
                "Article",
                db={"Title": "Varchar", "Content": "HTMLText", "SubsiteID": "Int"},
                has_one={"Author": "Member"},
                many_many={"Tags": "Tag"},
                getters={"Keywords": lambda record: record.get("RawKeywords")},
            ),
            RecordType("Tag", db={"Title": "Varchar", "SubsiteID": "Int"}),
            RecordType("Member", db={"Name": "Varchar"}),
            RecordType("File", db={"Name": "Varchar"}, versioned=True),
            RecordType("Setting", db={"Value": "Varchar"}, searchable=False),
        ]
    )


@pytest.fixture
def schema() -> Schema:
    return build_schema()


@pytest.fixture
def store(tmp_path: Path, schema: Schema):
    record_store = SQLiteRecordStore(tmp_path / "records.db", schema)
    yield record_store
    record_store.close()


@pytest.fixture
def backend(tmp_path: Path):
    index = SQLiteDocumentIndex(tmp_path / "search_index.db")
    yield index
    index.close()


@pytest.fixture
def settings() -> SearchSettings:
    return SearchSettings.model_validate(SEARCH_CONFIG)


@pytest.fixture
def services(store, backend, settings, schema) -> SearchServices:
    return SearchServices(
        store=store,
        configuration=IndexConfiguration(settings, schema),
        backend=backend,
    )


@pytest.fixture
def make_record(store, schema) -> Callable[..., Record]:
    """Write a record and, for versioned types, publish it unless told otherwise."""

    def _make(type_name: str, *, publish: bool = True, **values: Any) -> Record:
        record = store.write(schema.create(type_name, **values))
        if publish and schema.is_versioned(type_name):
            store.publish(record)
        return record

    return _make
