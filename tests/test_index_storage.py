"""Tests for SQLiteDocumentIndex and field name rules."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from indexsync.index.backend import MAX_FIELD_NAME_LENGTH, is_valid_field_name
from indexsync.index.storage import SQLiteDocumentIndex


class TestFieldNames:
    """Test is_valid_field_name."""

    @pytest.mark.parametrize("name", ["title", "page_content", "field_2", "a" * MAX_FIELD_NAME_LENGTH])
    def test_valid(self, name: str) -> None:
        assert is_valid_field_name(name)

    @pytest.mark.parametrize(
        "name",
        ["", "Title", "with-dash", "with space", "_private", "external_id", "a" * 65],
    )
    def test_invalid(self, name: str) -> None:
        assert not is_valid_field_name(name)


class TestSQLiteDocumentIndex:
    """Test the local search index."""

    def test_init_creates_database(self, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        assert not db_path.exists()

        index = SQLiteDocumentIndex(db_path)

        assert db_path.exists()
        assert isinstance(index.connection, sqlite3.Connection)
        index.close()

    def test_schema(self, backend) -> None:
        conn = backend.connection
        assert conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='documents'"
        ).fetchone()
        assert conn.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND name='idx_documents_source_class'"
        ).fetchone()

    def test_configure_is_idempotent(self, backend) -> None:
        backend.configure()
        backend.configure()

        assert backend.count() == 0

    def test_add_and_get(self, backend) -> None:
        written = backend.add_documents([{"id": "page_1", "source_class": "Page", "title": "Home"}])

        assert written == ["page_1"]
        assert backend.get_document("page_1") == {
            "id": "page_1",
            "source_class": "Page",
            "title": "Home",
        }

    def test_add_replaces(self, backend) -> None:
        backend.add_documents([{"id": "page_1", "title": "Old"}])
        backend.add_documents([{"id": "page_1", "title": "New"}])

        assert backend.count() == 1
        assert backend.get_document("page_1")["title"] == "New"

    def test_add_requires_id(self, backend) -> None:
        with pytest.raises(ValueError, match="missing an id"):
            backend.add_documents([{"title": "No id"}])

    def test_failed_batch_rolls_back(self, backend) -> None:
        with pytest.raises(ValueError):
            backend.add_documents([{"id": "page_1"}, {"title": "No id"}])

        assert backend.count() == 0

    def test_remove(self, backend) -> None:
        backend.add_documents([{"id": "page_1"}, {"id": "page_2"}])

        removed = backend.remove_documents(["page_1", "page_9"])

        assert removed == ["page_1"]
        assert backend.get_document("page_1") is None
        assert backend.count() == 1

    def test_list_documents(self, backend) -> None:
        backend.add_documents([{"id": "tag_2", "source_class": "Tag"}, {"id": "page_1"}])

        listed = backend.list_documents()

        assert [doc["id"] for doc in listed] == ["page_1", "tag_2"]
        assert listed[1]["source_class"] == "Tag"

    def test_search(self, backend) -> None:
        backend.add_documents(
            [
                {"id": "page_1", "title": "Café opening"},
                {"id": "page_2", "title": "Sports news"},
            ]
        )

        assert [doc["id"] for doc in backend.search("café")] == ["page_1"]
        assert [doc["id"] for doc in backend.search("NEWS")] == ["page_2"]
        assert backend.search("missing") == []

    def test_search_escapes_wildcards(self, backend) -> None:
        backend.add_documents([{"id": "page_1", "title": "100% sure"}, {"id": "page_2", "title": "100 sure"}])

        assert [doc["id"] for doc in backend.search("100%")] == ["page_1"]

    def test_search_limit(self, backend) -> None:
        backend.add_documents([{"id": f"tag_{i}", "title": "same"} for i in range(5)])

        assert len(backend.search("same", limit=2)) == 2
