"""Tests for Indexer."""

from unittest.mock import MagicMock, patch

import pytest

from indexsync.document.document import RecordDocument
from indexsync.errors import InvalidFieldName
from indexsync.index.indexer import DocumentBuilder, Indexer, IndexStats


class TestIndexStats:
    """Test IndexStats tracking."""

    def test_init_defaults(self):
        """Test default initialization."""
        stats = IndexStats()
        assert stats.added == 0
        assert stats.removed == 0
        assert stats.dependents == 0
        assert stats.processed == []

    def test_increment_added(self):
        stats = IndexStats()

        stats.increment("added", "page_1")

        assert stats.added == 1
        assert stats.removed == 0
        assert stats.processed == ["page_1"]

    def test_increment_removed(self):
        stats = IndexStats()

        stats.increment("removed", "page_1")

        assert stats.removed == 1
        assert stats.added == 0
        assert "page_1" in stats.processed


class TestDocumentBuilder:
    """Test DocumentBuilder.to_payload."""

    def test_payload(self, make_record, services):
        """Payload combines identity, meta and attributes."""
        article = make_record("Article", Title="Hello")

        payload = DocumentBuilder.to_payload(RecordDocument(article, services))

        assert payload["id"] == f"article_{article.id}"
        assert payload["source_class"] == "Article"
        assert payload["record_base_class"] == "Article"
        assert payload["record_id"] == article.id
        assert payload["title"] == "Hello"


class TestAddDocuments:
    """Test Indexer.add_documents."""

    def test_adds_indexable_document(self, make_record, services, backend, store):
        article = make_record("Article", Title="Hello")

        stats = Indexer(services).add_documents([RecordDocument(article, services)])

        assert stats.added == 1
        assert backend.get_document(f"article_{article.id}")["title"] == "Hello"
        assert store.get_by_id("Article", article.id).get("SearchIndexed")

    def test_removes_non_indexable_document(self, make_record, services, backend):
        """Documents that should not be indexed are removed instead."""
        page = make_record("Page", Title="Home")
        indexer = Indexer(services)
        indexer.add_documents([RecordDocument(page, services)])
        services.store.unpublish(page)

        stats = indexer.add_documents([RecordDocument(page, services)])

        assert stats.added == 0
        assert stats.removed == 1
        assert backend.get_document(f"page_{page.id}") is None

    def test_indexes_live_version(self, make_record, services, backend, store):
        page = make_record("Page", Title="Live")
        page.values["Title"] = "Draft"
        store.write(page)

        Indexer(services).add_documents([RecordDocument(page, services)])

        assert backend.get_document(f"page_{page.id}")["title"] == "Live"

    def test_each_identifier_once(self, make_record, services):
        article = make_record("Article", Title="Hello")
        document = RecordDocument(article, services)

        with patch.object(services.backend, "add_documents") as add:
            stats = Indexer(services).add_documents([document, RecordDocument(article, services)])

        assert stats.processed == [document.identifier()]
        assert stats.added == 1
        assert len(add.call_args[0][0]) == 1

    def test_reindexes_dependents(self, make_record, services, backend, store):
        """Changing a tag re-indexes the articles that show it."""
        article = make_record("Article", Title="Hello")
        news = make_record("Tag", Title="news")
        store.set_relation(article, "Tags", [news])
        indexer = Indexer(services)
        indexer.add_documents([RecordDocument(article, services)])

        news.values["Title"] = "breaking"
        store.write(news)
        stats = indexer.add_documents([RecordDocument(news, services)])

        assert stats.dependents == 1
        assert stats.added == 1
        assert backend.get_document(f"article_{article.id}")["tags"] == ["breaking"]

    def test_tracking_disabled(self, make_record, services, store):
        article = make_record("Article", Title="Hello")
        news = make_record("Tag", Title="news")
        store.set_relation(article, "Tags", [news])

        stats = Indexer(services).add_documents(
            [RecordDocument(news, services)], track_dependencies=False
        )

        assert stats.dependents == 0
        assert stats.added == 0

    def test_tracking_from_configuration(self, make_record, services, store):
        services.configuration.settings.auto_dependency_tracking = False
        article = make_record("Article", Title="Hello")
        news = make_record("Tag", Title="news")
        store.set_relation(article, "Tags", [news])

        stats = Indexer(services).add_documents([RecordDocument(news, services)])

        assert stats.dependents == 0

    def test_batches(self, make_record, services, caplog):
        """Documents are sent in batches of the configured size."""
        documents = [
            RecordDocument(make_record("Article", Title=str(i)), services) for i in range(5)
        ]
        services.backend = MagicMock(wraps=services.backend)

        with caplog.at_level("INFO"):
            stats = Indexer(services, batch_size=2).add_documents(
                documents, track_dependencies=False
            )

        assert stats.added == 5
        assert services.backend.add_documents.call_count == 3
        assert "Processing batch 3/3" in caplog.text

    def test_configuration_errors_propagate(self, make_record, services):
        article = make_record("Article", Title="Hello")
        services.backend = MagicMock()
        services.backend.validate_field_name.return_value = False

        with pytest.raises(InvalidFieldName):
            Indexer(services).add_documents([RecordDocument(article, services)])

        services.backend.add_documents.assert_not_called()


class TestRemoveDocuments:
    """Test Indexer.remove_documents."""

    def test_removes(self, make_record, services, backend, store):
        article = make_record("Article", Title="Hello")
        indexer = Indexer(services)
        indexer.add_documents([RecordDocument(article, services)])

        stats = indexer.remove_documents([RecordDocument(article, services)])

        assert stats.removed == 1
        assert backend.count() == 0
        assert store.get_by_id("Article", article.id).get("SearchIndexed") is None

    def test_absent_document(self, services, backend):
        backend.add_documents([{"id": "tag_7"}])
        document = RecordDocument(None, services, identifier="tag_7", source_type="Tag")

        stats = Indexer(services).remove_documents([document])

        assert stats.removed == 1
        assert backend.count() == 0

    def test_reindexes_dependents_of_removed(self, make_record, services, backend, store):
        """Deleting a tag refreshes the articles that referenced it."""
        article = make_record("Article", Title="Hello")
        news = make_record("Tag", Title="news")
        sport = make_record("Tag", Title="sport")
        store.set_relation(article, "Tags", [news, sport])
        indexer = Indexer(services)
        indexer.add_documents([RecordDocument(article, services)])
        results = []
        listener = MagicMock(spec=["on_after_delete"])
        listener.on_after_delete.side_effect = lambda record: results.append(
            indexer.remove_documents([RecordDocument(record, services)])
        )
        store.add_listener(listener)

        store.delete(news)

        (stats,) = results
        assert stats.removed == 1
        assert stats.dependents == 1
        assert backend.get_document(f"article_{article.id}")["tags"] == ["sport"]


class TestReindex:
    """Test Indexer.reindex."""

    def test_reindex_all(self, make_record, services, backend):
        for i in range(3):
            make_record("Article", Title=str(i))
        make_record("Page", Title="Published")
        make_record("Page", publish=False, Title="Draft")
        make_record("File", Name="hidden.pdf", ShowInSearch=False)
        make_record("Tag", Title="not configured")

        stats = Indexer(services).reindex()

        assert stats.added == 4
        assert stats.removed == 2
        assert stats.dependents == 0
        assert backend.count() == 4

    def test_reindex_selected_types(self, make_record, services, backend):
        make_record("Article", Title="a")
        make_record("Page", Title="p")

        stats = Indexer(services).reindex(["Page"])

        assert stats.added == 1
        assert [doc["id"] for doc in backend.list_documents()] == ["page_1"]

    def test_reindex_skips_dependency_tracking(self, make_record, services):
        make_record("Article", Title="a")

        with patch.object(RecordDocument, "dependent_documents") as dependents:
            Indexer(services).reindex()

        dependents.assert_not_called()
