"""Translate storage events into index additions and removals."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from indexsync.document.document import RecordDocument
from indexsync.index.indexer import Indexer, IndexStats
from indexsync.models import Record

if TYPE_CHECKING:
    from indexsync.services import SearchServices

LOGGER = logging.getLogger(__name__)


class RecordLifecycle:
    """Store listener keeping the search index in sync with record changes.

    Versioned records are indexed on publish and removed on unpublish;
    unversioned records on write and delete.
    """

    def __init__(self, services: "SearchServices", indexer: Indexer | None = None) -> None:
        self.services = services
        self.indexer = indexer or Indexer(services)
        self._configured = False

    def configure_indexes(self) -> bool:
        """Configure the backend once per lifecycle; failures only warn."""
        if self._configured:
            return True
        try:
            self.services.backend.configure()
        except Exception as exc:
            LOGGER.warning("Unable to configure search indexes: %s", exc)
            return False
        self._configured = True
        return True

    def attach(self) -> "RecordLifecycle":
        """Configure the backend and start listening to store events."""
        self.configure_indexes()
        self.services.store.add_listener(self)
        return self

    def add_to_indexes(self, record: Record) -> IndexStats:
        document = RecordDocument(record, self.services)
        return self.indexer.add_documents([document])

    def remove_from_indexes(self, record: Record) -> IndexStats:
        document = RecordDocument(record, self.services).set_fallback_to_latest_version()
        return self.indexer.remove_documents([document])

    def _tracks(self, record: Record, *, versioned: bool) -> bool:
        schema = self.services.schema
        if not schema.has_search_extension(record.type_name):
            return False
        return schema.is_versioned(record.type_name) == versioned

    def on_after_publish(self, record: Record) -> None:
        if self._tracks(record, versioned=True):
            self.add_to_indexes(record)

    def on_after_write(self, record: Record) -> None:
        if self._tracks(record, versioned=False):
            self.add_to_indexes(record)

    def on_after_unpublish(self, record: Record) -> None:
        if self._tracks(record, versioned=True):
            self.remove_from_indexes(record)

    def on_after_delete(self, record: Record) -> None:
        if not self._tracks(record, versioned=False):
            return
        self.remove_from_indexes(record)
