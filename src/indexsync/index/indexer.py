"""Document indexing pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Set

from indexsync.document.document import (
    AFTER_ADD,
    AFTER_REMOVE,
    BEFORE_ADD,
    BEFORE_REMOVE,
    RecordDocument,
)
from indexsync.document.fetcher import DocumentChunkFetcher, DocumentFetcher

if TYPE_CHECKING:
    from indexsync.services import SearchServices

LOGGER = logging.getLogger(__name__)


class DocumentBuilder:
    """Turns a document into the payload sent to the backend."""

    @staticmethod
    def to_payload(document: RecordDocument) -> Dict[str, Any]:
        return {
            "id": document.identifier(),
            "source_class": document.source_type(),
            **document.meta(),
            **document.attributes(),
        }


@dataclass(slots=True)
class IndexStats:
    added: int = 0
    removed: int = 0
    dependents: int = 0
    processed: list[str] = field(default_factory=list)

    def increment(self, status: str, identifier: str) -> None:
        if status == "added":
            self.added += 1
        elif status == "removed":
            self.removed += 1
        self.processed.append(identifier)


class Indexer:
    """Coordinates indexability checks, backend calls and dependency re-indexing."""

    def __init__(self, services: "SearchServices", *, batch_size: Optional[int] = None) -> None:
        self.services = services
        self.batch_size = batch_size or services.configuration.batch_size

    def add_documents(
        self, documents: Sequence[RecordDocument], *, track_dependencies: Optional[bool] = None
    ) -> IndexStats:
        """Index documents that should be indexed and remove the rest."""
        stats = IndexStats()
        seen: Set[str] = set()
        self._process(documents, stats, seen, track_dependencies, remove=False)
        return stats

    def remove_documents(
        self, documents: Sequence[RecordDocument], *, track_dependencies: Optional[bool] = None
    ) -> IndexStats:
        """Remove documents and re-index whatever depended on them."""
        stats = IndexStats()
        seen: Set[str] = set()
        self._process(documents, stats, seen, track_dependencies, remove=True)
        return stats

    def reindex(self, type_names: Optional[Iterable[str]] = None) -> IndexStats:
        """Walk every record of the searchable base types in batches."""
        configuration = self.services.configuration
        targets = list(type_names or configuration.get_searchable_base_classes())
        stats = IndexStats()
        seen: Set[str] = set()

        for type_name in targets:
            chunker = DocumentChunkFetcher(
                DocumentFetcher(self.services, type_name), batch_size=self.batch_size
            )
            LOGGER.info("Reindexing %s", type_name)
            batch: List[RecordDocument] = []
            for document in chunker.chunk():
                batch.append(document)
                if len(batch) >= self.batch_size:
                    self._process(batch, stats, seen, False, remove=False)
                    batch = []
            if batch:
                self._process(batch, stats, seen, False, remove=False)
        return stats

    def _process(
        self,
        documents: Sequence[RecordDocument],
        stats: IndexStats,
        seen: Set[str],
        track_dependencies: Optional[bool],
        *,
        remove: bool,
    ) -> None:
        if track_dependencies is None:
            track_dependencies = self.services.configuration.should_track_dependencies()

        pending: List[RecordDocument] = []
        for document in documents:
            identifier = document.identifier()
            if identifier not in seen:
                seen.add(identifier)
                pending.append(document)

        for i in range(0, len(pending), self.batch_size):
            batch = pending[i : i + self.batch_size]
            to_update = [] if remove else [doc for doc in batch if doc.should_index()]
            update_ids = {doc.identifier() for doc in to_update}
            to_remove = [doc for doc in batch if doc.identifier() not in update_ids]

            LOGGER.info(
                "Processing batch %d/%d: %d to add, %d to remove",
                i // self.batch_size + 1,
                (len(pending) + self.batch_size - 1) // self.batch_size,
                len(to_update),
                len(to_remove),
            )
            if to_update:
                self._push(to_update, stats)
            if to_remove:
                self._pull(to_remove, stats)

        if not track_dependencies:
            return

        for document in pending:
            dependents = [
                dep
                for dep in document.dependent_documents()
                if dep.identifier() not in seen and dep.should_index()
            ]
            if not dependents:
                continue
            LOGGER.debug("Re-indexing %d dependents of %s", len(dependents), document.identifier())
            stats.dependents += len(dependents)
            self._process(dependents, stats, seen, track_dependencies, remove=False)

    def _push(self, documents: Sequence[RecordDocument], stats: IndexStats) -> None:
        for document in documents:
            document.on_add_to_indexes(BEFORE_ADD)
        payloads = [DocumentBuilder.to_payload(document) for document in documents]
        self.services.backend.add_documents(payloads)
        for document in documents:
            document.on_add_to_indexes(AFTER_ADD)
            stats.increment("added", document.identifier())

    def _pull(self, documents: Sequence[RecordDocument], stats: IndexStats) -> None:
        for document in documents:
            document.on_remove_from_indexes(BEFORE_REMOVE)
        self.services.backend.remove_documents([document.identifier() for document in documents])
        for document in documents:
            document.on_remove_from_indexes(AFTER_REMOVE)
            stats.increment("removed", document.identifier())
