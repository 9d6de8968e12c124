"""Bounded-batch iteration over every record of one type."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator, List

if TYPE_CHECKING:
    from indexsync.document.document import RecordDocument
    from indexsync.services import SearchServices


class DocumentFetcher:
    """Loads documents of one record type (and its subtypes) page by page."""

    def __init__(self, services: "SearchServices", type_name: str) -> None:
        self.services = services
        self.type_name = type_name

    def fetch(self, limit: int, after_id: int = 0) -> List["RecordDocument"]:
        from indexsync.document.document import RecordDocument

        records = self.services.store.fetch(self.type_name, limit=limit, after_id=after_id)
        return [RecordDocument(record, self.services) for record in records]

    def total(self) -> int:
        return self.services.store.count(self.type_name)


class DocumentChunkFetcher:
    """Yields documents lazily, holding at most one batch in memory.

    Every call to ``chunk`` starts a fresh pass ordered by record id; the
    cursor is the last id seen so records inserted mid-scan do not shift
    later pages.
    """

    def __init__(self, fetcher: DocumentFetcher, *, batch_size: int = 100) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.fetcher = fetcher
        self.batch_size = batch_size

    def chunk(self) -> Iterator["RecordDocument"]:
        after_id = 0
        while True:
            batch = self.fetcher.fetch(self.batch_size, after_id=after_id)
            if not batch:
                return
            last_id = batch[-1].record.id
            yield from batch
            if len(batch) < self.batch_size:
                return
            after_id = last_id
