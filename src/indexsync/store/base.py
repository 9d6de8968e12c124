"""Record store capability and lazy record collections."""

from __future__ import annotations

from typing import Any, Iterator, List, Optional, Protocol, Sequence

from indexsync.models import Record
from indexsync.schema import Schema

DRAFT = "Stage"
LIVE = "Live"


class RecordStore(Protocol):
    """What the indexing engine needs from the persistence layer."""

    @property
    def schema(self) -> Schema: ...

    def get_by_id(self, type_name: str, record_id: int, stage: str = DRAFT) -> Optional[Record]: ...

    def get_published(self, type_name: str, record_id: int) -> Optional[Record]: ...

    def get_latest_version(self, type_name: str, record_id: int) -> Optional[Record]: ...

    def is_published(self, record: Record) -> bool: ...

    def can_view(self, record: Record) -> bool: ...

    def related_one(self, record: Record, relation: str) -> Optional[Record]: ...

    def related_many(self, record: Record, relation: str) -> "RecordList": ...

    def related_ids(self, record: Record, relation: str) -> List[int]: ...

    def get_many(self, type_name: str, ids: Sequence[int]) -> List[Record]: ...

    def fetch(
        self, type_name: str, *, limit: int, after_id: int = 0, stage: str = DRAFT
    ) -> List[Record]: ...

    def count(self, type_name: str, stage: str = DRAFT) -> int: ...

    def mark_search_indexed(self, record: Record, timestamp: Optional[str]) -> None: ...

    def add_listener(self, listener: Any) -> None: ...


class RecordList:
    """Ordered, lazily loaded list of records of one element type."""

    def __init__(self, store: RecordStore, element_type: str, ids: Sequence[int]) -> None:
        self.store = store
        self.element_type = element_type
        self.ids = list(ids)

    def records(self) -> List[Record]:
        if not self.ids:
            return []
        return self.store.get_many(self.element_type, self.ids)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records())

    def __len__(self) -> int:
        return len(self.records())

    def exists(self) -> bool:
        return bool(self.records())

    def column(self, name: str) -> List[Any]:
        return [record.get(name) for record in self.records()]

    def contains(self, record_id: int) -> bool:
        """Membership by id, independent of whether the member still loads."""
        return bool(self.filter_by_id(record_id).ids)

    def filter_by_id(self, record_id: int) -> "RecordList":
        return RecordList(self.store, self.element_type, [i for i in self.ids if i == record_id])

    def relation(self, name: str) -> "RecordList":
        """Expand a relation of the element type across every element."""
        schema = self.store.schema
        target = schema.relation_target(self.element_type, name)
        if target is None:
            raise ValueError(f"{self.element_type} has no relation {name}")

        ids: List[int] = []
        for record in self.records():
            if name in schema.has_one(self.element_type):
                related = [record.get(f"{name}ID") or 0]
            else:
                related = self.store.related_ids(record, name)
            for related_id in related:
                if related_id and related_id not in ids:
                    ids.append(related_id)
        return RelationList(self.store, target, ids)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.element_type}, {self.ids})"


class RelationList(RecordList):
    """Records reached through a relation of a saved record."""


class UnsavedRelationList(RecordList):
    """Relation of a record that has not been written yet."""

    def __init__(self, store: RecordStore, element_type: str) -> None:
        super().__init__(store, element_type, [])

    def relation(self, name: str) -> "RecordList":
        target = self.store.schema.relation_target(self.element_type, name)
        if target is None:
            raise ValueError(f"{self.element_type} has no relation {name}")
        return UnsavedRelationList(self.store, target)
