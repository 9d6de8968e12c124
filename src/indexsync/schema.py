"""Record type registry with a precomputed ancestor chain table."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from indexsync.models import Record, RecordType

SEARCH_EXTENSION_FIELDS = {"SearchIndexed": "Datetime", "ShowInSearch": "Boolean"}
SEARCH_EXTENSION_DEFAULTS = {"ShowInSearch": True}
IMPLICIT_FIELDS = {"ID": "Int", "ClassName": "Varchar"}


class Schema:
    """Field schema introspection over a fixed set of record types.

    The ancestor chain of every type is computed once on construction;
    lookups never walk parent pointers afterwards.
    """

    def __init__(self, types: Iterable[RecordType]) -> None:
        self._types: Dict[str, RecordType] = {}
        for record_type in types:
            if record_type.name in self._types:
                raise ValueError(f"Duplicate record type: {record_type.name}")
            self._types[record_type.name] = record_type

        self._ancestry: Dict[str, Tuple[str, ...]] = {
            name: self._build_chain(name) for name in self._types
        }
        self._db_fields = {name: self._merge(name, "db") for name in self._types}
        self._has_one = {name: self._merge(name, "has_one") for name in self._types}
        self._has_many = {name: self._merge(name, "has_many") for name in self._types}
        self._many_many = {name: self._merge(name, "many_many") for name in self._types}
        self._getters = {name: self._merge(name, "getters") for name in self._types}

        for name in self._types:
            fields = dict(IMPLICIT_FIELDS)
            if self.has_search_extension(name):
                fields.update(SEARCH_EXTENSION_FIELDS)
            fields.update(self._db_fields[name])
            self._db_fields[name] = fields

    def _build_chain(self, name: str) -> Tuple[str, ...]:
        chain = []
        current: Optional[str] = name
        while current is not None:
            if current in chain:
                raise ValueError(f"Cyclic type hierarchy at {current}")
            if current not in self._types:
                raise ValueError(f"Unknown parent type {current!r} for {name}")
            chain.append(current)
            current = self._types[current].parent
        return tuple(chain)

    def _merge(self, name: str, attribute: str) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        # base first so subclasses override
        for ancestor in reversed(self._ancestry[name]):
            merged.update(getattr(self._types[ancestor], attribute))
        return merged

    @property
    def type_names(self) -> Tuple[str, ...]:
        return tuple(self._types)

    def has_type(self, name: str) -> bool:
        return name in self._types

    def get(self, name: str) -> RecordType:
        try:
            return self._types[name]
        except KeyError:
            raise ValueError(f"Unknown record type: {name}") from None

    def ancestry(self, name: str) -> Tuple[str, ...]:
        """Return the chain from ``name`` up to its base type."""
        self.get(name)
        return self._ancestry[name]

    def base_type(self, name: str) -> str:
        return self.ancestry(name)[-1]

    def is_subtype(self, name: str, ancestor: str) -> bool:
        if name not in self._types:
            return False
        return ancestor in self._ancestry[name]

    def are_related(self, first: str, second: str) -> bool:
        """True when either type is an ancestor of the other."""
        return self.is_subtype(first, second) or self.is_subtype(second, first)

    def subtypes(self, name: str) -> Tuple[str, ...]:
        self.get(name)
        return tuple(candidate for candidate, chain in self._ancestry.items() if name in chain)

    def db_fields(self, name: str) -> Dict[str, str]:
        self.get(name)
        return self._db_fields[name]

    def has_field(self, name: str, field_name: str) -> bool:
        return field_name in self.db_fields(name)

    def has_one(self, name: str) -> Dict[str, str]:
        self.get(name)
        return self._has_one[name]

    def has_many(self, name: str) -> Dict[str, str]:
        self.get(name)
        return self._has_many[name]

    def many_many(self, name: str) -> Dict[str, str]:
        self.get(name)
        return self._many_many[name]

    def to_many(self, name: str) -> Dict[str, str]:
        return {**self.has_many(name), **self.many_many(name)}

    def getters(self, name: str) -> Dict[str, Callable[[Record], Any]]:
        self.get(name)
        return self._getters[name]

    def relation_target(self, name: str, relation: str) -> Optional[str]:
        return self.has_one(name).get(relation) or self.to_many(name).get(relation)

    def is_versioned(self, name: str) -> bool:
        return any(self._types[ancestor].versioned for ancestor in self.ancestry(name))

    def has_search_extension(self, name: str) -> bool:
        return self._types[self.base_type(name)].searchable

    def can_view(self, name: str) -> Optional[Callable[..., bool]]:
        for ancestor in self.ancestry(name):
            if self._types[ancestor].can_view is not None:
                return self._types[ancestor].can_view
        return None

    def defaults(self, type_name: str) -> Dict[str, Any]:
        self.get(type_name)
        return dict(SEARCH_EXTENSION_DEFAULTS) if self.has_search_extension(type_name) else {}

    def apply_defaults(self, record: Record) -> Record:
        """Fill in default values for fields the record does not set."""
        for name, value in self.defaults(record.type_name).items():
            record.values.setdefault(name, value)
        return record

    def create(self, type_name: str, **values: Any) -> Record:
        """Build an unsaved record with defaults applied."""
        return self.apply_defaults(Record(type_name=type_name, values=dict(values)))


def schema_from_dict(data: Mapping[str, Any]) -> Schema:
    """Build a schema from the ``types:`` section of the config file."""
    types = []
    for name, spec in (data or {}).items():
        spec = spec or {}
        types.append(
            RecordType(
                name=name,
                parent=spec.get("parent"),
                db=dict(spec.get("db") or {}),
                has_one=dict(spec.get("has_one") or {}),
                has_many=dict(spec.get("has_many") or {}),
                many_many=dict(spec.get("many_many") or {}),
                versioned=bool(spec.get("versioned", False)),
                searchable=bool(spec.get("searchable", True)),
            )
        )
    return Schema(types)
