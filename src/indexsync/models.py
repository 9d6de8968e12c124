"""Core IndexSync data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from indexsync.utils.text import collapse_whitespace, strip_tags


@dataclass(slots=True)
class RecordType:
    """Static metadata describing one record type."""

    name: str
    parent: Optional[str] = None
    db: Dict[str, str] = field(default_factory=dict)
    has_one: Dict[str, str] = field(default_factory=dict)
    has_many: Dict[str, str] = field(default_factory=dict)
    many_many: Dict[str, str] = field(default_factory=dict)
    versioned: bool = False
    searchable: bool = True
    getters: Dict[str, Callable[["Record"], Any]] = field(default_factory=dict)
    can_view: Optional[Callable[..., bool]] = None


@dataclass(slots=True, eq=False)
class Record:
    """A single stored record.

    ``id`` is 0 for unsaved records; after deletion the prior id is kept in
    ``old_id``.
    """

    type_name: str
    id: int = 0
    values: Dict[str, Any] = field(default_factory=dict)
    old_id: int = 0
    version: int = 0

    def exists(self) -> bool:
        return self.id > 0

    def get(self, name: str, default: Any = None) -> Any:
        if name == "ID":
            return self.id
        if name == "ClassName":
            return self.type_name
        return self.values.get(name, default)

    def __repr__(self) -> str:
        return f"Record({self.type_name}#{self.id})"


class DBField:
    """A stored field value together with its declared kind."""

    __slots__ = ("kind", "value")

    def __init__(self, kind: str, value: Any) -> None:
        self.kind = kind
        self.value = value

    def search_value(self) -> Any:
        """Project the value to what is sent to the search backend."""
        value = self.value
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return [_clean(item) if isinstance(item, str) else item for item in value]
        if isinstance(value, str):
            return _clean(value)
        return value

    def __repr__(self) -> str:
        return f"DBField({self.kind}, {self.value!r})"


def _clean(value: str) -> str:
    return collapse_whitespace(strip_tags(value))


@dataclass(slots=True, frozen=True)
class FieldDefinition:
    """Destination attribute and how to derive its value."""

    search_field_name: str
    property: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(slots=True, frozen=True)
class PresentRecordPayload:
    """Serialized document whose record was available."""

    base_type: str
    record_id: int
    fallback: bool
    identifier: str
    source_type: str


@dataclass(slots=True, frozen=True)
class AbsentRecordPayload:
    """Serialized document kept only for removal bookkeeping."""

    identifier: str
    source_type: str


DocumentPayload = Union[PresentRecordPayload, AbsentRecordPayload]


def payload_to_dict(payload: DocumentPayload) -> Dict[str, Any]:
    if isinstance(payload, PresentRecordPayload):
        return {
            "kind": "present",
            "base_type": payload.base_type,
            "record_id": payload.record_id,
            "fallback": payload.fallback,
            "identifier": payload.identifier,
            "source_type": payload.source_type,
        }
    return {
        "kind": "absent",
        "identifier": payload.identifier,
        "source_type": payload.source_type,
    }


def payload_from_dict(data: Dict[str, Any]) -> DocumentPayload:
    kind = data.get("kind")
    if kind == "present":
        return PresentRecordPayload(
            base_type=data["base_type"],
            record_id=int(data["record_id"]),
            fallback=bool(data.get("fallback", False)),
            identifier=data["identifier"],
            source_type=data.get("source_type") or data["base_type"],
        )
    if kind == "absent":
        return AbsentRecordPayload(identifier=data["identifier"], source_type=data["source_type"])
    raise ValueError(f"Unknown document payload kind: {kind!r}")
