"""Resolution of field names and dotted property paths against a record graph."""

from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple

from indexsync.errors import UnresolvablePath
from indexsync.models import DBField, Record
from indexsync.store.base import RecordList, RecordStore

Resolution = Tuple[Any, Any]


class FieldResolver:
    """Walks paths starting at ``origin``.

    Every resolution yields ``(dependency, value)`` where ``dependency`` is the
    relation list or related record the value was read through, or ``None``
    when it was read directly off the origin record.
    """

    def __init__(self, store: RecordStore, origin: Record) -> None:
        self.store = store
        self.schema = store.schema
        self.origin = origin

    def resolve(self, path: Sequence[str], context: Any = None) -> Resolution:
        subject = self.origin if context is None else context
        return self._walk(list(path), subject)

    def _walk(self, path: list, subject: Any) -> Resolution:
        segment = path[0] if path else None
        rest = path[1:]

        if isinstance(subject, Record):
            dependency = None if subject is self.origin else subject
            if segment is None:
                return dependency, subject
            result = self.obj(subject, segment)
            if isinstance(result, (Record, RecordList)):
                return self._walk(rest, result)
            return dependency, result

        if isinstance(subject, RecordList):
            if segment is None:
                return subject, subject
            element_type = subject.element_type
            if self.schema.has_field(element_type, segment):
                return subject, subject.column(segment)
            if self.schema.relation_target(element_type, segment) is not None:
                return self._walk(rest, subject.relation(segment))
            raise UnresolvablePath(
                f"Cannot resolve field {segment} on list of class {element_type}"
            )

        raise UnresolvablePath(
            f"Cannot resolve field {segment} on {type(subject).__name__}"
        )

    def obj(self, record: Record, name: str) -> Any:
        """Return the materialized value of ``name`` on ``record``."""
        schema = self.schema
        type_name = record.type_name
        db_fields = schema.db_fields(type_name)
        if name in db_fields:
            return DBField(db_fields[name], record.get(name))
        getters = schema.getters(type_name)
        if name in getters:
            return getters[name](record)
        has_one = schema.has_one(type_name)
        if name in has_one:
            related = self.store.related_one(record, name)
            # an empty relation still exposes the target type
            return related if related is not None else schema.create(has_one[name])
        if name in schema.to_many(type_name):
            return self.store.related_many(record, name)
        raise UnresolvablePath(f"{type_name} has no field or relation {name}")

    def resolve_field(self, name: str) -> Optional[Any]:
        """Resolve a plain field name on the origin record, case-insensitively."""
        subject = self.origin
        type_name = subject.type_name
        schema = self.schema
        if (
            name in schema.db_fields(type_name)
            or name in schema.getters(type_name)
            or name in schema.has_one(type_name)
        ):
            return self.obj(subject, name)

        normal_fields = [
            *schema.db_fields(type_name),
            *schema.getters(type_name),
            *schema.has_many(type_name),
            *schema.many_many(type_name),
        ]
        lookup = {}
        for field_name in normal_fields:
            lookup.setdefault(field_name.lower(), field_name)
        field_name = lookup.get(name.lower())
        return self.obj(subject, field_name) if field_name else None
