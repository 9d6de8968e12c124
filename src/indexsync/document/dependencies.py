"""Discovery of documents whose indexed attributes depend on another record."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Union

from indexsync.document.fetcher import DocumentChunkFetcher, DocumentFetcher
from indexsync.hooks import UPDATE_DEPENDENTS
from indexsync.models import Record
from indexsync.store.base import RecordList, RelationList, UnsavedRelationList

if TYPE_CHECKING:
    from indexsync.document.document import RecordDocument
    from indexsync.services import SearchServices

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ToManyShape:
    """The field is read through a to-many relation of ``element_type``."""

    element_type: str


@dataclass(slots=True, frozen=True)
class ToOneShape:
    """The field is read through a single related record of ``target_type``."""

    target_type: str


DependencyShape = Union[ToManyShape, ToOneShape]


def dependency_shape(dependency: object) -> Optional[DependencyShape]:
    """Classify a field dependency; ``None`` for values read off the record itself."""
    if isinstance(dependency, (RelationList, UnsavedRelationList)):
        return ToManyShape(dependency.element_type)
    if isinstance(dependency, Record):
        return ToOneShape(dependency.type_name)
    return None


class DependencyTracker:
    """Finds every configured document that reads data from a given record.

    Each candidate type is first checked against a prototype (unsaved)
    record to learn the relation shape of every field. Only when the shape
    could reach the origin record are real records scanned, batch by batch.
    """

    def __init__(self, services: "SearchServices", *, batch_size: Optional[int] = None) -> None:
        self.services = services
        self.batch_size = batch_size or services.configuration.batch_size

    def dependent_documents(self, document: "RecordDocument") -> List["RecordDocument"]:
        from indexsync.document.document import RecordDocument

        origin = document.record
        # a removed record has nothing left to compare against
        if origin is None:
            return []

        schema = self.services.schema
        configuration = self.services.configuration
        docs: Dict[str, RecordDocument] = {}

        for type_name in configuration.get_searchable_classes():
            if not schema.has_type(type_name) or not schema.has_search_extension(type_name):
                LOGGER.debug("Skipping dependency scan of unknown type %s", type_name)
                continue

            prototype = RecordDocument(schema.create(type_name), self.services)
            fields = configuration.get_fields_for_class(type_name) or []
            chunker = DocumentChunkFetcher(
                DocumentFetcher(self.services, type_name), batch_size=self.batch_size
            )

            for field in fields:
                shape = dependency_shape(prototype.field_dependency(field))
                if shape is None:
                    continue

                if isinstance(shape, ToManyShape):
                    related_type = shape.element_type
                else:
                    related_type = shape.target_type

                # prune relations that can never point at the origin's type
                if not schema.are_related(related_type, origin.type_name):
                    continue

                LOGGER.debug(
                    "Scanning %s.%s for records depending on %r",
                    type_name,
                    field.search_field_name,
                    origin,
                )
                for candidate in chunker.chunk():
                    if self._depends_on(candidate.field_dependency(field), shape, origin):
                        docs.setdefault(candidate.identifier(), candidate)

        dependents = list(docs.values())
        self.services.hooks.invoke(
            UPDATE_DEPENDENTS, schema.ancestry(origin.type_name), document, dependents
        )
        return dependents

    def _depends_on(self, dependency: object, shape: DependencyShape, origin: Record) -> bool:
        schema = self.services.schema
        if isinstance(shape, ToManyShape):
            # the prototype saw a list but this record may not
            if not isinstance(dependency, RecordList):
                return False
            if schema.base_type(dependency.element_type) != schema.base_type(origin.type_name):
                return False
            return dependency.contains(origin.id)

        if not isinstance(dependency, Record) or not schema.is_subtype(
            dependency.type_name, shape.target_type
        ):
            return False
        if schema.base_type(dependency.type_name) != schema.base_type(origin.type_name):
            return False
        return dependency.exists() and dependency.id == origin.id
