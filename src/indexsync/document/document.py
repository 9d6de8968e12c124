"""The indexable wrapper around one record."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from indexsync.configuration import IndexSettings
from indexsync.document.resolver import FieldResolver, Resolution
from indexsync.errors import (
    AmbiguousRelationField,
    InvalidAttributeShape,
    InvalidFieldName,
    NotPublished,
    RecordNotFound,
)
from indexsync.hooks import BEFORE_ATTRIBUTES, CAN_INDEX, UPDATE_ATTRIBUTES
from indexsync.models import (
    AbsentRecordPayload,
    DBField,
    DocumentPayload,
    FieldDefinition,
    PresentRecordPayload,
    Record,
)
from indexsync.store.base import RecordList
from indexsync.utils.text import strip_tags

if TYPE_CHECKING:
    from indexsync.services import SearchServices

LOGGER = logging.getLogger(__name__)

BEFORE_ADD = "before_add"
AFTER_ADD = "after_add"
BEFORE_REMOVE = "before_remove"
AFTER_REMOVE = "after_remove"

SCALAR_TYPES = (str, int, float, bool)

_OMIT = object()


def make_identifier(base_type: str, record_id: int) -> str:
    """Build the search engine id from the base type and record id."""
    type_part = base_type.replace("\\", "_").replace(".", "_")
    return f"{type_part}_{record_id}".lower()


class RecordDocument:
    """Decides whether a record is indexable and builds its attributes.

    The identifier and source type are captured on construction so they
    survive the removal of the backing record.
    """

    def __init__(
        self,
        record: Optional[Record],
        services: "SearchServices",
        *,
        identifier: Optional[str] = None,
        source_type: Optional[str] = None,
    ) -> None:
        self.services = services
        self._record: Optional[Record] = None
        self._identifier = identifier
        self._source_type = source_type
        self.fallback_to_latest_version = False

        if record is None:
            if not identifier or not source_type:
                raise ValueError("A document without a record needs an identifier and source type")
            return

        self.set_record(record)
        self._identifier = self.identifier()
        self._source_type = self.source_type()

    @property
    def record(self) -> Optional[Record]:
        return self._record

    def set_record(self, record: Record) -> "RecordDocument":
        schema = self.services.schema
        if not schema.has_search_extension(record.type_name):
            raise ValueError(f"Record type {record.type_name} does not have the search extension")
        self._record = record
        return self

    def clear_record(self) -> None:
        self._record = None

    def identifier(self) -> str:
        if self._identifier:
            return self._identifier
        record = self._require_record()
        return make_identifier(self.services.schema.base_type(record.type_name), record.id)

    def source_type(self) -> str:
        if self._source_type:
            return self._source_type
        return self._require_record().type_name

    def set_fallback_to_latest_version(self, fallback: bool = True) -> "RecordDocument":
        self.fallback_to_latest_version = fallback
        return self

    def _require_record(self) -> Record:
        if self._record is None:
            raise RecordNotFound(f"Document {self._identifier} has no backing record")
        return self._record

    def _ancestry(self) -> tuple:
        return self.services.schema.ancestry(self.source_type())

    def should_index(self) -> bool:
        record = self._record
        if record is None:
            return False
        store = self.services.store
        schema = self.services.schema

        # anonymous view permission is checked against the live version
        live = store.get_published(record.type_name, record.id)
        if live is None or not store.can_view(live):
            return False

        if schema.has_field(record.type_name, "ShowInSearch") and not record.get("ShowInSearch"):
            return False

        if schema.is_versioned(record.type_name) and not store.is_published(record):
            return False

        configuration = self.services.configuration
        if not configuration.is_enabled():
            return False

        if not self.indexes():
            return False

        results = self.services.hooks.invoke(CAN_INDEX, self._ancestry(), self)
        return not any(result is False for result in results)

    def indexes(self) -> Dict[str, IndexSettings]:
        """Indexes this document belongs to, after the update-indexes hooks ran."""
        return self.services.configuration.get_indexes_for_document(self, self.services.hooks)

    def mark_indexed(self, deleted: bool = False) -> None:
        record = self._require_record()
        if not self.services.schema.has_field(record.type_name, "SearchIndexed"):
            return
        timestamp = None if deleted else datetime.now(timezone.utc).isoformat()
        self.services.store.mark_search_indexed(record, timestamp)

    def attributes(self) -> Dict[str, Any]:
        """Build the map of search field names to values.

        Uses the current record as-is; ``on_add_to_indexes`` swaps in the
        live version before the backend asks for attributes.
        """
        record = self._record
        if record is None or not record.exists():
            raise RecordNotFound(
                f"Unable to index {self.source_type()} with ID "
                f"{record.id if record is not None else 0}: record not found"
            )

        configuration = self.services.configuration
        crawler = self.services.crawler
        attributes: Dict[str, Any] = {}

        if crawler is not None and configuration.should_crawl_page_content():
            content = crawler.get_main_content(record)
            if not configuration.should_include_page_html():
                content = strip_tags(content)
            self._validate_field_name(configuration.page_content_field)
            attributes[configuration.page_content_field] = content

        ancestry = self._ancestry()
        self.services.hooks.invoke(BEFORE_ATTRIBUTES, ancestry, self)

        for field in self.indexed_fields():
            self._validate_field_name(field.search_field_name)
            value = self._coerce(field, self.field_value(field))
            if value is not _OMIT:
                attributes[field.search_field_name] = value

        self.services.hooks.invoke(UPDATE_ATTRIBUTES, ancestry, self, attributes)
        return attributes

    def _validate_field_name(self, name: str) -> None:
        if not self.services.backend.validate_field_name(name):
            raise InvalidFieldName(f"Field name {name!r} is not accepted by the search backend")

    def _coerce(self, field: FieldDefinition, value: Any) -> Any:
        name = field.search_field_name
        if value is None or (isinstance(value, (str, list, tuple, Mapping)) and not value):
            return _OMIT
        if isinstance(value, Mapping):
            raise InvalidAttributeShape(f'Field "{name}" returns an array, but it is associative')
        if isinstance(value, (list, tuple)):
            if not all(isinstance(item, SCALAR_TYPES) for item in value):
                raise InvalidAttributeShape(
                    f'Field "{name}" returns an array, but some of its values are non scalar'
                )
            return list(value)
        if isinstance(value, DBField):
            return value.search_value()
        if isinstance(value, (Record, RecordList)):
            raise AmbiguousRelationField(
                f'Field "{name}" returns a record or relation list. To index fields from '
                f'relationships, use the "property" setting with dot notation for the field '
                f"you want, for instance blogTags: {{property: Tags.Title}}"
            )
        if isinstance(value, SCALAR_TYPES):
            return value
        raise InvalidAttributeShape(f'Field "{name}" returns value that cannot be resolved')

    def meta(self) -> Dict[str, Any]:
        record = self._require_record()
        configuration = self.services.configuration
        return {
            configuration.base_class_field: self.services.schema.base_type(record.type_name),
            configuration.record_id_field: record.id,
        }

    def indexed_fields(self) -> List[FieldDefinition]:
        """Fields of the closest ancestor that declares any; never merged."""
        configuration = self.services.configuration
        for candidate in self._ancestry():
            fields = configuration.get_fields_for_class(candidate)
            if fields is not None:
                return fields
        return []

    def field_dependency(self, field: FieldDefinition) -> Any:
        return self._field_tuple(field)[0]

    def field_value(self, field: FieldDefinition) -> Any:
        return self._field_tuple(field)[1]

    def _field_tuple(self, field: FieldDefinition) -> Resolution:
        resolver = FieldResolver(self.services.store, self._require_record())
        if field.property:
            return resolver.resolve(field.property.split("."))
        return None, resolver.resolve_field(field.search_field_name)

    def dependent_documents(self) -> List["RecordDocument"]:
        from indexsync.document.dependencies import DependencyTracker

        return DependencyTracker(self.services).dependent_documents(self)

    def to_payload(self) -> DocumentPayload:
        record = self._record
        if record is None:
            return AbsentRecordPayload(identifier=self.identifier(), source_type=self.source_type())
        return PresentRecordPayload(
            base_type=self.services.schema.base_type(record.type_name),
            record_id=record.id or record.old_id,
            fallback=self.fallback_to_latest_version,
            identifier=self.identifier(),
            source_type=self.source_type(),
        )

    @classmethod
    def from_payload(cls, payload: DocumentPayload, services: "SearchServices") -> "RecordDocument":
        if isinstance(payload, AbsentRecordPayload):
            return cls(None, services, identifier=payload.identifier, source_type=payload.source_type)

        store = services.store
        record = store.get_by_id(payload.base_type, payload.record_id)
        if record is None and payload.fallback and services.schema.is_versioned(payload.base_type):
            # usually a record that has been deleted since
            record = store.get_latest_version(payload.base_type, payload.record_id)

        if record is None:
            document = cls(
                None, services, identifier=payload.identifier, source_type=payload.source_type
            )
        else:
            document = cls(record, services)
        document.fallback_to_latest_version = payload.fallback
        return document

    def on_add_to_indexes(self, event: str) -> None:
        if event == BEFORE_ADD:
            record = self._record
            live = (
                self.services.store.get_published(record.type_name, record.id)
                if record is not None
                else None
            )
            if live is None:
                # should_index is checked right before this by the indexer
                raise NotPublished("Only published records may be added to the index")
            self.set_record(live)
        elif event == AFTER_ADD:
            self.mark_indexed()

    def on_remove_from_indexes(self, event: str) -> None:
        if event == AFTER_REMOVE and self._record is not None:
            self.mark_indexed(deleted=True)

    def __repr__(self) -> str:
        return f"RecordDocument({self.identifier()})"
