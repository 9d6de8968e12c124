"""Declarative search index configuration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from indexsync.hooks import UPDATE_INDEXES, HookRegistry
from indexsync.models import FieldDefinition
from indexsync.schema import Schema

if TYPE_CHECKING:
    from indexsync.document.document import RecordDocument

LOGGER = logging.getLogger(__name__)


class FieldSettings(BaseModel):
    property: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)


class ClassSettings(BaseModel):
    enabled: bool = True
    fields: Dict[str, Union[bool, FieldSettings]] = Field(default_factory=dict)


class IndexSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True
    include_classes: Dict[str, Union[bool, ClassSettings]] = Field(
        default_factory=dict, alias="includeClasses"
    )
    subsite_id: Optional[Union[int, str]] = None

    def class_settings(self, type_name: str) -> Optional[ClassSettings]:
        entry = self.include_classes.get(type_name)
        if entry is None or entry is False:
            return None
        if entry is True:
            return ClassSettings()
        return entry if entry.enabled else None


class CrawlerSettings(BaseModel):
    base_url: Optional[str] = None
    content_tag: str = "main"
    timeout: float = 10.0


class SearchSettings(BaseModel):
    """The ``search:`` section of the configuration file."""

    enabled: bool = True
    crawl_page_content: bool = False
    include_page_html: bool = False
    batch_size: int = 100
    auto_dependency_tracking: bool = True
    record_id_field: str = "record_id"
    base_class_field: str = "record_base_class"
    page_content_field: str = "page_content"
    subsites: bool = False
    crawler: CrawlerSettings = Field(default_factory=CrawlerSettings)
    indexes: Dict[str, IndexSettings] = Field(default_factory=dict)


class IndexConfiguration:
    """Answers which indexes and fields apply to a record type."""

    def __init__(self, settings: SearchSettings, schema: Schema) -> None:
        self.settings = settings
        self.schema = schema

    def is_enabled(self) -> bool:
        return self.settings.enabled

    def should_crawl_page_content(self) -> bool:
        return self.settings.crawl_page_content

    def should_include_page_html(self) -> bool:
        return self.settings.include_page_html

    def should_track_dependencies(self) -> bool:
        return self.settings.auto_dependency_tracking

    @property
    def batch_size(self) -> int:
        return max(1, self.settings.batch_size)

    @property
    def record_id_field(self) -> str:
        return self.settings.record_id_field

    @property
    def base_class_field(self) -> str:
        return self.settings.base_class_field

    @property
    def page_content_field(self) -> str:
        return self.settings.page_content_field

    @property
    def indexes(self) -> Dict[str, IndexSettings]:
        return {name: index for name, index in self.settings.indexes.items() if index.enabled}

    def get_indexes_for_class_name(self, type_name: str) -> Dict[str, IndexSettings]:
        """Indexes that include the type itself or one of its ancestors."""
        matches: Dict[str, IndexSettings] = {}
        for name, index in self.indexes.items():
            for candidate in index.include_classes:
                if index.class_settings(candidate) is None:
                    continue
                if self.schema.is_subtype(type_name, candidate):
                    matches[name] = index
                    break
        return matches

    def get_indexes_for_document(
        self, document: "RecordDocument", hooks: Optional[HookRegistry] = None
    ) -> Dict[str, IndexSettings]:
        indexes = self.get_indexes_for_class_name(document.source_type())
        if hooks is not None and indexes:
            hooks.invoke(
                UPDATE_INDEXES, self.schema.ancestry(document.source_type()), document, indexes
            )
        return indexes

    def get_searchable_classes(self) -> List[str]:
        classes: List[str] = []
        for index in self.indexes.values():
            for candidate in index.include_classes:
                if index.class_settings(candidate) is not None and candidate not in classes:
                    classes.append(candidate)
        return classes

    def get_searchable_base_classes(self) -> List[str]:
        bases: List[str] = []
        for candidate in self.get_searchable_classes():
            if not self.schema.has_type(candidate):
                LOGGER.warning("Configured type %s is not declared in the schema", candidate)
                continue
            base = self.schema.base_type(candidate)
            if base not in bases:
                bases.append(base)
        return bases

    def get_fields_for_class(self, type_name: str) -> Optional[List[FieldDefinition]]:
        """Fields declared for exactly this type, or None if it is not declared."""
        fields: Optional[List[FieldDefinition]] = None
        seen = set()
        for index in self.indexes.values():
            class_settings = index.class_settings(type_name)
            if class_settings is None:
                continue
            if fields is None:
                fields = []
            for search_field_name, spec in class_settings.fields.items():
                if spec is False or search_field_name in seen:
                    continue
                seen.add(search_field_name)
                if isinstance(spec, FieldSettings):
                    fields.append(
                        FieldDefinition(search_field_name, spec.property, dict(spec.options))
                    )
                else:
                    fields.append(FieldDefinition(search_field_name))
        return fields
