"""Wiring of the collaborators every document needs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from indexsync.config import AppConfig, load_config_file
from indexsync.configuration import IndexConfiguration, SearchSettings
from indexsync.crawler import HTTPPageCrawler, PageCrawler
from indexsync.hooks import HookRegistry
from indexsync.index.backend import IndexingBackend
from indexsync.index.storage import SQLiteDocumentIndex
from indexsync.schema import Schema, schema_from_dict
from indexsync.store.base import RecordStore
from indexsync.store.sqlite import SQLiteRecordStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchServices:
    store: RecordStore
    configuration: IndexConfiguration
    backend: IndexingBackend
    crawler: Optional[PageCrawler] = None
    hooks: HookRegistry = field(default_factory=HookRegistry)

    @property
    def schema(self) -> Schema:
        return self.store.schema

    def close(self) -> None:
        for resource in (self.store, self.backend, self.crawler):
            close = getattr(resource, "close", None)
            if close is not None:
                close()


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def build_services(config: AppConfig, base_dir: Optional[Path] = None) -> SearchServices:
    """Open the SQLite store and index described by ``config``."""
    from indexsync.extensions.subsites import register_subsite_support
    from indexsync.lifecycle import RecordLifecycle

    data = load_config_file(config.resolve_config_path(base_dir))
    schema = schema_from_dict(data.get("types") or {})
    settings = SearchSettings.model_validate(data.get("search") or {})
    if config.batch_size:
        settings.batch_size = config.batch_size

    db_path = config.resolve_db_path(base_dir)
    index_path = config.resolve_index_db_path(base_dir)
    _ensure_parent(db_path)
    _ensure_parent(index_path)

    crawler = None
    if settings.crawl_page_content and settings.crawler.base_url:
        crawler = HTTPPageCrawler(
            settings.crawler.base_url,
            content_tag=settings.crawler.content_tag,
            timeout=settings.crawler.timeout,
        )

    services = SearchServices(
        store=SQLiteRecordStore(db_path, schema),
        configuration=IndexConfiguration(settings, schema),
        backend=SQLiteDocumentIndex(index_path),
        crawler=crawler,
    )
    if settings.subsites:
        register_subsite_support(services.hooks)
    RecordLifecycle(services).attach()
    LOGGER.debug("Services ready: records=%s index=%s", db_path, index_path)
    return services
