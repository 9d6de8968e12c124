"""FastAPI application exposing document inspection and indexing."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from fastapi import FastAPI, HTTPException

from indexsync.config import AppConfig
from indexsync.document.document import RecordDocument
from indexsync.errors import IndexConfigurationError, RecordNotFound
from indexsync.index.indexer import Indexer, IndexStats
from indexsync.services import SearchServices, build_services

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="IndexSync", version="0.1.0")


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@contextmanager
def _open_services(
    db: Path | None, index_db: Path | None, config: Path | None
) -> Iterator[SearchServices]:
    services = build_services(
        AppConfig(db_path=db, index_db_path=index_db, config_path=config), Path.cwd()
    )
    try:
        yield services
    finally:
        services.close()


def _document_for(services: SearchServices, type_name: str, record_id: int) -> RecordDocument:
    if not services.schema.has_type(type_name):
        raise HTTPException(status_code=404, detail=f"Unknown record type: {type_name}")
    record = services.store.get_by_id(type_name, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{type_name} #{record_id} not found")
    return RecordDocument(record, services)


def _stats_dict(stats: IndexStats) -> dict[str, Any]:
    return {
        "added": stats.added,
        "removed": stats.removed,
        "dependents": stats.dependents,
        "processed": stats.processed,
    }


@app.get("/documents/{type_name}/{record_id}")
async def get_document(
    type_name: str,
    record_id: int,
    db: Path | None = None,
    index_db: Path | None = None,
    config: Path | None = None,
) -> dict[str, Any]:
    """Show the identifier, meta and attributes a record would be indexed with."""
    with _open_services(db, index_db, config) as services:
        document = _document_for(services, type_name, record_id)
        try:
            attributes = document.attributes()
        except RecordNotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except IndexConfigurationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

        return {
            "identifier": document.identifier(),
            "source_type": document.source_type(),
            "should_index": document.should_index(),
            "meta": document.meta(),
            "attributes": attributes,
        }


@app.get("/documents/{type_name}/{record_id}/dependents")
async def get_dependents(
    type_name: str,
    record_id: int,
    db: Path | None = None,
    index_db: Path | None = None,
    config: Path | None = None,
) -> dict[str, Any]:
    with _open_services(db, index_db, config) as services:
        document = _document_for(services, type_name, record_id)
        try:
            dependents = document.dependent_documents()
        except IndexConfigurationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"dependents": [dependent.identifier() for dependent in dependents]}


@app.post("/documents/{type_name}/{record_id}/index")
async def index_document(
    type_name: str,
    record_id: int,
    db: Path | None = None,
    index_db: Path | None = None,
    config: Path | None = None,
) -> dict[str, Any]:
    """Add a record to the index, or remove it when it should not be indexed."""
    with _open_services(db, index_db, config) as services:
        document = _document_for(services, type_name, record_id)
        try:
            stats = Indexer(services).add_documents([document])
        except IndexConfigurationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    LOGGER.info("Indexed %s via API", document.identifier())
    return {"status": "ok", "stats": _stats_dict(stats)}


@app.delete("/documents/{type_name}/{record_id}")
async def remove_document(
    type_name: str,
    record_id: int,
    db: Path | None = None,
    index_db: Path | None = None,
    config: Path | None = None,
) -> dict[str, Any]:
    with _open_services(db, index_db, config) as services:
        document = _document_for(services, type_name, record_id)
        document.set_fallback_to_latest_version()
        try:
            stats = Indexer(services).remove_documents([document])
        except IndexConfigurationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"status": "ok", "stats": _stats_dict(stats)}


@app.get("/search")
async def search_documents(
    q: str,
    limit: int = 10,
    db: Path | None = None,
    index_db: Path | None = None,
    config: Path | None = None,
) -> dict[str, Any]:
    query = q.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")
    with _open_services(db, index_db, config) as services:
        search = getattr(services.backend, "search", None)
        if search is None:
            raise HTTPException(status_code=501, detail="The configured backend cannot search")
        return {"results": search(query, limit=max(1, min(limit, 50)))}
