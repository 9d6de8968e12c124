"""SQLite-backed record store with draft/live stages and version history."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

from indexsync.models import Record
from indexsync.schema import Schema
from indexsync.store.base import DRAFT, LIVE, RecordList, RelationList, UnsavedRelationList

LOGGER = logging.getLogger(__name__)

_EVENTS = ("on_after_write", "on_after_publish", "on_after_unpublish", "on_after_delete")


class SQLiteRecordStore:
    """Persistence layer for records, their relations and versions."""

    def __init__(self, db_path: Path, schema: Schema) -> None:
        self.db_path = Path(db_path)
        self._schema = schema
        self._listeners: list[Any] = []
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    base_type TEXT NOT NULL,
                    id INTEGER NOT NULL,
                    stage TEXT NOT NULL,
                    type_name TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (base_type, id, stage)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS record_versions (
                    base_type TEXT NOT NULL,
                    id INTEGER NOT NULL,
                    version INTEGER NOT NULL,
                    type_name TEXT NOT NULL,
                    data TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (base_type, id, version)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS relations (
                    base_type TEXT NOT NULL,
                    owner_id INTEGER NOT NULL,
                    relation TEXT NOT NULL,
                    target_id INTEGER NOT NULL,
                    sort INTEGER NOT NULL,
                    PRIMARY KEY (base_type, owner_id, relation, target_id)
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_relations_owner
                    ON relations(base_type, owner_id, relation, sort)
                """
            )

    def add_listener(self, listener: Any) -> None:
        """Register an object notified after write/publish/unpublish/delete."""
        self._listeners.append(listener)

    def _notify(self, event: str, record: Record) -> None:
        for listener in self._listeners:
            handler = getattr(listener, event, None)
            if handler is not None:
                handler(record)

    def _stage(self, type_name: str, stage: str) -> str:
        # unversioned records have a single row shared by both stages
        return stage if self._schema.is_versioned(type_name) else DRAFT

    def _row_to_record(self, row: sqlite3.Row) -> Record:
        return Record(
            type_name=row["type_name"],
            id=row["id"],
            values=json.loads(row["data"]),
            version=row["version"],
        )

    def _accepts(self, row: Optional[sqlite3.Row], type_name: str) -> bool:
        return row is not None and self._schema.is_subtype(row["type_name"], type_name)

    # Writes

    def write(self, record: Record) -> Record:
        """Write the draft state of a record and append a version."""
        base = self._schema.base_type(record.type_name)
        self._schema.apply_defaults(record)
        data = json.dumps(record.values, ensure_ascii=True, default=str)
        with self.transaction() as conn:
            if not record.exists():
                next_id = conn.execute(
                    "SELECT COALESCE(MAX(id), 0) + 1 AS next_id FROM record_versions WHERE base_type = ?",
                    (base,),
                ).fetchone()["next_id"]
                record.id = next_id
            record.version = (
                conn.execute(
                    "SELECT COALESCE(MAX(version), 0) AS v FROM record_versions WHERE base_type = ? AND id = ?",
                    (base, record.id),
                ).fetchone()["v"]
                + 1
            )
            conn.execute(
                """
                INSERT OR REPLACE INTO records(base_type, id, stage, type_name, version, data)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (base, record.id, DRAFT, record.type_name, record.version, data),
            )
            conn.execute(
                """
                INSERT INTO record_versions(base_type, id, version, type_name, data)
                VALUES (?, ?, ?, ?, ?)
                """,
                (base, record.id, record.version, record.type_name, data),
            )
        LOGGER.debug("Wrote %r version %d", record, record.version)
        self._notify("on_after_write", record)
        return record

    def publish(self, record: Record) -> None:
        """Copy the draft row of a versioned record to the live stage."""
        if not self._schema.is_versioned(record.type_name):
            raise ValueError(f"{record.type_name} is not versioned")
        base = self._schema.base_type(record.type_name)
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM records WHERE base_type = ? AND id = ? AND stage = ?",
                (base, record.id, DRAFT),
            ).fetchone()
            if row is None:
                raise ValueError(f"Cannot publish unsaved record {record!r}")
            conn.execute(
                """
                INSERT OR REPLACE INTO records(base_type, id, stage, type_name, version, data)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (base, row["id"], LIVE, row["type_name"], row["version"], row["data"]),
            )
        self._notify("on_after_publish", record)

    def unpublish(self, record: Record) -> None:
        base = self._schema.base_type(record.type_name)
        with self.transaction() as conn:
            conn.execute(
                "DELETE FROM records WHERE base_type = ? AND id = ? AND stage = ?",
                (base, record.id, LIVE),
            )
        self._notify("on_after_unpublish", record)

    def delete(self, record: Record) -> None:
        """Delete the draft state; history is kept for latest-version lookups."""
        base = self._schema.base_type(record.type_name)
        with self.transaction() as conn:
            conn.execute(
                "DELETE FROM records WHERE base_type = ? AND id = ? AND stage = ?",
                (base, record.id, DRAFT),
            )
            conn.execute(
                "DELETE FROM relations WHERE base_type = ? AND owner_id = ?",
                (base, record.id),
            )
        self._notify("on_after_delete", record)
        record.old_id = record.id
        record.id = 0

    def set_relation(self, record: Record, relation: str, targets: Sequence[Record]) -> None:
        """Replace the members of a to-many relation, keeping the given order."""
        self._require_to_many(record, relation)
        base = self._schema.base_type(record.type_name)
        with self.transaction() as conn:
            conn.execute(
                "DELETE FROM relations WHERE base_type = ? AND owner_id = ? AND relation = ?",
                (base, record.id, relation),
            )
            for sort, target in enumerate(targets):
                conn.execute(
                    """
                    INSERT OR IGNORE INTO relations(base_type, owner_id, relation, target_id, sort)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (base, record.id, relation, target.id, sort),
                )

    def add_relation(self, record: Record, relation: str, target: Record) -> None:
        ids = self.related_ids(record, relation)
        if target.id not in ids:
            current = self.get_many(self._require_to_many(record, relation), ids)
            self.set_relation(record, relation, [*current, target])

    def remove_relation(self, record: Record, relation: str, target: Record) -> None:
        element_type = self._require_to_many(record, relation)
        current = self.get_many(element_type, self.related_ids(record, relation))
        self.set_relation(record, relation, [r for r in current if r.id != target.id])

    def _require_to_many(self, record: Record, relation: str) -> str:
        if not record.exists():
            raise ValueError(f"Cannot change relation {relation} of unsaved {record!r}")
        element_type = self._schema.to_many(record.type_name).get(relation)
        if element_type is None:
            raise ValueError(f"{record.type_name} has no to-many relation {relation}")
        return element_type

    def mark_search_indexed(self, record: Record, timestamp: Optional[str]) -> None:
        """Set the indexed-at value on every stored stage of the record."""
        base = self._schema.base_type(record.type_name)
        with self.transaction() as conn:
            rows = conn.execute(
                "SELECT stage, data FROM records WHERE base_type = ? AND id = ?",
                (base, record.id),
            ).fetchall()
            for row in rows:
                data = json.loads(row["data"])
                data["SearchIndexed"] = timestamp
                conn.execute(
                    "UPDATE records SET data = ? WHERE base_type = ? AND id = ? AND stage = ?",
                    (json.dumps(data, ensure_ascii=True), base, record.id, row["stage"]),
                )
        record.values["SearchIndexed"] = timestamp

    # Reads

    def get_by_id(self, type_name: str, record_id: int, stage: str = DRAFT) -> Optional[Record]:
        if not record_id:
            return None
        base = self._schema.base_type(type_name)
        row = self._conn.execute(
            "SELECT * FROM records WHERE base_type = ? AND id = ? AND stage = ?",
            (base, record_id, self._stage(type_name, stage)),
        ).fetchone()
        if not self._accepts(row, type_name):
            return None
        return self._row_to_record(row)

    def get_published(self, type_name: str, record_id: int) -> Optional[Record]:
        return self.get_by_id(type_name, record_id, LIVE)

    def get_latest_version(self, type_name: str, record_id: int) -> Optional[Record]:
        base = self._schema.base_type(type_name)
        row = self._conn.execute(
            """
            SELECT * FROM record_versions
            WHERE base_type = ? AND id = ?
            ORDER BY version DESC LIMIT 1
            """,
            (base, record_id),
        ).fetchone()
        if not self._accepts(row, type_name):
            return None
        return self._row_to_record(row)

    def is_published(self, record: Record) -> bool:
        return self.get_published(record.type_name, record.id) is not None

    def can_view(self, record: Record) -> bool:
        check = self._schema.can_view(record.type_name)
        if check is None:
            return True
        return bool(check(record, self))

    def related_one(self, record: Record, relation: str) -> Optional[Record]:
        target = self._schema.has_one(record.type_name).get(relation)
        if target is None:
            raise ValueError(f"{record.type_name} has no has-one relation {relation}")
        return self.get_by_id(target, record.get(f"{relation}ID") or 0)

    def related_ids(self, record: Record, relation: str) -> List[int]:
        if not record.exists():
            return []
        base = self._schema.base_type(record.type_name)
        rows = self._conn.execute(
            """
            SELECT target_id FROM relations
            WHERE base_type = ? AND owner_id = ? AND relation = ?
            ORDER BY sort
            """,
            (base, record.id, relation),
        ).fetchall()
        return [row["target_id"] for row in rows]

    def related_many(self, record: Record, relation: str) -> RecordList:
        element_type = self._schema.to_many(record.type_name).get(relation)
        if element_type is None:
            raise ValueError(f"{record.type_name} has no to-many relation {relation}")
        if not record.exists():
            return UnsavedRelationList(self, element_type)
        return RelationList(self, element_type, self.related_ids(record, relation))

    def get_many(self, type_name: str, ids: Sequence[int]) -> List[Record]:
        """Fetch draft records by id, in the order of ``ids``; missing ids are skipped."""
        if not ids:
            return []
        base = self._schema.base_type(type_name)
        placeholders = ", ".join("?" for _ in ids)
        rows = self._conn.execute(
            f"SELECT * FROM records WHERE base_type = ? AND stage = ? AND id IN ({placeholders})",
            (base, DRAFT, *ids),
        ).fetchall()
        by_id = {row["id"]: row for row in rows if self._accepts(row, type_name)}
        return [self._row_to_record(by_id[i]) for i in ids if i in by_id]

    def fetch(
        self, type_name: str, *, limit: int, after_id: int = 0, stage: str = DRAFT
    ) -> List[Record]:
        """Return up to ``limit`` records of the type (or subtypes) with id > ``after_id``."""
        base = self._schema.base_type(type_name)
        types = self._schema.subtypes(type_name)
        placeholders = ", ".join("?" for _ in types)
        rows = self._conn.execute(
            f"""
            SELECT * FROM records
            WHERE base_type = ? AND stage = ? AND id > ? AND type_name IN ({placeholders})
            ORDER BY id LIMIT ?
            """,
            (base, self._stage(type_name, stage), after_id, *types, limit),
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def count(self, type_name: str, stage: str = DRAFT) -> int:
        base = self._schema.base_type(type_name)
        types = self._schema.subtypes(type_name)
        placeholders = ", ".join("?" for _ in types)
        row = self._conn.execute(
            f"""
            SELECT COUNT(*) AS total FROM records
            WHERE base_type = ? AND stage = ? AND type_name IN ({placeholders})
            """,
            (base, self._stage(type_name, stage), *types),
        ).fetchone()
        return row["total"]
