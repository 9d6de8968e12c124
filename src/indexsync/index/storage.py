"""SQLite-backed local search index."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from indexsync.index.backend import is_valid_field_name


class SQLiteDocumentIndex:
    """Stores indexed document payloads as JSON, keyed by document identifier."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

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
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    source_class TEXT,
                    payload TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS documents_updated
                AFTER UPDATE ON documents
                BEGIN
                    UPDATE documents SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
                END;
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_documents_source_class
                    ON documents(source_class)
                """
            )

    def configure(self) -> None:
        """Schema is created on connect; nothing else to provision."""
        self._ensure_schema()

    def validate_field_name(self, name: str) -> bool:
        return is_valid_field_name(name)

    def add_documents(self, payloads: Sequence[Dict[str, Any]]) -> List[str]:
        """Insert or replace payloads; returns the identifiers written."""
        written: List[str] = []
        with self.transaction() as conn:
            for payload in payloads:
                identifier = payload.get("id")
                if not identifier:
                    raise ValueError("Document payload is missing an id")
                encoded = json.dumps(payload, ensure_ascii=False, default=str)
                updated = conn.execute(
                    "UPDATE documents SET source_class = ?, payload = ? WHERE id = ?",
                    (payload.get("source_class"), encoded, identifier),
                ).rowcount
                if not updated:
                    conn.execute(
                        "INSERT INTO documents(id, source_class, payload) VALUES (?, ?, ?)",
                        (identifier, payload.get("source_class"), encoded),
                    )
                written.append(identifier)
        return written

    def remove_documents(self, identifiers: Sequence[str]) -> List[str]:
        """Delete documents; returns the identifiers that existed."""
        removed: List[str] = []
        with self.transaction() as conn:
            for identifier in identifiers:
                cursor = conn.execute("DELETE FROM documents WHERE id = ?", (identifier,))
                if cursor.rowcount > 0:
                    removed.append(identifier)
        return removed

    def get_document(self, identifier: str) -> Optional[Dict[str, Any]]:
        row = self._conn.execute(
            "SELECT payload FROM documents WHERE id = ?", (identifier,)
        ).fetchone()
        return json.loads(row["payload"]) if row else None

    def list_documents(self) -> List[Dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT id, source_class, updated_at FROM documents ORDER BY id"
        ).fetchall()
        return [
            {"id": row["id"], "source_class": row["source_class"], "updated_at": row["updated_at"]}
            for row in rows
        ]

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    def search(self, text: str, *, limit: int = 10) -> List[Dict[str, Any]]:
        """Naive case-insensitive substring match over stored payloads."""
        rows = self._conn.execute(
            """
            SELECT payload FROM documents
            WHERE payload LIKE ? ESCAPE '\\'
            ORDER BY id LIMIT ?
            """,
            (f"%{_escape_like(text)}%", limit),
        ).fetchall()
        return [json.loads(row["payload"]) for row in rows]


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
