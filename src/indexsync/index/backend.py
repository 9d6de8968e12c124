"""Contract of the search backend documents are pushed to."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Protocol, Sequence

FIELD_NAME_RE = re.compile(r"^[a-z0-9_]+$")
MAX_FIELD_NAME_LENGTH = 64
RESERVED_FIELD_NAMES = frozenset(
    {"external_id", "engine_id", "highlight", "or", "and", "not", "any", "all", "none"}
)


def is_valid_field_name(name: str) -> bool:
    """Lowercase letters, digits and underscores, not reserved, at most 64 chars."""
    if not name or len(name) > MAX_FIELD_NAME_LENGTH:
        return False
    if name.startswith("_") or name in RESERVED_FIELD_NAMES:
        return False
    return bool(FIELD_NAME_RE.match(name))


class IndexingBackend(Protocol):
    def configure(self) -> None: ...

    def validate_field_name(self, name: str) -> bool: ...

    def add_documents(self, payloads: Sequence[Dict[str, Any]]) -> List[str]: ...

    def remove_documents(self, identifiers: Sequence[str]) -> List[str]: ...
