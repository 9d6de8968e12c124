"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml


def _get_default_data_dir() -> Path:
    """Prefer a local data/ directory, fall back to the user's Documents folder."""
    local_dir = Path("data")
    if local_dir.exists():
        return local_dir
    return Path.home() / "Documents" / "IndexSync"


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    index_db_path: Path | None = None
    config_path: Path | None = None
    batch_size: int | None = None

    def __post_init__(self) -> None:
        data_dir = _get_default_data_dir()
        if self.db_path is None:
            self.db_path = data_dir / "records.db"
        if self.index_db_path is None:
            self.index_db_path = data_dir / "search_index.db"
        if self.config_path is None:
            self.config_path = data_dir / "indexsync.yml"

    @staticmethod
    def _resolve(path: Path, base_dir: Path | None) -> Path:
        if Path(path).is_absolute() or base_dir is None:
            return Path(path)
        return base_dir / path

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        return self._resolve(self.db_path, base_dir)

    def resolve_index_db_path(self, base_dir: Path | None = None) -> Path:
        return self._resolve(self.index_db_path, base_dir)

    def resolve_config_path(self, base_dir: Path | None = None) -> Path:
        return self._resolve(self.config_path, base_dir)


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read the YAML configuration file; a missing or empty file yields {}."""
    path = Path(path)
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data
