"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from indexsync.config import AppConfig, load_config_file


class TestAppConfig:
    """Test AppConfig dataclass."""

    def test_default_paths(self) -> None:
        """Should fill every path with a default file name."""
        config = AppConfig()

        assert config.db_path.name == "records.db"
        assert config.index_db_path.name == "search_index.db"
        assert config.config_path.name == "indexsync.yml"
        assert config.batch_size is None

    def test_custom_config(self) -> None:
        """Should keep explicitly provided values."""
        config = AppConfig(
            db_path=Path("/custom/records.db"),
            index_db_path=Path("/custom/index.db"),
            config_path=Path("/custom/conf.yml"),
            batch_size=25,
        )

        assert config.db_path == Path("/custom/records.db")
        assert config.index_db_path == Path("/custom/index.db")
        assert config.config_path == Path("/custom/conf.yml")
        assert config.batch_size == 25

    def test_resolve_absolute_path(self) -> None:
        """Should return absolute paths as-is."""
        config = AppConfig(db_path=Path("/absolute/records.db"))

        assert config.resolve_db_path(Path("/elsewhere")) == Path("/absolute/records.db")

    def test_resolve_relative_without_base(self) -> None:
        """Should return the relative path when no base_dir is given."""
        config = AppConfig(index_db_path=Path("relative/index.db"))

        assert config.resolve_index_db_path() == Path("relative/index.db")

    def test_resolve_relative_with_base(self, tmp_path: Path) -> None:
        """Should join relative paths onto base_dir."""
        config = AppConfig(config_path=Path("conf/indexsync.yml"))

        assert config.resolve_config_path(tmp_path) == tmp_path / "conf" / "indexsync.yml"


class TestLoadConfigFile:
    """Test reading the YAML configuration file."""

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file yields an empty mapping."""
        assert load_config_file(tmp_path / "missing.yml") == {}

    def test_empty_file(self, tmp_path: Path) -> None:
        """An empty file yields an empty mapping."""
        path = tmp_path / "empty.yml"
        path.write_text("", encoding="utf-8")

        assert load_config_file(path) == {}

    def test_reads_sections(self, tmp_path: Path) -> None:
        """Should parse the types and search sections."""
        path = tmp_path / "indexsync.yml"
        path.write_text(
            "types:\n"
            "  Page:\n"
            "    versioned: true\n"
            "    db: {Title: Varchar}\n"
            "search:\n"
            "  batch_size: 10\n",
            encoding="utf-8",
        )

        data = load_config_file(path)

        assert data["types"]["Page"]["versioned"] is True
        assert data["types"]["Page"]["db"] == {"Title": "Varchar"}
        assert data["search"]["batch_size"] == 10

    def test_rejects_non_mapping(self, tmp_path: Path) -> None:
        """A top-level list is not a valid configuration."""
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="must contain a mapping"):
            load_config_file(path)
