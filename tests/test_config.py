"""Tests for gridsheet.yaml configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from gridsheet.project import (
    DEFAULT_CONFIG,
    config_dir_for,
    load_config,
    resolve_log_dir,
)


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config == DEFAULT_CONFIG
        assert config["saved_notice_delay"] == 5.0
        assert config["file_extension"] == ".sprd"
        assert config["spreadsheet_version"] == "ps6"

    def test_overrides_merged(self, tmp_path: Path) -> None:
        (tmp_path / "gridsheet.yaml").write_text("saved_notice_delay: 2\nlog_dir: null\ntheme: dark\n")
        config = load_config(tmp_path)
        assert config["saved_notice_delay"] == 2
        assert config["log_dir"] is None
        assert config["theme"] == "dark"
        assert config["file_extension"] == ".sprd"

    def test_empty_file(self, tmp_path: Path) -> None:
        (tmp_path / "gridsheet.yaml").write_text("")
        assert load_config(tmp_path) == DEFAULT_CONFIG

    @pytest.mark.parametrize(
        "text",
        [
            "saved_notice_delay: soon\n",
            "saved_notice_delay: true\n",
            "saved_notice_delay: -1\n",
            "logging_fsync: 1\n",
            "file_extension: 3\n",
            "- a\n- b\n",
        ],
    )
    def test_invalid(self, tmp_path: Path, text: str) -> None:
        (tmp_path / "gridsheet.yaml").write_text(text)
        with pytest.raises(ValueError):
            load_config(tmp_path)


class TestPaths:
    def test_config_dir_for_document(self, tmp_path: Path) -> None:
        assert config_dir_for(tmp_path / "book.sprd") == tmp_path.resolve()

    def test_config_dir_for_new_document(self, tmp_path: Path) -> None:
        assert config_dir_for(None) == Path.cwd()

    def test_relative_log_dir(self, tmp_path: Path) -> None:
        assert resolve_log_dir(DEFAULT_CONFIG, tmp_path) == tmp_path / ".gridsheet" / "logs"

    def test_absolute_log_dir(self, tmp_path: Path) -> None:
        config = {**DEFAULT_CONFIG, "log_dir": str(tmp_path / "abs")}
        assert resolve_log_dir(config, Path("/elsewhere")) == tmp_path / "abs"

    def test_disabled(self, tmp_path: Path) -> None:
        assert resolve_log_dir({**DEFAULT_CONFIG, "log_dir": None}, tmp_path) is None
