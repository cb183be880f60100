"""Tests for GraphvalSettings: env vars, TOML source, process-wide activation."""

from __future__ import annotations

from pathlib import Path

import pytest

from graphval.config.models import ValidationSettings
from graphval.config.settings import (
    DEFAULT_MAX_DEPTH,
    GraphvalSettings,
    configure,
    get_settings,
    reset_settings,
)
from graphval.exceptions import GraphvalError


class TestGraphvalSettingsDefaults:
    def test_all_defaults(self) -> None:
        settings = GraphvalSettings()
        assert settings.max_depth == DEFAULT_MAX_DEPTH == 32
        assert settings.validate_required_by_declaration is True

    def test_frozen(self) -> None:
        settings = GraphvalSettings()
        with pytest.raises(Exception):
            settings.max_depth = 3  # type: ignore[misc]

    def test_negative_depth_rejected(self) -> None:
        with pytest.raises(Exception):
            GraphvalSettings(max_depth=-1)


class TestEnvSource:
    def test_env_overrides_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GRAPHVAL_MAX_DEPTH", "7")
        monkeypatch.setenv("GRAPHVAL_VALIDATE_REQUIRED_BY_DECLARATION", "false")
        settings = GraphvalSettings()
        assert settings.max_depth == 7
        assert settings.validate_required_by_declaration is False

    def test_init_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GRAPHVAL_MAX_DEPTH", "7")
        assert GraphvalSettings(max_depth=2).max_depth == 2


class TestTomlSource:
    def test_loads_top_level_keys(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = tmp_path / "graphval.toml"
        config.write_text("max_depth = 5\n")
        monkeypatch.setenv("GRAPHVAL_CONFIG", str(config))
        settings = GraphvalSettings()
        assert settings.max_depth == 5
        assert settings.validate_required_by_declaration is True  # default preserved

    def test_pyproject_reads_tool_table(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config = tmp_path / "pyproject.toml"
        config.write_text(
            '[project]\nname = "host"\n\n'
            "[tool.graphval]\nvalidate_required_by_declaration = false\n"
        )
        monkeypatch.setenv("GRAPHVAL_CONFIG", str(config))
        assert GraphvalSettings().validate_required_by_declaration is False

    def test_env_beats_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = tmp_path / "graphval.toml"
        config.write_text("max_depth = 5\n")
        monkeypatch.setenv("GRAPHVAL_CONFIG", str(config))
        monkeypatch.setenv("GRAPHVAL_MAX_DEPTH", "9")
        assert GraphvalSettings().max_depth == 9

    def test_missing_file_uses_defaults(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GRAPHVAL_CONFIG", str(tmp_path / "absent.toml"))
        assert GraphvalSettings().max_depth == DEFAULT_MAX_DEPTH

    def test_invalid_toml_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = tmp_path / "broken.toml"
        config.write_text("max_depth = = 3\n")
        monkeypatch.setenv("GRAPHVAL_CONFIG", str(config))
        with pytest.raises(GraphvalError, match="Invalid TOML") as exc_info:
            GraphvalSettings()
        assert exc_info.value.detail["path"] == str(config)


class TestActiveSettings:
    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_configure_replaces_active(self) -> None:
        active = configure(max_depth=4)
        assert get_settings() is active
        assert get_settings().max_depth == 4

    def test_reset_reloads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        configure(max_depth=4)
        monkeypatch.setenv("GRAPHVAL_MAX_DEPTH", "11")
        reset_settings()
        assert get_settings().max_depth == 11


class TestValidationSettings:
    def test_defaults_follow_active_settings(self) -> None:
        configure(max_depth=6, validate_required_by_declaration=False)
        settings = ValidationSettings.default()
        assert settings.max_depth == 6
        assert settings.validate_required_by_declaration is False
        assert settings.recurse is True
        assert settings.allow_async is False
        assert settings.services is None

    def test_explicit_values_win(self) -> None:
        configure(max_depth=6)
        assert ValidationSettings(max_depth=1).max_depth == 1

    def test_frozen(self) -> None:
        settings = ValidationSettings()
        with pytest.raises(Exception):
            settings.recurse = False  # type: ignore[misc]

    def test_accepts_arbitrary_services(self) -> None:
        services = {str: "svc"}
        assert ValidationSettings(services=services).services is services
