"""Process-wide settings: env vars and an optional TOML file in one object.

Priority chain (highest to lowest):
  1. ``configure()`` overrides: set programmatically by the host application
  2. Env vars: ``GRAPHVAL_*`` prefix
  3. TOML file: ``GRAPHVAL_CONFIG`` path; reads ``[tool.graphval]`` from a
     ``pyproject.toml`` or the top level of any other file
  4. Code defaults

The active instance is shared by every validation call that does not pass
explicit values. It is replaced wholesale by :func:`configure`, never mutated.
"""

from __future__ import annotations

import os
import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from graphval.exceptions import GraphvalError

CONFIG_ENV_VAR = "GRAPHVAL_CONFIG"
DEFAULT_MAX_DEPTH = 32


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from the TOML file named by ``GRAPHVAL_CONFIG``."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise GraphvalError(msg, detail={"path": str(toml_path)}) from exc
            if toml_path.name == "pyproject.toml":
                data = data.get("tool", {}).get("graphval", {})
            self._data = data

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


class GraphvalSettings(BaseSettings):
    """Process-wide validation tunables.

    Attributes:
        max_depth: Deepest level descended into when recursing. Deeper
            objects are silently not validated.
        validate_required_by_declaration: Report members whose annotation
            does not admit ``None`` when they hold ``None``.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "GRAPHVAL_",
    }

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0)
    validate_required_by_declaration: bool = True

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        env_path = os.environ.get(CONFIG_ENV_VAR)
        toml_path = Path(env_path) if env_path else None
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )


_lock = threading.Lock()
_active: GraphvalSettings | None = None


def get_settings() -> GraphvalSettings:
    """Return the active settings, loading them on first use."""
    global _active
    settings = _active
    if settings is None:
        with _lock:
            if _active is None:
                _active = GraphvalSettings()
            settings = _active
    return settings


def configure(**overrides: Any) -> GraphvalSettings:
    """Replace the active settings, applying *overrides* over env and TOML."""
    global _active
    settings = GraphvalSettings(**overrides)
    with _lock:
        _active = settings
    return settings


def reset_settings() -> None:
    """Drop the active settings so the next call reloads env and TOML."""
    global _active
    with _lock:
        _active = None
