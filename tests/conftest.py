"""Shared pytest fixtures for graphval tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from graphval.config.settings import CONFIG_ENV_VAR, reset_settings


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Every test starts from code defaults, unaffected by the host environment."""
    for name in (CONFIG_ENV_VAR, "GRAPHVAL_MAX_DEPTH", "GRAPHVAL_VALIDATE_REQUIRED_BY_DECLARATION"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()
