"""Per-call validation settings, frozen after construction.

Fields left unset fall back to the process-wide values in
:mod:`graphval.config.settings` at construction time.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from graphval.config.settings import get_settings


def _default_max_depth() -> int:
    return get_settings().max_depth


def _default_validate_required() -> bool:
    return get_settings().validate_required_by_declaration


class ValidationSettings(BaseModel):
    """Settings for one validation call.

    Attributes:
        services: Opaque service lookup handed to rules and validatable
            objects through the validation context.
        recurse: Descend into members and collection elements. When False
            only the members directly on the target are checked.
        allow_async: Allow objects needing async validation. The synchronous
            entry point then blocks until their checks complete.
        validate_required_by_declaration: Report ``None`` in members whose
            annotation does not admit it.
        max_depth: Deepest level descended into.
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    services: Any = None
    recurse: bool = True
    allow_async: bool = False
    validate_required_by_declaration: bool = Field(default_factory=_default_validate_required)
    max_depth: int = Field(default_factory=_default_max_depth, ge=0)

    @classmethod
    def default(cls) -> ValidationSettings:
        """Recursing, synchronous settings with process-wide defaults."""
        return cls()
