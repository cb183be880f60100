"""graphval validates object graphs against declarative member rules.

    from dataclasses import dataclass
    from typing import Annotated

    from graphval import MinLength, Required, try_validate

    @dataclass
    class Widget:
        name: Annotated[str, Required(), MinLength(3)]

    is_valid, errors = try_validate(Widget(name="ab"))
"""

from graphval.config.logging import configure_logging
from graphval.config.models import ValidationSettings
from graphval.config.settings import GraphvalSettings, configure, get_settings, reset_settings
from graphval.domain.context import ServiceProvider, ValidationContext
from graphval.domain.rules import (
    Length,
    MaxLength,
    MinLength,
    Pattern,
    Predicate,
    Range,
    Required,
    ValidationRule,
)
from graphval.domain.types import Display, SkipRecursion, SkipValidation, ValidationFailure
from graphval.domain.validatable import AsyncValidatableObject, ValidatableObject
from graphval.exceptions import (
    AsyncValidationRequiredError,
    GraphvalError,
    InvalidTargetError,
    ServiceUnavailableError,
)
from graphval.plugins.hookspecs import hookimpl
from graphval.services.validator import (
    ValidationOutcome,
    get_plugin_manager,
    requires_validation,
    try_validate,
    try_validate_async,
)

__all__ = [
    "AsyncValidatableObject",
    "AsyncValidationRequiredError",
    "Display",
    "GraphvalError",
    "GraphvalSettings",
    "InvalidTargetError",
    "Length",
    "MaxLength",
    "MinLength",
    "Pattern",
    "Predicate",
    "Range",
    "Required",
    "ServiceProvider",
    "ServiceUnavailableError",
    "SkipRecursion",
    "SkipValidation",
    "ValidatableObject",
    "ValidationContext",
    "ValidationFailure",
    "ValidationOutcome",
    "ValidationRule",
    "ValidationSettings",
    "configure",
    "configure_logging",
    "get_plugin_manager",
    "get_settings",
    "hookimpl",
    "requires_validation",
    "reset_settings",
    "try_validate",
    "try_validate_async",
]
