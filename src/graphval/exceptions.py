"""Exception hierarchy for graphval.

Only caller misuse is raised. Validation failures are collected into the
error map and never raised; getter faults are absorbed where they occur.

- :class:`InvalidTargetError`: absent target or explicitly absent service context.
- :class:`AsyncValidationRequiredError`: the synchronous entry point reached an
  object that needs asynchronous validation without ``allow_async``.
- :class:`ServiceUnavailableError`: a rule asked the service context for a
  capability it does not provide.
"""

from __future__ import annotations

from typing import Any


class GraphvalError(Exception):
    """Root of all graphval errors.

    Attributes:
        detail: Structured context about the failure (type names, arguments).
    """

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.detail: dict[str, Any] = detail or {}


class InvalidTargetError(GraphvalError, ValueError):
    """An argument required by the entry point was ``None``."""

    def __init__(self, argument: str) -> None:
        super().__init__(
            f"Argument '{argument}' must not be None.",
            detail={"argument": argument},
        )
        self.argument = argument


class AsyncValidationRequiredError(GraphvalError, RuntimeError):
    """Synchronous validation met an object needing asynchronous validation."""

    def __init__(self, type_name: str | None = None) -> None:
        if type_name is None:
            message = (
                "An object in the validation graph requires async validation. "
                "Call the 'try_validate_async' function instead."
            )
        else:
            message = (
                f"The target type {type_name} requires async validation. "
                "Call the 'try_validate_async' function instead."
            )
        super().__init__(message, detail={"type": type_name})
        self.type_name = type_name


class ServiceUnavailableError(GraphvalError, LookupError):
    """A rule required a service the validation context cannot supply."""

    def __init__(self, service_type: type) -> None:
        name = getattr(service_type, "__qualname__", repr(service_type))
        super().__init__(
            f"No service of type {name} is available to the validation context.",
            detail={"service_type": name},
        )
        self.service_type = service_type
