"""Object-level validation hooks.

Subclass :class:`ValidatableObject` for cross-member checks that run after
the per-member rules of an object (and its descendants) passed. Subclass
:class:`AsyncValidatableObject` when the check has to await something; such
objects can only be validated through ``try_validate_async`` or with
``allow_async=True``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from graphval.domain.context import ValidationContext
    from graphval.domain.types import ValidationFailure


class ValidatableObject(ABC):
    """Synchronous object-level validation capability."""

    @abstractmethod
    def validate_object(self, context: ValidationContext) -> Iterable[ValidationFailure]:
        """Yield failures for this object. Yield nothing when valid."""


class AsyncValidatableObject(ABC):
    """Asynchronous object-level validation capability."""

    @abstractmethod
    def validate_object_async(
        self, context: ValidationContext
    ) -> Awaitable[Iterable[ValidationFailure]]:
        """Return an awaitable resolving to this object's failures.

        Usually implemented as ``async def``. Returning an already completed
        :class:`asyncio.Future` lets the synchronous entry point proceed
        without ``allow_async``.
        """


def is_validatable_type(tp: type) -> bool:
    return isinstance(tp, type) and issubclass(tp, ValidatableObject)


def is_async_validatable_type(tp: type) -> bool:
    return isinstance(tp, type) and issubclass(tp, AsyncValidatableObject)
