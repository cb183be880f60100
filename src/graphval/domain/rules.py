"""Declarative member rules.

A rule decides whether a single member value is acceptable. Rules are
attached through ``Annotated`` metadata, dataclass field metadata
(``field(metadata={"graphval": [...]})``), or the ``member_rules`` plugin hook.

Every non-presence rule treats ``None`` as valid so that absence is only
ever reported by :class:`Required` (or by declaration-required checking).
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence, Sized
from dataclasses import dataclass, field
from typing import Any, ClassVar

from graphval.domain.context import ValidationContext
from graphval.domain.types import ValidationFailure

REQUIRED_MESSAGE = "The {name} field is required."


@dataclass(frozen=True)
class ValidationRule(ABC):
    """Base class for member rules.

    Subclasses implement :meth:`is_valid` and provide ``default_message``, a
    :meth:`str.format` template receiving ``name`` plus the rule's fields.
    Pass ``message=`` to override the template for one rule instance.
    """

    default_message: ClassVar[str] = "The field {name} is invalid."
    #: Presence rules run first; when one fails, no other rule is reported.
    checks_presence: ClassVar[bool] = False

    message: str | None = field(default=None, kw_only=True)

    @abstractmethod
    def is_valid(self, value: Any, context: ValidationContext) -> bool:
        """Return True when *value* satisfies the rule."""

    def format_message(self, name: str) -> str:
        template = self.message or self.default_message
        params = {k: v for k, v in vars(self).items() if k != "message"}
        return template.format(name=name, **params)

    def evaluate(self, value: Any, context: ValidationContext) -> list[ValidationFailure]:
        if self.is_valid(value, context):
            return []
        name = context.display_name or context.member_name or context.object_type.__name__
        members = (context.member_name,) if context.member_name else ()
        return [ValidationFailure(self.format_message(name), members)]


@dataclass(frozen=True)
class Required(ValidationRule):
    """Value must be present; blank strings count as absent by default."""

    default_message: ClassVar[str] = REQUIRED_MESSAGE
    checks_presence: ClassVar[bool] = True

    allow_empty_strings: bool = False

    def is_valid(self, value: Any, context: ValidationContext) -> bool:
        if value is None:
            return False
        if isinstance(value, str) and not self.allow_empty_strings:
            return bool(value.strip())
        return True


def _length_of(value: Any, rule: ValidationRule) -> int:
    if not isinstance(value, Sized):
        raise TypeError(
            f"{type(rule).__name__} cannot be applied to a value of type {type(value).__name__}"
        )
    return len(value)


@dataclass(frozen=True)
class MinLength(ValidationRule):
    default_message: ClassVar[str] = (
        "The field {name} must be a string or array type with a minimum length of '{length}'."
    )

    length: int

    def is_valid(self, value: Any, context: ValidationContext) -> bool:
        return value is None or _length_of(value, self) >= self.length


@dataclass(frozen=True)
class MaxLength(ValidationRule):
    default_message: ClassVar[str] = (
        "The field {name} must be a string or array type with a maximum length of '{length}'."
    )

    length: int

    def is_valid(self, value: Any, context: ValidationContext) -> bool:
        return value is None or _length_of(value, self) <= self.length


@dataclass(frozen=True)
class Length(ValidationRule):
    """Inclusive length bounds for strings and collections."""

    default_message: ClassVar[str] = (
        "The field {name} must be a string with a minimum length of {minimum} "
        "and a maximum length of {maximum}."
    )

    minimum: int = 0
    maximum: int | None = None

    def is_valid(self, value: Any, context: ValidationContext) -> bool:
        if value is None:
            return True
        size = _length_of(value, self)
        if size < self.minimum:
            return False
        return self.maximum is None or size <= self.maximum


@dataclass(frozen=True)
class Range(ValidationRule):
    """Inclusive numeric (or otherwise ordered) range."""

    default_message: ClassVar[str] = "The field {name} must be between {minimum} and {maximum}."

    minimum: Any
    maximum: Any

    def is_valid(self, value: Any, context: ValidationContext) -> bool:
        if value is None:
            return True
        return self.minimum <= value <= self.maximum


@dataclass(frozen=True)
class Pattern(ValidationRule):
    """The whole string must match *regex*."""

    default_message: ClassVar[str] = "The field {name} must match the regular expression '{regex}'."

    regex: str

    def is_valid(self, value: Any, context: ValidationContext) -> bool:
        if value is None:
            return True
        return re.fullmatch(self.regex, str(value)) is not None


@dataclass(frozen=True)
class Predicate(ValidationRule):
    """Custom check: ``func(value)`` or ``func(value, context)`` must be truthy.

    Set ``with_context=True`` for callables taking the context, e.g. to look
    up a service with :meth:`ValidationContext.require_service`.
    """

    default_message: ClassVar[str] = "The field {name} is invalid."

    func: Callable[..., bool]
    with_context: bool = False

    def is_valid(self, value: Any, context: ValidationContext) -> bool:
        if self.with_context:
            return bool(self.func(value, context))
        return value is None or bool(self.func(value))


def evaluate_rules(
    rules: Sequence[ValidationRule],
    value: Any,
    context: ValidationContext,
) -> list[ValidationFailure]:
    """Run *rules* against *value*, presence rules first.

    A failing presence rule short-circuits the remaining rules so that an
    absent value yields exactly one message.
    """
    failures: list[ValidationFailure] = []
    for rule in rules:
        if rule.checks_presence:
            failures.extend(rule.evaluate(value, context))
    if failures:
        return failures
    for rule in rules:
        if not rule.checks_presence:
            failures.extend(rule.evaluate(value, context))
    return failures


def unique_rules(rules: Iterable[ValidationRule]) -> tuple[ValidationRule, ...]:
    """De-duplicate *rules* by equality, keeping first occurrences."""
    unique: list[ValidationRule] = []
    for rule in rules:
        if rule not in unique:
            unique.append(rule)
    return tuple(unique)
