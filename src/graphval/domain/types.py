"""Failure records and member markers.

Markers are attached to members the same way rules are: as ``Annotated``
metadata, in dataclass field metadata, or through a plugin.

    name: Annotated[str, Required(), Display("Widget name")]
    audit: Annotated[AuditTrail, SkipRecursion()]
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ValidationFailure:
    """A single failed check.

    Attributes:
        message: Human-readable failure message.
        member_names: Members the failure applies to. Empty for class-level
            failures, which are reported under the ``""`` key.
    """

    message: str
    member_names: tuple[str, ...] = ()

    @classmethod
    def for_members(cls, message: str, *member_names: str) -> ValidationFailure:
        return cls(message, tuple(member_names))


@dataclass(frozen=True)
class Display:
    """Override the name used for a member in failure messages."""

    name: str


@dataclass(frozen=True)
class SkipRecursion:
    """Never descend into this member's value.

    Rules attached directly to the member are still evaluated.
    """


@dataclass(frozen=True)
class SkipValidation:
    """Exclude this member from validation entirely (implies SkipRecursion)."""
