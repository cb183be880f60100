"""Type metadata cache: which members of a type are validated, and how.

For every class the cache computes once, and keeps for the life of the
process:

- the members carrying rules, required by declaration, or worth recursing into;
- whether the type, or any type reachable from it, needs async validation.

INVARIANT: a member is published iff it has rules, is required by
declaration, or recurses. A member kept only because its declared type is
the enclosing type itself is pruned again unless the type has other
validated members (linked-list style nodes with no rules produce no
metadata and are never walked).

Metadata is a function of the type alone. Mutually referencing types are
solved together and published under a lock in one step, so neither request
order nor concurrent first-time requests change the result.
"""

from __future__ import annotations

import logging
import operator
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from graphval.domain.annotations import (
    MemberDeclaration,
    declared_members,
    is_closed,
    is_collection_type,
    is_terminal,
    is_value_type,
)
from graphval.domain.rules import ValidationRule, unique_rules
from graphval.domain.types import Display, SkipRecursion, SkipValidation
from graphval.domain.validatable import is_async_validatable_type, is_validatable_type

logger = logging.getLogger(__name__)

#: ``(owner type, member name) -> extra rules and markers`` for that member.
AttributeProvider = Callable[[type, str], Iterable[object]]


@dataclass(frozen=True)
class MemberMetadata:
    """How one member of a type is validated.

    Attributes:
        name: Attribute name, also the error key segment.
        display_name: Name used in messages instead of ``name``.
        declared_type: Class reduced from the member's annotation.
        getter: Reads the member off an instance. May raise.
        rules: Rules evaluated against the member value.
        recurse: Whether the value is descended into.
        element_type: Element class when the value is a collection whose
            elements are descended into; ``None`` otherwise.
        is_required_by_declaration: The annotation does not admit ``None``.
    """

    name: str
    display_name: str | None
    declared_type: type
    getter: Callable[[Any], Any] = field(repr=False, compare=False)
    rules: tuple[ValidationRule, ...] = ()
    recurse: bool = False
    element_type: type | None = None
    is_required_by_declaration: bool = False

    @property
    def has_rules(self) -> bool:
        return bool(self.rules)

    @property
    def is_iterable(self) -> bool:
        return self.element_type is not None

    @property
    def label(self) -> str:
        return self.display_name or self.name

    def get_value(self, target: object) -> Any:
        return self.getter(target)


@dataclass(frozen=True)
class TypeMetadata:
    """Cached validation metadata of one type."""

    members: tuple[MemberMetadata, ...] = ()
    requires_async: bool = False
    is_validatable: bool = False
    is_async_validatable: bool = False


EMPTY_METADATA = TypeMetadata()


@dataclass
class _MemberAnnotations:
    rules: list[ValidationRule] = field(default_factory=list)
    display_name: str | None = None
    skip_recursion: bool = False
    skip_validation: bool = False


@dataclass
class _Plan:
    """Declared members of one type with their markers classified.

    ``dependencies`` are the types whose metadata the recursion decisions
    of this type consult.
    """

    terminal: bool = False
    members: list[tuple[MemberDeclaration, _MemberAnnotations]] = field(default_factory=list)
    dependencies: list[type] = field(default_factory=list)


class TypeMetadataCache:
    """Process-lifetime cache of :class:`TypeMetadata`, keyed by type.

    Args:
        attribute_provider: Optional source of extra rules and markers per
            member, merged with the declared ones before de-duplication.
    """

    def __init__(self, attribute_provider: AttributeProvider | None = None) -> None:
        self._cache: dict[type, TypeMetadata] = {}
        self._lock = threading.Lock()
        self._attribute_provider = attribute_provider

    def get(self, tp: type | None) -> TypeMetadata:
        """Return the metadata of *tp*, computing it on first request."""
        if tp is None or not isinstance(tp, type):
            return EMPTY_METADATA
        metadata = self._cache.get(tp)
        if metadata is None:
            self._compute(tp)
            metadata = self._cache[tp]
        return metadata

    def __contains__(self, tp: object) -> bool:
        return tp in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def requires_validation(
        self,
        target_type: type,
        *,
        recurse: bool,
        validate_required_by_declaration: bool,
    ) -> bool:
        """Whether objects of *target_type* have anything to validate."""
        metadata = self.get(target_type)
        if metadata.is_validatable or metadata.is_async_validatable:
            return True
        if recurse and is_collection_type(target_type):
            return True
        return any(
            m.has_rules
            or (validate_required_by_declaration and m.is_required_by_declaration)
            or (recurse and m.recurse)
            for m in metadata.members
        )

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    def _compute(self, root: type) -> None:
        """Compute *root* and every uncached type reachable from it.

        Types are solved one strongly connected component at a time,
        dependencies first (Tarjan). Within a component, metadata starts
        empty and is rebuilt until nothing changes; every decision only
        grows as its inputs grow, so the result is the same whichever type
        of the component was requested first.
        """
        plans: dict[type, _Plan] = {}
        index: dict[type, int] = {}
        lowlink: dict[type, int] = {}
        stack: list[type] = []
        on_stack: set[type] = set()

        def connect(tp: type) -> None:
            index[tp] = lowlink[tp] = len(index)
            stack.append(tp)
            on_stack.add(tp)
            plans[tp] = plan = self._plan(tp)

            for dependency in plan.dependencies:
                if dependency not in index:
                    if dependency in self._cache:
                        continue
                    connect(dependency)
                    lowlink[tp] = min(lowlink[tp], lowlink[dependency])
                elif dependency in on_stack:
                    lowlink[tp] = min(lowlink[tp], index[dependency])

            if lowlink[tp] == index[tp]:
                component: list[type] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member is tp:
                        break
                self._solve(component, plans)

        connect(root)

    def _solve(self, component: list[type], plans: dict[type, _Plan]) -> None:
        current = {tp: EMPTY_METADATA for tp in component}
        changed = True
        while changed:
            changed = False
            for tp in component:
                metadata = self._build(tp, plans[tp], current)
                if metadata != current[tp]:
                    current[tp] = metadata
                    changed = True

        with self._lock:
            for tp, metadata in current.items():
                self._cache.setdefault(tp, metadata)
        for tp, metadata in current.items():
            logger.debug(
                "Computed validation metadata for %s: %d members, requires_async=%s",
                tp.__qualname__,
                len(metadata.members),
                metadata.requires_async,
            )

    def _plan(self, tp: type) -> _Plan:
        if is_terminal(tp):
            return _Plan(terminal=True)
        plan = _Plan()
        for declaration in declared_members(tp):
            annotations = self._member_annotations(tp, declaration)
            plan.members.append((declaration, annotations))
            if annotations.skip_validation or annotations.skip_recursion:
                continue
            target = _recursion_target(declaration)
            if target is not tp and target not in plan.dependencies:
                plan.dependencies.append(target)
        return plan

    def _build(self, tp: type, plan: _Plan, current: dict[type, TypeMetadata]) -> TypeMetadata:
        """Derive the metadata of *tp* from the current view of its dependencies."""
        if plan.terminal:
            return EMPTY_METADATA

        def lookup(target: type) -> TypeMetadata:
            found = current.get(target)
            if found is None:
                found = self._cache.get(target, EMPTY_METADATA)
            return found

        is_async_validatable = is_async_validatable_type(tp)
        requires_async = is_async_validatable
        members: list[MemberMetadata] = []
        has_self_typed_members = False
        has_validated_members = False

        for declaration, annotations in plan.members:
            if annotations.skip_validation:
                continue
            declared = declaration.declared
            is_required = not declared.nullable and not is_value_type(declared.type)
            rules = tuple(annotations.rules)

            # Members typed as the enclosing type are pruned below unless
            # something else on the type is validated.
            if declared.type is tp and not annotations.skip_recursion:
                members.append(
                    MemberMetadata(
                        name=declaration.name,
                        display_name=annotations.display_name,
                        declared_type=declared.type,
                        getter=operator.attrgetter(declaration.name),
                        rules=rules,
                        recurse=True,
                        is_required_by_declaration=is_required,
                    )
                )
                has_self_typed_members = True
                continue

            target = _recursion_target(declaration)
            recurse = not annotations.skip_recursion and (
                bool(lookup(target).members)
                or is_validatable_type(target)
                or is_async_validatable_type(target)
                or not is_closed(target)
            )
            if recurse:
                requires_async = requires_async or lookup(target).requires_async

            if recurse or rules or is_required:
                members.append(
                    MemberMetadata(
                        name=declaration.name,
                        display_name=annotations.display_name,
                        declared_type=declared.type,
                        getter=operator.attrgetter(declaration.name),
                        rules=rules,
                        recurse=recurse,
                        element_type=declared.element_type if recurse else None,
                        is_required_by_declaration=is_required,
                    )
                )
                has_validated_members = True

        if has_self_typed_members:
            members = [
                m
                for m in members
                if m.declared_type is not tp
                or has_validated_members
                or m.has_rules
                or m.is_required_by_declaration
            ]

        return TypeMetadata(
            members=tuple(members),
            requires_async=requires_async,
            is_validatable=is_validatable_type(tp),
            is_async_validatable=is_async_validatable,
        )

    def _member_annotations(
        self, owner: type, declaration: MemberDeclaration
    ) -> _MemberAnnotations:
        items: list[object] = [*declaration.declared.extras, *declaration.field_metadata]
        if self._attribute_provider is not None:
            items.extend(self._attribute_provider(owner, declaration.name))

        found = _MemberAnnotations()
        for item in items:
            if isinstance(item, ValidationRule):
                found.rules.append(item)
            elif isinstance(item, Display):
                found.display_name = item.name
            elif isinstance(item, SkipRecursion):
                found.skip_recursion = True
            elif isinstance(item, SkipValidation):
                found.skip_validation = True
        found.rules = list(unique_rules(found.rules))
        return found


def _recursion_target(declaration: MemberDeclaration) -> type:
    """The type whose metadata decides whether the member is descended into."""
    declared = declaration.declared
    return declared.element_type if declared.element_type is not None else declared.type
