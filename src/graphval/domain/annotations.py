"""Annotation inspection: which members a class declares and what they hold.

Members are the public, non-``ClassVar`` annotated attributes of a class and
of its bases (base classes first), followed by public properties. Classes
that belong to the language or to model frameworks (``object``, ``abc``,
``typing``, ``pydantic`` base classes, ...) contribute no members.

String and forward-reference annotations are evaluated with
:func:`typing.get_type_hints` where the class was defined, module globals
first. Anything unresolvable is treated as ``Any``.
"""

from __future__ import annotations

import collections
import dataclasses
import inspect
import io
import logging
import numbers
import re
import sys
import types
import typing
from collections.abc import Callable, Collection, Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import date, time, timedelta, tzinfo
from enum import Enum
from pathlib import PurePath
from typing import Annotated, Any, ForwardRef, Literal, Union
from uuid import UUID

logger = logging.getLogger(__name__)

#: Key under which dataclass ``field(metadata=...)`` carries rules and markers.
FIELD_METADATA_KEY = "graphval"

_NONE_TYPE = type(None)

# Subclasses of these are never descended into.
_TERMINAL_BASES: tuple[type, ...] = (
    numbers.Number,
    str,
    bytes,
    bytearray,
    memoryview,
    date,
    time,
    timedelta,
    tzinfo,
    Enum,
    UUID,
    PurePath,
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.ModuleType,
    re.Pattern,
    io.IOBase,
    range,
    slice,
)

# Exactly these types (not their subclasses) are never descended into.
_TERMINAL_EXACT: frozenset[type] = frozenset(
    {
        object,
        _NONE_TYPE,
        list,
        tuple,
        dict,
        set,
        frozenset,
        collections.deque,
        collections.abc.Callable,  # type: ignore[arg-type]
    }
)

# Value-like kinds can never be flagged as required by declaration.
_VALUE_TYPES: tuple[type, ...] = (numbers.Number, date, time, timedelta, Enum, UUID)

_SCALAR_ITERABLES: tuple[type, ...] = (str, bytes, bytearray, memoryview)

_FOUNDATION_MODULES = ("builtins", "abc", "typing", "collections", "enum", "dataclasses", "pydantic")


def is_terminal(tp: type) -> bool:
    """Whether *tp* is an opt-out kind whose members are never inspected."""
    if tp in _TERMINAL_EXACT:
        return True
    try:
        return issubclass(tp, _TERMINAL_BASES)
    except TypeError:
        return True


def is_closed(tp: type) -> bool:
    """Whether no subclass instance can carry rules the declared type lacks.

    ``object`` stays open; terminal kinds and ``@typing.final`` classes are closed.
    """
    if tp is object:
        return False
    return is_terminal(tp) or bool(getattr(tp, "__final__", False))


def is_value_type(tp: type) -> bool:
    try:
        return issubclass(tp, _VALUE_TYPES)
    except TypeError:
        return False


def is_collection_type(tp: type) -> bool:
    """Whether instances of *tp* are enumerated element by element."""
    try:
        return issubclass(tp, Collection) and not issubclass(tp, _SCALAR_ITERABLES)
    except TypeError:
        return False


def is_element_collection(value: object) -> bool:
    return isinstance(value, Collection) and not isinstance(value, _SCALAR_ITERABLES)


def iter_elements(value: Collection[Any]) -> Iterator[tuple[str, Any]]:
    """Yield ``(label, element)``; mappings yield their values labelled by key."""
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield str(key), item
    else:
        for index, item in enumerate(value):
            yield str(index), item


# ---------------------------------------------------------------------------
# Declared types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeclaredType:
    """A member annotation reduced to what the metadata cache needs.

    Attributes:
        type: Class used for metadata lookups. Generic aliases reduce to their
            origin; unions of several classes, ``Any`` and unresolved names
            reduce to ``object``.
        nullable: Whether the annotation admits ``None``.
        element_type: Element class when the annotation is a collection.
        extras: ``Annotated`` metadata, outermost first.
    """

    type: type
    nullable: bool
    element_type: type | None = None
    extras: tuple[object, ...] = ()

    @property
    def is_iterable(self) -> bool:
        return self.element_type is not None


ANY_DECLARED = DeclaredType(object, nullable=True)


def analyze_annotation(annotation: Any) -> DeclaredType:
    """Reduce an evaluated *annotation* to a :class:`DeclaredType`.

    Strings and forward references that are still unevaluated are treated
    as ``Any``.
    """
    extras: list[object] = []
    nullable = False
    while True:
        if typing.get_origin(annotation) is Annotated:
            args = typing.get_args(annotation)
            annotation = args[0]
            extras.extend(args[1:])
            continue
        if typing.get_origin(annotation) in (Union, types.UnionType):
            members = list(typing.get_args(annotation))
            if any(a is None or a is _NONE_TYPE for a in members):
                nullable = True
            members = [a for a in members if a is not None and a is not _NONE_TYPE]
            if len(members) == 1:
                annotation = members[0]
                continue
            return DeclaredType(object, nullable, None, tuple(extras))
        if isinstance(annotation, typing.NewType):
            annotation = annotation.__supertype__
            continue
        break

    if annotation is Any or isinstance(annotation, (typing.TypeVar, str, ForwardRef)):
        return DeclaredType(object, True, None, tuple(extras))
    if annotation is None or annotation is _NONE_TYPE:
        return DeclaredType(_NONE_TYPE, True, None, tuple(extras))

    origin = typing.get_origin(annotation)
    if origin is Literal:
        values = typing.get_args(annotation)
        nullable = nullable or None in values
        kinds = {type(v) for v in values if v is not None}
        tp = kinds.pop() if len(kinds) == 1 else object
        return DeclaredType(tp, nullable, None, tuple(extras))

    if isinstance(origin, type):
        element = _element_annotation(origin, typing.get_args(annotation))
        element_type = analyze_annotation(element).type if element is not None else None
        return DeclaredType(origin, nullable, element_type, tuple(extras))

    if isinstance(annotation, type):
        element_type = object if is_collection_type(annotation) else None
        return DeclaredType(annotation, nullable, element_type, tuple(extras))

    return DeclaredType(object, True, None, tuple(extras))


def _element_annotation(origin: type, args: tuple[Any, ...]) -> Any | None:
    if issubclass(origin, _SCALAR_ITERABLES) or not issubclass(origin, Iterable):
        return None
    if issubclass(origin, Mapping):
        return args[1] if len(args) == 2 else object
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        distinct = set(args)
        return distinct.pop() if len(distinct) == 1 else object
    return args[0] if args else object


# ---------------------------------------------------------------------------
# Member discovery
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MemberDeclaration:
    """A member found on a class, before rules are classified."""

    name: str
    declared: DeclaredType
    is_property: bool = False
    field_metadata: tuple[object, ...] = ()


def _is_foundation(klass: type) -> bool:
    return klass.__module__.split(".", 1)[0] in _FOUNDATION_MODULES


def _own_annotations(obj: Any) -> dict[str, Any]:
    try:
        return dict(inspect.get_annotations(obj))
    except NameError:
        if sys.version_info >= (3, 14):
            import annotationlib

            return dict(inspect.get_annotations(obj, format=annotationlib.Format.STRING))
        raise


def _is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar


def _field_metadata(klass: type) -> dict[str, tuple[object, ...]]:
    if not dataclasses.is_dataclass(klass):
        return {}
    found: dict[str, tuple[object, ...]] = {}
    for f in dataclasses.fields(klass):
        items = f.metadata.get(FIELD_METADATA_KEY)
        if items is None:
            continue
        found[f.name] = tuple(items) if isinstance(items, (list, tuple)) else (items,)
    return found


def _module_globals(obj: Any) -> dict[str, Any]:
    module = sys.modules.get(getattr(obj, "__module__", None) or "")
    return dict(vars(module)) if module is not None else {}


def _resolve_one(annotation: Any, globalns: dict[str, Any]) -> Any:
    """Evaluate a single annotation; unresolvable ones become ``Any``."""

    def carrier() -> None: ...

    carrier.__annotations__ = {"return": annotation}
    try:
        return typing.get_type_hints(carrier, globalns=globalns, include_extras=True)["return"]
    except Exception:
        logger.debug("Unresolvable annotation %r treated as Any", annotation)
        return Any


def _resolved_annotations(klass: type, own: dict[str, Any]) -> dict[str, Any]:
    """Evaluate the annotations *klass* declares itself.

    Module globals take priority over class attributes, so a member named
    like its type (``Address: Address | None = None``) still resolves to the
    type. When the class as a whole cannot be resolved, each annotation is
    evaluated on its own so one dangling name does not hide the others.
    """
    try:
        hints = typing.get_type_hints(klass, include_extras=True)
    except Exception:
        logger.debug(
            "Resolving annotations of %s one by one", klass.__qualname__, exc_info=True
        )
        globalns = {**vars(klass), klass.__name__: klass, **_module_globals(klass)}
        return {
            name: annotation if _is_class_var(annotation) else _resolve_one(annotation, globalns)
            for name, annotation in own.items()
        }
    return {name: hints.get(name, Any) for name in own}


def declared_members(cls: type) -> list[MemberDeclaration]:
    """List the members of *cls* in stable declaration order."""
    lineage = [k for k in reversed(cls.__mro__) if not _is_foundation(k)]
    field_metadata = _field_metadata(cls)
    members: dict[str, MemberDeclaration] = {}

    for klass in lineage:
        own = _own_annotations(klass)
        if not own:
            continue
        resolved = _resolved_annotations(klass, own)
        for name, raw in own.items():
            annotation = resolved[name]
            if name.startswith("_") or _is_class_var(raw) or _is_class_var(annotation):
                continue
            members[name] = MemberDeclaration(
                name,
                analyze_annotation(annotation),
                field_metadata=field_metadata.get(name, ()),
            )

    for klass in lineage:
        for name, attr in vars(klass).items():
            if name.startswith("_") or not isinstance(attr, property) or attr.fget is None:
                continue
            members[name] = MemberDeclaration(
                name, _property_type(attr.fget, klass), is_property=True
            )

    return list(members.values())


def _property_type(getter: Callable[..., Any], owner: type) -> DeclaredType:
    try:
        annotation = _own_annotations(getter).get("return")
    except NameError:
        return ANY_DECLARED
    if annotation is None:
        return ANY_DECLARED
    globalns = {**vars(owner), owner.__name__: owner, **getattr(getter, "__globals__", {})}
    return analyze_annotation(_resolve_one(annotation, globalns))
