"""Graph traversal engine and public entry points.

The traversal is one coroutine for both entry points. The synchronous entry
drives it with a single ``send(None)``: when it finishes without suspending,
its value is the result; when it would have to wait on an object's async
check, the call fails with :class:`AsyncValidationRequiredError` unless the
caller opted in with ``allow_async=True``. The asynchronous entry simply
awaits it.

Error keys concatenate path segments: ``Member.`` for complex members,
``[index].`` for collection elements (``[key].`` for mapping values), so
``Orders[1].Customer.Name``. Object-level failures that name no member are
always keyed ``""``.

INVARIANT: tracking state and errors belong to one call; only the type
metadata cache is shared between calls.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Coroutine, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, NamedTuple

from graphval.config.models import ValidationSettings
from graphval.config.settings import get_settings
from graphval.domain.annotations import is_element_collection, iter_elements
from graphval.domain.context import ValidationContext
from graphval.domain.metadata import MemberMetadata, TypeMetadataCache
from graphval.domain.rules import REQUIRED_MESSAGE, evaluate_rules
from graphval.domain.types import ValidationFailure
from graphval.domain.validatable import AsyncValidatableObject, ValidatableObject
from graphval.exceptions import AsyncValidationRequiredError, InvalidTargetError
from graphval.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

_plugin_manager = PluginManager()
_type_cache = TypeMetadataCache(attribute_provider=_plugin_manager.member_rules)
_plugin_lock = threading.Lock()

# Distinguishes "services not passed" from an explicit None.
_UNSET: Any = object()


class ValidationOutcome(NamedTuple):
    """Result of one validation call.

    Attributes:
        is_valid: Sole pass/fail signal.
        errors: Failure messages by path-qualified key, in first-failure
            order. Empty when valid.
    """

    is_valid: bool
    errors: dict[str, list[str]]


def get_plugin_manager() -> PluginManager:
    """The plugin manager consulted for extra member rules.

    Plugins only affect types whose metadata has not been computed yet.
    """
    return _plugin_manager


def _load_plugins() -> None:
    """Discover entry-point plugins once, before any metadata is computed."""
    if _plugin_manager.is_loaded:
        return
    with _plugin_lock:
        if not _plugin_manager.is_loaded:
            names = _plugin_manager.discover_and_load()
            logger.debug("Plugins available to validation: %s", names)


def requires_validation(
    target_type: type,
    *,
    recurse: bool = True,
    validate_required_by_declaration: bool | None = None,
) -> bool:
    """Whether objects of *target_type* have anything to validate.

    Objects of types with nothing to validate always pass.
    """
    if target_type is None:
        raise InvalidTargetError("target_type")
    if validate_required_by_declaration is None:
        validate_required_by_declaration = get_settings().validate_required_by_declaration
    _load_plugins()
    return _type_cache.requires_validation(
        target_type,
        recurse=recurse,
        validate_required_by_declaration=validate_required_by_declaration,
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def try_validate(
    target: object,
    services: Any = _UNSET,
    *,
    recurse: bool = True,
    allow_async: bool = False,
    settings: ValidationSettings | None = None,
) -> ValidationOutcome:
    """Validate *target* and, when *recurse* is set, everything it reaches.

    Args:
        target: Object to validate. Must not be None.
        services: Service lookup exposed to rules through the validation
            context. Omit it rather than passing None.
        recurse: Descend into members and collection elements.
        allow_async: Block on objects needing async validation instead of
            raising :class:`AsyncValidationRequiredError`.
        settings: Complete settings; when given, the other keyword
            arguments are ignored.

    Raises:
        InvalidTargetError: *target* or an explicitly passed *services* is None.
        AsyncValidationRequiredError: An object needs async validation and
            *allow_async* is False.
    """
    resolved = _resolve_settings(services, recurse, allow_async, settings)
    return _validate(target, resolved)


async def try_validate_async(
    target: object,
    services: Any = _UNSET,
    *,
    recurse: bool = True,
    settings: ValidationSettings | None = None,
) -> ValidationOutcome:
    """Asynchronous counterpart of :func:`try_validate`.

    Async validation is always allowed here, whatever *settings* say.
    """
    resolved = _resolve_settings(services, recurse, True, settings)
    if not resolved.allow_async:
        resolved = resolved.model_copy(update={"allow_async": True})
    return await _validate_async(target, resolved)


def _resolve_settings(
    services: Any,
    recurse: bool,
    allow_async: bool,
    settings: ValidationSettings | None,
) -> ValidationSettings:
    if settings is not None:
        return settings
    if services is None:
        raise InvalidTargetError("services")
    return ValidationSettings(
        services=None if services is _UNSET else services,
        recurse=recurse,
        allow_async=allow_async,
    )


def _check_target(target: object, settings: ValidationSettings) -> bool:
    """Entry checks shared by both entry points. False means nothing to do."""
    if target is None:
        raise InvalidTargetError("target")
    target_type = type(target)
    _load_plugins()
    if not _type_cache.requires_validation(
        target_type,
        recurse=settings.recurse,
        validate_required_by_declaration=settings.validate_required_by_declaration,
    ):
        return False
    if _type_cache.get(target_type).requires_async and not settings.allow_async:
        raise AsyncValidationRequiredError(target_type.__name__)
    return True


def _validate(target: object, settings: ValidationSettings) -> ValidationOutcome:
    if not _check_target(target, settings):
        return ValidationOutcome(True, {})

    logger.debug(
        "Validating %s (recurse=%s, allow_async=%s)",
        type(target).__qualname__,
        settings.recurse,
        settings.allow_async,
    )
    traversal = _Traversal(settings, _type_cache)
    if settings.allow_async:
        is_valid = _run_blocking(traversal.visit(target))
    else:
        is_valid = _run_to_completion(traversal.visit(target))
    return traversal.outcome(is_valid)


async def _validate_async(target: object, settings: ValidationSettings) -> ValidationOutcome:
    if not _check_target(target, settings):
        return ValidationOutcome(True, {})

    logger.debug(
        "Validating %s asynchronously (recurse=%s)",
        type(target).__qualname__,
        settings.recurse,
    )
    traversal = _Traversal(settings, _type_cache)
    is_valid = await traversal.visit(target)
    return traversal.outcome(is_valid)


def _run_to_completion(coro: Coroutine[Any, Any, bool]) -> bool:
    """Finish *coro* without an event loop, or fail if it would suspend."""
    try:
        coro.send(None)
    except StopIteration as stop:
        return stop.value
    coro.close()
    raise AsyncValidationRequiredError()


def _run_blocking(coro: Coroutine[Any, Any, bool]) -> bool:
    """Run *coro* to completion, blocking the calling thread."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    # The calling thread already runs a loop; finish on a private one.
    with ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coro).result()


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


class _Traversal:
    """State of one validation call: visited objects and collected errors."""

    def __init__(self, settings: ValidationSettings, cache: TypeMetadataCache) -> None:
        self._settings = settings
        self._cache = cache
        self._errors: dict[str, list[str]] = {}
        # id(obj) -> (obj, state); state None while the object is being visited.
        self._visited: dict[int, tuple[object, bool | None]] = {}

    def outcome(self, is_valid: bool) -> ValidationOutcome:
        errors = {key: list(dict.fromkeys(messages)) for key, messages in self._errors.items()}
        logger.debug("Validation finished: valid=%s, %d error keys", is_valid, len(errors))
        return ValidationOutcome(is_valid, errors)

    async def visit(self, target: object, prefix: str = "", depth: int = 0) -> bool:
        key = id(target)
        seen = self._visited.get(key)
        if seen is not None:
            # In progress means a cycle back to an ancestor; treat it as valid.
            state = seen[1]
            return state is None or state
        self._visited[key] = (target, None)

        settings = self._settings
        metadata = self._cache.get(type(target))
        context = ValidationContext(target, services=settings.services)
        is_valid = True
        to_recurse: list[tuple[MemberMetadata, Any]] = []

        for member in metadata.members:
            try:
                value = member.get_value(target)
            except Exception:
                logger.debug(
                    "Reading %s.%s failed; member skipped",
                    type(target).__qualname__,
                    member.name,
                    exc_info=True,
                )
                continue

            failures: list[ValidationFailure] = []
            if member.has_rules:
                context.member_name = member.name
                context.display_name = member.label
                failures.extend(evaluate_rules(member.rules, value, context))

            if (
                settings.validate_required_by_declaration
                and member.is_required_by_declaration
                and value is None
            ):
                failures.append(
                    ValidationFailure(REQUIRED_MESSAGE.format(name=member.label), (member.name,))
                )

            if failures:
                self._record_member(member.name, failures, prefix)
                is_valid = False

            if settings.recurse and member.recurse and value is not None:
                to_recurse.append((member, value))

        if settings.recurse and depth <= settings.max_depth:
            if is_element_collection(target):
                is_valid = await self._visit_elements(target, prefix, depth) and is_valid

            for member, value in to_recurse:
                if member.is_iterable:
                    if is_element_collection(value):
                        elements_valid = await self._visit_elements(
                            value, f"{prefix}{member.name}", depth
                        )
                        is_valid = elements_valid and is_valid
                else:
                    child_valid = await self.visit(value, f"{prefix}{member.name}.", depth + 1)
                    is_valid = child_valid and is_valid

        if is_valid and isinstance(target, ValidatableObject):
            context.member_name = None
            context.display_name = type(target).__name__
            results = target.validate_object(context)
            if results is not None:
                is_valid = self._record_object(results, prefix) and is_valid
        elif is_valid and isinstance(target, AsyncValidatableObject):
            context.member_name = None
            context.display_name = type(target).__name__
            results = await self._object_results_async(target.validate_object_async(context))
            if results is not None:
                is_valid = self._record_object(results, prefix) and is_valid

        self._visited[key] = (target, is_valid)
        return is_valid

    async def _visit_elements(self, collection: Any, prefix: str, depth: int) -> bool:
        """Visit elements in order, stopping at the first invalid one.

        Labels are positions in the underlying sequence (or mapping keys), so a
        skipped ``None`` element still consumes its index: the element after it
        is reported as ``[1]``, not ``[0]``.
        """
        is_valid = True
        for label, item in iter_elements(collection):
            if item is None:
                continue
            is_valid = await self.visit(item, f"{prefix}[{label}].", depth + 1)
            if not is_valid:
                break
        return is_valid

    async def _object_results_async(self, pending: Any) -> Iterable[ValidationFailure] | None:
        if not inspect.isawaitable(pending):
            return pending
        if asyncio.isfuture(pending) and pending.done():
            return pending.result()
        if not self._settings.allow_async:
            if inspect.iscoroutine(pending):
                pending.close()
            raise AsyncValidationRequiredError()
        return await pending

    def _record_member(
        self, member_name: str, failures: list[ValidationFailure], prefix: str
    ) -> None:
        for failure in failures:
            for name in failure.member_names or (member_name,):
                self._errors.setdefault(f"{prefix}{name}", []).append(failure.message)

    def _record_object(
        self, results: Iterable[ValidationFailure | None], prefix: str
    ) -> bool:
        """Record object-level results under their member keys, or ``""``.

        Returns True when nothing failed.
        """
        passed = True
        for failure in results:
            if failure is None:
                continue
            if failure.member_names:
                for name in failure.member_names:
                    self._errors.setdefault(f"{prefix}{name}", []).append(failure.message)
            else:
                self._errors.setdefault("", []).append(failure.message)
            passed = False
        return passed
