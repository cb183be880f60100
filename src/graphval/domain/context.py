"""ValidationContext: what a rule or validatable object sees while checking."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar, runtime_checkable

from graphval.exceptions import ServiceUnavailableError

T = TypeVar("T")


@runtime_checkable
class ServiceProvider(Protocol):
    """Opaque service lookup passed through the whole traversal."""

    def get_service(self, service_type: type) -> object | None: ...


@dataclass
class ValidationContext:
    """Describes the object and member currently being validated.

    The engine reuses one context per visited object and rewrites
    ``member_name``/``display_name`` before each member is checked. For
    object-level checks ``member_name`` is ``None`` and ``display_name`` is
    the class name.
    """

    instance: Any
    services: ServiceProvider | Mapping[type, object] | None = None
    member_name: str | None = None
    display_name: str | None = None
    items: dict[str, Any] = field(default_factory=dict)

    @property
    def object_type(self) -> type:
        return type(self.instance)

    def get_service(self, service_type: type[T]) -> T | None:
        """Return the registered *service_type* instance, or None.

        ``services`` may be a :class:`ServiceProvider` or a plain mapping from
        service type to instance.
        """
        if self.services is None:
            return None
        if isinstance(self.services, Mapping):
            return self.services.get(service_type)  # type: ignore[return-value]
        return self.services.get_service(service_type)  # type: ignore[return-value]

    def require_service(self, service_type: type[T]) -> T:
        """Like :meth:`get_service` but raise when nothing is registered."""
        service = self.get_service(service_type)
        if service is None:
            raise ServiceUnavailableError(service_type)
        return service
