from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class RouteMetadata:
    """HTTP route bound to a controller method.

    ``http_method`` is stored upper-cased as declared; unknown verbs are only
    mapped to "any" by the route registrar.
    """

    http_method: str
    path: str
    controller_class: str
    method_name: str
    middlewares: tuple[str, ...] = ()
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "http_method", self.http_method.upper())


@dataclass(frozen=True, slots=True)
class ControllerMetadata:
    """Route group of a class that owns at least one route."""

    class_name: str
    prefix: str = ""
    name: str | None = None
    middlewares: tuple[str, ...] = ()
    routes: tuple[RouteMetadata, ...] = ()


@dataclass(frozen=True, slots=True)
class ValueMetadata:
    class_name: str
    property: str
    key: str
    default: Any = None


@dataclass(frozen=True, slots=True)
class InjectMetadata:
    class_name: str
    property: str
    name: str | None = None
    type: str | None = None
    lazy: bool = False


@dataclass(frozen=True, slots=True)
class BeanMetadata:
    class_name: str
    name: str | None = None
    singleton: bool = True

    @property
    def service_name(self) -> str:
        """Return the logical name, defaulting to the class identifier."""
        return self.name or self.class_name


@dataclass(frozen=True, slots=True)
class CronMetadata:
    class_name: str
    method: str
    expression: str
    singleton: bool = True


@dataclass(frozen=True, slots=True)
class EventMetadata:
    """Event listener method; lower ``priority`` runs first."""

    class_name: str
    method: str
    event_name: str
    priority: int | None = None


@dataclass(frozen=True, slots=True)
class Registry:
    """Immutable snapshot of all metadata found by a scan.

    The registry is a pure function of the scanned tree and the filter
    configuration. It is picklable, so it can be shared through a cache store.
    """

    controllers: tuple[ControllerMetadata, ...] = ()
    routes: tuple[RouteMetadata, ...] = ()
    values: tuple[ValueMetadata, ...] = ()
    injects: tuple[InjectMetadata, ...] = ()
    beans: tuple[BeanMetadata, ...] = ()
    crons: tuple[CronMetadata, ...] = ()
    events: tuple[EventMetadata, ...] = ()

    _bound_classes: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_bound_classes",
            frozenset(meta.class_name for meta in (*self.values, *self.injects)),
        )

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.controllers, self.routes, self.values, self.injects, self.beans, self.crons, self.events),
        )

    def has_property_bindings(self, class_name: str) -> bool:
        """Return whether ``class_name`` declares any value or inject binding."""
        return class_name in self._bound_classes

    def values_for(self, class_name: str) -> tuple[ValueMetadata, ...]:
        return tuple(meta for meta in self.values if meta.class_name == class_name)

    def injects_for(self, class_name: str) -> tuple[InjectMetadata, ...]:
        return tuple(meta for meta in self.injects if meta.class_name == class_name)


__all__ = [
    "BeanMetadata",
    "ControllerMetadata",
    "CronMetadata",
    "EventMetadata",
    "InjectMetadata",
    "Registry",
    "RouteMetadata",
    "ValueMetadata",
]
