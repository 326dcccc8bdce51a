from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from annowire._internal.properties import (
    MISSING,
    DeclaredProperty,
    PropertyIntrospector,
    read_instance_value,
)
from annowire._internal.type_checks import (
    is_concrete_class,
    is_runtime_class,
    is_scalar_type,
    is_untyped,
    type_identifier,
)
from annowire.container_interface import ServiceLookup
from annowire.exceptions import AnnowirePropertyAssignmentError, AnnowireResolutionError
from annowire.lazy_proxy import LazyInjectProxy
from annowire.markers import Inject

logger = logging.getLogger(__name__)

# Building set of the resolution running in this thread or task. Nested calls made by
# container factories join it instead of starting an empty one.
_active_building: ContextVar[BuildingSet | None] = ContextVar("annowire_active_building", default=None)


class BuildingSet:
    """Instances under construction during one top-level resolution call.

    Keys are classes (or service names); each entry is removed when the
    instance that registered it finishes resolving, on every exit path.
    """

    __slots__ = ("_instances",)

    def __init__(self) -> None:
        self._instances: dict[Any, object] = {}

    def __contains__(self, key: Any) -> bool:
        return key in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def get(self, key: Any) -> object | None:
        return self._instances.get(key)

    def chain(self) -> list[str]:
        """Identifiers currently building, outermost first."""
        return [key if isinstance(key, str) else type_identifier(key) for key in self._instances]

    @contextmanager
    def building(self, instance: object) -> Iterator[None]:
        key = type(instance)
        self._instances[key] = instance
        try:
            yield
        finally:
            self._instances.pop(key, None)


class DependencyResolver:
    """Fill ``Annotated[T, Inject(...)]`` properties of an instance.

    The service identifier is the marker ``name`` when given, else the declared
    class. Each eager binding is resolved by, in order:

    1. reusing an instance of the same class already under construction in
       this call (a dependency cycle, logged as a warning);
    2. looking the identifier up in the backing container and resolving the
       result's own dependencies;
    3. default-constructing the declared class and resolving its dependencies.

    Lazy bindings on ``Any``/``object`` properties receive a
    ``LazyInjectProxy`` instead. Properties that already hold a value are left
    alone, and failures are logged without raising.

    Args:
        container: Backing container with ``get``, ``make`` or ``resolve``.
        introspector: Shared ownership-table cache.

    """

    def __init__(self, container: object | None = None, *, introspector: PropertyIntrospector | None = None) -> None:
        self._lookup = ServiceLookup(container)
        self._introspector = introspector or PropertyIntrospector()

    @property
    def container(self) -> object | None:
        return self._lookup.container

    def resolve_dependencies(self, instance: object, building: BuildingSet | None = None) -> None:
        """Inject dependencies into ``instance``. Never raises.

        Without an explicit ``building`` set the call joins the resolution
        already running in the current thread or task, if any. This keeps
        cycles detectable when a container factory injects the instance it
        builds.
        """
        if building is None:
            building = _active_building.get()
        if building is None:
            building = BuildingSet()
        token = _active_building.set(building)
        try:
            with building.building(instance):
                table = self._introspector.table(type(instance))
                for declared, marker in table.bound(Inject):
                    current = read_instance_value(instance, declared.name)
                    if current is not MISSING and current is not None:
                        continue
                    self._resolve_property(instance, declared, marker, building)
        finally:
            _active_building.reset(token)

    def _resolve_property(
        self,
        instance: object,
        declared: DeclaredProperty,
        marker: Inject,
        building: BuildingSet,
    ) -> None:
        target_class = _target_class(declared)
        service_id: Any = marker.name or target_class
        if service_id is None:
            logger.debug(
                "Skipping %s.%s: no service name and no injectable declared type",
                type_identifier(declared.owner),
                declared.name,
            )
            return

        if marker.lazy and is_untyped(declared.value_type) and marker.name:
            proxy = LazyInjectProxy(marker.name, self._lookup, hint=type_identifier(declared.owner))
            self._assign(instance, declared, proxy, service_id)
            return

        try:
            dependency = self._resolve(declared, service_id, target_class, instance, building)
        except AnnowireResolutionError as exc:
            logger.error(  # noqa: TRY400
                "Unable to resolve dependency %s for %s.%s: %s",
                _describe(service_id),
                type_identifier(declared.owner),
                declared.name,
                exc,
                extra={
                    "annowire": {
                        "class": type_identifier(declared.owner),
                        "property": declared.name,
                        "service_id": _describe(service_id),
                    },
                },
            )
            return
        self._assign(instance, declared, dependency, service_id)

    def _resolve(
        self,
        declared: DeclaredProperty,
        service_id: Any,
        target_class: type[Any] | None,
        instance: object,
        building: BuildingSet,
    ) -> object:
        for key in (target_class, service_id):
            if key is not None and key in building:
                logger.warning(
                    "Circular dependency on %s from %s.%s resolved with the instance under construction",
                    _describe(key),
                    type_identifier(type(instance)),
                    declared.name,
                    extra={"annowire": {"service_id": _describe(service_id), "chain": building.chain()}},
                )
                return building.get(key)

        if self._lookup.available:
            try:
                resolved = self._lookup.lookup(service_id)
            except LookupError:
                logger.debug("Container has no entry for %s", _describe(service_id))
            except Exception as exc:  # noqa: BLE001
                logger.error(  # noqa: TRY400
                    "Container lookup of %s failed for %s.%s: %s",
                    _describe(service_id),
                    type_identifier(declared.owner),
                    declared.name,
                    exc,
                )
            else:
                if resolved is not None:
                    if type(resolved) not in building:
                        self.resolve_dependencies(resolved, building)
                    return resolved

        if target_class is not None and is_concrete_class(target_class):
            try:
                created = target_class()
            except Exception as exc:
                msg = f"default construction of {type_identifier(target_class)} failed: {exc}"
                owner = type_identifier(declared.owner)
                raise AnnowireResolutionError(msg, service_id=service_id, owner=owner) from exc
            self.resolve_dependencies(created, building)
            return created

        msg = "not provided by the container and not default-constructible"
        raise AnnowireResolutionError(msg, service_id=service_id, owner=type_identifier(declared.owner))

    def _assign(self, instance: object, declared: DeclaredProperty, value: object, service_id: Any) -> None:
        try:
            setattr(instance, declared.name, value)
        except Exception as exc:  # noqa: BLE001
            error = AnnowirePropertyAssignmentError(str(exc))
            logger.error(  # noqa: TRY400
                "Failed to inject %s into %s.%s: %s",
                _describe(service_id),
                type_identifier(declared.owner),
                declared.name,
                error,
                extra={"annowire": {"class": type_identifier(declared.owner), "property": declared.name}},
            )


def _target_class(declared: DeclaredProperty) -> type[Any] | None:
    value_type = declared.value_type
    if is_untyped(value_type) or is_scalar_type(value_type) or not is_runtime_class(value_type):
        return None
    return value_type


def _describe(service_id: Any) -> str:
    return service_id if isinstance(service_id, str) else type_identifier(service_id)


__all__ = ["BuildingSet", "DependencyResolver"]
