from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from annowire._internal.properties import DeclaredProperty, PropertyOwnershipTable
from annowire._internal.type_checks import import_string, is_runtime_class, type_identifier
from annowire.container_interface import ServiceLookup
from annowire.markers import AnnotationMarker, declared_markers
from annowire.settings import AnnotationSettings

logger = logging.getLogger(__name__)


@runtime_checkable
class AnnotationHandler(Protocol):
    """Receive one custom marker together with the place it was found.

    For class markers ``method`` and ``prop`` are ``None``; for method markers
    only ``method`` is set; for property markers only ``prop`` is set.
    """

    def handle(
        self,
        marker: AnnotationMarker,
        cls: type[Any],
        method: Callable[..., Any] | None,
        prop: DeclaredProperty | None,
    ) -> None: ...


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    success: bool = True
    handled: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)

    def merge(self, other: ExecutionResult) -> ExecutionResult:
        return ExecutionResult(
            success=self.success and other.success,
            handled=self.handled + other.handled,
            errors=(*self.errors, *other.errors),
        )


class AnnotationsExecutor:
    """Dispatch custom markers to their configured handlers.

    Args:
        mappings: Marker kind (dotted identifier or marker class) to handler
            (dotted path, handler class or handler instance). Markers match
            their mapped kind or any subclass of it.
        container: Consulted first for handler classes; handlers it cannot
            provide are default-constructed.

    """

    def __init__(self, mappings: Mapping[Any, Any], container: object | None = None) -> None:
        self._mappings = dict(mappings)
        self._lookup = ServiceLookup(container)
        self._resolved: list[tuple[type[AnnotationMarker], Any]] | None = None

    @classmethod
    def from_settings(cls, settings: AnnotationSettings, container: object | None = None) -> AnnotationsExecutor:
        return cls(settings.annotations, container)

    def execute_class(self, target: type[Any] | object) -> ExecutionResult:
        """Run handlers for the markers applied to a class (or an instance's class)."""
        cls = target if inspect.isclass(target) else type(target)
        return self._dispatch(cls, declared_markers(cls), None, None)

    def execute_method(self, target: type[Any] | object, method_name: str) -> ExecutionResult:
        cls = target if inspect.isclass(target) else type(target)
        method = _find_method(cls, method_name)
        if method is None:
            return ExecutionResult(success=False, errors=(f"Method not found: {type_identifier(cls)}.{method_name}",))
        return self._dispatch(cls, declared_markers(method), method, None)

    def execute_property(self, target: type[Any] | object, property_name: str) -> ExecutionResult:
        cls = target if inspect.isclass(target) else type(target)
        try:
            table = PropertyOwnershipTable(cls)
        except Exception as exc:  # noqa: BLE001
            return ExecutionResult(success=False, errors=(str(exc),))
        declared = next((item for item in table if item.name == property_name), None)
        if declared is None:
            msg = f"Property not found: {type_identifier(cls)}.{property_name}"
            return ExecutionResult(success=False, errors=(msg,))
        return self._dispatch(cls, declared.markers, None, declared)

    def run(self, classes: Iterable[type[Any]]) -> ExecutionResult:
        """Process the class, method and property markers of every class in ``classes``."""
        result = ExecutionResult()
        if not self._mappings:
            return result
        for cls in classes:
            result = result.merge(self.execute_class(cls))
            for method in _iter_methods(cls):
                result = result.merge(self._dispatch(cls, declared_markers(method), method, None))
            for declared in PropertyOwnershipTable(cls):
                result = result.merge(self._dispatch(cls, declared.markers, None, declared))
        return result

    def _dispatch(
        self,
        cls: type[Any],
        markers: tuple[AnnotationMarker, ...],
        method: Callable[..., Any] | None,
        prop: DeclaredProperty | None,
    ) -> ExecutionResult:
        handled = 0
        errors: list[str] = []
        for marker_type, handler_spec in self._resolved_mappings():
            for marker in markers:
                if not isinstance(marker, marker_type):
                    continue
                try:
                    handler = self._make_handler(handler_spec)
                    handler.handle(marker, cls, method, prop)
                except Exception as exc:  # noqa: BLE001
                    message = f"Annotation {marker_type.kind()} handler error: {exc}"
                    errors.append(message)
                    logger.error(  # noqa: TRY400
                        "Annotation handler %r failed for %s",
                        handler_spec,
                        type_identifier(cls),
                        extra={
                            "annowire": {
                                "class": type_identifier(cls),
                                "method": getattr(method, "__name__", None),
                                "property": prop.name if prop is not None else None,
                                "error": str(exc),
                            },
                        },
                    )
                else:
                    handled += 1
        return ExecutionResult(success=not errors, handled=handled, errors=tuple(errors))

    def _resolved_mappings(self) -> list[tuple[type[AnnotationMarker], Any]]:
        if self._resolved is None:
            resolved: list[tuple[type[AnnotationMarker], Any]] = []
            for kind, handler_spec in self._mappings.items():
                marker_type = _marker_type(kind)
                if marker_type is None:
                    logger.warning("Ignoring handler mapping for unknown annotation kind %r", kind)
                    continue
                resolved.append((marker_type, handler_spec))
            self._resolved = resolved
        return self._resolved

    def _make_handler(self, handler_spec: Any) -> AnnotationHandler:
        handler_cls = import_string(handler_spec) if isinstance(handler_spec, str) else handler_spec
        if not is_runtime_class(handler_cls):
            handler = handler_cls
        else:
            handler = None
            if self._lookup.available:
                try:
                    handler = self._lookup.lookup(handler_cls)
                except Exception:  # noqa: BLE001
                    logger.debug("Container cannot provide handler %s", type_identifier(handler_cls), exc_info=True)
            if handler is None:
                handler = handler_cls()
        if not isinstance(handler, AnnotationHandler):
            msg = f"{handler!r} does not implement handle(marker, cls, method, prop)"
            raise TypeError(msg)
        return handler


def _marker_type(kind: Any) -> type[AnnotationMarker] | None:
    try:
        candidate = import_string(kind) if isinstance(kind, str) else kind
    except (ImportError, AttributeError):
        return None
    if is_runtime_class(candidate) and issubclass(candidate, AnnotationMarker):
        return candidate
    return None


def _find_method(cls: type[Any], name: str) -> Callable[..., Any] | None:
    for klass in cls.__mro__:
        member = vars(klass).get(name)
        if member is None:
            continue
        if isinstance(member, staticmethod | classmethod):
            return member.__func__
        return member if inspect.isfunction(member) else None
    return None


def _iter_methods(cls: type[Any]) -> Iterator[Callable[..., Any]]:
    seen: set[str] = set()
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name, member in vars(klass).items():
            if name in seen or (name.startswith("__") and name.endswith("__")):
                continue
            seen.add(name)
            if isinstance(member, staticmethod | classmethod):
                yield member.__func__
            elif inspect.isfunction(member):
                yield member


__all__ = ["AnnotationHandler", "AnnotationsExecutor", "ExecutionResult"]
