from __future__ import annotations

import inspect
import logging
import threading
import typing
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, ClassVar, TypeVar, get_origin

from annowire._internal.type_checks import (
    NO_ZERO_VALUE,
    is_scalar_type,
    is_sequence_type,
    is_untyped,
    split_optional,
    zero_value,
)
from annowire.markers import AnnotationMarker, annotation_markers, strip_annotated

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=AnnotationMarker)

MISSING: Any = object()


@dataclass(frozen=True, slots=True)
class DeclaredProperty:
    """A property declared in a class body, with its ``Annotated`` markers split off."""

    owner: type[Any]
    name: str
    annotation: Any
    markers: tuple[AnnotationMarker, ...]

    @property
    def value_type(self) -> Any:
        """Declared type with ``None`` removed from optional unions."""
        return split_optional(self.annotation)[0]

    @property
    def allows_none(self) -> bool:
        return is_untyped(self.annotation) or split_optional(self.annotation)[1]

    @property
    def is_typed(self) -> bool:
        return not is_untyped(self.annotation)

    @property
    def is_sequence(self) -> bool:
        return is_sequence_type(self.value_type)

    @property
    def is_scalar(self) -> bool:
        return is_scalar_type(self.value_type)

    @property
    def zero(self) -> Any:
        return zero_value(self.value_type)

    @property
    def has_zero(self) -> bool:
        return self.zero is not NO_ZERO_VALUE

    def marker(self, marker_type: type[M]) -> M | None:
        return next((marker for marker in self.markers if isinstance(marker, marker_type)), None)


def own_properties(cls: type[Any]) -> tuple[DeclaredProperty, ...]:
    """Return the properties ``cls`` itself declares, in declaration order.

    Inherited annotations are excluded; a redeclaration in ``cls`` shadows the
    ancestor's declaration. ``ClassVar`` declarations are skipped.
    """
    try:
        raw = inspect.get_annotations(cls)
    except Exception:  # noqa: BLE001
        logger.debug("Unable to read annotations of %s", cls, exc_info=True)
        return ()
    if not raw:
        return ()

    hints = _evaluate_hints(cls)

    properties: list[DeclaredProperty] = []
    for name, raw_annotation in raw.items():
        annotation = hints.get(name, raw_annotation)
        if isinstance(annotation, str) or _is_class_var(annotation):
            continue
        properties.append(
            DeclaredProperty(
                owner=cls,
                name=name,
                annotation=strip_annotated(annotation),
                markers=annotation_markers(annotation),
            ),
        )
    return tuple(properties)


def type_chain(cls: type[Any]) -> tuple[type[Any], ...]:
    """Return ``cls`` and its ancestors, root ancestor first, ``object`` excluded."""
    return tuple(klass for klass in reversed(cls.__mro__) if klass is not object)


class PropertyOwnershipTable:
    """Map each property name of a type to the class that declares it last.

    Entries are ordered ancestor first, so a binding declared by a base class
    runs before those declared by subclasses, and a redeclared property is
    processed once, through its most specific declaration.
    """

    def __init__(self, cls: type[Any]) -> None:
        self.cls = cls
        owners: dict[str, DeclaredProperty] = {}
        for klass in type_chain(cls):
            for declared in own_properties(klass):
                owners.pop(declared.name, None)
                owners[declared.name] = declared
        chain_index = {klass: index for index, klass in enumerate(type_chain(cls))}
        self._properties: tuple[DeclaredProperty, ...] = tuple(
            sorted(owners.values(), key=lambda declared: chain_index[declared.owner]),
        )

    def __iter__(self) -> Iterator[DeclaredProperty]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def bound(self, marker_type: type[M]) -> Iterator[tuple[DeclaredProperty, M]]:
        """Yield the properties carrying ``marker_type`` together with the marker."""
        for declared in self._properties:
            marker = declared.marker(marker_type)
            if marker is not None:
                yield declared, marker


class PropertyIntrospector:
    """Build and memoize ownership tables per type.

    The cache belongs to the introspector instance; each resolver owns one.
    Tables are immutable, so concurrent builds of the same entry are harmless.
    """

    def __init__(self) -> None:
        self._tables: dict[type[Any], PropertyOwnershipTable] = {}
        self._lock = threading.Lock()

    def table(self, cls: type[Any]) -> PropertyOwnershipTable:
        cached = self._tables.get(cls)
        if cached is not None:
            return cached
        table = PropertyOwnershipTable(cls)
        with self._lock:
            return self._tables.setdefault(cls, table)

    def clear(self) -> None:
        self._tables.clear()


def read_instance_value(instance: object, name: str) -> Any:
    """Return the value stored on the instance itself, or ``MISSING``.

    Class-level defaults do not count as instance state.
    """
    instance_dict = getattr(instance, "__dict__", None)
    if isinstance(instance_dict, dict) and name in instance_dict:
        return instance_dict[name]
    for klass in type(instance).__mro__:
        if name in vars(klass) and inspect.ismemberdescriptor(vars(klass)[name]):
            try:
                return vars(klass)[name].__get__(instance, type(instance))
            except AttributeError:
                return MISSING
    return MISSING


def _evaluate_hints(cls: type[Any]) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except Exception:  # noqa: BLE001
        logger.debug("Unable to evaluate type hints of %s across its MRO", cls, exc_info=True)
    # an ancestor may hold the unresolved forward reference; retry with own annotations only
    try:
        return inspect.get_annotations(cls, eval_str=True)
    except Exception:  # noqa: BLE001
        logger.debug("Unable to evaluate own annotations of %s", cls, exc_info=True)
        return {}


def _is_class_var(annotation: Any) -> bool:
    return annotation is ClassVar or get_origin(annotation) is ClassVar


__all__ = [
    "MISSING",
    "DeclaredProperty",
    "PropertyIntrospector",
    "PropertyOwnershipTable",
    "own_properties",
    "read_instance_value",
    "type_chain",
]
