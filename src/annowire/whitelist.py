from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from annowire._internal.type_checks import type_identifier
from annowire.markers import BUILTIN_ANNOTATION_KINDS, AnnotationMarker
from annowire.settings import AnnotationSettings, BlacklistSettings


def kind_of(annotation: str | type[Any] | AnnotationMarker) -> str:
    """Return the annotation-kind identifier of a marker class, instance or identifier."""
    if isinstance(annotation, str):
        return annotation
    if isinstance(annotation, type):
        return type_identifier(annotation)
    return type_identifier(type(annotation))


class AnnotationFilter:
    """Whitelist/blacklist policy over annotation kinds, classes and namespaces.

    A kind is allowed when it is built in or configured as a custom kind and
    is not blacklisted. A class is blacklisted when listed explicitly or when
    it lives below a blacklisted namespace. The backing configuration is read
    once, at construction.
    """

    def __init__(
        self,
        custom_annotations: Iterable[str] | Mapping[str, Any] = (),
        blacklist: BlacklistSettings | None = None,
    ) -> None:
        blacklist = blacklist or BlacklistSettings()
        self._allowed: frozenset[str] = BUILTIN_ANNOTATION_KINDS | frozenset(custom_annotations)
        self._blacklisted_annotations: frozenset[str] = frozenset(blacklist.annotations)
        self._blacklisted_classes: frozenset[str] = frozenset(blacklist.classes)
        self._blacklisted_namespaces: tuple[str, ...] = tuple(
            namespace.strip(".") for namespace in blacklist.namespaces if namespace.strip(".")
        )

    @classmethod
    def from_settings(cls, settings: AnnotationSettings) -> AnnotationFilter:
        return cls(settings.annotations, settings.blacklist)

    @property
    def allowed_annotations(self) -> frozenset[str]:
        return self._allowed

    def is_allowed(self, annotation: str | type[Any] | AnnotationMarker) -> bool:
        kind = kind_of(annotation)
        if kind in self._blacklisted_annotations:
            return False
        return kind in self._allowed

    def is_annotation_blacklisted(self, annotation: str | type[Any] | AnnotationMarker) -> bool:
        return kind_of(annotation) in self._blacklisted_annotations

    def is_namespace_blacklisted(self, name: str) -> bool:
        """Return whether ``name`` is a blacklisted namespace or lies below one."""
        return any(name == namespace or name.startswith(f"{namespace}.") for namespace in self._blacklisted_namespaces)

    def is_class_blacklisted(self, class_name: str) -> bool:
        if class_name in self._blacklisted_classes:
            return True
        return any(class_name.startswith(f"{namespace}.") for namespace in self._blacklisted_namespaces)

    def filter_annotations(self, markers: Iterable[AnnotationMarker]) -> list[AnnotationMarker]:
        return [marker for marker in markers if self.is_allowed(marker)]

    def has_allowed_annotations(self, markers: Iterable[AnnotationMarker]) -> bool:
        return any(self.is_allowed(marker) for marker in markers)


__all__ = ["AnnotationFilter", "kind_of"]
