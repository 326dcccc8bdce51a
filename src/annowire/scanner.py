from __future__ import annotations

import importlib
import inspect
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from types import ModuleType
from typing import Any

from annowire._internal.properties import DeclaredProperty, own_properties
from annowire._internal.type_checks import is_concrete_class, runtime_origin, type_identifier
from annowire.exceptions import AnnowireScanError
from annowire.markers import (
    AnnotationMarker,
    Bean,
    Controller,
    Cron,
    Event,
    HttpMapping,
    Inject,
    Middleware,
    Value,
    declared_markers,
    first_marker,
)
from annowire.metadata import (
    BeanMetadata,
    ControllerMetadata,
    CronMetadata,
    EventMetadata,
    InjectMetadata,
    Registry,
    RouteMetadata,
    ValueMetadata,
)
from annowire.settings import AnnotationSettings
from annowire.whitelist import AnnotationFilter

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".py"
_PACKAGE_INIT = "__init__"


@dataclass(frozen=True, slots=True)
class SourceFile:
    """A module file found under a scan root."""

    root: Path
    path: Path

    @property
    def relative_parts(self) -> tuple[str, ...]:
        return self.path.relative_to(self.root).parts


@dataclass(slots=True)
class _RegistryBuilder:
    controllers: list[ControllerMetadata] = field(default_factory=list)
    routes: list[RouteMetadata] = field(default_factory=list)
    values: list[ValueMetadata] = field(default_factory=list)
    injects: list[InjectMetadata] = field(default_factory=list)
    beans: list[BeanMetadata] = field(default_factory=list)
    crons: list[CronMetadata] = field(default_factory=list)
    events: list[EventMetadata] = field(default_factory=list)

    def build(self) -> Registry:
        return Registry(
            controllers=tuple(self.controllers),
            routes=tuple(self.routes),
            values=tuple(self.values),
            injects=tuple(self.injects),
            beans=tuple(self.beans),
            crons=tuple(self.crons),
            events=tuple(self.events),
        )


@dataclass(frozen=True, slots=True)
class _ClassSurface:
    """Markers visible on a class: own class markers, public methods and own properties."""

    class_markers: tuple[AnnotationMarker, ...]
    methods: tuple[tuple[str, tuple[AnnotationMarker, ...]], ...]
    properties: tuple[DeclaredProperty, ...]


class AnnotationScanner:
    """Walk source roots, import their modules and extract marker metadata.

    Each ``*.py`` file maps to a module name built from the root namespace and
    the file's relative path (``app/http/user.py`` -> ``app.http.user``).
    Concrete classes defined in that module are inspected; classes with no
    allowed marker at class, method or property level are skipped entirely.

    A file that cannot be imported or inspected is logged and skipped. Errors
    outside the per-file boundary propagate; ``AnnotationManager`` turns them
    into an empty registry.
    """

    def __init__(
        self,
        annotation_filter: AnnotationFilter | None = None,
        *,
        root_namespace: str | None = None,
    ) -> None:
        self._filter = annotation_filter or AnnotationFilter()
        self._root_namespace = root_namespace

    @classmethod
    def from_settings(cls, settings: AnnotationSettings) -> AnnotationScanner:
        return cls(AnnotationFilter.from_settings(settings), root_namespace=settings.root_namespace)

    def scan(
        self,
        scan_dirs: Sequence[str | PurePath],
        exclude_dirs: Sequence[str] = (),
    ) -> Registry:
        """Scan ``scan_dirs`` and return the registry of everything found.

        Args:
            scan_dirs: Root directories, scanned in order.
            exclude_dirs: Path segments; files below a matching directory are skipped.

        Returns:
            A registry whose contents depend only on the tree and the filter.

        """
        builder = _RegistryBuilder()
        class_count = 0
        for cls in self.iter_classes(scan_dirs, exclude_dirs):
            class_count += 1
            class_name = type_identifier(cls)
            try:
                self._scan_class(cls, class_name, builder)
            except AnnowireScanError as exc:
                logger.warning("Skipping class %s: %s", class_name, exc, exc_info=exc.__cause__)

        registry = builder.build()
        logger.info(
            "Annotation scan finished: classes=%d controllers=%d routes=%d values=%d "
            "injects=%d beans=%d crons=%d events=%d",
            class_count,
            len(registry.controllers),
            len(registry.routes),
            len(registry.values),
            len(registry.injects),
            len(registry.beans),
            len(registry.crons),
            len(registry.events),
        )
        return registry

    def iter_classes(
        self,
        scan_dirs: Sequence[str | PurePath],
        exclude_dirs: Sequence[str] = (),
    ) -> Iterator[type[Any]]:
        """Yield the concrete, non-blacklisted classes defined under ``scan_dirs``.

        Each class is yielded once, in file order; files that fail to import
        are logged and skipped.
        """
        seen_classes: set[str] = set()
        for source in self.collect_source_files(scan_dirs, exclude_dirs):
            module_name = self.guess_module_from_file(source)
            if module_name is None or self._filter.is_namespace_blacklisted(module_name):
                continue
            try:
                classes = list(self._iter_module_classes(module_name))
            except AnnowireScanError as exc:
                logger.warning("Skipping %s: %s", source.path, exc, exc_info=exc.__cause__)
                continue
            for cls in classes:
                class_name = type_identifier(cls)
                if class_name in seen_classes or self._filter.is_class_blacklisted(class_name):
                    continue
                seen_classes.add(class_name)
                yield cls

    def collect_source_files(
        self,
        scan_dirs: Sequence[str | PurePath],
        exclude_dirs: Sequence[str] = (),
    ) -> list[SourceFile]:
        """Return module files under each root, sorted, minus excluded directories."""
        excluded = [
            tuple(part for part in PurePath(str(exclude).replace("\\", "/")).parts if part not in ("/", ""))
            for exclude in exclude_dirs
        ]
        excluded = [parts for parts in excluded if parts]

        result: list[SourceFile] = []
        for scan_dir in scan_dirs:
            root = Path(scan_dir)
            if not root.is_dir():
                logger.debug("Scan root %s is not a directory", root)
                continue
            for path in sorted(root.rglob(f"*{SOURCE_SUFFIX}")):
                if not path.is_file():
                    continue
                source = SourceFile(root=root, path=path)
                if _is_excluded(source.relative_parts[:-1], excluded):
                    continue
                result.append(source)
        return result

    def guess_module_from_file(self, source: SourceFile) -> str | None:
        """Return the module name a file maps to, or ``None`` if it is not importable."""
        *directories, filename = source.relative_parts
        stem = filename[: -len(SOURCE_SUFFIX)]
        parts = [*directories] if stem == _PACKAGE_INIT else [*directories, stem]
        namespace = self._root_namespace or source.root.resolve().name
        if not all(part.isidentifier() for part in (*namespace.split("."), *parts)):
            return None
        return ".".join((namespace, *parts))

    def _iter_module_classes(self, module_name: str) -> Iterator[type[Any]]:
        module = self._load_module(module_name)
        try:
            members = list(vars(module).values())
        except TypeError as exc:
            raise AnnowireScanError(f"Module {module_name} has no namespace") from exc
        for member in members:
            if not inspect.isclass(member) or member.__module__ != module.__name__:
                continue
            if not is_concrete_class(member):
                continue
            yield member

    def _load_module(self, module_name: str) -> ModuleType:
        try:
            return importlib.import_module(module_name)
        except Exception as exc:  # noqa: BLE001
            raise AnnowireScanError(f"Unable to import {module_name}") from exc

    def _scan_class(self, cls: type[Any], class_name: str, builder: _RegistryBuilder) -> None:
        try:
            surface = self._class_surface(cls)
        except Exception as exc:  # noqa: BLE001
            raise AnnowireScanError(f"Unable to inspect {class_name}") from exc

        if not self._has_allowed_annotations(surface):
            return

        logger.debug("Extracting metadata from %s", class_name)
        self._extract_routes(class_name, surface, builder)
        self._extract_properties(class_name, surface, builder)

        bean = self._allowed_marker(surface.class_markers, Bean)
        if bean is not None:
            builder.beans.append(BeanMetadata(class_name=class_name, name=bean.name, singleton=bean.singleton))

        for method_name, markers in surface.methods:
            cron = self._allowed_marker(markers, Cron)
            if cron is not None:
                builder.crons.append(
                    CronMetadata(
                        class_name=class_name,
                        method=method_name,
                        expression=cron.expression,
                        singleton=cron.singleton,
                    ),
                )
            builder.events.extend(
                EventMetadata(
                    class_name=class_name,
                    method=method_name,
                    event_name=event.name,
                    priority=event.priority,
                )
                for event in self._allowed_markers(markers, Event)
            )

    def _extract_routes(self, class_name: str, surface: _ClassSurface, builder: _RegistryBuilder) -> None:
        controller = self._allowed_marker(surface.class_markers, Controller)
        class_middlewares = self._middlewares(surface.class_markers)

        routes: list[RouteMetadata] = []
        for method_name, markers in surface.methods:
            mapping = self._allowed_marker(markers, HttpMapping)
            if mapping is None:
                continue
            routes.append(
                RouteMetadata(
                    http_method=mapping.method,
                    path=mapping.path,
                    controller_class=class_name,
                    method_name=method_name,
                    middlewares=_unique((*class_middlewares, *self._middlewares(markers))),
                    name=mapping.name,
                ),
            )

        if not routes:
            return
        builder.controllers.append(
            ControllerMetadata(
                class_name=class_name,
                prefix=controller.prefix if controller is not None else "",
                name=controller.name if controller is not None else None,
                middlewares=class_middlewares,
                routes=tuple(routes),
            ),
        )
        builder.routes.extend(routes)

    def _extract_properties(self, class_name: str, surface: _ClassSurface, builder: _RegistryBuilder) -> None:
        for declared in surface.properties:
            value = self._allowed_marker(declared.markers, Value)
            if value is not None:
                builder.values.append(
                    ValueMetadata(
                        class_name=class_name,
                        property=declared.name,
                        key=value.key,
                        default=value.default,
                    ),
                )
            inject = self._allowed_marker(declared.markers, Inject)
            if inject is not None:
                builder.injects.append(
                    InjectMetadata(
                        class_name=class_name,
                        property=declared.name,
                        name=inject.name,
                        type=_declared_type_name(declared),
                        lazy=inject.lazy,
                    ),
                )

    def _class_surface(self, cls: type[Any]) -> _ClassSurface:
        return _ClassSurface(
            class_markers=declared_markers(cls),
            methods=tuple(_public_methods(cls)),
            properties=own_properties(cls),
        )

    def _has_allowed_annotations(self, surface: _ClassSurface) -> bool:
        if self._filter.has_allowed_annotations(surface.class_markers):
            return True
        if any(self._filter.has_allowed_annotations(markers) for _, markers in surface.methods):
            return True
        return any(self._filter.has_allowed_annotations(declared.markers) for declared in surface.properties)

    def _allowed_marker(self, markers: tuple[AnnotationMarker, ...], marker_type: type[Any]) -> Any:
        return first_marker(tuple(self._allowed_markers(markers, marker_type)), marker_type)

    def _allowed_markers(self, markers: tuple[AnnotationMarker, ...], marker_type: type[Any]) -> list[Any]:
        return [marker for marker in self._filter.filter_annotations(markers) if isinstance(marker, marker_type)]

    def _middlewares(self, markers: tuple[AnnotationMarker, ...]) -> tuple[str, ...]:
        return _unique(
            middleware
            for marker in self._allowed_markers(markers, Middleware)
            for middleware in marker.middlewares
        )


def _public_methods(cls: type[Any]) -> Iterator[tuple[str, tuple[AnnotationMarker, ...]]]:
    """Yield public instance methods across the MRO, most specific definition first."""
    seen: set[str] = set()
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name, member in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            if name.startswith("_") or not inspect.isfunction(member):
                continue
            yield name, declared_markers(member)


def _is_excluded(directories: tuple[str, ...], excluded: list[tuple[str, ...]]) -> bool:
    for parts in excluded:
        width = len(parts)
        for start in range(len(directories) - width + 1):
            if directories[start : start + width] == parts:
                return True
    return False


def _unique(items: Any) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


def _declared_type_name(declared: DeclaredProperty) -> str | None:
    value_type = runtime_origin(declared.value_type)
    if not declared.is_typed or not isinstance(value_type, type):
        return None
    return type_identifier(value_type)


__all__ = ["SOURCE_SUFFIX", "AnnotationScanner", "SourceFile"]
