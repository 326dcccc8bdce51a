from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from annowire._internal.properties import PropertyIntrospector
from annowire._internal.type_checks import type_identifier
from annowire.dependency_resolver import DependencyResolver
from annowire.manager import AnnotationManager
from annowire.markers import Inject, Value
from annowire.metadata import Registry
from annowire.value_resolver import ValueResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AutoInjector:
    """Run value injection and then dependency injection on instances.

    Both resolvers share one property introspector, so each class is
    introspected once per injector.

    Args:
        config: Configuration source for ``Value`` properties.
        container: Backing container for ``Inject`` properties.
        manager: Registry owner consulted by ``needs_injection``.
        enable_value_injection: Set to ``False`` to skip ``Value`` properties.
        environ: Environment mapping for ``env:`` keys.

    """

    def __init__(
        self,
        *,
        config: Any = None,
        container: object | None = None,
        manager: AnnotationManager | None = None,
        enable_value_injection: bool = True,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        introspector = PropertyIntrospector()
        self.introspector = introspector
        self.values = ValueResolver(config, environ=environ, introspector=introspector)
        self.dependencies = DependencyResolver(container, introspector=introspector)
        self.manager = manager
        self.enable_value_injection = enable_value_injection
        self._needs_injection: dict[type[Any], bool] = {}

    @classmethod
    def from_manager(
        cls,
        manager: AnnotationManager,
        *,
        config: Any = None,
        container: object | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> AutoInjector:
        """Build an injector bound to ``manager`` and configured by its settings."""
        return cls(
            config=config,
            container=container,
            manager=manager,
            enable_value_injection=manager.settings.enable_value_injection,
            environ=environ,
        )

    def inject(self, instance: object) -> None:
        """Inject ``Value`` and then ``Inject`` properties of ``instance``. Never raises."""
        if self.enable_value_injection:
            self.values.resolve_values(instance)
        self.dependencies.resolve_dependencies(instance)

    def inject_batch(self, instances: Iterable[object]) -> None:
        for instance in instances:
            self.inject(instance)

    def construct(self, cls: type[T], *args: Any, **kwargs: Any) -> T:
        """Create ``cls`` with its annotated properties injected before ``__init__`` runs.

        The instance is allocated without calling ``__init__``, injected, and
        only then initialized with ``args`` and ``kwargs``, so the constructor
        can use injected values. Classes without bindings are constructed
        normally.
        """
        if not self.needs_injection(cls):
            return cls(*args, **kwargs)

        instance = cls.__new__(cls)
        self.inject(instance)
        instance.__init__(*args, **kwargs)  # type: ignore[misc]
        return instance

    def needs_injection(self, cls: type[Any]) -> bool:
        """Return whether ``cls`` or one of its ancestors declares injectable properties."""
        cached = self._needs_injection.get(cls)
        if cached is not None:
            return cached
        needed = self._registry_binds(cls) or self._declares_bindings(cls)
        self._needs_injection[cls] = needed
        return needed

    def _registry_binds(self, cls: type[Any]) -> bool:
        if self.manager is None:
            return False
        registry: Registry = self.manager.registry()
        return any(registry.has_property_bindings(type_identifier(klass)) for klass in cls.__mro__)

    def _declares_bindings(self, cls: type[Any]) -> bool:
        table = self.introspector.table(cls)
        return any(True for _ in table.bound(Value)) or any(True for _ in table.bound(Inject))


__all__ = ["AutoInjector"]
