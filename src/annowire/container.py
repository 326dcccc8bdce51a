from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from annowire._internal.type_checks import import_string, is_runtime_class, type_identifier
from annowire.exceptions import AnnowireServiceNotRegisteredError
from annowire.injector import AutoInjector
from annowire.metadata import BeanMetadata, Registry

logger = logging.getLogger(__name__)


class _Provider:
    __slots__ = ("factory", "instance", "singleton")

    _UNSET: Any = object()

    def __init__(self, factory: Callable[[], Any] | None, *, singleton: bool, instance: Any = _UNSET) -> None:
        self.factory = factory
        self.singleton = singleton
        self.instance = instance


class Container:
    """Keyed service container.

    Keys are arbitrary hashables, usually a class or a service name. Singleton
    providers build their instance on first ``get`` and then reuse it; factory
    providers build a new instance per ``get``. One provider may be registered
    under several keys so that they share the same singleton.

    Examples:
        .. code-block:: python

            container = Container()
            container.add_instance(Settings(), provides=Settings)
            container.add_singleton(Database, provides="db")
            db = container.get("db")

    """

    def __init__(self) -> None:
        self._providers: dict[Any, _Provider] = {}
        self._lock = threading.RLock()

    def add_instance(self, instance: object, *, provides: Any = None) -> None:
        key = provides if provides is not None else type(instance)
        self._register((key,), _Provider(None, singleton=True, instance=instance))

    def add_singleton(self, factory: Callable[[], Any], *, provides: Any = None) -> None:
        self._register(self._keys(factory, provides), _Provider(factory, singleton=True))

    def add_factory(self, factory: Callable[[], Any], *, provides: Any = None) -> None:
        self._register(self._keys(factory, provides), _Provider(factory, singleton=False))

    def has(self, key: Any) -> bool:
        return key in self._providers

    def __contains__(self, key: Any) -> bool:
        return self.has(key)

    def get(self, key: Any) -> Any:
        """Return the instance registered under ``key``.

        Raises:
            AnnowireServiceNotRegisteredError: If nothing is registered under ``key``.

        """
        provider = self._providers.get(key)
        if provider is None:
            raise AnnowireServiceNotRegisteredError(key)
        if not provider.singleton:
            return provider.factory()  # type: ignore[misc]
        if provider.instance is _Provider._UNSET:
            with self._lock:
                if provider.instance is _Provider._UNSET:
                    provider.instance = provider.factory()  # type: ignore[misc]
        return provider.instance

    def _register(self, keys: tuple[Any, ...], provider: _Provider) -> None:
        with self._lock:
            for key in keys:
                self._providers[key] = provider

    @staticmethod
    def _keys(factory: Callable[[], Any], provides: Any) -> tuple[Any, ...]:
        if provides is None:
            if not is_runtime_class(factory):
                msg = "provides= is required when registering a non-class factory."
                raise TypeError(msg)
            return (factory,)
        if isinstance(provides, tuple):
            return provides
        return (provides,)


class BeanRegistrar:
    """Register every ``Bean`` of a registry into a container.

    Each bean is reachable by its logical name, by its class identifier string
    and by the class itself; all keys share one provider. Instances are built
    through ``AutoInjector.construct`` so their properties are injected.
    Keys that are already registered are left alone.
    """

    def __init__(self, container: Container, injector: AutoInjector) -> None:
        self.container = container
        self.injector = injector

    def register(self, registry: Registry) -> int:
        """Register the beans of ``registry`` and return how many were added."""
        registered = 0
        for bean in registry.beans:
            try:
                if self._register_bean(bean):
                    registered += 1
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Failed to register bean %s",
                    bean.class_name,
                    extra={"annowire": {"bean": bean.class_name, "name": bean.name}},
                )
        logger.debug("Registered %d of %d beans", registered, len(registry.beans))
        return registered

    def register_managed(self) -> int:
        """Register the beans of the injector's manager when ``auto_register_beans`` is enabled."""
        manager = self.injector.manager
        if manager is None or not manager.settings.auto_register_beans:
            return 0
        return self.register(manager.registry())

    def _register_bean(self, bean: BeanMetadata) -> bool:
        cls = import_string(bean.class_name)
        if not is_runtime_class(cls):
            msg = f"{bean.class_name} does not name a class"
            raise TypeError(msg)
        candidates = dict.fromkeys((bean.service_name, bean.class_name, cls))
        keys = tuple(key for key in candidates if not self.container.has(key))
        if not keys:
            logger.debug("Bean %s already registered", bean.service_name)
            return False

        def build() -> Any:
            return self.injector.construct(cls)

        if bean.singleton:
            self.container.add_singleton(build, provides=keys)
        else:
            self.container.add_factory(build, provides=keys)
        logger.debug(
            "Registered bean %s as %s under %s",
            type_identifier(cls),
            "singleton" if bean.singleton else "factory",
            [key if isinstance(key, str) else type_identifier(key) for key in keys],
        )
        return True


__all__ = ["BeanRegistrar", "Container"]
