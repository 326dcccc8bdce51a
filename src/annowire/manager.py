from __future__ import annotations

import logging
import threading
from collections.abc import Mapping

from annowire.cache import RegistryCacheStore
from annowire.metadata import Registry
from annowire.scanner import AnnotationScanner
from annowire.settings import AnnotationSettings

logger = logging.getLogger(__name__)


class AnnotationManager:
    """Own the registry of one process: scan once, optionally through a cache store.

    ``registry()`` never raises because of scanning; a failed scan is logged
    and yields an empty registry so that application startup proceeds.

    Args:
        settings: Scan and cache configuration.
        cache_stores: Stores by identifier; ``settings.cache_store`` selects one.
            A single store may be passed directly.
        scanner: Scanner override, built from ``settings`` by default.

    """

    def __init__(
        self,
        settings: AnnotationSettings | None = None,
        *,
        cache_stores: Mapping[str, RegistryCacheStore] | RegistryCacheStore | None = None,
        scanner: AnnotationScanner | None = None,
    ) -> None:
        self.settings = settings or AnnotationSettings()
        self._cache_stores = cache_stores
        self._scanner = scanner or AnnotationScanner.from_settings(self.settings)
        self._registry: Registry | None = None
        self._lock = threading.Lock()

    def registry(self) -> Registry:
        """Return the process registry, scanning on first access."""
        registry = self._registry
        if registry is not None:
            return registry
        with self._lock:
            if self._registry is None:
                self._registry = self._load()
            return self._registry

    def reset(self) -> None:
        """Forget the memoized registry; the next access rescans or reloads."""
        with self._lock:
            self._registry = None

    def _load(self) -> Registry:
        if not self.settings.enable:
            logger.debug("Annotation scanning disabled")
            return Registry()

        store = self._cache_store()
        cache_key = self.settings.cache_key
        if store is not None:
            try:
                cached = store.get(cache_key)
            except Exception:  # noqa: BLE001
                logger.exception("Unable to read annotation registry from cache key %s", cache_key)
                cached = None
            if isinstance(cached, Registry):
                logger.debug("Loaded annotation registry from cache key %s", cache_key)
                return cached

        registry = self._scan()

        if store is not None:
            try:
                store.set(cache_key, registry, self.settings.cache_ttl)
            except Exception:  # noqa: BLE001
                logger.exception("Unable to write annotation registry to cache key %s", cache_key)
        return registry

    def _scan(self) -> Registry:
        try:
            return self._scanner.scan(self.settings.scan_dirs, self.settings.exclude_dirs)
        except Exception:  # noqa: BLE001
            logger.exception("Annotation scan failed; continuing with an empty registry")
            return Registry()

    def _cache_store(self) -> RegistryCacheStore | None:
        if not self.settings.enable_cache or self._cache_stores is None:
            return None
        if isinstance(self._cache_stores, Mapping):
            store = self._cache_stores.get(self.settings.cache_store)
            if store is None:
                logger.warning("Cache store %r is not configured; caching disabled", self.settings.cache_store)
            return store
        return self._cache_stores


__all__ = ["AnnotationManager"]
