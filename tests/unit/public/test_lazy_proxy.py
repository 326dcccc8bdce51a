from __future__ import annotations

import logging
import threading
from typing import Any

import pytest

from annowire.container_interface import ServiceLookup
from annowire.lazy_proxy import LazyInjectProxy, ProxyState


class _Cache:
    def __init__(self) -> None:
        self.items = {"a": 1, "b": 2}
        self.ttl = 60

    def __contains__(self, key: str) -> bool:
        return key in self.items

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Any:
        return iter(self.items)

    def __call__(self, key: str) -> int:
        return self.items[key]

    def get(self, key: str) -> int | None:
        return self.items.get(key)


class _CountingContainer:
    def __init__(self, instance: Any = None, error: Exception | None = None) -> None:
        self.instance = instance
        self.error = error
        self.lookups = 0

    def get(self, key: Any) -> Any:
        self.lookups += 1
        if self.error is not None:
            raise self.error
        return self.instance


def _proxy(container: _CountingContainer | None) -> LazyInjectProxy:
    return LazyInjectProxy("cache", ServiceLookup(container), hint="app.Service")


def test_proxy_performs_no_lookup_before_first_use() -> None:
    container = _CountingContainer(_Cache())

    proxy = _proxy(container)
    repr(proxy)

    assert container.lookups == 0
    assert proxy.proxy_state is ProxyState.UNRESOLVED
    assert proxy.proxy_service_id == "cache"


def test_proxy_resolves_exactly_once_and_forwards_operations() -> None:
    cache = _Cache()
    container = _CountingContainer(cache)
    proxy = _proxy(container)

    assert proxy.get("a") == 1
    assert proxy.ttl == 60
    assert "b" in proxy
    assert len(proxy) == 2
    assert list(proxy) == ["a", "b"]
    assert proxy("b") == 2
    assert bool(proxy)

    proxy.ttl = 30
    del proxy.items

    assert cache.ttl == 30
    assert not hasattr(cache, "items")
    assert container.lookups == 1
    assert proxy.proxy_state is ProxyState.RESOLVED


def test_failed_lookup_makes_proxy_permanently_inert(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="annowire.lazy_proxy")
    container = _CountingContainer(error=RuntimeError("unavailable"))
    proxy = _proxy(container)

    assert proxy.get("a") is None
    assert proxy.ttl is None
    assert "a" not in proxy
    assert len(proxy) == 0
    assert list(proxy) == []
    assert proxy("a") is None
    assert not proxy
    proxy.ttl = 30

    assert container.lookups == 1
    assert proxy.proxy_state is ProxyState.FAILED
    (record,) = caplog.records
    assert "unavailable" in record.getMessage()
    assert record.annowire["class"] == "app.Service"


def test_container_returning_nothing_fails_the_proxy() -> None:
    container = _CountingContainer(instance=None)
    proxy = _proxy(container)

    assert proxy.anything is None
    assert proxy.proxy_state is ProxyState.FAILED


def test_proxy_without_container_fails_on_first_use() -> None:
    proxy = _proxy(None)

    assert not proxy
    assert proxy.proxy_state is ProxyState.FAILED


def test_concurrent_first_use_resolves_once() -> None:
    container = _CountingContainer(_Cache())
    proxy = _proxy(container)
    barrier = threading.Barrier(8)
    results: list[int] = []

    def use() -> None:
        barrier.wait()
        results.append(proxy.ttl)

    threads = [threading.Thread(target=use) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results == [60] * 8
    assert container.lookups == 1
