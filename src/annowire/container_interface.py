from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ServiceContainer(Protocol):
    """Minimal capability the resolvers need from a backing container: keyed lookup."""

    def get(self, key: Any) -> Any: ...


_LOOKUP_METHOD_NAMES: tuple[str, ...] = ("get", "make", "resolve")


class ServiceLookup:
    """Adapt any container exposing ``get``, ``make`` or ``resolve`` to one lookup call.

    ``get`` is preferred, then ``make``, then ``resolve`` (diwire-style
    containers). Errors raised by the container propagate to the caller.
    """

    __slots__ = ("_container", "_lookup")

    def __init__(self, container: object | None) -> None:
        self._container = container
        self._lookup = None
        if container is not None:
            for method_name in _LOOKUP_METHOD_NAMES:
                method = getattr(container, method_name, None)
                if callable(method):
                    self._lookup = method
                    break

    @property
    def container(self) -> object | None:
        return self._container

    @property
    def available(self) -> bool:
        return self._lookup is not None

    def lookup(self, service_id: Any) -> Any:
        """Return the container's instance for ``service_id`` (``None`` when unavailable)."""
        if self._lookup is None:
            return None
        return self._lookup(service_id)


__all__ = ["ServiceContainer", "ServiceLookup"]
