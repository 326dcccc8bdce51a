from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Iterator
from typing import Any

from annowire.container_interface import ServiceLookup
from annowire.exceptions import AnnowireProxyResolutionError

logger = logging.getLogger(__name__)


class ProxyState(enum.Enum):
    """Lifecycle of a ``LazyInjectProxy``; the terminal states never change."""

    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    FAILED = "failed"


class LazyInjectProxy:
    """Placeholder assigned for ``Inject(lazy=True)`` properties.

    The backing container is consulted once, on the first forwarded operation
    (attribute read, write or delete, call, ``in``, ``len``, iteration or
    truthiness). On success every operation is forwarded to the resolved
    instance. On failure the proxy logs once and stays inert: reads and calls
    return ``None``, ``in`` and ``bool`` return ``False``, iteration is empty
    and writes are dropped.

    Args:
        service_id: Container key to resolve.
        lookup: Adapter over the backing container; ``None`` means no container.
        hint: Class that declared the property, for diagnostics.

    """

    __slots__ = (
        "_annowire_hint",
        "_annowire_instance",
        "_annowire_lock",
        "_annowire_lookup",
        "_annowire_service_id",
        "_annowire_state",
    )

    def __init__(self, service_id: Any, lookup: ServiceLookup | None = None, hint: str | None = None) -> None:
        object.__setattr__(self, "_annowire_service_id", service_id)
        object.__setattr__(self, "_annowire_lookup", lookup)
        object.__setattr__(self, "_annowire_hint", hint)
        object.__setattr__(self, "_annowire_instance", None)
        object.__setattr__(self, "_annowire_state", ProxyState.UNRESOLVED)
        object.__setattr__(self, "_annowire_lock", threading.Lock())

    @property
    def proxy_state(self) -> ProxyState:
        return object.__getattribute__(self, "_annowire_state")

    @property
    def proxy_service_id(self) -> Any:
        return object.__getattribute__(self, "_annowire_service_id")

    def _annowire_target(self) -> Any:
        """Return the resolved instance, resolving on first use, or ``None`` when failed."""
        if self.proxy_state is not ProxyState.UNRESOLVED:
            return object.__getattribute__(self, "_annowire_instance")
        with object.__getattribute__(self, "_annowire_lock"):
            if self.proxy_state is ProxyState.UNRESOLVED:
                self._annowire_resolve()
        return object.__getattribute__(self, "_annowire_instance")

    def _annowire_resolve(self) -> None:
        service_id = self.proxy_service_id
        hint = object.__getattribute__(self, "_annowire_hint")
        lookup: ServiceLookup | None = object.__getattribute__(self, "_annowire_lookup")
        try:
            if lookup is None or not lookup.available:
                msg = "backing container not available"
                raise AnnowireProxyResolutionError(msg)
            try:
                instance = lookup.lookup(service_id)
            except Exception as exc:  # noqa: BLE001
                raise AnnowireProxyResolutionError(str(exc)) from exc
            if instance is None:
                msg = "container returned no instance"
                raise AnnowireProxyResolutionError(msg)
        except AnnowireProxyResolutionError as exc:
            logger.error(  # noqa: TRY400
                "Lazy proxy resolve failed for %r (declared by %s): %s",
                service_id,
                hint,
                exc,
                extra={"annowire": {"service_id": repr(service_id), "class": hint}},
            )
            object.__setattr__(self, "_annowire_state", ProxyState.FAILED)
            return
        object.__setattr__(self, "_annowire_instance", instance)
        object.__setattr__(self, "_annowire_state", ProxyState.RESOLVED)

    def __getattr__(self, name: str) -> Any:
        target = self._annowire_target()
        if target is None:
            return None
        return getattr(target, name)

    def __setattr__(self, name: str, value: Any) -> None:
        target = self._annowire_target()
        if target is not None:
            setattr(target, name, value)

    def __delattr__(self, name: str) -> None:
        target = self._annowire_target()
        if target is not None:
            delattr(target, name)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        target = self._annowire_target()
        if target is None or not callable(target):
            return None
        return target(*args, **kwargs)

    def __contains__(self, item: Any) -> bool:
        target = self._annowire_target()
        if target is None:
            return False
        return item in target

    def __len__(self) -> int:
        target = self._annowire_target()
        if target is None:
            return 0
        return len(target)

    def __iter__(self) -> Iterator[Any]:
        target = self._annowire_target()
        if target is None:
            return iter(())
        return iter(target)

    def __bool__(self) -> bool:
        target = self._annowire_target()
        return bool(target) if target is not None else False

    def __repr__(self) -> str:
        return f"<LazyInjectProxy {self.proxy_service_id!r} {self.proxy_state.value}>"


__all__ = ["LazyInjectProxy", "ProxyState"]
