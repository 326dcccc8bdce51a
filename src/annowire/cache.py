from __future__ import annotations

import hashlib
import logging
import os
import pickle
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class RegistryCacheStore(Protocol):
    """Key/value store with per-entry TTL used to share a scanned registry."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int) -> None: ...


class MemoryCacheStore:
    """Process-local store; entries expire ``ttl`` seconds after ``set``."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= time.monotonic():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic() + ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class FileCacheStore:
    """Pickle entries into a directory so that several worker processes share them.

    Writes go to a temporary file that replaces the entry atomically; concurrent
    writers of the same key simply race and the last write wins.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            with path.open("rb") as stream:
                expires_at, value = pickle.load(stream)  # noqa: S301
        except FileNotFoundError:
            return None
        except (OSError, pickle.UnpicklingError, EOFError, ValueError, AttributeError, ImportError):
            logger.warning("Discarding unreadable cache entry %s", path, exc_info=True)
            return None
        if expires_at <= time.time():
            return None
        return value

    def set(self, key: str, value: Any, ttl: int) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        payload = pickle.dumps((time.time() + ttl, value), protocol=pickle.HIGHEST_PROTOCOL)
        fd, temp_name = tempfile.mkstemp(dir=self._directory, prefix=".annowire-")
        try:
            with os.fdopen(fd, "wb") as stream:
                stream.write(payload)
            os.replace(temp_name, self._path(key))
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._directory / f"{digest}.pickle"


__all__ = ["FileCacheStore", "MemoryCacheStore", "RegistryCacheStore"]
