"""Shared pytest fixtures for annowire tests."""

from __future__ import annotations

import importlib
import os
import sys
import textwrap
import uuid
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from annowire.container import Container
from annowire.manager import AnnotationManager
from annowire.settings import AnnotationSettings

SourceTree = Callable[[dict[str, str]], Path]


@pytest.fixture()
def source_tree(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[SourceTree]:
    """Write an importable package below ``tmp_path`` and return its root directory.

    The package gets a unique name so that modules never collide across tests;
    its modules are dropped from ``sys.modules`` afterwards.
    """
    package = f"annowire_app_{uuid.uuid4().hex[:10]}"
    root = tmp_path / package
    monkeypatch.syspath_prepend(str(tmp_path))

    def write(files: dict[str, str]) -> Path:
        root.mkdir(exist_ok=True)
        for relative, source in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source), encoding="utf-8")
        importlib.invalidate_caches()
        return root

    yield write

    for name in list(sys.modules):
        if name == package or name.startswith(f"{package}."):
            del sys.modules[name]


@pytest.fixture()
def container() -> Container:
    """Empty keyed container."""
    return Container()


@pytest.fixture()
def settings_factory(monkeypatch: pytest.MonkeyPatch) -> Callable[..., AnnotationSettings]:
    """Build settings isolated from ``ANNOWIRE_*`` variables of the surrounding environment."""
    for name in list(os.environ):
        if name.startswith("ANNOWIRE_"):
            monkeypatch.delenv(name)

    def build(**overrides: object) -> AnnotationSettings:
        return AnnotationSettings(**overrides)

    return build


@pytest.fixture()
def manager_factory(settings_factory: Callable[..., AnnotationSettings]) -> Callable[..., AnnotationManager]:
    def build(scan_root: Path, **overrides: object) -> AnnotationManager:
        settings = settings_factory(scan_dirs=[scan_root], **overrides)
        return AnnotationManager(settings)

    return build
