from __future__ import annotations

import logging
from pathlib import Path

import pytest

from annowire.metadata import (
    BeanMetadata,
    CronMetadata,
    EventMetadata,
    InjectMetadata,
    Registry,
    RouteMetadata,
    ValueMetadata,
)
from annowire.scanner import AnnotationScanner, SourceFile
from annowire.settings import BlacklistSettings
from annowire.whitelist import AnnotationFilter

USER_CONTROLLER = """
    from __future__ import annotations

    from typing import Annotated, Any

    from annowire import Controller, GetMapping, Inject, Middleware, PostMapping, Value


    class UserRepository:
        pass


    @Controller("/api", name="users")
    @Middleware("app.middleware.Auth")
    class UserController:
        repository: Annotated[UserRepository, Inject()]
        mailer: Annotated[Any, Inject(name="mailer", lazy=True)]
        page_size: Annotated[int, Value("app.page_size", default=20)]

        @GetMapping("/{user_id}", name="users.show")
        @Middleware("app.middleware.Auth", "app.middleware.Log")
        def show(self, user_id: int) -> dict[str, int]:
            return {"id": user_id}

        @PostMapping("")
        def create(self) -> None: ...

        def _helper(self) -> None: ...
"""

JOBS = """
    from annowire import Bean, Cron, Event


    @Bean(name="report.builder", singleton=False)
    class ReportJobs:
        @Cron("0 3 * * *", singleton=False)
        def nightly(self) -> None: ...

        @Event("order.paid", priority=10)
        @Event("order.refunded")
        def on_order(self, payload: dict) -> None: ...
"""

PLAIN = """
    class Plain:
        def handle(self) -> None: ...
"""


def _scanner(**kwargs: object) -> AnnotationScanner:
    return AnnotationScanner(AnnotationFilter(**kwargs))  # type: ignore[arg-type]


def test_scan_of_tree_without_python_files_is_empty(tmp_path: Path) -> None:
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "User.php").write_text("<?php class User {}")
    (tmp_path / "app" / "notes.txt").write_text("@Controller")

    registry = AnnotationScanner().scan([tmp_path / "app"])

    assert registry == Registry()
    assert registry.is_empty


def test_scan_of_missing_root_is_empty(tmp_path: Path) -> None:
    assert AnnotationScanner().scan([tmp_path / "missing"]).is_empty


def test_scan_extracts_controller_routes_and_property_bindings(source_tree) -> None:
    root = source_tree({"http/users.py": USER_CONTROLLER})
    module = f"{root.name}.http.users"
    class_name = f"{module}.UserController"

    registry = AnnotationScanner().scan([root])

    assert registry.routes == (
        RouteMetadata(
            http_method="GET",
            path="/{user_id}",
            controller_class=class_name,
            method_name="show",
            middlewares=("app.middleware.Auth", "app.middleware.Log"),
            name="users.show",
        ),
        RouteMetadata(
            http_method="POST",
            path="",
            controller_class=class_name,
            method_name="create",
            middlewares=("app.middleware.Auth",),
        ),
    )
    (controller,) = registry.controllers
    assert controller.class_name == class_name
    assert controller.prefix == "/api"
    assert controller.name == "users"
    assert controller.middlewares == ("app.middleware.Auth",)
    assert controller.routes == registry.routes

    assert registry.values == (ValueMetadata(class_name, "page_size", "app.page_size", 20),)
    assert registry.injects == (
        InjectMetadata(class_name, "repository", None, f"{module}.UserRepository", False),
        InjectMetadata(class_name, "mailer", "mailer", None, True),
    )
    assert registry.has_property_bindings(class_name)


def test_scan_extracts_beans_crons_and_events(source_tree) -> None:
    root = source_tree({"jobs.py": JOBS})
    class_name = f"{root.name}.jobs.ReportJobs"

    registry = AnnotationScanner().scan([root])

    assert registry.beans == (BeanMetadata(class_name, "report.builder", singleton=False),)
    assert registry.crons == (CronMetadata(class_name, "nightly", "0 3 * * *", singleton=False),)
    assert registry.events == (
        EventMetadata(class_name, "on_order", "order.paid", 10),
        EventMetadata(class_name, "on_order", "order.refunded", None),
    )
    assert registry.routes == ()
    assert registry.controllers == ()


def test_unannotated_classes_contribute_nothing(source_tree) -> None:
    root = source_tree({"plain.py": PLAIN, "__init__.py": ""})

    registry = AnnotationScanner().scan([root])

    assert registry.is_empty


def test_blacklisted_namespace_removes_every_class_below_it(source_tree) -> None:
    root = source_tree({"legacy/users.py": USER_CONTROLLER, "jobs.py": JOBS})

    registry = _scanner(blacklist=BlacklistSettings(namespaces=[f"{root.name}.legacy"])).scan([root])

    assert registry.routes == ()
    assert registry.values == ()
    assert [bean.class_name for bean in registry.beans] == [f"{root.name}.jobs.ReportJobs"]


def test_blacklisted_class_is_skipped(source_tree) -> None:
    root = source_tree({"jobs.py": JOBS})

    registry = _scanner(blacklist=BlacklistSettings(classes=[f"{root.name}.jobs.ReportJobs"])).scan([root])

    assert registry.is_empty


def test_blacklisted_annotation_kind_is_ignored(source_tree) -> None:
    root = source_tree({"jobs.py": JOBS})

    registry = _scanner(blacklist=BlacklistSettings(annotations=["annowire.markers.Cron"])).scan([root])

    assert registry.crons == ()
    assert len(registry.beans) == 1


def test_excluded_directories_contribute_nothing(source_tree) -> None:
    root = source_tree({"vendor/extra.py": JOBS, "http/users.py": USER_CONTROLLER})

    registry = AnnotationScanner().scan([root], exclude_dirs=["vendor"])

    assert registry.beans == ()
    assert len(registry.routes) == 2


def test_exclusion_matches_whole_directory_names(source_tree) -> None:
    root = source_tree({"vendors/extra.py": JOBS})

    registry = AnnotationScanner().scan([root], exclude_dirs=["vendor"])

    assert len(registry.beans) == 1


def test_rescanning_unchanged_tree_is_deterministic(source_tree) -> None:
    root = source_tree({"http/users.py": USER_CONTROLLER, "jobs.py": JOBS, "plain.py": PLAIN})
    scanner = AnnotationScanner()

    assert scanner.scan([root]) == scanner.scan([root])


def test_module_that_fails_to_import_is_skipped(
    source_tree,
    caplog: pytest.LogCaptureFixture,
) -> None:
    root = source_tree({"broken.py": "raise RuntimeError('boom')\n", "jobs.py": JOBS})
    caplog.set_level(logging.WARNING, logger="annowire.scanner")

    registry = AnnotationScanner().scan([root])

    assert len(registry.beans) == 1
    assert any("broken" in record.getMessage() for record in caplog.records)


def test_abstract_and_imported_classes_are_not_scanned(source_tree) -> None:
    root = source_tree(
        {
            "jobs.py": JOBS,
            "base.py": """
                import abc

                from annowire import Bean


                @Bean()
                class AbstractService(abc.ABC):
                    @abc.abstractmethod
                    def run(self) -> None: ...
            """,
            "reexport.py": "from .jobs import ReportJobs\n",
            "__init__.py": "",
        },
    )

    registry = AnnotationScanner().scan([root])

    assert [bean.class_name for bean in registry.beans] == [f"{root.name}.jobs.ReportJobs"]


def test_iter_classes_yields_concrete_classes_once(source_tree) -> None:
    root = source_tree({"jobs.py": JOBS, "plain.py": PLAIN})

    names = [cls.__qualname__ for cls in AnnotationScanner().iter_classes([root])]

    assert names == ["ReportJobs", "Plain"]


def test_guess_module_from_file_uses_root_namespace(tmp_path: Path) -> None:
    root = tmp_path / "src"
    scanner = AnnotationScanner(root_namespace="shop")

    assert scanner.guess_module_from_file(SourceFile(root, root / "http" / "orders.py")) == "shop.http.orders"
    assert scanner.guess_module_from_file(SourceFile(root, root / "http" / "__init__.py")) == "shop.http"
    assert scanner.guess_module_from_file(SourceFile(root, root / "my-dir" / "x.py")) is None


def test_collect_source_files_is_sorted(tmp_path: Path) -> None:
    root = tmp_path / "app"
    for relative in ("b.py", "a/z.py", "a/c.py", "readme.md"):
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")

    files = AnnotationScanner().collect_source_files([root])

    assert [source.relative_parts for source in files] == [("a", "c.py"), ("a", "z.py"), ("b.py",)]
