from __future__ import annotations

import functools
import inspect
import logging
import re
import typing
from collections.abc import Callable
from typing import Any

from annowire._internal.type_checks import import_string, type_identifier
from annowire.injector import AutoInjector
from annowire.markers import Controller, declared_markers, first_marker
from annowire.metadata import Registry, RouteMetadata

try:
    from fastapi import APIRouter, Depends, FastAPI
    from fastapi.params import Depends as DependsParam
except ModuleNotFoundError as exc:  # pragma: no cover - exercised in optional import scenarios
    message = "FastAPI integration requires fastapi. Install with 'annowire[fastapi]'."
    raise ModuleNotFoundError(message) from exc

logger = logging.getLogger(__name__)

ALL_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "TRACE", "HEAD")
ABSOLUTE_PATH_MARK = "@"
_CONTROLLER_SUFFIX = re.compile(r"Controller$")


def route_methods(http_method: str) -> list[str]:
    """Return the verbs a declared method maps to; unknown verbs and ``ANY`` map to all."""
    verb = http_method.upper()
    return [verb] if verb in ALL_METHODS else list(ALL_METHODS)


def normalize_path(path: str, controller_class: type[Any]) -> str:
    """Return the URL path of a route declared on ``controller_class``.

    ``"@/health"`` is absolute and ignores the controller. Otherwise the path
    is joined to ``prefix + "/" + route name``, where the route name is the
    controller marker's ``name`` or the lower-cased class name without its
    ``Controller`` suffix. Classes without a controller marker use the path as
    is, or the derived route name when the path is empty.
    """
    path = path.strip()
    if path.startswith(ABSOLUTE_PATH_MARK):
        return "/" + path[len(ABSOLUTE_PATH_MARK) :].lstrip("/")

    controller = first_marker(declared_markers(controller_class), Controller)
    short_name = _CONTROLLER_SUFFIX.sub("", controller_class.__name__).lower()

    if controller is None:
        if path in ("", "/"):
            return "/" + short_name
        return "/" + path.lstrip("/")

    base = controller.prefix.rstrip("/") + "/" + (controller.name or short_name).strip("/")
    if path in ("", "/"):
        return "/" + base.lstrip("/")
    return "/" + (base + "/" + path.lstrip("/")).lstrip("/")


class RouteRegistrar:
    """Add the routes of a registry to a FastAPI application or router.

    Every request gets a fresh controller built with ``AutoInjector.construct``,
    so ``Value`` and ``Inject`` properties are populated before the handler
    method runs. Middleware identifiers are imported and attached as route
    dependencies.

    Examples:
        .. code-block:: python

            app = FastAPI()
            RouteRegistrar(injector).register(app, manager.registry())

    """

    def __init__(self, injector: AutoInjector) -> None:
        self.injector = injector

    def register(self, router: FastAPI | APIRouter, registry: Registry) -> int:
        """Register every route; a route that cannot be built is logged and skipped."""
        registered = 0
        for route in registry.routes:
            try:
                self._register_route(router, route)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Failed to register route %s %s -> %s.%s",
                    route.http_method,
                    route.path,
                    route.controller_class,
                    route.method_name,
                )
            else:
                registered += 1
        logger.info("Registered %d of %d annotated routes", registered, len(registry.routes))
        return registered

    def _register_route(self, router: FastAPI | APIRouter, route: RouteMetadata) -> None:
        controller_class = import_string(route.controller_class)
        path = normalize_path(route.path, controller_class)
        endpoint = self._build_endpoint(controller_class, route.method_name)
        dependencies = [_as_dependency(identifier) for identifier in route.middlewares]
        router.add_api_route(
            path,
            endpoint,
            methods=route_methods(route.http_method),
            name=route.name,
            dependencies=dependencies or None,
        )
        logger.debug(
            "Route %s %s -> %s.%s",
            route.http_method,
            path,
            type_identifier(controller_class),
            route.method_name,
        )

    def _build_endpoint(self, controller_class: type[Any], method_name: str) -> Callable[..., Any]:
        function = inspect.getattr_static(controller_class, method_name)
        injector = self.injector

        if inspect.iscoroutinefunction(function):

            @functools.wraps(function)
            async def endpoint(**kwargs: Any) -> Any:
                controller = injector.construct(controller_class)
                return await getattr(controller, method_name)(**kwargs)

        else:

            @functools.wraps(function)
            def endpoint(**kwargs: Any) -> Any:
                controller = injector.construct(controller_class)
                return getattr(controller, method_name)(**kwargs)

        endpoint.__signature__ = _signature_without_self(function)  # type: ignore[attr-defined]
        return endpoint


def _signature_without_self(function: Callable[..., Any]) -> inspect.Signature:
    signature = inspect.signature(function)
    try:
        hints = typing.get_type_hints(function, include_extras=True)
    except Exception:  # noqa: BLE001
        logger.debug("Unable to evaluate annotations of %s", function, exc_info=True)
        hints = {}
    parameters = [
        parameter.replace(annotation=hints.get(parameter.name, parameter.annotation))
        for parameter in list(signature.parameters.values())[1:]
    ]
    return signature.replace(
        parameters=parameters,
        return_annotation=hints.get("return", signature.return_annotation),
    )


def _as_dependency(identifier: str) -> DependsParam:
    dependency = import_string(identifier)
    if not callable(dependency):
        msg = f"Middleware {identifier!r} is not callable."
        raise TypeError(msg)
    return Depends(dependency)


__all__ = ["ALL_METHODS", "RouteRegistrar", "normalize_path", "route_methods"]
