from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Annotated, Any, ClassVar, TypeVar, get_args, get_origin

from annowire._internal.type_checks import type_identifier
from annowire.exceptions import AnnowireInvalidMarkerError

T = TypeVar("T")

MARKERS_ATTR = "__annowire_markers__"
_ANNOTATED_MARKER_MIN_ARGS = 2

TARGET_CLASS = "class"
TARGET_METHOD = "method"
TARGET_PROPERTY = "property"


class AnnotationMarker:
    """Base class for declarative markers.

    Class and method markers are applied as decorators and recorded on the
    decorated object's own ``__dict__``, so they are never inherited. Property
    markers live in ``typing.Annotated`` metadata:

    Examples:
        .. code-block:: python

            @Controller("/users")
            class UserController:
                repository: Annotated[UserRepository, Inject()]
                page_size: Annotated[int, Value("app.page_size", default=20)]

                @GetMapping("/{user_id}")
                def show(self, user_id: int) -> dict[str, int]: ...

    Subclass it (usually as a frozen dataclass) to declare a custom kind and
    list the kind identifier in ``AnnotationSettings.annotations``.
    """

    targets: ClassVar[frozenset[str]] = frozenset({TARGET_CLASS, TARGET_METHOD, TARGET_PROPERTY})

    @classmethod
    def kind(cls) -> str:
        """Return the annotation-kind identifier of this marker class."""
        return type_identifier(cls)

    def __call__(self, target: T) -> T:
        target_kind = _target_kind(target)
        if target_kind not in self.targets:
            msg = (
                f"{type(self).__name__} cannot decorate {target!r}; "
                f"supported targets: {', '.join(sorted(self.targets))}."
            )
            raise AnnowireInvalidMarkerError(msg)
        owner = target.__func__ if isinstance(target, staticmethod | classmethod) else target
        existing = owner.__dict__.get(MARKERS_ATTR, ())
        # decorators apply bottom-up; prepend to keep source order
        setattr(owner, MARKERS_ATTR, (self, *existing))
        return target


@dataclass(frozen=True)
class Controller(AnnotationMarker):
    """Declare a route group: URL prefix and optional logical name."""

    targets: ClassVar[frozenset[str]] = frozenset({TARGET_CLASS})

    prefix: str = ""
    name: str | None = None


@dataclass(frozen=True)
class RouteGroup(Controller):
    """Alias of ``Controller``."""


@dataclass(frozen=True)
class RoutePrefix(Controller):
    """Alias of ``Controller``."""


@dataclass(frozen=True)
class HttpMapping(AnnotationMarker):
    """Bind a public method to an HTTP verb and path template."""

    targets: ClassVar[frozenset[str]] = frozenset({TARGET_METHOD})

    method: str
    path: str
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())


class Route(HttpMapping):
    """Alias of ``HttpMapping``."""


class _VerbMapping(HttpMapping):
    verb: ClassVar[str] = "ANY"

    def __init__(self, path: str, name: str | None = None) -> None:
        super().__init__(self.verb, path, name)


class GetMapping(_VerbMapping):
    verb = "GET"


class PostMapping(_VerbMapping):
    verb = "POST"


class PutMapping(_VerbMapping):
    verb = "PUT"


class PatchMapping(_VerbMapping):
    verb = "PATCH"


class DeleteMapping(_VerbMapping):
    verb = "DELETE"


class OptionsMapping(_VerbMapping):
    verb = "OPTIONS"


class TraceMapping(_VerbMapping):
    verb = "TRACE"


@dataclass(frozen=True, init=False)
class Middleware(AnnotationMarker):
    """Attach middleware identifiers to a class or a method.

    Accepts strings, classes or callables; non-strings are stored as their
    dotted identifiers. May be repeated.
    """

    targets: ClassVar[frozenset[str]] = frozenset({TARGET_CLASS, TARGET_METHOD})

    middlewares: tuple[str, ...] = field(default=())

    def __init__(self, *middlewares: str | Callable[..., Any] | list[Any] | tuple[Any, ...]) -> None:
        flattened: list[str] = []
        for item in middlewares:
            values = item if isinstance(item, list | tuple) else (item,)
            flattened.extend(value if isinstance(value, str) else type_identifier(value) for value in values)
        object.__setattr__(self, "middlewares", tuple(flattened))


@dataclass(frozen=True)
class Value(AnnotationMarker):
    """Bind a property to a configuration key (``env:NAME`` reads the environment)."""

    targets: ClassVar[frozenset[str]] = frozenset({TARGET_PROPERTY})

    key: str
    default: Any = None


@dataclass(frozen=True)
class Inject(AnnotationMarker):
    """Bind a property to a dependency.

    ``name`` overrides the service identifier derived from the declared type.
    ``lazy`` defers the container lookup to first use; it applies to
    properties declared as ``Any`` or ``object`` and needs ``name``.
    """

    targets: ClassVar[frozenset[str]] = frozenset({TARGET_PROPERTY})

    name: str | None = None
    lazy: bool = False


@dataclass(frozen=True)
class Bean(AnnotationMarker):
    """Publish a class to the backing container as a singleton or a factory."""

    targets: ClassVar[frozenset[str]] = frozenset({TARGET_CLASS})

    name: str | None = None
    singleton: bool = True


@dataclass(frozen=True)
class Cron(AnnotationMarker):
    """Schedule a public method with a cron expression."""

    targets: ClassVar[frozenset[str]] = frozenset({TARGET_METHOD})

    expression: str
    singleton: bool = True


@dataclass(frozen=True)
class Event(AnnotationMarker):
    """Listen to a named event; lower priority numbers run first. May be repeated."""

    targets: ClassVar[frozenset[str]] = frozenset({TARGET_METHOD})

    name: str
    priority: int | None = None


BUILTIN_MARKERS: tuple[type[AnnotationMarker], ...] = (
    Route,
    RoutePrefix,
    RouteGroup,
    Controller,
    HttpMapping,
    GetMapping,
    PostMapping,
    PutMapping,
    PatchMapping,
    DeleteMapping,
    OptionsMapping,
    TraceMapping,
    Middleware,
    Value,
    Inject,
    Bean,
    Cron,
    Event,
)

BUILTIN_ANNOTATION_KINDS: frozenset[str] = frozenset(marker.kind() for marker in BUILTIN_MARKERS)


def declared_markers(target: Any) -> tuple[AnnotationMarker, ...]:
    """Return markers applied directly to a class or function, in source order."""
    owner = target.__func__ if isinstance(target, staticmethod | classmethod) else target
    try:
        return tuple(vars(owner).get(MARKERS_ATTR, ()))
    except TypeError:
        return ()


def annotation_markers(annotation: Any) -> tuple[AnnotationMarker, ...]:
    """Return markers carried in ``Annotated[...]`` metadata."""
    if get_origin(annotation) is not Annotated:
        return ()
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return ()
    return tuple(item for item in annotation_args[1:] if isinstance(item, AnnotationMarker))


def strip_annotated(annotation: Any) -> Any:
    """Return the inner type of ``Annotated[T, ...]``."""
    if get_origin(annotation) is Annotated:
        return get_args(annotation)[0]
    return annotation


def first_marker(markers: tuple[AnnotationMarker, ...], marker_type: type[T]) -> T | None:
    return next((marker for marker in markers if isinstance(marker, marker_type)), None)


def _target_kind(target: Any) -> str:
    if inspect.isclass(target):
        return TARGET_CLASS
    if isinstance(target, staticmethod | classmethod) or inspect.isfunction(target):
        return TARGET_METHOD
    return type(target).__name__


__all__ = [
    "BUILTIN_ANNOTATION_KINDS",
    "BUILTIN_MARKERS",
    "AnnotationMarker",
    "Bean",
    "Controller",
    "Cron",
    "DeleteMapping",
    "Event",
    "GetMapping",
    "HttpMapping",
    "Inject",
    "Middleware",
    "OptionsMapping",
    "PatchMapping",
    "PostMapping",
    "PutMapping",
    "Route",
    "RouteGroup",
    "RoutePrefix",
    "TraceMapping",
    "Value",
    "annotation_markers",
    "declared_markers",
    "first_marker",
    "strip_annotated",
]
