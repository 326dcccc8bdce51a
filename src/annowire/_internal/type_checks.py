from __future__ import annotations

import importlib
import inspect
import types
from typing import Any, TypeGuard, Union, get_args, get_origin

_SEQUENCE_ORIGINS: tuple[type[Any], ...] = (list, tuple, dict, set, frozenset)

SCALAR_TYPES: frozenset[Any] = frozenset(
    {int, float, complex, bool, str, bytes, bytearray, *_SEQUENCE_ORIGINS, type(None)},
)

_ZERO_FACTORIES: dict[Any, Any] = {
    str: str,
    int: int,
    float: float,
    bool: bool,
    bytes: bytes,
    list: list,
    tuple: tuple,
    dict: dict,
    set: set,
    frozenset: frozenset,
}

NO_ZERO_VALUE = object()


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_concrete_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate can be instantiated by default construction."""
    if not is_runtime_class(candidate):
        return False
    if candidate.__module__ == "builtins":
        return False
    if inspect.isabstract(candidate):
        return False
    return not getattr(candidate, "_is_protocol", False)


def type_identifier(obj: Any) -> str:
    """Return the dotted ``module.qualname`` identifier of a class or callable."""
    module = getattr(obj, "__module__", None)
    qualname = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None)
    if module is None or qualname is None:
        return repr(obj)
    if module == "builtins":
        return str(qualname)
    return f"{module}.{qualname}"


def import_string(dotted_path: str) -> Any:
    """Import ``module.attr`` (or ``module.Outer.Inner``) and return the attribute."""
    parts = dotted_path.split(".")
    for split_at in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split_at])
        try:
            target: Any = importlib.import_module(module_name)
        except ModuleNotFoundError:
            continue
        for attribute in parts[split_at:]:
            target = getattr(target, attribute)
        return target
    return importlib.import_module(dotted_path)


def split_optional(annotation: Any) -> tuple[Any, bool]:
    """Split ``X | None`` into ``(X, True)``; other annotations return ``(annotation, False)``."""
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = get_args(annotation)
        non_none = tuple(arg for arg in args if arg is not type(None))
        allows_none = len(non_none) != len(args)
        if len(non_none) == 1:
            return non_none[0], allows_none
        return Union[non_none], allows_none  # noqa: UP007
    return annotation, annotation is None or annotation is type(None)


def is_untyped(annotation: Any) -> bool:
    """Return true for annotations that impose no constraint beyond "any object"."""
    return annotation is Any or annotation is object or annotation is inspect.Parameter.empty


def runtime_origin(annotation: Any) -> Any:
    origin = get_origin(annotation)
    return origin if origin is not None else annotation


def is_sequence_type(annotation: Any) -> bool:
    origin = runtime_origin(annotation)
    return isinstance(origin, type) and issubclass(origin, _SEQUENCE_ORIGINS)


def is_scalar_type(annotation: Any) -> bool:
    origin = runtime_origin(annotation)
    try:
        return origin in SCALAR_TYPES
    except TypeError:
        return False


def zero_value(annotation: Any) -> Any:
    """Return the zero value of a scalar or sequence annotation, else ``NO_ZERO_VALUE``."""
    origin = runtime_origin(annotation)
    try:
        factory = _ZERO_FACTORIES.get(origin)
    except TypeError:
        return NO_ZERO_VALUE
    if factory is None:
        return NO_ZERO_VALUE
    return factory()


__all__ = [
    "NO_ZERO_VALUE",
    "SCALAR_TYPES",
    "import_string",
    "is_concrete_class",
    "is_runtime_class",
    "is_scalar_type",
    "is_sequence_type",
    "is_untyped",
    "runtime_origin",
    "split_optional",
    "type_identifier",
    "zero_value",
]
