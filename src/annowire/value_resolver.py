from __future__ import annotations

import logging
import os
import threading
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from annowire._internal.properties import (
    MISSING,
    DeclaredProperty,
    PropertyIntrospector,
    read_instance_value,
)
from annowire._internal.type_checks import type_identifier
from annowire.exceptions import AnnowirePropertyAssignmentError
from annowire.markers import Value

logger = logging.getLogger(__name__)

ENV_PREFIX = "env:"
KEY_SEPARATOR = "."


class ValueResolver:
    """Fill ``Annotated[T, Value(key)]`` properties of an instance from configuration.

    Keys starting with ``env:`` read the environment; other keys are looked up
    whole (``"app.name"``) and then walked segment by segment from the root
    node (``config["app"]["name"]``). Missing values fall back to the marker
    default. Values that are already meaningfully set are never overwritten.

    Typed properties are validated with pydantic (lax mode, so ``"8080"``
    becomes ``8080`` for an ``int``); non-optional properties that resolve to
    ``None``, ``False`` or ``""`` receive the default or their type's zero value.

    Args:
        config: Anything with ``get(key)`` (mappings included) or a pydantic
            model/settings instance.
        environ: Environment mapping for ``env:`` keys; ``os.environ`` by default.
        introspector: Shared ownership-table cache.

    """

    def __init__(
        self,
        config: Any = None,
        *,
        environ: Mapping[str, str] | None = None,
        introspector: PropertyIntrospector | None = None,
    ) -> None:
        self._config = _as_config_source(config)
        self._environ = environ if environ is not None else os.environ
        self._introspector = introspector or PropertyIntrospector()
        self._adapters: dict[Any, TypeAdapter[Any]] = {}
        self._adapters_lock = threading.Lock()

    def resolve_values(self, instance: object) -> None:
        """Inject configuration values into every ``Value`` property of ``instance``.

        Never raises; failures are logged and leave the property unchanged.
        """
        table = self._introspector.table(type(instance))
        for declared, marker in table.bound(Value):
            if self._is_meaningfully_set(instance, declared):
                continue
            value = self.resolve_value(marker.key, marker.default)
            try:
                self._assign(instance, declared, marker, value)
            except AnnowirePropertyAssignmentError as exc:
                logger.error(  # noqa: TRY400
                    "Failed to set value for %s.%s (key=%s): %s",
                    type_identifier(declared.owner),
                    declared.name,
                    marker.key,
                    exc,
                    extra={
                        "annowire": {
                            "class": type_identifier(type(instance)),
                            "property": declared.name,
                            "key": marker.key,
                        },
                    },
                )

    def resolve_value(self, key: str, default: Any = None) -> Any:
        """Return the configured value for ``key``, or ``default`` when nothing is found."""
        if key.startswith(ENV_PREFIX):
            value = self._environ.get(key[len(ENV_PREFIX) :])
            return value if value else default

        value = self._lookup(key, key)
        if value is None and KEY_SEPARATOR in key:
            root, *path = key.split(KEY_SEPARATOR)
            value = _walk(self._lookup(root, key), path)
        return value if value is not None else default

    def _lookup(self, lookup_key: str, key: str) -> Any:
        if self._config is None:
            return None
        try:
            return self._config.get(lookup_key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to resolve config value %s (key=%s)", lookup_key, key)
            return None

    def _is_meaningfully_set(self, instance: object, declared: DeclaredProperty) -> bool:
        current = read_instance_value(instance, declared.name)
        if current is MISSING or current is None:
            return False
        if not declared.is_typed:
            return True
        if declared.is_sequence:
            return not hasattr(current, "__len__") or len(current) > 0
        if declared.value_type is str:
            return current != ""
        return True

    def _assign(self, instance: object, declared: DeclaredProperty, marker: Value, value: Any) -> None:
        if declared.is_typed and not declared.allows_none and (value is None or value is False or value == ""):
            if marker.default is not None:
                value = marker.default
            elif declared.has_zero:
                value = declared.zero

        if declared.is_typed:
            if value is None:
                if not declared.allows_none:
                    msg = f"no value and no zero value for non-optional type {declared.annotation!r}"
                    raise AnnowirePropertyAssignmentError(msg)
            else:
                value = self._validate(declared, value)

        try:
            setattr(instance, declared.name, value)
        except (AttributeError, TypeError, ValueError) as exc:
            raise AnnowirePropertyAssignmentError(str(exc)) from exc

    def _validate(self, declared: DeclaredProperty, value: Any) -> Any:
        try:
            adapter = self._adapter(declared.annotation)
        except Exception:  # noqa: BLE001
            # types pydantic cannot build a schema for are assigned unchecked
            logger.debug("No validator for %r; assigning unchecked", declared.annotation, exc_info=True)
            return value
        try:
            return adapter.validate_python(value)
        except ValidationError as exc:
            raise AnnowirePropertyAssignmentError(str(exc)) from exc

    def _adapter(self, annotation: Any) -> TypeAdapter[Any]:
        adapter = self._adapters.get(annotation)
        if adapter is None:
            adapter = TypeAdapter(annotation)
            with self._adapters_lock:
                adapter = self._adapters.setdefault(annotation, adapter)
        return adapter


class _ModelConfigSource:
    """Read a pydantic model (e.g. ``BaseSettings``) as a nested mapping."""

    def __init__(self, model: BaseModel) -> None:
        self._data = model.model_dump()

    def get(self, key: str) -> Any:
        return self._data.get(key)


def _as_config_source(config: Any) -> Any:
    if config is None:
        return None
    if isinstance(config, BaseModel):
        return _ModelConfigSource(config)
    if callable(getattr(config, "get", None)):
        return config
    msg = f"Configuration source must provide get(key) or be a pydantic model, got {type(config)!r}."
    raise TypeError(msg)


def _walk(node: Any, path: list[str]) -> Any:
    for segment in path:
        if isinstance(node, Mapping) and segment in node:
            node = node[segment]
        else:
            return None
    return node


__all__ = ["ENV_PREFIX", "ValueResolver"]
