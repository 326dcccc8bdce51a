from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EXCLUDE_DIRS: tuple[str, ...] = ("vendor", "runtime", "config", "public")


class BlacklistSettings(BaseModel):
    """Annotation kinds, classes and namespaces removed from scanning."""

    annotations: list[str] = Field(default_factory=list)
    classes: list[str] = Field(default_factory=list)
    namespaces: list[str] = Field(default_factory=list)


class AnnotationSettings(BaseSettings):
    """Configuration of scanning, caching and injection.

    Values can be passed directly or through ``ANNOWIRE_*`` environment
    variables; nested fields use ``__`` (``ANNOWIRE_BLACKLIST__NAMESPACES``).
    """

    model_config = SettingsConfigDict(
        env_prefix="ANNOWIRE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    enable: bool = True
    scan_dirs: list[Path] = Field(default_factory=lambda: [Path("app")])
    exclude_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    root_namespace: str | None = None
    """Package name of the scan roots; defaults to each root directory's name."""

    annotations: dict[str, str] = Field(default_factory=dict)
    """Custom annotation kind identifier -> handler dotted path."""

    blacklist: BlacklistSettings = Field(default_factory=BlacklistSettings)

    enable_cache: bool = False
    cache_store: str = ""
    cache_prefix: str = "annotation:"
    cache_ttl: int = 86400

    enable_value_injection: bool = True
    auto_register_beans: bool = True

    @property
    def cache_key(self) -> str:
        return f"{self.cache_prefix}registry"


__all__ = ["DEFAULT_EXCLUDE_DIRS", "AnnotationSettings", "BlacklistSettings"]
