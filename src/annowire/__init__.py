from annowire.cache import FileCacheStore, MemoryCacheStore, RegistryCacheStore
from annowire.container import BeanRegistrar, Container
from annowire.container_interface import ServiceContainer, ServiceLookup
from annowire.dependency_resolver import BuildingSet, DependencyResolver
from annowire.exceptions import (
    AnnowireError,
    AnnowireInvalidMarkerError,
    AnnowirePropertyAssignmentError,
    AnnowireProxyResolutionError,
    AnnowireResolutionError,
    AnnowireScanError,
    AnnowireServiceNotRegisteredError,
)
from annowire.handlers import AnnotationHandler, AnnotationsExecutor, ExecutionResult
from annowire.injector import AutoInjector
from annowire.lazy_proxy import LazyInjectProxy, ProxyState
from annowire.manager import AnnotationManager
from annowire.markers import (
    AnnotationMarker,
    Bean,
    Controller,
    Cron,
    DeleteMapping,
    Event,
    GetMapping,
    HttpMapping,
    Inject,
    Middleware,
    OptionsMapping,
    PatchMapping,
    PostMapping,
    PutMapping,
    Route,
    RouteGroup,
    RoutePrefix,
    TraceMapping,
    Value,
)
from annowire.metadata import (
    BeanMetadata,
    ControllerMetadata,
    CronMetadata,
    EventMetadata,
    InjectMetadata,
    Registry,
    RouteMetadata,
    ValueMetadata,
)
from annowire.scanner import AnnotationScanner
from annowire.settings import AnnotationSettings, BlacklistSettings
from annowire.value_resolver import ValueResolver
from annowire.whitelist import AnnotationFilter

__all__ = [
    "AnnotationFilter",
    "AnnotationHandler",
    "AnnotationManager",
    "AnnotationMarker",
    "AnnotationScanner",
    "AnnotationSettings",
    "AnnotationsExecutor",
    "AnnowireError",
    "AnnowireInvalidMarkerError",
    "AnnowirePropertyAssignmentError",
    "AnnowireProxyResolutionError",
    "AnnowireResolutionError",
    "AnnowireScanError",
    "AnnowireServiceNotRegisteredError",
    "AutoInjector",
    "Bean",
    "BeanMetadata",
    "BeanRegistrar",
    "BlacklistSettings",
    "BuildingSet",
    "Container",
    "Controller",
    "ControllerMetadata",
    "Cron",
    "CronMetadata",
    "DeleteMapping",
    "DependencyResolver",
    "Event",
    "EventMetadata",
    "ExecutionResult",
    "FileCacheStore",
    "GetMapping",
    "HttpMapping",
    "Inject",
    "InjectMetadata",
    "LazyInjectProxy",
    "MemoryCacheStore",
    "Middleware",
    "OptionsMapping",
    "PatchMapping",
    "PostMapping",
    "ProxyState",
    "PutMapping",
    "Registry",
    "RegistryCacheStore",
    "Route",
    "RouteGroup",
    "RouteMetadata",
    "RoutePrefix",
    "ServiceContainer",
    "ServiceLookup",
    "TraceMapping",
    "Value",
    "ValueMetadata",
    "ValueResolver",
]
