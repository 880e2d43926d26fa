"""
Nestling DI - dependency injection engine.

Features:
- Class, value, factory and alias providers
- Singleton, transient and request lifetimes
- Field injection via ``Inject`` markers
- Export-aware resolution across container hierarchies
- Tag queries
- Lifecycle hooks with error aggregation
- Diagnostics listeners
"""

from .tokens import Token, InjectionToken, Tag, serialize_token
from .scopes import ServiceScope, Scope, SCOPES, get_scope
from .errors import (
    DIError,
    TokenNotFoundError,
    CircularDependencyError,
    InvalidProviderError,
    ModuleCompilationError,
    RequestContextError,
    ModuleScopeError,
    LifecycleError,
)
from .metadata import (
    InjectionDependency,
    ModuleMetadata,
    DynamicModule,
    ModuleImport,
    MetadataReader,
    AttributeMetadataReader,
    default_reader,
)
from .decorators import Inject, inject, injectable, module, global_module, tags
from .providers import (
    ClassProvider,
    ValueProvider,
    FactoryProvider,
    ExistingProvider,
    NormalizedProvider,
    coerce_provider,
    get_provider_token,
    get_provider_class,
    normalize_provider,
)
from .context import (
    RequestContext,
    get_request_context,
    get_request_id,
    is_in_request_context,
    request_scope,
    run_in_request_context,
    run_in_request_context_async,
    get_current_module_ref,
    module_context,
    run_in_module_context,
)
from .diagnostics import (
    DIEventType,
    DIEvent,
    DiagnosticListener,
    LoggingDiagnosticListener,
    DIDiagnostics,
)
from .lifecycle import (
    OnModuleInit,
    OnApplicationBootstrap,
    OnModuleDestroy,
    OnBeforeApplicationShutdown,
    OnApplicationShutdown,
    has_hook,
    call_hook,
    invoke_hooks,
)
from .core import Container
from .testing import override_provider

__all__ = [
    # Tokens
    "Token",
    "InjectionToken",
    "Tag",
    "serialize_token",
    # Scopes
    "ServiceScope",
    "Scope",
    "SCOPES",
    "get_scope",
    # Errors
    "DIError",
    "TokenNotFoundError",
    "CircularDependencyError",
    "InvalidProviderError",
    "ModuleCompilationError",
    "RequestContextError",
    "ModuleScopeError",
    "LifecycleError",
    # Metadata
    "InjectionDependency",
    "ModuleMetadata",
    "DynamicModule",
    "ModuleImport",
    "MetadataReader",
    "AttributeMetadataReader",
    "default_reader",
    # Decorators
    "Inject",
    "inject",
    "injectable",
    "module",
    "global_module",
    "tags",
    # Providers
    "ClassProvider",
    "ValueProvider",
    "FactoryProvider",
    "ExistingProvider",
    "NormalizedProvider",
    "coerce_provider",
    "get_provider_token",
    "get_provider_class",
    "normalize_provider",
    # Context
    "RequestContext",
    "get_request_context",
    "get_request_id",
    "is_in_request_context",
    "request_scope",
    "run_in_request_context",
    "run_in_request_context_async",
    "get_current_module_ref",
    "module_context",
    "run_in_module_context",
    # Diagnostics
    "DIEventType",
    "DIEvent",
    "DiagnosticListener",
    "LoggingDiagnosticListener",
    "DIDiagnostics",
    # Lifecycle
    "OnModuleInit",
    "OnApplicationBootstrap",
    "OnModuleDestroy",
    "OnBeforeApplicationShutdown",
    "OnApplicationShutdown",
    "has_hook",
    "call_hook",
    "invoke_hooks",
    # Core
    "Container",
    # Testing
    "override_provider",
]
