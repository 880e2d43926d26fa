"""
Nestling - modular dependency injection runtime for async Python services.

Declare modules that bundle providers, imports and exports; Nestling
compiles the module graph, wires one container per module, resolves
dependencies on demand with singleton, transient and request lifetimes,
and drives startup and shutdown hooks in dependency order.

Example:
    from nestling import InjectorContext, Inject, injectable, module

    @injectable
    class Database:
        async def on_module_init(self):
            await self.connect()

    @injectable
    class UserService:
        db = Inject(Database)

    @module(providers=[Database, UserService], exports=[UserService])
    class AppModule:
        pass

    async with await InjectorContext.create(AppModule) as ctx:
        users = await ctx.resolve(UserService)
"""

__version__ = "0.1.0"

from .di import (
    # Tokens and scopes
    Token,
    InjectionToken,
    Tag,
    ServiceScope,
    # Errors
    DIError,
    TokenNotFoundError,
    CircularDependencyError,
    InvalidProviderError,
    ModuleCompilationError,
    RequestContextError,
    ModuleScopeError,
    LifecycleError,
    # Declarations
    Inject,
    inject,
    injectable,
    module,
    global_module,
    tags,
    DynamicModule,
    ModuleMetadata,
    MetadataReader,
    AttributeMetadataReader,
    # Providers
    ClassProvider,
    ValueProvider,
    FactoryProvider,
    ExistingProvider,
    # Context
    RequestContext,
    get_request_context,
    get_request_id,
    is_in_request_context,
    request_scope,
    # Hooks
    OnModuleInit,
    OnApplicationBootstrap,
    OnModuleDestroy,
    OnBeforeApplicationShutdown,
    OnApplicationShutdown,
    # Diagnostics
    DIDiagnostics,
    DIEvent,
    DIEventType,
    LoggingDiagnosticListener,
    # Core
    Container,
)
from .modules import CompiledModule, ModuleCompiler, ModuleRef
from .lifecycle import LifecycleEvent, LifecyclePhase
from .injector import InjectorContext, InjectorContextOptions

__all__ = [
    "__version__",
    "Token",
    "InjectionToken",
    "Tag",
    "ServiceScope",
    "DIError",
    "TokenNotFoundError",
    "CircularDependencyError",
    "InvalidProviderError",
    "ModuleCompilationError",
    "RequestContextError",
    "ModuleScopeError",
    "LifecycleError",
    "Inject",
    "inject",
    "injectable",
    "module",
    "global_module",
    "tags",
    "DynamicModule",
    "ModuleMetadata",
    "MetadataReader",
    "AttributeMetadataReader",
    "ClassProvider",
    "ValueProvider",
    "FactoryProvider",
    "ExistingProvider",
    "RequestContext",
    "get_request_context",
    "get_request_id",
    "is_in_request_context",
    "request_scope",
    "OnModuleInit",
    "OnApplicationBootstrap",
    "OnModuleDestroy",
    "OnBeforeApplicationShutdown",
    "OnApplicationShutdown",
    "DIDiagnostics",
    "DIEvent",
    "DIEventType",
    "LoggingDiagnosticListener",
    "Container",
    "CompiledModule",
    "ModuleCompiler",
    "ModuleRef",
    "LifecycleEvent",
    "LifecyclePhase",
    "InjectorContext",
    "InjectorContextOptions",
]
