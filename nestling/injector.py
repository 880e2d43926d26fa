"""
InjectorContext - orchestrates compilation, container wiring and the
application lifecycle.

Typical flow:

    ctx = await InjectorContext.create(AppModule)
    await ctx.on_application_bootstrap()
    ...
    await ctx.close("SIGTERM")

or, equivalently:

    async with await InjectorContext.create(AppModule) as ctx:
        ...
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, TypeVar
from dataclasses import dataclass
import logging
import os

from .di.context import (
    module_context,
    run_in_request_context,
    run_in_request_context_async,
)
from .di.core import Container
from .di.diagnostics import DIDiagnostics, DIEventType, LoggingDiagnosticListener
from .di.errors import LifecycleError, TokenNotFoundError
from .di.lifecycle import (
    ON_APPLICATION_BOOTSTRAP,
    ON_APPLICATION_SHUTDOWN,
    ON_BEFORE_APPLICATION_SHUTDOWN,
    ON_MODULE_DESTROY,
    ON_MODULE_INIT,
    call_hook,
    has_hook,
    invoke_hooks,
)
from .di.metadata import MetadataReader, default_reader
from .di.providers import get_provider_token
from .di.tokens import serialize_token
from .lifecycle import LifecycleEvent, LifecycleEventEmitter, LifecycleEventHandler, LifecyclePhase
from .modules.compiler import CompiledModule, ModuleCompiler
from .modules.ref import ModuleRef

logger = logging.getLogger("nestling.injector")

T = TypeVar("T")

_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class InjectorContextOptions:
    """
    Configuration for ``InjectorContext.create``.

    Attributes:
        use_globals: Register providers of global modules in the shared
            global container
        diagnostics: Diagnostics coordinator shared by every container
        metadata: Reader used for class and module metadata
    """

    use_globals: bool = True
    diagnostics: Optional[DIDiagnostics] = None
    metadata: Optional[MetadataReader] = None

    @classmethod
    def from_env(
        cls,
        prefix: str = "NESTLING_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "InjectorContextOptions":
        """
        Build options from environment variables.

        ``{prefix}USE_GLOBALS``: "0", "false", "no" or "off" disables globals.
        ``{prefix}DIAGNOSTICS``: logging level name; attaches a
        ``LoggingDiagnosticListener`` at that level.

        Raises:
            ValueError: If the diagnostics level is not a logging level name
        """
        env = os.environ if environ is None else environ
        options = cls()

        use_globals = env.get(f"{prefix}USE_GLOBALS")
        if use_globals is not None:
            options.use_globals = use_globals.strip().lower() not in _FALSE_VALUES

        level_name = env.get(f"{prefix}DIAGNOSTICS")
        if level_name:
            level = logging.getLevelName(level_name.strip().upper())
            if not isinstance(level, int):
                raise ValueError(
                    f"Invalid {prefix}DIAGNOSTICS value: {level_name!r} is not a logging level"
                )

            diagnostics = DIDiagnostics()
            diagnostics.add_listener(LoggingDiagnosticListener(level))
            options.diagnostics = diagnostics

        return options


class InjectorContext:
    """
    Dependency injector context.

    Compiles the module tree, creates one container per module, runs the
    ``on_module_init`` hooks and drives the application lifecycle phases.
    Lifecycle phases must be triggered by the host application.

    Example:
        ctx = await InjectorContext.create(AppModule)
        await framework.initialize()
        await ctx.on_application_bootstrap()
    """

    def __init__(
        self,
        container: Container,
        root_module: CompiledModule,
        modules_in_order: List[CompiledModule],
        module_refs: Dict[type, ModuleRef],
        global_container: Container,
    ):
        self.container = container
        self.global_container = global_container
        self._root_module = root_module
        self._modules_in_order = modules_in_order
        self._module_refs = module_refs
        self._events = LifecycleEventEmitter()
        self._is_bootstrapped = False
        self._is_shutting_down = False
        self.phase = LifecyclePhase.INIT

    def __repr__(self) -> str:
        return f"<InjectorContext {self._root_module.type.__qualname__} phase={self.phase.value}>"

    @property
    def diagnostics(self) -> DIDiagnostics:
        return self.container.diagnostics

    @classmethod
    async def create(
        cls,
        root_module: Any,
        options: Optional[InjectorContextOptions] = None,
    ) -> "InjectorContext":
        """
        Create a context for ``root_module``.

        Compiles the module tree, builds the container hierarchy,
        instantiates every module's providers and calls ``on_module_init``
        on each instance once, imported modules first. A provider that
        fails to resolve or to initialize is skipped and reported through
        diagnostics; a failing module class hook propagates.

        Args:
            root_module: Root module class or DynamicModule
            options: Optional configuration

        Raises:
            ModuleCompilationError: If the module tree is invalid
        """
        options = options or InjectorContextOptions()
        metadata = options.metadata or default_reader
        diagnostics = options.diagnostics or DIDiagnostics()

        compiler = ModuleCompiler(metadata)
        compiled = await compiler.compile(root_module)
        modules_in_order = compiler.get_modules_in_init_order(compiled)

        global_container = Container(
            name="global",
            metadata=metadata,
            diagnostics=diagnostics,
        )
        if options.use_globals:
            global_container.register(*compiler.get_global_providers())

        module_containers: Dict[type, Container] = {}

        def build_container(mod: CompiledModule) -> Container:
            if mod.type in module_containers:
                return module_containers[mod.type]

            children = [build_container(imported) for imported in mod.imports]

            container = Container(
                exports=mod.exports,
                global_container=global_container,
                name=mod.type.__qualname__,
                metadata=metadata,
                diagnostics=diagnostics,
            )
            for child in children:
                container.add_child(child)

            module_containers[mod.type] = container

            # Later declarations win, so a module's own provider replaces
            # an imported one with the same token
            provider_map = {get_provider_token(provider): provider for provider in mod.providers}

            for token in mod.own_tokens:
                provider = provider_map.get(token)
                if provider is not None:
                    container.register(provider)
                elif isinstance(token, type):
                    container.register(token)

            return container

        root_container = build_container(compiled)

        module_refs: Dict[type, ModuleRef] = {}
        for mod in modules_in_order:
            module_refs[mod.type] = ModuleRef(module_containers[mod.type], mod.own_tokens)

        initialized: Set[int] = set()

        async def call_on_module_init(instance: Any) -> None:
            if id(instance) in initialized:
                return
            initialized.add(id(instance))

            if has_hook(instance, ON_MODULE_INIT):
                await call_hook(instance, ON_MODULE_INIT)

        for mod in modules_in_order:
            container = module_containers[mod.type]

            with module_context(module_refs[mod.type]):
                for token in mod.own_tokens:
                    if token is mod.type or container.is_request_scoped(token):
                        continue

                    try:
                        instance = await container.resolve(token)
                    except Exception as e:
                        logger.debug(
                            f"Skipping {serialize_token(token)} during initialization "
                            f"of {mod.type.__qualname__}: {e}"
                        )
                        diagnostics.emit(
                            DIEventType.RESOLUTION_SKIPPED,
                            token=token,
                            container=container.name,
                            error=e,
                            metadata={"reason": "module initialization"},
                        )
                        continue

                    try:
                        await call_on_module_init(instance)
                    except Exception as e:
                        hook_name = f"{type(instance).__qualname__}.{ON_MODULE_INIT}"
                        logger.error(f"Lifecycle hook '{hook_name}' failed: {e}")
                        diagnostics.emit(
                            DIEventType.LIFECYCLE_HOOK_FAILURE,
                            token=token,
                            container=container.name,
                            error=e,
                            metadata={"hook": hook_name},
                        )

                # The module's own hook is not swallowed
                module_instance = await container.resolve(mod.type)
                await call_on_module_init(module_instance)

        logger.debug(
            f"Injector context for {compiled.type.__qualname__} created "
            f"({len(modules_in_order)} modules)"
        )

        return cls(
            root_container,
            compiled,
            modules_in_order,
            module_refs,
            global_container,
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, token: Any) -> Any:
        """
        Resolve a dependency from the application.

        Only the root module itself, tokens the root module exports, and
        tokens the root module does not own (imported exports, globals)
        are visible.

        Raises:
            CircularDependencyError: On a dependency cycle
            TokenNotFoundError: If the token is private to the root module or unknown
            RequestContextError: If a request-scoped token is resolved outside a request
        """
        root = self._root_module

        if token is root.type or token in root.exports:
            return await self.container.resolve(token)

        if token in root.own_tokens:
            raise TokenNotFoundError(token)

        return await self.container.resolve(token)

    async def try_resolve(self, token: Any) -> Optional[Any]:
        """
        Resolve a dependency, returning None when it cannot be found.

        Errors other than TokenNotFoundError still propagate.
        """
        try:
            return await self.resolve(token)
        except TokenNotFoundError:
            return None

    async def resolve_internal(self, token: Any) -> Any:
        """Resolve from the root container, bypassing the export check."""
        return await self.container.resolve(token)

    async def get_root_module(self) -> Any:
        """Get the root module instance."""
        return await self.container.resolve(self._root_module.type)

    def get_module_ref(self, module_type: type) -> Optional[ModuleRef]:
        """Get the ModuleRef of a compiled module, if it is part of the tree."""
        return self._module_refs.get(module_type)

    # ------------------------------------------------------------------
    # Request scopes
    # ------------------------------------------------------------------

    def run_in_request_scope(self, request_id: str, fn: Callable[[], T]) -> T:
        """Call ``fn`` within a fresh request scope."""
        return run_in_request_context(request_id, fn)

    async def run_in_request_scope_async(
        self,
        request_id: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Await ``fn()`` within a fresh request scope.

        Example:
            async def handle():
                return await ctx.resolve(RequestSession)

            session = await ctx.run_in_request_scope_async("req-1", handle)
        """
        return await run_in_request_context_async(request_id, fn)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_event(self, handler: LifecycleEventHandler) -> None:
        """
        Register lifecycle event handler.

        Args:
            handler: Callable that receives LifecycleEvent
        """
        self._events.on_event(handler)

    def _transition(
        self,
        phase: LifecyclePhase,
        message: Optional[str] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.phase = phase
        self._events.emit(LifecycleEvent(
            phase,
            module_name=self._root_module.type.__name__,
            message=message,
            error=error,
        ))
        self.diagnostics.emit(
            DIEventType.LIFECYCLE_PHASE,
            container=self.container.name,
            error=error,
            metadata={"phase": phase.value, "state": message},
        )

    def _fail(self, phase_name: str, errors: List[Exception]) -> LifecycleError:
        error = LifecycleError(phase_name, errors)
        logger.error(f"{phase_name} failed with {len(errors)} error(s)")
        self._transition(LifecyclePhase.ERROR, message=f"{phase_name} failed", error=error)
        return error

    async def on_application_bootstrap(self) -> None:
        """
        Trigger ``on_application_bootstrap`` on every tracked instance.

        Runs once; later calls are no-ops.

        Raises:
            LifecycleError: If any hook failed (all hooks still ran)
        """
        if self._is_bootstrapped:
            return

        self._transition(LifecyclePhase.STARTING, message="bootstrap")
        logger.info("Bootstrapping application...")

        instances = self.container.get_instances(recursive=True)
        errors = await invoke_hooks(
            instances,
            ON_APPLICATION_BOOTSTRAP,
            diagnostics=self.diagnostics,
        )

        self._is_bootstrapped = True

        if errors:
            raise self._fail(ON_APPLICATION_BOOTSTRAP, errors)

        self._transition(LifecyclePhase.READY, message="bootstrapped")
        logger.info(f"Application bootstrapped ({len(instances)} instances)")

    async def on_before_application_shutdown(self, signal: Optional[str] = None) -> None:
        """
        Trigger ``on_before_application_shutdown`` in reverse creation order.

        Runs once; later calls are no-ops.

        Raises:
            LifecycleError: If any hook failed (all hooks still ran)
        """
        if self._is_shutting_down:
            return

        self._is_shutting_down = True

        self._transition(LifecyclePhase.STOPPING, message="before shutdown")
        logger.info(f"Preparing shutdown (signal={signal})")

        instances = self.container.get_instances(recursive=True)
        errors = await invoke_hooks(
            reversed(instances),
            ON_BEFORE_APPLICATION_SHUTDOWN,
            signal,
            diagnostics=self.diagnostics,
        )

        if errors:
            raise self._fail(ON_BEFORE_APPLICATION_SHUTDOWN, errors)

    async def on_application_shutdown(self, signal: Optional[str] = None) -> None:
        """
        Trigger ``on_module_destroy`` then ``on_application_shutdown``.

        Both passes run over all tracked instances in reverse creation
        order. The root container is cleared afterwards in every case.

        Raises:
            LifecycleError: If any hook of either pass failed
        """
        self._transition(LifecyclePhase.STOPPING, message="shutdown")
        logger.info(f"Shutting down (signal={signal})")

        instances = list(reversed(self.container.get_instances(recursive=True)))

        try:
            errors = await invoke_hooks(
                instances,
                ON_MODULE_DESTROY,
                diagnostics=self.diagnostics,
            )
            errors += await invoke_hooks(
                instances,
                ON_APPLICATION_SHUTDOWN,
                signal,
                diagnostics=self.diagnostics,
            )
        finally:
            self.container.clear()

        if errors:
            raise self._fail("shutdown", errors)

        self._transition(LifecyclePhase.STOPPED, message="stopped")
        logger.info("Application stopped")

    async def close(self, signal: Optional[str] = None) -> None:
        """Full shutdown sequence: before-shutdown, then shutdown."""
        await self.on_before_application_shutdown(signal)
        await self.on_application_shutdown(signal)

    def get_status(self) -> Dict[str, Any]:
        """
        Get current lifecycle status.

        Returns:
            Status dict with phase, modules and tracked instance count
        """
        return {
            "phase": self.phase.value,
            "bootstrapped": self._is_bootstrapped,
            "modules": [mod.type.__name__ for mod in self._modules_in_order],
            "total_modules": len(self._modules_in_order),
            "instances": len(self.container.get_instances(recursive=True)),
        }

    async def __aenter__(self) -> "InjectorContext":
        """Bootstrap on context entry."""
        await self.on_application_bootstrap()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close on context exit."""
        await self.close()
        return False  # Don't suppress exceptions
