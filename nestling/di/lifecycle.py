"""
Lifecycle hook protocols and phase execution.

Instances opt into a phase by defining the matching method; hooks may be
plain methods or coroutines.
"""

from typing import Any, Iterable, List, Optional, Protocol, runtime_checkable
import inspect
import logging

from .diagnostics import DIDiagnostics, DIEventType

logger = logging.getLogger("nestling.di.lifecycle")


ON_MODULE_INIT = "on_module_init"
ON_APPLICATION_BOOTSTRAP = "on_application_bootstrap"
ON_MODULE_DESTROY = "on_module_destroy"
ON_BEFORE_APPLICATION_SHUTDOWN = "on_before_application_shutdown"
ON_APPLICATION_SHUTDOWN = "on_application_shutdown"


@runtime_checkable
class OnModuleInit(Protocol):
    """Called once the host module has been initialized."""

    def on_module_init(self) -> Any:
        ...


@runtime_checkable
class OnApplicationBootstrap(Protocol):
    """Called once the application has fully started."""

    def on_application_bootstrap(self) -> Any:
        ...


@runtime_checkable
class OnModuleDestroy(Protocol):
    """Called before the container destroys the host module."""

    def on_module_destroy(self) -> Any:
        ...


@runtime_checkable
class OnBeforeApplicationShutdown(Protocol):
    """Called with the shutdown signal before cleanup begins."""

    def on_before_application_shutdown(self, signal: Optional[str] = None) -> Any:
        ...


@runtime_checkable
class OnApplicationShutdown(Protocol):
    """Called with the shutdown signal during final cleanup."""

    def on_application_shutdown(self, signal: Optional[str] = None) -> Any:
        ...


def has_hook(instance: Any, hook: str) -> bool:
    """
    Check whether ``instance`` carries a callable ``hook``.

    Classes are never hook carriers, even when they define the method.
    """
    if isinstance(instance, type):
        return False
    return callable(getattr(instance, hook, None))


async def call_hook(instance: Any, hook: str, *args: Any) -> None:
    """Invoke a hook, awaiting it when it is asynchronous."""
    result = getattr(instance, hook)(*args)
    if inspect.isawaitable(result):
        await result


async def invoke_hooks(
    instances: Iterable[Any],
    hook: str,
    *args: Any,
    diagnostics: Optional[DIDiagnostics] = None,
) -> List[Exception]:
    """
    Invoke ``hook`` on every carrier, in order, collecting failures.

    A failing hook never stops the sweep; the caller decides how to
    surface the returned errors.
    """
    errors: List[Exception] = []

    for instance in instances:
        if not has_hook(instance, hook):
            continue

        try:
            await call_hook(instance, hook, *args)
        except Exception as e:
            name = f"{type(instance).__qualname__}.{hook}"
            logger.error(f"Lifecycle hook '{name}' failed: {e}")
            if diagnostics is not None:
                diagnostics.emit(
                    DIEventType.LIFECYCLE_HOOK_FAILURE,
                    error=e,
                    metadata={"hook": name},
                )
            errors.append(e)

    return errors
