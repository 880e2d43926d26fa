"""
Execution-scoped state: the active request scope and the active module.

Both live in context variables, so every asyncio task sees its own value
and concurrent request scopes never share an instance cache.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, TypeVar


T = TypeVar("T")


@dataclass
class RequestContext:
    """Identifier plus private instance cache of one logical request."""

    id: str
    instances: Dict[Any, Any] = field(default_factory=dict)


_request_context_var: ContextVar[Optional[RequestContext]] = ContextVar(
    "nestling_request_context",
    default=None,
)

# Holds the ModuleRef of the module being initialized
_module_ref_var: ContextVar[Optional[Any]] = ContextVar(
    "nestling_module_ref",
    default=None,
)


def get_request_context() -> Optional[RequestContext]:
    """Get the active request context, if any."""
    return _request_context_var.get()


def get_request_id() -> Optional[str]:
    """Get the active request identifier, if any."""
    ctx = _request_context_var.get()
    return ctx.id if ctx is not None else None


def is_in_request_context() -> bool:
    return _request_context_var.get() is not None


@contextmanager
def request_scope(request_id: str) -> Iterator[RequestContext]:
    """
    Enter a fresh, empty request scope for the duration of the block.

    Example:
        with request_scope("req-42"):
            session = await container.resolve(Session)
    """
    ctx = RequestContext(id=request_id)
    reset_token = _request_context_var.set(ctx)
    try:
        yield ctx
    finally:
        _request_context_var.reset(reset_token)


def run_in_request_context(request_id: str, fn: Callable[[], T]) -> T:
    """Call ``fn`` synchronously inside a fresh request scope."""
    with request_scope(request_id):
        return fn()


async def run_in_request_context_async(
    request_id: str,
    fn: Callable[[], Awaitable[T]],
) -> T:
    """Await ``fn()`` inside a fresh request scope."""
    with request_scope(request_id):
        return await fn()


def get_current_module_ref() -> Optional[Any]:
    """Get the ModuleRef of the module currently being initialized."""
    return _module_ref_var.get()


@contextmanager
def module_context(module_ref: Any) -> Iterator[Any]:
    """Make ``module_ref`` the current module for the duration of the block."""
    reset_token = _module_ref_var.set(module_ref)
    try:
        yield module_ref
    finally:
        _module_ref_var.reset(reset_token)


def run_in_module_context(module_ref: Any, fn: Callable[[], T]) -> T:
    """Call ``fn`` with ``module_ref`` as the current module."""
    with module_context(module_ref):
        return fn()
