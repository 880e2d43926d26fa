"""
Testing utilities for DI system.
"""

from typing import Any, AsyncIterator
from contextlib import asynccontextmanager

from .core import Container
from .providers import ValueProvider


@asynccontextmanager
async def override_provider(
    container: Container,
    token: Any,
    mock_value: Any,
) -> AsyncIterator[Any]:
    """
    Context manager to temporarily override a provider.

    Inside the block ``token`` resolves to ``mock_value`` in ``container``.
    On exit the previous provider and any cached singleton are restored;
    a token that had no provider before is removed again. The mock is
    dropped from the tracked instances, so lifecycle hooks never reach it.

    Args:
        container: Container to override
        token: Token to override
        mock_value: Mock value to inject

    Example:
        async with override_provider(container, UserRepo, FakeRepo()):
            service = await container.resolve(UserService)
    """
    providers = container._providers
    singletons = container._singletons

    had_provider = token in providers
    original_provider = providers.get(token)
    had_cached = token in singletons
    original_cached = singletons.get(token)
    tracked_before = len(container._instances)

    container.register(ValueProvider(token, mock_value))
    singletons.pop(token, None)

    try:
        yield mock_value
    finally:
        if had_provider:
            providers[token] = original_provider
        else:
            providers.pop(token, None)

        if had_cached:
            singletons[token] = original_cached
        else:
            singletons.pop(token, None)

        added = container._instances[tracked_before:]
        container._instances[tracked_before:] = [
            instance for instance in added if instance is not mock_value
        ]
