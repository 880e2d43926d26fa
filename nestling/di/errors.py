"""
DI-specific error types with rich diagnostics.
"""

from typing import Any, List

from .tokens import serialize_token


class DIError(Exception):
    """Base exception for DI errors."""
    pass


class TokenNotFoundError(DIError):
    """No provider is reachable for the requested token."""

    def __init__(self, token: Any):
        self.token = token

        msg = f"No provider found for token: {serialize_token(token)}"
        super().__init__(msg)


class CircularDependencyError(DIError):
    """
    Token re-entered while it was still being resolved.

    ``chain`` holds the in-flight tokens followed by the repeated token,
    so the offending token appears twice.
    """

    def __init__(self, chain: List[Any]):
        self.chain = list(chain)

        names = [serialize_token(token) for token in self.chain]
        msg = f"Circular dependency detected: {' -> '.join(names)}"

        msg += "\n\nSuggested fixes:"
        msg += "\n  - Restructure dependencies to remove the cycle"
        msg += "\n  - Extract the shared part into a separate provider"
        msg += "\n  - Resolve one side lazily through ModuleRef.get()"

        super().__init__(msg)


class InvalidProviderError(DIError):
    """Provider configuration does not match any known provider shape."""

    def __init__(self, provider: Any):
        self.provider = provider

        msg = f"Invalid provider configuration: {provider!r}"
        msg += "\n\nA provider must be a class, a ClassProvider, ValueProvider,"
        msg += "\nFactoryProvider or ExistingProvider, or a mapping with 'provide'"
        msg += "\nand exactly one of 'use_class', 'use_value', 'use_factory',"
        msg += "\n'use_existing'."

        super().__init__(msg)


class ModuleCompilationError(DIError):
    """A referenced type could not be compiled into a module."""
    pass


class RequestContextError(DIError):
    """Request-scoped provider resolved outside of a request context."""

    def __init__(self, token: Any):
        self.token = token

        msg = (
            f'Cannot resolve request-scoped provider "{serialize_token(token)}" '
            f"outside of a request context. "
            f"Use InjectorContext.run_in_request_scope() to establish a request context."
        )
        super().__init__(msg)


class ModuleScopeError(DIError):
    """Token requested with module scoping does not belong to the module."""

    def __init__(self, token: Any):
        self.token = token

        msg = (
            f'Token "{serialize_token(token)}" is not available in this module\'s scope. '
            f"Resolve it without scoped=True to search the entire container."
        )
        super().__init__(msg)


class LifecycleError(DIError):
    """
    One or more lifecycle hooks failed during a phase.

    Every hook of the phase still ran; ``errors`` holds each failure in
    invocation order.
    """

    def __init__(self, phase: str, errors: List[Exception]):
        self.phase = phase
        self.errors = list(errors)

        msg = f"{len(self.errors)} error(s) occurred during {phase}:"
        for i, error in enumerate(self.errors, 1):
            msg += f"\n  {i}. {error}"

        super().__init__(msg)
