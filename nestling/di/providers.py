"""
Provider shapes and their normalization into one canonical record.
"""

from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Type, TYPE_CHECKING
from dataclasses import dataclass, field
import inspect

from .errors import InvalidProviderError
from .metadata import MetadataReader, default_reader
from .scopes import ServiceScope

if TYPE_CHECKING:
    from .core import Container


@dataclass(frozen=True)
class ClassProvider:
    """Instantiate ``use_class`` (with field injection) for ``provide``."""

    provide: Any
    use_class: Type[Any]


@dataclass(frozen=True)
class ValueProvider:
    """Return a pre-bound constant for ``provide``. Always singleton."""

    provide: Any
    use_value: Any


@dataclass(frozen=True)
class FactoryProvider:
    """
    Call ``use_factory`` with the resolved ``inject`` tokens, positionally.

    The factory may be a plain function, a coroutine function, or return
    any awaitable.

    Example:
        FactoryProvider(
            provide=DB_POOL,
            use_factory=create_pool,
            inject=[Settings],
        )
    """

    provide: Any
    use_factory: Callable[..., Any]
    inject: Sequence[Any] = field(default_factory=tuple)
    mode: Optional[str] = None


@dataclass(frozen=True)
class ExistingProvider:
    """Alias ``provide`` to another token."""

    provide: Any
    use_existing: Any


_MAPPING_KINDS = {
    "use_class": lambda raw: ClassProvider(raw["provide"], raw["use_class"]),
    "use_value": lambda raw: ValueProvider(raw["provide"], raw["use_value"]),
    "use_factory": lambda raw: FactoryProvider(
        raw["provide"],
        raw["use_factory"],
        inject=tuple(raw.get("inject") or ()),
        mode=raw.get("mode"),
    ),
    "use_existing": lambda raw: ExistingProvider(raw["provide"], raw["use_existing"]),
}

_NATIVE_PROVIDERS = (ClassProvider, ValueProvider, FactoryProvider, ExistingProvider)


@dataclass(frozen=True)
class NormalizedProvider:
    """
    Provider normalized for registration in a container.

    ``resolve`` produces the value using the given container for any
    further dependencies.
    """

    token: Any
    mode: str
    resolve: Callable[["Container"], Awaitable[Any]]


def coerce_provider(provider: Any) -> Any:
    """
    Turn a declarative mapping into its provider dataclass.

    Classes and provider dataclasses are returned unchanged.

    Raises:
        InvalidProviderError: If the mapping is not exactly one provider kind
    """
    if isinstance(provider, Mapping):
        kinds = [key for key in _MAPPING_KINDS if key in provider]
        if "provide" not in provider or len(kinds) != 1:
            raise InvalidProviderError(provider)
        return _MAPPING_KINDS[kinds[0]](provider)
    return provider


def get_provider_token(provider: Any) -> Any:
    """Token a provider registers under."""
    provider = coerce_provider(provider)

    if isinstance(provider, type):
        return provider
    if isinstance(provider, _NATIVE_PROVIDERS):
        return provider.provide

    raise InvalidProviderError(provider)


def get_provider_class(provider: Any) -> Optional[type]:
    """
    Concrete class a provider exposes, used for tag indexing.

    A bare class is returned directly, a class provider yields its
    ``use_class``, any other provider yields ``provide`` when that token is
    a class. String and ``Token`` keys expose no class.
    """
    provider = coerce_provider(provider)

    if isinstance(provider, type):
        return provider
    if isinstance(provider, ClassProvider):
        return provider.use_class
    if isinstance(provider, _NATIVE_PROVIDERS) and isinstance(provider.provide, type):
        return provider.provide
    return None


def normalize_provider(
    provider: Any,
    metadata: Optional[MetadataReader] = None,
) -> NormalizedProvider:
    """
    Normalize any provider shape for container registration.

    Raises:
        InvalidProviderError: If the provider is invalid
    """
    reader = metadata or default_reader
    provider = coerce_provider(provider)

    if isinstance(provider, type):
        target = provider

        async def resolve_class(container: "Container") -> Any:
            return await container.instantiate_class(target)

        return NormalizedProvider(
            token=target,
            mode=reader.get_lifetime_mode(target) or ServiceScope.SINGLETON,
            resolve=resolve_class,
        )

    if isinstance(provider, ValueProvider):
        value = provider.use_value

        async def resolve_value(container: "Container") -> Any:
            return value

        return NormalizedProvider(
            token=provider.provide,
            mode=ServiceScope.SINGLETON,
            resolve=resolve_value,
        )

    if isinstance(provider, FactoryProvider):
        mode = provider.mode
        if mode is None and isinstance(provider.provide, type):
            mode = reader.get_lifetime_mode(provider.provide)

        factory = provider.use_factory
        inject_tokens = tuple(provider.inject or ())

        async def resolve_factory(container: "Container") -> Any:
            args = []
            for token in inject_tokens:
                args.append(await container.resolve(token))

            result = factory(*args)
            if inspect.isawaitable(result):
                result = await result
            return result

        return NormalizedProvider(
            token=provider.provide,
            mode=mode or ServiceScope.SINGLETON,
            resolve=resolve_factory,
        )

    if isinstance(provider, ClassProvider):
        use_class = provider.use_class

        async def resolve_use_class(container: "Container") -> Any:
            return await container.instantiate_class(use_class)

        return NormalizedProvider(
            token=provider.provide,
            mode=reader.get_lifetime_mode(use_class) or ServiceScope.SINGLETON,
            resolve=resolve_use_class,
        )

    if isinstance(provider, ExistingProvider):
        target_token = provider.use_existing

        async def resolve_alias(container: "Container") -> Any:
            return await container.resolve(target_token)

        return NormalizedProvider(
            token=provider.provide,
            mode=ServiceScope.SINGLETON,
            resolve=resolve_alias,
        )

    raise InvalidProviderError(provider)
