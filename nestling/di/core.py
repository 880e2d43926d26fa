"""
Core DI container.

The container owns a provider registry, a singleton cache, the list of
every instance it produced (for lifecycle sweeps), a tag index and an
export set. It links to child containers (imported modules) and to an
optional shared global container.

Resolution order for a token:

1. the container's own providers,
2. child containers that export the token, in registration order,
3. the global container.
"""

from contextvars import ContextVar
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
)
import asyncio
import inspect
import logging
import weakref

from .context import get_current_module_ref, get_request_context
from .diagnostics import DIDiagnostics, DIEventType
from .errors import (
    CircularDependencyError,
    RequestContextError,
    TokenNotFoundError,
)
from .metadata import MetadataReader, default_reader
from .providers import NormalizedProvider, get_provider_class, normalize_provider
from .scopes import ServiceScope, get_scope
from .tokens import serialize_token

logger = logging.getLogger("nestling.di.core")

# (container, token) pairs in flight for the current logical execution.
# Each asyncio task works on its own copy, so concurrent resolutions of
# one token are never mistaken for a cycle.
_resolution_chain: ContextVar[Tuple[Tuple["Container", Any], ...]] = ContextVar(
    "nestling_resolution_chain",
    default=(),
)

# Module-level cache: class -> whether its constructor takes a ModuleRef
_module_ref_param_cache: "weakref.WeakKeyDictionary[type, bool]" = weakref.WeakKeyDictionary()

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


def _accepts_module_ref(target: type) -> bool:
    """
    Check whether ``target``'s constructor expects the current ModuleRef.

    True when the first positional parameter is named ``module_ref`` or
    annotated ``ModuleRef``.
    """
    try:
        return _module_ref_param_cache[target]
    except (KeyError, TypeError):
        pass

    accepts = False
    try:
        params = list(inspect.signature(target).parameters.values())
    except (TypeError, ValueError):
        params = []

    if params and params[0].kind in _POSITIONAL:
        first = params[0]
        annotation = first.annotation
        annotation_name = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", None)
        accepts = first.name == "module_ref" or annotation_name == "ModuleRef"

    try:
        _module_ref_param_cache[target] = accepts
    except TypeError:
        pass
    return accepts


def _mode_name(mode: Any) -> str:
    return str(getattr(mode, "value", mode))


class Container:
    """
    Dependency injection container.

    Example:
        container = Container()

        container.register(UserService).register(
            ValueProvider("config", {"env": "dev"})
        )

        service = await container.resolve(UserService)
    """

    __slots__ = (
        "name",
        "_providers",
        "_singletons",
        "_pending",
        "_parent",
        "_children",
        "_exports",
        "_global_container",
        "_instances",
        "_tag_to_tokens",
        "_metadata",
        "_diagnostics",
    )

    def __init__(
        self,
        *,
        parent: Optional["Container"] = None,
        exports: Optional[Iterable[Any]] = None,
        global_container: Optional["Container"] = None,
        name: Optional[str] = None,
        metadata: Optional[MetadataReader] = None,
        diagnostics: Optional[DIDiagnostics] = None,
    ):
        self.name = name or "container"
        self._providers: Dict[Any, NormalizedProvider] = {}
        self._singletons: Dict[Any, Any] = {}
        self._pending: Dict[Any, asyncio.Future] = {}  # Singletons being created
        self._parent = parent
        self._children: List["Container"] = []
        self._exports = set(exports or ())
        self._global_container = global_container
        self._instances: List[Any] = []  # Creation order, for lifecycle sweeps
        self._tag_to_tokens: Dict[Any, Dict[Any, None]] = {}  # Ordered token sets
        self._metadata = metadata or default_reader
        self._diagnostics = diagnostics or DIDiagnostics()

        if parent is not None:
            parent._children.append(self)

    def __repr__(self) -> str:
        return f"<Container {self.name} providers={len(self._providers)} children={len(self._children)}>"

    @property
    def parent(self) -> Optional["Container"]:
        return self._parent

    @property
    def global_container(self) -> Optional["Container"]:
        return self._global_container

    @property
    def metadata(self) -> MetadataReader:
        return self._metadata

    @property
    def diagnostics(self) -> DIDiagnostics:
        return self._diagnostics

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, *providers: Any) -> "Container":
        """
        Register providers; re-registering a token overwrites it.

        Returns:
            ``self``, so calls can be chained

        Raises:
            InvalidProviderError: If a provider has an unknown shape
        """
        for provider in providers:
            normalized = normalize_provider(provider, self._metadata)

            self._providers[normalized.token] = normalized

            target_class = get_provider_class(provider)
            if target_class is not None:
                self._map_tags_to_token(target_class, normalized.token)

            self._diagnostics.emit(
                DIEventType.REGISTRATION,
                token=normalized.token,
                container=self.name,
                mode=_mode_name(normalized.mode),
            )

        return self

    def set_exports(self, tokens: Iterable[Any]) -> "Container":
        """Replace the set of tokens visible to parent containers."""
        self._exports = set(tokens)
        return self

    def add_child(self, child: "Container") -> "Container":
        """Attach an imported module's container."""
        self._children.append(child)
        child._parent = self
        return self

    def is_exported(self, token: Any) -> bool:
        return token in self._exports

    def has(self, token: Any) -> bool:
        """Check for a provider in this container only."""
        return token in self._providers

    def get_children(self) -> Tuple["Container", ...]:
        return tuple(self._children)

    def create_child(
        self,
        *,
        exports: Optional[Iterable[Any]] = None,
        name: Optional[str] = None,
    ) -> "Container":
        """Create a child container sharing this container's global container."""
        return Container(
            parent=self,
            exports=exports,
            global_container=self._global_container,
            name=name,
            metadata=self._metadata,
            diagnostics=self._diagnostics,
        )

    def clear(self) -> None:
        """
        Drop providers, cached singletons, tracked instances and tags.

        Lifecycle hooks are not invoked.
        """
        self._providers.clear()
        self._singletons.clear()
        self._instances = []
        self._tag_to_tokens.clear()

    # ------------------------------------------------------------------
    # Lookup without instantiation
    # ------------------------------------------------------------------

    def _delegates_to_global(self) -> bool:
        return self._global_container is not None and self._global_container is not self

    def can_resolve(self, token: Any) -> bool:
        """Check whether ``token`` is reachable: own, exported by a child, or global."""
        if token in self._providers:
            return True

        for child in self._children:
            if child.is_exported(token) and child.can_resolve(token):
                return True

        if self._delegates_to_global():
            return self._global_container.has(token)

        return False

    def get_provider_mode(self, token: Any) -> Optional[str]:
        """Lifetime mode of the provider ``token`` resolves to, or None."""
        provider = self._providers.get(token)
        if provider is not None:
            return provider.mode

        for child in self._children:
            if child.is_exported(token):
                mode = child.get_provider_mode(token)
                if mode is not None:
                    return mode

        if self._delegates_to_global():
            return self._global_container.get_provider_mode(token)

        return None

    def is_request_scoped(self, token: Any) -> bool:
        return self.get_provider_mode(token) == ServiceScope.REQUEST

    def in_flight(self) -> List[Any]:
        """Tokens this container is resolving in the current execution."""
        return [token for owner, token in _resolution_chain.get() if owner is self]

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, token: Any) -> Any:
        """
        Resolve a dependency by its token.

        Raises:
            CircularDependencyError: If ``token`` is already being resolved here
            TokenNotFoundError: If no provider is reachable
            RequestContextError: If a request-scoped token is resolved outside a request
        """
        in_flight = self.in_flight()
        if token in in_flight:
            raise CircularDependencyError(in_flight + [token])

        provider = self._providers.get(token)
        if provider is not None:
            return await self._resolve_with_mode(token, provider)

        for child in self._children:
            if child.is_exported(token):
                try:
                    return await child.resolve(token)
                except TokenNotFoundError as e:
                    logger.debug(
                        f"Child {child.name} could not resolve {serialize_token(token)}: {e}"
                    )

        if self._delegates_to_global() and self._global_container.has(token):
            return await self._global_container.resolve(token)

        raise TokenNotFoundError(token)

    async def try_resolve(self, token: Any) -> Optional[Any]:
        """
        Resolve ``token``, returning None when no provider is reachable.

        Errors other than TokenNotFoundError still propagate.
        """
        try:
            return await self.resolve(token)
        except TokenNotFoundError:
            return None

    async def instantiate_class(self, target: type) -> Any:
        """
        Construct ``target`` and inject its field dependencies.

        Inside a module context the current ModuleRef is passed as first
        constructor argument to classes that ask for it.
        """
        module_ref = get_current_module_ref()

        if module_ref is not None and _accepts_module_ref(target):
            instance = target(module_ref)
        else:
            instance = target()

        await self.inject_dependencies(instance, target)
        return instance

    async def inject_dependencies(self, instance: Any, target: type) -> None:
        """
        Resolve and assign every declared field dependency of ``target``.

        Optional dependencies that cannot be found are left unset.
        """
        for dep in self._metadata.get_dependencies(target):
            try:
                resolved = await self.resolve(dep.token)
            except TokenNotFoundError:
                if dep.optional:
                    continue
                raise

            setattr(instance, dep.field, resolved)

    def get_instances(self, *, recursive: bool = False) -> List[Any]:
        """
        Instances created by this container, in creation order.

        With ``recursive=True`` the instances of every child container come
        first (depth-first, children in registration order), followed by
        this container's own; each instance appears once, at its first
        position. Imported modules initialize before their importers, so
        the result follows module initialization order.
        """
        if not recursive:
            return list(self._instances)

        instances: List[Any] = []
        for child in self._children:
            instances.extend(child.get_instances(recursive=True))
        instances.extend(self._instances)

        seen = set()
        unique = []
        for instance in instances:
            if id(instance) not in seen:
                seen.add(id(instance))
                unique.append(instance)
        return unique

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def _own_tagged_tokens(self, tag: Any) -> List[Any]:
        return list(self._tag_to_tokens.get(tag, ()))

    def _exported_tagged_tokens(self, tag: Any) -> List[Any]:
        """Tagged tokens visible to a parent, including re-exports."""
        tokens = [token for token in self._own_tagged_tokens(tag) if self.is_exported(token)]

        for child in self._children:
            for token in child._exported_tagged_tokens(tag):
                if self.is_exported(token) and token not in tokens:
                    tokens.append(token)

        return tokens

    def _tagged_entries(self, tag: Any) -> List[Tuple[Any, "Container"]]:
        """(token, container to resolve it from) for every visible tagged token."""
        entries = [(token, self) for token in self._own_tagged_tokens(tag)]

        for child in self._children:
            entries.extend((token, child) for token in child._exported_tagged_tokens(tag))

        if self._delegates_to_global():
            entries.extend(
                (token, self._global_container)
                for token in self._global_container._own_tagged_tokens(tag)
            )

        return entries

    def get_tokens_by_tag(self, tag: Any) -> List[Any]:
        """Tokens registered with ``tag``, without resolving them."""
        return [token for token, _ in self._tagged_entries(tag)]

    async def get_entries_by_tag(self, tag: Any) -> List[Tuple[Any, Any]]:
        """
        Resolve every token carrying ``tag`` into ``(token, instance)`` pairs.

        Tag queries are best-effort: a token that fails to resolve is left
        out and reported through diagnostics.
        """
        entries = []

        for token, owner in self._tagged_entries(tag):
            try:
                instance = await owner.resolve(token)
            except Exception as e:
                logger.debug(f"Skipping tagged token {serialize_token(token)}: {e}")
                self._diagnostics.emit(
                    DIEventType.RESOLUTION_SKIPPED,
                    token=token,
                    container=owner.name,
                    error=e,
                    metadata={"reason": "tag query", "tag": tag},
                )
                continue
            entries.append((token, instance))

        return entries

    async def get_by_tag(self, tag: Any) -> List[Any]:
        """
        Resolve all providers with a specific tag.

        Own tokens come first, then tokens exported by children, then
        global tokens.

        Example:
            for validator in await container.get_by_tag(VALIDATOR):
                validator.validate(payload)
        """
        return [instance for _, instance in await self.get_entries_by_tag(tag)]

    def _map_tags_to_token(self, target: type, token: Any) -> None:
        for tag in self._metadata.get_tags(target):
            self._tag_to_tokens.setdefault(tag, {})[token] = None

    # ------------------------------------------------------------------
    # Lifetime strategies
    # ------------------------------------------------------------------

    async def _resolve_with_mode(self, token: Any, provider: NormalizedProvider) -> Any:
        scope = get_scope(provider.mode)

        if scope.in_request:
            return await self._resolve_request(token, provider)
        if scope.cacheable:
            return await self._resolve_singleton(token, provider)
        # Transient, and any custom mode
        return await self._resolve_transient(provider)

    async def _create(self, token: Any, provider: NormalizedProvider) -> Any:
        """Run the provider with ``token`` marked in flight."""
        reset_token = _resolution_chain.set(_resolution_chain.get() + ((self, token),))
        try:
            with self._diagnostics.measure(token=token, container=self.name, mode=_mode_name(provider.mode)):
                return await provider.resolve(self)
        finally:
            _resolution_chain.reset(reset_token)

    async def _resolve_singleton(self, token: Any, provider: NormalizedProvider) -> Any:
        if token in self._singletons:
            return self._singletons[token]

        # Another task is creating this singleton; wait for its instance
        pending = self._pending.get(token)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[token] = future

        try:
            instance = await self._create(token, provider)

            self._singletons[token] = instance
            self._instances.append(instance)
            future.set_result(instance)
            return instance
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved; the error is raised to this caller below
            future.exception()
            raise
        finally:
            if not future.done():
                future.cancel()
            self._pending.pop(token, None)

    async def _resolve_transient(self, provider: NormalizedProvider) -> Any:
        instance = await self._create(provider.token, provider)

        self._instances.append(instance)
        return instance

    async def _resolve_request(self, token: Any, provider: NormalizedProvider) -> Any:
        context = get_request_context()
        if context is None:
            raise RequestContextError(token)

        if token in context.instances:
            return context.instances[token]

        instance = await self._create(token, provider)

        # Not tracked: request instances end with their scope and never
        # take part in application lifecycle sweeps
        context.instances[token] = instance
        return instance
