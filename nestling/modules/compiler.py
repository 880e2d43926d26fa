"""
Module compilation.

Turns a root module declaration into a graph of ``CompiledModule`` nodes,
one per distinct module, with flattened provider lists and the tokens each
module owns and exports. Also yields the orders used for initialization
(dependencies first) and destruction (dependents first).
"""

from typing import Any, Dict, List, Optional, Set, Tuple, Type
from dataclasses import dataclass, field
import inspect
import logging

from ..di.errors import ModuleCompilationError
from ..di.metadata import DynamicModule, MetadataReader, ModuleMetadata, default_reader
from ..di.providers import get_provider_token

logger = logging.getLogger("nestling.modules.compiler")


@dataclass(eq=False)
class CompiledModule:
    """
    Compiled module node.

    ``providers`` holds the providers of every imported module (in import
    order) followed by this module's own. ``own_tokens`` lists the tokens
    of the module's own providers in declaration order, followed by the
    module type itself. Nodes compare by identity.
    """

    type: Type[Any]
    providers: List[Any] = field(default_factory=list)
    exports: Set[Any] = field(default_factory=set)
    is_global: bool = False
    imports: List["CompiledModule"] = field(default_factory=list)
    own_tokens: Tuple[Any, ...] = ()

    def __repr__(self) -> str:
        return (
            f"<CompiledModule {self.type.__qualname__} "
            f"providers={len(self.providers)} imports={len(self.imports)}>"
        )


class ModuleCompiler:
    """
    Compiles module declarations depth-first.

    Static modules compile once per type and dynamic declarations once per
    object, so a module imported from several places yields a single node.

    Example:
        compiler = ModuleCompiler()
        root = await compiler.compile(AppModule)

        for mod in compiler.get_modules_in_init_order(root):
            print(mod.type.__name__)
    """

    def __init__(self, metadata: Optional[MetadataReader] = None):
        self._metadata = metadata or default_reader
        self._compiled: Dict[type, CompiledModule] = {}
        self._dynamic_cache: Dict[int, Tuple[DynamicModule, CompiledModule]] = {}
        self._global_providers: List[Any] = []
        self._compiling: List[CompiledModule] = []  # Nodes whose imports are being compiled

    async def compile(self, module_type: Any) -> CompiledModule:
        """
        Compile a module and all its imports.

        Args:
            module_type: Module class, DynamicModule, or an awaitable
                resolving to a DynamicModule

        Raises:
            ModuleCompilationError: If a class carries no module metadata,
                or if modules import each other in a cycle
        """
        if isinstance(module_type, DynamicModule):
            cached = self._dynamic_cache.get(id(module_type))
            if cached is not None:
                return self._reuse(cached[1])

        # Awaitables are resolved here, so an awaitable import is only
        # ever consumed once
        resolved = module_type
        if inspect.isawaitable(resolved):
            resolved = await resolved
            if isinstance(resolved, DynamicModule):
                cached = self._dynamic_cache.get(id(resolved))
                if cached is not None:
                    return self._reuse(cached[1])

        target, metadata, is_global = self._resolve_module(resolved)

        is_dynamic = isinstance(resolved, DynamicModule)
        if not is_dynamic and target in self._compiled:
            return self._reuse(self._compiled[target])

        own_providers = list(metadata.providers)
        own_tokens = list(dict.fromkeys(get_provider_token(provider) for provider in own_providers))
        if target not in own_tokens:
            own_tokens.append(target)

        compiled = CompiledModule(
            type=target,
            exports=set(metadata.exports),
            is_global=is_global,
            own_tokens=tuple(own_tokens),
        )

        # Cached before imports compile, so an import leading back here is
        # found on the compiling stack
        if is_dynamic:
            self._dynamic_cache[id(resolved)] = (resolved, compiled)
        else:
            self._compiled[target] = compiled

        imported_providers: List[Any] = []
        self._compiling.append(compiled)
        try:
            for item in metadata.imports:
                imported = await self.compile(item)
                compiled.imports.append(imported)
                imported_providers.extend(imported.providers)
        finally:
            self._compiling.pop()

        compiled.providers = imported_providers + own_providers

        if is_global:
            self._global_providers.extend(own_providers)

        logger.debug(
            f"Compiled module {target.__qualname__}: "
            f"{len(own_providers)} own providers, {len(compiled.imports)} imports"
        )
        return compiled

    def get_global_providers(self) -> List[Any]:
        """Providers of every global module compiled so far (a copy)."""
        return list(self._global_providers)

    def get_modules_in_init_order(self, root: CompiledModule) -> List[CompiledModule]:
        """
        Depth-first post-order over imports, each module listed once.

        Every module appears after all modules it imports.
        """
        visited: Set[int] = set()
        result: List[CompiledModule] = []

        def visit(mod: CompiledModule) -> None:
            if id(mod) in visited:
                return
            visited.add(id(mod))

            for imported in mod.imports:
                visit(imported)

            result.append(mod)

        visit(root)
        return result

    def get_modules_in_destroy_order(self, root: CompiledModule) -> List[CompiledModule]:
        """Reverse of the init order."""
        return list(reversed(self.get_modules_in_init_order(root)))

    def clear(self) -> None:
        """Reset all compilation caches."""
        self._compiled.clear()
        self._dynamic_cache.clear()
        self._global_providers = []
        self._compiling = []

    def _reuse(self, compiled: CompiledModule) -> CompiledModule:
        """Return an already compiled node, rejecting imports that close a cycle."""
        for start, mod in enumerate(self._compiling):
            if mod is compiled:
                chain = [m.type.__qualname__ for m in self._compiling[start:]]
                chain.append(compiled.type.__qualname__)
                raise ModuleCompilationError(
                    f"Circular module import detected: {' -> '.join(chain)}"
                )
        return compiled

    def _resolve_module(self, resolved: Any) -> Tuple[type, ModuleMetadata, bool]:
        if isinstance(resolved, DynamicModule):
            static = self._metadata.get_module_metadata(resolved.module) or ModuleMetadata()

            metadata = ModuleMetadata(
                imports=list(static.imports) + list(resolved.imports or ()),
                providers=list(static.providers) + list(resolved.providers or ()),
                exports=list(static.exports) + list(resolved.exports or ()),
            )

            if resolved.is_global is not None:
                is_global = resolved.is_global
            else:
                is_global = self._metadata.is_global(resolved.module)

            return resolved.module, metadata, is_global

        metadata = self._metadata.get_module_metadata(resolved) if isinstance(resolved, type) else None
        if metadata is None:
            name = getattr(resolved, "__qualname__", repr(resolved))
            raise ModuleCompilationError(
                f'Class "{name}" is not decorated with @module()'
            )

        return resolved, metadata, self._metadata.is_global(resolved)
