"""
ModuleRef - runtime handle on a module's container.
"""

from typing import Any, Iterable, List, Optional, Type, TypeVar

from ..di.core import Container
from ..di.errors import ModuleScopeError, TokenNotFoundError

T = TypeVar("T")


class ModuleRef:
    """
    Dynamic access to the container of one module.

    Passed as first constructor argument to classes that declare a
    ``module_ref`` parameter (or one annotated ``ModuleRef``), while their
    module initializes.

    Example:
        @injectable
        class PluginHost:
            def __init__(self, module_ref: ModuleRef):
                self.module_ref = module_ref

            async def plugins(self):
                return await self.module_ref.get_by_tag(PLUGIN)
    """

    __slots__ = ("container", "_module_tokens")

    def __init__(self, container: Container, module_tokens: Iterable[Any]):
        self.container = container
        self._module_tokens = set(module_tokens)

    def __repr__(self) -> str:
        return f"<ModuleRef {self.container.name} tokens={len(self._module_tokens)}>"

    async def get(self, token: Any, *, scoped: bool = False) -> Any:
        """
        Resolve ``token`` through the module's container.

        Args:
            token: Token to resolve
            scoped: Restrict lookup to tokens the module itself declares

        Raises:
            ModuleScopeError: If ``scoped`` and the module does not own ``token``
            TokenNotFoundError: If no provider is reachable
        """
        if scoped and token not in self._module_tokens:
            raise ModuleScopeError(token)

        return await self.container.resolve(token)

    async def try_get(self, token: Any, *, scoped: bool = False) -> Optional[Any]:
        """Like ``get`` but returns None when the token cannot be found."""
        try:
            return await self.get(token, scoped=scoped)
        except TokenNotFoundError:
            return None

    def has(self, token: Any) -> bool:
        """Check whether the module itself declares ``token``."""
        return token in self._module_tokens

    def has_global(self, token: Any) -> bool:
        """Check whether the module's container registers ``token``."""
        return self.container.has(token)

    async def get_by_tag(self, tag: Any, *, scoped: bool = False) -> List[Any]:
        """
        Resolve every instance carrying ``tag``.

        With ``scoped=True`` only instances of tokens the module declares
        are returned.
        """
        entries = await self.container.get_entries_by_tag(tag)

        if scoped:
            return [instance for token, instance in entries if token in self._module_tokens]
        return [instance for _, instance in entries]

    async def create(self, target: Type[T]) -> T:
        """
        Instantiate ``target`` with field injection, without registering it.

        Returns a new instance on every call.
        """
        return await self.container.instantiate_class(target)
