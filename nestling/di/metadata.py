"""
Class metadata consumed by the resolution engine.

The engine never inspects decorators directly. It asks a ``MetadataReader``
for a class's field dependencies, lifetime mode, module declaration, global
flag and tags. ``AttributeMetadataReader`` reads the dunder attributes that
the decorators in ``nestling.di.decorators`` attach; any other mechanism
(external registration tables, config-driven wiring) can implement the same
protocol.
"""

from typing import Any, Awaitable, List, Optional, Protocol, Sequence, Tuple, Type, Union
from dataclasses import dataclass, field

# Attribute names attached by the decorators
DEPENDENCIES_ATTR = "__di_dependencies__"
SCOPE_ATTR = "__di_scope__"
INJECTABLE_ATTR = "__di_injectable__"
MODULE_ATTR = "__di_module__"
GLOBAL_ATTR = "__di_global__"
TAGS_ATTR = "__di_tags__"


@dataclass(frozen=True)
class InjectionDependency:
    """A field that receives a resolved token after construction."""

    field: str
    token: Any
    optional: bool = False


@dataclass
class ModuleMetadata:
    """Imports, providers and exports declared by a module."""

    imports: List[Any] = field(default_factory=list)
    providers: List[Any] = field(default_factory=list)
    exports: List[Any] = field(default_factory=list)


@dataclass(eq=False)
class DynamicModule:
    """
    Module declaration computed at runtime.

    Its imports, providers and exports are appended to whatever the
    ``module`` class declares statically. Compilation caches dynamic
    modules by object identity, hence ``eq=False``.

    Example:
        @module()
        class ConfigModule:
            @classmethod
            def for_root(cls, values: dict) -> DynamicModule:
                return DynamicModule(
                    module=cls,
                    providers=[ValueProvider(CONFIG, values)],
                    exports=[CONFIG],
                )
    """

    module: Type[Any]
    imports: List[Any] = field(default_factory=list)
    providers: List[Any] = field(default_factory=list)
    exports: List[Any] = field(default_factory=list)
    is_global: Optional[bool] = None


ModuleImport = Union[Type[Any], DynamicModule, Awaitable[DynamicModule]]


class MetadataReader(Protocol):
    """Interface to the class-annotation mechanism."""

    def get_dependencies(self, target: type) -> Sequence[InjectionDependency]:
        ...

    def get_lifetime_mode(self, target: type) -> Optional[str]:
        ...

    def get_module_metadata(self, target: type) -> Optional[ModuleMetadata]:
        ...

    def is_global(self, target: type) -> bool:
        ...

    def get_tags(self, target: type) -> Tuple[Any, ...]:
        ...


class AttributeMetadataReader:
    """
    Default reader backed by decorator-attached class attributes.

    Dependencies and tags accumulate along the MRO (base classes first,
    a subclass redeclaring a field wins). Lifetime mode, module metadata
    and the global flag are plain inherited attributes.
    """

    def get_dependencies(self, target: type) -> List[InjectionDependency]:
        by_field = {}
        for klass in reversed(getattr(target, "__mro__", (target,))):
            for dep in klass.__dict__.get(DEPENDENCIES_ATTR, ()):
                by_field[dep.field] = dep
        return list(by_field.values())

    def get_lifetime_mode(self, target: type) -> Optional[str]:
        return getattr(target, SCOPE_ATTR, None)

    def get_module_metadata(self, target: type) -> Optional[ModuleMetadata]:
        return getattr(target, MODULE_ATTR, None)

    def is_global(self, target: type) -> bool:
        return getattr(target, GLOBAL_ATTR, False) is True

    def get_tags(self, target: type) -> Tuple[Any, ...]:
        return tuple(getattr(target, TAGS_ATTR, ()))


default_reader = AttributeMetadataReader()
