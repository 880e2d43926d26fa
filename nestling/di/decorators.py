"""
Decorators and injection markers for declaring DI metadata.
"""

from typing import Any, Callable, Iterable, Optional, Type, TypeVar

from .errors import ModuleCompilationError
from .metadata import (
    DEPENDENCIES_ATTR,
    GLOBAL_ATTR,
    INJECTABLE_ATTR,
    MODULE_ATTR,
    SCOPE_ATTR,
    TAGS_ATTR,
    InjectionDependency,
    ModuleMetadata,
)


T = TypeVar("T")


class Inject:
    """
    Field injection marker.

    Declared as a class attribute; the container assigns the resolved
    instance to the field right after construction.

    Usage:
        @injectable()
        class UserService:
            repo = Inject(UserRepo)
            cache = Inject("cache", optional=True)

    An optional dependency that could not be found leaves the field unset
    and reads as ``None``. Reading an unset required field raises
    ``AttributeError``.
    """

    def __init__(self, token: Any, *, optional: bool = False):
        self.token = token
        self.optional = optional
        self.field: Optional[str] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.field = name

        dependencies = owner.__dict__.get(DEPENDENCIES_ATTR)
        if dependencies is None:
            dependencies = []
            setattr(owner, DEPENDENCIES_ATTR, dependencies)

        dependencies.append(
            InjectionDependency(field=name, token=self.token, optional=self.optional)
        )

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        # Only reached while the instance has no value of its own
        if instance is None:
            return self
        if self.optional:
            return None
        raise AttributeError(
            f"Dependency '{self.field}' of {type(instance).__qualname__} has not been injected"
        )

    def __repr__(self) -> str:
        return f"Inject({self.token!r}, optional={self.optional})"


def inject(token: Any, *, optional: bool = False) -> Any:
    """
    Create a field injection marker.

    Example:
        class Handler:
            db: Database = inject(Database)
            cache: Cache = inject(Cache, optional=True)
    """
    return Inject(token, optional=optional)


def injectable(
    cls: Optional[Type[T]] = None,
    *,
    scope: Optional[str] = None,
) -> Any:
    """
    Mark a class as injectable, optionally with a lifetime mode.

    Works bare (``@injectable``) or called (``@injectable(scope="request")``).
    Without a scope the class resolves as a singleton.
    """
    def decorator(target: Type[T]) -> Type[T]:
        setattr(target, INJECTABLE_ATTR, True)
        if scope is not None:
            setattr(target, SCOPE_ATTR, scope)
        return target

    if cls is not None:
        return decorator(cls)
    return decorator


def module(
    *,
    imports: Optional[Iterable[Any]] = None,
    providers: Optional[Iterable[Any]] = None,
    exports: Optional[Iterable[Any]] = None,
) -> Callable[[Type[T]], Type[T]]:
    """
    Declare a module with imports, providers and exports.

    Raises:
        ModuleCompilationError: If the class already declares a module

    Example:
        @module(
            imports=[DatabaseModule],
            providers=[UserService, UserRepository],
            exports=[UserService],
        )
        class UserModule:
            pass
    """
    def decorator(cls: Type[T]) -> Type[T]:
        if MODULE_ATTR in cls.__dict__:
            raise ModuleCompilationError(
                f'Class "{cls.__qualname__}" is already decorated with @module()'
            )

        # Modules are injectables too; they may implement lifecycle hooks
        setattr(cls, INJECTABLE_ATTR, True)

        setattr(cls, MODULE_ATTR, ModuleMetadata(
            imports=list(imports or ()),
            providers=list(providers or ()),
            exports=list(exports or ()),
        ))
        return cls

    return decorator


def global_module(cls: Type[T]) -> Type[T]:
    """
    Mark a module as global; its providers become visible everywhere.

    Example:
        @global_module
        @module(providers=[ConfigService], exports=[ConfigService])
        class ConfigModule:
            pass
    """
    setattr(cls, GLOBAL_ATTR, True)
    return cls


def tags(*tag_values: Any) -> Callable[[Type[T]], Type[T]]:
    """Attach searchable tags to a class (see ``Container.get_by_tag``)."""
    def decorator(cls: Type[T]) -> Type[T]:
        existing = tuple(getattr(cls, TAGS_ATTR, ()))
        merged = list(existing)
        for tag in tag_values:
            if tag not in merged:
                merged.append(tag)
        setattr(cls, TAGS_ATTR, tuple(merged))
        return cls

    return decorator
