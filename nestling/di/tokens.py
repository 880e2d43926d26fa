"""
Injection tokens.

A token is a class, a string, or an opaque ``Token`` object. Tokens are
used directly as dictionary keys: classes and ``Token`` objects compare by
identity, strings by value.
"""

from typing import Any, Type, Union


class Token:
    """
    Opaque, identity-compared injection token.

    Two ``Token("CONFIG")`` objects are different tokens; share the object
    itself (usually as a module-level constant) to address a provider.

    Example:
        CONFIG = Token("CONFIG")

        container.register(ValueProvider(CONFIG, {"env": "dev"}))
    """

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"Token({self.name})"


InjectionToken = Union[Type[Any], str, Token]
Tag = Union[str, Token]


def serialize_token(token: Any) -> str:
    """Human-readable token name for error messages and logs."""
    if isinstance(token, type):
        return token.__qualname__ or "<anonymous class>"
    if isinstance(token, str):
        return token
    return repr(token)
