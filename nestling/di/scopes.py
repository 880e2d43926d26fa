"""
Lifetime scope definitions.
"""

from enum import Enum
from dataclasses import dataclass


class ServiceScope(str, Enum):
    """Service lifetime scopes."""

    SINGLETON = "singleton"  # One instance per container, until clear()
    TRANSIENT = "transient"  # New instance every resolve
    REQUEST = "request"      # One instance per request scope


@dataclass(frozen=True)
class Scope:
    """Scope metadata and rules."""

    name: str
    cacheable: bool
    in_request: bool = False  # Cached per request scope, not per container


# Predefined scopes
SCOPES = {
    "singleton": Scope(name="singleton", cacheable=True),
    "transient": Scope(name="transient", cacheable=False),
    "request": Scope(name="request", cacheable=True, in_request=True),
}


def get_scope(mode: str) -> Scope:
    """
    Look up the rules for a lifetime mode.

    Unknown or custom modes follow transient rules.
    """
    # ServiceScope members hash and compare like their string values
    return SCOPES.get(mode, SCOPES["transient"])
