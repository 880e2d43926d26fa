"""
Shared test fixtures and helpers for the Nestling test suite.
"""

import itertools
import pytest
from typing import Any, List, Optional

from nestling.di import (
    Container,
    DIDiagnostics,
    DIEvent,
    Inject,
    Token,
    injectable,
    tags,
)


_ids = itertools.count(1)


# ============================================================================
# Services
# ============================================================================


@injectable
class SimpleService:
    def __init__(self):
        self.value = "simple"


@injectable
class DependentService:
    simple = Inject(SimpleService)


@injectable(scope="transient")
class TransientService:
    def __init__(self):
        self.id = next(_ids)


@injectable(scope="request")
class RequestScopedService:
    def __init__(self):
        self.id = next(_ids)


@injectable
class ServiceWithOptionalDep:
    optional = Inject("OPTIONAL_TOKEN", optional=True)


TAG_A = Token("TAG_A")
TAG_B = "tag_b"


@injectable
@tags(TAG_A, TAG_B)
class TaggedServiceA:
    name = "A"


@injectable
@tags(TAG_A)
class TaggedServiceB:
    name = "B"


@injectable
class ServiceWithModuleRef:
    def __init__(self, module_ref=None):
        self.module_ref = module_ref


# ============================================================================
# Lifecycle Helpers
# ============================================================================


class HookLog:
    """Ordered record of lifecycle hook invocations."""

    def __init__(self):
        self.calls: List[tuple] = []

    def record(self, name: str, hook: str, *args: Any) -> None:
        self.calls.append((name, hook) + args)

    def names(self, hook: str) -> List[str]:
        return [call[0] for call in self.calls if call[1] == hook]


def make_hooked_service(log: HookLog, name: str, *, fail_on: Optional[str] = None):
    """Build an injectable class recording every lifecycle hook into ``log``."""

    class HookedService:
        def _run(self, hook: str, *args: Any) -> None:
            log.record(name, hook, *args)
            if hook == fail_on:
                raise RuntimeError(f"{name} failed in {hook}")

        def on_module_init(self):
            self._run("on_module_init")

        async def on_application_bootstrap(self):
            self._run("on_application_bootstrap")

        def on_module_destroy(self):
            self._run("on_module_destroy")

        async def on_before_application_shutdown(self, signal=None):
            self._run("on_before_application_shutdown", signal)

        async def on_application_shutdown(self, signal=None):
            self._run("on_application_shutdown", signal)

    HookedService.__name__ = HookedService.__qualname__ = name
    return injectable(HookedService)


class RecordingListener:
    """Diagnostic listener keeping every event."""

    def __init__(self):
        self.events: List[DIEvent] = []

    def on_event(self, event: DIEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> List[DIEvent]:
        return [event for event in self.events if event.type == event_type]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def container():
    """Provide a clean DI container."""
    return Container(name="test")


@pytest.fixture
def hook_log():
    return HookLog()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def diagnostics(listener):
    """Diagnostics coordinator with a recording listener attached."""
    diag = DIDiagnostics()
    diag.add_listener(listener)
    return diag
