"""
Lifecycle hook protocols and sweep helpers.
"""

import pytest

from nestling.di import (
    DIEventType,
    OnApplicationShutdown,
    OnModuleInit,
    call_hook,
    has_hook,
    invoke_hooks,
)

from tests.conftest import HookLog, make_hooked_service


# ============================================================================
# Hook Detection
# ============================================================================

class TestHookDetection:

    def test_instance_with_hook(self, hook_log):
        service = make_hooked_service(hook_log, "svc")()
        assert has_hook(service, "on_module_init") is True
        assert isinstance(service, OnModuleInit)
        assert isinstance(service, OnApplicationShutdown)

    def test_classes_are_not_carriers(self, hook_log):
        cls = make_hooked_service(hook_log, "svc")
        assert has_hook(cls, "on_module_init") is False

    def test_non_callable_attribute(self):
        class Odd:
            on_module_init = "not callable"

        assert has_hook(Odd(), "on_module_init") is False

    def test_plain_values(self):
        assert has_hook(42, "on_module_init") is False
        assert has_hook({"on_module_init": 1}, "on_module_init") is False


# ============================================================================
# Invocation
# ============================================================================

class TestInvocation:

    @pytest.mark.asyncio
    async def test_sync_and_async_hooks(self, hook_log):
        service = make_hooked_service(hook_log, "svc")()
        await call_hook(service, "on_module_init")
        await call_hook(service, "on_application_shutdown", "SIGTERM")

        assert hook_log.calls == [
            ("svc", "on_module_init"),
            ("svc", "on_application_shutdown", "SIGTERM"),
        ]

    @pytest.mark.asyncio
    async def test_two_of_five_fail(self, hook_log, diagnostics, listener):
        instances = [
            make_hooked_service(
                hook_log,
                f"svc{i}",
                fail_on="on_application_bootstrap" if i in (1, 3) else None,
            )()
            for i in range(5)
        ]

        errors = await invoke_hooks(instances, "on_application_bootstrap", diagnostics=diagnostics)

        assert len(errors) == 2
        assert [str(e) for e in errors] == [
            "svc1 failed in on_application_bootstrap",
            "svc3 failed in on_application_bootstrap",
        ]
        assert hook_log.names("on_application_bootstrap") == [f"svc{i}" for i in range(5)]
        assert len(listener.of_type(DIEventType.LIFECYCLE_HOOK_FAILURE)) == 2

    @pytest.mark.asyncio
    async def test_skips_non_carriers(self, hook_log):
        service = make_hooked_service(hook_log, "svc")()
        errors = await invoke_hooks([object(), service, "text"], "on_module_destroy")
        assert errors == []
        assert hook_log.names("on_module_destroy") == ["svc"]

    @pytest.mark.asyncio
    async def test_hooks_receive_arguments(self):
        log = HookLog()
        service = make_hooked_service(log, "svc")()
        await invoke_hooks([service], "on_before_application_shutdown", "SIGINT")
        assert log.calls == [("svc", "on_before_application_shutdown", "SIGINT")]
