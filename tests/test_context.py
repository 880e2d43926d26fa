"""
Request scope and module scope context variables.
"""

import asyncio
import pytest

from nestling.di import (
    get_current_module_ref,
    get_request_context,
    get_request_id,
    is_in_request_context,
    module_context,
    request_scope,
    run_in_module_context,
    run_in_request_context,
    run_in_request_context_async,
)


# ============================================================================
# Request Context
# ============================================================================

class TestRequestContext:

    def test_no_context_by_default(self):
        assert get_request_context() is None
        assert get_request_id() is None
        assert is_in_request_context() is False

    def test_sync_run(self):
        def handler():
            return get_request_id(), is_in_request_context()

        assert run_in_request_context("req-1", handler) == ("req-1", True)
        assert get_request_context() is None

    @pytest.mark.asyncio
    async def test_async_run(self):
        async def handler():
            await asyncio.sleep(0)
            return get_request_id()

        assert await run_in_request_context_async("req-2", handler) == "req-2"
        assert get_request_context() is None

    def test_fresh_cache_per_scope(self):
        with request_scope("req-1") as first:
            first.instances["token"] = "value"
        with request_scope("req-1") as second:
            assert second.instances == {}

    def test_nested_scopes_restore(self):
        with request_scope("outer"):
            with request_scope("inner"):
                assert get_request_id() == "inner"
            assert get_request_id() == "outer"
        assert get_request_id() is None

    def test_teardown_on_error(self):
        def handler():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            run_in_request_context("req-1", handler)
        assert get_request_context() is None

    @pytest.mark.asyncio
    async def test_concurrent_scopes_isolated(self):
        async def handler(request_id):
            with request_scope(request_id) as ctx:
                await asyncio.sleep(0)
                ctx.instances["id"] = request_id
                await asyncio.sleep(0)
                return get_request_context().instances["id"]

        results = await asyncio.gather(*(handler(f"req-{i}") for i in range(5)))
        assert results == [f"req-{i}" for i in range(5)]


# ============================================================================
# Module Context
# ============================================================================

class TestModuleContext:

    def test_module_context(self):
        marker = object()
        assert get_current_module_ref() is None
        with module_context(marker):
            assert get_current_module_ref() is marker
        assert get_current_module_ref() is None

    def test_run_in_module_context(self):
        marker = object()
        assert run_in_module_context(marker, get_current_module_ref) is marker
