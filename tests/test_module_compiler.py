"""
Module graph compilation and ordering.
"""

import pytest

from nestling.di import (
    DynamicModule,
    ModuleCompilationError,
    ValueProvider,
    global_module,
    module,
)
from nestling.modules import ModuleCompiler

from tests.conftest import DependentService, SimpleService, TransientService


# ============================================================================
# Compilation
# ============================================================================

class TestCompile:

    @pytest.mark.asyncio
    async def test_simple_module(self):
        @module(providers=[SimpleService], exports=[SimpleService])
        class Feature:
            pass

        compiled = await ModuleCompiler().compile(Feature)

        assert compiled.type is Feature
        assert compiled.providers == [SimpleService]
        assert compiled.exports == {SimpleService}
        assert compiled.own_tokens == (SimpleService, Feature)
        assert compiled.is_global is False
        assert compiled.imports == []

    @pytest.mark.asyncio
    async def test_imported_providers_come_first(self):
        @module(providers=[SimpleService], exports=[SimpleService])
        class Child:
            pass

        @module(imports=[Child], providers=[DependentService])
        class Root:
            pass

        compiled = await ModuleCompiler().compile(Root)

        assert compiled.providers == [SimpleService, DependentService]
        assert compiled.own_tokens == (DependentService, Root)
        assert [mod.type for mod in compiled.imports] == [Child]

    @pytest.mark.asyncio
    async def test_not_a_module(self):
        class Plain:
            pass

        with pytest.raises(ModuleCompilationError) as exc_info:
            await ModuleCompiler().compile(Plain)
        assert "Plain" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_static_module_compiled_once(self):
        @module(providers=[SimpleService])
        class Shared:
            pass

        @module(imports=[Shared])
        class A:
            pass

        @module(imports=[Shared])
        class B:
            pass

        @module(imports=[A, B])
        class Root:
            pass

        compiler = ModuleCompiler()
        root = await compiler.compile(Root)

        assert root.imports[0].imports[0] is root.imports[1].imports[0]
        assert await compiler.compile(Shared) is root.imports[0].imports[0]

    @pytest.mark.asyncio
    async def test_import_cycle_rejected(self):
        @module()
        class A:
            pass

        @module(imports=[A])
        class B:
            pass

        A.__di_module__.imports.append(B)

        compiler = ModuleCompiler()
        with pytest.raises(ModuleCompilationError) as exc_info:
            await compiler.compile(A)

        assert "A -> B -> A" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_self_import_rejected(self):
        @module()
        class Loop:
            pass

        Loop.__di_module__.imports.append(Loop)

        with pytest.raises(ModuleCompilationError):
            await ModuleCompiler().compile(Loop)

    @pytest.mark.asyncio
    async def test_cycle_through_dynamic_module_rejected(self):
        @module()
        class Inner:
            pass

        dynamic = DynamicModule(module=Inner)

        @module(imports=[dynamic])
        class Outer:
            pass

        dynamic.imports = [Outer]

        with pytest.raises(ModuleCompilationError):
            await ModuleCompiler().compile(Outer)

    @pytest.mark.asyncio
    async def test_compiling_stack_unwinds_after_failure(self):
        @module()
        class A:
            pass

        @module(imports=[A])
        class B:
            pass

        A.__di_module__.imports.append(B)

        compiler = ModuleCompiler()
        with pytest.raises(ModuleCompilationError):
            await compiler.compile(B)

        @module(providers=[SimpleService])
        class Fine:
            pass

        compiled = await compiler.compile(Fine)
        assert compiled.own_tokens == (SimpleService, Fine)


# ============================================================================
# Dynamic Modules
# ============================================================================

class TestDynamicModules:

    @pytest.mark.asyncio
    async def test_static_then_dynamic_metadata(self):
        @module(providers=[SimpleService], exports=[SimpleService])
        class Config:
            pass

        dynamic = DynamicModule(
            module=Config,
            providers=[ValueProvider("config", {"debug": True})],
            exports=["config"],
        )

        compiled = await ModuleCompiler().compile(dynamic)

        assert compiled.type is Config
        assert compiled.providers[0] is SimpleService
        assert compiled.providers[1] == ValueProvider("config", {"debug": True})
        assert compiled.exports == {SimpleService, "config"}
        assert compiled.own_tokens == (SimpleService, "config", Config)

    @pytest.mark.asyncio
    async def test_undecorated_dynamic_module(self):
        class Bare:
            pass

        compiled = await ModuleCompiler().compile(DynamicModule(module=Bare, providers=[SimpleService]))
        assert compiled.providers == [SimpleService]

    @pytest.mark.asyncio
    async def test_dynamic_cached_by_identity(self):
        @module()
        class Config:
            pass

        first = DynamicModule(module=Config)
        second = DynamicModule(module=Config)

        compiler = ModuleCompiler()
        assert await compiler.compile(first) is await compiler.compile(first)
        assert await compiler.compile(first) is not await compiler.compile(second)

    @pytest.mark.asyncio
    async def test_awaitable_import(self):
        @module(providers=[SimpleService], exports=[SimpleService])
        class Lazy:
            pass

        async def load():
            return DynamicModule(module=Lazy)

        @module(imports=[load()])
        class Root:
            pass

        root = await ModuleCompiler().compile(Root)
        assert root.imports[0].type is Lazy
        assert root.providers == [SimpleService]

    @pytest.mark.asyncio
    async def test_dynamic_global_override(self):
        @global_module
        @module(providers=[SimpleService])
        class Shared:
            pass

        compiler = ModuleCompiler()
        compiled = await compiler.compile(DynamicModule(module=Shared, is_global=False))

        assert compiled.is_global is False
        assert compiler.get_global_providers() == []


# ============================================================================
# Global Providers
# ============================================================================

class TestGlobalProviders:

    @pytest.mark.asyncio
    async def test_collects_global_providers(self):
        @global_module
        @module(providers=[SimpleService], exports=[SimpleService])
        class Shared:
            pass

        @module(imports=[Shared], providers=[TransientService])
        class Root:
            pass

        compiler = ModuleCompiler()
        root = await compiler.compile(Root)

        assert root.imports[0].is_global is True
        assert compiler.get_global_providers() == [SimpleService]

    @pytest.mark.asyncio
    async def test_global_providers_copy(self):
        @global_module
        @module(providers=[SimpleService])
        class Shared:
            pass

        compiler = ModuleCompiler()
        await compiler.compile(Shared)

        providers = compiler.get_global_providers()
        providers.append("extra")
        assert compiler.get_global_providers() == [SimpleService]

    @pytest.mark.asyncio
    async def test_clear(self):
        @global_module
        @module(providers=[SimpleService])
        class Shared:
            pass

        compiler = ModuleCompiler()
        first = await compiler.compile(Shared)
        compiler.clear()

        assert compiler.get_global_providers() == []
        assert await compiler.compile(Shared) is not first


# ============================================================================
# Ordering
# ============================================================================

class TestOrdering:

    @pytest.mark.asyncio
    async def test_diamond(self):
        @module()
        class Shared:
            pass

        @module(imports=[Shared])
        class Left:
            pass

        @module(imports=[Shared])
        class Right:
            pass

        @module(imports=[Left, Right])
        class Root:
            pass

        compiler = ModuleCompiler()
        root = await compiler.compile(Root)

        init = [mod.type for mod in compiler.get_modules_in_init_order(root)]
        destroy = [mod.type for mod in compiler.get_modules_in_destroy_order(root)]

        assert init == [Shared, Left, Right, Root]
        assert destroy == list(reversed(init))

    @pytest.mark.asyncio
    async def test_every_module_after_its_imports(self):
        @module()
        class Leaf:
            pass

        @module(imports=[Leaf])
        class Mid:
            pass

        @module(imports=[Mid, Leaf])
        class Root:
            pass

        compiler = ModuleCompiler()
        root = await compiler.compile(Root)
        order = compiler.get_modules_in_init_order(root)

        position = {mod.type: i for i, mod in enumerate(order)}
        for mod in order:
            for imported in mod.imports:
                assert position[imported.type] < position[mod.type]
