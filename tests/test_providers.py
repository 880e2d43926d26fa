"""
Provider shapes, coercion and normalization.
"""

import pytest

from nestling.di import (
    ClassProvider,
    Container,
    ExistingProvider,
    FactoryProvider,
    InvalidProviderError,
    ServiceScope,
    Token,
    ValueProvider,
    coerce_provider,
    get_provider_class,
    get_provider_token,
    normalize_provider,
)

from tests.conftest import RequestScopedService, SimpleService, TransientService


# ============================================================================
# Coercion
# ============================================================================

class TestCoercion:

    def test_mapping_to_dataclass(self):
        assert coerce_provider({"provide": "a", "use_value": 1}) == ValueProvider("a", 1)
        assert coerce_provider({"provide": "a", "use_class": SimpleService}) == ClassProvider("a", SimpleService)
        assert coerce_provider({"provide": "a", "use_existing": "b"}) == ExistingProvider("a", "b")

    def test_factory_mapping(self):
        factory = lambda: None  # noqa: E731
        provider = coerce_provider({
            "provide": "a",
            "use_factory": factory,
            "inject": ["x", "y"],
            "mode": "transient",
        })
        assert provider == FactoryProvider("a", factory, inject=("x", "y"), mode="transient")

    def test_mapping_without_provide(self):
        with pytest.raises(InvalidProviderError):
            coerce_provider({"use_value": 1})

    def test_mapping_without_kind(self):
        with pytest.raises(InvalidProviderError):
            coerce_provider({"provide": "a"})

    def test_passthrough(self):
        provider = ValueProvider("a", 1)
        assert coerce_provider(provider) is provider
        assert coerce_provider(SimpleService) is SimpleService


# ============================================================================
# Token & Class Extraction
# ============================================================================

class TestProviderInfo:

    def test_tokens(self):
        token = Token("CONFIG")
        assert get_provider_token(SimpleService) is SimpleService
        assert get_provider_token(ValueProvider(token, 1)) is token
        assert get_provider_token({"provide": "a", "use_value": 1}) == "a"

    def test_invalid_token(self):
        with pytest.raises(InvalidProviderError):
            get_provider_token("not a provider")

    def test_classes(self):
        assert get_provider_class(SimpleService) is SimpleService
        assert get_provider_class(ClassProvider("a", SimpleService)) is SimpleService
        assert get_provider_class(ExistingProvider(SimpleService, "b")) is SimpleService
        assert get_provider_class(FactoryProvider(SimpleService, SimpleService)) is SimpleService
        assert get_provider_class(ValueProvider("a", 1)) is None
        assert get_provider_class(ExistingProvider(Token("T"), SimpleService)) is None


# ============================================================================
# Normalization
# ============================================================================

class TestNormalization:

    def test_bare_class_defaults_to_singleton(self):
        class Plain:
            pass

        normalized = normalize_provider(Plain)
        assert normalized.token is Plain
        assert normalized.mode == ServiceScope.SINGLETON

    def test_bare_class_declared_mode(self):
        assert normalize_provider(TransientService).mode == "transient"
        assert normalize_provider(RequestScopedService).mode == "request"

    def test_class_provider_uses_target_mode(self):
        normalized = normalize_provider(ClassProvider("t", TransientService))
        assert normalized.token == "t"
        assert normalized.mode == "transient"

    def test_value_and_alias_are_singleton(self):
        assert normalize_provider(ValueProvider("a", 1)).mode == ServiceScope.SINGLETON
        assert normalize_provider(ExistingProvider("a", TransientService)).mode == ServiceScope.SINGLETON

    def test_factory_mode_precedence(self):
        explicit = FactoryProvider(TransientService, TransientService, mode="request")
        inherited = FactoryProvider(TransientService, TransientService)
        plain = FactoryProvider("f", object)

        assert normalize_provider(explicit).mode == "request"
        assert normalize_provider(inherited).mode == "transient"
        assert normalize_provider(plain).mode == ServiceScope.SINGLETON

    def test_invalid(self):
        with pytest.raises(InvalidProviderError):
            normalize_provider(object())

    @pytest.mark.asyncio
    async def test_resolve_functions(self):
        container = Container()
        container.register(ValueProvider("x", 2))

        value = normalize_provider(ValueProvider("v", "value"))
        factory = normalize_provider(FactoryProvider("f", lambda x: x * 3, inject=["x"]))
        alias = normalize_provider(ExistingProvider("a", "x"))
        cls = normalize_provider(SimpleService)

        assert await value.resolve(container) == "value"
        assert await factory.resolve(container) == 6
        assert await alias.resolve(container) == 2
        assert isinstance(await cls.resolve(container), SimpleService)
