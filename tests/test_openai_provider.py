"""Tests for the direct API provider."""

from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from conftest import make_embedding_response, make_openai_client
from textintel.catalog import DEFAULT_PRICE_PER_TOKEN
from textintel.exceptions import NotInitializedError, RemoteFailureError
from textintel.models import FinishReason, ModelSelection, ProviderConfig, ProviderType
from textintel.providers.openai_impl import OpenAIProvider


def auth_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    return openai.AuthenticationError(
        "Incorrect API key provided",
        response=httpx.Response(401, request=request),
        body=None,
    )


async def make_ready(config, client, **kwargs):
    provider = OpenAIProvider(config, client=client, **kwargs)
    assert await provider.initialize() is True
    return provider


class TestInitialize:
    async def test_smoke_test_call(self, openai_config, openai_client):
        await make_ready(openai_config, openai_client)

        openai_client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-small",
            input="test",
            encoding_format="float",
        )

    async def test_missing_key_returns_false(self):
        provider = OpenAIProvider(ProviderConfig(type=ProviderType.OPENAI))

        assert await provider.initialize() is False
        assert not provider.is_configured()

    async def test_rejected_key_returns_false(self, openai_config, openai_client):
        openai_client.embeddings.create.side_effect = auth_error()
        provider = OpenAIProvider(openai_config, client=openai_client)

        assert await provider.initialize() is False

    async def test_builds_sdk_client_from_config(self, monkeypatch):
        created = {}

        class FakeAsyncOpenAI:
            def __init__(self, **kwargs):
                created.update(kwargs)
                self.embeddings = make_openai_client().embeddings

        monkeypatch.setattr("textintel.providers.openai_impl.AsyncOpenAI", FakeAsyncOpenAI)
        config = ProviderConfig(
            type=ProviderType.OPENAI,
            api_key="sk-test-key-123456",
            organization="org-42",
            base_url="https://gateway.test/v1",
        )

        assert await OpenAIProvider(config).initialize() is True
        assert created["api_key"] == "sk-test-key-123456"
        assert created["organization"] == "org-42"
        assert created["base_url"] == "https://gateway.test/v1"
        assert created["max_retries"] == 0


class TestEmbeddings:
    async def test_priced_end_to_end(self):
        config = ProviderConfig(
            type=ProviderType.OPENAI,
            api_key="sk-test-key-123456",
            models=ModelSelection(embeddings="cheap-embed-v1"),
        )
        client = make_openai_client(embed_tokens=10)
        provider = await make_ready(config, client, pricing={"cheap-embed-v1": 0.00000002})

        result = await provider.generate_embeddings("hello world")

        assert result.token_count == 10
        assert result.cost == pytest.approx(2e-07)
        assert result.model == "cheap-embed-v1"
        assert len(result.embeddings) == 1536

        stats = provider.get_usage_stats()
        assert stats.tokens_used == 10
        assert stats.request_count == 1
        assert stats.estimated_cost == pytest.approx(2e-07)

    async def test_unlisted_model_uses_default_price(self, openai_client):
        config = ProviderConfig(
            type=ProviderType.OPENAI,
            api_key="sk-test-key-123456",
            models=ModelSelection(embeddings="mystery-model"),
        )
        provider = await make_ready(config, openai_client)

        result = await provider.generate_embeddings("hello")

        assert result.cost == pytest.approx(10 * DEFAULT_PRICE_PER_TOKEN)

    async def test_not_initialized(self, openai_config, openai_client):
        provider = OpenAIProvider(openai_config, client=openai_client)

        with pytest.raises(NotInitializedError):
            await provider.generate_embeddings("hello")

    async def test_transient_error_retried(self, openai_config, openai_client):
        provider = await make_ready(openai_config, openai_client)
        openai_client.embeddings.create = AsyncMock(
            side_effect=[ConnectionError("reset"), make_embedding_response(4)]
        )

        result = await provider.generate_embeddings("hello")

        assert result.token_count == 4
        assert openai_client.embeddings.create.await_count == 2

    async def test_auth_error_not_retried(self, openai_config, openai_client):
        provider = await make_ready(openai_config, openai_client)
        openai_client.embeddings.create = AsyncMock(side_effect=auth_error())

        with pytest.raises(RemoteFailureError, match="OpenAI embeddings failed"):
            await provider.generate_embeddings("hello")

        assert openai_client.embeddings.create.await_count == 1
        assert provider.get_usage_stats().request_count == 0

    async def test_retries_exhausted(self, openai_config, openai_client):
        provider = await make_ready(openai_config, openai_client)
        openai_client.embeddings.create = AsyncMock(side_effect=ConnectionError("reset"))

        with pytest.raises(RemoteFailureError):
            await provider.generate_embeddings("hello")

        # first attempt plus MAX_RETRIES
        assert openai_client.embeddings.create.await_count == 4


class TestCompletion:
    async def test_sends_system_instruction(self, openai_config, openai_client):
        provider = await make_ready(openai_config, openai_client)

        result = await provider.generate_completion("What is pip?", 64)

        kwargs = openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 64
        assert kwargs["temperature"] == 0.1
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]
        assert kwargs["messages"][1]["content"] == "What is pip?"

        assert result.text == "Hello there"
        assert result.token_count == 42
        assert result.cost == pytest.approx(42 * 0.00000015)
        assert result.finish_reason is FinishReason.STOP

    async def test_default_max_tokens(self, openai_config, openai_client):
        provider = await make_ready(openai_config, openai_client)

        await provider.generate_completion("prompt")

        assert openai_client.chat.completions.create.await_args.kwargs["max_tokens"] == 1000

    async def test_finish_reason_mapped(self, openai_config):
        client = make_openai_client(finish_reason="length")
        provider = await make_ready(openai_config, client)

        result = await provider.generate_completion("prompt")

        assert result.finish_reason is FinishReason.LENGTH

    async def test_failure_wrapped(self, openai_config, openai_client):
        provider = await make_ready(openai_config, openai_client)
        openai_client.chat.completions.create = AsyncMock(side_effect=auth_error())

        with pytest.raises(RemoteFailureError, match="OpenAI completion failed"):
            await provider.generate_completion("prompt")

    async def test_summarize_uses_target_tokens(self, openai_config, openai_client):
        provider = await make_ready(openai_config, openai_client)

        await provider.summarize_text("A long passage.", 50)

        kwargs = openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["max_tokens"] == 50
        assert "approximately 50 tokens" in kwargs["messages"][1]["content"]


class TestPricingAndAdvice:
    def test_estimate_cost(self, openai_config, openai_client):
        provider = OpenAIProvider(openai_config, client=openai_client)

        assert provider.estimate_cost("embeddings", 1_000_000) == pytest.approx(0.02)
        assert provider.estimate_cost("completion", 1_000_000) == pytest.approx(0.15)

    def test_model_info(self, openai_config, openai_client):
        info = OpenAIProvider(openai_config, client=openai_client).get_model_info()

        assert info["embeddings"]["text-embedding-3-small"]["dimensions"] == 1536
        assert info["completion"]["gpt-4o-mini"]["recommended"] is True

    def test_recommendations_for_legacy_models(self, openai_client):
        config = ProviderConfig(
            type=ProviderType.OPENAI,
            api_key="sk-test-key-123456",
            models=ModelSelection(embeddings="text-embedding-ada-002", completion="gpt-4"),
        )
        provider = OpenAIProvider(config, client=openai_client)

        advice = provider.get_usage_recommendations()

        assert len(advice) == 2
        assert "text-embedding-3-small" in advice[0]
        assert "gpt-4o-mini" in advice[1]

    def test_recommendations_for_heavy_usage(self, openai_config, openai_client):
        provider = OpenAIProvider(openai_config, client=openai_client)
        provider.track_usage(2_000_000, 25.0)

        advice = provider.get_usage_recommendations()

        assert any("local models" in a for a in advice)
        assert any("managed cloud" in a for a in advice)

    def test_no_recommendations_by_default(self, openai_config, openai_client):
        assert OpenAIProvider(openai_config, client=openai_client).get_usage_recommendations() == []


async def test_benchmark_restores_model_after_failure(openai_config, openai_client):
    provider = await make_ready(openai_config, openai_client)

    async def create(model, **kwargs):
        if model == "text-embedding-3-large":
            raise auth_error()
        return make_embedding_response(8)

    openai_client.embeddings.create = AsyncMock(side_effect=create)

    results = await provider.benchmark_models()

    assert results["text-embedding-3-small"]["success"] is True
    assert results["text-embedding-3-small"]["token_count"] == 8
    assert results["text-embedding-3-large"]["success"] is False
    assert provider.config.models.embeddings == "text-embedding-3-small"


def test_chat_defaults_to_completion_model(openai_config, openai_client):
    provider = OpenAIProvider(openai_config, client=openai_client)

    assert provider.config.models.chat == "gpt-4o-mini"
    assert provider.get_provider_info().cost_estimate == "low"


async def test_catalogued_model_dimension_mismatch(openai_config, openai_client):
    provider = await make_ready(openai_config, openai_client)
    openai_client.embeddings.create = AsyncMock(
        return_value=make_embedding_response(5, dims=256)
    )

    with pytest.raises(RemoteFailureError, match="returned 256 dimensions"):
        await provider.generate_embeddings("hello")

    assert provider.get_usage_stats().request_count == 0


async def test_options_forwarded_without_overriding_fixed_fields(openai_client):
    config = ProviderConfig(
        type=ProviderType.OPENAI,
        api_key="sk-test-key-123456",
        options={"seed": 7, "top_p": 0.5, "model": "not-this-one"},
    )
    provider = await make_ready(config, openai_client)

    await provider.generate_completion("prompt")

    kwargs = openai_client.chat.completions.create.await_args.kwargs
    assert kwargs["seed"] == 7
    assert kwargs["top_p"] == 0.5
    assert kwargs["model"] == "gpt-4o-mini"


def test_model_info_reports_table_versions(openai_config, openai_client):
    from textintel.catalog import CATALOG_VERSION, PRICING_VERSION

    info = OpenAIProvider(openai_config, client=openai_client).get_model_info()

    assert info["catalog_version"] == CATALOG_VERSION
    assert info["pricing_version"] == PRICING_VERSION
