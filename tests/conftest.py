"""Pytest configuration and shared fixtures."""

import json
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

# No real sleeping between retries in tests
os.environ.setdefault("TEXTINTEL_RETRY_BASE_DELAY", "0")
os.environ.setdefault("TEXTINTEL_RETRY_MAX_DELAY", "0")

import httpx
import pytest

from textintel.catalog import local_model_metadata
from textintel.models import ModelSelection, ProviderConfig, ProviderType, Tier


# ---------------------------------------------------------------------------
# On-device fakes
# ---------------------------------------------------------------------------

def bag_of_chars(text, dims):
    """Deterministic token-level output shaped like a feature-extraction pipeline."""
    first = [0.0] * dims
    second = [0.0] * dims
    for i, ch in enumerate(text.lower()):
        target = first if i % 2 == 0 else second
        target[ord(ch) % dims] += 1.0
    return [[first, second]]


class FakeLoader:
    """Stands in for the transformers loader; records every load."""

    def __init__(self, fail_models=(), completion_suffix=" is fast and private."):
        self.fail_models = set(fail_models)
        self.completion_suffix = completion_suffix
        self.loads = []
        self.completion_calls = []

    async def __call__(self, task, model_id):
        self.loads.append((task, model_id))
        if model_id in self.fail_models:
            raise RuntimeError(f"cannot load {model_id}")

        if task == "feature-extraction":
            dims = local_model_metadata(model_id)["dimensions"]

            def embed(text):
                return bag_of_chars(text, dims)
            embed.model_id = model_id
            return embed

        def complete(prompt, **kwargs):
            self.completion_calls.append(kwargs)
            return [{"generated_text": prompt + self.completion_suffix}]
        complete.model_id = model_id
        return complete


@pytest.fixture
def fake_loader():
    return FakeLoader()


@pytest.fixture
def local_config():
    return ProviderConfig(type=ProviderType.LOCAL, name="local")


# ---------------------------------------------------------------------------
# Direct API fakes
# ---------------------------------------------------------------------------

def make_embedding_response(total_tokens=10, dims=1536):
    return SimpleNamespace(
        data=[SimpleNamespace(embedding=[0.1] * dims)],
        usage=SimpleNamespace(total_tokens=total_tokens, prompt_tokens=total_tokens),
    )


def make_completion_response(text="Hello there", total_tokens=42, finish_reason="stop"):
    return SimpleNamespace(
        choices=[SimpleNamespace(
            message=SimpleNamespace(content=text),
            finish_reason=finish_reason,
        )],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


def make_openai_client(embed_tokens=10, completion_tokens=42, finish_reason="stop"):
    client = Mock()
    client.embeddings = Mock()
    client.embeddings.create = AsyncMock(return_value=make_embedding_response(embed_tokens))
    client.chat = Mock()
    client.chat.completions = Mock()
    client.chat.completions.create = AsyncMock(
        return_value=make_completion_response(
            total_tokens=completion_tokens, finish_reason=finish_reason
        )
    )
    return client


@pytest.fixture
def openai_client():
    return make_openai_client()


@pytest.fixture
def openai_config():
    return ProviderConfig(type=ProviderType.OPENAI, name="openai", api_key="sk-test-key-123456")


# ---------------------------------------------------------------------------
# Managed cloud fakes
# ---------------------------------------------------------------------------

USAGE = {"tokensUsed": 10, "requestsRemaining": 990, "resetTime": 1700000000}


class FakeCloud:
    """Routes (method, path) to canned JSON; records every request."""

    def __init__(self):
        self.requests = []
        self.routes = {
            ("GET", "/v1/auth/validate"): (200, {"data": {"account": "acme"}, "usage": USAGE}),
            ("POST", "/v1/ai/embeddings"): (200, {
                "data": {"embeddings": [0.6, 0.8, 0.0], "tokenCount": 7, "model": "managed-small"},
                "usage": USAGE,
            }),
            ("POST", "/v1/ai/completion"): (200, {
                "data": {"text": "Done.", "tokenCount": 12, "model": "managed-chat",
                         "finishReason": "stop"},
                "usage": USAGE,
            }),
        }

    def set(self, method, path, status, payload):
        self.routes[(method, "/v1" + path)] = (status, payload)

    def handler(self, request):
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found", "usage": USAGE})
        status, payload = route
        if isinstance(payload, Exception):
            raise payload
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)

    def paths(self):
        return [r.url.path for r in self.requests]

    def body(self, index=-1):
        return json.loads(self.requests[index].content)

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_cloud():
    return FakeCloud()


def cloud_config(tier=Tier.BASIC):
    return ProviderConfig(
        type=ProviderType.MANAGED,
        name="cloud",
        api_key="cloud-secret-key",
        base_url="https://cloud.test/v1",
        tier=tier,
        models=ModelSelection(),
    )
