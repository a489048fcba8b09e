"""Tests for GeminiClient with the generative model mocked out."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from truthcast.llm import gemini_client
from truthcast.llm.gemini_client import GeminiClient
from truthcast.llm.rate_limiter import RateLimiter


@pytest.fixture
def model(monkeypatch) -> MagicMock:
    model = MagicMock()
    model.generate_content_async = AsyncMock(
        return_value=MagicMock(text='{"stance": "supports", "relevance_score": 80}')
    )
    monkeypatch.setattr(gemini_client.genai, "configure", MagicMock())
    monkeypatch.setattr(gemini_client.genai, "GenerativeModel", MagicMock(return_value=model))
    return model


def test_requires_api_key():
    with pytest.raises(ValueError):
        GeminiClient("")


@pytest.mark.asyncio
async def test_generate_json(model):
    client = GeminiClient("test-key")

    text = await client.generate_json("Judge this.")

    assert '"supports"' in text
    model.generate_content_async.assert_awaited_once()


@pytest.mark.asyncio
async def test_transient_error_retried(model):
    model.generate_content_async.side_effect = [
        RuntimeError("503 unavailable"),
        MagicMock(text="{}"),
    ]
    client = GeminiClient("test-key")

    assert await client.generate_json("Judge this.") == "{}"
    assert model.generate_content_async.await_count == 2


@pytest.mark.asyncio
async def test_rate_limit_exhausted(model):
    limiter = RateLimiter(max_rpm=1, max_tpm=1000)
    client = GeminiClient("test-key", rate_limiter=limiter, acquire_timeout=0.05)

    await client.generate_json("first")
    with pytest.raises(RuntimeError, match="rate limit"):
        await client.generate_json("second")
