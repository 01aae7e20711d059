"""Tests for the pydantic-ai generation backends and model factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from pydantic_ai import models
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.models.test import TestModel

from core.config import Settings
from services.extraction.backends import (
    AgentBatchBackend,
    AgentStreamingBackend,
    classify_backend_error,
    create_backend,
    create_extraction_agent,
)
from services.extraction.exceptions import (
    MalformedOutput,
    NoCaptions,
    UpstreamRateLimited,
    UpstreamUnavailable,
)
from services.extraction.interfaces import StreamingBackend
from services.extraction.model_factory import (
    RETRYABLE_STATUS_CODES,
    create_resilient_http_client,
    get_extraction_model,
)
from tests.fixtures.extraction_fixtures import SAMPLE_JSON


# Block any real model requests in tests
models.ALLOW_MODEL_REQUESTS = False


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


def _agent(text: str = SAMPLE_JSON):
    return create_extraction_agent(
        model=TestModel(custom_output_text=text), settings=_settings()
    )


class TestClassifyBackendError:
    def test_domain_error_passes_through(self) -> None:
        err = NoCaptions()
        assert classify_backend_error(err) is err

    def test_model_http_429_is_rate_limited(self) -> None:
        exc = ModelHTTPError(status_code=429, model_name="gemini-2.5-flash")
        assert isinstance(classify_backend_error(exc), UpstreamRateLimited)

    def test_model_http_503_is_unavailable(self) -> None:
        exc = ModelHTTPError(status_code=503, model_name="gemini-2.5-flash")
        err = classify_backend_error(exc)
        assert isinstance(err, UpstreamUnavailable)
        assert "503" in err.message

    def test_httpx_status_error(self) -> None:
        request = httpx.Request("POST", "https://example.test/generate")
        exc = httpx.HTTPStatusError(
            "too many", request=request, response=httpx.Response(429, request=request)
        )
        assert isinstance(classify_backend_error(exc), UpstreamRateLimited)

    def test_agent_run_error_is_unavailable(self) -> None:
        exc = UnexpectedModelBehavior("bad response")
        assert isinstance(classify_backend_error(exc), UpstreamUnavailable)

    @pytest.mark.parametrize(
        "message", ["RESOURCE_EXHAUSTED", "Rate limit reached", "quota exceeded"]
    )
    def test_untyped_rate_limit_messages(self, message: str) -> None:
        assert isinstance(classify_backend_error(RuntimeError(message)), UpstreamRateLimited)

    def test_untyped_other_is_unavailable(self) -> None:
        assert isinstance(
            classify_backend_error(RuntimeError("connection reset")), UpstreamUnavailable
        )


@pytest.mark.asyncio
class TestAgentBatchBackend:
    async def test_generate_parses_output(self) -> None:
        output = await AgentBatchBackend(_agent()).generate("prompt")
        assert output.servings == 4
        assert [i.name for i in output.ingredients] == ["spaghetti", "garlic", "olive oil"]

    async def test_generate_malformed(self) -> None:
        with pytest.raises(MalformedOutput):
            await AgentBatchBackend(_agent("not json at all")).generate("prompt")

    async def test_generate_classifies_agent_errors(self) -> None:
        agent = MagicMock()
        agent.run = AsyncMock(
            side_effect=ModelHTTPError(status_code=429, model_name="gemini-2.5-flash")
        )
        with pytest.raises(UpstreamRateLimited):
            await AgentBatchBackend(agent).generate("prompt")


@pytest.mark.asyncio
class TestAgentStreamingBackend:
    async def test_fragments_concatenate_to_document(self) -> None:
        fragments: list[str] = []

        async def on_fragment(fragment: str) -> None:
            fragments.append(fragment)

        backend = AgentStreamingBackend(_agent())
        output = await backend.generate_streaming("prompt", on_fragment)

        assert len(fragments) > 1
        assert all(fragments)
        assert "".join(fragments) == SAMPLE_JSON
        assert output.cook_time_minutes == 20

    async def test_midstream_failure_raises_one_classified_error(self) -> None:
        fragments: list[str] = []

        class _Result:
            async def stream_text(self, delta: bool, debounce_by: float | None):
                yield '{"servings": 4, '
                raise ModelHTTPError(status_code=503, model_name="gemini-2.5-flash")

        @asynccontextmanager
        async def run_stream(prompt: str):
            yield _Result()

        agent = MagicMock()
        agent.run_stream = run_stream

        async def on_fragment(fragment: str) -> None:
            fragments.append(fragment)

        with pytest.raises(UpstreamUnavailable):
            await AgentStreamingBackend(agent).generate_streaming("prompt", on_fragment)
        assert fragments == ['{"servings": 4, ']


class TestCreateBackend:
    @patch("services.extraction.backends.create_extraction_agent")
    def test_streaming_variant(self, mock_agent: MagicMock) -> None:
        backend = create_backend(_settings(EXTRACTION_STREAMING=True))
        assert isinstance(backend, StreamingBackend)

    @patch("services.extraction.backends.create_extraction_agent")
    def test_batch_variant(self, mock_agent: MagicMock) -> None:
        backend = create_backend(_settings(EXTRACTION_STREAMING=False))
        assert isinstance(backend, AgentBatchBackend)
        assert not isinstance(backend, StreamingBackend)


class TestModelFactory:
    def test_rate_limits_are_not_retried(self) -> None:
        assert 429 not in RETRYABLE_STATUS_CODES
        assert {502, 503, 504} <= RETRYABLE_STATUS_CODES

    def test_resilient_client(self) -> None:
        client = create_resilient_http_client(_settings(LLM_HTTP_RETRIES=2))
        assert isinstance(client, httpx.AsyncClient)

    def test_no_credentials_raises(self) -> None:
        with pytest.raises(ValueError, match="No valid LLM provider"):
            get_extraction_model(_settings(GEMINI_API_KEY=None))

    @patch("services.extraction.model_factory._create_gemini_model")
    def test_azure_without_credentials_falls_back_to_gemini(
        self, mock_gemini: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        settings = _settings(LLM_PROVIDER="azure_openai", GEMINI_API_KEY="g-key")
        get_extraction_model(settings)
        mock_gemini.assert_called_once()
        assert "falling back to Gemini" in caplog.text

    @patch("services.extraction.model_factory._create_azure_model")
    def test_azure_with_credentials(self, mock_azure: MagicMock) -> None:
        settings = _settings(
            LLM_PROVIDER="azure_openai",
            AZURE_OPENAI_ENDPOINT="https://test.openai.azure.com/",
            AZURE_OPENAI_API_KEY="a-key",
            AZURE_OPENAI_API_VERSION="2024-10-21",
        )
        get_extraction_model(settings)
        mock_azure.assert_called_once()

    def test_azure_builds_chat_model(self) -> None:
        settings = _settings(
            LLM_PROVIDER="azure_openai",
            AZURE_OPENAI_ENDPOINT="https://test.openai.azure.com/",
            AZURE_OPENAI_API_KEY="a-key",  # pragma: allowlist secret
            AZURE_OPENAI_API_VERSION="2024-10-21",
            EXTRACTION_MODEL="gpt-4o-mini",
        )
        model = get_extraction_model(settings)
        assert isinstance(model, OpenAIChatModel)
        assert model.model_name == "gpt-4o-mini"


def test_settings_reject_bad_temperature() -> None:
    with pytest.raises(ValueError):
        _settings(EXTRACTION_TEMPERATURE=3.5)
