"""Model construction for the extraction backend.

Selects a Gemini or Azure OpenAI pydantic-ai model based on ``LLM_PROVIDER``
and wires it to an HTTP client that retries transient gateway failures.

Usage:
    from services.extraction.model_factory import get_extraction_model

    model = get_extraction_model()  # pydantic-ai Model
"""

from __future__ import annotations

import logging
from typing import Any, cast

from httpx import AsyncClient, HTTPStatusError
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.retries import AsyncTenacityTransport, RetryConfig, wait_retry_after
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import Settings, get_settings


logger = logging.getLogger(__name__)

# 429 is deliberately absent: rate limits surface to the caller unretried.
RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})


def _normalize_azure_endpoint(endpoint: str) -> str:
    """Drop trailing slashes; Azure treats ``//openai/...`` as a different path."""
    return endpoint.rstrip("/")


def _validate_azure_credentials(settings: Settings) -> bool:
    if (
        not settings.AZURE_OPENAI_ENDPOINT
        or not settings.AZURE_OPENAI_API_KEY
        or not settings.AZURE_OPENAI_API_VERSION
    ):
        logger.warning(
            "LLM_PROVIDER=azure_openai but credentials missing, falling back to Gemini"
        )
        return False
    return True


def create_resilient_http_client(settings: Settings | None = None) -> AsyncClient:
    """HTTP client that retries gateway errors with exponential backoff.

    Honors ``Retry-After`` when the upstream sends one.
    """
    settings = settings or get_settings()

    def should_retry_status(response: Any) -> None:
        if response.status_code in RETRYABLE_STATUS_CODES:
            response.raise_for_status()

    transport = AsyncTenacityTransport(
        config=RetryConfig(
            retry=retry_if_exception_type(HTTPStatusError),
            wait=wait_retry_after(
                fallback_strategy=wait_exponential(multiplier=2, min=1, max=30),
                max_wait=60,
            ),
            stop=stop_after_attempt(settings.LLM_HTTP_RETRIES),
            reraise=True,
        ),
        validate_response=should_retry_status,
    )
    return AsyncClient(transport=transport, timeout=120)


def _create_azure_model(
    settings: Settings, model_name: str, http_client: AsyncClient | None
) -> Model:
    from openai import AsyncAzureOpenAI

    azure_client = AsyncAzureOpenAI(
        azure_endpoint=_normalize_azure_endpoint(settings.AZURE_OPENAI_ENDPOINT or ""),
        api_key=settings.AZURE_OPENAI_API_KEY,
        api_version=settings.AZURE_OPENAI_API_VERSION,
        http_client=http_client,
    )
    return OpenAIChatModel(model_name, provider=OpenAIProvider(openai_client=azure_client))


def _create_gemini_model(
    settings: Settings, model_name: str, http_client: AsyncClient | None
) -> Model:
    provider = GoogleProvider(api_key=settings.GEMINI_API_KEY, http_client=http_client)
    return cast(Model, GoogleModel(model_name, provider=provider))


def get_extraction_model(
    settings: Settings | None = None, http_client: AsyncClient | None = None
) -> Model:
    """Return the configured extraction model.

    Raises:
        ValueError: neither Azure OpenAI nor Gemini credentials are configured.
    """
    settings = settings or get_settings()
    model_name = settings.EXTRACTION_MODEL

    if settings.LLM_PROVIDER == "azure_openai" and _validate_azure_credentials(
        settings
    ):
        logger.info("Using Azure OpenAI extraction model: %s", model_name)
        return _create_azure_model(settings, model_name, http_client)

    if not settings.GEMINI_API_KEY:
        raise ValueError(
            "No valid LLM provider configured. Either set Azure OpenAI "
            "credentials (AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY) "
            "or Gemini credentials (GEMINI_API_KEY)."
        )

    logger.info("Using Gemini extraction model: %s", model_name)
    return _create_gemini_model(settings, model_name, http_client)
