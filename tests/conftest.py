"""Shared test fixtures for pytest.

ENVIRONMENT is pinned to ``test`` before the app is imported so settings load
without an env file and no real upstream or model credentials are needed.
"""

import os
from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient


os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("RESULT_CACHE_BACKEND", "memory")

from dependencies.extraction import (  # noqa: E402
    get_metadata_source,
    get_orchestrator,
    get_result_cache,
    get_transcript_source,
)
from main import app  # noqa: E402
from services.extraction.cache import InMemoryResultCache  # noqa: E402
from services.extraction.orchestrator import ExtractionOrchestrator  # noqa: E402
from tests.fixtures.extraction_fixtures import (  # noqa: E402
    FakeMetadataSource,
    FakeStreamingBackend,
    FakeTranscriptSource,
)


pytest_plugins = ("tests.fixtures.extraction_fixtures",)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client


class ExtractionStack:
    """Collaborators wired into the app for one test."""

    def __init__(self) -> None:
        self.transcripts = FakeTranscriptSource()
        self.metadata = FakeMetadataSource()
        self.cache = InMemoryResultCache()
        self.backend = FakeStreamingBackend()

    def orchestrator(self) -> ExtractionOrchestrator:
        return ExtractionOrchestrator(
            self.transcripts, self.metadata, self.cache, self.backend
        )


@pytest.fixture
def stack() -> ExtractionStack:
    return ExtractionStack()


@pytest_asyncio.fixture
async def async_client(stack: ExtractionStack) -> AsyncGenerator[AsyncClient, None]:
    """Async client whose extraction dependencies are backed by in-memory fakes.

    Tests mutate ``stack`` before making requests; the orchestrator is built
    per request so those changes take effect.
    """
    app.dependency_overrides[get_orchestrator] = stack.orchestrator
    app.dependency_overrides[get_result_cache] = lambda: stack.cache
    app.dependency_overrides[get_transcript_source] = lambda: stack.transcripts
    app.dependency_overrides[get_metadata_source] = lambda: stack.metadata
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
