"""
Shared fixtures for the test suite.

Centralizes reusable test infrastructure so individual test files
don't need to repeat fake-transport and override boilerplate.
No test touches the network or a real credential.
"""

import json
from collections.abc import Callable, Iterator
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from api.deps import get_generation_provider, get_index_path, get_query_embedder
from api.main import app
from core.config import EmbeddingConfig
from core.generation.base import GenerationRequest, GenerationResponse
from core.types import Chunk, EmbeddedChunk
from ingestion.index_store import write_index

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FAKE_EMBEDDING: list[float] = [0.1] * 1536
"""Deterministic 1536-dim embedding vector for tests."""

TEST_DIM = 3
"""Small dimensionality used by most tests to keep vectors readable."""


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeQueryEmbedder:
    """Deterministic query embedder: no HTTP calls."""

    def __init__(self, vector: list[float] | None = None, error: Exception | None = None) -> None:
        self.vector = vector if vector is not None else [1.0, 0.0, 0.0]
        self.error = error
        self.calls: list[str] = []

    async def embed_query(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vector)


class FakeGenerator:
    """Deterministic generation provider: records requests, no HTTP calls."""

    def __init__(self, content: str = "It ranks chunks.", error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.requests: list[GenerationRequest] = []

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return GenerationResponse(
            content=self.content, model="fake-chat", usage_input_tokens=12, usage_output_tokens=4
        )


class RecordingSleep:
    """Awaitable stand-in for ``asyncio.sleep`` that records the waits."""

    def __init__(self) -> None:
        self.waits: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_config(**overrides: object) -> EmbeddingConfig:
    """``EmbeddingConfig`` with a fake key and 3-dim vectors by default."""
    defaults: dict[str, object] = {"api_key": "test-key", "dimension": TEST_DIM}
    defaults.update(overrides)
    return EmbeddingConfig(**defaults)  # type: ignore[arg-type]


def make_chunk(chunk_id: str = "c1", code: str | None = None, file: str = "pkg/a.go") -> Chunk:
    return Chunk(id=chunk_id, file=file, code=code if code is not None else f"code of {chunk_id}")


def make_embedded(
    chunk_id: str,
    embedding: list[float],
    file: str = "pkg/a.go",
    code: str | None = None,
) -> EmbeddedChunk:
    return EmbeddedChunk(
        id=chunk_id,
        file=file,
        code=code if code is not None else f"code of {chunk_id}",
        embedding=tuple(embedding),
    )


def embedding_response(vector: list[float], status_code: int = 200) -> httpx.Response:
    """Successful embeddings API response carrying *vector*."""
    return httpx.Response(status_code, json={"data": [{"embedding": vector, "index": 0}]})


def request_input(request: httpx.Request) -> str:
    """The ``input`` field of an embeddings request body."""
    return json.loads(request.content)["input"]


def mock_transport(handler: Callable[[httpx.Request], object]) -> httpx.MockTransport:
    return httpx.MockTransport(handler)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# FastAPI test client fixture
# ---------------------------------------------------------------------------


@pytest.fixture()
def index_file(tmp_path: Path) -> Path:
    """Index with three 3-dim chunks: A along x, B diagonal, C along y."""
    path = tmp_path / ".index.json"
    write_index(
        [
            make_embedded("A", [1.0, 0.0, 0.0], file="a.go"),
            make_embedded("B", [1.0, 1.0, 0.0], file="b.py"),
            make_embedded("C", [0.0, 1.0, 0.0], file="c.ts"),
        ],
        path,
    )
    return path


@pytest.fixture()
def fake_embedder() -> FakeQueryEmbedder:
    return FakeQueryEmbedder([1.0, 0.0, 0.0])


@pytest.fixture()
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def api_client(
    index_file: Path, fake_embedder: FakeQueryEmbedder, fake_generator: FakeGenerator
) -> Iterator[TestClient]:
    """FastAPI ``TestClient`` with the embedder, generator and index path overridden."""
    app.dependency_overrides[get_query_embedder] = lambda: fake_embedder
    app.dependency_overrides[get_generation_provider] = lambda: fake_generator
    app.dependency_overrides[get_index_path] = lambda: str(index_file)

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
