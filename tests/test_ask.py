"""
Tests for the ask path: ingestion/ask.py and ``POST /ask``.

Index fixture (see conftest): A = [1,0,0], B = [1,1,0], C = [0,1,0];
the fake embedder's query is [1,0,0], so A and B are the top two.

What we test:
    1. answer_question sends the prompt built from the top matches
    2. Search failures stop before generation; generation failures propagate
    3. The HTTP route maps failures to 502 / 503 / 422
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGenerator, FakeQueryEmbedder
from core.errors import EmbeddingTransportError, IndexReadError
from core.prompts import SYSTEM_PROMPT
from ingestion.ask import answer_question

# ---------------------------------------------------------------------------
# answer_question
# ---------------------------------------------------------------------------


class TestAnswerQuestion:
    @pytest.mark.asyncio
    async def test_prompt_built_from_top_matches(self, index_file: Path) -> None:
        generator = FakeGenerator("A is the entry point.")
        answer = await answer_question(
            "what is A?", index_file, FakeQueryEmbedder(), generator, top_k=2
        )

        assert answer.content == "A is the entry point."
        assert answer.model == "fake-chat"
        assert [m.id for m in answer.matches] == ["A", "B"]
        assert (answer.usage_input_tokens, answer.usage_output_tokens) == (12, 4)

        (request,) = generator.requests
        system, user = request.messages
        assert system.content == SYSTEM_PROMPT
        assert user.content.startswith("Question: what is A?\n\nRelevant Code:\n\n")
        assert user.content.count("\n---\nFile: ") == 2
        assert user.content.index("File: a.go") < user.content.index("File: b.py")
        assert "File: c.ts" not in user.content

    @pytest.mark.asyncio
    async def test_default_top_k_is_three(self, index_file: Path) -> None:
        generator = FakeGenerator()
        answer = await answer_question("q", index_file, FakeQueryEmbedder(), generator)
        assert len(answer.matches) == 3

    @pytest.mark.asyncio
    async def test_generation_failure_propagates(self, index_file: Path) -> None:
        generator = FakeGenerator(error=RuntimeError("OpenAI generation failed: 500"))
        with pytest.raises(RuntimeError, match="OpenAI generation failed"):
            await answer_question("q", index_file, FakeQueryEmbedder(), generator)
        assert len(generator.requests) == 1

    @pytest.mark.asyncio
    async def test_missing_index_skips_generation(self, tmp_path: Path) -> None:
        generator = FakeGenerator()
        with pytest.raises(IndexReadError):
            await answer_question("q", tmp_path / "absent.json", FakeQueryEmbedder(), generator)
        assert generator.requests == []

    @pytest.mark.asyncio
    async def test_embedding_failure_skips_generation(self, index_file: Path) -> None:
        generator = FakeGenerator()
        embedder = FakeQueryEmbedder(error=EmbeddingTransportError("boom", status_code=500))
        with pytest.raises(EmbeddingTransportError):
            await answer_question("q", index_file, embedder, generator)
        assert generator.requests == []


# ---------------------------------------------------------------------------
# POST /ask
# ---------------------------------------------------------------------------


class TestAskRoute:
    def test_success(self, api_client: TestClient, fake_generator: FakeGenerator) -> None:
        resp = api_client.post("/ask", json={"query": "what is A?", "top_k": 2})

        assert resp.status_code == 200
        data = resp.json()
        assert data["query"] == "what is A?"
        assert data["answer"] == "It ranks chunks."
        assert [s["id"] for s in data["sources"]] == ["A", "B"]
        assert data["usage"]["model"] == "fake-chat"
        assert data["usage"]["input_tokens"] == 12
        assert resp.headers["X-Request-Id"] == data["usage"]["request_id"]
        assert len(fake_generator.requests) == 1

    def test_generation_failure_is_502(
        self, api_client: TestClient, fake_generator: FakeGenerator
    ) -> None:
        fake_generator.error = RuntimeError("OpenAI generation failed: timeout")
        resp = api_client.post("/ask", json={"query": "q"})
        assert resp.status_code == 502
        assert "Failed to generate answer" in resp.json()["detail"]

    def test_embedding_failure_is_502(
        self,
        api_client: TestClient,
        fake_embedder: FakeQueryEmbedder,
        fake_generator: FakeGenerator,
    ) -> None:
        fake_embedder.error = EmbeddingTransportError("API error 500", status_code=500)
        resp = api_client.post("/ask", json={"query": "q"})
        assert resp.status_code == 502
        assert "query embedding" in resp.json()["detail"]
        assert fake_generator.requests == []

    def test_missing_index_is_503(self, api_client: TestClient, tmp_path: Path) -> None:
        from api.deps import get_index_path
        from api.main import app

        app.dependency_overrides[get_index_path] = lambda: str(tmp_path / "absent.json")
        resp = api_client.post("/ask", json={"query": "q"})
        assert resp.status_code == 503

    @pytest.mark.parametrize("body", [{"query": ""}, {"query": "  "}, {"query": "q", "top_k": 0}])
    def test_invalid_request_is_422(
        self, api_client: TestClient, fake_generator: FakeGenerator, body: dict
    ) -> None:
        resp = api_client.post("/ask", json=body)
        assert resp.status_code == 422
        assert fake_generator.requests == []
