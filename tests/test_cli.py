"""
Tests for ingestion/cli.py — argument handling, exit codes and output.

Configuration loading and the network-bound steps are patched; the chunk
file and index are real files under tmp_path.
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import make_config, make_embedded
from core.config import SearchConfig
from core.errors import EmbeddingTransportError, IndexReadError, MissingCredentialError
from core.types import ScoredChunk
from ingestion.ask import Answer
from ingestion.cli import format_matches, format_matches_json, main
from ingestion.index_store import read_index
from ingestion.scheduler import BatchResult

_MATCHES = [
    ScoredChunk(id="A", file="svc/a.go", code="func A() {}", score=0.91234),
    ScoredChunk(id="B", file="web/b.ts", code="const b = 1", score=0.5),
]


@pytest.fixture()
def search_config(tmp_path: Path) -> SearchConfig:
    return SearchConfig(
        index_path=str(tmp_path / ".index.json"),
        chunks_path=str(tmp_path / "chunked.jsonl"),
    )


@pytest.fixture()
def patched_config(search_config: SearchConfig):
    with (
        patch("ingestion.cli.load_search_config", return_value=search_config),
        patch("ingestion.cli.load_config", return_value=make_config()) as load_config,
    ):
        yield load_config


# ---------------------------------------------------------------------------
# Output formatting
# ---------------------------------------------------------------------------


class TestFormatMatches:
    def test_markdown_blocks(self) -> None:
        out = format_matches(_MATCHES)
        assert "### Match #1 - Score: 0.9123\nFile: svc/a.go\n\n```go\nfunc A() {}\n```\n" in out
        assert "### Match #2 - Score: 0.5000\nFile: web/b.ts\n\n```ts\nconst b = 1\n```\n" in out
        assert out.index("Match #1") < out.index("Match #2")

    def test_unknown_extension_has_plain_fence(self) -> None:
        out = format_matches([ScoredChunk(id="x", file="Makefile", code="all:", score=0.1)])
        assert "```\nall:\n```" in out

    def test_no_matches(self) -> None:
        assert format_matches([]) == ""

    def test_json(self) -> None:
        assert json.loads(format_matches_json(_MATCHES)) == [
            {"id": "A", "file": "svc/a.go", "code": "func A() {}", "score": 0.91234},
            {"id": "B", "file": "web/b.ts", "code": "const b = 1", "score": 0.5},
        ]

    def test_json_is_compact_single_line(self) -> None:
        assert "\n" not in format_matches_json(_MATCHES)


# ---------------------------------------------------------------------------
# query command
# ---------------------------------------------------------------------------


class TestQueryCommand:
    @pytest.mark.usefixtures("patched_config")
    def test_prints_markdown(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("ingestion.cli.run_query", new=AsyncMock(return_value=_MATCHES)) as run_query:
            assert main(["query", "where", "is", "A?"]) == 0

        assert run_query.await_args.args[0] == "where is A?"
        assert run_query.await_args.args[2] == 3
        assert "### Match #1" in capsys.readouterr().out

    @pytest.mark.usefixtures("patched_config")
    def test_json_flag(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("ingestion.cli.run_query", new=AsyncMock(return_value=_MATCHES)):
            assert main(["query", "q", "--json"]) == 0
        out = capsys.readouterr().out
        assert [m["id"] for m in json.loads(out)] == ["A", "B"]

    @pytest.mark.usefixtures("patched_config")
    def test_top_flag(self) -> None:
        with patch("ingestion.cli.run_query", new=AsyncMock(return_value=[])) as run_query:
            assert main(["query", "q", "-t", "7"]) == 0
        assert run_query.await_args.args[2] == 7

    @pytest.mark.parametrize("argv", [["query"], ["query", "  "]])
    def test_empty_query_exits_1_without_credential(
        self, argv: list[str], patched_config: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(argv) == 1
        err = capsys.readouterr().err
        assert "query string required" in err
        assert "Usage:" in err
        patched_config.assert_not_called()

    @pytest.mark.usefixtures("patched_config")
    def test_non_positive_top_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["query", "q", "--top", "0"]) == 1
        assert "--top must be >= 1" in capsys.readouterr().err

    def test_missing_credential_exits_1(
        self, search_config: SearchConfig, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with (
            patch("ingestion.cli.load_search_config", return_value=search_config),
            patch(
                "ingestion.cli.load_config",
                side_effect=MissingCredentialError("OPENAI_API_KEY environment variable not set"),
            ),
        ):
            assert main(["query", "q"]) == 1
        assert "OPENAI_API_KEY" in capsys.readouterr().err

    @pytest.mark.usefixtures("patched_config")
    def test_embedding_failure_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        failure = EmbeddingTransportError("embedding API error 500: oops", status_code=500)
        with patch("ingestion.cli.run_query", new=AsyncMock(side_effect=failure)):
            assert main(["query", "q"]) == 1
        assert "embedding API error 500" in capsys.readouterr().err

    @pytest.mark.usefixtures("patched_config")
    def test_missing_index_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        failure = IndexReadError("failed to open index .index.json")
        with patch("ingestion.cli.run_query", new=AsyncMock(side_effect=failure)):
            assert main(["query", "q"]) == 1
        assert "failed to open index" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# embed command
# ---------------------------------------------------------------------------


class TestEmbedCommand:
    @pytest.mark.usefixtures("patched_config")
    def test_embeds_and_writes_index(
        self, search_config: SearchConfig, capsys: pytest.CaptureFixture[str]
    ) -> None:
        Path(search_config.chunks_path).write_text(
            json.dumps({"id": "A", "file": "a.go", "code": "func A() {}"}) + "\n"
            + json.dumps({"id": "B", "file": "b.go", "code": "func B() {}"}) + "\n",
            encoding="utf-8",
        )
        result = BatchResult(
            embedded=[make_embedded("A", [0.1, 0.2, 0.3], file="a.go", code="func A() {}")],
            total=2,
            failed=1,
        )
        with patch("ingestion.cli.embed_chunks", return_value=result) as embed:
            assert main(["embed"]) == 0

        assert [c.id for c in embed.call_args.args[0]] == ["A", "B"]
        assert [c.id for c in read_index(search_config.index_path)] == ["A"]
        assert "Embedded 1 of 2 chunks (1 failed, 0 invalid)" in capsys.readouterr().out

    @pytest.mark.usefixtures("patched_config")
    def test_explicit_paths(self, tmp_path: Path) -> None:
        chunks = tmp_path / "other.jsonl"
        line = json.dumps({"id": "A", "file": "a.go", "code": "x"})
        chunks.write_text(line + "\n", encoding="utf-8")
        index = tmp_path / "other-index.json"
        result = BatchResult(embedded=[], total=1, failed=1)
        with patch("ingestion.cli.embed_chunks", return_value=result):
            assert main(["embed", "--chunks", str(chunks), "--index", str(index)]) == 0
        assert read_index(index) == []

    @pytest.mark.usefixtures("patched_config")
    def test_missing_chunk_file_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("ingestion.cli.embed_chunks") as embed:
            assert main(["embed"]) == 1
        embed.assert_not_called()
        assert "Chunk file does not exist" in capsys.readouterr().err

    @pytest.mark.usefixtures("patched_config")
    def test_unwritable_index_exits_1(
        self, search_config: SearchConfig, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        Path(search_config.chunks_path).write_text(
            json.dumps({"id": "A", "file": "a.go", "code": "x"}) + "\n", encoding="utf-8"
        )
        result = BatchResult(embedded=[], total=1, failed=1)
        target = tmp_path / "absent" / ".index.json"
        with patch("ingestion.cli.embed_chunks", return_value=result):
            assert main(["embed", "--index", str(target)]) == 1
        assert "failed to write index" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# index command
# ---------------------------------------------------------------------------


class TestIndexCommand:
    def test_writes_chunk_file(
        self, search_config: SearchConfig, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        repo = tmp_path / "repo"
        repo.mkdir()
        (repo / "main.go").write_text("package main\n\nfunc Run() {\n}\n", encoding="utf-8")
        (repo / "README.md").write_text("# repo\n", encoding="utf-8")
        out = tmp_path / "out" / "chunks.jsonl"

        with (
            patch("ingestion.cli.load_search_config", return_value=search_config),
            patch("ingestion.cli.load_config") as load_config,
        ):
            assert main(["index", str(repo), "--chunks", str(out)]) == 0

        load_config.assert_not_called()
        records = [json.loads(line) for line in out.read_text(encoding="utf-8").splitlines()]
        assert [r["symbol"] for r in records] == ["Run"]
        assert "Wrote 1 chunks from 1 files (1 skipped, 0 failed)" in capsys.readouterr().out

    def test_default_chunk_path(self, search_config: SearchConfig, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        repo.mkdir()
        (repo / "app.py").write_text("def main():\n    return 0\n", encoding="utf-8")
        with patch("ingestion.cli.load_search_config", return_value=search_config):
            assert main(["index", str(repo)]) == 0
        assert Path(search_config.chunks_path).exists()

    def test_missing_path_exits_1(
        self, search_config: SearchConfig, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("ingestion.cli.load_search_config", return_value=search_config):
            assert main(["index", str(tmp_path / "absent")]) == 1
        assert "does not exist" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# ask command
# ---------------------------------------------------------------------------


class TestAskCommand:
    @pytest.mark.usefixtures("patched_config")
    def test_prints_answer(self, capsys: pytest.CaptureFixture[str]) -> None:
        answer = Answer(query="what is A?", content="A is a no-op.", model="gpt-4", matches=())
        generator = MagicMock()
        with (
            patch("ingestion.cli.create_generation_provider", return_value=generator),
            patch("ingestion.cli.run_ask", new=AsyncMock(return_value=answer)) as run_ask,
        ):
            assert main(["ask", "what", "is", "A?"]) == 0

        args = run_ask.await_args.args
        assert args[0] == "what is A?"
        assert args[2] == 3
        assert args[4] is generator
        assert capsys.readouterr().out == "Answer:\n\nA is a no-op.\n"

    @pytest.mark.usefixtures("patched_config")
    def test_top_flag(self) -> None:
        answer = Answer(query="q", content="x", model="gpt-4", matches=())
        with (
            patch("ingestion.cli.create_generation_provider"),
            patch("ingestion.cli.run_ask", new=AsyncMock(return_value=answer)) as run_ask,
        ):
            assert main(["ask", "q", "--top", "5"]) == 0
        assert run_ask.await_args.args[2] == 5

    @pytest.mark.parametrize("argv", [["ask"], ["ask", " "]])
    def test_empty_question_exits_1(
        self, argv: list[str], patched_config: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("ingestion.cli.create_generation_provider") as create:
            assert main(argv) == 1
        err = capsys.readouterr().err
        assert "query string required" in err
        assert 'repoqa ask "your question"' in err
        patched_config.assert_not_called()
        create.assert_not_called()

    @pytest.mark.usefixtures("patched_config")
    def test_generation_failure_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        failure = RuntimeError("OpenAI generation failed: rate limited")
        with (
            patch("ingestion.cli.create_generation_provider"),
            patch("ingestion.cli.run_ask", new=AsyncMock(side_effect=failure)),
        ):
            assert main(["ask", "q"]) == 1
        assert "OpenAI generation failed: rate limited" in capsys.readouterr().err

    @pytest.mark.usefixtures("patched_config")
    def test_missing_generation_key_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        missing = MissingCredentialError("OPENAI_API_KEY environment variable not set")
        with (
            patch("ingestion.cli.create_generation_provider", side_effect=missing),
            patch("ingestion.cli.run_ask", new=AsyncMock()) as run_ask,
        ):
            assert main(["ask", "q"]) == 1
        run_ask.assert_not_called()
        assert "OPENAI_API_KEY" in capsys.readouterr().err
