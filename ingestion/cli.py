"""
Command-line entry point: index a repository, embed its chunks, query or ask.

Usage::

    repoqa index path/to/repo --chunks data/chunked.jsonl
    repoqa embed --chunks data/chunked.jsonl --index data/.index.json
    repoqa query "where is the retry loop?" --top 5
    repoqa query "cosine similarity" --json
    repoqa ask "what does the parser do?"

Also runnable as ``python -m ingestion.cli``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import pathlib
import sys
import time
from collections.abc import Sequence

from core.config import EmbeddingConfig, SearchConfig
from core.errors import EmbeddingError, MissingCredentialError
from core.generation.base import GenerationProvider
from core.types import ScoredChunk
from ingestion.ask import Answer, answer_question
from ingestion.embeddings import EmbeddingClient
from ingestion.generation import create_generation_provider
from ingestion.index_store import write_index
from ingestion.indexer import IndexSummary, index_repository
from ingestion.loaders import load_chunks
from ingestion.scheduler import BatchResult, embed_chunks
from ingestion.search import search_index
from ingestion.settings import load_config, load_search_config

logger = logging.getLogger(__name__)

# Fence language for the human-readable output, keyed by file extension.
_FENCE_LANGUAGES: dict[str, str] = {
    ".go": "go",
    ".ts": "ts",
    ".js": "js",
    ".py": "python",
}


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
    )


def run_embed(chunks_path: str, index_path: str, config: EmbeddingConfig) -> BatchResult:
    """
    Load chunks, embed them and write the index.

    Per-chunk failures are contained by the scheduler.  Failing to read
    the chunk file or to write the index aborts the run.

    Raises:
        FileNotFoundError: If *chunks_path* does not exist.
        IndexWriteError: If the index cannot be written.
    """
    t_start = time.perf_counter()
    chunks = load_chunks(chunks_path)
    if not chunks:
        logger.warning("No chunks found in %s; writing an empty index", chunks_path)

    result = embed_chunks(chunks, config)
    write_index(result.embedded, index_path)

    elapsed = time.perf_counter() - t_start
    logger.info("Completed in %.3fs", elapsed)
    if elapsed > 0:
        logger.info("%.2f chunks/sec", result.kept / elapsed)
    return result


async def run_query(
    query: str,
    index_path: str,
    top_k: int,
    config: EmbeddingConfig,
) -> list[ScoredChunk]:
    """Embed *query* with a fresh client and rank it against the index."""
    async with EmbeddingClient(config) as client:
        return await search_index(query, index_path, client, top_k=top_k)


def run_index(root: str, chunks_path: str) -> IndexSummary:
    """
    Chunk the repository at *root* into *chunks_path*.

    Raises:
        FileNotFoundError: If *root* does not exist.
        NotADirectoryError: If *root* is not a directory.
    """
    t_start = time.perf_counter()
    summary = index_repository(root, chunks_path)
    logger.info("Indexing completed in %.3fs", time.perf_counter() - t_start)
    return summary


async def run_ask(
    question: str,
    index_path: str,
    top_k: int,
    config: EmbeddingConfig,
    generator: GenerationProvider,
) -> Answer:
    """Retrieve the best matches for *question* and generate an answer from them."""
    async with EmbeddingClient(config) as client:
        return await answer_question(question, index_path, client, generator, top_k=top_k)


def format_matches(matches: Sequence[ScoredChunk]) -> str:
    """Render matches as markdown blocks for a terminal."""
    blocks: list[str] = []
    for i, match in enumerate(matches, start=1):
        language = _FENCE_LANGUAGES.get(pathlib.PurePosixPath(match.file).suffix, "")
        blocks.append(
            f"### Match #{i} - Score: {match.score:.4f}\n"
            f"File: {match.file}\n\n"
            f"```{language}\n{match.code}\n```\n"
        )
    return "\n".join(blocks)


def format_matches_json(matches: Sequence[ScoredChunk]) -> str:
    """Render matches as one compact JSON array for other programs."""
    return json.dumps([m.to_dict() for m in matches])


def _build_parser(search_config: SearchConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repoqa",
        description="Semantic code search via remote embeddings.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    index = subparsers.add_parser("index", help="Chunk a repository into the chunk file.")
    index.add_argument("path", help="Directory to index.")
    index.add_argument(
        "--chunks",
        default=search_config.chunks_path,
        help=f"Newline-delimited JSON chunk file to write (default: {search_config.chunks_path}).",
    )

    embed = subparsers.add_parser("embed", help="Embed a chunk file and write the index.")
    embed.add_argument(
        "--chunks",
        default=search_config.chunks_path,
        help=f"Newline-delimited JSON chunk file (default: {search_config.chunks_path}).",
    )
    embed.add_argument(
        "--index",
        default=search_config.index_path,
        help=f"Index file to write (default: {search_config.index_path}).",
    )

    query = subparsers.add_parser("query", help="Find the chunks most similar to a question.")
    query.add_argument("query", nargs="*", help="Query text.")
    query.add_argument(
        "--top",
        "-t",
        type=int,
        default=search_config.default_top_k,
        help=f"Number of top matching chunks to return (default: {search_config.default_top_k}).",
    )
    query.add_argument(
        "--json",
        action="store_true",
        help="Output results as raw JSON for parsing.",
    )
    query.add_argument(
        "--index",
        default=search_config.index_path,
        help=f"Index file to read (default: {search_config.index_path}).",
    )

    ask = subparsers.add_parser("ask", help="Answer a question from the most similar chunks.")
    ask.add_argument("query", nargs="*", help="Question text.")
    ask.add_argument(
        "--top",
        "-t",
        type=int,
        default=search_config.default_top_k,
        help=f"Number of chunks given to the model (default: {search_config.default_top_k}).",
    )
    ask.add_argument(
        "--index",
        default=search_config.index_path,
        help=f"Index file to read (default: {search_config.index_path}).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Parse CLI arguments and run the requested command.  Returns the exit status."""
    _configure_logging()
    search_config = load_search_config()
    args = _build_parser(search_config).parse_args(argv)

    if args.command == "index":
        try:
            summary = run_index(args.path, args.chunks)
        except OSError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        print(
            f"Wrote {summary.chunks_written} chunks from {summary.files_indexed} files "
            f"({summary.files_skipped} skipped, {summary.files_failed} failed) -> {args.chunks}"
        )
        return 0

    if args.command in ("query", "ask"):
        query_text = " ".join(args.query).strip()
        if not query_text:
            print(
                "Error: query string required.\n"
                f'Usage: repoqa {args.command} "your question" --top 5',
                file=sys.stderr,
            )
            return 1
        if args.top < 1:
            print(f"Error: --top must be >= 1, got {args.top}", file=sys.stderr)
            return 1

    try:
        config = load_config()
        if args.command == "embed":
            result = run_embed(args.chunks, args.index, config)
            print(
                f"Embedded {result.kept} of {result.total} chunks "
                f"({result.failed} failed, {result.invalid} invalid) -> {args.index}"
            )
            return 0

        if args.command == "ask":
            generator = create_generation_provider()
            answer = asyncio.run(run_ask(query_text, args.index, args.top, config, generator))
            print(f"Answer:\n\n{answer.content}")
            return 0

        t_start = time.perf_counter()
        matches = asyncio.run(run_query(query_text, args.index, args.top, config))
        if args.json:
            print(format_matches_json(matches))
        else:
            print(format_matches(matches))
            logger.info("Query completed in %.3fs", time.perf_counter() - t_start)
        return 0
    except MissingCredentialError as exc:
        print(f"Error: {exc}", file=sys.stderr)
    except EmbeddingError as exc:
        print(f"Error: embedding failed: {exc}", file=sys.stderr)
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
    except ValueError as exc:
        print(f"Error: search failed: {exc}", file=sys.stderr)
    except RuntimeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
