"""
Query path: read the index, embed the query once, rank.

The query embedding is a single call with no retry.  Every failure (index
unreadable, embedding failed, dimension mismatch) propagates to the caller;
an internal failure never turns into an empty result list.

Reading the index and scoring it are blocking (file I/O, numpy), so both
run in a worker thread via ``asyncio.to_thread``.  ``load_index`` and
``rank_index`` are the steps shared by ``search_index`` and ``POST /search``.
"""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from core.config import DEFAULT_TOP_K
from core.embeddings.base import QueryEmbedder
from core.similarity import rank_chunks
from core.types import EmbeddedChunk, ScoredChunk
from ingestion.index_store import read_index

logger = logging.getLogger(__name__)


async def load_index(index_path: str | Path) -> list[EmbeddedChunk]:
    """Read the index off the event loop.  Raises ``IndexStoreError``."""
    return await asyncio.to_thread(read_index, index_path)


async def rank_index(
    query_embedding: Sequence[float],
    index: Sequence[EmbeddedChunk],
    top_k: int,
) -> list[ScoredChunk]:
    """Score every chunk off the event loop.  Raises ``DimensionMismatchError``."""
    return await asyncio.to_thread(rank_chunks, query_embedding, index, top_k)


async def search_index(
    query: str,
    index_path: str | Path,
    embedder: QueryEmbedder,
    top_k: int = DEFAULT_TOP_K,
) -> list[ScoredChunk]:
    """
    Return the *top_k* indexed chunks most similar to *query*.

    The index is read before the query is embedded, so a missing index
    fails without spending an API call.

    Raises:
        ValueError: If *query* is blank or *top_k* < 1.
        IndexStoreError: If the index cannot be read or parsed.
        EmbeddingError: If the query embedding fails.
        DimensionMismatchError: If the query and stored vectors differ in length.
    """
    if not query.strip():
        raise ValueError("query must be a non-empty string")
    if top_k < 1:
        raise ValueError(f"top_k must be >= 1, got {top_k}")

    index = await load_index(index_path)

    try:
        query_embedding = await embedder.embed_query(query)
    except Exception as exc:
        logger.error("Error embedding query: %s", exc)
        raise

    matches = await rank_index(query_embedding, index, top_k)
    logger.info("Scored %d chunks, returning top %d", len(index), len(matches))
    return matches
