"""
Answer a question about the indexed code.

Pipeline:
    1. Search the index (read, embed the question once, rank)
    2. Build the system + user prompt from the top matches
    3. Generate the answer with the chat model

The generation call is blocking (OpenAI SDK), so it runs in a worker
thread.  Every failure propagates; there is no degraded answer.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from core.config import DEFAULT_TOP_K
from core.embeddings.base import QueryEmbedder
from core.generation.base import GenerationProvider, GenerationRequest
from core.prompts import build_prompt
from core.types import ScoredChunk
from ingestion.search import search_index

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Answer:
    """A generated answer together with the code it was grounded on."""

    query: str
    content: str
    model: str
    matches: tuple[ScoredChunk, ...]
    usage_input_tokens: int = 0
    usage_output_tokens: int = 0


async def answer_question(
    query: str,
    index_path: str | Path,
    embedder: QueryEmbedder,
    generator: GenerationProvider,
    top_k: int = DEFAULT_TOP_K,
) -> Answer:
    """
    Retrieve the *top_k* best matches for *query* and ask the model about them.

    Raises:
        ValueError: If *query* is blank or *top_k* < 1.
        IndexStoreError: If the index cannot be read or parsed.
        EmbeddingError: If the query embedding fails.
        DimensionMismatchError: If the query and stored vectors differ in length.
        RuntimeError: If answer generation fails.
    """
    matches = await search_index(query, index_path, embedder, top_k=top_k)
    logger.info("Found %d relevant chunks", len(matches))

    request = GenerationRequest(messages=build_prompt(query, matches))
    try:
        response = await asyncio.to_thread(generator.generate, request)
    except RuntimeError as exc:
        logger.error("Answer generation failed: %s", exc)
        raise

    return Answer(
        query=query,
        content=response.content,
        model=response.model,
        matches=tuple(matches),
        usage_input_tokens=response.usage_input_tokens,
        usage_output_tokens=response.usage_output_tokens,
    )
