"""Acceptance checks for embedding vectors, from the remote API or from disk."""

import math
from collections.abc import Sequence

from core.config import EMBEDDING_DIM
from core.types import EmbeddedChunk


def embedding_rejection_reason(
    embedding: Sequence[float], dimension: int = EMBEDDING_DIM
) -> str | None:
    """
    Explain why *embedding* is unusable, or return None if it is fine.

    The length check runs first; a vector of the wrong length is reported
    as such even if it also holds non-finite values.
    """
    if len(embedding) != dimension:
        return f"wrong dimension (length {len(embedding)}, expected {dimension})"
    for position, value in enumerate(embedding):
        if not math.isfinite(value):
            return f"non-finite component {value!r} at position {position}"
    return None


def is_valid_embedding(chunk: EmbeddedChunk, dimension: int = EMBEDDING_DIM) -> bool:
    """
    Return True if *chunk* carries a usable embedding.

    An embedding is usable when it has exactly *dimension* components and
    every component is finite (no NaN, no +/-Infinity).  Pure function.
    """
    return embedding_rejection_reason(chunk.embedding, dimension) is None
