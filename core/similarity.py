"""
Exhaustive cosine-similarity ranking over an in-memory index.

Every stored vector is scored against the query (O(N*D)); there is no
approximate index.

Degenerate input policy: if either vector has zero norm, the score is 0.0.
Vectors of different lengths are an error, never a zero score.
"""

from collections.abc import Sequence

import numpy as np

from core.errors import DimensionMismatchError
from core.types import EmbeddedChunk, ScoredChunk


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors.

    Returns:
        Score in [-1, 1].  0.0 if either vector has zero norm.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def score_chunks(query: Sequence[float], chunks: Sequence[EmbeddedChunk]) -> list[float]:
    """
    Score every chunk against *query*, preserving input order.

    Raises:
        DimensionMismatchError: If any stored vector's length differs from
            the query's.
    """
    if not chunks:
        return []

    dim = len(query)
    for chunk in chunks:
        if len(chunk.embedding) != dim:
            raise DimensionMismatchError(dim, len(chunk.embedding))

    q = np.asarray(query, dtype=np.float64)
    matrix = np.asarray([chunk.embedding for chunk in chunks], dtype=np.float64)

    dots = matrix @ q
    denoms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    # Zero-norm rows (or a zero query) score exactly 0.0
    safe = np.where(denoms == 0, 1.0, denoms)
    scores = np.where(denoms == 0, 0.0, np.clip(dots / safe, -1.0, 1.0))
    return [float(s) for s in scores]


def rank_chunks(
    query: Sequence[float],
    chunks: Sequence[EmbeddedChunk],
    top_k: int,
) -> list[ScoredChunk]:
    """
    Return the *top_k* chunks most similar to *query*.

    Results are ordered by score descending.  Equal scores keep the order
    the chunks had in the index.  When fewer than *top_k* chunks are stored,
    all of them are returned.

    Raises:
        ValueError: If *top_k* < 1.
        DimensionMismatchError: If a stored vector's length differs from
            the query's.
    """
    if top_k < 1:
        raise ValueError(f"top_k must be >= 1, got {top_k}")

    scores = score_chunks(query, chunks)
    scored = [
        ScoredChunk(id=chunk.id, file=chunk.file, code=chunk.code, score=score)
        for chunk, score in zip(chunks, scores, strict=True)
    ]
    # sorted() is stable with reverse=True, so ties keep index order
    ranked = sorted(scored, key=lambda s: s.score, reverse=True)
    return ranked[:top_k]
