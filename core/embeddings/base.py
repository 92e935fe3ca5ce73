"""
Query embedder protocol for the search path.

Defines the contract the search service depends on.  This module is
pure: no I/O, no network calls.  The concrete implementation
(``ingestion.embeddings.EmbeddingClient``) lives outside core/.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class QueryEmbedder(Protocol):
    """
    Protocol for anything that can embed a single query string.

    Implementations make one attempt and fail immediately; the search
    path never retries.
    """

    async def embed_query(self, text: str) -> list[float]:
        """
        Embed *text* into a dense vector.

        Raises:
            EmbeddingError: If the vector could not be produced.
        """
        ...
