"""
FastAPI dependency providers.

The query embedder and the generation provider are process-wide singletons
so their HTTP connection pools are reused across requests.  Configuration
is read from the environment once, on first use.  The embedder is closed
again by the app lifespan.
"""

from core.config import SearchConfig
from core.embeddings.base import QueryEmbedder
from core.generation.base import GenerationProvider
from ingestion.embeddings import EmbeddingClient
from ingestion.generation import create_generation_provider
from ingestion.settings import load_config, load_search_config

_query_embedder: EmbeddingClient | None = None
_search_config: SearchConfig | None = None
_generation_provider: GenerationProvider | None = None


def get_search_config() -> SearchConfig:
    """Return the cached file-location configuration."""
    global _search_config  # noqa: PLW0603
    if _search_config is None:
        _search_config = load_search_config()
    return _search_config


def get_index_path() -> str:
    """Path of the index file served by ``/search``."""
    return get_search_config().index_path


def get_query_embedder() -> QueryEmbedder:
    """
    Return a cached ``EmbeddingClient`` singleton.

    Created on first call.  Raises ``MissingCredentialError`` if
    ``OPENAI_API_KEY`` is not configured.
    """
    global _query_embedder  # noqa: PLW0603
    if _query_embedder is None:
        _query_embedder = EmbeddingClient(load_config())
    return _query_embedder


async def close_query_embedder() -> None:
    """Close the singleton client, if one was created."""
    global _query_embedder  # noqa: PLW0603
    if _query_embedder is not None:
        await _query_embedder.aclose()
        _query_embedder = None


def get_generation_provider() -> GenerationProvider:
    """
    Return a cached generation provider singleton.

    Created on first call.  Raises ``MissingCredentialError`` if
    ``OPENAI_API_KEY`` is not configured.
    """
    global _generation_provider  # noqa: PLW0603
    if _generation_provider is None:
        _generation_provider = create_generation_provider()
    return _generation_provider
