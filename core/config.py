"""
Configuration dataclasses for the embedding and search pipeline.

These immutable config objects are built once at process start and passed
by reference into the embedding client, the batch scheduler and the search
service.  Nothing in the pipeline reads the environment on its own; see
``ingestion.settings`` for the code that turns environment variables into
these objects.
"""

from dataclasses import dataclass, field

EMBEDDINGS_ENDPOINT = "https://api.openai.com/v1/embeddings"
"""Remote endpoint every embedding request is sent to."""

DEFAULT_EMBEDDING_MODEL = "text-embedding-ada-002"

# text-embedding-ada-002 produces 1536-dim vectors
EMBEDDING_DIM = 1536

DEFAULT_TOP_K = 3

DEFAULT_GENERATION_MODEL = "gpt-4"
"""Chat model that answers questions about the retrieved code."""


@dataclass(frozen=True)
class EmbeddingConfig:
    """
    Configuration for the embedding client and batch scheduler.

    Attributes:
        api_key: Bearer credential for the embedding endpoint.  Excluded
            from ``repr`` so it never ends up in logs.
        endpoint: URL of the embeddings API.
        model: Model identifier sent with every request.
        dimension: Expected vector length.  Embeddings of any other
            length are rejected by the validator.
        max_concurrency: Maximum number of in-flight network calls
            during a batch run.
        max_attempts: Total attempts per chunk (first try included).
        backoff_step_seconds: Linear backoff unit.  After failed attempt
            ``n`` the worker sleeps ``n * backoff_step_seconds``.
        timeout_seconds: Total timeout for one network attempt.

    Example:
        >>> config = EmbeddingConfig(api_key="sk-test", max_concurrency=2)
        >>> config.max_attempts
        3
    """

    api_key: str = field(repr=False)
    endpoint: str = EMBEDDINGS_ENDPOINT
    model: str = DEFAULT_EMBEDDING_MODEL
    dimension: int = EMBEDDING_DIM
    max_concurrency: int = 5
    max_attempts: int = 3
    backoff_step_seconds: float = 0.5
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.api_key:
            raise ValueError("api_key must be a non-empty string")
        if not self.model:
            raise ValueError("model must be a non-empty string")
        if self.dimension <= 0:
            raise ValueError(f"dimension must be positive, got {self.dimension}")
        if self.max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be positive, got {self.max_concurrency}")
        if self.max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {self.max_attempts}")
        if self.backoff_step_seconds < 0:
            raise ValueError(
                f"backoff_step_seconds must be non-negative, got {self.backoff_step_seconds}"
            )
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")


@dataclass(frozen=True)
class SearchConfig:
    """
    File locations and query defaults for the CLI and HTTP API.

    Attributes:
        index_path: JSON index written by ``repoqa embed``.
        chunks_path: Newline-delimited JSON chunk file read by ``repoqa embed``.
        default_top_k: Result count when the caller does not ask for one.
    """

    index_path: str = "data/.index.json"
    chunks_path: str = "data/chunked.jsonl"
    default_top_k: int = DEFAULT_TOP_K

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.default_top_k < 1:
            raise ValueError(f"default_top_k must be >= 1, got {self.default_top_k}")


DEFAULT_SEARCH_CONFIG = SearchConfig()
"""Default layout: ``data/chunked.jsonl`` in, ``data/.index.json`` out, top 3."""
