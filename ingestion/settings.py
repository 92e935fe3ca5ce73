"""
Build configuration objects from the process environment.

Called once at process start (CLI entry point, API dependency).  Everything
downstream receives the resulting config objects by reference and never
reads the environment itself.

Environment variables:
    OPENAI_API_KEY           Required for any embedding-dependent operation.
    REPOQA_EMBEDDING_MODEL   Optional model override.
    REPOQA_MAX_CONCURRENCY   Optional concurrency cap override.
    REPOQA_TIMEOUT_SECONDS   Optional per-call timeout override.
    REPOQA_INDEX_PATH        Optional index location.
    REPOQA_CHUNKS_PATH       Optional chunk file location.

A ``.env`` file in the working directory is honored.
"""

import os
from collections.abc import Mapping

from dotenv import load_dotenv

from core.config import (
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_SEARCH_CONFIG,
    EmbeddingConfig,
    SearchConfig,
)
from core.errors import MissingCredentialError


def _environ(env: Mapping[str, str] | None) -> Mapping[str, str]:
    if env is not None:
        return env
    load_dotenv()
    return os.environ


def load_config(env: Mapping[str, str] | None = None) -> EmbeddingConfig:
    """
    Build the embedding configuration.

    Args:
        env: Mapping to read instead of ``os.environ`` (``.env`` is then
            not consulted).

    Raises:
        MissingCredentialError: If ``OPENAI_API_KEY`` is unset or empty.
        ValueError: If a numeric override is malformed or out of range.
    """
    source = _environ(env)
    api_key = source.get("OPENAI_API_KEY", "").strip()
    if not api_key:
        raise MissingCredentialError("OPENAI_API_KEY environment variable not set")

    overrides: dict[str, object] = {}
    if source.get("REPOQA_MAX_CONCURRENCY"):
        overrides["max_concurrency"] = int(source["REPOQA_MAX_CONCURRENCY"])
    if source.get("REPOQA_TIMEOUT_SECONDS"):
        overrides["timeout_seconds"] = float(source["REPOQA_TIMEOUT_SECONDS"])

    return EmbeddingConfig(
        api_key=api_key,
        model=source.get("REPOQA_EMBEDDING_MODEL") or DEFAULT_EMBEDDING_MODEL,
        **overrides,  # type: ignore[arg-type]
    )


def load_search_config(env: Mapping[str, str] | None = None) -> SearchConfig:
    """Build the file-location configuration.  Never requires a credential."""
    source = _environ(env)
    return SearchConfig(
        index_path=source.get("REPOQA_INDEX_PATH") or DEFAULT_SEARCH_CONFIG.index_path,
        chunks_path=source.get("REPOQA_CHUNKS_PATH") or DEFAULT_SEARCH_CONFIG.chunks_path,
    )
