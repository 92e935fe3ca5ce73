"""
Bounded-concurrency batch embedding.

Every chunk becomes one independent asyncio task.  Request construction
runs outside the concurrency slot; the slot (an ``asyncio.Semaphore``)
covers only the network call and its retries, so at most
``max_concurrency`` calls are ever in flight.

Failures are contained per chunk: a task that cannot build its request,
exhausts its retries, gets an undecodable response, or produces an
invalid vector simply contributes nothing.  The batch never aborts early.
Accepted chunks come back in completion order, not input order.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from core.config import EmbeddingConfig
from core.errors import EmbeddingError
from core.types import Chunk, EmbeddedChunk
from core.validation import embedding_rejection_reason
from infrastructure.metrics import record_job_outcome
from ingestion.embeddings import EmbeddingClient

logger = logging.getLogger(__name__)

OUTCOME_OK = "ok"
OUTCOME_FAILED = "failed"
OUTCOME_INVALID = "invalid"
OUTCOME_BUILD_FAILED = "build_failed"


# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------


@dataclass
class JobOutcome:
    """
    Structured log record for one chunk's trip through the scheduler.

    Every job produces exactly one JobOutcome when it reaches a terminal
    state.

    Attributes:
        chunk_id:   Identifier of the chunk
        outcome:    ok / failed / invalid / build_failed
        attempts:   Network attempts made (0 if the request never got built)
        latency_ms: Wall-clock time from slot acquisition to completion
        error:      Error message when outcome is not ok
        job_id:     Short random ID for grepping a single job's lines
    """

    chunk_id: str
    outcome: str
    attempts: int
    latency_ms: float
    error: str | None = None
    job_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a loggable dict (suitable for structured log sinks)."""
        return {
            "job_id": self.job_id,
            "chunk_id": self.chunk_id,
            "outcome": self.outcome,
            "attempts": self.attempts,
            "latency_ms": round(self.latency_ms, 2),
            "error": self.error,
        }

    def __str__(self) -> str:
        status = "OK" if self.outcome == OUTCOME_OK else f"{self.outcome.upper()}:{self.error}"
        return (
            f"[{self.job_id}] chunk={self.chunk_id} {status} "
            f"attempts={self.attempts} {self.latency_ms:.1f}ms"
        )


def _log_outcome(outcome: JobOutcome) -> None:
    record_job_outcome(outcome.outcome)
    if outcome.outcome == OUTCOME_OK:
        logger.info("%s", outcome)
    else:
        logger.warning("%s", outcome)


# ---------------------------------------------------------------------------
# Batch result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchResult:
    """
    What a batch run produced.

    Attributes:
        embedded: Accepted chunks, in completion order.
        total: Number of input chunks.
        failed: Jobs that produced no embedding (build, transport, decode
            or empty-result failure).
        invalid: Jobs whose embedding was rejected by the validator.
    """

    embedded: list[EmbeddedChunk]
    total: int
    failed: int = 0
    invalid: int = 0

    @property
    def kept(self) -> int:
        return len(self.embedded)


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class EmbeddingScheduler:
    """
    Fans chunks out to the embedding client under a concurrency cap.

    Args:
        client: Client used for every network call.
        config: Supplies ``max_concurrency`` and ``dimension``.  Defaults
            to the client's own configuration.
    """

    def __init__(self, client: EmbeddingClient, config: EmbeddingConfig | None = None) -> None:
        self._client = client
        self._config = config or client.config

    async def _embed_one(
        self,
        chunk: Chunk,
        slots: asyncio.Semaphore,
        sink: list[tuple[EmbeddedChunk, JobOutcome]],
    ) -> None:
        """Run one job to a terminal state.  Successes go to *sink*."""
        try:
            request = self._client.build_request(chunk.code)
        except (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError) as exc:
            _log_outcome(JobOutcome(chunk.id, OUTCOME_BUILD_FAILED, 0, 0.0, error=str(exc)))
            return

        attempts = 1

        def _count_retry(attempt: int, exc: Exception, wait: float) -> None:
            nonlocal attempts
            attempts = attempt + 1

        async with slots:
            t_start = time.perf_counter()
            try:
                vector = await self._client.embed_with_retry(request, on_retry=_count_retry)
            except EmbeddingError as exc:
                latency_ms = (time.perf_counter() - t_start) * 1000
                _log_outcome(
                    JobOutcome(chunk.id, OUTCOME_FAILED, attempts, latency_ms, error=str(exc))
                )
                return
            latency_ms = (time.perf_counter() - t_start) * 1000

        embedded = EmbeddedChunk.from_chunk(chunk, vector)
        sink.append((embedded, JobOutcome(chunk.id, OUTCOME_OK, attempts, latency_ms)))

    async def run(self, chunks: Sequence[Chunk]) -> BatchResult:
        """
        Embed every chunk and return the validated subset.

        Blocks until every job has reached a terminal state.
        """
        slots = asyncio.Semaphore(self._config.max_concurrency)
        sink: list[tuple[EmbeddedChunk, JobOutcome]] = []

        results = await asyncio.gather(
            *(self._embed_one(chunk, slots, sink) for chunk in chunks),
            return_exceptions=True,
        )

        for chunk, result in zip(chunks, results, strict=True):
            if isinstance(result, BaseException):
                # Unexpected error inside a job; contained like any other failure.
                _log_outcome(JobOutcome(chunk.id, OUTCOME_FAILED, 0, 0.0, error=repr(result)))

        embedded: list[EmbeddedChunk] = []
        invalid = 0
        for item, outcome in sink:
            reason = embedding_rejection_reason(item.embedding, self._config.dimension)
            if reason is None:
                embedded.append(item)
                _log_outcome(outcome)
            else:
                invalid += 1
                outcome.outcome = OUTCOME_INVALID
                outcome.error = f"embedding rejected: {reason}"
                _log_outcome(outcome)

        failed = len(chunks) - len(sink)
        logger.info("Validated and retained %d of %d embeddings", len(embedded), len(chunks))
        return BatchResult(embedded=embedded, total=len(chunks), failed=failed, invalid=invalid)


async def embed_chunks_async(
    chunks: Sequence[Chunk],
    config: EmbeddingConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BatchResult:
    """Create a client from *config*, run one batch and close the client."""
    async with EmbeddingClient(config, transport=transport) as client:
        return await EmbeddingScheduler(client, config).run(chunks)


def embed_chunks(chunks: Sequence[Chunk], config: EmbeddingConfig) -> BatchResult:
    """Blocking entry point: embed *chunks* and return the validated subset."""
    return asyncio.run(embed_chunks_async(chunks, config))
