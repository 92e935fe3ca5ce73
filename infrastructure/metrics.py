"""Prometheus metrics for the embedding pipeline and the search and ask surfaces.

Metrics:
    embedding_jobs_total         Counter of batch jobs by terminal outcome
                                 (ok/failed/invalid/build_failed)
    embedding_retries_total      Retries issued against the embedding API
    query_latency_seconds        Histogram of end-to-end query latency
    search_requests_total        Counter of /search requests by status
    ask_requests_total           Counter of /ask requests by status

Usage::

    from infrastructure.metrics import record_job_outcome, LatencyTimer

    with LatencyTimer() as t:
        results = await search_index(...)
    record_query(status="success", latency_seconds=t.elapsed)
"""

from __future__ import annotations

import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

_REGISTRY = CollectorRegistry()

embedding_jobs_total = Counter(
    "repoqa_embedding_jobs_total",
    "Batch embedding jobs by terminal outcome",
    ["outcome"],
    registry=_REGISTRY,
)

embedding_retries_total = Counter(
    "repoqa_embedding_retries_total",
    "Retries issued against the embedding API",
    registry=_REGISTRY,
)

query_latency_seconds = Histogram(
    "repoqa_query_latency_seconds",
    "End-to-end query latency in seconds (embed + rank)",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
    registry=_REGISTRY,
)

search_requests_total = Counter(
    "repoqa_search_requests_total",
    "Search requests by status",
    ["status"],
    registry=_REGISTRY,
)

ask_requests_total = Counter(
    "repoqa_ask_requests_total",
    "Ask requests by status",
    ["status"],
    registry=_REGISTRY,
)


def record_job_outcome(outcome: str) -> None:
    """Count one finished batch job.

    Args:
        outcome: One of "ok", "failed", "invalid", "build_failed".
    """
    embedding_jobs_total.labels(outcome=outcome).inc()


def record_retry() -> None:
    """Increment the embedding retry counter."""
    embedding_retries_total.inc()


def record_query(*, status: str, latency_seconds: float) -> None:
    """Record a completed search request.

    Args:
        status: One of "success", "embedding_error", "index_error", "error".
        latency_seconds: End-to-end wall-clock time in seconds.
    """
    search_requests_total.labels(status=status).inc()
    query_latency_seconds.observe(latency_seconds)


def record_ask(*, status: str) -> None:
    """Count a completed ask request.

    Args:
        status: One of "success", "embedding_error", "index_error",
            "generation_error", "error".
    """
    ask_requests_total.labels(status=status).inc()


def get_metrics_response() -> tuple[bytes, str]:
    """Generate Prometheus text exposition format.

    Returns:
        Tuple of (body_bytes, content_type_string).
    """
    return generate_latest(_REGISTRY), CONTENT_TYPE_LATEST


class LatencyTimer:
    """Context manager for measuring latency.

    Usage::

        with LatencyTimer() as t:
            result = rank_chunks(query, chunks, top_k=3)
        print(t.elapsed)
    """

    def __init__(self) -> None:
        """Initialize timer."""
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> LatencyTimer:
        """Start timing."""
        self._start = time.perf_counter()
        return self

    def __exit__(self, *_: object) -> None:
        """Stop timing and record elapsed."""
        self.elapsed = time.perf_counter() - self._start
