"""Infrastructure layer for repoqa.

Modules:
    retry       Linear backoff retry for async embedding calls.
    metrics     Prometheus metrics registry.
"""
