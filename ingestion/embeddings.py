"""
HTTP client for the remote embeddings API.

Satisfies the ``QueryEmbedder`` protocol from core.  Lives in ingestion/
because it performs network I/O (core/ must remain pure).

Two call shapes are offered:

- ``embed_with_retry``: used by the batch scheduler.  Up to
  ``max_attempts`` tries with linear backoff; every non-200 response is
  retried the same way.
- ``embed_query``: used by the search path.  One attempt, no retry.

Every attempt reads the response body to the end and closes the response
before returning, so a failed attempt never holds a pooled connection.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from types import TracebackType

import httpx

from core.config import EmbeddingConfig
from core.errors import (
    EmbeddingDecodeError,
    EmbeddingTransportError,
    EmptyEmbeddingError,
    preview_body,
)
from infrastructure.metrics import record_retry
from infrastructure.retry import Sleep, retry_async

logger = logging.getLogger(__name__)


def parse_embedding_response(body: bytes) -> list[float]:
    """
    Extract ``data[0].embedding`` from a successful response body.

    A missing or empty ``data`` array means the API returned no embedding,
    which is reported separately from a malformed body.

    Raises:
        EmbeddingDecodeError: If the body is not JSON or has the wrong shape.
        EmptyEmbeddingError: If ``data`` holds no elements.
    """
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise EmbeddingDecodeError(f"malformed JSON response: {exc}") from exc

    if not isinstance(payload, dict):
        raise EmbeddingDecodeError(f"expected a JSON object, got {type(payload).__name__}")

    data = payload.get("data", [])
    if not isinstance(data, list):
        raise EmbeddingDecodeError("'data' is not an array")
    if not data:
        raise EmptyEmbeddingError("no embedding returned")

    first = data[0]
    embedding = first.get("embedding") if isinstance(first, dict) else None
    if not isinstance(embedding, list):
        raise EmbeddingDecodeError("'data[0].embedding' is missing or not an array")

    try:
        return [float(v) for v in embedding]
    except (TypeError, ValueError) as exc:
        raise EmbeddingDecodeError(f"non-numeric embedding component: {exc}") from exc


class EmbeddingClient:
    """
    Async client for the embeddings endpoint.

    Owns one ``httpx.AsyncClient`` (and therefore one connection pool)
    shared by every call.  Use as an async context manager, or call
    :meth:`aclose` when done.

    Args:
        config: Endpoint, model, credential and retry settings.
        http_client: Pre-built client to use instead of creating one.
            It is not closed by :meth:`aclose`.
        transport: Transport for the internally created client
            (``httpx.MockTransport`` in tests).
        sleep: Awaitable used for backoff waits.
    """

    def __init__(
        self,
        config: EmbeddingConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=config.timeout_seconds,
            transport=transport,
        )
        self._sleep = sleep

    @property
    def config(self) -> EmbeddingConfig:
        return self._config

    async def __aenter__(self) -> "EmbeddingClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    def build_request(self, text: str) -> httpx.Request:
        """
        Build the POST request that embeds *text*.

        Pure construction: no network I/O happens here, so the batch
        scheduler can call it before taking a concurrency slot.
        """
        payload = json.dumps({"input": text, "model": self._config.model})
        return self._http.build_request(
            "POST",
            self._config.endpoint,
            content=payload.encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._config.api_key}",
                "Content-Type": "application/json",
            },
        )

    async def _exchange(self, request: httpx.Request) -> tuple[int, bytes]:
        """Send *request*, drain the body and release the connection."""
        response = await self._http.send(request, stream=True)
        try:
            body = await response.aread()
        finally:
            await response.aclose()
        return response.status_code, body

    async def _attempt(self, request: httpx.Request) -> bytes:
        """
        One network attempt.  Returns the body of an HTTP 200 response.

        Raises:
            EmbeddingTransportError: On connection failure, timeout, or any
                status other than 200.
        """
        timeout = self._config.timeout_seconds
        try:
            status, body = await asyncio.wait_for(self._exchange(request), timeout=timeout)
        except TimeoutError as exc:
            raise EmbeddingTransportError(f"request timed out after {timeout:.1f}s") from exc
        except httpx.HTTPError as exc:
            raise EmbeddingTransportError(f"request failed: {exc!r}") from exc

        if status != httpx.codes.OK:
            raise EmbeddingTransportError(
                f"embedding API error {status}: {preview_body(body)}",
                status_code=status,
                body=body.decode("utf-8", errors="replace"),
            )
        return body

    async def embed_with_retry(
        self,
        request: httpx.Request,
        *,
        on_retry: Callable[[int, Exception, float], None] | None = None,
    ) -> list[float]:
        """
        Send *request* with retry and return the embedding.

        Only transport failures (including non-200 statuses) are retried.
        Decode failures and empty results are terminal on first sight.

        Args:
            request: Request produced by :meth:`build_request`.
            on_retry: Optional hook called with ``(attempt, exc, wait)``
                before each backoff wait.

        Raises:
            RetryExhaustedError: If every attempt failed at the transport level.
            EmbeddingDecodeError: If the 200 body is malformed.
            EmptyEmbeddingError: If the 200 body has no embeddings.
        """

        def _retried(attempt: int, exc: Exception, wait: float) -> None:
            record_retry()
            if on_retry is not None:
                on_retry(attempt, exc, wait)

        body = await retry_async(
            self._attempt,
            request,
            max_attempts=self._config.max_attempts,
            step_seconds=self._config.backoff_step_seconds,
            exceptions=(EmbeddingTransportError,),
            sleep=self._sleep,
            on_retry=_retried,
        )
        return parse_embedding_response(body)

    async def embed_query(self, text: str) -> list[float]:
        """
        Embed a single query string.  No retry.

        Raises:
            EmbeddingTransportError: On transport failure or non-200 status;
                the message carries the status and a truncated body.
            EmbeddingDecodeError: If the body is malformed.
            EmptyEmbeddingError: If no embedding was returned.
        """
        body = await self._attempt(self.build_request(text))
        try:
            return parse_embedding_response(body)
        except EmptyEmbeddingError as exc:
            raise EmptyEmbeddingError("no embedding returned for query input") from exc
