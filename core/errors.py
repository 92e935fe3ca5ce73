"""
Exception hierarchy for the embedding and search pipeline.

Embedding failures share the ``EmbeddingError`` base so a batch worker can
contain them with a single ``except`` clause.  Index storage failures are
``OSError`` subclasses.  There is no validation error: the validator
returns ``False`` instead of raising.
"""

# Response bodies are truncated to this many characters in error messages.
BODY_PREVIEW_CHARS = 200


def preview_body(body: str | bytes) -> str:
    """Return at most ``BODY_PREVIEW_CHARS`` characters of a response body."""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return body[:BODY_PREVIEW_CHARS]


class EmbeddingError(Exception):
    """Base class for every failure on the embedding path."""


class EmbeddingTransportError(EmbeddingError):
    """
    The call did not produce an HTTP 200.

    Covers connection failures and timeouts (``status_code`` is ``None``)
    as well as non-200 responses (``status_code`` set, ``body`` truncated).
    """

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        self.status_code = status_code
        self.body = preview_body(body)
        super().__init__(message)


class RetryExhaustedError(EmbeddingError):
    """Every attempt failed; carries the last observed error and status."""

    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        self.status_code = getattr(last_error, "status_code", None)
        super().__init__(f"failed after {attempts} attempts: {last_error}")


class EmbeddingDecodeError(EmbeddingError):
    """The response body was not the expected JSON shape."""


class EmptyEmbeddingError(EmbeddingError):
    """The response decoded fine but its ``data`` array was empty."""


class DimensionMismatchError(ValueError):
    """Two vectors of different lengths were compared."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"vector dimension mismatch: expected {expected}, got {actual}")


class MissingCredentialError(RuntimeError):
    """The OpenAI API key is not configured."""


class IndexStoreError(OSError):
    """Base class for index file failures."""


class IndexReadError(IndexStoreError):
    """The index file could not be opened or read."""


class IndexParseError(IndexStoreError):
    """The index file is not a well-formed list of embedded chunks."""


class IndexWriteError(IndexStoreError):
    """The index could not be serialized or written."""
