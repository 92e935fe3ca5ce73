"""
Flat JSON index persistence.

The index is one pretty-printed JSON array of embedded chunks.  Every write
replaces the whole file: the new content goes to a sibling temporary file
which is then renamed over the destination, so a reader never sees a
half-written index.  Single-writer use only.
"""

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path

from core.errors import IndexParseError, IndexReadError, IndexWriteError
from core.types import EmbeddedChunk
from core.validation import embedding_rejection_reason

logger = logging.getLogger(__name__)


def write_index(chunks: Sequence[EmbeddedChunk], file_path: str | Path) -> None:
    """
    Serialize *chunks* to *file_path*, replacing any existing index.

    Raises:
        IndexWriteError: If the chunks cannot be serialized or the file
            cannot be written.
    """
    path = Path(file_path)
    try:
        serialized = json.dumps([c.to_dict() for c in chunks], indent=2, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise IndexWriteError(f"failed to serialize chunks: {exc}") from exc

    tmp_name: str | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(serialized)
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise IndexWriteError(f"failed to write index to {path}: {exc}") from exc

    logger.info("Wrote %d embedded chunks to %s", len(chunks), path)


def read_index(file_path: str | Path) -> list[EmbeddedChunk]:
    """
    Load the index stored at *file_path*.

    Raises:
        IndexReadError: If the file is missing or unreadable.
        IndexParseError: If the content is not a JSON array of
            well-formed embedded chunk records, if a vector holds a
            non-finite value, or if records disagree on dimensionality.
    """
    path = Path(file_path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise IndexReadError(f"failed to open index {path}: {exc}") from exc

    try:
        records = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise IndexParseError(f"index {path} is not valid JSON: {exc}") from exc

    if not isinstance(records, list):
        raise IndexParseError(f"index {path} must contain a JSON array")

    chunks: list[EmbeddedChunk] = []
    for position, record in enumerate(records):
        if not isinstance(record, dict):
            raise IndexParseError(f"index {path} record {position} is not an object")
        try:
            chunk = EmbeddedChunk.from_dict(record)
        except (KeyError, TypeError, ValueError) as exc:
            raise IndexParseError(f"index {path} record {position} is malformed: {exc}") from exc

        # The first record fixes the dimension for the whole index.
        dimension = len(chunks[0].embedding) if chunks else len(chunk.embedding)
        reason = embedding_rejection_reason(chunk.embedding, dimension)
        if reason is not None:
            raise IndexParseError(f"index {path} record {position} is unusable: {reason}")
        chunks.append(chunk)

    logger.debug("Loaded %d embedded chunks from %s", len(chunks), path)
    return chunks
