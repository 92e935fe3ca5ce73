"""
Chunk file loader for the embedding pipeline.

Reads the newline-delimited JSON file written by ``ingestion.indexer``.
Each line is one ``{"id", "file", "code"}`` record.
"""

import json
import logging
from pathlib import Path

from core.types import Chunk

logger = logging.getLogger(__name__)


def parse_chunk_line(line: str) -> Chunk | None:
    """
    Parse one NDJSON line into a Chunk.

    Returns:
        The chunk, or ``None`` if the line is malformed or incomplete
        (not a JSON object, non-string ``id``, empty ``file`` or ``code``).
    """
    try:
        record = json.loads(line)
    except json.JSONDecodeError as exc:
        logger.warning("Skipping invalid line: %s", exc)
        return None

    if not isinstance(record, dict):
        logger.warning("Skipping invalid line: expected an object, got %s", type(record).__name__)
        return None

    chunk_id = record.get("id")
    file = record.get("file")
    code = record.get("code")
    if not isinstance(chunk_id, str) or not isinstance(file, str) or not isinstance(code, str):
        logger.warning("Skipping incomplete chunk: id=%r file=%r", chunk_id, file)
        return None
    if not file or not code:
        logger.warning("Skipping incomplete chunk: id=%r file=%r", chunk_id, file)
        return None

    return Chunk(id=chunk_id, file=file, code=code)


def load_chunks(file_path: str | Path) -> list[Chunk]:
    """
    Load every well-formed chunk from an NDJSON file.

    Blank lines are ignored.  Malformed or incomplete lines are logged and
    skipped; they never abort the load.

    Raises:
        FileNotFoundError: If *file_path* does not exist.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Chunk file does not exist: {path}")

    chunks: list[Chunk] = []
    with path.open(encoding="utf-8") as fh:
        for line in fh:
            if not line.strip():
                continue
            chunk = parse_chunk_line(line)
            if chunk is not None:
                chunks.append(chunk)

    logger.info("Parsed %d chunks from %s", len(chunks), path)
    return chunks
