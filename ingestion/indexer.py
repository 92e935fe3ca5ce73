"""
Repository indexer: walk a source tree and write the chunk file.

Produces the newline-delimited JSON that ``ingestion.loaders.load_chunks``
reads, one declaration per line (see ``core.chunking``).

Pipeline:
    1. Walk *root* in sorted order, pruning vendored, build and test
       directories.
    2. Skip test files, generated files and non-code files by path.
    3. Chunk every ``.go`` / ``.ts`` / ``.js`` / ``.py`` file.
    4. Drop chunks whose code is blank.
    5. Write the surviving chunks, one JSON object per line.

A file that cannot be read or parsed is logged and skipped; it never
aborts the run.
"""

import json
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from core.chunking import chunk_source, detect_language

logger = logging.getLogger(__name__)

SKIPPED_DIRS: frozenset[str] = frozenset(
    {".git", "node_modules", "dist", "coverage", "test", "__tests__"}
)
"""Directory names never descended into."""

_SKIPPED_FRAGMENTS = (
    "__tests__",
    ".test.",
    ".spec.",
    "/.git/",
    "/node_modules/",
    "/dist/",
    "/coverage/",
)
_SKIPPED_SUFFIXES = (".md", ".json", ".lock", ".snap")
_SKIPPED_NAME_SUFFIXES = (".d.ts", ".config.js")


@dataclass(frozen=True)
class IndexSummary:
    """Counts reported at the end of an indexing run.

    Attributes:
        files_indexed: Files that were chunked (possibly into zero chunks).
        files_skipped: Files rejected by ``should_skip``.
        files_failed: Files that could not be read or parsed.
        chunks_written: Lines written to the chunk file.
        empty_chunks: Chunks dropped because their code was blank.
    """

    files_indexed: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    chunks_written: int = 0
    empty_chunks: int = 0


def should_skip(file_path: str | Path) -> bool:
    """
    Return True for files that are never indexed.

    Test files (``__tests__``, ``.test.``, ``.spec.``), anything under
    ``.git``, ``node_modules``, ``dist`` or ``coverage``, documentation and
    data files (``.md``, ``.json``, ``.lock``, ``.snap``), type declaration
    files (``.d.ts``) and ``*.config.js`` files.
    """
    path = Path(file_path).as_posix()
    name = Path(file_path).name.lower()
    return (
        any(fragment in path for fragment in _SKIPPED_FRAGMENTS)
        or path.endswith(_SKIPPED_SUFFIXES)
        or name.endswith(_SKIPPED_NAME_SUFFIXES)
    )


def should_skip_dir(dir_path: str | Path) -> bool:
    """Return True if the walk must not descend into *dir_path*."""
    return Path(dir_path).name in SKIPPED_DIRS


def iter_files(root: str | Path) -> Iterator[Path]:
    """Yield every file under *root* in sorted order, pruning skipped directories."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not should_skip_dir(os.path.join(dirpath, d)))
        for filename in sorted(filenames):
            yield Path(dirpath) / filename


def index_repository(root: str | Path, out_path: str | Path) -> IndexSummary:
    """
    Chunk every supported source file under *root* into *out_path*.

    The parent directory of *out_path* is created if missing, and any
    existing chunk file is replaced.

    Args:
        root: Directory to index.
        out_path: Chunk file to write.

    Returns:
        Counts of indexed, skipped and failed files and written chunks.

    Raises:
        FileNotFoundError: If *root* does not exist.
        NotADirectoryError: If *root* is not a directory.
        OSError: If *out_path* cannot be written.
    """
    root_path = Path(root)
    if not root_path.exists():
        raise FileNotFoundError(f"Path to index does not exist: {root_path}")
    if not root_path.is_dir():
        raise NotADirectoryError(f"Path to index is not a directory: {root_path}")

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Indexing %s -> %s", root_path, out)

    indexed = skipped = failed = written = empty = 0
    with out.open("w", encoding="utf-8") as fh:
        for path in iter_files(root_path):
            # Rules apply below root only, whatever directory root itself sits in.
            if should_skip("/" + path.relative_to(root_path).as_posix()):
                logger.debug("Skipping %s", path)
                skipped += 1
                continue
            if detect_language(str(path)) is None:
                continue

            try:
                chunks = chunk_source(path.read_text(encoding="utf-8"), str(path))
            except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
                logger.error("Error processing %s: %s", path, exc)
                failed += 1
                continue

            indexed += 1
            if not chunks:
                logger.info("No chunkable declarations found in %s", path)
            for chunk in chunks:
                length = len(chunk.code.strip())
                if length == 0:
                    logger.warning("Skipped empty chunk %s from %s", chunk.id, chunk.file)
                    empty += 1
                    continue
                logger.debug("Indexing %s - %s - %d chars", chunk.file, chunk.id, length)
                fh.write(json.dumps(chunk.to_dict()) + "\n")
                written += 1

    summary = IndexSummary(
        files_indexed=indexed,
        files_skipped=skipped,
        files_failed=failed,
        chunks_written=written,
        empty_chunks=empty,
    )
    logger.info(
        "Indexed %d files (%d skipped, %d failed): %d chunks written, %d empty dropped",
        indexed,
        skipped,
        failed,
        written,
        empty,
    )
    return summary
