"""
Shared type definitions for the embedding and retrieval system.

This module defines the immutable records that flow between the pure core/
layer and the impure layers (ingestion/, api/), plus the dictionary shapes
they take on the wire and on disk.

Naming conventions:
- Chunk: one unit of source code, as produced by the upstream chunker
- EmbeddedChunk: a Chunk plus its validated embedding vector
- ScoredChunk: a Chunk plus its similarity to a query (never persisted)
- *Dict: dictionary form for JSON serialization
"""

from dataclasses import dataclass
from typing import Any, TypedDict


class ChunkDict(TypedDict):
    """One line of the newline-delimited chunk file."""

    id: str
    file: str
    code: str


class EmbeddedChunkDict(TypedDict):
    """One record of the persisted index."""

    id: str
    file: str
    code: str
    embedding: list[float]


class ScoredChunkDict(TypedDict):
    """One entry of a machine-readable query result."""

    id: str
    file: str
    code: str
    score: float


@dataclass(frozen=True)
class Chunk:
    """
    Immutable unit of source code to be embedded.

    Attributes:
        id: Identifier assigned upstream.  Uniqueness is assumed, not enforced.
        file: Path of the source file the code was taken from.
        code: The source text that gets embedded.
    """

    id: str
    file: str
    code: str

    def to_dict(self) -> ChunkDict:
        return {"id": self.id, "file": self.file, "code": self.code}


@dataclass(frozen=True)
class EmbeddedChunk:
    """
    A chunk together with its embedding vector.

    Only created after a successful remote call.  The vector is stored as a
    tuple so the record stays hashable and cannot be mutated after creation.
    """

    id: str
    file: str
    code: str
    embedding: tuple[float, ...]

    @classmethod
    def from_chunk(
        cls, chunk: Chunk, embedding: list[float] | tuple[float, ...]
    ) -> "EmbeddedChunk":
        """Attach *embedding* to *chunk*."""
        return cls(id=chunk.id, file=chunk.file, code=chunk.code, embedding=tuple(embedding))

    def to_dict(self) -> EmbeddedChunkDict:
        return {
            "id": self.id,
            "file": self.file,
            "code": self.code,
            "embedding": list(self.embedding),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EmbeddedChunk":
        """
        Build an EmbeddedChunk from its serialized form.

        Raises:
            KeyError: If a required field is missing.
            TypeError: If a field has the wrong type.  Embedding values must
                be JSON numbers; strings and booleans are rejected.
        """
        embedding = data["embedding"]
        if not isinstance(embedding, list):
            raise TypeError(f"embedding must be a list, got {type(embedding).__name__}")
        for value in embedding:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"embedding values must be numbers, got {value!r}")
        for name in ("id", "file", "code"):
            if not isinstance(data[name], str):
                raise TypeError(f"{name} must be a string, got {type(data[name]).__name__}")
        return cls(
            id=data["id"],
            file=data["file"],
            code=data["code"],
            embedding=tuple(float(v) for v in embedding),
        )


@dataclass(frozen=True)
class ScoredChunk:
    """A stored chunk with its cosine similarity to a query."""

    id: str
    file: str
    code: str
    score: float

    def to_dict(self) -> ScoredChunkDict:
        return {"id": self.id, "file": self.file, "code": self.code, "score": self.score}
