"""
Pydantic schemas for the ``/search`` endpoint.

Defines request validation and response serialization models.
"""

from pydantic import BaseModel, Field, field_validator

from core.config import DEFAULT_TOP_K


class ResponseMeta(BaseModel):
    """Performance timing metadata."""

    embedding_ms: float = Field(..., description="Time to embed the query (milliseconds).")
    search_ms: float = Field(..., description="Time to read the index and rank (milliseconds).")
    total_ms: float = Field(..., description="Total request duration (milliseconds).")
    chunks_scored: int = Field(..., description="Indexed chunks compared against the query.")
    request_id: str = Field(..., description="Unique identifier for this request (UUID4).")


class SearchRequest(BaseModel):
    """Request body for ``POST /search``."""

    query: str = Field(
        ..., max_length=4000, description="The search query text. Must be non-empty."
    )
    top_k: int = Field(
        default=DEFAULT_TOP_K,
        ge=1,
        le=20,
        description="Number of results to return (1-20).",
    )

    @field_validator("query")
    @classmethod
    def reject_blank_query(cls, query: str) -> str:
        """A whitespace-only query has no meaningful embedding."""
        if not query.strip():
            raise ValueError("query must be a non-empty string")
        return query


class SearchResult(BaseModel):
    """A single ranked chunk."""

    id: str = Field(..., description="Chunk identifier.")
    file: str = Field(..., description="Source file the chunk was taken from.")
    code: str = Field(..., description="Chunk source text.")
    score: float = Field(..., description="Cosine similarity to the query (-1 to 1).")


class SearchResponse(BaseModel):
    """Response body for ``POST /search``."""

    query: str = Field(..., description="The original search query.")
    top_k: int = Field(..., description="Number of results requested.")
    results: list[SearchResult] = Field(..., description="Ranked search results.")
    meta: ResponseMeta = Field(..., description="Performance timing metadata.")
