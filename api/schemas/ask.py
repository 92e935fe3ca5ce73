"""
Pydantic schemas for the ``/ask`` endpoint.

The answer is generated from the top-ranked chunks only; the chunks are
returned alongside it so the caller can check what the model saw.
"""

from pydantic import BaseModel, Field, field_validator

from api.schemas.search import SearchResult


class AskRequest(BaseModel):
    """Request body for ``POST /ask``."""

    query: str = Field(
        ...,
        max_length=4000,
        description="The question to answer about the indexed code.",
    )
    top_k: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Number of code chunks to give the model as context.",
    )

    @field_validator("query")
    @classmethod
    def query_must_not_be_empty(cls, v: str) -> str:
        """Validate that query is not empty or whitespace-only."""
        if not v.strip():
            raise ValueError("query must be a non-empty string")
        return v


class AskUsage(BaseModel):
    """Token usage and timing metadata for observability."""

    input_tokens: int = Field(..., description="Tokens consumed (prompt).")
    output_tokens: int = Field(..., description="Tokens generated (answer).")
    total_ms: float = Field(..., description="Total request duration (milliseconds).")
    model: str = Field(..., description="Chat model that generated the answer.")
    request_id: str = Field(..., description="Identifier echoed in logs and headers.")


class AskResponse(BaseModel):
    """Response body for ``POST /ask``."""

    query: str
    answer: str
    sources: list[SearchResult]
    usage: AskUsage
