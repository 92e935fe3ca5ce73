"""
Search route for semantic similarity queries.

``POST /search`` — read the index, embed the query, return ranked chunks.

Failures are reported, never hidden behind an empty result list:
    - index missing or malformed   → 503
    - query embedding failed       → 502
    - query/index dimension differ → 500

The load and rank steps are the ones ``search_index`` uses; both run in a
worker thread so a large index never stalls the event loop.
"""

import logging
import time
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response

from api.deps import get_index_path, get_query_embedder
from api.schemas.search import ResponseMeta, SearchRequest, SearchResponse, SearchResult
from core.embeddings.base import QueryEmbedder
from core.errors import DimensionMismatchError, EmbeddingError, IndexStoreError
from infrastructure.metrics import record_query
from ingestion.search import load_index, rank_index

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])

Embedder = Annotated[QueryEmbedder, Depends(get_query_embedder)]
IndexPath = Annotated[str, Depends(get_index_path)]


def _fail(status: str, t_start: float, code: int, detail: str) -> HTTPException:
    record_query(status=status, latency_seconds=time.perf_counter() - t_start)
    return HTTPException(status_code=code, detail=detail)


@router.post("/search", response_model=SearchResponse)
async def search(
    body: SearchRequest,
    response: Response,
    embedder: Embedder,
    index_path: IndexPath,
) -> SearchResponse:
    """
    Rank indexed code chunks by cosine similarity to the query.

    Every stored chunk is scored; the ``top_k`` best are returned, highest
    score first.
    """
    request_id = str(uuid.uuid4())
    t_start = time.perf_counter()

    # 1. Load the index (before spending an API call on the query)
    t_search = time.perf_counter()
    try:
        index = await load_index(index_path)
    except IndexStoreError as exc:
        logger.error("Index unavailable [request_id=%s]: %s", request_id, exc)
        raise _fail(
            "index_error", t_start, 503, f"Index unavailable. request_id={request_id}"
        ) from exc
    load_ms = (time.perf_counter() - t_search) * 1000

    # 2. Embed the query (single call, no retry)
    t_embed = time.perf_counter()
    try:
        query_embedding = await embedder.embed_query(body.query)
    except EmbeddingError as exc:
        logger.error("Embedding failed [request_id=%s]: %s", request_id, exc)
        raise _fail(
            "embedding_error",
            t_start,
            502,
            f"Failed to generate query embedding. request_id={request_id}",
        ) from exc
    embedding_ms = (time.perf_counter() - t_embed) * 1000

    # 3. Rank
    t_rank = time.perf_counter()
    try:
        ranked = await rank_index(query_embedding, index, body.top_k)
    except DimensionMismatchError as exc:
        logger.error("Ranking failed [request_id=%s]: %s", request_id, exc)
        raise _fail(
            "error", t_start, 500, f"Query and index dimensions differ. request_id={request_id}"
        ) from exc
    search_ms = load_ms + (time.perf_counter() - t_rank) * 1000

    total_seconds = time.perf_counter() - t_start
    record_query(status="success", latency_seconds=total_seconds)
    logger.info(
        "Scored %d chunks, returning top %d [request_id=%s]", len(index), len(ranked), request_id
    )

    total_ms = total_seconds * 1000
    response.headers["X-Request-Id"] = request_id
    response.headers["X-Embedding-Ms"] = str(round(embedding_ms, 2))
    response.headers["X-Search-Ms"] = str(round(search_ms, 2))
    response.headers["X-Total-Ms"] = str(round(total_ms, 2))

    return SearchResponse(
        query=body.query,
        top_k=body.top_k,
        results=[
            SearchResult(id=m.id, file=m.file, code=m.code, score=round(m.score, 6))
            for m in ranked
        ],
        meta=ResponseMeta(
            embedding_ms=round(embedding_ms, 2),
            search_ms=round(search_ms, 2),
            total_ms=round(total_ms, 2),
            chunks_scored=len(index),
            request_id=request_id,
        ),
    )
