"""
Ask route: answer a question from the best-matching code.

``POST /ask``: search the index, build the prompt, generate the answer.

Failures map the same way as ``/search``, plus generation:
    - index missing or malformed   → 503
    - query embedding failed       → 502
    - answer generation failed     → 502
    - query/index dimension differ → 500
"""

import logging
import time
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response

from api.deps import get_generation_provider, get_index_path, get_query_embedder
from api.schemas.ask import AskRequest, AskResponse, AskUsage
from api.schemas.search import SearchResult
from core.embeddings.base import QueryEmbedder
from core.errors import DimensionMismatchError, EmbeddingError, IndexStoreError
from core.generation.base import GenerationProvider
from infrastructure.metrics import record_ask
from ingestion.ask import answer_question

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ask"])

Embedder = Annotated[QueryEmbedder, Depends(get_query_embedder)]
Generator = Annotated[GenerationProvider, Depends(get_generation_provider)]
IndexPath = Annotated[str, Depends(get_index_path)]


@router.post("/ask", response_model=AskResponse)
async def ask(
    body: AskRequest,
    response: Response,
    embedder: Embedder,
    generator: Generator,
    index_path: IndexPath,
) -> AskResponse:
    """Answer *query* using only the ``top_k`` most similar code chunks."""
    request_id = str(uuid.uuid4())
    t_start = time.perf_counter()

    try:
        answer = await answer_question(
            body.query, index_path, embedder, generator, top_k=body.top_k
        )
    except IndexStoreError as exc:
        record_ask(status="index_error")
        raise HTTPException(
            status_code=503, detail=f"Index unavailable. request_id={request_id}"
        ) from exc
    except EmbeddingError as exc:
        record_ask(status="embedding_error")
        raise HTTPException(
            status_code=502,
            detail=f"Failed to generate query embedding. request_id={request_id}",
        ) from exc
    except DimensionMismatchError as exc:
        record_ask(status="error")
        raise HTTPException(
            status_code=500,
            detail=f"Query and index dimensions differ. request_id={request_id}",
        ) from exc
    except RuntimeError as exc:
        record_ask(status="generation_error")
        raise HTTPException(
            status_code=502, detail=f"Failed to generate answer. request_id={request_id}"
        ) from exc

    total_ms = (time.perf_counter() - t_start) * 1000
    record_ask(status="success")
    logger.info("Answered from %d chunks [request_id=%s]", len(answer.matches), request_id)

    response.headers["X-Request-Id"] = request_id
    response.headers["X-Total-Ms"] = str(round(total_ms, 2))

    return AskResponse(
        query=body.query,
        answer=answer.content,
        sources=[
            SearchResult(id=m.id, file=m.file, code=m.code, score=round(m.score, 6))
            for m in answer.matches
        ],
        usage=AskUsage(
            input_tokens=answer.usage_input_tokens,
            output_tokens=answer.usage_output_tokens,
            total_ms=round(total_ms, 2),
            model=answer.model,
            request_id=request_id,
        ),
    )
