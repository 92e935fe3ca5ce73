from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from api.deps import close_query_embedder
from api.routes.ask import router as ask_router
from api.routes.search import router as search_router
from core.errors import MissingCredentialError
from infrastructure.metrics import get_metrics_response


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await close_query_embedder()


app = FastAPI(title="repoqa", lifespan=lifespan)

app.include_router(search_router)
app.include_router(ask_router)


@app.exception_handler(MissingCredentialError)
async def missing_credential_handler(_: Request, exc: MissingCredentialError) -> JSONResponse:
    """Report an unconfigured API key as a service-level outage."""
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.get("/health")
def health() -> dict[str, str]:
    """Return a simple liveness check."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns metrics in Prometheus text exposition format.
    """
    body, content_type = get_metrics_response()
    return Response(content=body, media_type=content_type)
