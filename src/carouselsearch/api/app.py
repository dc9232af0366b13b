"""FastAPI application exposing the retrieval engine."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from carouselsearch.api.schemas import (
    BulkIndexRequest,
    BulkIndexResponse,
    EmbeddingTextRequest,
    EmbeddingTextResponse,
    SearchRequestModel,
    SearchResponse,
    UpsertRequest,
    UpsertResponse,
)
from carouselsearch.config import Settings, get_settings
from carouselsearch.engine import RetrievalEngine, build_engine
from carouselsearch.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger


@dataclass(frozen=True)
class AppDependencies:
    engine: RetrievalEngine


class RateLimiter:
    """Sliding-window request limiter keyed by client and route template."""

    def __init__(self, requests: int, window_seconds: int) -> None:
        self.requests = requests
        self.window = window_seconds
        self._buckets: dict[str, deque[float]] = {}
        self._last_sweep = 0.0

    def __call__(self, request: Request) -> None:
        client_ip = request.headers.get("x-forwarded-for") or (request.client.host if request.client else "-")
        route = request.scope.get("route")
        path = getattr(route, "path_format", None) or request.url.path
        key = f"{client_ip}:{request.method}:{path}"
        now = time.time()
        cutoff = now - self.window
        if now - self._last_sweep > self.window:
            self._sweep(cutoff)
            self._last_sweep = now
        bucket = self._buckets.setdefault(key, deque())
        while bucket and bucket[0] < cutoff:
            bucket.popleft()
        if len(bucket) >= self.requests:
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")
        bucket.append(now)

    def _sweep(self, cutoff: float) -> None:
        idle = [key for key, bucket in self._buckets.items() if not bucket or bucket[-1] < cutoff]
        for key in idle:
            del self._buckets[key]

    def __len__(self) -> int:
        return len(self._buckets)


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or AppDependencies(engine=build_engine(settings))

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="carouselsearch API", version="0.1.0")
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        if request.headers.get("X-API-Key") != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    rate_limiter = RateLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)
    app.state.rate_limiter = rate_limiter

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_engine(request: Request) -> RetrievalEngine:
        return request.app.state.dependencies.engine

    @app.post("/index/bulk", response_model=BulkIndexResponse)
    async def index_documents(
        payload: BulkIndexRequest,
        engine: RetrievalEngine = Depends(get_engine),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> BulkIndexResponse:
        result = engine.index_user_documents(payload.tenant_id, payload.collection, payload.limit)
        return BulkIndexResponse.from_result(result)

    @app.post("/index/{collection}/{doc_id}", response_model=UpsertResponse)
    async def index_document(
        collection: str,
        doc_id: str,
        payload: UpsertRequest,
        engine: RetrievalEngine = Depends(get_engine),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> UpsertResponse:
        result = engine.upsert_vector(collection, doc_id, payload.tenant_id)
        return UpsertResponse.from_result(result)

    @app.post("/search", response_model=SearchResponse)
    async def search(
        payload: SearchRequestModel,
        engine: RetrievalEngine = Depends(get_engine),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> SearchResponse:
        result = engine.search_vectors(payload.collection, payload.tenant_id, payload.query, payload.top_k)
        return SearchResponse.from_result(result)

    @app.post("/embedding-text", response_model=EmbeddingTextResponse)
    async def embedding_text(
        payload: EmbeddingTextRequest,
        engine: RetrievalEngine = Depends(get_engine),
        _auth: None = Depends(require_api_key),
    ) -> EmbeddingTextResponse:
        return EmbeddingTextResponse(text=engine.build_embedding_text(payload.collection, payload.fields))

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from carouselsearch import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/healthz/ready")
    async def readiness(engine: RetrievalEngine = Depends(get_engine)) -> dict[str, object]:
        return {
            "status": "ready" if engine.store is not None else "degraded",
            "embedding": engine.embedder.is_configured,
            "vector_index": engine.index.is_configured,
            "document_store": engine.store is not None,
        }

    return app


app = create_app()
