from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Query
from fastapi.responses import JSONResponse

from lumen.api.deps import build_service, build_store, get_service
from lumen.api.middleware import request_logging_middleware
from lumen.api.schemas import ClearCacheResponse, HealthResponse, SearchResponse
from lumen.common.config import settings
from lumen.common.errors import ContentStoreError, InvalidQueryError, SegmentationError
from lumen.search.models import SearchQuery
from lumen.search.search_service import SearchService

log = logging.getLogger(__name__)


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def create_app(service: SearchService | None = None) -> FastAPI:
    store = None
    if service is None:
        store = build_store()
        service = build_service(store)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        close = getattr(store, "aclose", None)
        if close is not None:
            await close()

    app = FastAPI(title="Lumen Search", version="1.0.0", lifespan=lifespan)
    app.state.search_service = service

    app.middleware("http")(request_logging_middleware)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/global-search", response_model=SearchResponse)
    async def global_search(
        query: str | None = Query(None),
        type: str | None = Query(None),
        difficulty: str | None = Query(None),
        page: int | None = Query(None),
        page_size: int | None = Query(None, alias="pageSize"),
        svc: SearchService = Depends(get_service),
    ):
        if not query:
            return JSONResponse(status_code=400, content={"error": "query_required"})

        page_num = max(1, page or 1)
        size = min(settings.max_page_size, max(1, page_size or settings.default_page_size))
        search_query = SearchQuery(
            text=query.strip(),
            categories=frozenset(_split_csv(type)),
            difficulty=frozenset(_split_csv(difficulty)),
            page=page_num,
            page_size=size,
        )
        response = await svc.search(search_query)
        return response.to_dict()

    @app.post("/global-search/clear-cache", response_model=ClearCacheResponse)
    def clear_cache(svc: SearchService = Depends(get_service)) -> ClearCacheResponse:
        svc.clear_cache()
        return ClearCacheResponse(message="Cache cleared successfully")

    @app.exception_handler(SegmentationError)
    @app.exception_handler(ContentStoreError)
    async def search_unavailable_handler(_, exc: Exception):
        log.error("search_unavailable", extra={"error": str(exc)})
        return JSONResponse(status_code=503, content={"error": "search_unavailable"})

    @app.exception_handler(InvalidQueryError)
    async def invalid_query_handler(_, exc: InvalidQueryError):
        log.warning("invalid_query", extra={"error": str(exc)})
        return JSONResponse(status_code=400, content={"error": "invalid_query"})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_, exc: Exception):
        log.exception("unhandled_exception", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "internal_server_error"})

    return app
