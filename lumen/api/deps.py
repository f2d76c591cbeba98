from __future__ import annotations

from fastapi import Request

from lumen.common.config import settings
from lumen.common.tokenizer import load_user_dict
from lumen.search.cache import ResponseCache
from lumen.search.search_service import SearchService
from lumen.search.sources import default_queriers
from lumen.storage.repo import ContentStore, SqliteContentStore
from lumen.storage.strapi import StrapiContentStore


def build_store() -> ContentStore:
    backend = settings.store_backend.lower()
    if backend == "sqlite":
        return SqliteContentStore(settings.db_path)
    if backend == "strapi":
        return StrapiContentStore(settings.strapi_url, settings.strapi_token)
    raise ValueError(f"unknown store backend: {settings.store_backend}")


def build_service(store: ContentStore | None = None) -> SearchService:
    if settings.user_dict_path:
        load_user_dict(settings.user_dict_path)
    queriers = default_queriers(
        store or build_store(),
        result_cap=settings.result_cap,
        excerpt_length=settings.excerpt_max_length,
    )
    return SearchService(queriers, cache=ResponseCache())


def get_service(request: Request) -> SearchService:
    return request.app.state.search_service
