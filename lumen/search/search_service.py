from __future__ import annotations

import asyncio
import logging
from typing import Callable, Mapping, Sequence

from lumen.common.config import settings
from lumen.common.errors import ContentStoreError, LumenError

from .cache import ResponseCache
from .models import ALL_CATEGORIES, Category, SearchQuery, SearchResponse, SearchResult
from .sources import SourceQuerier

log = logging.getLogger(__name__)

SuggestionStrategy = Callable[[Sequence[SearchResult]], list[str]]


def first_distinct_titles(results: Sequence[SearchResult], limit: int = 5) -> list[str]:
    """Titles of the first ``limit`` results, deduplicated in order."""
    seen: dict[str, None] = {}
    for r in results[:limit]:
        seen.setdefault(r.title, None)
    return list(seen)[:limit]


class SearchService:
    def __init__(
        self,
        queriers: Mapping[Category, SourceQuerier],
        cache: ResponseCache | None = None,
        suggest: SuggestionStrategy | None = None,
        cache_ttl: float | None = None,
        min_query_length: int | None = None,
        partial_results: bool | None = None,
        source_timeout: float | None = None,
    ) -> None:
        self.queriers = dict(queriers)
        self.cache = cache if cache is not None else ResponseCache()
        self.suggest = suggest or (lambda results: first_distinct_titles(results, settings.suggestion_limit))
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.cache_ttl_seconds
        self.min_query_length = min_query_length if min_query_length is not None else settings.min_query_length
        self.partial_results = partial_results if partial_results is not None else settings.partial_results
        self.source_timeout = source_timeout if source_timeout is not None else settings.source_timeout_seconds

    async def search(self, query: SearchQuery) -> SearchResponse:
        if len(query.text.strip()) < self.min_query_length:
            return SearchResponse.empty(query.page, query.page_size)

        key = query.cache_key()
        cached = self.cache.get(key)
        if cached is not None:
            log.debug("cache_hit", extra={"cache": "hit", "total": cached.total})
            return cached

        active = self._active_categories(query)
        groups, errors = await self._fan_out(query, active)

        all_results = [r for c in ALL_CATEGORIES for r in groups[c]]
        suggestions = tuple(self.suggest(all_results))

        start = (query.page - 1) * query.page_size
        end = start + query.page_size
        response = SearchResponse(
            results=tuple(all_results[start:end]),
            groups=groups,
            suggestions=suggestions,
            total=len(all_results),
            page=query.page,
            page_size=query.page_size,
            errors=errors,
        )

        # a degraded response should not outlive the outage
        if not errors:
            self.cache.set(key, response, self.cache_ttl)

        log.info(
            "search_done",
            extra={
                "categories": [c.value for c in active],
                "total": response.total,
                "cache": "miss",
            },
        )
        return response

    def search_sync(self, query: SearchQuery) -> SearchResponse:
        return asyncio.run(self.search(query))

    def clear_cache(self) -> None:
        self.cache.clear()

    def _active_categories(self, query: SearchQuery) -> list[Category]:
        if not query.categories:
            return [c for c in ALL_CATEGORIES if c in self.queriers]
        return [c for c in ALL_CATEGORIES if c.value in query.categories and c in self.queriers]

    async def _fan_out(
        self, query: SearchQuery, active: list[Category]
    ) -> tuple[dict[Category, tuple[SearchResult, ...]], dict[str, str]]:
        outcomes = await asyncio.gather(
            *(self._run_source(self.queriers[c], query) for c in active),
            return_exceptions=self.partial_results,
        )

        groups: dict[Category, tuple[SearchResult, ...]] = {c: () for c in ALL_CATEGORIES}
        errors: dict[str, str] = {}
        for category, outcome in zip(active, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, LumenError):
                    raise outcome
                log.warning("source_failed", extra={"category": category.value, "error": str(outcome)})
                errors[category.group_key] = str(outcome)
                continue
            groups[category] = tuple(outcome)
        return groups, errors

    async def _run_source(self, querier: SourceQuerier, query: SearchQuery) -> list[SearchResult]:
        call = querier.query(query.text, {"difficulty": query.difficulty})
        if self.source_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, self.source_timeout)
        except asyncio.TimeoutError as exc:
            raise ContentStoreError(
                f"{querier.collection} timed out after {self.source_timeout}s", collection=querier.collection
            ) from exc
