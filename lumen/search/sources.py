from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from lumen.common.config import settings
from lumen.common.tokenizer import segment
from lumen.storage.predicates import And, Equals, InSet, Not, Predicate
from lumen.storage.repo import ContentStore

from .excerpt import build_excerpt
from .filters import any_field_matches
from .highlight import find_ranges
from .models import Category, Highlights, SearchResult

log = logging.getLogger(__name__)

PUBLISHED = Not(Equals("published_at", None))


class SourceQuerier:
    """Searches one content category and maps raw items to ``SearchResult``."""

    category: Category
    collection: str
    search_fields: tuple[str, ...]
    excerpt_field = "description"
    populate: tuple[str, ...] = ()

    def __init__(
        self,
        store: ContentStore,
        result_cap: int | None = None,
        excerpt_length: int | None = None,
    ) -> None:
        self.store = store
        self.result_cap = result_cap if result_cap is not None else settings.result_cap
        self.excerpt_length = excerpt_length if excerpt_length is not None else settings.excerpt_max_length

    def structured_filters(self, extra: Mapping[str, Any]) -> list[Predicate]:
        return []

    def build_predicate(
        self, text: str, extra: Mapping[str, Any], tokens: Sequence[str] | None = None
    ) -> Predicate:
        matches = any_field_matches(text, self.search_fields, tokens)
        return And((PUBLISHED, matches, *self.structured_filters(extra)))

    async def query(self, text: str, extra_filters: Mapping[str, Any] | None = None) -> list[SearchResult]:
        tokens = segment(text)
        predicate = self.build_predicate(text, extra_filters or {}, tokens)
        items = await self.store.find_many(
            self.collection,
            predicate,
            limit=self.result_cap,
            populate=self.populate,
        )
        log.debug("source_done", extra={"category": self.category.value, "hits": len(items)})
        return [self.to_result(item, text, tokens) for item in items]

    def to_result(
        self, item: Mapping[str, Any], query: str, tokens: Sequence[str] | None = None
    ) -> SearchResult:
        if tokens is None:
            tokens = segment(query)
        title = self.title_of(item)
        excerpt = build_excerpt(item.get(self.excerpt_field) or "", query, self.excerpt_length, tokens)
        return SearchResult(
            id=item["id"],
            category=self.category,
            title=title,
            excerpt=excerpt,
            highlights=Highlights(
                title=tuple(find_ranges(title, query, tokens)),
                excerpt=tuple(find_ranges(excerpt, query, tokens)),
            ),
            meta=self.meta_of(item),
            url=self.url_of(item),
        )

    def title_of(self, item: Mapping[str, Any]) -> str:
        return item.get("title") or ""

    def meta_of(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {}

    def url_of(self, item: Mapping[str, Any]) -> str:
        raise NotImplementedError


class LessonQuerier(SourceQuerier):
    category = Category.LESSON
    collection = "lessons"
    search_fields = ("title", "code", "summary")
    excerpt_field = "summary"
    populate = ("difficulty_specific_fields", "loop")

    def structured_filters(self, extra: Mapping[str, Any]) -> list[Predicate]:
        difficulty = extra.get("difficulty") or ()
        if not difficulty:
            return []
        return [InSet("difficulty_specific_fields.difficulty", tuple(sorted(difficulty)))]

    def meta_of(self, item: Mapping[str, Any]) -> dict[str, Any]:
        loop = item.get("loop") or {}
        return {
            "code": item.get("code"),
            "difficulty": [d.get("difficulty") for d in item.get("difficulty_specific_fields") or []],
            "loopTitle": loop.get("title"),
        }

    def url_of(self, item: Mapping[str, Any]) -> str:
        return f"/lessons/{item.get('code')}"


class KnowledgeCardQuerier(SourceQuerier):
    category = Category.KNOWLEDGE_CARD
    collection = "knowledge_cards"
    search_fields = ("title", "description")

    def meta_of(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {"type": item.get("type"), "slug": item.get("slug")}

    def url_of(self, item: Mapping[str, Any]) -> str:
        return f"/knowledge-cards/{item.get('slug')}"


class StudentWorkQuerier(SourceQuerier):
    category = Category.STUDENT_WORK
    collection = "student_works"
    search_fields = ("student_name", "description")

    def title_of(self, item: Mapping[str, Any]) -> str:
        name = item.get("student_name") or ""
        discipline = item.get("discipline")
        return f"{name} - {discipline}" if discipline else name

    def meta_of(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {"discipline": item.get("discipline"), "grade": item.get("grade"), "loop": item.get("loop")}

    def url_of(self, item: Mapping[str, Any]) -> str:
        return f"/student-works/{item['id']}"


class ResourceQuerier(SourceQuerier):
    category = Category.RESOURCE
    collection = "resources"
    search_fields = ("title", "description")

    def meta_of(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {"category": item.get("category"), "mediaType": item.get("media_type"), "url": item.get("url")}

    def url_of(self, item: Mapping[str, Any]) -> str:
        return f"/resources/{item['id']}"


def default_queriers(
    store: ContentStore,
    result_cap: int | None = None,
    excerpt_length: int | None = None,
) -> dict[Category, SourceQuerier]:
    queriers = (
        LessonQuerier(store, result_cap, excerpt_length),
        KnowledgeCardQuerier(store, result_cap, excerpt_length),
        StudentWorkQuerier(store, result_cap, excerpt_length),
        ResourceQuerier(store, result_cap, excerpt_length),
    )
    return {q.category: q for q in queriers}
