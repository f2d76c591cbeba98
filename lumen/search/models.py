from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class Category(str, Enum):
    LESSON = "lesson"
    KNOWLEDGE_CARD = "knowledge-card"
    STUDENT_WORK = "student-work"
    RESOURCE = "resource"

    @property
    def group_key(self) -> str:
        return _GROUP_KEYS[self]


_GROUP_KEYS = {
    Category.LESSON: "lessons",
    Category.KNOWLEDGE_CARD: "knowledgeCards",
    Category.STUDENT_WORK: "studentWorks",
    Category.RESOURCE: "resources",
}

# Fixed order for concatenating per-category results
ALL_CATEGORIES: tuple[Category, ...] = tuple(Category)


@dataclass(frozen=True)
class HighlightRange:
    """Half-open character span ``[start, end)`` inside one text field."""

    start: int
    end: int

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Highlights:
    title: tuple[HighlightRange, ...] = ()
    excerpt: tuple[HighlightRange, ...] = ()


@dataclass(frozen=True)
class SearchResult:
    id: int | str
    category: Category
    title: str
    excerpt: str
    highlights: Highlights
    meta: Mapping[str, Any]
    url: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.category.value,
            "title": self.title,
            "excerpt": self.excerpt,
            "highlights": {
                "title": [r.to_dict() for r in self.highlights.title],
                "excerpt": [r.to_dict() for r in self.highlights.excerpt],
            },
            "meta": dict(self.meta),
            "url": self.url,
        }


@dataclass(frozen=True)
class SearchQuery:
    text: str
    categories: frozenset[str] = frozenset()
    difficulty: frozenset[str] = frozenset()
    page: int = 1
    page_size: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        # accept any iterable of names from callers
        object.__setattr__(self, "categories", frozenset(self.categories))
        object.__setattr__(self, "difficulty", frozenset(self.difficulty))

    def cache_key(self) -> str:
        return json.dumps(
            {
                "text": self.text,
                "categories": sorted(self.categories),
                "difficulty": sorted(self.difficulty),
                "page": self.page,
                "page_size": self.page_size,
            },
            sort_keys=True,
            ensure_ascii=False,
        )


@dataclass(frozen=True)
class SearchResponse:
    results: tuple[SearchResult, ...]
    groups: Mapping[Category, tuple[SearchResult, ...]]
    suggestions: tuple[str, ...]
    total: int
    page: int
    page_size: int
    errors: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # cache hits hand out this same instance
        object.__setattr__(self, "results", tuple(self.results))
        object.__setattr__(self, "groups", MappingProxyType({c: tuple(rs) for c, rs in self.groups.items()}))
        object.__setattr__(self, "suggestions", tuple(self.suggestions))
        object.__setattr__(self, "errors", MappingProxyType(dict(self.errors)))

    @classmethod
    def empty(cls, page: int, page_size: int) -> "SearchResponse":
        return cls(
            results=(),
            groups={c: () for c in ALL_CATEGORIES},
            suggestions=(),
            total=0,
            page=page,
            page_size=page_size,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "groups": {c.group_key: [r.to_dict() for r in self.groups.get(c, ())] for c in ALL_CATEGORIES},
            "suggestions": list(self.suggestions),
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "errors": dict(self.errors),
        }
