from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"


class HighlightRange(BaseModel):
    start: int = Field(ge=0)
    end: int = Field(ge=0)


class Highlights(BaseModel):
    title: list[HighlightRange]
    excerpt: list[HighlightRange]


class SearchHit(BaseModel):
    id: int | str
    type: str
    title: str
    excerpt: str
    highlights: Highlights
    meta: dict[str, Any]
    url: str


class SearchGroups(BaseModel):
    lessons: list[SearchHit]
    knowledgeCards: list[SearchHit]
    studentWorks: list[SearchHit]
    resources: list[SearchHit]


class SearchResponse(BaseModel):
    results: list[SearchHit]
    groups: SearchGroups
    suggestions: list[str]
    total: int
    page: int = Field(ge=1)
    pageSize: int = Field(ge=1)
    errors: dict[str, str] = Field(default_factory=dict)


class ClearCacheResponse(BaseModel):
    message: str
