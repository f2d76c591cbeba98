import tempfile

import pytest

from lumen.common.errors import ContentStoreError
from lumen.storage.repo import SqliteContentStore


class FakeStore:
    """In-memory store that returns canned items and records every call."""

    def __init__(self, items=None, fail=()):
        self.items = items or {}
        self.fail = set(fail)
        self.calls = []

    async def find_many(self, collection, predicate, *, limit, populate=()):
        self.calls.append((collection, predicate, limit, tuple(populate)))
        if collection in self.fail:
            raise ContentStoreError(f"{collection} unavailable", collection=collection)
        return [dict(i) for i in self.items.get(collection, [])][:limit]


def many_items(lessons=0, cards=0, works=0, resources=0):
    return {
        "lessons": [{"id": i, "code": f"L{i:02d}", "title": f"Lesson {i}", "summary": "design basics"} for i in range(lessons)],
        "knowledge_cards": [
            {"id": i, "slug": f"card-{i}", "title": f"Card {i}", "description": "design card"} for i in range(cards)
        ],
        "student_works": [
            {"id": i, "student_name": f"Student {i}", "description": "design work"} for i in range(works)
        ],
        "resources": [{"id": i, "title": f"Resource {i}", "description": "design kit"} for i in range(resources)],
    }


@pytest.fixture
def fake_store():
    return FakeStore(many_items(lessons=2, cards=2, works=2, resources=2))


@pytest.fixture
def sqlite_store():
    with tempfile.TemporaryDirectory() as td:
        store = SqliteContentStore(f"{td}/content.db")
        store.load_fixture(
            {
                "lessons": [
                    {
                        "code": "L01",
                        "title": "设计思维入门",
                        "summary": "本课介绍设计思维的基本流程。",
                        "loop": "Loop A",
                        "difficulties": ["basic"],
                    },
                    {
                        "code": "L02",
                        "title": "Design Thinking Advanced",
                        "summary": "<p>Advanced <b>design</b> methods</p>",
                        "difficulties": ["advanced"],
                    },
                    {"code": "L03", "title": "设计草稿", "summary": "draft", "published": False},
                ],
                "knowledge_cards": [
                    {"slug": "empathy-map", "title": "Empathy Map", "description": "A tool for design research", "type": "tool"},
                ],
                "student_works": [
                    {"student_name": "Alice", "discipline": "Design", "grade": "10", "description": "Poster series"},
                ],
                "resources": [
                    {
                        "title": "Design Toolkit",
                        "description": "Templates",
                        "category": "template",
                        "media_type": "pdf",
                        "url": "https://example.org/toolkit.pdf",
                    },
                ],
            }
        )
        yield store
