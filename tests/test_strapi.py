import asyncio

import httpx
import pytest

from lumen.common.errors import ContentStoreError
from lumen.search.sources import LessonQuerier
from lumen.storage.predicates import NO_MATCH, Contains, InSet
from lumen.storage.strapi import StrapiContentStore, flatten_entity, lower_filters

LESSON_PAYLOAD = {
    "data": [
        {
            "id": 1,
            "attributes": {
                "code": "L01",
                "title": "Design 101",
                "summary": "An introduction to design",
                "publishedAt": "2024-05-01T00:00:00.000Z",
                "loop": {"data": {"id": 3, "attributes": {"title": "Loop A"}}},
                "difficulty_specific_fields": [{"id": 9, "difficulty": "basic"}],
            },
        }
    ],
    "meta": {"pagination": {"start": 0, "limit": 20, "total": 1}},
}


def _store(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://cms")
    return StrapiContentStore(client=client)


def test_lower_single_contains():
    assert lower_filters(Contains("title", "设计")) == [("filters[title][$containsi]", "设计")]


def test_lower_relation_membership_and_aliases():
    params = lower_filters(InSet("difficulty_specific_fields.difficulty", ("basic", "advanced")))
    assert params == [
        ("filters[difficulty_specific_fields][difficulty][$in][0]", "basic"),
        ("filters[difficulty_specific_fields][difficulty][$in][1]", "advanced"),
    ]
    assert lower_filters(Contains("student_name", "ann")) == [("filters[studentName][$containsi]", "ann")]


def test_lower_no_match():
    assert lower_filters(NO_MATCH) == [("filters[id][$null]", "true")]


def test_flatten_v4_envelopes():
    item = flatten_entity(LESSON_PAYLOAD["data"][0])
    assert item["published_at"] == "2024-05-01T00:00:00.000Z"
    assert item["loop"] == {"id": 3, "title": "Loop A"}


def test_lesson_query_over_rest():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = request.url.params
        return httpx.Response(200, json=LESSON_PAYLOAD)

    querier = LessonQuerier(_store(handler), result_cap=20)
    results = asyncio.run(querier.query("design", {"difficulty": {"basic"}}))

    assert seen["path"] == "/api/lessons"
    params = seen["params"]
    assert params["filters[$and][0][$not][publishedAt][$null]"] == "true"
    assert params["filters[$and][1][$or][0][title][$containsi]"] == "design"
    assert params["filters[$and][2][difficulty_specific_fields][difficulty][$in][0]"] == "basic"
    assert params["pagination[limit]"] == "20"
    assert params.get_list("populate[0]") == ["difficulty_specific_fields"]

    assert len(results) == 1
    assert results[0].url == "/lessons/L01"
    assert results[0].meta == {"code": "L01", "difficulty": ["basic"], "loopTitle": "Loop A"}


def test_http_failure_becomes_store_error():
    store = _store(lambda request: httpx.Response(500, json={"error": "boom"}))
    with pytest.raises(ContentStoreError):
        asyncio.run(store.find_many("resources", Contains("title", "x"), limit=5))
