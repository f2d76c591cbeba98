import asyncio

import pytest

from lumen.common.errors import ContentStoreError, InvalidQueryError
from lumen.storage.predicates import NO_MATCH, And, Contains, Equals, InSet, Not, Or
from lumen.storage.repo import compile_predicate, get_collection

PUBLISHED = Not(Equals("published_at", None))


def _find(store, collection, predicate, limit=20, populate=()):
    return asyncio.run(store.find_many(collection, predicate, limit=limit, populate=populate))


def test_compile_relation_filter_uses_exists():
    sql, params = compile_predicate(
        get_collection("lessons"),
        And((PUBLISHED, InSet("difficulty_specific_fields.difficulty", ("basic",)))),
    )
    assert "EXISTS (SELECT 1 FROM lesson_difficulties r WHERE r.lesson_id = t.id" in sql
    assert params == ["basic"]


def test_compile_rejects_unknown_field():
    with pytest.raises(InvalidQueryError):
        compile_predicate(get_collection("resources"), Contains("password", "x"))


def test_contains_is_case_insensitive(sqlite_store):
    rows = _find(sqlite_store, "lessons", And((PUBLISHED, Contains("title", "DESIGN"))))
    assert [r["code"] for r in rows] == ["L02"]


def test_unpublished_items_are_hidden(sqlite_store):
    rows = _find(sqlite_store, "lessons", And((PUBLISHED, Contains("title", "设计"))))
    assert [r["code"] for r in rows] == ["L01"]


def test_no_match_predicate(sqlite_store):
    assert _find(sqlite_store, "lessons", NO_MATCH) == []


def test_or_and_limit(sqlite_store):
    pred = Or((Contains("code", "L01"), Contains("code", "L02"), Contains("code", "L03")))
    assert len(_find(sqlite_store, "lessons", pred)) == 3
    assert len(_find(sqlite_store, "lessons", pred, limit=2)) == 2


def test_populate_relations(sqlite_store):
    rows = _find(
        sqlite_store,
        "lessons",
        Equals("code", "L01"),
        populate=("difficulty_specific_fields", "loop"),
    )
    assert rows[0]["loop"]["title"] == "Loop A"
    assert [d["difficulty"] for d in rows[0]["difficulty_specific_fields"]] == ["basic"]


def test_membership_on_related_rows(sqlite_store):
    pred = And((PUBLISHED, InSet("difficulty_specific_fields.difficulty", ("advanced", "expert"))))
    assert [r["code"] for r in _find(sqlite_store, "lessons", pred)] == ["L02"]


def test_failed_lesson_write_leaves_nothing_behind(sqlite_store):
    with pytest.raises(ContentStoreError):
        sqlite_store.add_lesson("L09", "Broken Lesson", difficulties=["basic", None])
    assert _find(sqlite_store, "lessons", Equals("code", "L09")) == []


def test_fixture_load_is_all_or_nothing(sqlite_store):
    with pytest.raises(ContentStoreError):
        sqlite_store.load_fixture(
            {
                "lessons": [{"code": "L10", "title": "Rolled Back", "loop": "Loop Z", "difficulties": ["basic"]}],
                "knowledge_cards": [{"slug": "empathy-map", "title": "Duplicate slug"}],
            }
        )
    assert _find(sqlite_store, "lessons", Equals("code", "L10")) == []
    assert len(_find(sqlite_store, "knowledge_cards", Equals("slug", "empathy-map"))) == 1
