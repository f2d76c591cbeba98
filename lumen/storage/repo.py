from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Protocol, Sequence

from lumen.common.errors import ContentStoreError, InvalidQueryError

from .db import connect, init_db, tx
from .predicates import And, Contains, Equals, InSet, Not, Or, Predicate, split_field

log = logging.getLogger(__name__)


class ContentStore(Protocol):
    async def find_many(
        self,
        collection: str,
        predicate: Predicate,
        *,
        limit: int,
        populate: Sequence[str] = (),
    ) -> list[dict[str, Any]]: ...


@dataclass(frozen=True)
class Relation:
    table: str
    columns: tuple[str, ...]
    many: bool
    # many: foreign key on the related table; one: foreign key on the parent
    join_column: str


@dataclass(frozen=True)
class Collection:
    table: str
    columns: tuple[str, ...]
    relations: dict[str, Relation] = field(default_factory=dict)


COLLECTIONS: dict[str, Collection] = {
    "lessons": Collection(
        table="lessons",
        columns=("id", "code", "title", "summary", "loop_id", "published_at"),
        relations={
            "difficulty_specific_fields": Relation(
                table="lesson_difficulties",
                columns=("id", "lesson_id", "difficulty"),
                many=True,
                join_column="lesson_id",
            ),
            "loop": Relation(table="loops", columns=("id", "title"), many=False, join_column="loop_id"),
        },
    ),
    "knowledge_cards": Collection(
        table="knowledge_cards",
        columns=("id", "slug", "title", "description", "type", "published_at"),
    ),
    "student_works": Collection(
        table="student_works",
        columns=("id", "student_name", "discipline", "grade", "loop", "description", "published_at"),
    ),
    "resources": Collection(
        table="resources",
        columns=("id", "title", "description", "category", "media_type", "url", "published_at"),
    ),
}


def get_collection(name: str) -> Collection:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise InvalidQueryError(f"unknown collection: {name}") from None


# -------------------- predicate lowering --------------------
def compile_predicate(coll: Collection, predicate: Predicate, alias: str = "t") -> tuple[str, list[Any]]:
    """Lower a predicate tree to a parameterised SQL condition."""
    if isinstance(predicate, (And, Or)):
        if not predicate.items:
            return ("1=1", []) if isinstance(predicate, And) else ("0=1", [])
        joiner = " AND " if isinstance(predicate, And) else " OR "
        parts: list[str] = []
        params: list[Any] = []
        for item in predicate.items:
            sql, p = compile_predicate(coll, item, alias)
            parts.append(sql)
            params.extend(p)
        return "(" + joiner.join(parts) + ")", params

    if isinstance(predicate, Not):
        sql, params = compile_predicate(coll, predicate.item, alias)
        return f"NOT ({sql})", params

    relation_name, column = split_field(predicate.field)
    if relation_name is None:
        if column not in coll.columns:
            raise InvalidQueryError(f"unknown field {column!r} on {coll.table}")
        return _compile_leaf(f"{alias}.{column}", predicate)

    rel = coll.relations.get(relation_name)
    if rel is None:
        raise InvalidQueryError(f"unknown relation {relation_name!r} on {coll.table}")
    if column not in rel.columns:
        raise InvalidQueryError(f"unknown field {column!r} on {rel.table}")
    if rel.many:
        join = f"r.{rel.join_column} = {alias}.id"
    else:
        join = f"r.id = {alias}.{rel.join_column}"
    leaf, params = _compile_leaf(f"r.{column}", predicate)
    return f"EXISTS (SELECT 1 FROM {rel.table} r WHERE {join} AND {leaf})", params


def _compile_leaf(expr: str, predicate: Predicate) -> tuple[str, list[Any]]:
    if isinstance(predicate, Equals):
        if predicate.value is None:
            return f"{expr} IS NULL", []
        return f"{expr} = ?", [predicate.value]
    if isinstance(predicate, Contains):
        return f"instr(ulower({expr}), ?) > 0", [predicate.value.lower()]
    if isinstance(predicate, InSet):
        if not predicate.values:
            return "0=1", []
        q = ",".join("?" for _ in predicate.values)
        return f"{expr} IN ({q})", list(predicate.values)
    raise InvalidQueryError(f"unsupported predicate: {predicate!r}")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteContentStore:
    """Content store backed by a local SQLite database.

    Each query opens its own connection inside a worker thread, so concurrent
    ``find_many`` calls from one event loop never share a connection.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        conn = connect(db_path)
        try:
            init_db(conn)
        finally:
            conn.close()

    async def find_many(
        self,
        collection: str,
        predicate: Predicate,
        *,
        limit: int,
        populate: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._find_many, collection, predicate, limit, tuple(populate))

    def _find_many(
        self, collection: str, predicate: Predicate, limit: int, populate: tuple[str, ...]
    ) -> list[dict[str, Any]]:
        coll = get_collection(collection)
        where, params = compile_predicate(coll, predicate)
        for name in populate:
            if name not in coll.relations:
                raise InvalidQueryError(f"unknown relation {name!r} on {coll.table}")

        sql = f"SELECT t.* FROM {coll.table} t WHERE {where} ORDER BY t.id ASC LIMIT ?"
        try:
            conn = connect(self.db_path)
            try:
                items = [dict(r) for r in conn.execute(sql, [*params, limit]).fetchall()]
                for name in populate:
                    self._populate(conn, coll.relations[name], name, items)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise ContentStoreError(f"{collection} query failed: {exc}", collection=collection) from exc

        log.debug("store_query", extra={"category": collection, "hits": len(items)})
        return items

    def _populate(self, conn: sqlite3.Connection, rel: Relation, name: str, items: list[dict[str, Any]]) -> None:
        if not items:
            return
        if rel.many:
            ids = [it["id"] for it in items]
            q = ",".join("?" for _ in ids)
            rows = conn.execute(
                f"SELECT * FROM {rel.table} WHERE {rel.join_column} IN ({q}) ORDER BY id ASC", ids
            ).fetchall()
            grouped: dict[int, list[dict[str, Any]]] = {}
            for r in rows:
                grouped.setdefault(int(r[rel.join_column]), []).append(dict(r))
            for it in items:
                it[name] = grouped.get(it["id"], [])
            return

        keys = sorted({it[rel.join_column] for it in items if it.get(rel.join_column) is not None})
        by_id: dict[int, dict[str, Any]] = {}
        if keys:
            q = ",".join("?" for _ in keys)
            rows = conn.execute(f"SELECT * FROM {rel.table} WHERE id IN ({q})", keys).fetchall()
            by_id = {int(r["id"]): dict(r) for r in rows}
        for it in items:
            key = it.get(rel.join_column)
            it[name] = by_id.get(key) if key is not None else None

    # -------------------- writers --------------------
    @contextmanager
    def _batch(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a transaction.

        With ``conn`` the work nests as a savepoint of the caller's transaction;
        otherwise a fresh connection is opened and committed as one unit.
        """
        if conn is not None:
            with tx(conn):
                yield conn
            return
        own = connect(self.db_path)
        try:
            with tx(own):
                yield own
        except sqlite3.Error as e:
            raise ContentStoreError(f"write failed: {e}") from e
        finally:
            own.close()

    @staticmethod
    def _insert(conn: sqlite3.Connection, table: str, values: dict[str, Any]) -> int:
        cols = ", ".join(values)
        q = ", ".join("?" for _ in values)
        cur = conn.execute(f"INSERT INTO {table}({cols}) VALUES({q})", list(values.values()))
        return int(cur.lastrowid)

    def add_loop(self, title: str, *, conn: sqlite3.Connection | None = None) -> int:
        with self._batch(conn) as c:
            return self._insert(c, "loops", {"title": title})

    def add_lesson(
        self,
        code: str,
        title: str,
        summary: str | None = None,
        loop_id: int | None = None,
        difficulties: Iterable[str] = (),
        published: bool = True,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        # The lesson and its difficulty rows are written together or not at all.
        with self._batch(conn) as c:
            lesson_id = self._insert(
                c,
                "lessons",
                {
                    "code": code,
                    "title": title,
                    "summary": summary,
                    "loop_id": loop_id,
                    "published_at": _now() if published else None,
                },
            )
            for d in difficulties:
                self._insert(c, "lesson_difficulties", {"lesson_id": lesson_id, "difficulty": d})
            return lesson_id

    def add_knowledge_card(
        self,
        slug: str,
        title: str,
        description: str | None = None,
        type: str | None = None,
        published: bool = True,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        with self._batch(conn) as c:
            return self._insert(
                c,
                "knowledge_cards",
                {
                    "slug": slug,
                    "title": title,
                    "description": description,
                    "type": type,
                    "published_at": _now() if published else None,
                },
            )

    def add_student_work(
        self,
        student_name: str,
        discipline: str | None = None,
        grade: str | None = None,
        loop: str | None = None,
        description: str | None = None,
        published: bool = True,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        with self._batch(conn) as c:
            return self._insert(
                c,
                "student_works",
                {
                    "student_name": student_name,
                    "discipline": discipline,
                    "grade": grade,
                    "loop": loop,
                    "description": description,
                    "published_at": _now() if published else None,
                },
            )

    def add_resource(
        self,
        title: str,
        description: str | None = None,
        category: str | None = None,
        media_type: str | None = None,
        url: str | None = None,
        published: bool = True,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        with self._batch(conn) as c:
            return self._insert(
                c,
                "resources",
                {
                    "title": title,
                    "description": description,
                    "category": category,
                    "media_type": media_type,
                    "url": url,
                    "published_at": _now() if published else None,
                },
            )

    def load_fixture(self, data: dict[str, list[dict[str, Any]]]) -> dict[str, int]:
        """Insert a JSON-style fixture and return the number of rows per collection.

        Lessons may name their loop by title; missing loops are created.
        The whole fixture is one transaction: a bad item leaves the store untouched.
        """
        counts: dict[str, int] = {}
        loops: dict[str, int] = {}
        with self._batch() as conn:
            for raw in data.get("lessons", []):
                item = dict(raw)
                loop_title = item.pop("loop", None)
                if loop_title:
                    if loop_title not in loops:
                        loops[loop_title] = self.add_loop(loop_title, conn=conn)
                    item["loop_id"] = loops[loop_title]
                self.add_lesson(**item, conn=conn)
            counts["lessons"] = len(data.get("lessons", []))

            writers = {
                "knowledge_cards": self.add_knowledge_card,
                "student_works": self.add_student_work,
                "resources": self.add_resource,
            }
            for name, writer in writers.items():
                for raw in data.get(name, []):
                    writer(**raw, conn=conn)
                counts[name] = len(data.get(name, []))
        log.info("fixture_loaded", extra={"hits": sum(counts.values())})
        return counts
