from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
from uuid import uuid4

from lumen.common.config import settings


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS loops (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  title TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS lessons (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  code TEXT NOT NULL UNIQUE,
  title TEXT NOT NULL,
  summary TEXT,
  loop_id INTEGER,
  published_at TEXT,
  FOREIGN KEY(loop_id) REFERENCES loops(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS lesson_difficulties (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  lesson_id INTEGER NOT NULL,
  difficulty TEXT NOT NULL,
  FOREIGN KEY(lesson_id) REFERENCES lessons(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS knowledge_cards (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  slug TEXT NOT NULL UNIQUE,
  title TEXT NOT NULL,
  description TEXT,
  type TEXT,
  published_at TEXT
);

CREATE TABLE IF NOT EXISTS student_works (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  student_name TEXT NOT NULL,
  discipline TEXT,
  grade TEXT,
  loop TEXT,
  description TEXT,
  published_at TEXT
);

CREATE TABLE IF NOT EXISTS resources (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  title TEXT NOT NULL,
  description TEXT,
  category TEXT,
  media_type TEXT,
  url TEXT,
  published_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_difficulties_lesson ON lesson_difficulties(lesson_id);
"""


def unicode_lower(value: object) -> str | None:
    # SQLite's built-in lower() only folds ASCII
    if value is None:
        return None
    return str(value).lower()


def connect(db_path: str | None = None) -> sqlite3.Connection:
    path = Path(db_path or settings.db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    conn.create_function("ulower", 1, unicode_lower, deterministic=True)
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.commit()


@contextmanager
def tx(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Transaction helper that supports nesting.

    - If not already in a transaction: BEGIN / COMMIT / ROLLBACK
    - If already in a transaction: use a SAVEPOINT so nesting works safely
    """

    # Nested transaction -> use SAVEPOINT
    if conn.in_transaction:
        sp = f"sp_{uuid4().hex}"
        conn.execute(f"SAVEPOINT {sp}")
        try:
            yield conn
        except Exception:
            conn.execute(f"ROLLBACK TO {sp}")
            conn.execute(f"RELEASE {sp}")
            raise
        else:
            conn.execute(f"RELEASE {sp}")
        return

    # Top-level transaction
    conn.execute("BEGIN")
    try:
        yield conn
    except Exception:
        conn.rollback()
        raise
    else:
        conn.commit()
