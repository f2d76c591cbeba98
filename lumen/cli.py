from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from lumen.api.deps import build_service
from lumen.api.main import create_app
from lumen.common.config import settings
from lumen.common.logging import setup_logging
from lumen.search.models import SearchQuery
from lumen.storage.repo import SqliteContentStore

app = typer.Typer(add_completion=False, help="Lumen course content search CLI")


@app.command()
def load(
    fixture: Path = typer.Option(..., help="JSON file with lessons, knowledge_cards, student_works, resources"),
    db_path: Optional[str] = typer.Option(None, help="SQLite database (defaults to LUMEN_DB_PATH)"),
) -> None:
    """Load content items into the SQLite content store."""
    setup_logging()
    log = logging.getLogger("lumen.cli")

    data = json.loads(fixture.read_text(encoding="utf-8"))
    store = SqliteContentStore(db_path or settings.db_path)
    counts = store.load_fixture(data)
    log.info("load_done", extra={"total": sum(counts.values())})
    typer.echo(json.dumps(counts, ensure_ascii=False))


@app.command()
def search(
    query: str = typer.Argument(..., help="Free-text query"),
    type: Optional[str] = typer.Option(None, "--type", help="Comma-separated categories"),
    difficulty: Optional[str] = typer.Option(None, help="Comma-separated difficulty tags"),
    page: int = typer.Option(1, min=1),
    page_size: int = typer.Option(20, "--page-size", min=1),
) -> None:
    """Run one search against the configured content store and print the JSON response."""
    setup_logging("WARNING")
    svc = build_service()
    q = SearchQuery(
        text=query.strip(),
        categories=frozenset(t.strip() for t in (type or "").split(",") if t.strip()),
        difficulty=frozenset(d.strip() for d in (difficulty or "").split(",") if d.strip()),
        page=page,
        page_size=page_size,
    )
    response = svc.search_sync(q)
    typer.echo(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
    log_level: str = typer.Option("info", help="Uvicorn log level"),
) -> None:
    """Run the FastAPI service."""
    setup_logging()
    uvicorn.run(create_app(), host=host, port=port, log_level=log_level)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
