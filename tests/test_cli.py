import json
import tempfile
from pathlib import Path

from typer.testing import CliRunner

from lumen.cli import app
from lumen.common.config import settings

FIXTURE = Path(__file__).resolve().parent.parent / "fixtures" / "sample_content.json"


def test_load_then_search(monkeypatch):
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as td:
        monkeypatch.setattr(settings, "db_path", f"{td}/cli.db")
        monkeypatch.setattr("lumen.cli.setup_logging", lambda level=None: None)

        r = runner.invoke(app, ["load", "--fixture", str(FIXTURE)])
        assert r.exit_code == 0, r.output
        assert '"lessons": 2' in r.output

        r = runner.invoke(app, ["search", "design", "--type", "resource"])
        assert r.exit_code == 0, r.output
        data = json.loads(r.output)
        assert data["total"] == 1
        assert data["results"][0]["url"] == "/resources/1"
