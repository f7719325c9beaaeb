"""
Tests for the command line interface.
"""

import json

from typer.testing import CliRunner

from pipeline_dashboard import __version__
from pipeline_dashboard import cli
from pipeline_dashboard.cli import app
from tests.helpers import make_report

runner = CliRunner()


def _database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'dashboard.db'}"


class TestCli:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_init_db(self, tmp_path):
        result = runner.invoke(app, ["init-db", "--database-url", _database_url(tmp_path)])
        assert result.exit_code == 0
        assert (tmp_path / "dashboard.db").exists()

    def test_ingest_then_list(self, tmp_path):
        report_file = tmp_path / "report.json"
        report_file.write_text(json.dumps(make_report(report_id="cli-run", pipeline_id="cli-pipe", name="CLI")))
        url = _database_url(tmp_path)

        result = runner.invoke(app, ["ingest", str(report_file), "--database-url", url])
        assert result.exit_code == 0, result.stdout

        result = runner.invoke(app, ["reports", "--database-url", url])
        assert result.exit_code == 0, result.stdout
        assert "(1 of 1)" in result.stdout

    def test_ingest_invalid_json(self, tmp_path):
        report_file = tmp_path / "broken.json"
        report_file.write_text("{not json")

        result = runner.invoke(app, ["ingest", str(report_file), "--database-url", _database_url(tmp_path)])
        assert result.exit_code == 1
        assert "invalid JSON" in result.stdout

    def test_messages_do_not_wrap_on_narrow_terminals(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cli.console, "width", 20)
        report_file = tmp_path / "a-rather-long-report-file-name.json"
        report_file.write_text("{not json")

        result = runner.invoke(app, ["ingest", str(report_file), "--database-url", _database_url(tmp_path)])
        assert result.exit_code == 1
        assert "invalid JSON" in result.stdout
        assert str(report_file) in result.stdout

    def test_reports_rejects_bad_scm_id(self, tmp_path):
        url = _database_url(tmp_path)
        runner.invoke(app, ["init-db", "--database-url", url])

        result = runner.invoke(app, ["reports", "--scm-id", "bogus", "--database-url", url])
        assert result.exit_code == 1
