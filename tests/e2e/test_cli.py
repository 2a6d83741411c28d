"""
End-to-end tests for the wasilah CLI.

Every invocation points the history store at a temp directory so runs
share history across commands the way separate shell invocations do.
"""

from __future__ import annotations

import json
import re

import pytest
from rich.console import Console
from typer.testing import CliRunner

from wasilah.cli.commands import export as export_commands
from wasilah.cli.commands import history as history_commands
from wasilah.cli.main import app
from wasilah.config.settings import config_service

pytestmark = pytest.mark.e2e

_JOB_ID = re.compile(r"\[(EXP-\d+)\]")


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli(runner, temp_dir, monkeypatch):
    """Invoke the app with an isolated JSON history store and quiet logging."""
    # Wide consoles keep table cells such as job ids unwrapped
    for module in (export_commands, history_commands):
        monkeypatch.setattr(module, "console", Console(width=200))
    store_dir = temp_dir / "store"

    def invoke(*args: str, input: str | None = None):
        return runner.invoke(
            app,
            ["--data-dir", str(store_dir), "--storage", "json", "-qq", *args],
            input=input,
        )

    return invoke


@pytest.fixture
def out_dir(temp_dir):
    return temp_dir / "out"


def _run_export(cli, records_dir, out_dir, *extra: str):
    result = cli("export", "run", *extra, "-i", str(records_dir), "-o", str(out_dir))
    assert result.exit_code == 0, result.output
    return _JOB_ID.search(result.output).group(1)


class TestExportRun:
    def test_csv_export_writes_file(self, cli, records_dir, out_dir):
        result = cli(
            "export", "run", "projects",
            "-i", str(records_dir), "-o", str(out_dir),
            "-c", "id,name", "--status", "active",
        )

        assert result.exit_code == 0, result.output
        assert "Exported 2 rows" in result.output
        (written,) = out_dir.glob("wasilah_projects_*.csv")
        assert written.read_text(encoding="utf-8") == (
            "id,name\nP-001,Clean Water Initiative\nP-003,Mobile Clinics"
        )

    def test_same_day_exports_do_not_overwrite(self, cli, records_dir, out_dir):
        _run_export(cli, records_dir, out_dir, "projects", "-c", "id")
        _run_export(cli, records_dir, out_dir, "projects", "-c", "id")
        assert len(list(out_dir.glob("wasilah_projects_*.csv"))) == 2

    def test_excel_from_template(self, cli, records_dir, out_dir):
        result = cli(
            "export", "run",
            "-t", "financial-disbursement-history",
            "-f", "excel",
            "-i", str(records_dir), "-o", str(out_dir),
        )
        assert result.exit_code == 0, result.output
        assert list(out_dir.glob("wasilah_payments_*.xlsx"))

    def test_max_rows(self, cli, records_dir, out_dir):
        result = cli(
            "export", "run", "payments", "--max-rows", "1",
            "-i", str(records_dir), "-o", str(out_dir),
        )
        assert result.exit_code == 0, result.output
        assert "Exported 1 rows" in result.output

    def test_dry_run_writes_nothing(self, cli, records_dir, out_dir):
        result = cli(
            "export", "run", "payments", "--status", "completed", "--dry-run",
            "-i", str(records_dir), "-o", str(out_dir),
        )
        assert result.exit_code == 0, result.output
        assert "3 of 5 records match" in result.output
        assert not out_dir.exists()

    @pytest.mark.parametrize(
        "content, message",
        [
            ("{not json", "Error: Expecting property name"),
            ('{"id": "P-1"}', "must contain a JSON list of objects"),
        ],
    )
    def test_dry_run_reports_unreadable_records(self, cli, temp_dir, content, message):
        records_dir = temp_dir / "broken"
        records_dir.mkdir()
        (records_dir / "projects.json").write_text(content, encoding="utf-8")

        result = cli("export", "run", "projects", "--dry-run", "-i", str(records_dir))

        assert result.exit_code == 1
        assert message in result.output
        assert "Traceback" not in result.output

    def test_unknown_template(self, cli, records_dir):
        result = cli("export", "run", "-t", "no-such-report", "-i", str(records_dir))
        assert result.exit_code == 1
        assert "Unknown template: no-such-report" in result.output

    def test_invalid_amount_range(self, cli, records_dir):
        result = cli(
            "export", "run", "payments",
            "--min-amount", "500", "--max-amount", "100",
            "-i", str(records_dir),
        )
        assert result.exit_code == 1
        assert "Minimum amount must not exceed maximum amount" in result.output

    def test_entity_or_template_required(self, cli, records_dir):
        result = cli("export", "run", "-i", str(records_dir))
        assert result.exit_code != 0


class TestCatalogCommands:
    def test_templates(self, cli):
        result = cli("export", "templates")
        assert result.exit_code == 0
        assert "cases-open" in result.output

    def test_templates_by_category(self, cli):
        result = cli("export", "templates", "--category", "Nothing Here")
        assert "No templates found." in result.output

    def test_columns(self, cli):
        result = cli("export", "columns", "projects")
        assert result.exit_code == 0
        assert "budget" in result.output


class TestHistory:
    def test_empty_history(self, cli):
        result = cli("history", "list")
        assert result.exit_code == 0
        assert "No export history found." in result.output

    def test_list_and_show(self, cli, records_dir, out_dir):
        job_id = _run_export(cli, records_dir, out_dir, "projects", "-n", "Quarterly projects")

        listed = cli("history", "list")
        assert listed.exit_code == 0
        assert job_id in listed.output

        shown = cli("history", "show", job_id)
        assert shown.exit_code == 0
        assert "Quarterly projects" in shown.output
        assert "completed" in shown.output

    def test_show_unknown_job(self, cli):
        result = cli("history", "show", "EXP-1")
        assert result.exit_code == 1

    def test_delete(self, cli, records_dir, out_dir):
        job_id = _run_export(cli, records_dir, out_dir, "projects")

        result = cli("history", "delete", job_id, "-y")
        assert result.exit_code == 0
        assert f"Deleted job: {job_id}" in result.output
        assert "No export history found." in cli("history", "list").output

    def test_delete_asks_for_confirmation(self, cli, records_dir, out_dir):
        job_id = _run_export(cli, records_dir, out_dir, "projects")

        result = cli("history", "delete", job_id, input="n\n")
        assert result.exit_code == 1
        assert job_id in cli("history", "list").output

    def test_clear(self, cli, records_dir, out_dir):
        _run_export(cli, records_dir, out_dir, "projects")
        _run_export(cli, records_dir, out_dir, "payments")

        result = cli("history", "clear", "-y")
        assert result.exit_code == 0
        assert "Deleted 2 jobs from history" in result.output

    def test_rerun(self, cli, records_dir, out_dir):
        job_id = _run_export(cli, records_dir, out_dir, "payments", "-c", "id,amount")

        result = cli("history", "rerun", job_id, "-i", str(records_dir), "-o", str(out_dir))
        assert result.exit_code == 0, result.output
        new_id = _JOB_ID.search(result.output).group(1)
        assert new_id != job_id
        assert "Exported 5 rows" in result.output


class TestConfigAndVersion:
    def test_version(self, cli):
        result = cli("version")
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_config_show_json(self, cli, temp_dir):
        result = cli("config", "show", "--format", "json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["general"]["storage_backend"] == "json"
        assert data["general"]["data_dir"] == str(temp_dir / "store")
        assert data["exports"]["namespace"] == "wasilah"

    def test_config_get(self, cli):
        result = cli("config", "get", "exports.history_key")
        assert result.exit_code == 0
        assert "wasilah_export_history" in result.output

    def test_config_get_unknown(self, cli):
        assert cli("config", "get", "exports.nope").exit_code == 1

    def test_config_get_reflects_command_line_overrides(self, cli, temp_dir):
        result = cli("config", "get", "general.data_dir")
        assert result.exit_code == 0
        assert result.output.strip() == str(temp_dir / "store")

    def test_config_get_empty_key(self, cli):
        assert cli("config", "get", " . ").exit_code == 1

    def test_config_init_user_scope(self, cli, temp_dir, monkeypatch):
        target = temp_dir / "home" / "config.yaml"
        monkeypatch.setattr(config_service, "user_config_path", target)

        result = cli("config", "init")
        assert result.exit_code == 0
        assert target.exists()
