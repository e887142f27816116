"""Tests for CLI module."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from cascade_ledger.artifacts import Phase
from cascade_ledger.cli import app
from cascade_ledger.enforcement.rules import MISSING_PREFIX_MESSAGE

runner = CliRunner()


@pytest.fixture
def project_env(temp_dir: Path, plans_root: Path, monkeypatch) -> Path:
    """Point the CLI at the temporary project."""
    monkeypatch.setenv("CASCADE_PROJECT_DIR", str(temp_dir))
    monkeypatch.setenv("CASCADE_LOG_TO_FILE", "false")
    monkeypatch.delenv("CASCADE_ALLOW_UNSAFE_MARKUP", raising=False)
    monkeypatch.delenv("CASCADE_LOG_LEVEL", raising=False)
    return plans_root


def last_json_line(output: str):
    lines = [line for line in output.splitlines() if line.strip()]
    return json.loads(lines[-1])


class TestStatusCommand:
    """Tests for the status command."""

    def test_status_json(self, project_env: Path, login_root: Path) -> None:
        """JSON output lists every unit of work."""
        result = runner.invoke(app, ["status", "--json"])
        assert result.exit_code == 0
        groups = json.loads(result.stdout)
        assert len(groups) == 1
        assert groups[0]["identifier"] == "LOGIN"
        assert groups[0]["display_name"] == "Login"
        assert groups[0]["status"] == "Verified"
        assert groups[0]["anomalous"] is False

    def test_status_with_root_argument(self, temp_dir: Path, write_artifact, monkeypatch) -> None:
        """An explicit root overrides the project directory."""
        monkeypatch.setenv("CASCADE_PROJECT_DIR", str(temp_dir / "elsewhere"))
        write_artifact(Phase.PLAN, "20250816_100000_SIGNUP.md")
        root = temp_dir / ".claude" / "plans"
        result = runner.invoke(app, ["status", str(root), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)[0]["status"] == "Planned"

    def test_status_table(self, project_env: Path, login_root: Path) -> None:
        """Table output includes the counts line."""
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Units of Work (1)" in result.stdout
        assert "Verified: 1" in result.stdout

    def test_status_flags_out_of_order_artifacts(self, project_env: Path, write_artifact) -> None:
        """Orphan verification files show up as anomalous MISSING groups."""
        write_artifact(Phase.VERIFICATION, "20250816_120000_ORPHAN_VERIFICATION.md")
        result = runner.invoke(app, ["status", "--json"])
        group = json.loads(result.stdout)[0]
        assert group["status"] == "Missing"
        assert group["anomalous"] is True

    def test_invalid_configuration(self, project_env: Path, monkeypatch) -> None:
        """Bad environment settings exit with an error."""
        monkeypatch.setenv("CASCADE_LOG_LEVEL", "LOUD")
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestRenderCommand:
    """Tests for the render command."""

    def test_render(self, project_env: Path, write_artifact) -> None:
        path = write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md", "# Login\n\n## Objective\n")
        result = runner.invoke(app, ["render", str(path)])
        assert result.exit_code == 0
        assert 'id="objective"' in result.stdout
        assert "toc-list" not in result.stdout

    def test_render_with_toc(self, project_env: Path, write_artifact) -> None:
        path = write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md", "# Login\n\n## Objective\n")
        result = runner.invoke(app, ["render", str(path), "--toc"])
        assert result.exit_code == 0
        assert '<ul class="toc-list">' in result.stdout

    def test_render_to_file(self, project_env: Path, write_artifact, temp_dir: Path) -> None:
        path = write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md", "hello")
        output = temp_dir / "out.html"
        result = runner.invoke(app, ["render", str(path), "-o", str(output)])
        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8") == "<p>hello</p>\n"

    def test_render_escapes_markup(self, project_env: Path, write_artifact) -> None:
        path = write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md", "<span>raw</span>")
        result = runner.invoke(app, ["render", str(path)])
        assert "<span>" not in result.stdout

    def test_render_unsafe_markup_setting(
        self, project_env: Path, write_artifact, monkeypatch
    ) -> None:
        monkeypatch.setenv("CASCADE_ALLOW_UNSAFE_MARKUP", "true")
        path = write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md", "<span>raw</span>")
        result = runner.invoke(app, ["render", str(path)])
        assert "<span>raw</span>" in result.stdout

    def test_render_missing_file(self, project_env: Path) -> None:
        result = runner.invoke(app, ["render", str(project_env / "missing.md")])
        assert result.exit_code == 0
        assert "could not be found" in result.stdout


class TestValidateCommand:
    """Tests for the validate command."""

    def test_validate_empty_project(self, project_env: Path) -> None:
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 1
        assert "NOT READY" in result.stdout

    def test_validate_writes_report(self, project_env: Path, temp_dir: Path) -> None:
        report = temp_dir / "report.md"
        result = runner.invoke(app, ["validate", "--report", str(report)])
        assert result.exit_code == 1
        assert report.read_text(encoding="utf-8").startswith("## Cascade Validation Report")


class TestEnforceCommand:
    """Tests for the enforcement hook command."""

    def test_accepts_valid_todos(self, project_env: Path) -> None:
        payload = {"todos": [{"content": "Phase 1: login", "status": "pending"}]}
        result = runner.invoke(app, ["enforce"], input=json.dumps(payload))
        assert result.exit_code == 0
        assert last_json_line(result.stdout) == payload

    def test_rejects_invalid_todo(self, project_env: Path) -> None:
        payload = {"todos": [{"content": "login", "status": "pending"}]}
        result = runner.invoke(app, ["enforce"], input=json.dumps(payload))
        assert result.exit_code == 0
        response = last_json_line(result.stdout)
        assert response["error"] == MISSING_PREFIX_MESSAGE
        assert response["todo"]["content"] == "login"

    def test_bad_json_exits_with_error(self, project_env: Path) -> None:
        result = runner.invoke(app, ["enforce"], input="{not json")
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_writes_log_file(self, project_env: Path, temp_dir: Path, monkeypatch) -> None:
        monkeypatch.setenv("CASCADE_LOG_TO_FILE", "true")
        payload = {"todos": [{"content": "Phase 1: login", "status": "pending"}]}
        result = runner.invoke(app, ["enforce"], input=json.dumps(payload))
        assert result.exit_code == 0
        log_file = temp_dir / ".claude" / "logs" / "todo_enforcer.log"
        assert "Processed 1 todos successfully" in log_file.read_text(encoding="utf-8")


class TestVersionCommand:
    """Tests for the version command."""

    def test_version(self) -> None:
        """Show version information."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "Cascade Ledger" in result.stdout
