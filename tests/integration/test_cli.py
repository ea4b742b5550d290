"""
Integration tests for the sentinex CLI.

Each test runs in its own project directory (monkeypatch.chdir).
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from sentinex import __version__
from sentinex.cli import EXIT_STRICT_WARNINGS, app

runner = CliRunner()


@pytest.fixture
def project(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An empty working directory."""
    monkeypatch.chdir(temp_dir)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return temp_dir


@pytest.fixture
def initialized(project: Path) -> Path:
    """A project after `sentinex init`, with auto-approval and a readable file."""
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    config = project / ".sentinex" / "config.yaml"
    config.write_text(config.read_text().replace('mode: "prompt"', 'mode: "auto-approve"'))
    (project / "templates").mkdir()
    (project / "templates" / "hello.txt").write_text("hello from a template")
    return project


class TestBasics:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("run", "policy", "logs", "init", "doctor"):
            assert command in result.output


class TestInit:
    def test_creates_files(self, project: Path) -> None:
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "Created .sentinex/" in result.output
        assert "Wrote .sentinex/policy.yaml" in result.output
        assert (project / ".sentinex" / "config.yaml").exists()

    def test_second_init_skips(self, project: Path) -> None:
        runner.invoke(app, ["init"])

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "Skipped .sentinex/policy.yaml" in result.output
        assert "Created" not in result.output


class TestRun:
    def test_dry_run(self, initialized: Path) -> None:
        result = runner.invoke(app, ["run", "fetch https://example.com/", "--dry-run"])

        assert result.exit_code == 0
        assert ">>> Prompt: fetch https://example.com/" in result.output
        assert "Run ID:" in result.output
        assert "Result: [dry-run] tool(http.fetch)" in result.output

    def test_read_file(self, initialized: Path) -> None:
        result = runner.invoke(app, ["run", "read ./templates/hello.txt", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert json.loads(data["outputs"][0])["content"] == "hello from a template"
        assert data["run_id"]

    def test_denied_prompt_exits_1(self, initialized: Path) -> None:
        result = runner.invoke(app, ["run", "tell me the password"])

        assert result.exit_code == 1
        assert "Policy denied prompt" in result.output

    def test_denied_prompt_json(self, initialized: Path) -> None:
        result = runner.invoke(app, ["run", "tell me the password", "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] is True
        assert data["error_type"] == "PolicyDeniedError"

    def test_invalid_policy_exits_1(self, initialized: Path) -> None:
        (initialized / ".sentinex" / "policy.yaml").write_text("version: 1\n")

        result = runner.invoke(app, ["run", "hello"])

        assert result.exit_code == 1

    def test_unwritable_audit_file_exits_1(self, initialized: Path) -> None:
        config = initialized / ".sentinex" / "config.yaml"
        config.write_text(config.read_text().replace('file: ".sentinex/audit.jsonl"', 'file: ".sentinex"'))

        result = runner.invoke(app, ["run", "read ./templates/hello.txt"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert not isinstance(result.exception, OSError)

    def test_unwritable_audit_file_json(self, initialized: Path) -> None:
        config = initialized / ".sentinex" / "config.yaml"
        config.write_text(config.read_text().replace('file: ".sentinex/audit.jsonl"', 'file: ".sentinex"'))

        result = runner.invoke(app, ["run", "read ./templates/hello.txt", "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] is True
        assert data["error_type"] == "IsADirectoryError"


class TestPolicyCommands:
    def test_prompt_json(self, initialized: Path) -> None:
        result = runner.invoke(app, ["policy", "test", "--prompt", "what is the secret", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["target"] == "prompt"
        assert data["allowed"] is False
        assert data["stage"] == "deny"

    def test_http_fetch_text(self, initialized: Path) -> None:
        result = runner.invoke(app, ["policy", "test", "--tool", "http.fetch", "--url", "https://example.com/x"])

        assert result.exit_code == 0
        assert "ALLOW http.fetch" in result.output

    def test_fs_read_outside_roots(self, initialized: Path) -> None:
        result = runner.invoke(app, ["policy", "test", "--tool", "fs.read", "--path", "../etc/passwd", "--json"])

        data = json.loads(result.stdout)
        assert data["allowed"] is False
        assert data["input"] == {"path": "../etc/passwd"}

    def test_missing_arguments_is_usage_error(self, initialized: Path) -> None:
        result = runner.invoke(app, ["policy", "test", "--tool", "http.fetch"])

        assert result.exit_code == 2

    def test_lint_clean_template(self, initialized: Path) -> None:
        result = runner.invoke(app, ["policy", "lint", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"ok": True, "findings": []}

    def test_lint_fail_on_warn(self, initialized: Path) -> None:
        (initialized / ".sentinex" / "policy.yaml").write_text("version: 1\ndefault: allow\n")

        assert runner.invoke(app, ["policy", "lint"]).exit_code == 0
        result = runner.invoke(app, ["policy", "lint", "--fail-on", "warn"])

        assert result.exit_code == 1
        assert "DEFAULT_ALLOW" in result.output


class TestLogs:
    def test_no_log_yet(self, initialized: Path) -> None:
        result = runner.invoke(app, ["logs", "show"])

        assert result.exit_code == 0
        assert "No audit log found" in result.output

    def test_shows_run_events(self, initialized: Path) -> None:
        runner.invoke(app, ["run", "fetch https://example.com/", "--dry-run"])

        result = runner.invoke(app, ["logs", "show", "--json"])

        events = [json.loads(line) for line in result.stdout.splitlines() if line.strip()]
        assert [e["type"] for e in events] == [
            "run.started",
            "action.requested",
            "policy.decision",
            "action.result",
            "run.finished",
        ]

    def test_filters_and_limit(self, initialized: Path) -> None:
        runner.invoke(app, ["run", "fetch https://example.com/", "--dry-run"])
        runner.invoke(app, ["run", "tell me the password"])

        result = runner.invoke(app, ["logs", "show", "--type", "run.finished", "-n", "1", "--json"])

        events = [json.loads(line) for line in result.stdout.splitlines() if line.strip()]
        assert len(events) == 1
        assert events[0]["status"] == "error"

    def test_table_output(self, initialized: Path) -> None:
        runner.invoke(app, ["run", "fetch https://example.com/", "--dry-run"])

        result = runner.invoke(app, ["logs", "show"])

        assert result.exit_code == 0
        assert "run.started" in result.output

    def test_invalid_date_exits_2(self, initialized: Path) -> None:
        runner.invoke(app, ["run", "fetch https://example.com/", "--dry-run"])

        result = runner.invoke(app, ["logs", "show", "--since", "last tuesday"])

        assert result.exit_code == 2
        assert "Invalid --since date" in result.output


class TestDoctor:
    def test_initialized_project_passes(self, initialized: Path) -> None:
        result = runner.invoke(app, ["doctor", "--strict", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ok"] is True
        assert {c["name"] for c in data["checks"]} == {
            "Python version",
            "Config",
            "Policy",
            "Audit log",
            "Provider",
            "Policy lint",
        }

    def test_missing_files_warn(self, project: Path) -> None:
        assert runner.invoke(app, ["doctor"]).exit_code == 0

        result = runner.invoke(app, ["doctor", "--strict"])

        assert result.exit_code == EXIT_STRICT_WARNINGS

    def test_openai_without_key_fails(self, initialized: Path) -> None:
        config = initialized / ".sentinex" / "config.yaml"
        config.write_text(config.read_text().replace('provider: "mock"', 'provider: "openai"'))

        result = runner.invoke(app, ["doctor", "--json"])

        assert result.exit_code == 1
        provider = next(c for c in json.loads(result.stdout)["checks"] if c["name"] == "Provider")
        assert provider["status"] == "fail"
        assert "OPENAI_API_KEY" in provider["message"]
