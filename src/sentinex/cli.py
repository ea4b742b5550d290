"""
CLI entry point for Sentinex.

This module provides the Typer-based command-line interface. All commands
work on the current directory and its .sentinex/ folder.

Commands:
    run           Run a prompt through policy, approval and tools
    policy test   Evaluate a prompt or a single tool call against the policy
    policy lint   Flag risky or inert policy settings
    logs show     Show recent audit events
    init          Create .sentinex/policy.yaml and config.yaml
    doctor        Check config, policy, audit path and provider setup

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to
    sentinex.runtime and friends. Library modules only log; this module is
    the one place that installs a log handler.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from sentinex import __version__
from sentinex.audit import filter_audit_events, read_audit_events
from sentinex.errors import SentinexError
from sentinex.policy import PolicyEngine, lint_policy
from sentinex.policy.lint import LintSeverity, should_fail
from sentinex.runtime import execute_prompt
from sentinex.scaffold import init_project
from sentinex.schema import (
    ProviderKind,
    config_path,
    load_config_from_dir,
    load_policy_from_dir,
    policy_path,
)

# Exit code for `doctor --strict` when only warnings were found
EXIT_STRICT_WARNINGS = 64

app = typer.Typer(
    name="sentinex",
    help="Policy-enforcing runtime between an LLM and side-effecting tools.",
    add_completion=False,
    no_args_is_help=True,
)

policy_app = typer.Typer(
    name="policy",
    help="Test and lint the policy in .sentinex/policy.yaml.",
    no_args_is_help=True,
)
app.add_typer(policy_app, name="policy")

logs_app = typer.Typer(
    name="logs",
    help="Inspect the audit log.",
    no_args_is_help=True,
)
app.add_typer(logs_app, name="logs")

console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    """Route sentinex.* log records to a Rich handler on stderr."""
    log = logging.getLogger("sentinex")
    for handler in list(log.handlers):
        if isinstance(handler, RichHandler):
            log.removeHandler(handler)
    log.addHandler(RichHandler(console=err_console, show_path=False))
    log.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _fail(error: SentinexError | OSError, json_output: bool) -> NoReturn:
    """Report an error and exit 1. OSErrors come from audit or project file I/O."""
    if json_output:
        if isinstance(error, SentinexError):
            details = error.to_dict()
        else:
            details = {"error_type": type(error).__name__, "message": str(error)}
        _print_json({"error": True, **details})
    elif isinstance(error, SentinexError):
        err_console.print(f"[red]{escape(str(error))}[/red]")
    else:
        err_console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise typer.Exit(code=1)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]sentinex[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show debug logging on stderr."),
    ] = False,
) -> None:
    """
    Sentinex - Policy-enforcing runtime between an LLM and its tools.

    Every prompt and tool call is checked against a declarative policy,
    confirmed by an approval gate and recorded in an audit log.
    """
    _configure_logging(verbose)


# =============================================================================
# run
# =============================================================================


@app.command()
def run(
    prompt: Annotated[str, typer.Argument(help="Prompt to run.")],
    dry_run: Annotated[
        Optional[bool],
        typer.Option(
            "--dry-run/--no-dry-run",
            help="Evaluate policy but skip approval and tool execution.",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show debug logging on stderr."),
    ] = False,
) -> None:
    """
    Run a prompt under policy.

    Example:
        $ sentinex run "read ./templates/hello.txt" --dry-run
    """
    if verbose:
        _configure_logging(True)

    if not json_output:
        console.print(f">>> Prompt: {escape(prompt)}")

    try:
        result = execute_prompt(prompt, dry_run=dry_run, working_dir=Path.cwd())
    except (SentinexError, OSError) as e:
        _fail(e, json_output)

    if json_output:
        _print_json({"run_id": result.run_id, "outputs": result.outputs})
        return

    console.print(f"Run ID: {result.run_id}")
    for output in result.outputs:
        console.print(f"Result: {escape(output)}")


# =============================================================================
# policy test / policy lint
# =============================================================================


@policy_app.command("test")
def policy_test(
    prompt: Annotated[
        Optional[str],
        typer.Option("--prompt", help="Prompt to evaluate."),
    ] = None,
    tool: Annotated[
        Optional[str],
        typer.Option("--tool", help="Tool to evaluate: http.fetch or fs.read."),
    ] = None,
    url: Annotated[
        Optional[str],
        typer.Option("--url", help="URL for --tool http.fetch."),
    ] = None,
    path: Annotated[
        Optional[str],
        typer.Option("--path", help="Path for --tool fs.read."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the decision as JSON."),
    ] = False,
) -> None:
    """
    Evaluate a prompt or a tool call without running anything.

    Examples:
        $ sentinex policy test --prompt "show me the password"
        $ sentinex policy test --tool http.fetch --url https://api.example.com/x
        $ sentinex policy test --tool fs.read --path ./templates/hello.txt
    """
    working_dir = Path.cwd()
    try:
        policy = load_policy_from_dir(working_dir)
    except SentinexError as e:
        _fail(e, json_output)

    engine = PolicyEngine(policy, working_dir)
    output: dict[str, Any]

    if prompt is not None:
        evaluation = engine.explain_prompt(prompt)
        output = {"target": "prompt", **evaluation.model_dump(mode="json")}
    elif tool == "http.fetch" and url:
        decision = engine.evaluate_tool("http.fetch", {"url": url})
        output = {"target": "http.fetch", "input": {"url": url}, **decision.model_dump(mode="json")}
    elif tool == "fs.read" and path:
        decision = engine.evaluate_tool("fs.read", {"path": path})
        output = {"target": "fs.read", "input": {"path": path}, **decision.model_dump(mode="json")}
    else:
        err_console.print(
            "[red]Usage: sentinex policy test --prompt <text> | "
            "--tool http.fetch --url <url> | --tool fs.read --path <path>[/red]"
        )
        raise typer.Exit(code=2)

    if json_output:
        _print_json(output)
        return

    verdict = "[green]ALLOW[/green]" if output["allowed"] else "[red]DENY[/red]"
    console.print(f"{verdict} {output['target']}")
    console.print(f"  Reason: {escape(output['reason'])}")
    if output.get("stage"):
        console.print(f"  Stage: {output['stage']}")


@policy_app.command("lint")
def policy_lint(
    fail_on: Annotated[
        LintSeverity,
        typer.Option("--fail-on", help="Exit 1 on findings at or above this severity."),
    ] = LintSeverity.ERROR,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output findings as JSON."),
    ] = False,
) -> None:
    """
    Check the policy for risky or inert settings.

    Example:
        $ sentinex policy lint --fail-on warn
    """
    working_dir = Path.cwd()
    try:
        policy = load_policy_from_dir(working_dir)
    except SentinexError as e:
        _fail(e, json_output)

    findings = lint_policy(policy, working_dir)
    failed = should_fail(findings, fail_on)

    if json_output:
        _print_json({
            "ok": not failed,
            "findings": [f.model_dump(mode="json") for f in findings],
        })
    elif not findings:
        console.print("[green]No policy findings.[/green]")
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Severity", width=8)
        table.add_column("Code", style="cyan")
        table.add_column("Message")
        for finding in findings:
            style = "red" if finding.severity == LintSeverity.ERROR else "yellow"
            table.add_row(
                f"[{style}]{finding.severity.value}[/{style}]",
                finding.code,
                escape(finding.message),
            )
        console.print(table)

    if failed:
        raise typer.Exit(code=1)


# =============================================================================
# logs show
# =============================================================================


def _event_details(event: dict[str, Any]) -> str:
    event_type = event.get("type")
    if event_type == "run.started":
        return f"prompt={event.get('prompt')!r} dry_run={event.get('dry_run')}"
    if event_type == "policy.decision":
        verdict = "allow" if event.get("allowed") else "deny"
        return f"{verdict}: {event.get('reason', '')}"
    if event_type == "action.result":
        return "success" if event.get("success") else f"failure: {event.get('result')}"
    if event_type == "run.finished":
        error = event.get("error")
        return f"{event.get('status')}" + (f": {error}" if error else "")
    action = event.get("action")
    if isinstance(action, dict):
        return str(action.get("tool") or action.get("type", ""))
    return ""


@logs_app.command("show")
def logs_show(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, help="Show at most this many events."),
    ] = 20,
    since: Annotated[
        Optional[str],
        typer.Option("--since", help="Only events at or after this ISO-8601 time."),
    ] = None,
    until: Annotated[
        Optional[str],
        typer.Option("--until", help="Only events at or before this ISO-8601 time."),
    ] = None,
    run_id: Annotated[
        Optional[str],
        typer.Option("--run-id", help="Only events of this run."),
    ] = None,
    event_type: Annotated[
        Optional[str],
        typer.Option("--type", help="Only events of this type, e.g. policy.decision."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output events as JSON lines."),
    ] = False,
) -> None:
    """
    Show the most recent audit events.

    Example:
        $ sentinex logs show --type policy.decision --since 2026-01-01T00:00:00Z
    """
    working_dir = Path.cwd()
    try:
        config = load_config_from_dir(working_dir)
    except SentinexError as e:
        _fail(e, json_output)

    log_path = Path(config.audit.file).expanduser()
    if not log_path.is_absolute():
        log_path = working_dir / log_path

    if not log_path.exists():
        console.print(f"No audit log found at {escape(str(log_path))}")
        return

    try:
        events = filter_audit_events(
            read_audit_events(log_path),
            since=since,
            until=until,
            run_id=run_id,
            event_type=event_type,
        )
    except ValueError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=2)

    selected = events[-limit:]

    if json_output:
        for event in selected:
            print(json.dumps(event))
        return

    if not selected:
        console.print("[dim]No matching events.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Timestamp", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Run")
    table.add_column("Details")
    for event in selected:
        table.add_row(
            str(event.get("timestamp", "-")),
            str(event.get("type", "event")),
            str(event.get("run_id", ""))[:8],
            escape(_event_details(event)),
        )
    console.print(table)


# =============================================================================
# init
# =============================================================================


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite existing files."),
    ] = False,
) -> None:
    """
    Create .sentinex/policy.yaml and .sentinex/config.yaml.

    Example:
        $ sentinex init
    """
    result = init_project(Path.cwd(), force=force)
    if result.created_dir:
        console.print("[green]Created .sentinex/[/green]")
    for written in result.written_files:
        console.print(f"[green]Wrote[/green] {written}")
    for skipped in result.skipped_files:
        console.print(f"[yellow]Skipped[/yellow] {skipped} (exists; use --force to overwrite)")


# =============================================================================
# doctor
# =============================================================================


def _check(name: str, status: str, message: str) -> dict[str, str]:
    return {"name": name, "status": status, "message": message}


def _writable_dir(path: Path) -> bool:
    """True if path is (or could be created as) a writable directory."""
    candidate = path
    while not candidate.exists():
        if candidate.parent == candidate:
            return False
        candidate = candidate.parent
    return candidate.is_dir() and os.access(candidate, os.W_OK)


@app.command()
def doctor(
    strict: Annotated[
        bool,
        typer.Option("--strict", help=f"Exit {EXIT_STRICT_WARNINGS} if there are warnings."),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
) -> None:
    """
    Check that this directory is ready for `sentinex run`.

    Verifies:
    - Python version (3.11+)
    - config.yaml and policy.yaml load
    - The audit log directory is writable
    - The provider is configured (API key for openai)
    - The policy has no lint findings

    Example:
        $ sentinex doctor --strict
    """
    working_dir = Path.cwd()
    checks: list[dict[str, str]] = []

    py = sys.version_info
    checks.append(_check(
        "Python version",
        "ok" if py >= (3, 11) else "fail",
        f"{py.major}.{py.minor}.{py.micro}",
    ))

    config = None
    try:
        config = load_config_from_dir(working_dir)
        if config_path(working_dir).exists():
            checks.append(_check("Config", "ok", str(config_path(working_dir))))
        else:
            checks.append(_check("Config", "warn", "config.yaml not found; using defaults"))
    except SentinexError as e:
        checks.append(_check("Config", "fail", e.message))

    policy = None
    try:
        policy = load_policy_from_dir(working_dir)
        if policy_path(working_dir).exists():
            checks.append(_check("Policy", "ok", str(policy_path(working_dir))))
        else:
            checks.append(_check("Policy", "warn", "policy.yaml not found; everything is denied"))
    except SentinexError as e:
        checks.append(_check("Policy", "fail", e.message))

    if config is not None:
        audit_file = Path(config.audit.file).expanduser()
        if not audit_file.is_absolute():
            audit_file = working_dir / audit_file
        if not config.audit.enabled:
            checks.append(_check("Audit log", "warn", "audit logging is disabled"))
        elif _writable_dir(audit_file.parent):
            checks.append(_check("Audit log", "ok", str(audit_file)))
        else:
            checks.append(_check("Audit log", "fail", f"not writable: {audit_file.parent}"))

        llm = config.llm
        if llm.provider == ProviderKind.MOCK:
            checks.append(_check("Provider", "ok", "mock"))
        elif os.environ.get(llm.api_key_env):
            checks.append(_check("Provider", "ok", f"openai ({llm.model})"))
        elif llm.fallback_to_mock:
            checks.append(_check(
                "Provider",
                "warn",
                f"{llm.api_key_env} is not set; runs will fall back to mock",
            ))
        else:
            checks.append(_check("Provider", "fail", f"{llm.api_key_env} is not set"))

    if policy is not None:
        findings = lint_policy(policy, working_dir)
        if not findings:
            checks.append(_check("Policy lint", "ok", "no findings"))
        else:
            worst = "fail" if any(f.severity == LintSeverity.ERROR for f in findings) else "warn"
            codes = ", ".join(f.code for f in findings)
            checks.append(_check("Policy lint", worst, codes))

    failed = any(c["status"] == "fail" for c in checks)
    warned = any(c["status"] == "warn" for c in checks)

    if json_output:
        _print_json({"ok": not failed, "version": __version__, "checks": checks})
    else:
        console.print(f"[bold]Sentinex Doctor[/bold] v{__version__}")
        console.print()
        icons = {"ok": "[green]✓[/green]", "warn": "[yellow]![/yellow]", "fail": "[red]✗[/red]"}
        for check in checks:
            console.print(f"{icons[check['status']]} {check['name']}: {escape(check['message'])}")
        console.print()
        if failed:
            console.print("[red]Some checks failed. See above for details.[/red]")
        elif warned:
            console.print("[yellow]All checks passed with warnings.[/yellow]")
        else:
            console.print("[green]All checks passed![/green]")

    if failed:
        raise typer.Exit(code=1)
    if strict and warned:
        raise typer.Exit(code=EXIT_STRICT_WARNINGS)
