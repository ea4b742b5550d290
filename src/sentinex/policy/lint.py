"""
Static checks for policy files.

Lint never changes what the engine decides. It flags policies that are
valid but probably not what the author meant: allow-all prompt patterns,
tools enabled without any allow list, roots that cover the whole project.

Severities:
    - error: The policy can't work as written (tool enabled, nothing allowed)
    - warn: The policy works but is broader than it should be
"""

import re
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from sentinex.schema import PolicyConfig, PolicyDefault

ALLOW_ALL_PATTERNS = {"", ".*", ".+", "^.*$", "^.+$", "^.*", "^", "$", "[\\s\\S]*"}
BROAD_ROOTS = {".", "./", "/", "~", "~/", "*", "**"}


class LintSeverity(str, Enum):
    WARN = "warn"
    ERROR = "error"


class LintFinding(BaseModel):
    """A single lint result."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    code: str
    severity: LintSeverity
    message: str


def _warn(code: str, message: str) -> LintFinding:
    return LintFinding(code=code, severity=LintSeverity.WARN, message=message)


def _error(code: str, message: str) -> LintFinding:
    return LintFinding(code=code, severity=LintSeverity.ERROR, message=message)


def _is_broad_host(pattern: str) -> bool:
    pattern = pattern.strip().lower()
    if pattern in ("*", "*.*"):
        return True
    # "*.com" style: wildcard over a bare TLD
    return pattern.startswith("*.") and "." not in pattern[2:]


def _is_broad_root(root: str, working_dir: Path) -> bool:
    if root.strip() in BROAD_ROOTS:
        return True
    resolved = (working_dir / Path(root)).resolve()
    return resolved in (
        Path(resolved.anchor),
        Path.home().resolve(),
        working_dir.resolve(),
    )


def lint_policy(policy: PolicyConfig, working_dir: str | Path = ".") -> list[LintFinding]:
    """
    Check a policy for risky or inert configuration.

    Args:
        policy: A loaded policy
        working_dir: Directory relative roots are resolved against

    Returns:
        Findings in a stable order (prompts, http.fetch, fs.read, exec)
    """
    working_dir = Path(working_dir)
    findings: list[LintFinding] = []

    if policy.default == PolicyDefault.ALLOW:
        findings.append(
            _warn("DEFAULT_ALLOW", "Policy default is 'allow'; unmatched prompts are allowed")
        )

    for list_name, patterns in (
        ("deny.prompts", policy.deny.prompts),
        ("allow.prompts", policy.allow.prompts),
    ):
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                findings.append(
                    _error(
                        "PROMPT_INVALID_REGEX",
                        f"Invalid regex in {list_name}: '{pattern}' ({e})",
                    )
                )

    for pattern in policy.allow.prompts:
        if pattern.strip() in ALLOW_ALL_PATTERNS:
            findings.append(
                _warn(
                    "PROMPT_ALLOW_ALL",
                    f"allow.prompts pattern '{pattern}' matches every prompt",
                )
            )

    http = policy.allow.tools.http_fetch
    if http.enabled:
        if not http.hosts:
            findings.append(
                _error("HTTP_FETCH_NO_HOSTS", "http.fetch is enabled but no hosts are allowed")
            )
        for host in http.hosts:
            if _is_broad_host(host):
                findings.append(
                    _warn(
                        "HTTP_FETCH_HOST_TOO_BROAD",
                        f"http.fetch host pattern '{host}' covers too many hosts",
                    )
                )

    fs = policy.allow.tools.fs_read
    if fs.enabled:
        if not fs.roots:
            findings.append(
                _error("FS_READ_NO_ROOTS", "fs.read is enabled but no roots are configured")
            )
        for root in fs.roots:
            if _is_broad_root(root, working_dir):
                findings.append(
                    _warn(
                        "FS_READ_ROOT_TOO_BROAD",
                        f"fs.read root '{root}' exposes the whole project or more",
                    )
                )

    if policy.allow.tools.exec.enabled:
        findings.append(
            _warn("EXEC_ENABLED", "allow.tools.exec.enabled has no effect; there is no exec tool")
        )

    return findings


def should_fail(findings: list[LintFinding], fail_on: LintSeverity) -> bool:
    """True if any finding is at or above the fail_on severity."""
    if fail_on == LintSeverity.WARN:
        return bool(findings)
    return any(f.severity == LintSeverity.ERROR for f in findings)
