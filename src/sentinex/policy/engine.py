"""
Policy Engine for Sentinex.

The Policy Engine is the security boundary of Sentinex. Every prompt and
every tool call passes through it before anything else happens.

Design Principles:
    - Deny wins: deny rules are checked before allow rules, always
    - Fail-closed: Invalid patterns or unparsable input result in denial
    - Predictable: Same inputs always produce same decisions
    - Auditable: All decisions include a non-empty reason

How it works:
    1. Prompts are matched against deny.prompts, then allow.prompts
       (regex search, first match wins), then the policy default
    2. Tool calls are dispatched to a tool-specific evaluator
    3. Each evaluator checks enabled, then deny rules, then allow rules

Security Note:
    This module is security-critical. Paths are resolved to absolute form
    before matching and compared on separator boundaries, never by naked
    substring, so "/tmp/allowed-other" is not under "/tmp/allowed".
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel

from sentinex.actions import FS_READ, HTTP_FETCH
from sentinex.schema import (
    PolicyConfig,
    PolicyDecision,
    PolicyDefault,
    PromptEvaluation,
    PromptStage,
)


class PolicyEngine:
    """
    Central policy evaluator for Sentinex.

    Usage:
        engine = PolicyEngine(policy, working_dir="/srv/project")
        decision = engine.evaluate_tool("fs.read", {"path": "./notes.txt"})
        if not decision.allowed:
            print(decision.reason)

    The engine is stateless apart from the policy and working directory,
    so one instance can be shared between runs.

    Attributes:
        policy: The PolicyConfig to enforce
        working_dir: Directory relative paths are resolved against
    """

    def __init__(self, policy: PolicyConfig, working_dir: str | Path = ".") -> None:
        self.policy = policy
        self.working_dir = Path(working_dir)

    # =========================================================================
    # Prompt Evaluation
    # =========================================================================

    def explain_prompt(self, prompt: str) -> PromptEvaluation:
        """
        Evaluate a prompt and report which stage decided.

        Args:
            prompt: The user prompt

        Returns:
            PromptEvaluation with stage and matched pattern
        """
        for pattern in self.policy.deny.prompts:
            try:
                matched = re.search(pattern, prompt) is not None
            except re.error:
                return PromptEvaluation(
                    allowed=False,
                    reason=f"Invalid regex in deny.prompts: '{pattern}'",
                    stage=PromptStage.INVALID,
                    matched_pattern=pattern,
                )
            if matched:
                return PromptEvaluation(
                    allowed=False,
                    reason=f"Matched prompt deny pattern '{pattern}'",
                    stage=PromptStage.DENY,
                    matched_pattern=pattern,
                )

        for pattern in self.policy.allow.prompts:
            try:
                matched = re.search(pattern, prompt) is not None
            except re.error:
                return PromptEvaluation(
                    allowed=False,
                    reason=f"Invalid regex in allow.prompts: '{pattern}'",
                    stage=PromptStage.INVALID,
                    matched_pattern=pattern,
                )
            if matched:
                return PromptEvaluation(
                    allowed=True,
                    reason=f"Matched prompt allow pattern '{pattern}'",
                    stage=PromptStage.ALLOW,
                    matched_pattern=pattern,
                )

        if self.policy.default == PolicyDefault.ALLOW:
            return PromptEvaluation(
                allowed=True,
                reason="No pattern matched; policy default is allow",
                stage=PromptStage.DEFAULT,
            )
        return PromptEvaluation(
            allowed=False,
            reason="No allow pattern matched and policy default is deny",
            stage=PromptStage.DEFAULT,
        )

    def evaluate_prompt(self, prompt: str) -> PolicyDecision:
        """Evaluate a prompt against deny.prompts, allow.prompts and the default."""
        return self.explain_prompt(prompt).to_decision()

    # =========================================================================
    # Tool Evaluation
    # =========================================================================

    def evaluate_tool(self, tool_name: str, tool_input: Any) -> PolicyDecision:
        """
        Evaluate a tool call against the policy.

        Args:
            tool_name: The tool being called (e.g., "fs.read")
            tool_input: A validated input model or a plain mapping

        Returns:
            PolicyDecision indicating allow/deny with reason
        """
        args = _as_args(tool_input)

        if tool_name == HTTP_FETCH:
            return self._evaluate_http_fetch(args)
        if tool_name == FS_READ:
            return self._evaluate_fs_read(args)
        return PolicyDecision.deny(
            f"Unsupported tool: {tool_name}",
            rule="unsupported_tool",
        )

    # =========================================================================
    # HTTP Policy Evaluation
    # =========================================================================

    def _evaluate_http_fetch(self, args: Mapping[str, Any]) -> PolicyDecision:
        """
        Evaluate http.fetch against policy.

        Security checks:
        1. Tool must be enabled
        2. URL must parse with an http(s) scheme and a host
        3. Host must not match any deny.tools["http.fetch"].hosts pattern
        4. Host must match an allow.tools["http.fetch"].hosts pattern
        """
        rules = self.policy.allow.tools.http_fetch
        if not rules.enabled:
            return PolicyDecision.deny("http.fetch is disabled by policy", rule="disabled")

        url = args.get("url")
        if not isinstance(url, str) or not url:
            return PolicyDecision.deny("No URL provided", rule="invalid_url")

        try:
            parsed = urlsplit(url)
            hostname = parsed.hostname
        except ValueError:
            return PolicyDecision.deny(f"Invalid URL: {url}", rule="invalid_url")

        if not parsed.scheme or not hostname:
            return PolicyDecision.deny(f"Invalid URL: {url}", rule="invalid_url")
        if parsed.scheme.lower() not in ("http", "https"):
            return PolicyDecision.deny(
                f"Unsupported URL scheme '{parsed.scheme}'",
                rule="invalid_url",
            )

        hostname = hostname.lower()

        for pattern in self.policy.deny.tools.http_fetch.hosts:
            if host_matches(hostname, pattern):
                return PolicyDecision.deny(
                    f"Host '{hostname}' matched deny pattern '{pattern}'",
                    rule=f"deny.hosts[{pattern}]",
                )

        for pattern in rules.hosts:
            if host_matches(hostname, pattern):
                return PolicyDecision.allow(
                    f"Host '{hostname}' allowed by pattern '{pattern}'",
                    rule=f"allow.hosts[{pattern}]",
                )

        return PolicyDecision.deny(
            f"Host '{hostname}' is not in allow list",
            rule="allow.hosts",
        )

    # =========================================================================
    # Filesystem Policy Evaluation
    # =========================================================================

    def _evaluate_fs_read(self, args: Mapping[str, Any]) -> PolicyDecision:
        """
        Evaluate fs.read against policy.

        Security checks:
        1. Tool must be enabled
        2. Path is resolved against the working directory (handles ..)
        3. Path must not be equal to or nested under a deny path
        4. At least one root must be configured
        5. Path must be equal to or nested under an allowed root
        """
        rules = self.policy.allow.tools.fs_read
        if not rules.enabled:
            return PolicyDecision.deny("fs.read is disabled by policy", rule="disabled")

        raw_path = args.get("path")
        if not isinstance(raw_path, str) or not raw_path:
            return PolicyDecision.deny("No path provided", rule="invalid_path")

        try:
            requested = self.resolve_path(raw_path)
            deny_paths = [(p, self.resolve_path(p)) for p in self.policy.deny.tools.fs_read.paths]
            roots = [(r, self.resolve_path(r)) for r in rules.roots]
        except (ValueError, OSError) as e:
            return PolicyDecision.deny(f"Invalid path: {e}", rule="invalid_path")

        for deny_path, resolved in deny_paths:
            if path_within(requested, resolved):
                return PolicyDecision.deny(
                    f"Path matched deny path '{deny_path}'",
                    rule=f"deny.paths[{deny_path}]",
                )

        if not roots:
            return PolicyDecision.deny("No fs.read roots configured", rule="allow.roots=[]")

        for root, resolved in roots:
            if path_within(requested, resolved):
                return PolicyDecision.allow(
                    f"Path is under allowed root '{root}'",
                    rule=f"allow.roots[{root}]",
                )

        return PolicyDecision.deny(
            "Requested path is outside allowed roots",
            rule="allow.roots",
        )

    def resolve_path(self, path: str) -> Path:
        """Resolve a path against the working directory. A leading "~" is not expanded."""
        if "\x00" in path:
            msg = "embedded null byte"
            raise ValueError(msg)
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.working_dir / candidate
        return candidate.resolve()


# =============================================================================
# Matching Helpers
# =============================================================================


def host_matches(hostname: str, pattern: str) -> bool:
    """
    Check if a hostname matches a host pattern.

    Examples:
        api.example.com matches api.example.com
        api.example.com matches *.example.com
        example.com does NOT match *.example.com
    """
    hostname = hostname.lower()
    pattern = pattern.strip().lower()
    if pattern.startswith("*."):
        suffix = pattern[1:]
        return hostname.endswith(suffix) and hostname != pattern[2:]
    return hostname == pattern


def path_within(path: Path, root: Path) -> bool:
    """True if path equals root or is nested under it on a separator boundary."""
    path_str = str(path)
    root_str = str(root)
    if path_str == root_str:
        return True
    prefix = root_str if root_str.endswith(os.sep) else root_str + os.sep
    return path_str.startswith(prefix)


def _as_args(tool_input: Any) -> Mapping[str, Any]:
    if isinstance(tool_input, BaseModel):
        return tool_input.model_dump()
    if isinstance(tool_input, Mapping):
        return tool_input
    return {}


# =============================================================================
# Module-level convenience wrappers
# =============================================================================


def evaluate_prompt(prompt: str, policy: PolicyConfig) -> PolicyDecision:
    """Evaluate a prompt without constructing an engine."""
    return PolicyEngine(policy).evaluate_prompt(prompt)


def explain_prompt(prompt: str, policy: PolicyConfig) -> PromptEvaluation:
    """Detailed prompt evaluation without constructing an engine."""
    return PolicyEngine(policy).explain_prompt(prompt)


def evaluate_tool(
    tool_name: str,
    tool_input: Any,
    policy: PolicyConfig,
    working_dir: str | Path = ".",
) -> PolicyDecision:
    """Evaluate a tool call without constructing an engine."""
    return PolicyEngine(policy, working_dir).evaluate_tool(tool_name, tool_input)
