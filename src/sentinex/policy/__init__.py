"""
Policy module for Sentinex.

This module implements the security model: deny rules first, then allow
rules, then the configured default.

Key concepts:
    - PolicyDecision: The result of evaluating a prompt or tool call
    - PolicyEngine: Central evaluator for prompts and tool calls
    - lint_policy: Static checks for risky or inert policy files

The policy engine is the security boundary of Sentinex. It must be:
    - Fail-closed: Any error results in denial
    - Predictable: Same inputs always produce same decisions
    - Auditable: All decisions carry a reason
"""

from sentinex.policy.engine import (
    PolicyEngine,
    evaluate_prompt,
    evaluate_tool,
    explain_prompt,
)
from sentinex.policy.lint import LintFinding, LintSeverity, lint_policy

__all__ = [
    "LintFinding",
    "LintSeverity",
    "PolicyEngine",
    "evaluate_prompt",
    "evaluate_tool",
    "explain_prompt",
    "lint_policy",
]
