"""
Exception hierarchy for Sentinex.

All Sentinex exceptions inherit from SentinexError, allowing callers to catch
all Sentinex-specific exceptions with a single except clause.

Exception Categories:
    - PolicyDeniedError: Prompt or tool call blocked by policy or approval
    - ToolExecutionError: Tool failed during execution (I/O, network, timeout)
    - ActionPlanInvalidError: Generator output is not a valid action plan
    - ProviderError / ProviderFailedError: Plan generation failed
    - ConfigError: Config or policy file could not be loaded

None of these are retried by the runtime. Retry is a provider concern only.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Policy errors: 1xxx
ERROR_POLICY_DENIED = 1001
ERROR_POLICY_PROMPT_DENIED = 1002
ERROR_POLICY_TOOL_DENIED = 1003
ERROR_POLICY_APPROVAL_REFUSED = 1004

# Tool errors: 2xxx
ERROR_TOOL_NOT_FOUND = 2001
ERROR_TOOL_EXECUTION_FAILED = 2003
ERROR_TOOL_TIMEOUT = 2004

# Plan errors: 3xxx
ERROR_PLAN_INVALID_FORMAT = 3001

# Provider errors: 4xxx
ERROR_PROVIDER_REQUEST = 4001
ERROR_PROVIDER_FAILED = 4002

# Config errors: 5xxx
ERROR_CONFIG_INVALID = 5001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class SentinexError(Exception):
    """
    Root of the Sentinex exception tree.

    Attributes:
        message: What went wrong, for humans
        code: Stable numeric code (see the ERROR_* constants)
        suggestion: How to fix it, when there is an obvious fix
        context: Structured details for logs and --json output
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        text = f"[E{self.code}] {self.message}"
        if self.suggestion:
            text += f"\nSuggestion: {self.suggestion}"
        return text

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, message={self.message!r}, context={self.context!r})"

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict form used by the CLI's --json output."""
        return {
            "error_type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Policy Errors
# =============================================================================


@dataclass
class PolicyDeniedError(SentinexError):
    """
    Raised when a prompt or tool call is blocked.

    Covers prompt denials, tool policy denials and refused approvals.
    Terminal for the run.

    Attributes:
        target: What was being checked ("prompt" or a tool name)
        reason: Why the policy denied this action
    """

    target: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Policy denied {self.target}: {self.reason}"
        if self.code == 0:
            if self.target == "prompt":
                self.code = ERROR_POLICY_PROMPT_DENIED
            elif self.target:
                self.code = ERROR_POLICY_TOOL_DENIED
            else:
                self.code = ERROR_POLICY_DENIED
        self.context.update({
            "target": self.target,
            "reason": self.reason,
        })


@dataclass
class ApprovalRefusedError(PolicyDeniedError):
    """Raised when the approval gate refuses a tool action."""

    def __post_init__(self) -> None:
        if not self.reason:
            self.reason = "denied by approval"
        if not self.message:
            self.message = f"Action tool({self.target}) denied by user approval"
        if self.code == 0:
            self.code = ERROR_POLICY_APPROVAL_REFUSED
        super().__post_init__()


# =============================================================================
# Tool Errors
# =============================================================================


@dataclass
class ToolError(SentinexError):
    """
    Base class for tool execution errors.

    These errors occur after the policy check has already allowed the call.

    Attributes:
        tool: Name of the tool that failed
    """

    tool: str = ""

    def __post_init__(self) -> None:
        self.context["tool"] = self.tool


@dataclass
class ToolNotFoundError(ToolError):
    """Raised when a plan names a tool the registry does not have."""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Tool not found: {self.tool}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Only http.fetch and fs.read are available"
        super().__post_init__()


@dataclass
class ToolExecutionError(ToolError):
    """Raised when an allowed tool call fails (I/O, transport)."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"{self.tool} failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_TOOL_EXECUTION_FAILED
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class ToolTimeoutError(ToolExecutionError):
    """Raised when a tool call runs past its effective timeoutMs."""

    timeout_ms: float = 0

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"{self.tool} timed out after {self.timeout_ms:g}ms"
        if self.code == 0:
            self.code = ERROR_TOOL_TIMEOUT
        if not self.suggestion:
            self.suggestion = "Increase timeoutMs in policy or pass a per-call timeoutMs"
        super().__post_init__()
        self.context["timeout_ms"] = self.timeout_ms


# =============================================================================
# Plan Errors
# =============================================================================


@dataclass
class ActionPlanInvalidError(SentinexError):
    """
    Raised when generator output is not a valid action plan.

    The whole plan is rejected; no action from it is ever executed.

    Attributes:
        errors: Individual validation problems, one per entry
    """

    errors: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.message:
            detail = "; ".join(self.errors) if self.errors else "invalid structure"
            self.message = f"Invalid action plan: {detail}"
        if self.code == 0:
            self.code = ERROR_PLAN_INVALID_FORMAT
        self.context["errors"] = self.errors


# =============================================================================
# Provider Errors
# =============================================================================


@dataclass
class ProviderError(SentinexError):
    """
    Raised when a provider cannot produce a raw plan.

    Attributes:
        provider: Name of the provider that failed
        retryable: Whether a retrying wrapper may try again
        status_code: HTTP status of the failed request, if any
    """

    provider: str = ""
    retryable: bool = False
    status_code: int | None = None

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Provider {self.provider} failed"
        if self.code == 0:
            self.code = ERROR_PROVIDER_REQUEST
        self.context.update({
            "provider": self.provider,
            "retryable": self.retryable,
            "status_code": self.status_code,
        })


@dataclass
class ProviderFailedError(ProviderError):
    """
    Raised once a provider's retry or fallback budget is exhausted.

    Attributes:
        attempts: How many attempts (or providers) were tried
        last_error: Message of the last failure
    """

    attempts: int = 0
    last_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = (
                f"Provider {self.provider} failed after {self.attempts} attempt(s): "
                f"{self.last_error}"
            )
        if self.code == 0:
            self.code = ERROR_PROVIDER_FAILED
        super().__post_init__()
        self.context.update({
            "attempts": self.attempts,
            "last_error": self.last_error,
        })


# =============================================================================
# Config Errors
# =============================================================================


@dataclass
class ConfigError(SentinexError):
    """Raised when a config or policy file cannot be loaded."""

    path: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Invalid configuration: {self.path}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        if not self.suggestion:
            self.suggestion = "Run 'sentinex init' to create a valid template"
        self.context["path"] = self.path
