"""
Schema definitions for Sentinex.

This module defines the Pydantic models for configuration and decisions:
- PolicyConfig: What prompts and tool calls are allowed and denied
- RuntimeConfig: Audit, approval and provider settings
- PolicyDecision / PromptEvaluation: The result of policy evaluation

Action plans live in sentinex.actions because they are produced from
untrusted input and have their own validation entry point.

File format:
    Both files are YAML under <working_dir>/.sentinex/. Keys use the
    camelCase spelling (timeoutMs, maxBytes, ...); models expose snake_case
    attributes and accept either spelling when constructed in code.

Design Decisions:
    - Models are immutable (frozen=True) and reject unknown keys
    - A missing file means built-in defaults; a broken file is a ConfigError
    - Policy defaults are fail-closed: nothing is enabled, default is deny
"""

from enum import Enum
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sentinex.errors import ConfigError

SENTINEX_DIR = ".sentinex"
POLICY_FILENAME = "policy.yaml"
CONFIG_FILENAME = "config.yaml"

DEFAULT_SYSTEM_PROMPT = (
    'Return JSON only. Build an action plan with shape: {"actions": [...]}. '
    'Each action is {"type": "respond", "text": "..."} or '
    '{"type": "tool", "tool": "http.fetch" | "fs.read", "input": {...}}.'
)


# =============================================================================
# Enums
# =============================================================================


class PolicyDefault(str, Enum):
    """Verdict applied when no prompt pattern matches."""

    ALLOW = "allow"
    DENY = "deny"


class ApprovalMode(str, Enum):
    """How tool actions are confirmed before execution."""

    PROMPT = "prompt"
    AUTO_APPROVE = "auto-approve"
    AUTO_DENY = "auto-deny"


class ProviderKind(str, Enum):
    """Which plan generator backs the runtime."""

    MOCK = "mock"
    OPENAI = "openai"


class PromptStage(str, Enum):
    """Which part of prompt evaluation produced the decision."""

    DENY = "deny"
    ALLOW = "allow"
    DEFAULT = "default"
    INVALID = "invalid"


def _check_patterns(values: list[str], key_name: str) -> list[str]:
    """Reject empty, whitespace-only or NUL-bearing list entries."""
    for value in values:
        if not value.strip():
            msg = f"{key_name} must contain non-empty strings"
            raise ValueError(msg)
        if "\x00" in value:
            msg = f"{key_name} entries must not contain null bytes"
            raise ValueError(msg)
    return values


# =============================================================================
# Policy Models
# =============================================================================


class HttpFetchAllow(BaseModel):
    """
    Allow rules and default limits for http.fetch.

    Attributes:
        enabled: Whether the tool may be used at all
        hosts: Exact hostnames or "*.domain" wildcards
        timeout_ms: Default request timeout
        max_bytes: Default response body limit
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    enabled: bool = False
    hosts: list[str] = Field(default_factory=list)
    timeout_ms: int = Field(default=5000, alias="timeoutMs", gt=0)
    max_bytes: int = Field(default=64_000, alias="maxBytes", gt=0)

    @field_validator("hosts")
    @classmethod
    def validate_hosts(cls, v: list[str]) -> list[str]:
        return _check_patterns(v, "allow.tools.http.fetch.hosts")


class FsReadAllow(BaseModel):
    """
    Allow rules and default limits for fs.read.

    Attributes:
        enabled: Whether the tool may be used at all
        roots: Directories (or files) under which reads are allowed
        max_bytes: Default content limit
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    enabled: bool = False
    roots: list[str] = Field(default_factory=list)
    max_bytes: int = Field(default=64_000, alias="maxBytes", gt=0)

    @field_validator("roots")
    @classmethod
    def validate_roots(cls, v: list[str]) -> list[str]:
        return _check_patterns(v, "allow.tools.fs.read.roots")


class ExecAllow(BaseModel):
    """Placeholder kept for file compatibility. There is no exec tool."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False


class AllowTools(BaseModel):
    """Per-tool allow rules."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    http_fetch: HttpFetchAllow = Field(default_factory=HttpFetchAllow, alias="http.fetch")
    fs_read: FsReadAllow = Field(default_factory=FsReadAllow, alias="fs.read")
    exec: ExecAllow = Field(default_factory=ExecAllow)


class HttpFetchDeny(BaseModel):
    """Hosts that are never fetched, even if an allow rule matches."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    hosts: list[str] = Field(default_factory=list)

    @field_validator("hosts")
    @classmethod
    def validate_hosts(cls, v: list[str]) -> list[str]:
        return _check_patterns(v, "deny.tools.http.fetch.hosts")


class FsReadDeny(BaseModel):
    """Paths that are never read, even if under an allowed root."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    paths: list[str] = Field(default_factory=list)

    @field_validator("paths")
    @classmethod
    def validate_paths(cls, v: list[str]) -> list[str]:
        return _check_patterns(v, "deny.tools.fs.read.paths")


class DenyTools(BaseModel):
    """Per-tool deny rules."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    http_fetch: HttpFetchDeny = Field(default_factory=HttpFetchDeny, alias="http.fetch")
    fs_read: FsReadDeny = Field(default_factory=FsReadDeny, alias="fs.read")


class DenyRules(BaseModel):
    """Deny section of the policy. Always evaluated before allow."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    prompts: list[str] = Field(default_factory=list)
    tools: DenyTools = Field(default_factory=DenyTools)

    @field_validator("prompts")
    @classmethod
    def validate_prompts(cls, v: list[str]) -> list[str]:
        return _check_patterns(v, "deny.prompts")


class AllowRules(BaseModel):
    """Allow section of the policy."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    prompts: list[str] = Field(default_factory=list)
    tools: AllowTools = Field(default_factory=AllowTools)

    @field_validator("prompts")
    @classmethod
    def validate_prompts(cls, v: list[str]) -> list[str]:
        return _check_patterns(v, "allow.prompts")


class PolicyConfig(BaseModel):
    """
    Complete policy configuration.

    Attributes:
        version: File format version (must be 1)
        default: Verdict when no prompt pattern matches
        deny: Deny rules (checked first)
        allow: Allow rules and per-tool limits
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: Literal[1] = 1
    default: PolicyDefault
    deny: DenyRules = Field(default_factory=DenyRules)
    allow: AllowRules = Field(default_factory=AllowRules)


def default_policy() -> PolicyConfig:
    """Policy used when no policy file exists: deny everything."""
    return PolicyConfig(default=PolicyDefault.DENY)


# =============================================================================
# Runtime Config Models
# =============================================================================


class AuditConfig(BaseModel):
    """
    Audit log settings.

    Attributes:
        enabled: Whether events are written at all
        file: Log path, relative to the working directory
        max_bytes: Size ceiling that triggers rotation
        max_files: Rotated files to keep (<= 0 deletes instead of rotating)
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    enabled: bool = True
    file: str = Field(default=f"{SENTINEX_DIR}/audit.jsonl", min_length=1)
    max_bytes: int = Field(default=1_000_000, alias="maxBytes", gt=0)
    max_files: int = Field(default=3, alias="maxFiles")


class ApprovalConfig(BaseModel):
    """Approval gate settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: ApprovalMode = ApprovalMode.PROMPT


class LlmConfig(BaseModel):
    """
    Plan generator settings.

    Attributes:
        provider: Which provider to use
        fallback_to_mock: Chain the mock provider after openai
        model: Model name sent to the API
        base_url: API base URL (without /chat/completions)
        api_key_env: Environment variable holding the API key
        system_prompt: System message sent with every request
        timeout_ms: Per-request timeout
        max_retries: Retries after the first attempt
        retry_delay_ms: Base delay for exponential backoff
        dry_run_default: Default for runs that don't pass --dry-run
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    provider: ProviderKind = ProviderKind.MOCK
    fallback_to_mock: bool = Field(default=False, alias="fallbackToMock")
    model: str = Field(default="gpt-4.1-mini", min_length=1)
    base_url: str = Field(default="https://api.openai.com/v1", alias="baseUrl", min_length=1)
    api_key_env: str = Field(default="OPENAI_API_KEY", alias="apiKeyEnv", min_length=1)
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, alias="systemPrompt", min_length=1)
    timeout_ms: int = Field(default=20_000, alias="timeoutMs", gt=0)
    max_retries: int = Field(default=2, alias="maxRetries", ge=0)
    retry_delay_ms: int = Field(default=600, alias="retryDelayMs", ge=0)
    dry_run_default: bool = Field(default=False, alias="dryRunDefault")


class RuntimeConfig(BaseModel):
    """Complete runtime configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: Literal[1] = 1
    audit: AuditConfig = Field(default_factory=AuditConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    llm: LlmConfig = Field(default_factory=LlmConfig)


# =============================================================================
# Decision Models
# =============================================================================


class PolicyDecision(BaseModel):
    """
    Result of evaluating a prompt or tool call against the policy.

    Attributes:
        allowed: Whether the action is permitted
        reason: Human-readable explanation naming the rule or the default
        rule: Machine-friendly name of the rule that decided
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool
    reason: str = Field(..., min_length=1)
    rule: str | None = None

    @classmethod
    def allow(cls, reason: str, rule: str | None = None) -> "PolicyDecision":
        """Create an ALLOW decision."""
        return cls(allowed=True, reason=reason, rule=rule)

    @classmethod
    def deny(cls, reason: str, rule: str | None = None) -> "PolicyDecision":
        """Create a DENY decision."""
        return cls(allowed=False, reason=reason, rule=rule)


class PromptEvaluation(BaseModel):
    """Detailed prompt decision: which stage decided and on which pattern."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool
    reason: str = Field(..., min_length=1)
    stage: PromptStage
    matched_pattern: str | None = None

    def to_decision(self) -> PolicyDecision:
        rule = f"{self.stage.value}.prompts" if self.matched_pattern else self.stage.value
        return PolicyDecision(allowed=self.allowed, reason=self.reason, rule=rule)


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def _parse(model: type[BaseModel], data: Any, source: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(
            message=f"Invalid {model.__name__} in {source}: {problems}",
            path=source,
        ) from e


def _read_yaml(path: Path) -> Any:
    try:
        with path.open(encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(message=f"Invalid YAML in {path}: {e}", path=str(path)) from e
    except OSError as e:
        raise ConfigError(message=f"Cannot read {path}: {e}", path=str(path)) from e


def load_policy(path: Path | str) -> PolicyConfig:
    """
    Load a policy from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated PolicyConfig

    Raises:
        ConfigError: If the file can't be read or doesn't match the schema
    """
    path = Path(path)
    return _parse(PolicyConfig, _read_yaml(path), str(path))


def load_config(path: Path | str) -> RuntimeConfig:
    """
    Load a runtime config from a YAML file.

    Raises:
        ConfigError: If the file can't be read or doesn't match the schema
    """
    path = Path(path)
    return _parse(RuntimeConfig, _read_yaml(path), str(path))


def load_policy_from_string(content: str) -> PolicyConfig:
    """Load a policy from a YAML string."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(message=f"Invalid YAML: {e}", path="<string>") from e
    return _parse(PolicyConfig, data, "<string>")


def load_config_from_string(content: str) -> RuntimeConfig:
    """Load a runtime config from a YAML string."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(message=f"Invalid YAML: {e}", path="<string>") from e
    return _parse(RuntimeConfig, data, "<string>")


def policy_path(working_dir: Path | str = ".") -> Path:
    return Path(working_dir) / SENTINEX_DIR / POLICY_FILENAME


def config_path(working_dir: Path | str = ".") -> Path:
    return Path(working_dir) / SENTINEX_DIR / CONFIG_FILENAME


def load_policy_from_dir(working_dir: Path | str = ".") -> PolicyConfig:
    """Load <working_dir>/.sentinex/policy.yaml, or the deny-all default."""
    path = policy_path(working_dir)
    if not path.exists():
        return default_policy()
    return load_policy(path)


def load_config_from_dir(working_dir: Path | str = ".") -> RuntimeConfig:
    """Load <working_dir>/.sentinex/config.yaml, or the defaults."""
    path = config_path(working_dir)
    if not path.exists():
        return RuntimeConfig()
    return load_config(path)
