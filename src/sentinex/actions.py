"""
Action plan models and validation.

An action plan is the only thing the runtime accepts from the generator.
The generator is untrusted: its output goes through validate_action_plan()
and nothing else reaches the action loop.

Shapes:
    {"type": "respond", "text": "..."}
    {"type": "tool", "tool": "http.fetch", "input": {"url": "...", "timeoutMs"?, "maxBytes"?}}
    {"type": "tool", "tool": "fs.read", "input": {"path": "...", "maxBytes"?}}

Validation is all-or-nothing. A single bad action rejects the whole plan.
"""

import math
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sentinex.errors import ActionPlanInvalidError

HTTP_FETCH = "http.fetch"
FS_READ = "fs.read"
SUPPORTED_TOOLS = (HTTP_FETCH, FS_READ)


def _positive_number(value: Any, key: str) -> Any:
    if value is None:
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"{key} must be a positive number"
        raise ValueError(msg)
    if not math.isfinite(value) or value <= 0:
        msg = f"{key} must be a positive number"
        raise ValueError(msg)
    return value


# =============================================================================
# Tool Inputs
# =============================================================================


class HttpFetchInput(BaseModel):
    """Input for http.fetch. Limits override the policy defaults when set."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    url: str = Field(..., min_length=1, strict=True)
    timeout_ms: float | None = Field(default=None, alias="timeoutMs")
    max_bytes: float | None = Field(default=None, alias="maxBytes")

    @field_validator("timeout_ms", mode="before")
    @classmethod
    def validate_timeout(cls, v: Any) -> Any:
        return _positive_number(v, "timeoutMs")

    @field_validator("max_bytes", mode="before")
    @classmethod
    def validate_max_bytes(cls, v: Any) -> Any:
        return _positive_number(v, "maxBytes")


class FsReadInput(BaseModel):
    """Input for fs.read."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    path: str = Field(..., min_length=1, strict=True)
    max_bytes: float | None = Field(default=None, alias="maxBytes")

    @field_validator("max_bytes", mode="before")
    @classmethod
    def validate_max_bytes(cls, v: Any) -> Any:
        return _positive_number(v, "maxBytes")


# =============================================================================
# Actions
# =============================================================================


class _ActionBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def to_audit(self) -> dict[str, Any]:
        """Serialize in the wire shape for audit events."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RespondAction(_ActionBase):
    """Append text to the run output. No side effects."""

    type: Literal["respond"] = "respond"
    text: str = Field(..., strict=True)

    def describe(self) -> str:
        return "respond"


class HttpFetchAction(_ActionBase):
    """GET a URL through the http.fetch tool."""

    type: Literal["tool"] = "tool"
    tool: Literal["http.fetch"] = HTTP_FETCH
    input: HttpFetchInput

    def describe(self) -> str:
        return f"tool({self.tool})"


class FsReadAction(_ActionBase):
    """Read a file through the fs.read tool."""

    type: Literal["tool"] = "tool"
    tool: Literal["fs.read"] = FS_READ
    input: FsReadInput

    def describe(self) -> str:
        return f"tool({self.tool})"


ToolAction = Annotated[Union[HttpFetchAction, FsReadAction], Field(discriminator="tool")]
Action = Annotated[Union[RespondAction, ToolAction], Field(discriminator="type")]


class ActionPlan(BaseModel):
    """Ordered list of actions produced by the generator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    actions: list[Action]


# =============================================================================
# Validation
# =============================================================================


def _format_errors(exc: ValidationError) -> list[str]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        errors.append(f"{loc}: {msg}" if loc else msg)
    return errors


def validate_action_plan(raw: Any) -> ActionPlan:
    """
    Validate untrusted generator output into an ActionPlan.

    Args:
        raw: Parsed JSON value from the provider

    Returns:
        The validated plan

    Raises:
        ActionPlanInvalidError: If any part of the structure is wrong
    """
    if isinstance(raw, ActionPlan):
        return raw
    if not isinstance(raw, dict):
        raise ActionPlanInvalidError(errors=["plan must be a JSON object with an 'actions' list"])
    try:
        return ActionPlan.model_validate(raw)
    except ValidationError as e:
        raise ActionPlanInvalidError(errors=_format_errors(e)) from e
