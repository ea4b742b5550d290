"""
Runtime orchestrator for Sentinex.

The Runtime takes a prompt through every check between the user and a
side effect. It coordinates:
- Policy Engine: Decides if the prompt and each tool call are allowed
- Provider: Produces the (untrusted) action plan
- Approval Gate: Confirms each allowed tool call
- Tool Registry: Executes the calls
- Audit Logger: Records every transition

Execution Flow:
    1. run.started
    2. Prompt check; denied -> policy.decision, PolicyDeniedError
    3. Provider generates a raw plan; validate_action_plan() checks it
    4. For each action, in order:
        a. action.requested
        b. respond: append text, action.result
        c. tool: policy.decision; denied -> PolicyDeniedError
        d. dry run: "[dry-run] tool(<name>)", action.result, next action
        e. approval; refused -> PolicyDeniedError
        f. execute; action.result (success or failure)
    5. run.finished, always, with status "ok" only if step 4 completed

Design Principles:
    - Fail-fast: The first denial or failure ends the run
    - Full audit: run.finished is written even when the run raises
    - No retries here: retry belongs to providers
"""

import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from sentinex.actions import ActionPlan, FsReadAction, HttpFetchAction, RespondAction, validate_action_plan
from sentinex.approval import ApprovalGate
from sentinex.audit import (
    ActionRequestedEvent,
    ActionResultEvent,
    AuditLogger,
    PolicyDecisionEvent,
    RunFinishedEvent,
    RunStartedEvent,
)
from sentinex.errors import ApprovalRefusedError, PolicyDeniedError, ToolError
from sentinex.policy import PolicyEngine
from sentinex.providers import Provider, create_provider
from sentinex.schema import PolicyConfig, RuntimeConfig, load_config_from_dir, load_policy_from_dir
from sentinex.tools import ToolContext, ToolRegistry, create_default_registry

logger = logging.getLogger(__name__)

DRY_RUN_RESULT = "[dry-run]"


@dataclass(frozen=True)
class RunContext:
    """
    Everything fixed for the duration of one run.

    Attributes:
        run_id: Unique identifier (uuid4)
        dry_run: Skip approval and execution of tool actions
        config: Runtime config in force
        policy: Policy in force
        working_dir: Directory relative paths are resolved against
    """

    run_id: str
    dry_run: bool
    config: RuntimeConfig
    policy: PolicyConfig
    working_dir: Path


@dataclass
class RunResult:
    """
    Result of a successful run.

    Attributes:
        run_id: Identifier of the run (matches the audit events)
        outputs: One entry per action, in plan order
    """

    run_id: str
    outputs: list[str] = field(default_factory=list)


@dataclass
class _RunOutcome:
    status: str = "error"
    error: str | None = None


class Runtime:
    """
    Policy-enforcing runtime between a provider and the tools.

    Usage:
        runtime = Runtime(MockProvider(), policy, config)
        result = runtime.run("read ./notes.txt")
        for output in result.outputs:
            print(output)

    Args:
        provider: Plan generator
        policy: Policy to enforce
        config: Runtime config (audit, approval, llm)
        registry: Tool registry (defaults to http.fetch + fs.read)
        approval: Approval gate (defaults to config.approval.mode)
        audit: Audit logger (defaults to config.audit)
        working_dir: Directory for relative paths (defaults to cwd)
    """

    def __init__(
        self,
        provider: Provider,
        policy: PolicyConfig,
        config: RuntimeConfig,
        registry: ToolRegistry | None = None,
        approval: ApprovalGate | None = None,
        audit: AuditLogger | None = None,
        working_dir: str | Path | None = None,
    ) -> None:
        self.provider = provider
        self.policy = policy
        self.config = config
        self.working_dir = Path(working_dir) if working_dir is not None else Path.cwd()
        self.registry = registry or create_default_registry()
        self.approval = approval or ApprovalGate(config.approval.mode)
        self.audit = audit or AuditLogger(config.audit, self.working_dir)
        self.policy_engine = PolicyEngine(policy, self.working_dir)

    def run(self, prompt: str, dry_run: bool | None = None) -> RunResult:
        """
        Execute a prompt.

        Args:
            prompt: The user prompt
            dry_run: Evaluate policy without approval or execution.
                     None means config.llm.dry_run_default.

        Returns:
            RunResult with one output per action

        Raises:
            PolicyDeniedError: Prompt or tool call denied, or approval refused
            ProviderError: The provider could not produce a plan
            ActionPlanInvalidError: The plan failed validation
            ToolError: A tool failed or isn't registered
        """
        ctx = RunContext(
            run_id=str(uuid.uuid4()),
            dry_run=self.config.llm.dry_run_default if dry_run is None else dry_run,
            config=self.config,
            policy=self.policy,
            working_dir=self.working_dir,
        )

        with self._run_scope(ctx, prompt) as outcome:
            self._check_prompt(ctx, prompt)

            logger.debug("run %s: generating plan with %s", ctx.run_id, self.provider.name)
            plan = validate_action_plan(self.provider.generate(prompt))

            outputs = self._run_actions(ctx, plan)
            outcome.status = "ok"

        return RunResult(run_id=ctx.run_id, outputs=outputs)

    @contextmanager
    def _run_scope(self, ctx: RunContext, prompt: str) -> Iterator[_RunOutcome]:
        """Emit run.started on entry and run.finished on any exit."""
        outcome = _RunOutcome()
        logger.info("run %s started (dry_run=%s)", ctx.run_id, ctx.dry_run)
        try:
            self.audit.append(RunStartedEvent(run_id=ctx.run_id, prompt=prompt, dry_run=ctx.dry_run))
            yield outcome
        except Exception as e:
            outcome.error = str(e)
            raise
        finally:
            self.audit.append(
                RunFinishedEvent(run_id=ctx.run_id, status=outcome.status, error=outcome.error)
            )
            logger.info("run %s finished: %s", ctx.run_id, outcome.status)

    def _check_prompt(self, ctx: RunContext, prompt: str) -> None:
        decision = self.policy_engine.evaluate_prompt(prompt)
        if decision.allowed:
            return
        self.audit.append(
            PolicyDecisionEvent(
                run_id=ctx.run_id,
                allowed=False,
                reason=decision.reason,
                action={"type": "prompt"},
            )
        )
        raise PolicyDeniedError(target="prompt", reason=decision.reason)

    def _run_actions(self, ctx: RunContext, plan: ActionPlan) -> list[str]:
        outputs: list[str] = []
        for action in plan.actions:
            self.audit.append(ActionRequestedEvent(run_id=ctx.run_id, action=action.to_audit()))
            if isinstance(action, RespondAction):
                outputs.append(action.text)
                self.audit.append(
                    ActionResultEvent(
                        run_id=ctx.run_id,
                        success=True,
                        result=action.text,
                        action=action.to_audit(),
                    )
                )
            else:
                outputs.append(self._run_tool(ctx, action))
        return outputs

    def _run_tool(self, ctx: RunContext, action: HttpFetchAction | FsReadAction) -> str:
        summary = action.describe()
        decision = self.policy_engine.evaluate_tool(action.tool, action.input)
        self.audit.append(
            PolicyDecisionEvent(
                run_id=ctx.run_id,
                allowed=decision.allowed,
                reason=decision.reason,
                action=action.to_audit(),
            )
        )
        if not decision.allowed:
            raise PolicyDeniedError(
                message=f"Action {summary} denied: {decision.reason}",
                target=action.tool,
                reason=decision.reason,
            )

        if ctx.dry_run:
            self.audit.append(
                ActionResultEvent(
                    run_id=ctx.run_id,
                    success=True,
                    result=DRY_RUN_RESULT,
                    action=action.to_audit(),
                )
            )
            return f"{DRY_RUN_RESULT} {summary}"

        if not self.approval.request(f"Approve {summary}?"):
            raise ApprovalRefusedError(target=action.tool)

        tool_ctx = ToolContext(run_id=ctx.run_id, policy=ctx.policy, working_dir=ctx.working_dir)
        try:
            result = self.registry.execute(action, tool_ctx)
        except ToolError as e:
            self.audit.append(
                ActionResultEvent(
                    run_id=ctx.run_id,
                    success=False,
                    result=e.message,
                    action=action.to_audit(),
                )
            )
            raise

        payload = result.model_dump(mode="json")
        self.audit.append(
            ActionResultEvent(
                run_id=ctx.run_id,
                success=True,
                result=payload,
                action=action.to_audit(),
            )
        )
        return json.dumps(payload, indent=2, ensure_ascii=False)


def execute_prompt(
    prompt: str,
    dry_run: bool | None = None,
    working_dir: str | Path | None = None,
    approval: ApprovalGate | None = None,
) -> RunResult:
    """
    Run a prompt with config and policy from <working_dir>/.sentinex/.

    Args:
        prompt: The user prompt
        dry_run: Override config.llm.dryRunDefault
        working_dir: Project directory (defaults to cwd)
        approval: Approval gate override (defaults to config.approval.mode)

    Raises:
        ConfigError: If config.yaml or policy.yaml is invalid
        SentinexError: Anything Runtime.run() raises
    """
    working_dir = Path(working_dir) if working_dir is not None else Path.cwd()
    config = load_config_from_dir(working_dir)
    policy = load_policy_from_dir(working_dir)

    with create_provider(config) as provider:
        runtime = Runtime(
            provider,
            policy,
            config,
            approval=approval,
            working_dir=working_dir,
        )
        return runtime.run(prompt, dry_run=dry_run)
