"""
Approval gate for tool actions.

Every tool action that passes the policy check goes through the gate
once before it runs. Dry runs never reach the gate.

Modes:
    - auto-approve: Always approve, no I/O (CI, trusted policies)
    - auto-deny: Always refuse, no I/O (policy dry checks)
    - prompt: Ask a human; only "y" or "yes" approves
"""

import logging
from collections.abc import Callable

from rich.console import Console

from sentinex.schema import ApprovalMode

logger = logging.getLogger(__name__)

AskFunc = Callable[[str], str]


def console_ask(question: str) -> str:
    """Read an answer from the terminal."""
    return Console().input(f"{question} [y/N] ")


class ApprovalGate:
    """
    Decides whether an allowed tool action may run.

    Args:
        mode: Approval mode from the runtime config
        ask: Callable that shows a question and returns the raw answer.
             Defaults to reading from the terminal.
    """

    def __init__(self, mode: ApprovalMode | str, ask: AskFunc | None = None) -> None:
        self.mode = ApprovalMode(mode)
        self._ask = ask or console_ask

    def request(self, question: str) -> bool:
        """Return True if the action is approved."""
        if self.mode == ApprovalMode.AUTO_APPROVE:
            logger.debug("auto-approving: %s", question)
            return True
        if self.mode == ApprovalMode.AUTO_DENY:
            logger.debug("auto-denying: %s", question)
            return False

        answer = self._ask(question)
        approved = answer.strip().lower() in ("y", "yes")
        logger.debug("approval answer %r -> %s", answer, approved)
        return approved
