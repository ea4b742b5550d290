"""
Audit trail for Sentinex.

Every run writes one JSON object per line to an append-only file:

    run.started        prompt, dry_run
    action.requested   action
    policy.decision    allowed, reason, action (or {"type": "prompt"})
    action.result      success, result, action
    run.finished       status ("ok" | "error"), error

Every event carries run_id and a UTC timestamp.

Rotation:
    Before an append that would push the file past max_bytes, the file is
    rotated: audit.jsonl.(N-1) -> .N, ..., audit.jsonl -> .1, where N is
    max_files. Anything older than .N is dropped. With max_files <= 0 the
    file is deleted instead.

Concurrency:
    Appends hold a per-path threading.Lock (threads in this process) and
    an exclusive fcntl.flock on "<file>.lock" (other processes) across the
    size check, the rename chain and the write.
"""

import fcntl
import json
import logging
import os
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from sentinex.schema import AuditConfig

logger = logging.getLogger(__name__)


# =============================================================================
# Event Models
# =============================================================================


def _utc_now() -> datetime:
    return datetime.now(UTC)


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    run_id: str
    timestamp: datetime = Field(default_factory=_utc_now)


class RunStartedEvent(_EventBase):
    type: Literal["run.started"] = "run.started"
    prompt: str
    dry_run: bool


class ActionRequestedEvent(_EventBase):
    type: Literal["action.requested"] = "action.requested"
    action: dict[str, Any]


class PolicyDecisionEvent(_EventBase):
    type: Literal["policy.decision"] = "policy.decision"
    allowed: bool
    reason: str
    action: dict[str, Any]


class ActionResultEvent(_EventBase):
    type: Literal["action.result"] = "action.result"
    success: bool
    result: Any = None
    action: dict[str, Any]


class RunFinishedEvent(_EventBase):
    type: Literal["run.finished"] = "run.finished"
    status: Literal["ok", "error"]
    error: str | None = None


AuditEvent = Annotated[
    Union[
        RunStartedEvent,
        ActionRequestedEvent,
        PolicyDecisionEvent,
        ActionResultEvent,
        RunFinishedEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[Any] = TypeAdapter(AuditEvent)


def parse_audit_event(data: dict[str, Any]) -> BaseModel:
    """Validate a decoded audit line into its event model."""
    return _event_adapter.validate_python(data)


# =============================================================================
# Logger
# =============================================================================

_path_locks: dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path)
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _path_locks[key] = lock
        return lock


class AuditLogger:
    """
    Appends audit events to a size-rotated JSONL file.

    Args:
        config: Audit section of the runtime config
        working_dir: Directory a relative config.file is resolved against
    """

    def __init__(self, config: AuditConfig, working_dir: str | Path = ".") -> None:
        self.enabled = config.enabled
        self.max_bytes = config.max_bytes
        self.max_files = config.max_files
        path = Path(config.file).expanduser()
        if not path.is_absolute():
            path = Path(working_dir) / path
        self.path = path.resolve()

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def append(self, event: BaseModel) -> None:
        """Write one event. No-op when auditing is disabled."""
        if not self.enabled:
            return

        record = event.model_dump_json() + "\n"
        encoded = record.encode("utf-8")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with _lock_for(self.path), self.lock_path.open("a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                self._rotate_if_needed(len(encoded))
                with self.path.open("ab") as f:
                    f.write(encoded)
                    f.flush()
                    os.fsync(f.fileno())
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _rotate_if_needed(self, next_record_bytes: int) -> None:
        if not self.path.exists():
            return
        if self.path.stat().st_size + next_record_bytes <= self.max_bytes:
            return

        if self.max_files <= 0:
            logger.debug("audit log %s full, deleting (max_files=%d)", self.path, self.max_files)
            self.path.unlink()
            return

        logger.debug("rotating audit log %s (max_files=%d)", self.path, self.max_files)
        for index in range(self.max_files, 0, -1):
            source = self.path if index == 1 else self._rotated(index - 1)
            destination = self._rotated(index)
            if not source.exists():
                continue
            if destination.exists():
                destination.unlink()
            source.rename(destination)

    def _rotated(self, index: int) -> Path:
        return self.path.with_name(f"{self.path.name}.{index}")


# =============================================================================
# Reading and Filtering
# =============================================================================


def read_audit_events(path: str | Path) -> list[dict[str, Any]]:
    """
    Read events from an audit file, oldest first.

    Blank lines are skipped. Lines that aren't JSON objects are skipped
    with a warning so one torn write doesn't hide the rest of the log.

    Returns:
        Decoded events, or [] if the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        return []

    events: list[dict[str, Any]] = []
    with path.open(encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                value = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("skipping malformed audit line %d in %s", lineno, path)
                continue
            if isinstance(value, dict):
                events.append(value)
            else:
                logger.warning("skipping non-object audit line %d in %s", lineno, path)
    return events


def _parse_bound(value: str, option: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        msg = f"Invalid {option} date: {value!r}"
        raise ValueError(msg) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _event_time(event: dict[str, Any]) -> datetime | None:
    raw = event.get("timestamp")
    if not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def filter_audit_events(
    events: list[dict[str, Any]],
    since: str | None = None,
    until: str | None = None,
    run_id: str | None = None,
    event_type: str | None = None,
) -> list[dict[str, Any]]:
    """
    Filter decoded events.

    Args:
        events: Events from read_audit_events()
        since: Keep events at or after this ISO-8601 time
        until: Keep events at or before this ISO-8601 time
        run_id: Keep events of this run only
        event_type: Keep events of this type only (e.g. "policy.decision")

    Raises:
        ValueError: If since or until is not a valid ISO-8601 date
    """
    since_dt = _parse_bound(since, "--since") if since else None
    until_dt = _parse_bound(until, "--until") if until else None

    selected = []
    for event in events:
        if run_id and event.get("run_id") != run_id:
            continue
        if event_type and event.get("type") != event_type:
            continue
        if since_dt or until_dt:
            ts = _event_time(event)
            if ts is None:
                continue
            if since_dt and ts < since_dt:
                continue
            if until_dt and ts > until_dt:
                continue
        selected.append(event)
    return selected
