"""
Pytest configuration and fixtures for Sentinex tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from sentinex.schema import (
    AuditConfig,
    PolicyConfig,
    RuntimeConfig,
    load_policy_from_string,
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def sample_policy_yaml() -> str:
    """Return a policy YAML with both tools enabled."""
    return """
version: 1
default: deny
deny:
  prompts:
    - "(?i)secret"
  tools:
    http.fetch:
      hosts:
        - "blocked.example.com"
    fs.read:
      paths:
        - "./data/private"
allow:
  prompts:
    - "^read "
    - "https?://"
  tools:
    http.fetch:
      enabled: true
      hosts:
        - "*.example.com"
      timeoutMs: 2000
      maxBytes: 1024
    fs.read:
      enabled: true
      roots:
        - "./data"
      maxBytes: 1024
"""


@pytest.fixture
def sample_policy(sample_policy_yaml: str) -> PolicyConfig:
    """The sample policy, loaded."""
    return load_policy_from_string(sample_policy_yaml)


@pytest.fixture
def deny_all_policy() -> PolicyConfig:
    """Policy with nothing allowed."""
    return PolicyConfig(default="deny")


@pytest.fixture
def runtime_config(temp_dir: Path) -> RuntimeConfig:
    """Runtime config that auto-approves and audits into temp_dir."""
    return RuntimeConfig.model_validate({
        "audit": {"file": str(temp_dir / "audit.jsonl")},
        "approval": {"mode": "auto-approve"},
    })


@pytest.fixture
def audit_config(temp_dir: Path) -> AuditConfig:
    """Audit config writing into temp_dir."""
    return AuditConfig(file=str(temp_dir / "audit.jsonl"))


@pytest.fixture
def make_policy() -> Callable[..., PolicyConfig]:
    """Factory building a policy from plain dict sections, defaulting to deny."""

    def _make(**sections: Any) -> PolicyConfig:
        data: dict[str, Any] = {"version": 1, "default": "deny"}
        data.update(sections)
        return PolicyConfig.model_validate(data)

    return _make
