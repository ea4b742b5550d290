"""
Project scaffolding for `sentinex init`.

Writes starter policy.yaml and config.yaml under <working_dir>/.sentinex/.
Existing files are left alone unless force is set.
"""

from dataclasses import dataclass, field
from pathlib import Path

from sentinex.schema import CONFIG_FILENAME, POLICY_FILENAME, SENTINEX_DIR

POLICY_TEMPLATE = """\
version: 1
default: deny

deny:
  prompts:
    - "(?i)password|secret|api[_-]?key"
  tools:
    http.fetch:
      hosts: []
    fs.read:
      paths:
        - "./.sentinex"

allow:
  prompts:
    - "^read\\\\s"
    - "https?://"
  tools:
    http.fetch:
      enabled: true
      hosts:
        - "example.com"
      timeoutMs: 5000
      maxBytes: 64000
    fs.read:
      enabled: true
      roots:
        - "./templates"
      maxBytes: 64000
    exec:
      enabled: false
"""

CONFIG_TEMPLATE = """\
version: 1
audit:
  enabled: true
  file: ".sentinex/audit.jsonl"
  maxBytes: 1000000
  maxFiles: 3
approval:
  mode: "prompt"
llm:
  provider: "mock"
  fallbackToMock: false
  model: "gpt-4.1-mini"
  baseUrl: "https://api.openai.com/v1"
  apiKeyEnv: "OPENAI_API_KEY"
  timeoutMs: 20000
  maxRetries: 2
  retryDelayMs: 600
  dryRunDefault: false
"""


@dataclass
class InitResult:
    """What init_project() did, with paths relative to the working dir."""

    created_dir: bool
    written_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)


def init_project(working_dir: str | Path = ".", force: bool = False) -> InitResult:
    """
    Create .sentinex/ with policy and config templates.

    Args:
        working_dir: Project root
        force: Overwrite existing files

    Returns:
        InitResult listing written and skipped files
    """
    root = Path(working_dir)
    sentinex_dir = root / SENTINEX_DIR
    created_dir = not sentinex_dir.exists()
    sentinex_dir.mkdir(parents=True, exist_ok=True)

    result = InitResult(created_dir=created_dir)
    for filename, content in (
        (POLICY_FILENAME, POLICY_TEMPLATE),
        (CONFIG_FILENAME, CONFIG_TEMPLATE),
    ):
        target = sentinex_dir / filename
        relative = str(target.relative_to(root))
        if target.exists() and not force:
            result.skipped_files.append(relative)
            continue
        target.write_text(content, encoding="utf-8")
        result.written_files.append(relative)
    return result
