"""
Sentinex - Policy-enforcing runtime between an LLM and side-effecting tools.

Sentinex sits between an untrusted action generator and the tools it wants
to call. It provides:
- Declarative allow/deny policy for prompts and tool calls (deny wins)
- Human or automatic approval before any effect
- Bounded tool execution (timeouts, byte limits)
- An append-only, size-rotated JSONL audit trail

Example usage:
    $ sentinex init
    $ sentinex run "read ./templates/hello.txt"
    $ sentinex policy test --tool http.fetch --url https://api.example.com/x
    $ sentinex logs show --limit 20
"""

__version__ = "0.1.0"
__author__ = "Sentinex Contributors"

__all__ = [
    "__version__",
    "__author__",
]
