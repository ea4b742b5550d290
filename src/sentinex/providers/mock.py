"""Offline provider that derives a one-action plan from the prompt text."""

import re
from typing import Any

from sentinex.actions import FS_READ, HTTP_FETCH
from sentinex.providers.base import Provider

URL_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)
READ_PATTERN = re.compile(r"\bread\s+(\S+)\b", re.IGNORECASE)


class MockProvider(Provider):
    """
    Deterministic provider used by default and as a fallback.

    Rules, first match wins:
        - A URL in the prompt -> one http.fetch of that URL
        - "read <path>" -> one fs.read of that path
        - Anything else -> respond "Echo: <prompt>"
    """

    @property
    def name(self) -> str:
        return "mock"

    def generate(self, prompt: str) -> Any:
        url = URL_PATTERN.search(prompt)
        if url:
            return {"actions": [{"type": "tool", "tool": HTTP_FETCH, "input": {"url": url.group(0)}}]}

        read = READ_PATTERN.search(prompt)
        if read:
            return {"actions": [{"type": "tool", "tool": FS_READ, "input": {"path": read.group(1)}}]}

        return {"actions": [{"type": "respond", "text": f"Echo: {prompt}"}]}
