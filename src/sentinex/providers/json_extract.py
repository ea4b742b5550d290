"""
JSON extraction for model output.

Models asked for JSON still wrap it in prose or code fences, or leave a
trailing comma. This module pulls the JSON object out of such text and
applies a few conservative repairs.

Design Principles:
    - Best effort extraction, bounded repair
    - Never guess: if nothing parses, raise ValueError
"""

import json
import re
from typing import Any

MAX_REPAIR_ATTEMPTS = 3

FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
STRING_PATTERN = re.compile(r'("(?:\\.|[^"\\])*")')


def extract_json_object(text: str) -> str | None:
    """
    Find the JSON object in mixed text.

    Tried in order: the whole text, a fenced code block, the first
    balanced {...} span.

    Returns:
        The candidate JSON text, or None if there is no object
    """
    if not text or not text.strip():
        return None

    text = text.strip()
    if text.startswith("{") and text.endswith("}"):
        return text

    fenced = FENCE_PATTERN.search(text)
    if fenced and fenced.group(1).strip().startswith("{"):
        return fenced.group(1).strip()

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False
    for i, char in enumerate(text[start:], start):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    # Unbalanced; fall back to the outermost braces
    end = text.rfind("}")
    if end > start:
        return text[start : end + 1]
    return None


def _repair_segment(text: str) -> str:
    text = re.sub(r",\s*([}\]])", r"\1", text)
    text = re.sub(r"\bTrue\b", "true", text)
    text = re.sub(r"\bFalse\b", "false", text)
    text = re.sub(r"\bNone\b", "null", text)
    return text


def _apply_repairs(text: str) -> str:
    # Odd indices are quoted strings; their contents are left alone.
    parts = STRING_PATTERN.split(text)
    return "".join(part if i % 2 else _repair_segment(part) for i, part in enumerate(parts))


def repair_json(text: str) -> str | None:
    """Repair trailing commas and Python literals. None if still invalid."""
    for _ in range(MAX_REPAIR_ATTEMPTS):
        try:
            json.loads(text)
            return text
        except json.JSONDecodeError:
            pass
        repaired = _apply_repairs(text)
        if repaired == text:
            break
        text = repaired

    try:
        json.loads(text)
        return text
    except json.JSONDecodeError:
        return None


def parse_json_content(text: str) -> Any:
    """
    Parse the JSON object embedded in model output.

    Raises:
        ValueError: If no JSON object can be found or parsed
    """
    candidate = extract_json_object(text)
    if candidate is None:
        msg = "response did not contain a JSON object"
        raise ValueError(msg)

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        repaired = repair_json(candidate)
        if repaired is None:
            msg = f"invalid JSON in response: {e}"
            raise ValueError(msg) from e
        return json.loads(repaired)
