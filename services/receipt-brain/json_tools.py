"""Locate the JSON object in free-form vision model output.

Models routinely wrap the requested JSON in prose, markdown fences or
reasoning blocks, so the answer is never trusted to be bare JSON.
"""

import json
import logging
import re

logger = logging.getLogger(__name__)

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


def try_parse_json(raw: str | None) -> dict | None:
    """Return the first JSON object found in *raw*, or None.

    Tries, in order: the whole (think-stripped) text, the first code fence,
    then the first brace-balanced ``{...}`` block. Arrays and scalars are not
    accepted.
    """
    if not raw:
        return None

    cleaned = _THINK_RE.sub("", raw).strip()
    if not cleaned:
        return None

    result = _loads_object(cleaned)
    if result is not None:
        return result

    match = _FENCE_RE.search(cleaned)
    if match:
        result = _loads_object(match.group(1).strip())
        if result is not None:
            return result

    start = cleaned.find("{")
    if start != -1:
        block = balanced_block(cleaned, start)
        if block is not None:
            result = _loads_object(block)
            if result is not None:
                return result

    logger.warning("Could not parse JSON from model response (%d chars)", len(cleaned))
    return None


def balanced_block(text: str, start: int) -> str | None:
    """Return the brace-balanced substring opening at *start*, string-aware."""
    depth = 0
    in_string = False
    escape = False

    for i in range(start, len(text)):
        ch = text[i]

        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = in_string
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


def _loads_object(text: str) -> dict | None:
    try:
        result = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return result if isinstance(result, dict) else None
