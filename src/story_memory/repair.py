"""Recovery of JSON objects from raw model output.

Model responses are frequently cut off by the output-token ceiling, which
leaves strings, arrays and objects unterminated. The helpers here locate the
object in the response, try a strict parse, and on failure close the open
structures by counting before parsing once more.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar


logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN_RE.sub("", cleaned)
        cleaned = _FENCE_CLOSE_RE.sub("", cleaned).strip()
    return cleaned


def find_json_span(text: str) -> str | None:
    """Return the text from the first '{' to the last '}'.

    When no closing brace follows the first opening brace the response was
    truncated, and the span runs to the end of the text.
    """
    start = text.find("{")
    if start == -1:
        return None
    end = text.rfind("}")
    if end < start:
        return text[start:]
    return text[start : end + 1]


def repair_json(text: str) -> str:
    """Close unterminated strings, arrays and objects by counting.

    The result is syntactically plausible, not guaranteed valid: closers are
    appended brackets first, then braces, regardless of nesting order.
    """
    repaired = text.rstrip().rstrip(",").rstrip()

    if repaired.count('"') % 2 != 0:
        repaired += '"'

    open_brackets = repaired.count("[") - repaired.count("]")
    open_braces = repaired.count("{") - repaired.count("}")
    repaired += "]" * max(0, open_brackets)
    repaired += "}" * max(0, open_braces)
    return repaired


def parse_json_object(text: str, fallback: _T) -> dict[str, Any] | _T:
    """Parse the JSON object embedded in text, repairing it if needed.

    Args:
        text: Raw model output expected to contain one JSON object
        fallback: Value returned when no object can be recovered

    Returns:
        The parsed object, or fallback. Never raises.
    """
    span = find_json_span(strip_code_fences(text or ""))
    if span is None:
        return fallback

    try:
        parsed = json.loads(span)
    except json.JSONDecodeError:
        repaired = repair_json(span)
        logger.debug("Repairing truncated JSON (%d chars)", len(span))
        try:
            parsed = json.loads(repaired)
        except json.JSONDecodeError:
            return fallback

    if not isinstance(parsed, dict):
        return fallback
    return parsed
