"""Lenient parsing of agent responses."""

import json
import re
from typing import Any

from research_pipeline.core import Synthesis
from research_pipeline.errors import ResponseParseError


def fix_json(text: str) -> str:
    """Try to fix common JSON issues."""
    # Remove trailing commas before } or ]
    return re.sub(r",(\s*[}\]])", r"\1", text)


def extract_json_object(text: str) -> str:
    """Cut the span from the first ``{`` to the last ``}`` out of ``text``.

    Agents tend to wrap their answer in prose or markdown fences; everything
    outside the outermost braces is dropped. Text without such a span is
    returned trimmed.
    """
    text = text.strip()
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        text = text[start:end + 1]
    return fix_json(text)


def parse_synthesis(output: str) -> Synthesis:
    """Parse agent stdout into a ``Synthesis``.

    Raises:
        ResponseParseError: No JSON object could be decoded.
    """
    json_text = extract_json_object(output)
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"failed to parse agent JSON: {e}", details={"output": output[:500]}) from e
    if not isinstance(data, dict):
        raise ResponseParseError("agent JSON is not an object", details={"output": output[:500]})

    return Synthesis(
        summary=_as_text(data.get("summary")),
        key_features=_as_list(data.get("key_features")),
        relevance_rationale=_as_text(data.get("relevance_rationale")),
        recommendations=_as_list(data.get("recommendations")),
        confidence=_as_confidence(data.get("confidence")),
    )


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return [str(entry) for entry in value if entry is not None]
    return [str(value)]


def _as_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:  # NaN
        return 0.0
    return min(1.0, max(0.0, confidence))
