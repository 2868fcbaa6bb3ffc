"""Helpers for reading JSON out of model responses."""

from __future__ import annotations

import json
import re
from typing import Any

_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse the JSON object in a model response.

    Markdown fences and any chatter around the outermost ``{...}`` block
    are ignored.

    Raises:
        ValueError: If no JSON object can be decoded.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)

    match = _OBJECT_RE.search(cleaned)
    if match:
        cleaned = match.group(0)

    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError(f"JSONオブジェクトではありません: {type(data).__name__}")
    return data
