from __future__ import annotations

import json
import re
from typing import Any, Optional

FENCE_RE = re.compile(r"```(?:json)?", re.I)


def strip_code_fences(text: str) -> str:
    return FENCE_RE.sub("", text or "").strip()


def balanced_object_span(text: str, start: int = 0) -> Optional[tuple[int, int]]:
    """(begin, end) of the first balanced ``{...}`` at or after ``start``.

    String literals are skipped so braces inside quoted values do not count.
    """
    begin = text.find("{", start)
    if begin == -1:
        return None
    depth = 0
    in_str: Optional[str] = None
    escaped = False
    for i in range(begin, len(text)):
        ch = text[i]
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == in_str:
                in_str = None
            continue
        if ch in ('"', "'"):
            in_str = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return begin, i + 1
    return None


def first_json_object(text: str, start: int = 0) -> Optional[dict[str, Any]]:
    """Parse the first balanced JSON object in ``text``; ``None`` if absent or invalid."""
    span = balanced_object_span(text, start)
    if span is None:
        return None
    try:
        data = json.loads(text[span[0]:span[1]])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
