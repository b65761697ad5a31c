"""Low-level text helpers used across the comment pipeline.

No dependency on schemas, models, or any other project module.
"""

import json
import re
from typing import Optional

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def normalize_whitespace(text: str) -> str:
    return " ".join((text or "").split()).strip()


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced block, or the trimmed text if there is none."""
    raw = (text or "").strip()
    match = _CODE_FENCE_RE.search(raw)
    if match:
        return match.group(1).strip()
    return raw


def extract_json_object(text: str) -> Optional[dict]:
    raw = strip_code_fence(text)
    if not raw:
        return None
    try:
        obj = json.loads(raw)
        return obj if isinstance(obj, dict) else None
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}")
    if start >= 0 and end > start:
        chunk = raw[start : end + 1]
        try:
            obj = json.loads(chunk)
            return obj if isinstance(obj, dict) else None
        except json.JSONDecodeError:
            return None
    return None


def preview(text: str, limit: int = 80) -> str:
    flat = normalize_whitespace(text)
    return flat if len(flat) <= limit else flat[: limit - 3] + "..."
