import json
import re
from typing import Any, Dict, Optional

_OPENING_FENCE = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\n?```\s*$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    text = (text or "").strip()
    text = _OPENING_FENCE.sub("", text)
    text = _CLOSING_FENCE.sub("", text)
    return text.strip()


def safe_json(s: str, fallback: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Parse an LLM response into a JSON object, or return ``fallback`` ({} by default)."""
    fallback = {} if fallback is None else fallback
    try:
        data = json.loads(strip_code_fences(s))
    except ValueError:
        return fallback
    return data if isinstance(data, dict) else fallback
