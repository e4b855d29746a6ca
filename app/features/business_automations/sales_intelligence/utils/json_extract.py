"""
Lenient JSON extraction for LLM and agent replies.

Models often wrap JSON in markdown fences or add a sentence around it, so
the reply is cleaned first and then searched for the outermost block.
"""

import json
import re
from typing import Any, Optional

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


def extract_json(text: Optional[str]) -> Any:
    """
    Parse the JSON payload embedded in ``text``.

    Returns:
        Parsed object or list

    Raises:
        ValueError: If no JSON block can be decoded
    """
    if text is None:
        raise ValueError("Empty reply")
    if not isinstance(text, str):
        return text

    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # The block that opens first is the outermost one
    candidates = sorted(
        (cleaned.find(opener), cleaned.rfind(closer))
        for opener, closer in (("[", "]"), ("{", "}"))
    )
    for start, end in candidates:
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError:
                continue

    raise ValueError("No JSON block found in reply")
