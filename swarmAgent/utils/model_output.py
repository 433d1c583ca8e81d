"""Helpers for reading structured answers out of free-form model text."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

LOGGER = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse the outermost ``{...}`` in ``text``; None when absent or invalid."""
    if not text:
        return None
    cleaned = _CODE_FENCE.sub("", text.strip())
    match = _JSON_OBJECT.search(cleaned)
    if not match:
        return None
    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        LOGGER.debug(f"Model output is not valid JSON: {e}")
        return None
    return value if isinstance(value, dict) else None
