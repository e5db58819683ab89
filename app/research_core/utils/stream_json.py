"""Utilities for tolerant parsing of `data: <json>` stream records."""

from __future__ import annotations
import json
from typing import Any, Optional

DATA_PREFIX = "data: "


def parse_data_line(line: str) -> Optional[dict]:
    """
    Parse one stream record.
    - Lines without the `data: ` prefix are not records: None.
    - Malformed JSON or a non-object payload: None (dropped, never fatal).
    """
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None
    try:
        obj: Any = json.loads(line[len(DATA_PREFIX) :])
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def extract_content(record: Optional[dict]) -> Optional[str]:
    """Return the record's non-empty `content` string, else None."""
    if not record:
        return None
    content = record.get("content")
    if isinstance(content, str) and content:
        return content
    return None
