# utils/response_parsing.py
"""Helpers for pulling structured data out of raw model responses."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:[a-zA-Z0-9_-]+)?\s*(.*?)\s*```", re.DOTALL)
_LIST_MARKER_RE = re.compile(r"^\s*(?:[-*•]+|\d+[.)]|[a-zA-Z][.)])\s+")


def strip_code_fences(text: str) -> str:
    match = _FENCE_RE.search(text or "")
    return match.group(1) if match else (text or "")


def extract_json(text: str) -> Any | None:
    """Parse JSON from ``text``, tolerating fences and surrounding prose."""
    if not text or not text.strip():
        return None
    candidate = strip_code_fences(text).strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    for pattern in (r"\{.*\}", r"\[.*\]"):
        match = re.search(pattern, candidate, re.DOTALL)
        if not match:
            continue
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.debug("Embedded JSON block failed to parse", snippet=match.group(0)[:120])
    logger.debug("No JSON found in model response", snippet=candidate[:120])
    return None


def strip_list_marker(line: str) -> str:
    return _LIST_MARKER_RE.sub("", line).strip()


def split_list_lines(text: str) -> list[str]:
    """Non-empty lines with bullets and numbering removed."""
    items: list[str] = []
    for raw_line in strip_code_fences(text).splitlines():
        line = strip_list_marker(raw_line)
        line = line.strip("*_ ").strip()
        if line:
            items.append(line)
    return items


def as_str_list(value: Any) -> list[str]:
    """Coerce a JSON value into a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list | tuple):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return [str(value).strip()]


def as_list(value: Any) -> list[Any]:
    """``value`` when it is a JSON array, otherwise an empty list."""
    return value if isinstance(value, list) else []
