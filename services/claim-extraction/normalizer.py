"""Cleanup of raw extracted fragments into presentable field values."""

import re
from typing import Any

from models import NOT_FOUND

_WHITESPACE = re.compile(r"\s+")
_LIST_MARKER = re.compile(r"^(?:\d{1,3}[.)]|[-*•])\s+")
_EDGE_PUNCT_LEFT = re.compile(r"^[\s:;,.\-–—\"'`]+")
_EDGE_PUNCT_RIGHT = re.compile(r"[\s:;,.\-–—\"'`]+$")


def clean(value: Any) -> str:
    """Collapse whitespace and strip edge punctuation and list markers.

    None, non-strings and strings that clean down to nothing become
    ``"Not found"``.
    """
    if not isinstance(value, str):
        return NOT_FOUND

    text = _WHITESPACE.sub(" ", value).strip()
    text = _LIST_MARKER.sub("", text)
    text = _EDGE_PUNCT_LEFT.sub("", text)
    text = _EDGE_PUNCT_RIGHT.sub("", text)

    return text or NOT_FOUND


def clean_list(values: Any) -> list[str]:
    """Clean each element of a list value, never returning an empty list."""
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)):
        return [NOT_FOUND]

    cleaned: list[str] = []
    seen: set[str] = set()
    for value in values:
        item = clean(value)
        if item == NOT_FOUND or item.casefold() in seen:
            continue
        seen.add(item.casefold())
        cleaned.append(item)

    return cleaned or [NOT_FOUND]
