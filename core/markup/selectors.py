"""Derive a CSS selector from a snippet of selected source code."""

from __future__ import annotations

import re

_ID_ATTR_RE = re.compile(r"""(?<![\w-])id\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
_CLASS_ATTR_RE = re.compile(r"""(?<![\w-])class\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def selector_from_snippet(snippet: str) -> str | None:
    """Return ``#id`` or ``.first-class`` for the first attribute found.

    An ``id`` wins over ``class``. Single-character class names are ignored.
    """

    trimmed = snippet.strip()
    if not trimmed:
        return None

    id_match = _ID_ATTR_RE.search(trimmed)
    if id_match:
        return "#" + _WHITESPACE_RE.sub("", id_match.group(1))

    class_match = _CLASS_ATTR_RE.search(trimmed)
    if class_match:
        classes = class_match.group(1).split()
        if classes and len(classes[0]) > 1:
            return "." + classes[0]
    return None
