"""Lexical removal of directive tags (``<#if ...>``, ``</#list>``).

Directives are not evaluated: conditionals always show their body and loops
show their body once. Only the directive tags themselves are removed.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from core.templates.models import DirectiveTag
from core.templates.placeholders import resolve

_OPEN_DIRECTIVE_RE = re.compile(r"<#\w[\s\S]*?>")
_CLOSE_DIRECTIVE_RE = re.compile(r"</#\w[\s\S]*?>")
_DIRECTIVE_NAME_RE = re.compile(r"</?#(\w+)")


def strip_directives(source: str) -> str:
    """Remove every directive tag, re-scanning until nothing changes."""

    out = source
    previous = None
    while previous != out:
        previous = out
        out = _OPEN_DIRECTIVE_RE.sub("", out)
        out = _CLOSE_DIRECTIVE_RE.sub("", out)
    return out


def to_resolved(source: str, data: Mapping[str, Any]) -> str:
    """Fill placeholders then strip directives; the preview-only rendition."""

    return strip_directives(resolve(source, data))


def find_directives(source: str) -> list[DirectiveTag]:
    """List directive tags present in ``source`` (single pass, source order)."""

    tags: list[DirectiveTag] = []
    for pattern, closing in ((_OPEN_DIRECTIVE_RE, False), (_CLOSE_DIRECTIVE_RE, True)):
        for match in pattern.finditer(source):
            name_match = _DIRECTIVE_NAME_RE.match(match.group(0))
            tags.append(
                DirectiveTag(
                    name=name_match.group(1) if name_match else "",
                    closing=closing,
                    start=match.start(),
                    end=match.end(),
                    text=match.group(0),
                )
            )
    return sorted(tags, key=lambda item: item.start)
