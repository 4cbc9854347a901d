"""Placeholder scanning, substitution and sample data generation.

Two syntaxes are recognised:
- Simple form ``{{name}}`` where ``name`` is word characters only.
- Path form ``${expr}`` where ``expr`` may be a dotted path and may end with
  the ``?has_content`` suffix, which is dropped before lookup.

Only the matched placeholder is ever replaced. All surrounding characters,
including whitespace between tags, pass through untouched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from core.templates.models import DummyData, PlaceholderOccurrence
from core.templates.sample_values import SampleValueLookup, sample_value_for_key

_SIMPLE_RE = re.compile(r"\{\{(\w+)\}\}")
_PATH_RE = re.compile(r"\$\{([^}]+)\}")
_CONDITIONAL_SUFFIX_RE = re.compile(r"\?has_content$")


def resolve(source: str, data: Mapping[str, Any]) -> str:
    """Substitute both placeholder forms with values from ``data``.

    A placeholder with no resolvable value is left verbatim, delimiters
    included, so partially filled templates stay recognisable.
    """

    def _replace_simple(match: re.Match[str]) -> str:
        value = data.get(match.group(1))
        return match.group(0) if value is None else str(value)

    def _replace_path(match: re.Match[str]) -> str:
        path = _strip_suffix(match.group(1))
        value = data.get(path)
        if value is None:
            value = lookup_path(data, path)
        return match.group(0) if value is None else str(value)

    out = _SIMPLE_RE.sub(_replace_simple, source)
    return _PATH_RE.sub(_replace_path, out)


def collect_names(source: str) -> list[str]:
    """Return every distinct placeholder name/path in first-seen order."""

    names: list[str] = []
    seen: set[str] = set()
    for match in _SIMPLE_RE.finditer(source):
        name = match.group(1)
        if name not in seen:
            names.append(name)
            seen.add(name)
    for match in _PATH_RE.finditer(source):
        path = _strip_suffix(match.group(1))
        if path and path not in seen:
            names.append(path)
            seen.add(path)
    return names


def find_placeholders(source: str) -> list[PlaceholderOccurrence]:
    """List placeholder occurrences with their offsets, in source order."""

    occurrences = [
        PlaceholderOccurrence(
            syntax="simple",
            name=match.group(1),
            start=match.start(),
            end=match.end(),
            text=match.group(0),
        )
        for match in _SIMPLE_RE.finditer(source)
    ]
    occurrences.extend(
        PlaceholderOccurrence(
            syntax="path",
            name=_strip_suffix(match.group(1)),
            start=match.start(),
            end=match.end(),
            text=match.group(0),
        )
        for match in _PATH_RE.finditer(source)
    )
    return sorted(occurrences, key=lambda item: (item.start, item.end))


def lookup_path(data: Mapping[str, Any], path: str) -> Any | None:
    """Walk ``data`` along a dotted path; ``None`` when any hop is missing."""

    current: Any = data
    for part in path.strip().split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part.strip())
        if current is None:
            return None
    return current


def generate_dummy_data(
    source: str, lookup: SampleValueLookup = sample_value_for_key
) -> DummyData:
    """Build nested sample data for every placeholder referenced in ``source``."""

    data: DummyData = {}
    for path in collect_names(source):
        last_segment = path.split(".")[-1].strip()
        _set_path(data, path, lookup(last_segment))
    return data


def _set_path(data: DummyData, path: str, value: str | int) -> None:
    parts = [part.strip() for part in path.strip().split(".")]
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    if parts[-1]:
        current[parts[-1]] = value


def _strip_suffix(expression: str) -> str:
    return _CONDITIONAL_SUFFIX_RE.sub("", expression).strip()
