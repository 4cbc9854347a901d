"""Data models for placeholder scanning and directive tags."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

DummyData = dict[str, Any]
"""Nested sample data keyed by dotted path segments; leaves are str or int."""

PlaceholderSyntax = Literal["simple", "path"]


@dataclass(frozen=True)
class PlaceholderOccurrence:
    """A placeholder match located in the scanned source."""

    syntax: PlaceholderSyntax
    name: str
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class DirectiveTag:
    """A directive tag (``<#if ...>``, ``</#list>``) found in the raw source."""

    name: str
    closing: bool
    start: int
    end: int
    text: str
