"""Markup tree and element position models."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Literal


@dataclass
class ElementNode:
    """An element with its source span.

    ``start_tag_end_offset`` points just past the ``>`` of the opening tag.
    ``end_offset`` is filled in when the element is closed, explicitly or
    implicitly.
    """

    tag_name: str
    attrs: list[tuple[str, str | None]]
    start_offset: int
    start_tag_end_offset: int
    end_offset: int = -1
    self_closing: bool = False
    children: list[MarkupNode] = field(default_factory=list)
    kind: Literal["element"] = "element"


@dataclass(frozen=True)
class TextNode:
    """Raw character data, entity references kept as written."""

    text: str
    start_offset: int
    end_offset: int
    kind: Literal["text"] = "text"


@dataclass(frozen=True)
class CommentNode:
    """Comment or bogus comment (e.g. a ``</#if>`` directive end tag)."""

    text: str
    start_offset: int
    end_offset: int
    kind: Literal["comment"] = "comment"


MarkupNode = ElementNode | TextNode | CommentNode


@dataclass
class Fragment:
    """Top-level nodes of a parsed markup fragment."""

    source: str
    children: list[MarkupNode] = field(default_factory=list)


@dataclass(frozen=True)
class ElementPosition:
    """Location of one element in the exact string that was parsed."""

    element_id: int
    start_offset: int
    end_offset: int
    open_tag_end_offset: int
    tag_name: str

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset

    def contains(self, start: int, end: int) -> bool:
        return self.start_offset <= start and self.end_offset >= end


def walk_elements(nodes: Iterable[MarkupNode], visitor: Callable[[ElementNode], None]) -> None:
    """Call ``visitor`` on every element in document (pre-)order.

    Iterative so deeply nested input cannot exhaust the recursion limit.
    """

    stack: list[MarkupNode] = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        if node.kind != "element":
            continue
        visitor(node)
        stack.extend(reversed(node.children))
