"""Tolerant HTML fragment parser that records source offsets.

Built on ``html.parser.HTMLParser``. The parser is tolerant the way browsers
are for the cases templates actually hit:
- void elements (``<br>``, ``<img>``) close immediately; ``<div/>`` keeps the
  element open like ``<div>``, except inside ``<svg>``/``<math>`` where the
  slash closes it,
- optional end tags (``p``, ``li``, ``td``, ``tr`` ...) are implied when a
  sibling that cannot nest inside them opens,
- an end tag closes every element opened after its match,
- stray end tags are ignored,
- anything still open at the end of input ends at ``len(source)``.

Document-shell tags (``html``, ``head``, ``body``) are transparent: their
children attach to the enclosing node and they are never recorded.
"""

from __future__ import annotations

import bisect
import re
from collections.abc import Sequence
from html.parser import HTMLParser

from core.markup.models import CommentNode, ElementNode, Fragment, MarkupNode, TextNode

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "keygen",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

SHELL_ELEMENTS = frozenset({"html", "head", "body"})
FOREIGN_ROOTS = frozenset({"svg", "math"})

_P_CLOSERS = frozenset(
    {
        "address",
        "article",
        "aside",
        "blockquote",
        "details",
        "div",
        "dl",
        "fieldset",
        "figcaption",
        "figure",
        "footer",
        "form",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "hr",
        "main",
        "nav",
        "ol",
        "p",
        "pre",
        "section",
        "table",
        "ul",
    }
)
_TABLE_SECTIONS = frozenset({"thead", "tbody", "tfoot"})
_CELLS = frozenset({"td", "th"})

# open element -> opening tags that implicitly end it
_IMPLIED_END: dict[str, frozenset[str]] = {
    "p": _P_CLOSERS,
    "li": frozenset({"li"}),
    "dt": frozenset({"dt", "dd"}),
    "dd": frozenset({"dt", "dd"}),
    "option": frozenset({"option", "optgroup"}),
    "optgroup": frozenset({"optgroup"}),
    "tr": frozenset({"tr"}) | _TABLE_SECTIONS,
    "td": frozenset({"tr"}) | _CELLS | _TABLE_SECTIONS,
    "th": frozenset({"tr"}) | _CELLS | _TABLE_SECTIONS,
    "thead": _TABLE_SECTIONS,
    "tbody": _TABLE_SECTIONS,
    "tfoot": _TABLE_SECTIONS,
}

_REFERENCE_RE = re.compile(r"&#?[0-9A-Za-z]+;?")


class _PositionTreeBuilder(HTMLParser):
    """HTMLParser that assembles a :class:`Fragment` with absolute offsets."""

    def __init__(self, source: str) -> None:
        super().__init__(convert_charrefs=False)
        self._source = source
        self._line_starts = line_starts(source)
        self.fragment = Fragment(source=source)
        self._open: list[ElementNode] = []

    def build(self) -> Fragment:
        self.feed(self._source)
        self.close()
        for node in reversed(self._open):
            node.end_offset = len(self._source)
        self._open.clear()
        return self.fragment

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._open_element(tag, attrs, self_closing=False)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._open_element(tag, attrs, self_closing=True)

    def handle_endtag(self, tag: str) -> None:
        start = self._offset()
        if tag in SHELL_ELEMENTS:
            return
        for depth in range(len(self._open) - 1, -1, -1):
            if self._open[depth].tag_name == tag:
                break
        else:
            return

        close_end = self._source.find(">", start)
        end = close_end + 1 if close_end != -1 else len(self._source)
        while len(self._open) > depth + 1:
            self._open.pop().end_offset = start
        self._open.pop().end_offset = end

    def handle_data(self, data: str) -> None:
        start = self._offset()
        self._append_text(data, start)

    def handle_entityref(self, name: str) -> None:
        self._append_reference()

    def handle_charref(self, name: str) -> None:
        self._append_reference()

    def handle_comment(self, data: str) -> None:
        start = self._offset()
        if self._source.startswith("<!--", start):
            close_end = self._source.find(">", start + 4 + len(data))
        else:
            close_end = self._source.find(">", start)
        end = close_end + 1 if close_end != -1 else len(self._source)
        self._append(CommentNode(text=data, start_offset=start, end_offset=end))

    def _open_element(
        self, tag: str, attrs: list[tuple[str, str | None]], *, self_closing: bool
    ) -> None:
        start = self._offset()
        if tag in SHELL_ELEMENTS:
            return

        while self._open and tag in _IMPLIED_END.get(self._open[-1].tag_name, frozenset()):
            self._open.pop().end_offset = start

        start_tag_text = self.get_starttag_text() or ""
        start_tag_end = start + len(start_tag_text)
        node = ElementNode(
            tag_name=tag,
            attrs=list(attrs),
            start_offset=start,
            start_tag_end_offset=start_tag_end,
            self_closing=self_closing,
        )
        self._append(node)
        if tag in VOID_ELEMENTS or (self_closing and self._in_foreign_content(tag)):
            node.end_offset = start_tag_end
        else:
            self._open.append(node)

    def _in_foreign_content(self, tag: str) -> bool:
        return tag in FOREIGN_ROOTS or any(node.tag_name in FOREIGN_ROOTS for node in self._open)

    def _append_reference(self) -> None:
        start = self._offset()
        match = _REFERENCE_RE.match(self._source, start)
        text = match.group(0) if match else "&"
        self._append_text(text, start)

    def _append_text(self, text: str, start: int) -> None:
        siblings = self._siblings()
        if siblings and siblings[-1].kind == "text" and siblings[-1].end_offset == start:
            previous = siblings[-1]
            siblings[-1] = TextNode(
                text=previous.text + text,
                start_offset=previous.start_offset,
                end_offset=start + len(text),
            )
            return
        siblings.append(TextNode(text=text, start_offset=start, end_offset=start + len(text)))

    def _append(self, node: MarkupNode) -> None:
        self._siblings().append(node)

    def _siblings(self) -> list[MarkupNode]:
        if self._open:
            return self._open[-1].children
        return self.fragment.children

    def _offset(self) -> int:
        line, column = self.getpos()
        return self._line_starts[line - 1] + column


def parse_fragment(source: str) -> Fragment:
    """Parse ``source`` into a position-annotated fragment.

    May raise on input the underlying parser rejects outright; callers that
    must stay total wrap this call.
    """

    return _PositionTreeBuilder(source).build()


def line_starts(source: str) -> list[int]:
    """Offsets at which each line of ``source`` begins; the first is always 0."""

    return [0] + [index + 1 for index, char in enumerate(source) if char == "\n"]


def line_column(
    source: str, offset: int, starts: Sequence[int] | None = None
) -> tuple[int, int]:
    """Translate an absolute offset into a 1-based line and 0-based column.

    Pass ``starts`` from :func:`line_starts` when converting many offsets of
    the same source.
    """

    table = starts if starts is not None else line_starts(source)
    line_index = bisect.bisect_right(table, offset) - 1
    return line_index + 1, offset - table[line_index]
