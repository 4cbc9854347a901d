"""Non-destructive patching of the original template source.

Only slicing and splicing are used. Every character outside a removed span or
an injected style attribute keeps its original value and relative order; no
trimming, reflow or re-serialization happens anywhere.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from core.edits.models import EditSet, StyleEdit
from core.markup.models import ElementPosition
from core.markup.position_indexer import find_position

logger = logging.getLogger("tplkit.engine")


@dataclass(frozen=True)
class RemovalSpan:
    """Half-open span of the original source scheduled for deletion."""

    element_id: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class StyleInsertion:
    """Attribute text to splice in at an offset of the post-removal string."""

    element_id: int
    offset: int
    text: str


def apply_edits(source: str, records: Sequence[ElementPosition], edits: EditSet) -> str:
    """Apply removals then style injections to ``source``.

    ``records`` must come from indexing this exact ``source``. Ids with no
    record are stale and skipped silently.
    """

    if not records:
        return source

    removals = removal_spans(records, edits)
    result = source
    for span in sorted(removals, key=lambda item: item.start, reverse=True):
        result = result[: span.start] + result[span.end :]

    for insertion in sorted(
        style_insertions(source, records, edits, removals),
        key=lambda item: item.offset,
        reverse=True,
    ):
        result = result[: insertion.offset] + insertion.text + result[insertion.offset :]
    return result


def removal_spans(records: Sequence[ElementPosition], edits: EditSet) -> list[RemovalSpan]:
    """Resolve removal ids to spans, dropping stale ids and nested duplicates."""

    spans: list[RemovalSpan] = []
    for element_id in sorted(edits.removals):
        record = find_position(records, element_id)
        if record is None:
            logger.debug("skipping stale removal id=%d", element_id)
            continue
        spans.append(RemovalSpan(element_id, record.start_offset, record.end_offset))

    # spans nest or are disjoint; a span inside another removal is already covered
    outermost: list[RemovalSpan] = []
    for span in sorted(spans, key=lambda item: (item.start, -item.end)):
        if outermost and span.end <= outermost[-1].end:
            continue
        outermost.append(span)
    return outermost


def remap_offset(offset: int, removals: Sequence[RemovalSpan]) -> int:
    """Map an original offset into the string left after all removals."""

    shift = 0
    for span in removals:
        if span.end <= offset:
            shift += span.length
    return offset - shift


def style_insertions(
    source: str,
    records: Sequence[ElementPosition],
    edits: EditSet,
    removals: Sequence[RemovalSpan],
) -> list[StyleInsertion]:
    """Compute style attribute insertions in post-removal coordinates.

    A style is dropped when its element is removed or sits inside a removed
    span; removal always wins.
    """

    insertions: list[StyleInsertion] = []
    for element_id, style in edits.styles.items():
        if element_id in edits.removals:
            continue
        record = find_position(records, element_id)
        if record is None:
            logger.debug("skipping stale style id=%d", element_id)
            continue
        if any(span.start <= record.start_offset < span.end for span in removals):
            logger.debug("skipping style on removed subtree id=%d", element_id)
            continue
        attribute = style_attribute(style)
        if not attribute:
            continue
        offset = _insertion_point(source, record)
        insertions.append(
            StyleInsertion(
                element_id=element_id,
                offset=remap_offset(offset, removals),
                text=attribute,
            )
        )
    return insertions


def style_attribute(style: StyleEdit) -> str:
    """Build `` style="padding: X; margin: Y"`` from the set properties."""

    declarations = style.declarations()
    if not declarations:
        return ""
    return f' style="{"; ".join(declarations)}"'


def _insertion_point(source: str, record: ElementPosition) -> int:
    offset = record.open_tag_end_offset
    # keep self-closing syntax intact: <br/> becomes <br style="..."/>
    if offset > record.start_offset and source[offset - 1 : offset] == "/":
        return offset - 1
    return offset
