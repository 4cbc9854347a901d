"""Element position indexing and range containment queries."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from core.markup.models import ElementNode, ElementPosition, Fragment, walk_elements
from core.markup.tree_builder import parse_fragment

logger = logging.getLogger("tplkit.engine")


def index_positions(source: str) -> list[ElementPosition] | None:
    """Return element positions in pre-order, or ``None`` if parsing fails.

    Identifiers start at 0 and are only meaningful for this exact ``source``.
    """

    try:
        fragment = parse_fragment(source)
    except Exception:  # noqa: BLE001
        logger.warning("markup parse failed, no positions available (length=%d)", len(source))
        return None
    return positions_from_fragment(fragment)


def positions_from_fragment(fragment: Fragment) -> list[ElementPosition]:
    """Assign pre-order ids to every element of an already parsed fragment."""

    records: list[ElementPosition] = []

    def _record(node: ElementNode) -> None:
        if node.start_tag_end_offset > node.start_offset:
            open_tag_end = node.start_tag_end_offset - 1
        else:
            open_tag_end = node.end_offset - 1
        records.append(
            ElementPosition(
                element_id=len(records),
                start_offset=node.start_offset,
                end_offset=node.end_offset,
                open_tag_end_offset=open_tag_end,
                tag_name=node.tag_name.lower(),
            )
        )

    walk_elements(fragment.children, _record)
    return records


def containing_id(records: Sequence[ElementPosition], start: int, end: int) -> int | None:
    """Return the id of the smallest element whose span covers ``[start, end)``.

    Ties go to the lowest id. ``None`` when nothing contains the range.
    """

    best: ElementPosition | None = None
    for record in records:
        if not record.contains(start, end):
            continue
        if best is None or record.length < best.length:
            best = record
    return best.element_id if best is not None else None


def find_position(records: Sequence[ElementPosition], element_id: int) -> ElementPosition | None:
    """Look up a record by id; ``None`` for stale ids."""

    if 0 <= element_id < len(records) and records[element_id].element_id == element_id:
        return records[element_id]
    for record in records:
        if record.element_id == element_id:
            return record
    return None
