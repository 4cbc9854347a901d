"""Template session pipeline: source + edits -> patched output and preview.

A session is rebuilt from scratch on every source or edit change. It ties the
three coordinate spaces together:
- element ids from indexing the original source,
- the patched source written back to the user,
- preview indexes from re-parsing the resolved, patched source.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

from pydantic import ValidationError

from core.edits.engine import apply_edits
from core.edits.models import EditSet, StyleEdit, create_edits
from core.markup.models import ElementPosition
from core.markup.position_indexer import containing_id, find_position, index_positions
from core.markup.preview import build_preview_markup
from core.markup.selectors import selector_from_snippet
from core.templates.directives import to_resolved
from core.templates.models import DummyData
from core.templates.placeholders import collect_names, generate_dummy_data
from core.templates.sample_values import SampleValueLookup, sample_value_for_key
from core.utils.errors import EditSpecError


@dataclass(frozen=True)
class SelectionMatch:
    """Element found for a source selection, with its preview index if visible."""

    element_id: int
    preview_index: int | None


@dataclass(frozen=True)
class ElementDetails:
    """Inspector view of one element."""

    position: ElementPosition
    snippet: str
    selector: str | None
    style: StyleEdit | None
    removed: bool


@dataclass(frozen=True)
class TemplateSession:
    """Everything derived from one ``(source, edits)`` pair."""

    source: str
    edits: EditSet
    positions: list[ElementPosition] | None
    names: list[str]
    dummy_data: DummyData
    patched_source: str
    patched_positions: list[ElementPosition] | None
    resolved_source: str
    preview_markup: str
    remaining: list[int] = field(default_factory=list)
    _preview_indexes: dict[int, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        indexes = {element_id: index for index, element_id in enumerate(self.remaining)}
        object.__setattr__(self, "_preview_indexes", indexes)

    @property
    def positions_available(self) -> bool:
        return self.positions is not None

    def preview_index_to_id(self, preview_index: int) -> int | None:
        """Map a clicked preview index back to an element id of ``source``."""

        if 0 <= preview_index < len(self.remaining):
            return self.remaining[preview_index]
        return None

    def id_to_preview_index(self, element_id: int) -> int | None:
        return self._preview_indexes.get(element_id)

    def locate(self, start: int, end: int) -> SelectionMatch | None:
        """Resolve a selection in ``source`` to its innermost element."""

        if self.positions is None:
            return None
        element_id = containing_id(self.positions, start, end)
        if element_id is None:
            return None
        return SelectionMatch(element_id, self.id_to_preview_index(element_id))

    def describe(self, element_id: int) -> ElementDetails | None:
        if self.positions is None:
            return None
        position = find_position(self.positions, element_id)
        if position is None:
            return None
        return ElementDetails(
            position=position,
            snippet=self.source[position.start_offset : position.end_offset],
            selector=selector_from_snippet(
                self.source[position.start_offset : position.open_tag_end_offset + 1]
            ),
            style=self.edits.styles.get(element_id),
            removed=element_id in self.edits.removals,
        )


def build_session(
    source: str,
    edits: EditSet | None = None,
    lookup: SampleValueLookup = sample_value_for_key,
) -> TemplateSession:
    """Run the full pipeline for one source and edit set."""

    current_edits = edits if edits is not None else create_edits()
    positions = index_positions(source)
    dummy_data = generate_dummy_data(source, lookup)

    if positions is None:
        patched = source
        remaining: list[int] = []
    else:
        patched = apply_edits(source, positions, current_edits)
        remaining = remaining_ids(positions, current_edits)

    resolved = to_resolved(patched, dummy_data)
    return TemplateSession(
        source=source,
        edits=current_edits,
        positions=positions,
        names=collect_names(source),
        dummy_data=dummy_data,
        patched_source=patched,
        patched_positions=index_positions(patched) if positions is not None else None,
        resolved_source=resolved,
        preview_markup=build_preview_markup(resolved),
        remaining=remaining,
    )


def remaining_ids(records: Sequence[ElementPosition], edits: EditSet) -> list[int]:
    """Ids still present after removals, in start-offset order.

    Position ``i`` in the result is preview index ``i``. Descendants of a
    removed element are gone from the output too and are excluded.
    """

    kept: list[int] = []
    removed_until = -1
    # spans nest or are disjoint, so one sweep in start order finds removed subtrees
    for record in sorted(records, key=lambda item: (item.start_offset, -item.end_offset)):
        if record.start_offset < removed_until:
            continue
        if record.element_id in edits.removals:
            removed_until = record.end_offset
            continue
        kept.append(record.element_id)
    return kept


def apply_padding(edits: EditSet, element_id: int, value: str) -> EditSet:
    """Inspector action: set padding on an element. Blank values are ignored."""

    padding = value.strip()
    if not padding:
        return edits
    return edits.with_style(element_id, _style_edit(padding=padding))


def apply_margin(edits: EditSet, element_id: int, value: str) -> EditSet:
    margin = value.strip()
    if not margin:
        return edits
    return edits.with_style(element_id, _style_edit(margin=margin))


def _style_edit(**values: str) -> StyleEdit:
    try:
        return StyleEdit(**values)
    except ValidationError as exc:
        raise EditSpecError(f"Invalid style value: {values}", payload=values) from exc


def remove_element(edits: EditSet, element_id: int) -> EditSet:
    """Inspector action: schedule removal and drop any pending style."""

    return edits.with_removal(element_id).without_style(element_id)


def rebase_edits(
    old_records: Sequence[ElementPosition],
    new_records: Sequence[ElementPosition],
    edits: EditSet,
) -> EditSet:
    """Carry edits across a re-parse by matching ``(tag_name, ordinal)``.

    Ids are only meaningful per parse. An element keeps its edits when the
    new parse has an element with the same tag at the same position among
    elements of that tag; edits with no counterpart are dropped.
    """

    old_keys = _structural_keys(old_records)
    new_ids = {key: element_id for element_id, key in _structural_keys(new_records).items()}

    def _translate(element_id: int) -> int | None:
        key = old_keys.get(element_id)
        return new_ids.get(key) if key is not None else None

    removals = {
        new_id for new_id in (_translate(element_id) for element_id in edits.removals)
        if new_id is not None
    }
    styles: dict[int, StyleEdit] = {}
    for element_id, style in edits.styles.items():
        new_id = _translate(element_id)
        if new_id is not None:
            styles[new_id] = style
    return EditSet(removals=frozenset(removals), styles=styles)


def _structural_keys(records: Sequence[ElementPosition]) -> dict[int, tuple[str, int]]:
    ordinals: dict[str, int] = defaultdict(int)
    keys: dict[int, tuple[str, int]] = {}
    for record in sorted(records, key=lambda item: item.element_id):
        keys[record.element_id] = (record.tag_name, ordinals[record.tag_name])
        ordinals[record.tag_name] += 1
    return keys
