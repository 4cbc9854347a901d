"""JSON report models for sessions, shared by the CLI and the API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from core.markup.tree_builder import line_column, line_starts
from core.orchestrator.session import TemplateSession
from core.templates.directives import find_directives
from core.templates.placeholders import find_placeholders


class PositionEntry(BaseModel):
    """One indexed element with a human-friendly line/column."""

    model_config = ConfigDict(extra="forbid")

    element_id: int
    tag_name: str
    start_offset: int
    end_offset: int
    open_tag_end_offset: int
    line: int
    column: int
    preview_index: int | None = None


class PlaceholderEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    syntax: Literal["simple", "path"]
    name: str
    start: int
    end: int
    text: str


class DirectiveEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    closing: bool
    start: int
    end: int


class NamesReport(BaseModel):
    """Placeholders, directives and generated sample data for a source."""

    model_config = ConfigDict(extra="forbid")

    names: list[str] = Field(default_factory=list)
    placeholders: list[PlaceholderEntry] = Field(default_factory=list)
    directives: list[DirectiveEntry] = Field(default_factory=list)
    dummy_data: dict[str, Any] = Field(default_factory=dict)


class SessionReport(BaseModel):
    """Full inspection of one ``(source, edits)`` pair."""

    model_config = ConfigDict(extra="forbid")

    positions_available: bool
    element_count: int
    positions: list[PositionEntry] = Field(default_factory=list)
    patched_element_count: int | None = None
    names: NamesReport
    patched_source: str
    resolved_source: str
    preview_markup: str
    remaining_ids: list[int] = Field(default_factory=list)


class LocateReport(BaseModel):
    """Result of mapping a source selection or a preview click."""

    model_config = ConfigDict(extra="forbid")

    found: bool
    element_id: int | None = None
    preview_index: int | None = None
    tag_name: str | None = None
    start_offset: int | None = None
    end_offset: int | None = None
    selector: str | None = None
    removed: bool = False


def build_names_report(session: TemplateSession) -> NamesReport:
    return NamesReport(
        names=list(session.names),
        placeholders=[
            PlaceholderEntry(
                syntax=item.syntax, name=item.name, start=item.start, end=item.end, text=item.text
            )
            for item in find_placeholders(session.source)
        ],
        directives=[
            DirectiveEntry(name=item.name, closing=item.closing, start=item.start, end=item.end)
            for item in find_directives(session.source)
        ],
        dummy_data=session.dummy_data,
    )


def build_position_entries(session: TemplateSession) -> list[PositionEntry]:
    entries: list[PositionEntry] = []
    starts = line_starts(session.source)
    for position in session.positions or []:
        line, column = line_column(session.source, position.start_offset, starts)
        entries.append(
            PositionEntry(
                element_id=position.element_id,
                tag_name=position.tag_name,
                start_offset=position.start_offset,
                end_offset=position.end_offset,
                open_tag_end_offset=position.open_tag_end_offset,
                line=line,
                column=column,
                preview_index=session.id_to_preview_index(position.element_id),
            )
        )
    return entries


def build_session_report(session: TemplateSession) -> SessionReport:
    positions = build_position_entries(session)
    return SessionReport(
        positions_available=session.positions_available,
        element_count=len(positions),
        positions=positions,
        patched_element_count=(
            len(session.patched_positions) if session.patched_positions is not None else None
        ),
        names=build_names_report(session),
        patched_source=session.patched_source,
        resolved_source=session.resolved_source,
        preview_markup=session.preview_markup,
        remaining_ids=list(session.remaining),
    )


def build_locate_report(session: TemplateSession, element_id: int | None) -> LocateReport:
    details = session.describe(element_id) if element_id is not None else None
    if details is None:
        return LocateReport(found=False)
    return LocateReport(
        found=True,
        element_id=details.position.element_id,
        preview_index=session.id_to_preview_index(details.position.element_id),
        tag_name=details.position.tag_name,
        start_offset=details.position.start_offset,
        end_offset=details.position.end_offset,
        selector=details.selector,
        removed=details.removed,
    )
