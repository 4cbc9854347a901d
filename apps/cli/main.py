"""Typer CLI entrypoint for tplkit."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from apps.cli.io import dump_json, load_edits_file, read_source, write_json_atomic, write_text_atomic
from core.edits.models import EditSet
from core.orchestrator.reports import (
    build_locate_report,
    build_names_report,
    build_session_report,
)
from core.orchestrator.session import TemplateSession, build_session
from core.templates.sample_values import SampleValueLookup, load_sample_table, sample_value_for_key
from core.utils.errors import ConfigError, EditSpecError

app = typer.Typer(help="Template preview and patching CLI", rich_markup_mode=None)

EXIT_OK = 0
EXIT_INTERNAL = 1
EXIT_INVALID_EDITS = 2
EXIT_NO_POSITIONS = 3

SourceOption = Annotated[
    Path, typer.Option(..., "--source", exists=True, dir_okay=False, file_okay=True)
]
EditsOption = Annotated[
    Path | None,
    typer.Option("--edits", exists=True, dir_okay=False, help="Edit set JSON file."),
]
SampleValuesOption = Annotated[
    Path | None,
    typer.Option("--sample-values", help="YAML sample-value table overriding the bundled one."),
]
OutOption = Annotated[Path | None, typer.Option("--out", help="Write output to this file.")]


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands explicit."""


@app.command("names")
def names_command(source: SourceOption, sample_values: SampleValuesOption = None) -> None:
    """List placeholders, directive tags and the generated sample data."""

    session = _load_session(source, None, sample_values)
    typer.echo(dump_json(build_names_report(session).model_dump(mode="json")))


@app.command("resolve")
def resolve_command(
    source: SourceOption,
    edits: EditsOption = None,
    sample_values: SampleValuesOption = None,
    out: OutOption = None,
) -> None:
    """Print the resolved source: placeholders filled, directive tags stripped."""

    session = _load_session(source, edits, sample_values)
    _emit_text(session.resolved_source, out)


@app.command("index")
def index_command(
    source: SourceOption,
    edits: EditsOption = None,
    out: OutOption = None,
) -> None:
    """Report every element's span in the source as JSON."""

    session = _load_session(source, edits, None)
    _require_positions(session)
    payload = build_session_report(session).model_dump(
        mode="json", include={"positions_available", "element_count", "positions", "remaining_ids"}
    )
    if out is not None:
        write_json_atomic(out, payload)
        typer.echo(f"INFO: wrote {payload['element_count']} positions to {out}")
        return
    typer.echo(dump_json(payload))


@app.command("preview")
def preview_command(
    source: SourceOption,
    edits: EditsOption = None,
    sample_values: SampleValuesOption = None,
    out: OutOption = None,
) -> None:
    """Print preview markup with preview indexes on every element."""

    session = _load_session(source, edits, sample_values)
    if not session.positions_available:
        typer.echo("WARNING: markup could not be indexed; preview is not interactive.", err=True)
    _emit_text(session.preview_markup, out)


@app.command("locate")
def locate_command(
    source: SourceOption,
    edits: EditsOption = None,
    start: Annotated[int | None, typer.Option("--start", min=0)] = None,
    end: Annotated[int | None, typer.Option("--end", min=0)] = None,
    preview_index: Annotated[int | None, typer.Option("--preview-index", min=0)] = None,
) -> None:
    """Map a source selection or a preview index to an element."""

    selection_given = start is not None
    if selection_given == (preview_index is not None):
        typer.echo("ERROR: pass either --start [--end] or --preview-index.")
        raise typer.Exit(code=EXIT_INTERNAL)

    session = _load_session(source, edits, None)
    _require_positions(session)

    if start is not None:
        selection_end = end if end is not None else start
        if selection_end < start:
            typer.echo("ERROR: --end must not be before --start.")
            raise typer.Exit(code=EXIT_INTERNAL)
        match = session.locate(start, selection_end)
        element_id = match.element_id if match is not None else None
    else:
        element_id = session.preview_index_to_id(preview_index or 0)

    typer.echo(dump_json(build_locate_report(session, element_id).model_dump(mode="json")))


@app.command("apply")
def apply_command(
    source: SourceOption,
    edits: Annotated[Path, typer.Option(..., "--edits", exists=True, dir_okay=False)],
    out: OutOption = None,
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite the output file when it already exists.")
    ] = False,
) -> None:
    """Apply removals and style injections, preserving all other formatting."""

    if out is not None and out.exists() and not force:
        typer.echo(f"ERROR: {out} already exists; pass --force to overwrite.")
        raise typer.Exit(code=EXIT_INTERNAL)

    session = _load_session(source, edits, None)
    _require_positions(session)

    stale = sorted(_stale_ids(session))
    if stale:
        typer.echo(f"WARNING: ignored edits for unknown element ids: {stale}", err=True)

    if out is not None:
        write_text_atomic(out, session.patched_source)
        typer.echo(f"INFO: wrote patched template to {out}")
        return
    typer.echo(session.patched_source, nl=False)


def _load_session(
    source: Path, edits_path: Path | None, sample_values: Path | None
) -> TemplateSession:
    try:
        edits = load_edits_file(edits_path)
    except EditSpecError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_EDITS) from exc

    try:
        lookup = _resolve_lookup(sample_values)
    except ConfigError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INTERNAL) from exc

    return build_session(read_source(source), edits, lookup)


def _resolve_lookup(path: Path | None) -> SampleValueLookup:
    if path is None:
        return sample_value_for_key
    return load_sample_table(path).lookup


def _require_positions(session: TemplateSession) -> None:
    if not session.positions_available:
        typer.echo("ERROR: markup could not be parsed; no element positions available.")
        raise typer.Exit(code=EXIT_NO_POSITIONS)


def _stale_ids(session: TemplateSession) -> set[int]:
    known = {position.element_id for position in session.positions or []}
    edits: EditSet = session.edits
    return (set(edits.removals) | set(edits.styles)) - known


def _emit_text(text: str, out: Path | None) -> None:
    if out is not None:
        write_text_atomic(out, text)
        typer.echo(f"INFO: wrote {out}")
        return
    typer.echo(text)


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
