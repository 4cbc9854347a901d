"""CLI I/O helpers for reading sources and atomic output writing."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from core.edits.models import EditSet, load_edit_set
from core.utils.errors import EditSpecError


def read_source(path: Path) -> str:
    """Read a template verbatim; newlines are not translated."""

    with path.open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


def load_edits_file(path: Path | None) -> EditSet:
    """Load an edit set JSON file; a missing option means no edits."""

    if path is None:
        return EditSet()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise EditSpecError(f"Invalid edits JSON: {path}") from exc
    return load_edit_set(raw)


def write_text_atomic(path: Path, text: str) -> None:
    """Write text output atomically using a temporary file + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        with tmp_path.open("w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write a JSON report atomically."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        json.dump(payload, tmp, ensure_ascii=False, sort_keys=True, indent=2)

    tmp_path.replace(path)


def dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2)
