from __future__ import annotations

import time

from core.edits.models import create_edits
from core.markup.tree_builder import line_column, line_starts
from core.orchestrator.reports import build_locate_report, build_session_report
from core.orchestrator.session import build_session


def test_positions_carry_line_and_column() -> None:
    session = build_session("<div>\n  <p>a</p>\r\n\t<b>c</b>\n</div>")

    report = build_session_report(session)

    assert [(entry.tag_name, entry.line, entry.column) for entry in report.positions] == [
        ("div", 1, 0),
        ("p", 2, 2),
        ("b", 3, 1),
    ]


def test_line_column_with_shared_line_table() -> None:
    source = "ab\ncd\n\nef"
    starts = line_starts(source)

    assert starts == [0, 3, 6, 7]
    assert [line_column(source, offset, starts) for offset in (0, 4, 6, 8)] == [
        (1, 0),
        (2, 1),
        (3, 0),
        (4, 1),
    ]
    assert line_column(source, 4) == (2, 1)


def test_preview_indexes_in_report_skip_removed_elements() -> None:
    session = build_session("<p>a</p><p>b</p><p>c</p>", create_edits().with_removal(1))

    report = build_session_report(session)

    assert [entry.preview_index for entry in report.positions] == [0, None, 1]
    assert build_locate_report(session, 1).removed is True


def test_session_report_scales_linearly() -> None:
    source = "<div><p>{{name}}</p><span>${a.b}</span></div>\n" * 1700
    session = build_session(source)
    assert session.positions is not None
    assert len(session.positions) == 5100

    started = time.perf_counter()
    report = build_session_report(session)
    elapsed = time.perf_counter() - started

    assert report.element_count == 5100
    assert report.positions[-1].line == 1700
    assert report.positions[-1].preview_index == 5099
    assert elapsed < 1.0
