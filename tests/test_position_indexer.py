from __future__ import annotations

import itertools

import pytest

from core.markup.models import ElementPosition
from core.markup.position_indexer import containing_id, find_position, index_positions


def _spans(source: str) -> list[tuple[int, str, int, int, int]]:
    records = index_positions(source)
    assert records is not None
    return [
        (item.element_id, item.tag_name, item.start_offset, item.end_offset, item.open_tag_end_offset)
        for item in records
    ]


def test_single_element_with_placeholder() -> None:
    assert _spans("<div>Hello {{name}}</div>") == [(0, "div", 0, 25, 4)]


def test_ids_follow_pre_order() -> None:
    assert _spans("<div><p>a</p><span>b</span></div>") == [
        (0, "div", 0, 33, 4),
        (1, "p", 5, 13, 7),
        (2, "span", 13, 27, 18),
    ]


def test_tag_names_are_lowercase() -> None:
    assert _spans("<DIV></DIV>") == [(0, "div", 0, 11, 4)]


def test_void_element_closes_immediately() -> None:
    assert _spans("<p>a<br>b</p>") == [(0, "p", 0, 13, 2), (1, "br", 4, 8, 7)]


def test_self_closing_syntax() -> None:
    assert _spans("<img src='x'/>") == [(0, "img", 0, 14, 13)]


def test_self_closing_slash_is_ignored_on_normal_elements() -> None:
    assert _spans("<div/>x</div>") == [(0, "div", 0, 13, 5)]
    assert _spans("<div/><p>a</p>") == [(0, "div", 0, 14, 5), (1, "p", 6, 14, 8)]


def test_self_closing_slash_closes_svg_children() -> None:
    assert _spans('<svg><path d="M0"/><circle/></svg>') == [
        (0, "svg", 0, 34, 4),
        (1, "path", 5, 19, 18),
        (2, "circle", 19, 28, 27),
    ]


def test_optional_end_tags_are_implied() -> None:
    assert _spans("<ul><li>a<li>b</ul>") == [
        (0, "ul", 0, 19, 3),
        (1, "li", 4, 9, 7),
        (2, "li", 9, 14, 12),
    ]


def test_table_cells_are_implied() -> None:
    spans = _spans("<table><tr><td>a<td>b<tr><td>c</table>")

    assert [(tag, start, end) for _, tag, start, end, _ in spans] == [
        ("table", 0, 38),
        ("tr", 7, 21),
        ("td", 11, 16),
        ("td", 16, 21),
        ("tr", 21, 30),
        ("td", 25, 30),
    ]


def test_unclosed_elements_end_at_input_end() -> None:
    assert _spans("<div><span>x") == [(0, "div", 0, 12, 4), (1, "span", 5, 12, 10)]


def test_stray_end_tag_is_ignored() -> None:
    assert _spans("<div></span>x</div>") == [(0, "div", 0, 19, 4)]


def test_directive_tags_are_not_elements() -> None:
    assert _spans("<#if a><div>x</div></#if>") == [(0, "div", 7, 19, 11)]


def test_quoted_gt_inside_attribute() -> None:
    assert _spans('<a title="x>y">t</a>') == [(0, "a", 0, 20, 14)]


def test_document_shell_is_transparent() -> None:
    assert _spans("<html><body><p>x</p></body></html>") == [(0, "p", 12, 20, 14)]


def test_offsets_across_lines() -> None:
    assert _spans("<div>\n  <p>x</p>\n</div>")[1] == (1, "p", 8, 16, 10)


def test_offsets_with_crlf_line_endings() -> None:
    assert _spans("<div>\r\n  <p>x</p>\r\n</div>")[1] == (1, "p", 9, 17, 11)


def test_offsets_after_entities_and_comments() -> None:
    assert _spans("a &amp; b<!-- <i> --><b>c</b>") == [(0, "b", 21, 29, 23)]


def test_script_content_is_not_parsed_as_markup() -> None:
    assert [tag for _, tag, *_ in _spans("<script>if (a<b) {}</script><i>x</i>")] == [
        "script",
        "i",
    ]


def test_spans_nest_or_are_disjoint() -> None:
    source = (
        "<div class='a'>\n  <#list items as item>\n  <table><tr><td>${item.Name}"
        "<td><p>one<p>two</table>\n  </#list>\n  <ul><li>x<li><b>y</ul>\n</div><br>"
    )
    records = index_positions(source)
    assert records is not None

    for first, second in itertools.combinations(records, 2):
        disjoint = first.end_offset <= second.start_offset or second.end_offset <= first.start_offset
        nested = (first.start_offset <= second.start_offset and second.end_offset <= first.end_offset) or (
            second.start_offset <= first.start_offset and first.end_offset <= second.end_offset
        )
        assert disjoint or nested, (first, second)
    assert [record.element_id for record in records] == list(range(len(records)))


def test_open_tag_end_points_at_closing_bracket() -> None:
    source = '<td\n  class="x"\n  >y</td>'
    records = index_positions(source)
    assert records is not None

    assert source[records[0].open_tag_end_offset] == ">"
    assert records[0].open_tag_end_offset == 18


def test_parse_failure_returns_none(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(source: str) -> None:
        raise RuntimeError("parser exploded")

    monkeypatch.setattr("core.markup.position_indexer.parse_fragment", _boom)

    assert index_positions("<div>") is None


def test_empty_source_has_no_positions() -> None:
    assert index_positions("") == []
    assert index_positions("just text") == []


def _record(element_id: int, start: int, end: int, tag: str = "div") -> ElementPosition:
    return ElementPosition(
        element_id=element_id,
        start_offset=start,
        end_offset=end,
        open_tag_end_offset=start + len(tag) + 1,
        tag_name=tag,
    )


def test_containing_id_prefers_smallest_span() -> None:
    records = [_record(0, 0, 100), _record(1, 20, 40)]

    assert containing_id(records, 25, 30) == 1
    assert containing_id(records, 20, 40) == 1
    assert containing_id(records, 50, 60) == 0
    assert containing_id(records, 10, 30) == 0


def test_containing_id_none_outside_every_span() -> None:
    records = [_record(0, 0, 100)]

    assert containing_id(records, 150, 160) is None
    assert containing_id([], 0, 0) is None


def test_containing_id_tie_goes_to_lowest_id() -> None:
    records = [_record(0, 0, 10), _record(1, 0, 10)]

    assert containing_id(records, 2, 3) == 0


def test_containing_id_on_parsed_source() -> None:
    source = "<div><p>alpha</p><p>beta</p></div>"
    records = index_positions(source)
    assert records is not None

    offset = source.index("beta")
    assert containing_id(records, offset, offset + 4) == 2
    assert containing_id(records, 0, len(source)) == 0


def test_find_position_handles_stale_ids() -> None:
    records = [_record(0, 0, 10), _record(1, 2, 5)]

    assert find_position(records, 1) == records[1]
    assert find_position(records, 7) is None
    assert find_position(records, -1) is None
