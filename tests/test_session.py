from __future__ import annotations

import pytest

from core.edits.models import StyleEdit, create_edits
from core.markup.position_indexer import index_positions
from core.orchestrator.session import (
    apply_margin,
    apply_padding,
    build_session,
    rebase_edits,
    remaining_ids,
    remove_element,
)
from core.utils.errors import EditSpecError

SOURCE = (
    "<div>\n"
    "  <#if item.Name?has_content><p>${item.Name}</p></#if>\n"
    "  <span>{{count}}</span>\n"
    "</div>"
)


def test_session_names_and_sample_data() -> None:
    session = build_session(SOURCE)

    assert session.names == ["count", "item.Name"]
    assert session.dummy_data == {"count": 2, "item": {"Name": "Sample Product"}}


def test_session_resolved_source_strips_directives() -> None:
    session = build_session(SOURCE)

    assert session.resolved_source == "<div>\n  <p>Sample Product</p>\n  <span>2</span>\n</div>"
    assert session.patched_source == SOURCE


def test_session_preview_indexes_follow_remaining_ids() -> None:
    session = build_session(SOURCE)

    assert session.remaining == [0, 1, 2]
    assert 'data-node-id="2" data-tag-name="span"' in session.preview_markup
    assert session.preview_index_to_id(1) == 1
    assert session.preview_index_to_id(3) is None


def test_session_removal_shifts_preview_indexes() -> None:
    session = build_session(SOURCE, create_edits().with_removal(1))

    assert session.patched_source == SOURCE.replace("<p>${item.Name}</p>", "")
    assert session.resolved_source == "<div>\n  \n  <span>2</span>\n</div>"
    assert session.remaining == [0, 2]
    assert session.preview_index_to_id(1) == 2
    assert session.id_to_preview_index(1) is None
    assert session.id_to_preview_index(2) == 1
    assert 'data-node-id="1" data-tag-name="span"' in session.preview_markup


def test_session_style_lands_in_patched_and_preview() -> None:
    session = build_session(SOURCE, create_edits().with_style(2, StyleEdit(padding="8px")))

    assert '<span style="padding: 8px">{{count}}</span>' in session.patched_source
    assert 'style="padding: 8px" data-node-id="2"' in session.preview_markup
    assert session.patched_positions is not None
    assert len(session.patched_positions) == 3


def test_locate_selection_inside_placeholder() -> None:
    session = build_session(SOURCE)
    start = SOURCE.index("{{count}}")

    match = session.locate(start + 1, start + 5)

    assert match is not None
    assert match.element_id == 2
    assert match.preview_index == 2


def test_locate_outside_any_element() -> None:
    session = build_session("text <b>x</b>")

    assert session.locate(0, 3) is None


def test_describe_reports_snippet_and_pending_edits() -> None:
    edits = create_edits().with_style(1, StyleEdit(margin="2px"))
    session = build_session(SOURCE, edits)

    details = session.describe(1)

    assert details is not None
    assert details.snippet == "<p>${item.Name}</p>"
    assert details.style == StyleEdit(margin="2px")
    assert details.selector is None
    assert details.removed is False
    assert details.position.tag_name == "p"
    assert session.describe(42) is None


def test_describe_derives_selector_from_open_tag_only() -> None:
    session = build_session('<div id="hero"><p class="lead note">x</p></div>')

    hero = session.describe(0)
    lead = session.describe(1)

    assert hero is not None and hero.selector == "#hero"
    assert lead is not None and lead.selector == ".lead"


def test_session_without_positions(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("core.orchestrator.session.index_positions", lambda source: None)

    session = build_session("<p>{{name}}</p>", create_edits().with_removal(0))

    assert session.positions_available is False
    assert session.patched_source == "<p>{{name}}</p>"
    assert session.resolved_source == "<p>Sample Product</p>"
    assert session.remaining == []
    assert session.preview_index_to_id(0) is None
    assert session.locate(0, 1) is None
    assert session.describe(0) is None


def test_custom_sample_lookup_is_used() -> None:
    session = build_session("<p>{{anything}}</p>", lookup=lambda key: key.upper())

    assert session.resolved_source == "<p>ANYTHING</p>"


def test_remaining_ids_exclude_removed_descendants() -> None:
    records = index_positions("<ul><li>a<b>x</b></li><li>c</li></ul>")
    assert records is not None

    assert remaining_ids(records, create_edits().with_removal(1)) == [0, 3]
    assert remaining_ids(records, create_edits()) == [0, 1, 2, 3]


def test_apply_padding_ignores_blank_values() -> None:
    edits = create_edits()

    assert apply_padding(edits, 0, "   ") is edits
    assert apply_padding(edits, 0, " 8px ").styles[0] == StyleEdit(padding="8px")


def test_apply_padding_rejects_attribute_breaking_values() -> None:
    with pytest.raises(EditSpecError):
        apply_padding(create_edits(), 0, '1px" onclick="x')


def test_apply_margin_merges_with_existing_padding() -> None:
    edits = apply_margin(apply_padding(create_edits(), 3, "1px"), 3, "2px")

    assert edits.styles[3] == StyleEdit(padding="1px", margin="2px")


def test_remove_element_drops_pending_style() -> None:
    edits = remove_element(apply_padding(create_edits(), 2, "8px"), 2)

    assert edits.removals == {2}
    assert 2 not in edits.styles


def test_rebase_edits_follows_tag_ordinals() -> None:
    old = index_positions("<div><p>a</p><p>b</p></div>")
    new = index_positions("<section></section><div><p>a</p><p>b</p></div>")
    assert old is not None and new is not None
    edits = (
        create_edits()
        .with_removal(2)
        .with_style(1, StyleEdit(padding="1px"))
        .with_style(0, StyleEdit(margin="0"))
        .with_removal(7)
    )

    rebased = rebase_edits(old, new, edits)

    assert rebased.removals == {3}
    assert dict(rebased.styles) == {2: StyleEdit(padding="1px"), 1: StyleEdit(margin="0")}
