"""Preview markup serialization with click-mapping attributes."""

from __future__ import annotations

import html
import logging

from core.markup.models import ElementNode, MarkupNode
from core.markup.tree_builder import VOID_ELEMENTS, parse_fragment

logger = logging.getLogger("tplkit.engine")

PREVIEW_INDEX_ATTR = "data-node-id"
PREVIEW_TAG_ATTR = "data-tag-name"
_RESERVED_ATTRS = frozenset({PREVIEW_INDEX_ATTR, PREVIEW_TAG_ATTR})


def build_preview_markup(source: str) -> str:
    """Re-serialize ``source`` with a preview index and tag name on every element.

    Preview indexes follow document pre-order starting at 0 and are
    independent of any ids assigned to a different string. Formatting may be
    normalised; this output feeds a renderer only. Input the parser rejects is
    shown escaped inside ``<pre>``.
    """

    try:
        fragment = parse_fragment(source)
    except Exception:  # noqa: BLE001
        logger.warning("preview parse failed, falling back to escaped source")
        return f"<pre>{html.escape(source)}</pre>"

    return serialize_tagged(fragment.children)


def serialize_tagged(nodes: list[MarkupNode]) -> str:
    """Serialize nodes, tagging elements with sequential preview indexes."""

    parts: list[str] = []
    preview_index = 0
    # pending end tags are pushed as plain strings between nodes
    stack: list[MarkupNode | str] = list(reversed(nodes))
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            parts.append(item)
        elif item.kind == "text":
            parts.append(item.text)
        elif item.kind == "comment":
            parts.append(f"<!--{item.text}-->")
        else:
            parts.append(_start_tag(item, preview_index))
            preview_index += 1
            if item.tag_name not in VOID_ELEMENTS:
                stack.append(f"</{item.tag_name}>")
                stack.extend(reversed(item.children))
    return "".join(parts)


def _start_tag(node: ElementNode, preview_index: int) -> str:
    attrs = [(name, value) for name, value in node.attrs if name not in _RESERVED_ATTRS]
    attrs.append((PREVIEW_INDEX_ATTR, str(preview_index)))
    attrs.append((PREVIEW_TAG_ATTR, node.tag_name.lower()))
    rendered = "".join(
        f" {name}" if value is None else f' {name}="{html.escape(value, quote=True)}"'
        for name, value in attrs
    )
    return f"<{node.tag_name}{rendered}>"
