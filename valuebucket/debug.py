"""
debug.py

Read-only renderer for NodeBuffers.

Rebuilds the nesting purely from the linear layout using its own local
cursor; never touches a ReplayDeserializer and never mutates nodes.

    [MAP(2), "a", U8(10), "b", false]  ->  {"a": 10u8, "b": false}
"""

import json
from typing import List, Sequence, Tuple

from valuebucket.errors import RenderError, StaleViewError
from valuebucket.node import NUMERIC_KINDS, Node, NodeKind


def render(nodes: Sequence[Node]) -> str:
    """
    Render every top-level tree in nodes.

    Raises:
        RenderError: If a header promises more nodes than remain
    """
    parts: List[str] = []
    cursor = 0
    while cursor < len(nodes):
        text, cursor = render_node(nodes, cursor)
        parts.append(text)
    return "".join(parts)


def render_node(nodes: Sequence[Node], cursor: int) -> Tuple[str, int]:
    """Render the subtree at cursor. Returns (text, cursor after subtree)."""
    if not 0 <= cursor < len(nodes):
        raise RenderError(position=cursor)
    node = nodes[cursor]
    cursor += 1
    kind = node.kind

    if kind is NodeKind.SOME:
        inner, cursor = render_node(nodes, cursor)
        return f"Some({inner})", cursor

    if kind is NodeKind.NEWTYPE:
        inner, cursor = render_node(nodes, cursor)
        return f"({inner})", cursor

    if kind is NodeKind.SEQ:
        items = []
        for _ in range(node.value):
            item, cursor = render_node(nodes, cursor)
            items.append(item)
        return "[" + ", ".join(items) + "]", cursor

    if kind is NodeKind.MAP:
        pairs = []
        for _ in range(node.value):
            key, cursor = render_node(nodes, cursor)
            value, cursor = render_node(nodes, cursor)
            pairs.append(f"{key}: {value}")
        return "{" + ", ".join(pairs) + "}", cursor

    return render_leaf(node), cursor


def render_leaf(node: Node) -> str:
    """Render a node that owns no following subtree."""
    kind = node.kind

    if kind in (NodeKind.CONSUMED, NodeKind.UNSIZED):
        return "_"
    if kind is NodeKind.UNIT:
        return "()"
    if kind is NodeKind.NONE:
        return "None"
    if kind is NodeKind.BOOL:
        return "true" if node.value else "false"
    if kind is NodeKind.CHAR:
        return repr(node.value)
    if kind in NUMERIC_KINDS:
        return f"{node.value!r}{kind.value}"

    if kind is NodeKind.STRING:
        return _quote(node.value)
    if kind is NodeKind.BYTES:
        return _byte_list(node.value)
    if kind in (NodeKind.STRING_REF, NodeKind.BYTES_REF):
        try:
            data = node.value.resolve()
        except StaleViewError:
            return "&<stale>"
        if kind is NodeKind.STRING_REF:
            return "&" + _quote(data)
        return "&" + _byte_list(data)

    # markers and headers are handled by render_node
    raise RenderError(f"{kind.value} node has no leaf form")


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _byte_list(data) -> str:
    return "[" + ", ".join(str(b) for b in bytes(data)) + "]"
