"""
buffer.py

NodeBuffer: one captured value tree as a flat pre-order list of Nodes.

Lifecycle:
- Capture appends (append-only; composites are written as an UNSIZED
  placeholder and patched once their child count is known)
- Replay reads by position through a cursor owned by the reader
- Take-mode replay swaps owned nodes for CONSUMED in place
"""

from typing import Iterator, List, Tuple

from valuebucket.errors import CorruptBufferError
from valuebucket.node import CONSUMED, UNSIZED, Node, NodeKind


class NodeBuffer:
    """Growable list of Nodes with placeholder patching."""

    __slots__ = ('_nodes',)

    def __init__(self):
        self._nodes: List[Node] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def __getitem__(self, position: int) -> Node:
        return self._nodes[position]

    def __repr__(self) -> str:
        return f"NodeBuffer({len(self._nodes)} nodes)"

    @property
    def nodes(self) -> Tuple[Node, ...]:
        """Snapshot of the current nodes."""
        return tuple(self._nodes)

    # =========================================================================
    # Write side
    # =========================================================================

    def push(self, node: Node) -> None:
        self._nodes.append(node)

    def reserve(self) -> int:
        """Append an UNSIZED placeholder and return its position."""
        position = len(self._nodes)
        self._nodes.append(UNSIZED)
        return position

    def patch(self, position: int, node: Node) -> None:
        """
        Replace the placeholder at position with its final header.

        Raises:
            CorruptBufferError: If position does not hold a placeholder
        """
        if not 0 <= position < len(self._nodes):
            raise CorruptBufferError("patch position out of range", position)
        if self._nodes[position].kind is not NodeKind.UNSIZED:
            raise CorruptBufferError("patch target is not a placeholder", position)
        self._nodes[position] = node

    # =========================================================================
    # Read side
    # =========================================================================

    def get(self, position: int) -> Node:
        """
        Return the node at position.

        Raises:
            CorruptBufferError: If position is past the end of the buffer
        """
        if not 0 <= position < len(self._nodes):
            raise CorruptBufferError("cursor beyond end of buffer", position)
        return self._nodes[position]

    def take(self, position: int) -> Node:
        """Swap the node at position for CONSUMED and return the original."""
        node = self.get(position)
        self._nodes[position] = CONSUMED
        return node

    def subtree_end(self, position: int) -> int:
        """
        Return the index one past the subtree rooted at position.

        Computed from the linear layout alone: each header owes a number
        of subtrees, and the walk ends once nothing is owed.

        Raises:
            CorruptBufferError: If the subtree runs past the end or
                contains an UNSIZED placeholder
        """
        owed = 1
        cursor = position
        while owed:
            node = self.get(cursor)
            cursor += 1
            owed -= 1
            if node.kind is NodeKind.UNSIZED:
                raise CorruptBufferError(position=cursor - 1)
            if node.is_marker:
                owed += 1
            elif node.kind is NodeKind.SEQ:
                owed += node.value
            elif node.kind is NodeKind.MAP:
                owed += 2 * node.value
        return cursor
