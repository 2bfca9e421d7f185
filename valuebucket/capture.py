"""
capture.py

CaptureVisitor: builds a NodeBuffer from a push-style event stream.

The visitor returns nothing; the captured shape exists only as nodes
appended to its buffer. Nothing is ever removed or reordered. A
composite is written as an UNSIZED placeholder, its children are
captured depth-first, then the placeholder is patched to SEQ(n) or
MAP(n).
"""

import logging
from typing import Optional, Union

from valuebucket.buffer import NodeBuffer
from valuebucket.errors import DepthLimitError
from valuebucket.node import NEWTYPE, NONE, SOME, UNIT, BorrowedView, Node, NodeKind
from valuebucket.protocol import END, Decoder, MapAccess, SeqAccess

logger = logging.getLogger(__name__)


class CaptureVisitor:
    """
    Receives decoder events and appends the matching nodes.

    Args:
        buffer: Target buffer (append-only while capturing)
        owned: Copy borrowed text/bytes into owned nodes instead of
            storing zero-copy views
        max_depth: Optional bound on composite / marker nesting
    """

    def __init__(
        self,
        buffer: NodeBuffer,
        owned: bool = False,
        max_depth: Optional[int] = None,
    ):
        self.buffer = buffer
        self.owned = owned
        self.max_depth = max_depth
        self._depth = 0

    def capture(self, decoder: Decoder) -> None:
        """Capture the single value decoder describes."""
        decoder.decode_any(self)
        logger.debug("captured %d nodes (owned=%s)", len(self.buffer), self.owned)

    def _enter(self) -> None:
        if self.max_depth is not None and self._depth >= self.max_depth:
            raise DepthLimitError(self.max_depth)
        self._depth += 1

    # === Scalars ===

    def visit_unit(self) -> None:
        self.buffer.push(UNIT)

    def visit_bool(self, value: bool) -> None:
        self.buffer.push(Node.scalar(NodeKind.BOOL, value))

    def visit_char(self, value: str) -> None:
        self.buffer.push(Node.scalar(NodeKind.CHAR, value))

    def visit_i8(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.I8, value))

    def visit_i16(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.I16, value))

    def visit_i32(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.I32, value))

    def visit_i64(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.I64, value))

    def visit_i128(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.I128, value))

    def visit_u8(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.U8, value))

    def visit_u16(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.U16, value))

    def visit_u32(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.U32, value))

    def visit_u64(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.U64, value))

    def visit_u128(self, value: int) -> None:
        self.buffer.push(Node.scalar(NodeKind.U128, value))

    def visit_f32(self, value: float) -> None:
        self.buffer.push(Node.scalar(NodeKind.F32, value))

    def visit_f64(self, value: float) -> None:
        self.buffer.push(Node.scalar(NodeKind.F64, value))

    # === Text and binary ===

    def visit_str(self, value: str) -> None:
        """Transient text: always stored as an owned copy."""
        self.buffer.push(Node.string(str(value)))

    def visit_string(self, value: str) -> None:
        self.buffer.push(Node.string(value))

    def visit_borrowed_str(self, view: Union[BorrowedView, str]) -> None:
        if not isinstance(view, BorrowedView):
            # front ends without a Source can only hand over copies
            self.buffer.push(Node.string(view))
        elif self.owned:
            self.buffer.push(Node.string(view.to_owned()))
        else:
            self.buffer.push(Node.string_ref(view))

    def visit_bytes(self, value) -> None:
        """Transient bytes: always stored as an owned copy."""
        self.buffer.push(Node.bytes(bytes(value)))

    def visit_byte_buf(self, value: bytes) -> None:
        self.buffer.push(Node.bytes(value))

    def visit_borrowed_bytes(self, view: Union[BorrowedView, bytes]) -> None:
        if not isinstance(view, BorrowedView):
            self.buffer.push(Node.bytes(view))
        elif self.owned:
            self.buffer.push(Node.bytes(view.to_owned()))
        else:
            self.buffer.push(Node.bytes_ref(view))

    # === Markers ===

    def visit_none(self) -> None:
        self.buffer.push(NONE)

    def visit_some(self, decoder: Decoder) -> None:
        self.buffer.push(SOME)
        self._enter()
        try:
            decoder.decode_any(self)
        finally:
            self._depth -= 1

    def visit_newtype(self, decoder: Decoder) -> None:
        self.buffer.push(NEWTYPE)
        self._enter()
        try:
            decoder.decode_any(self)
        finally:
            self._depth -= 1

    # === Composites ===

    def visit_seq(self, seq: SeqAccess) -> None:
        position = self.buffer.reserve()
        count = 0
        self._enter()
        try:
            while seq.next_element(self) is not END:
                count += 1
        finally:
            self._depth -= 1
        self.buffer.patch(position, Node.seq(count))

    def visit_map(self, entries: MapAccess) -> None:
        position = self.buffer.reserve()
        count = 0
        self._enter()
        try:
            while entries.next_key(self) is not END:
                entries.next_value(self)
                count += 1
        finally:
            self._depth -= 1
        self.buffer.patch(position, Node.map(count))
