"""
node.py

Node definitions for flattened value trees.
Pure data structures, no replay logic.

A captured value is a pre-order list of Nodes. Scalars carry their value,
composite headers carry their child count, and SOME / NEWTYPE markers
carry nothing: their payload is the subtree that follows them.
"""

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from valuebucket.errors import InvalidScalarError, StaleViewError


class NodeKind(Enum):
    """Tag of a flattened tree element."""
    CONSUMED = "consumed"
    UNSIZED = "unsized"

    UNIT = "unit"
    BOOL = "bool"
    CHAR = "char"

    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"
    I128 = "i128"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    U128 = "u128"
    F32 = "f32"
    F64 = "f64"

    STRING = "string"
    STRING_REF = "string_ref"
    BYTES = "bytes"
    BYTES_REF = "bytes_ref"

    NONE = "none"
    SOME = "some"

    SEQ = "seq"
    MAP = "map"

    NEWTYPE = "newtype"


# Inclusive bounds per fixed-width integer kind
INT_RANGES: Dict[NodeKind, Tuple[int, int]] = {
    NodeKind.I8: (-(2 ** 7), 2 ** 7 - 1),
    NodeKind.I16: (-(2 ** 15), 2 ** 15 - 1),
    NodeKind.I32: (-(2 ** 31), 2 ** 31 - 1),
    NodeKind.I64: (-(2 ** 63), 2 ** 63 - 1),
    NodeKind.I128: (-(2 ** 127), 2 ** 127 - 1),
    NodeKind.U8: (0, 2 ** 8 - 1),
    NodeKind.U16: (0, 2 ** 16 - 1),
    NodeKind.U32: (0, 2 ** 32 - 1),
    NodeKind.U64: (0, 2 ** 64 - 1),
    NodeKind.U128: (0, 2 ** 128 - 1),
}

FLOAT_KINDS = frozenset({NodeKind.F32, NodeKind.F64})

# Kinds whose rendered form carries a trailing type tag, e.g. 10u8
NUMERIC_KINDS = frozenset(INT_RANGES) | FLOAT_KINDS


# =============================================================================
# Borrowed views
# =============================================================================

class Source:
    """
    Owner of a decoded input that borrowed views point into.

    Acts as the lifetime token: views resolve only while the source is
    open. Closing the source invalidates every view taken from it.

    Example:
        with Source(text) as src:
            view = src.view(3, 8)
            view.resolve()
    """

    __slots__ = ('_data', '_closed')

    def __init__(self, data: Union[str, bytes, bytearray]):
        if not isinstance(data, (str, bytes, bytearray)):
            raise TypeError(f"source must be str or bytes, got {type(data).__name__}")
        self._data = data
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_text(self) -> bool:
        return isinstance(self._data, str)

    def __len__(self) -> int:
        return len(self._data)

    def view(self, start: int = 0, stop: Optional[int] = None) -> "BorrowedView":
        """Borrow data[start:stop] without copying it."""
        if self._closed:
            raise StaleViewError("cannot borrow from a closed source")
        if stop is None:
            stop = len(self._data)
        if not 0 <= start <= stop <= len(self._data):
            raise IndexError(f"view [{start}:{stop}] outside source of length {len(self._data)}")
        return BorrowedView(self, start, stop)

    def close(self) -> None:
        """End the source's lifetime; outstanding views become stale."""
        self._closed = True

    def __enter__(self) -> "Source":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass(frozen=True)
class BorrowedView:
    """A zero-copy window into a Source."""
    source: Source
    start: int
    stop: int

    @property
    def is_text(self) -> bool:
        return self.source.is_text

    def __len__(self) -> int:
        return self.stop - self.start

    def resolve(self) -> Union[str, memoryview]:
        """
        Return the borrowed data.

        Text sources yield a str, binary sources a memoryview.

        Raises:
            StaleViewError: If the source has been closed
        """
        if self.source.closed:
            raise StaleViewError()
        data = self.source._data
        if isinstance(data, str):
            return data[self.start:self.stop]
        return memoryview(data)[self.start:self.stop]

    def to_owned(self) -> Union[str, bytes]:
        """Copy the borrowed data out of the source."""
        data = self.resolve()
        if isinstance(data, memoryview):
            return data.tobytes()
        return data


# =============================================================================
# Node
# =============================================================================

@dataclass(frozen=True)
class Node:
    """
    One flattened element of a captured value tree.

    value holds the scalar, the owned str/bytes, the BorrowedView, or
    the composite child count, depending on kind.
    """
    kind: NodeKind
    value: Any = None

    @property
    def is_owned(self) -> bool:
        """True for nodes whose payload moves out in take mode."""
        return self.kind in (NodeKind.STRING, NodeKind.BYTES)

    @property
    def is_borrowed(self) -> bool:
        return self.kind in (NodeKind.STRING_REF, NodeKind.BYTES_REF)

    @property
    def is_composite(self) -> bool:
        return self.kind in (NodeKind.SEQ, NodeKind.MAP)

    @property
    def is_marker(self) -> bool:
        """True for SOME / NEWTYPE, which wrap exactly one following subtree."""
        return self.kind in (NodeKind.SOME, NodeKind.NEWTYPE)

    @classmethod
    def scalar(cls, kind: NodeKind, value: Any) -> "Node":
        """
        Build a validated scalar node.

        Raises:
            InvalidScalarError: If value does not fit kind
        """
        if kind in INT_RANGES:
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidScalarError(kind.value, value)
            low, high = INT_RANGES[kind]
            if not low <= value <= high:
                raise InvalidScalarError(kind.value, value)
            return cls(kind, value)
        if kind in FLOAT_KINDS:
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise InvalidScalarError(kind.value, value)
            if kind is NodeKind.F32:
                # round to single precision
                try:
                    return cls(kind, struct.unpack("f", struct.pack("f", value))[0])
                except OverflowError:
                    raise InvalidScalarError(kind.value, value) from None
            return cls(kind, float(value))
        if kind is NodeKind.BOOL:
            if not isinstance(value, bool):
                raise InvalidScalarError(kind.value, value)
            return cls(kind, value)
        if kind is NodeKind.CHAR:
            if not isinstance(value, str) or len(value) != 1:
                raise InvalidScalarError(kind.value, value)
            return cls(kind, value)
        raise InvalidScalarError(kind.value, value)

    @classmethod
    def string(cls, value: str) -> "Node":
        return cls(NodeKind.STRING, value)

    @classmethod
    def string_ref(cls, view: BorrowedView) -> "Node":
        return cls(NodeKind.STRING_REF, view)

    @classmethod
    def bytes(cls, value: Union[bytes, bytearray]) -> "Node":
        return cls(NodeKind.BYTES, bytes(value))

    @classmethod
    def bytes_ref(cls, view: BorrowedView) -> "Node":
        return cls(NodeKind.BYTES_REF, view)

    @classmethod
    def seq(cls, count: int) -> "Node":
        return cls(NodeKind.SEQ, count)

    @classmethod
    def map(cls, count: int) -> "Node":
        return cls(NodeKind.MAP, count)


CONSUMED = Node(NodeKind.CONSUMED)
UNSIZED = Node(NodeKind.UNSIZED)
UNIT = Node(NodeKind.UNIT)
NONE = Node(NodeKind.NONE)
SOME = Node(NodeKind.SOME)
NEWTYPE = Node(NodeKind.NEWTYPE)
