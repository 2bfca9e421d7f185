"""
pyvalue.py

Bridge between plain Python values and the capture / replay protocols.

- PyValueDecoder: a front end describing a Python value as capture
  events (None, bool, int, float, str, bytes, list/tuple, dict, plus
  the wrapper types below)
- PyValueBuilder: a value sink rebuilding plain Python values

Wrapper types give a Python value the shapes plain Python lacks:

    Fixed(NodeKind.U8, 10)   an integer of an exact width
    Some(x) / NewType(x)     option / newtype markers
    Borrowed(0, 5)           a zero-copy slice of the decoder's Source
    Unit()                   the unit value
"""

from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple

from valuebucket.errors import UnexpectedShapeError, UnsupportedValueError
from valuebucket.node import INT_RANGES, NodeKind, Source
from valuebucket.protocol import END, Decoder, MapAccess, SeqAccess, ValueSink

# Widths tried, in order, for a bare Python int
INT_WIDTHS = (NodeKind.I64, NodeKind.U64, NodeKind.I128, NodeKind.U128)

# Kinds a Fixed wrapper may request
FIXED_KINDS = frozenset(INT_RANGES) | {
    NodeKind.F32, NodeKind.F64, NodeKind.CHAR, NodeKind.BOOL,
}


@dataclass(frozen=True)
class Unit:
    """The unit value."""


@dataclass(frozen=True)
class Fixed:
    """A scalar captured as an explicit node kind."""
    kind: NodeKind
    value: Any


@dataclass(frozen=True)
class Some:
    """A present optional."""
    value: Any


@dataclass(frozen=True)
class NewType:
    """A transparent single-field wrapper."""
    value: Any


@dataclass(frozen=True)
class Borrowed:
    """A slice [start:stop] of the decoder's source."""
    start: int
    stop: int


# =============================================================================
# Front end
# =============================================================================

class PyValueDecoder(Decoder):
    """
    Describes one Python value as capture events.

    Args:
        value: The value to describe
        source: Source that Borrowed slices refer to
    """

    def __init__(self, value: Any, source: Optional[Source] = None):
        self.value = value
        self.source = source

    def _child(self, value: Any) -> "PyValueDecoder":
        return PyValueDecoder(value, self.source)

    def decode_any(self, visitor: Any) -> Any:
        value = self.value

        if value is None:
            return visitor.visit_none()
        if isinstance(value, Unit):
            return visitor.visit_unit()
        if isinstance(value, bool):
            return visitor.visit_bool(value)
        if isinstance(value, int):
            return self._decode_int(visitor, value)
        if isinstance(value, float):
            return visitor.visit_f64(value)
        if isinstance(value, str):
            return visitor.visit_string(value)
        if isinstance(value, (bytes, bytearray)):
            return visitor.visit_byte_buf(bytes(value))

        if isinstance(value, Fixed):
            if value.kind not in FIXED_KINDS:
                raise UnsupportedValueError(value)
            return getattr(visitor, f"visit_{value.kind.value}")(value.value)
        if isinstance(value, Borrowed):
            if self.source is None:
                raise UnsupportedValueError(value)
            view = self.source.view(value.start, value.stop)
            if view.is_text:
                return visitor.visit_borrowed_str(view)
            return visitor.visit_borrowed_bytes(view)
        if isinstance(value, Some):
            return visitor.visit_some(self._child(value.value))
        if isinstance(value, NewType):
            return visitor.visit_newtype(self._child(value.value))

        if isinstance(value, (list, tuple)):
            return visitor.visit_seq(_PySeqAccess(self, iter(value)))
        if isinstance(value, dict):
            return visitor.visit_map(_PyMapAccess(self, iter(value.items())))

        raise UnsupportedValueError(value)

    @staticmethod
    def _decode_int(visitor: Any, value: int) -> Any:
        for kind in INT_WIDTHS:
            low, high = INT_RANGES[kind]
            if low <= value <= high:
                return getattr(visitor, f"visit_{kind.value}")(value)
        raise UnsupportedValueError(value)


class _PySeqAccess(SeqAccess):

    def __init__(self, parent: PyValueDecoder, items: Iterator[Any]):
        self._parent = parent
        self._items = items

    def next_element(self, seed: Any) -> Any:
        try:
            item = next(self._items)
        except StopIteration:
            return END
        return self._parent._child(item).decode_any(seed)


class _PyMapAccess(MapAccess):

    def __init__(self, parent: PyValueDecoder, items: Iterator[Tuple[Any, Any]]):
        self._parent = parent
        self._items = items
        self._value: Any = None

    def next_key(self, seed: Any) -> Any:
        try:
            key, self._value = next(self._items)
        except StopIteration:
            return END
        return self._parent._child(key).decode_any(seed)

    def next_value(self, seed: Any) -> Any:
        value, self._value = self._value, None
        return self._parent._child(value).decode_any(seed)


# =============================================================================
# Sink
# =============================================================================

class PyValueBuilder(ValueSink):
    """
    Rebuilds plain Python values from a replay.

    Args:
        keep_markers: Return Some / NewType wrappers instead of unwrapping
            them, so that a value built from PyValueDecoder input compares
            equal to that input
    """

    expecting = "any value"

    def __init__(self, keep_markers: bool = False):
        self.keep_markers = keep_markers

    def visit_unit(self):
        return Unit()

    def visit_bool(self, value: bool):
        return value

    def visit_i64(self, value: int):
        return value

    def visit_i128(self, value: int):
        return value

    def visit_u64(self, value: int):
        return value

    def visit_u128(self, value: int):
        return value

    def visit_f64(self, value: float):
        return value

    def visit_str(self, value: str):
        return value

    def visit_bytes(self, value):
        return bytes(value)

    def visit_none(self):
        return None

    def visit_some(self, deserializer):
        inner = deserializer.decode_any(self)
        return Some(inner) if self.keep_markers else inner

    def visit_newtype(self, deserializer):
        inner = deserializer.decode_any(self)
        return NewType(inner) if self.keep_markers else inner

    def visit_seq(self, seq):
        items = []
        while True:
            item = seq.next_element(self)
            if item is END:
                return items
            items.append(item)

    def visit_map(self, entries):
        result = {}
        while True:
            entry = entries.next_entry(self)
            if entry is END:
                return result
            key, value = entry
            result[_hashable(key)] = value


def _hashable(key: Any) -> Any:
    """
    Freeze a rebuilt map key: lists become tuples, dicts become frozensets
    of their pairs, and marker wrappers are frozen around their payload.

    Raises:
        UnexpectedShapeError: If the key still cannot be hashed
    """
    if isinstance(key, list):
        return tuple(_hashable(k) for k in key)
    if isinstance(key, dict):
        return frozenset((_hashable(k), _hashable(v)) for k, v in key.items())
    if isinstance(key, Some):
        return Some(_hashable(key.value))
    if isinstance(key, NewType):
        return NewType(_hashable(key.value))
    try:
        hash(key)
    except TypeError:
        raise UnexpectedShapeError(f"unhashable map key {key!r}", "a hashable map key") from None
    return key
