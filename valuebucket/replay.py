"""
replay.py

ReplayDeserializer: turns a NodeBuffer back into a pull-style event
stream for an external ValueSink.

Every decode request funnels through decode_any(): read the node at the
cursor, advance the cursor by one, dispatch on the node kind. Deciding
whether the decoded shape fits the expected type is the sink's job.

Modes:
- clone: owned text/bytes are emitted as copies; the buffer is left
  untouched and can be replayed again
- take: owned text/bytes are moved out and their nodes become CONSUMED;
  a second read of the same node fails

Any failure is terminal for the current decode.
"""

from typing import Any, Callable, Optional

from valuebucket.buffer import NodeBuffer
from valuebucket.errors import (
    BucketError,
    ConsumedTwiceError,
    CorruptBufferError,
    MapOrderError,
)
from valuebucket.node import NodeKind
from valuebucket.protocol import END, ValueSink

# Scalar kinds and the sink callback each one is emitted through
SCALAR_CALLBACKS = {
    NodeKind.BOOL: "visit_bool",
    NodeKind.CHAR: "visit_char",
    NodeKind.I8: "visit_i8",
    NodeKind.I16: "visit_i16",
    NodeKind.I32: "visit_i32",
    NodeKind.I64: "visit_i64",
    NodeKind.I128: "visit_i128",
    NodeKind.U8: "visit_u8",
    NodeKind.U16: "visit_u16",
    NodeKind.U32: "visit_u32",
    NodeKind.U64: "visit_u64",
    NodeKind.U128: "visit_u128",
    NodeKind.F32: "visit_f32",
    NodeKind.F64: "visit_f64",
}


class ReplayDeserializer:
    """
    Cursor-driven reader over a NodeBuffer.

    Args:
        buffer: Captured nodes (take mode mutates owned nodes in place)
        clone: True for clone mode, False for take mode
        error: Optional error kind, any callable building an exception
            from one message string. When omitted the typed errors from
            valuebucket.errors are raised.
        start: Position of the first node to read
    """

    def __init__(
        self,
        buffer: NodeBuffer,
        clone: bool,
        error: Optional[Callable[[str], Exception]] = None,
        start: int = 0,
    ):
        self.buffer = buffer
        self.clone = clone
        self.error = error
        if start < 0:
            raise self.error_for(CorruptBufferError("cursor out of range", start))
        self._cursor = start

    @property
    def cursor(self) -> int:
        """Position of the next node to be read."""
        return self._cursor

    def error_for(self, exc: BucketError) -> Exception:
        """Return exc, or its message wrapped in the caller-supplied error kind."""
        if self.error is None:
            return exc
        return self.error(exc.message)

    def decode_any(self, sink: ValueSink) -> Any:
        """Decode the next value into sink and return the sink's result."""
        position = self._cursor
        if not 0 <= position < len(self.buffer):
            raise self.error_for(CorruptBufferError("cursor out of range", position))
        node = self.buffer[position]
        self._cursor += 1
        kind = node.kind

        if kind is NodeKind.CONSUMED:
            raise self.error_for(ConsumedTwiceError(position=position))
        if kind is NodeKind.UNSIZED:
            raise self.error_for(CorruptBufferError(position=position))

        if kind is NodeKind.UNIT:
            return sink.visit_unit()
        if kind is NodeKind.NONE:
            return sink.visit_none()
        if kind in SCALAR_CALLBACKS:
            return getattr(sink, SCALAR_CALLBACKS[kind])(node.value)

        if kind is NodeKind.STRING:
            if not self.clone:
                self.buffer.take(position)
            return sink.visit_string(node.value)
        if kind is NodeKind.BYTES:
            if self.clone:
                return sink.visit_byte_buf(bytes(node.value))
            self.buffer.take(position)
            return sink.visit_byte_buf(node.value)

        if kind is NodeKind.STRING_REF:
            return sink.visit_borrowed_str(self._resolve(node.value))
        if kind is NodeKind.BYTES_REF:
            return sink.visit_borrowed_bytes(self._resolve(node.value))

        if kind is NodeKind.SOME:
            return sink.visit_some(self)
        if kind is NodeKind.NEWTYPE:
            return sink.visit_newtype(self)
        if kind is NodeKind.SEQ:
            return sink.visit_seq(SeqCursor(self, node.value))
        if kind is NodeKind.MAP:
            return sink.visit_map(MapCursor(self, node.value))

        raise self.error_for(CorruptBufferError(f"unknown node kind {kind!r}", position))

    def _resolve(self, view):
        try:
            return view.resolve()
        except BucketError as e:
            if self.error is None:
                raise
            raise self.error(e.message) from e

    def skip(self) -> None:
        """Advance the cursor past one whole subtree without decoding it."""
        try:
            self._cursor = self.buffer.subtree_end(self._cursor)
        except BucketError as e:
            if self.error is None:
                raise
            raise self.error(e.message) from e

    # Shape-specific requests: the buffer is self-describing, so they all
    # take the generic path.
    decode_unit = decode_any
    decode_bool = decode_any
    decode_int = decode_any
    decode_float = decode_any
    decode_char = decode_any
    decode_str = decode_any
    decode_bytes = decode_any
    decode_option = decode_any
    decode_newtype = decode_any
    decode_seq = decode_any
    decode_tuple = decode_any
    decode_map = decode_any
    decode_struct = decode_any
    decode_identifier = decode_any


class SeqCursor:
    """Yields exactly `size` subtrees, then END."""

    def __init__(self, deserializer: ReplayDeserializer, size: int):
        self._deserializer = deserializer
        self._remaining = size

    @property
    def remaining(self) -> int:
        return self._remaining

    def size_hint(self) -> int:
        return self._remaining

    def next_element(self, sink: ValueSink) -> Any:
        """Decode the next element into sink, or return END when exhausted."""
        if self._remaining == 0:
            return END
        self._remaining -= 1
        return self._deserializer.decode_any(sink)


class MapCursor:
    """
    Yields `size` key/value pairs with strict alternation, then END.

    Each next_key() must be followed by exactly one next_value() or
    skip_value().
    """

    def __init__(self, deserializer: ReplayDeserializer, size: int):
        self._deserializer = deserializer
        self._remaining = size
        self._pending = False

    @property
    def remaining(self) -> int:
        return self._remaining

    def size_hint(self) -> int:
        return self._remaining

    def next_key(self, sink: ValueSink) -> Any:
        """Decode the next key into sink, or return END when exhausted."""
        if self._pending:
            raise self._deserializer.error_for(
                MapOrderError("out-of-order access - no value for previous key")
            )
        if self._remaining == 0:
            return END
        self._pending = True
        return self._deserializer.decode_any(sink)

    def next_value(self, sink: ValueSink) -> Any:
        """Decode the value belonging to the last key."""
        if not self._pending:
            raise self._deserializer.error_for(
                MapOrderError("out-of-order access - no key for this value")
            )
        self._pending = False
        self._remaining -= 1
        return self._deserializer.decode_any(sink)

    def skip_value(self) -> None:
        """Step over the value belonging to the last key without decoding it."""
        if not self._pending:
            raise self._deserializer.error_for(
                MapOrderError("out-of-order access - no key for this value")
            )
        self._pending = False
        self._remaining -= 1
        self._deserializer.skip()

    def next_entry(self, key_sink: ValueSink, value_sink: Optional[ValueSink] = None) -> Any:
        """Decode one (key, value) pair, or return END when exhausted."""
        key = self.next_key(key_sink)
        if key is END:
            return END
        value = self.next_value(value_sink if value_sink is not None else key_sink)
        return key, value
