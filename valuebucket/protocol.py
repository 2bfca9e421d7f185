"""
protocol.py

The event vocabulary shared by both phases.

Capture side (push): an external Decoder calls one CaptureVisitor method
per primitive or composite-start. For composites it hands over a
SeqAccess / MapAccess, which the visitor drains by passing itself back
as the seed for every child.

Replay side (pull): a ReplayDeserializer calls one ValueSink method per
node. For SOME / NEWTYPE the sink receives the deserializer itself and
decodes the single wrapped subtree; for SEQ / MAP it receives a cursor.
"""

from typing import Any

from valuebucket.errors import UnexpectedShapeError


class _End:
    """Exhaustion signal returned by sequence and map cursors."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END"

    def __bool__(self) -> bool:
        return False


END = _End()


# =============================================================================
# Capture side
# =============================================================================

class Decoder:
    """
    External front end describing one value.

    decode_any() must call exactly one visitor method for the value it
    describes and return that method's result.
    """

    def decode_any(self, visitor: Any) -> Any:
        raise NotImplementedError


class SeqAccess:
    """Element stream of a sequence being captured."""

    def next_element(self, seed: Any) -> Any:
        """Describe the next element to seed, or return END when done."""
        raise NotImplementedError

    def size_hint(self) -> Any:
        return None


class MapAccess:
    """Entry stream of a map being captured."""

    def next_key(self, seed: Any) -> Any:
        """Describe the next key to seed, or return END when done."""
        raise NotImplementedError

    def next_value(self, seed: Any) -> Any:
        """Describe the value belonging to the last key."""
        raise NotImplementedError

    def size_hint(self) -> Any:
        return None


# =============================================================================
# Replay side
# =============================================================================

class ValueSink:
    """
    Receiver of replayed values.

    Narrow integer and float callbacks forward to their widest sibling and
    text / binary callbacks forward to visit_str / visit_bytes, so a sink
    only overrides the shapes it accepts. Everything else is rejected
    through unexpected().
    """

    expecting = "a supported value"

    def unexpected(self, found: str) -> Exception:
        return UnexpectedShapeError(found, self.expecting)

    def visit_unit(self):
        raise self.unexpected("unit")

    def visit_bool(self, value: bool):
        raise self.unexpected(f"boolean `{str(value).lower()}`")

    def visit_i8(self, value: int):
        return self.visit_i64(value)

    def visit_i16(self, value: int):
        return self.visit_i64(value)

    def visit_i32(self, value: int):
        return self.visit_i64(value)

    def visit_i64(self, value: int):
        raise self.unexpected(f"integer `{value}`")

    def visit_i128(self, value: int):
        raise self.unexpected(f"integer `{value}`")

    def visit_u8(self, value: int):
        return self.visit_u64(value)

    def visit_u16(self, value: int):
        return self.visit_u64(value)

    def visit_u32(self, value: int):
        return self.visit_u64(value)

    def visit_u64(self, value: int):
        raise self.unexpected(f"integer `{value}`")

    def visit_u128(self, value: int):
        raise self.unexpected(f"integer `{value}`")

    def visit_f32(self, value: float):
        return self.visit_f64(value)

    def visit_f64(self, value: float):
        raise self.unexpected(f"floating point `{value}`")

    def visit_char(self, value: str):
        return self.visit_str(value)

    def visit_str(self, value: str):
        raise self.unexpected(f"string {value!r}")

    def visit_string(self, value: str):
        return self.visit_str(value)

    def visit_borrowed_str(self, value: str):
        return self.visit_str(value)

    def visit_bytes(self, value):
        raise self.unexpected("byte array")

    def visit_byte_buf(self, value: bytes):
        return self.visit_bytes(value)

    def visit_borrowed_bytes(self, value: memoryview):
        return self.visit_bytes(value)

    def visit_none(self):
        raise self.unexpected("Option value")

    def visit_some(self, deserializer):
        raise self.unexpected("Option value")

    def visit_newtype(self, deserializer):
        raise self.unexpected("newtype struct")

    def visit_seq(self, seq):
        raise self.unexpected("sequence")

    def visit_map(self, entries):
        raise self.unexpected("map")
