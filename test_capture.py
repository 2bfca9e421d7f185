"""
test_capture.py

Tests for the capture phase.

Validates:
- Composites are flattened pre-order with patched headers
- Map headers count pairs, not nodes
- The owned flag decides between views and copies
- Optional depth bound
- Decoder failures propagate unchanged
"""

import pytest

from valuebucket.buffer import NodeBuffer
from valuebucket.capture import CaptureVisitor
from valuebucket.errors import DepthLimitError, UnsupportedValueError
from valuebucket.node import NEWTYPE, NONE, SOME, UNIT, Node, NodeKind, Source
from valuebucket.protocol import END, Decoder, SeqAccess
from valuebucket.pyvalue import Borrowed, Fixed, NewType, PyValueDecoder, Some, Unit


def capture(value, source=None, **kwargs):
    buffer = NodeBuffer()
    CaptureVisitor(buffer, **kwargs).capture(PyValueDecoder(value, source))
    return buffer.nodes


def u8(value):
    return Node.scalar(NodeKind.U8, value)


def i64(value):
    return Node.scalar(NodeKind.I64, value)


class TestFlattening:
    """Test the pre-order layout of captured values."""

    def test_map_scenario(self):
        """{"a": 10, "b": false} -> [MAP(2), "a", 10, "b", false]"""
        nodes = capture({"a": Fixed(NodeKind.U8, 10), "b": False})
        assert nodes == (
            Node.map(2),
            Node.string("a"), u8(10),
            Node.string("b"), Node.scalar(NodeKind.BOOL, False),
        )

    def test_sequence_scenario(self):
        """[1, 2, 3] -> [SEQ(3), 1, 2, 3]"""
        assert capture([1, 2, 3]) == (Node.seq(3), i64(1), i64(2), i64(3))

    def test_nested_headers_count_immediate_children(self):
        nodes = capture([[1, 2], [], {"k": [3]}])
        assert nodes == (
            Node.seq(3),
            Node.seq(2), i64(1), i64(2),
            Node.seq(0),
            Node.map(1), Node.string("k"), Node.seq(1), i64(3),
        )

    def test_markers_precede_their_payload(self):
        nodes = capture([Some(1), None, NewType("x"), Unit()])
        assert nodes == (
            Node.seq(4),
            SOME, i64(1),
            NONE,
            NEWTYPE, Node.string("x"),
            UNIT,
        )

    def test_no_placeholder_survives_capture(self):
        nodes = capture({"a": [{"b": [Some([])]}]})
        assert all(node.kind is not NodeKind.UNSIZED for node in nodes)

    def test_ints_use_narrowest_signed_or_unsigned_width(self):
        nodes = capture([-1, 2 ** 63, -(2 ** 63) - 1, 2 ** 127])
        assert [n.kind for n in nodes[1:]] == [
            NodeKind.I64, NodeKind.U64, NodeKind.I128, NodeKind.U128,
        ]

    def test_fixed_scalars(self):
        nodes = capture([
            Fixed(NodeKind.I8, -3),
            Fixed(NodeKind.U32, 7),
            Fixed(NodeKind.F32, 0.5),
            Fixed(NodeKind.CHAR, "z"),
        ])
        assert nodes[1:] == (
            Node.scalar(NodeKind.I8, -3),
            Node.scalar(NodeKind.U32, 7),
            Node.scalar(NodeKind.F32, 0.5),
            Node.scalar(NodeKind.CHAR, "z"),
        )

    def test_floats_and_bytes(self):
        nodes = capture([1.25, b"\x00\x01", bytearray(b"z")])
        assert nodes[1:] == (
            Node.scalar(NodeKind.F64, 1.25),
            Node.bytes(b"\x00\x01"),
            Node.bytes(b"z"),
        )


class TestOwnership:
    """Test the owned flag."""

    def test_borrowed_text_kept_as_view(self):
        src = Source('{"name": "ada"}')
        nodes = capture(Borrowed(10, 13), source=src)
        assert nodes[0].kind is NodeKind.STRING_REF
        assert nodes[0].value.resolve() == "ada"

    def test_borrowed_text_copied_when_owned(self):
        """Owned capture decouples the buffer from the source."""
        src = Source('{"name": "ada"}')
        nodes = capture(Borrowed(10, 13), source=src, owned=True)
        src.close()
        assert nodes == (Node.string("ada"),)

    def test_borrowed_bytes(self):
        src = Source(b"\x01\x02\x03")
        viewed = capture(Borrowed(1, 3), source=src)
        copied = capture(Borrowed(1, 3), source=src, owned=True)
        assert viewed[0].kind is NodeKind.BYTES_REF
        assert copied == (Node.bytes(b"\x02\x03"),)

    def test_borrowed_without_source_is_unsupported(self):
        with pytest.raises(UnsupportedValueError):
            capture(Borrowed(0, 1))

    def test_plain_values_for_borrowed_events_are_copied(self):
        """Front ends without a Source may hand plain data to borrowed events."""
        buffer = NodeBuffer()
        visitor = CaptureVisitor(buffer)
        visitor.visit_borrowed_str("abc")
        visitor.visit_borrowed_bytes(b"abc")
        visitor.visit_str("tmp")
        visitor.visit_bytes(memoryview(b"tmp"))
        assert buffer.nodes == (
            Node.string("abc"), Node.bytes(b"abc"),
            Node.string("tmp"), Node.bytes(b"tmp"),
        )


class TestDepthLimit:
    """Test the optional nesting bound."""

    def test_unbounded_by_default(self):
        value = [[[[[[1]]]]]]
        assert len(capture(value)) == 7

    def test_within_limit(self):
        assert len(capture([[1]], max_depth=2)) == 3

    def test_exceeding_limit(self):
        with pytest.raises(DepthLimitError) as exc_info:
            capture([[[1]]], max_depth=2)
        assert exc_info.value.limit == 2
        assert exc_info.value.error_code == "B201"

    def test_markers_count_towards_depth(self):
        with pytest.raises(DepthLimitError):
            capture(Some(Some(1)), max_depth=1)

    def test_visitor_reusable_after_limit(self):
        """A rejected capture leaves the nesting level where it started."""
        visitor = CaptureVisitor(NodeBuffer(), max_depth=1)
        with pytest.raises(DepthLimitError):
            visitor.capture(PyValueDecoder(Some(Some(1))))
        visitor.buffer = NodeBuffer()
        visitor.capture(PyValueDecoder(Some(1)))
        assert visitor.buffer.nodes == (SOME, i64(1))


class _ExplodingSeq(SeqAccess):
    """Yields one element, then fails."""

    def __init__(self, exc):
        self.exc = exc
        self.sent = 0

    def next_element(self, seed):
        if self.sent:
            raise self.exc
        self.sent += 1
        return PyValueDecoder(1).decode_any(seed)


class ExplodingDecoder(Decoder):

    def __init__(self, exc):
        self.exc = exc

    def decode_any(self, visitor):
        return visitor.visit_seq(_ExplodingSeq(self.exc))


class TestDecoderFailures:
    """Test that decoder errors surface verbatim."""

    def test_same_exception_object_propagates(self):
        exc = ValueError("truncated input at byte 7")
        buffer = NodeBuffer()
        with pytest.raises(ValueError) as exc_info:
            CaptureVisitor(buffer).capture(ExplodingDecoder(exc))
        assert exc_info.value is exc

    def test_buffer_left_partially_filled(self):
        """The placeholder of the interrupted sequence is never patched."""
        buffer = NodeBuffer()
        with pytest.raises(ValueError):
            CaptureVisitor(buffer).capture(ExplodingDecoder(ValueError("eof")))
        assert buffer.nodes[0].kind is NodeKind.UNSIZED
        assert len(buffer) == 2

    def test_unsupported_python_value(self):
        with pytest.raises(UnsupportedValueError) as exc_info:
            capture([1, object()])
        assert "object" in str(exc_info.value)

    def test_end_is_falsy_singleton(self):
        assert not END
        assert repr(END) == "END"
