"""
test_bucket.py

Tests for Bucket, Segment and the plain-Python bridge.

Validates:
- Capture then replay returns an equivalent value in both modes
- A bucket is filled at most once; failed captures poison later replays
- Segments address subtrees without consuming anything
- Environment-driven defaults and logging
"""

import logging

import pytest

from valuebucket import Bucket, config
from valuebucket.errors import (
    BucketStateError,
    ConsumedTwiceError,
    CorruptBufferError,
    PseudoError,
    UpstreamCaptureError,
)
from valuebucket.node import Node, NodeKind, Source
from valuebucket.protocol import END, Decoder, MapAccess, SeqAccess
from valuebucket.pyvalue import (
    Borrowed,
    Fixed,
    NewType,
    PyValueBuilder,
    PyValueDecoder,
    Some,
    Unit,
)


class _BrokenSeq(SeqAccess):

    def next_element(self, seed):
        raise ValueError("unexpected end of input")


class BrokenDecoder(Decoder):

    def decode_any(self, visitor):
        return visitor.visit_seq(_BrokenSeq())


class _PairMap(MapAccess):

    def __init__(self, pairs):
        self.pairs = iter(pairs)
        self.value = None

    def next_key(self, seed):
        try:
            key, self.value = next(self.pairs)
        except StopIteration:
            return END
        return PyValueDecoder(key).decode_any(seed)

    def next_value(self, seed):
        return PyValueDecoder(self.value).decode_any(seed)


class PairMapDecoder(Decoder):
    """Describes a map from (key, value) pairs, so keys may be unhashable."""

    def __init__(self, pairs):
        self.pairs = pairs

    def decode_any(self, visitor):
        return visitor.visit_map(_PairMap(self.pairs))


def bucket_of(value, **kwargs):
    return Bucket.capture(PyValueDecoder(value), **kwargs)


class TestRoundTrip:
    """Test capture followed by replay."""

    def test_clone_round_trip(self):
        value = {"name": "ada", "tags": ["x", "y"], "blob": b"\x00", "n": -7, "f": 0.25}
        bucket = bucket_of(value)
        assert bucket.deserialize_into_clone(PyValueBuilder()) == value
        assert bucket.deserialize_into_clone(PyValueBuilder()) == value

    def test_take_round_trip_then_consumed(self):
        bucket = bucket_of({"name": "ada"})
        assert bucket.deserialize_into(PyValueBuilder()) == {"name": "ada"}
        with pytest.raises(ConsumedTwiceError):
            bucket.deserialize_into(PyValueBuilder())

    def test_optional_sequence_of_maps(self):
        value = Some([{"k": Some(Fixed(NodeKind.U16, 3))}, {"k": None}])
        bucket = bucket_of(value)
        rebuilt = bucket.deserialize_into_clone(PyValueBuilder(keep_markers=True))
        assert rebuilt == Some([{"k": Some(3)}, {"k": None}])
        assert bucket.deserialize_into(PyValueBuilder()) == [{"k": 3}, {"k": None}]

    def test_markers_and_unit(self):
        bucket = bucket_of([NewType(Unit()), Some(Unit())])
        assert bucket.deserialize_into_clone(PyValueBuilder()) == [Unit(), Unit()]
        assert bucket.deserialize_into_clone(PyValueBuilder(keep_markers=True)) == [
            NewType(Unit()), Some(Unit()),
        ]

    def test_sequence_keys_become_tuples(self):
        bucket = Bucket()
        bucket.fill(PyValueDecoder({(1, 2): "pair"}))
        assert bucket.deserialize_into_clone(PyValueBuilder()) == {(1, 2): "pair"}

    def test_map_keyed_by_map(self):
        bucket = Bucket.capture(PairMapDecoder([({"x": 1}, "v")]))
        assert repr(bucket) == 'Bucket({{"x": 1i64}: "v"})'
        rebuilt = bucket.deserialize_into_clone(PyValueBuilder())
        assert rebuilt == {frozenset({("x", 1)}): "v"}

    def test_nested_composite_keys(self):
        bucket = Bucket.capture(PairMapDecoder([([{"k": [1]}], Some([2]))]))
        rebuilt = bucket.deserialize_into_clone(PyValueBuilder(keep_markers=True))
        assert rebuilt == {(frozenset({("k", (1,))}),): Some([2])}

    def test_raw_deserializer(self):
        bucket = bucket_of([1, 2])
        de = bucket.deserializer(clone=True, start=2)
        assert de.decode_any(PyValueBuilder()) == 2

    def test_raw_deserializer_rejects_negative_start(self):
        bucket = bucket_of([1, 2])
        with pytest.raises(CorruptBufferError):
            bucket.deserializer(clone=True, start=-1)


class TestLifecycle:
    """Test fill-once and failure handling."""

    def test_second_fill_rejected(self):
        bucket = bucket_of(1)
        with pytest.raises(BucketStateError) as exc_info:
            bucket.fill(PyValueDecoder(2))
        assert exc_info.value.error_code == "B203"

    def test_failed_capture_propagates_original_error(self):
        bucket = Bucket()
        with pytest.raises(ValueError) as exc_info:
            bucket.fill(BrokenDecoder())
        assert str(exc_info.value) == "unexpected end of input"
        assert bucket.failed

    def test_failed_bucket_refuses_replay(self):
        bucket = Bucket()
        with pytest.raises(ValueError):
            bucket.fill(BrokenDecoder())
        with pytest.raises(UpstreamCaptureError) as exc_info:
            bucket.deserialize_into_clone(PyValueBuilder())
        assert "unexpected end of input" in str(exc_info.value)
        with pytest.raises(BucketStateError):
            bucket.fill(PyValueDecoder(1))

    def test_failed_bucket_with_error_kind(self):
        bucket = Bucket()
        with pytest.raises(ValueError):
            bucket.fill(BrokenDecoder())
        with pytest.raises(PseudoError):
            bucket.deserialize_into(PyValueBuilder(), error=PseudoError)

    def test_failed_capture_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="valuebucket"):
            with pytest.raises(ValueError):
                Bucket.capture(BrokenDecoder())
        assert "capture failed after 1 nodes" in caplog.text

    def test_error_kind_passed_to_replay(self):
        bucket = bucket_of("once")
        bucket.deserialize_into(PyValueBuilder())
        with pytest.raises(KeyError):
            bucket.deserialize_into(PyValueBuilder(), error=KeyError)


class TestInspection:
    """Test rendering and introspection."""

    def test_repr(self):
        bucket = bucket_of({"a": Fixed(NodeKind.U8, 10), "b": False})
        assert repr(bucket) == 'Bucket({"a": 10u8, "b": false})'
        assert len(bucket) == 5

    def test_repr_after_take(self):
        bucket = bucket_of(["a"])
        bucket.deserialize_into(PyValueBuilder())
        assert repr(bucket) == "Bucket([_])"

    def test_repr_of_partial_capture(self):
        """A partial buffer still has a repr."""
        bucket = Bucket()
        bucket.buffer.push(Node.seq(2))
        assert repr(bucket) == "Bucket(<unrenderable: out-of-bounds at node 1>)"

    def test_nodes_snapshot(self):
        bucket = bucket_of([True])
        assert bucket.nodes == (Node.seq(1), Node.scalar(NodeKind.BOOL, True))


class TestSegment:
    """Test subtree navigation."""

    def test_seq_index(self):
        bucket = bucket_of([[1, 2], "mid", {"k": 3}])
        seg = bucket.segment()
        assert seg.kind is NodeKind.SEQ
        assert seg.seq_index(1).deserialize_into_clone(PyValueBuilder()) == "mid"
        assert seg.seq_index(2).render() == '{"k": 3i64}'
        assert seg.seq_index(3) is None
        assert seg.seq_index(-1) is None

    def test_seq_index_on_non_sequence(self):
        assert bucket_of({"a": 1}).segment().seq_index(0) is None

    def test_map_value(self):
        bucket = bucket_of({"kind": "resize", "size": [640, 480]})
        seg = bucket.segment().map_value("size")
        assert len(seg) == 3
        assert seg.deserialize_into_clone(PyValueBuilder()) == [640, 480]
        assert bucket.segment().map_value("missing") is None
        assert bucket.segment().seq_index(0) is None

    def test_navigation_does_not_consume(self):
        bucket = bucket_of({"kind": "resize", "name": "big"})
        bucket.segment().map_value("name")
        assert bucket.deserialize_into(PyValueBuilder()) == {"kind": "resize", "name": "big"}

    def test_take_through_segment(self):
        bucket = bucket_of({"a": "x", "b": "y"})
        seg = bucket.segment().map_value("a")
        assert seg.deserialize_into(PyValueBuilder()) == "x"
        with pytest.raises(ConsumedTwiceError):
            seg.deserialize_into(PyValueBuilder())
        assert bucket.segment().map_value("b").deserialize_into(PyValueBuilder()) == "y"


class TestConfig:
    """Test environment-driven defaults."""

    def test_owned_default_from_config(self, monkeypatch):
        monkeypatch.setattr(config, "OWNED", True)
        src = Source("borrowed")
        bucket = Bucket.capture(PyValueDecoder(Borrowed(0, 8), src))
        src.close()
        assert bucket.nodes == (Node.string("borrowed"),)

    def test_explicit_owned_wins(self, monkeypatch):
        monkeypatch.setattr(config, "OWNED", True)
        src = Source("borrowed")
        bucket = Bucket.capture(PyValueDecoder(Borrowed(0, 3), src), owned=False)
        assert bucket.nodes[0].kind is NodeKind.STRING_REF

    def test_max_depth_default_from_config(self, monkeypatch):
        from valuebucket.errors import DepthLimitError

        monkeypatch.setattr(config, "MAX_DEPTH", 1)
        with pytest.raises(DepthLimitError):
            bucket_of([[1]])

    def test_env_parsing(self, monkeypatch):
        monkeypatch.setenv("VALUEBUCKET_OWNED", "TRUE")
        monkeypatch.setenv("VALUEBUCKET_MAX_DEPTH", "12")
        assert config._env_flag("VALUEBUCKET_OWNED", "false") is True
        assert config._env_int("VALUEBUCKET_MAX_DEPTH") == 12
        monkeypatch.setenv("VALUEBUCKET_MAX_DEPTH", " ")
        assert config._env_int("VALUEBUCKET_MAX_DEPTH") is None

    def test_configure_logging(self):
        logger = config.configure_logging("DEBUG")
        try:
            assert logger.name == "valuebucket"
            assert logger.level == logging.DEBUG
            assert logger.handlers
            handlers = list(logger.handlers)
            config.configure_logging("DEBUG")
            assert logger.handlers == handlers
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
            logger.setLevel(logging.NOTSET)
