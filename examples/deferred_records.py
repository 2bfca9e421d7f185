"""
deferred_records.py

Adapter: typed record reconstruction on top of valuebucket.

Use case: a message arrives before anyone knows which record type it
describes. It is captured once into a Bucket, its "kind" field is read
through a Segment, and only then is it replayed into the matching
dataclass.

Field widths come from dataclass field metadata, e.g.
``field(metadata={"kind": NodeKind.U8})``.
"""

import typing
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from typing import Any, Dict, List, Optional, Type

from valuebucket import END, Bucket, NodeKind, PyValueBuilder, ValueSink
from valuebucket.node import INT_RANGES


class RecordError(Exception):
    """The replayed shape does not fit the requested record type."""
    pass


# =============================================================================
# Sinks
# =============================================================================

class _Scalar(ValueSink):

    def unexpected(self, found: str) -> Exception:
        return RecordError(f"invalid type: {found}, expected {self.expecting}")


class BoolSink(_Scalar):
    expecting = "a boolean"

    def visit_bool(self, value: bool):
        return value


class IntSink(_Scalar):
    """Accepts any integer node that fits kind (unbounded if kind is None)."""

    def __init__(self, kind: Optional[NodeKind] = None):
        self.kind = kind
        self.expecting = f"{kind.value}" if kind else "an integer"

    def _check(self, value: int) -> int:
        if self.kind is not None:
            low, high = INT_RANGES[self.kind]
            if not low <= value <= high:
                raise RecordError(f"invalid value: integer `{value}`, expected {self.kind.value}")
        return value

    def visit_i64(self, value: int):
        return self._check(value)

    def visit_i128(self, value: int):
        return self._check(value)

    def visit_u64(self, value: int):
        return self._check(value)

    def visit_u128(self, value: int):
        return self._check(value)


class FloatSink(_Scalar):
    expecting = "a float"

    def visit_f64(self, value: float):
        return value

    def visit_i64(self, value: int):
        return float(value)

    def visit_u64(self, value: int):
        return float(value)


class StrSink(_Scalar):
    expecting = "a string"

    def visit_str(self, value: str):
        return value


class BytesSink(_Scalar):
    expecting = "a byte array"

    def visit_bytes(self, value):
        return bytes(value)


class OptionSink(_Scalar):
    expecting = "an option"

    def __init__(self, inner: ValueSink):
        self.inner = inner

    def visit_none(self):
        return None

    def visit_some(self, deserializer):
        return deserializer.decode_any(self.inner)


class ListSink(_Scalar):
    """A sequence of any length, or exactly `size` elements when given."""

    def __init__(self, element: ValueSink, size: Optional[int] = None):
        self.element = element
        self.size = size
        self.expecting = f"a sequence of {size} elements" if size is not None else "a sequence"

    def visit_seq(self, seq):
        items = []
        while self.size is None or len(items) < self.size:
            item = seq.next_element(self.element)
            if item is END:
                break
            items.append(item)

        if self.size is not None:
            if len(items) < self.size:
                raise RecordError(f"invalid length {len(items)}, expected {self.expecting}")
            if seq.remaining:
                raise RecordError(
                    f"invalid length {self.size + seq.remaining}, expected {self.expecting}"
                )
        return items


class RecordSink(_Scalar):
    """Builds a dataclass instance from a captured map; unknown fields are skipped undecoded."""

    def __init__(self, cls: Type[Any]):
        if not is_dataclass(cls):
            raise TypeError(f"{cls!r} is not a dataclass")
        self.cls = cls
        self.expecting = f"struct {cls.__name__}"
        hints = typing.get_type_hints(cls)
        self.fields = {f.name: f for f in fields(cls)}
        self.sinks = {f.name: sink_for(hints[f.name], f.metadata.get("kind")) for f in fields(cls)}

    def visit_map(self, entries):
        values: Dict[str, Any] = {}
        while True:
            key = entries.next_key(StrSink())
            if key is END:
                break
            if key in self.sinks:
                if key in values:
                    raise RecordError(f"duplicate field `{key}`")
                values[key] = entries.next_value(self.sinks[key])
            else:
                entries.skip_value()

        for name, f in self.fields.items():
            if name not in values and f.default is MISSING and f.default_factory is MISSING:
                raise RecordError(f"missing field `{name}`")
        return self.cls(**values)


def sink_for(tp: Any, kind: Optional[NodeKind] = None) -> ValueSink:
    """Pick the sink for a field annotation."""
    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if origin is typing.Union and len(args) == 2 and type(None) in args:
        inner = args[0] if args[1] is type(None) else args[1]
        return OptionSink(sink_for(inner, kind))
    if origin in (list, List):
        return ListSink(sink_for(args[0] if args else Any, kind))
    if tp is bool:
        return BoolSink()
    if tp is int:
        return IntSink(kind)
    if tp is float:
        return FloatSink()
    if tp is str:
        return StrSink()
    if tp is bytes:
        return BytesSink()
    if is_dataclass(tp):
        return RecordSink(tp)
    return PyValueBuilder()


# =============================================================================
# Record types and routing
# =============================================================================

@dataclass
class Flags:
    a: int = field(metadata={"kind": NodeKind.U8})
    b: bool


@dataclass
class Resize:
    kind: str
    width: int = field(metadata={"kind": NodeKind.U16})
    height: int = field(metadata={"kind": NodeKind.U16})


@dataclass
class Rename:
    kind: str
    name: str
    aliases: List[str] = field(default_factory=list)


REGISTRY: Dict[str, Type[Any]] = {
    "resize": Resize,
    "rename": Rename,
}


def replay_as(bucket: Bucket, cls: Type[Any], clone: bool = True) -> Any:
    """Replay a captured value into record type cls."""
    sink = RecordSink(cls)
    if clone:
        return bucket.deserialize_into_clone(sink)
    return bucket.deserialize_into(sink)


def route(bucket: Bucket, registry: Optional[Dict[str, Type[Any]]] = None) -> Any:
    """
    Replay a captured message into the record type named by its "kind".

    The kind is read through a Segment in clone mode, so the full replay
    that follows still sees every node intact.
    """
    registry = registry if registry is not None else REGISTRY
    kind_segment = bucket.segment().map_value("kind")
    if kind_segment is None:
        raise RecordError("message has no `kind` field")

    kind = kind_segment.deserialize_into_clone(StrSink())
    if kind not in registry:
        raise RecordError(f"unknown message kind `{kind}`")
    return replay_as(bucket, registry[kind], clone=False)
