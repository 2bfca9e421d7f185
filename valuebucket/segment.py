"""
segment.py

Segment: a view of one subtree inside a bucket.

Lets a caller reach into a captured sequence or map and replay only the
part it needs. Navigation walks the linear layout with
NodeBuffer.subtree_end() and decodes nothing except map keys (in clone
mode, so navigation never consumes anything).
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from valuebucket.debug import render_node
from valuebucket.node import NodeKind
from valuebucket.protocol import ValueSink

if TYPE_CHECKING:
    from valuebucket.bucket import Bucket
    from valuebucket.replay import ReplayDeserializer


@dataclass(frozen=True)
class Segment:
    """The subtree of `bucket` rooted at node `start`."""
    bucket: "Bucket"
    start: int

    @property
    def kind(self) -> NodeKind:
        return self.bucket.buffer.get(self.start).kind

    def __len__(self) -> int:
        """Number of nodes in this subtree."""
        return self.bucket.buffer.subtree_end(self.start) - self.start

    def seq_index(self, index: int) -> Optional["Segment"]:
        """
        Segment of the index-th element of a captured sequence.

        Returns None if this segment is not a sequence or index is out of
        range.
        """
        buffer = self.bucket.buffer
        node = buffer.get(self.start)
        if node.kind is not NodeKind.SEQ or not 0 <= index < node.value:
            return None

        position = self.start + 1
        for _ in range(index):
            position = buffer.subtree_end(position)
        return Segment(self.bucket, position)

    def map_value(self, key: Any) -> Optional["Segment"]:
        """
        Segment of the value stored under key in a captured map.

        Keys are compared as plain Python values. Returns None if this
        segment is not a map or holds no such key.
        """
        from valuebucket.pyvalue import PyValueBuilder

        buffer = self.bucket.buffer
        node = buffer.get(self.start)
        if node.kind is not NodeKind.MAP:
            return None

        position = self.start + 1
        for _ in range(node.value):
            candidate = self.bucket.replay(PyValueBuilder(), clone=True, start=position)
            value_start = buffer.subtree_end(position)
            if candidate == key:
                return Segment(self.bucket, value_start)
            position = buffer.subtree_end(value_start)
        return None

    def deserializer(
        self,
        clone: bool = False,
        error: Optional[Callable[[str], Exception]] = None,
    ) -> "ReplayDeserializer":
        return self.bucket.deserializer(clone=clone, error=error, start=self.start)

    def deserialize_into(self, sink: ValueSink, error=None) -> Any:
        return self.bucket.replay(sink, clone=False, error=error, start=self.start)

    def deserialize_into_clone(self, sink: ValueSink, error=None) -> Any:
        return self.bucket.replay(sink, clone=True, error=error, start=self.start)

    def render(self) -> str:
        text, _ = render_node(self.bucket.buffer, self.start)
        return text
