"""
bucket.py

Bucket: owner of one NodeBuffer for one capture-then-replay lifecycle.

Example:
    bucket = Bucket.capture(PyValueDecoder({"a": 10, "b": False}))
    print(bucket)                                 # Bucket({"a": 10i64, "b": false})

    first = bucket.deserialize_into_clone(PyValueBuilder())
    again = bucket.deserialize_into_clone(PyValueBuilder())   # still intact
    moved = bucket.deserialize_into(PyValueBuilder())         # owned data moved out
"""

import logging
from typing import Any, Callable, Optional, Tuple

from valuebucket import config
from valuebucket.buffer import NodeBuffer
from valuebucket.capture import CaptureVisitor
from valuebucket.debug import render
from valuebucket.errors import BucketStateError, RenderError, UpstreamCaptureError
from valuebucket.node import Node
from valuebucket.protocol import Decoder, ValueSink
from valuebucket.replay import ReplayDeserializer
from valuebucket.segment import Segment

logger = logging.getLogger(__name__)

ErrorKind = Optional[Callable[[str], Exception]]


class Bucket:
    """
    Stores one captured value for later, possibly repeated, replay.

    Capture fills the bucket once. Replays then run either in clone mode
    (repeatable) or take mode (owned text/bytes move out, so a second
    take of the same value fails with ConsumedTwiceError).
    """

    __slots__ = ('_buffer', '_failure')

    def __init__(self):
        self._buffer = NodeBuffer()
        self._failure: Optional[BaseException] = None

    # =========================================================================
    # Capture
    # =========================================================================

    @classmethod
    def capture(
        cls,
        decoder: Decoder,
        owned: Optional[bool] = None,
        max_depth: Optional[int] = None,
    ) -> "Bucket":
        """Create a bucket holding the value decoder describes."""
        bucket = cls()
        bucket.fill(decoder, owned=owned, max_depth=max_depth)
        return bucket

    def fill(
        self,
        decoder: Decoder,
        owned: Optional[bool] = None,
        max_depth: Optional[int] = None,
    ) -> None:
        """
        Capture into this (empty) bucket.

        owned and max_depth default to config.OWNED / config.MAX_DEPTH.
        Exceptions raised by the decoder propagate unchanged; the bucket
        is then marked failed and refuses every later replay.

        Raises:
            BucketStateError: If the bucket already holds a capture
        """
        if self._failure is not None or len(self._buffer):
            raise BucketStateError("bucket already holds a capture")

        visitor = CaptureVisitor(
            self._buffer,
            owned=config.OWNED if owned is None else owned,
            max_depth=config.MAX_DEPTH if max_depth is None else max_depth,
        )
        try:
            visitor.capture(decoder)
        except Exception as e:
            self._failure = e
            logger.warning("capture failed after %d nodes: %s", len(self._buffer), e)
            raise

    @property
    def failed(self) -> bool:
        """True if the capture into this bucket raised."""
        return self._failure is not None

    # =========================================================================
    # Replay
    # =========================================================================

    def deserializer(
        self,
        clone: bool = False,
        error: ErrorKind = None,
        start: int = 0,
    ) -> ReplayDeserializer:
        """Return a raw deserializer for custom decoding."""
        if self._failure is not None:
            exc = UpstreamCaptureError(cause=self._failure)
            if error is not None:
                raise error(exc.message) from self._failure
            raise exc from self._failure
        return ReplayDeserializer(self._buffer, clone=clone, error=error, start=start)

    def deserialize_into(self, sink: ValueSink, error: ErrorKind = None) -> Any:
        """Replay into sink, moving owned text/bytes out of the bucket."""
        return self.replay(sink, clone=False, error=error, start=0)

    def deserialize_into_clone(self, sink: ValueSink, error: ErrorKind = None) -> Any:
        """Replay into sink, copying owned text/bytes."""
        return self.replay(sink, clone=True, error=error, start=0)

    def replay(self, sink: ValueSink, clone: bool, error: ErrorKind = None, start: int = 0) -> Any:
        """Replay the subtree at start into sink."""
        deserializer = self.deserializer(clone=clone, error=error, start=start)
        logger.debug("replay from node %d (%s)", start, "clone" if clone else "take")
        value = deserializer.decode_any(sink)
        logger.debug("replay consumed %d nodes", deserializer.cursor - start)
        return value

    def segment(self) -> Segment:
        """Segment covering the whole captured value."""
        return Segment(self, 0)

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def buffer(self) -> NodeBuffer:
        return self._buffer

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return self._buffer.nodes

    def __len__(self) -> int:
        return len(self._buffer)

    def render(self) -> str:
        """Render the captured nodes. See valuebucket.debug."""
        return render(self._buffer)

    def __repr__(self) -> str:
        try:
            text = self.render()
        except RenderError as e:
            text = f"<unrenderable: {e.message}>"
        return f"Bucket({text})"
