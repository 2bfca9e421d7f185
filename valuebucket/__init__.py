"""
valuebucket: Deferred Value Container
=====================================

Captures any self-describing value, as described by an external decoding
front end, into one flat pre-order buffer of nodes, so it can later be
replayed into a concrete shape: possibly more than once, and without the
target type being known at capture time.

What's Public
-------------
Everything exported in ``__all__``:

- **Container**: Bucket, Segment
- **Capture / Replay**: CaptureVisitor, ReplayDeserializer, SeqCursor,
  MapCursor, END
- **Protocols**: Decoder, SeqAccess, MapAccess, ValueSink
- **Data model**: Node, NodeKind, NodeBuffer, Source, BorrowedView
- **Rendering**: render
- **Python values**: PyValueDecoder, PyValueBuilder and wrapper types
- **Exceptions**: the coded BucketError family and PseudoError

Example
-------
::

    from valuebucket import Bucket, PyValueDecoder, PyValueBuilder

    bucket = Bucket.capture(PyValueDecoder({"a": 10, "b": False}))
    print(bucket)                       # Bucket({"a": 10i64, "b": false})

    value = bucket.deserialize_into_clone(PyValueBuilder())
"""

__version__ = "0.3.0"

__all__ = [
    "__version__",

    # --- Container ---
    "Bucket",
    "Segment",

    # --- Capture / Replay ---
    "CaptureVisitor",
    "ReplayDeserializer",
    "SeqCursor",
    "MapCursor",
    "END",

    # --- Protocols ---
    "Decoder",
    "SeqAccess",
    "MapAccess",
    "ValueSink",

    # --- Data model ---
    "Node",
    "NodeKind",
    "NodeBuffer",
    "Source",
    "BorrowedView",

    # --- Rendering ---
    "render",

    # --- Python values ---
    "PyValueDecoder",
    "PyValueBuilder",
    "Borrowed",
    "Fixed",
    "NewType",
    "Some",
    "Unit",

    # --- Exceptions ---
    "BucketError",
    "PseudoError",
    "ConsumedTwiceError",
    "CorruptBufferError",
    "MapOrderError",
    "StaleViewError",
    "UpstreamCaptureError",
    "DepthLimitError",
    "InvalidScalarError",
    "BucketStateError",
    "RenderError",
    "UnsupportedValueError",
    "UnexpectedShapeError",
]

from valuebucket.bucket import Bucket
from valuebucket.buffer import NodeBuffer
from valuebucket.capture import CaptureVisitor
from valuebucket.debug import render
from valuebucket.errors import (
    BucketError,
    BucketStateError,
    ConsumedTwiceError,
    CorruptBufferError,
    DepthLimitError,
    InvalidScalarError,
    MapOrderError,
    PseudoError,
    RenderError,
    StaleViewError,
    UnexpectedShapeError,
    UnsupportedValueError,
    UpstreamCaptureError,
)
from valuebucket.node import BorrowedView, Node, NodeKind, Source
from valuebucket.protocol import END, Decoder, MapAccess, SeqAccess, ValueSink
from valuebucket.pyvalue import (
    Borrowed,
    Fixed,
    NewType,
    PyValueBuilder,
    PyValueDecoder,
    Some,
    Unit,
)
from valuebucket.replay import MapCursor, ReplayDeserializer, SeqCursor
from valuebucket.segment import Segment
