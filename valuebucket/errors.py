"""
errors.py

Error taxonomy for valuebucket.

Every error carries a stable error code. BucketError and the replay
errors can be built from a message alone, so any of them may also be
handed to a replay as the caller-supplied error kind.

Codes:
- B1xx: replay failures (terminal for the current decode)
- B2xx: capture failures
- B3xx: rendering failures
- B4xx: bridge / sink failures
"""

from typing import Optional


class BucketError(Exception):
    """
    Base class for all valuebucket errors.

    Constructible from a single diagnostic message.
    """

    def __init__(
        self,
        message: str,
        *,
        error_code: str = "B000",
    ):
        self.message = message
        self.error_code = error_code
        super().__init__(self.format())

    def format(self) -> str:
        """Format as single-line error message."""
        return f"[{self.error_code}] {self.message}"


class PseudoError(Exception):
    """
    Minimal message-only error.

    Useful as a replay error kind when the caller has no error type handy.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Replay Errors (B1xx)
# =============================================================================

class ConsumedTwiceError(BucketError):
    """An owned value was read again after take-mode extraction."""

    def __init__(self, message: str = "value has already been consumed", position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} (node {position})"
        super().__init__(message, error_code="B101")


class CorruptBufferError(BucketError):
    """The buffer does not hold a valid pre-order flattening."""

    def __init__(self, message: str = "invalid value - no size data", position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} (node {position})"
        super().__init__(message, error_code="B102")


class MapOrderError(BucketError):
    """Map keys and values were requested out of alternation."""

    def __init__(self, message: str = "out-of-order map access"):
        super().__init__(message, error_code="B103")


class StaleViewError(BucketError):
    """A borrowed view was resolved after its source was closed."""

    def __init__(self, message: str = "borrowed view outlived its source"):
        super().__init__(message, error_code="B104")


class UpstreamCaptureError(BucketError):
    """Replay was attempted on a bucket whose capture failed."""

    def __init__(self, message: str = "bucket capture failed", cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, error_code="B105")


# =============================================================================
# Capture Errors (B2xx)
# =============================================================================

class DepthLimitError(BucketError):
    """Input nesting exceeded the configured depth bound."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"nesting deeper than {limit} levels", error_code="B201")


class InvalidScalarError(BucketError):
    """A scalar does not fit the node kind it was captured as."""

    def __init__(self, kind: str, value: object):
        self.kind = kind
        self.value = value
        super().__init__(f"{value!r} is not a valid {kind}", error_code="B202")


class BucketStateError(BucketError):
    """A bucket was used outside its capture-then-replay lifecycle."""

    def __init__(self, message: str):
        super().__init__(message, error_code="B203")


# =============================================================================
# Render Errors (B3xx)
# =============================================================================

class RenderError(BucketError):
    """Rendering ran past the end of the buffer."""

    def __init__(self, message: str = "out-of-bounds", position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} at node {position}"
        super().__init__(message, error_code="B301")


# =============================================================================
# Bridge Errors (B4xx)
# =============================================================================

class UnsupportedValueError(BucketError):
    """The Python-value decoder met a type it cannot describe."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(
            f"cannot capture value of type {type(value).__name__}",
            error_code="B401",
        )


class UnexpectedShapeError(BucketError):
    """A value sink received a shape it does not handle."""

    def __init__(self, found: str, expected: str = "a supported value"):
        self.found = found
        self.expected = expected
        super().__init__(f"invalid type: {found}, expected {expected}", error_code="B402")
