"""Errors and warnings raised while decoding GC traces."""


class TraceError(ValueError):
    """Base class for malformed trace buffers."""


class UnknownEventKind(TraceError):
    """A record carried a type discriminant outside the layout's kind table."""

    def __init__(self, offset: int, value: int):
        self.offset = offset
        self.value = value
        super().__init__(f"Unknown event kind {value} in record at byte offset {offset}")


class TruncatedRecord(UserWarning):
    """Trailing bytes shorter than one record were dropped."""
