"""Decoding of binary GC trace buffers into typed events.

Two on-disk layouts exist, both little-endian with fixed-width records:

Layout.ABSOLUTE (24 bytes per record):
    offset 0   u8   type      0 = Allocate, 1 = GCMark
    offset 8   u64  address   absolute address
    offset 16  u64  size      allocation size in bytes

Layout.RELATIVE (16 byte header, then 12 bytes per record):
    header:
    offset 0   u8   type      always 0 (BaseAddress)
    offset 8   u32  address   base address
    records:
    offset 0   u8   type      0 = BaseAddress, 1 = Allocate, 2 = GCMark
    offset 4   u32  address   address relative to the current base
    offset 8   u32  size      allocation size in bytes

Usage:
    events = decode(buffer, Layout.RELATIVE)
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, IntEnum
from warnings import warn

import numpy as np

from gc_timeline.trace.errors import TruncatedRecord, UnknownEventKind

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


__all__ = [
    "EventKind",
    "Event",
    "Layout",
    "ABSOLUTE_KINDS",
    "RELATIVE_KINDS",
    "decode",
    "record_stride",
]


class EventKind(IntEnum):
    BASE_ADDRESS = 0
    ALLOCATE = 1
    GC_MARK = 2


@dataclass(frozen=True)
class Event:
    """A decoded trace record.

    Attributes:
        kind: What the record describes.
        address: Absolute address for Layout.ABSOLUTE, otherwise relative to
            the most recent BASE_ADDRESS event.
        size: Allocation size in bytes, 0 for non-ALLOCATE kinds.
    """

    kind: EventKind
    address: int
    size: int = 0


class Layout(Enum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"


_ABSOLUTE_RECORD = np.dtype(
    [("type", "u1"), ("pad", "V7"), ("address", "<u8"), ("size", "<u8")]
)
_RELATIVE_HEADER = np.dtype([("type", "u1"), ("pad", "V7"), ("address", "<u4"), ("tail", "V4")])
_RELATIVE_RECORD = np.dtype(
    [("type", "u1"), ("pad", "V3"), ("address", "<u4"), ("size", "<u4")]
)

ABSOLUTE_KINDS = {0: EventKind.ALLOCATE, 1: EventKind.GC_MARK}
RELATIVE_KINDS = {
    0: EventKind.BASE_ADDRESS,
    1: EventKind.ALLOCATE,
    2: EventKind.GC_MARK,
}


def record_stride(layout: Layout | str) -> int:
    """Size in bytes of one repeating record for the given layout."""
    layout = Layout(layout)
    if layout is Layout.ABSOLUTE:
        return _ABSOLUTE_RECORD.itemsize
    return _RELATIVE_RECORD.itemsize


def _decode_records(
    buffer: memoryview,
    start: int,
    dtype: np.dtype,
    kinds: Mapping[int, EventKind],
) -> list[Event]:
    count = (len(buffer) - start) // dtype.itemsize
    trailing = len(buffer) - start - count * dtype.itemsize
    if trailing:
        logger.warning(
            f"Dropping {trailing} trailing bytes after record {count}: shorter than one "
            f"{dtype.itemsize} byte record"
        )
        warn(
            f"{trailing} trailing bytes do not form a full {dtype.itemsize} byte record",
            TruncatedRecord,
            stacklevel=3,
        )
    if count == 0:
        return []

    records = np.frombuffer(buffer, dtype=dtype, count=count, offset=start)
    types = records["type"]
    unknown = np.flatnonzero(~np.isin(types, list(kinds)))
    if unknown.size:
        first = int(unknown[0])
        raise UnknownEventKind(start + first * dtype.itemsize, int(types[first]))

    events = []
    for raw_type, address, size in zip(
        types.tolist(), records["address"].tolist(), records["size"].tolist()
    ):
        kind = kinds[raw_type]
        events.append(Event(kind, address, size if kind is EventKind.ALLOCATE else 0))
    return events


def decode(
    buffer: bytes | bytearray | memoryview,
    layout: Layout | str = Layout.ABSOLUTE,
    kinds: Mapping[int, EventKind] | None = None,
) -> list[Event]:
    """Decode a trace buffer into an ordered list of events.

    Decoding stops at the last complete record. Leftover bytes emit a
    TruncatedRecord warning instead of failing the whole buffer.

    Args:
        buffer: Raw trace bytes.
        layout: Record layout of the buffer.
        kinds: Optional override of the type discriminant -> EventKind table
            used for the repeating records. An empty table rejects every record.

    Returns:
        Events in trace order.

    Raises:
        UnknownEventKind: If a record's type is not in the kind table.
    """
    layout = Layout(layout)
    view = memoryview(buffer).cast("B")

    if layout is Layout.ABSOLUTE:
        record_kinds = ABSOLUTE_KINDS if kinds is None else kinds
        events = _decode_records(view, 0, _ABSOLUTE_RECORD, record_kinds)
    else:
        header_size = _RELATIVE_HEADER.itemsize
        if len(view) < header_size:
            if len(view):
                logger.warning(f"Buffer of {len(view)} bytes is shorter than the trace header")
                warn(
                    f"{len(view)} bytes do not form a full {header_size} byte header",
                    TruncatedRecord,
                    stacklevel=2,
                )
            return []
        header = np.frombuffer(view, dtype=_RELATIVE_HEADER, count=1)[0]
        if int(header["type"]) != 0:
            raise UnknownEventKind(0, int(header["type"]))
        events = [Event(EventKind.BASE_ADDRESS, int(header["address"]))]
        record_kinds = RELATIVE_KINDS if kinds is None else kinds
        events += _decode_records(view, header_size, _RELATIVE_RECORD, record_kinds)

    logger.debug(f"Decoded {len(events)} events from {len(view)} bytes ({layout.value} layout)")
    return events
