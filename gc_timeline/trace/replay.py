import logging
from collections import Counter
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field

from gc_timeline.trace.decoder import Event, EventKind
from gc_timeline.trace.live_set import LiveSet

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class GcPhase:
    """A contiguous run of GC marks, bounded by allocations or the trace ends.

    Attributes:
        start_index: Index of the first GCMark event of the phase.
        end_index: Index of the allocation that closed the phase, or the
            number of events when the trace ended mid-phase.
        freed_bytes: Bytes swept when the phase closed.
    """

    start_index: int
    end_index: int
    freed_bytes: int

    @property
    def width(self) -> int:
        return self.end_index - self.start_index

    @property
    def is_degenerate(self) -> bool:
        return self.start_index == self.end_index


@dataclass(frozen=True)
class TimelinePoint:
    position: int
    size: int


@dataclass
class Replay:
    """Everything one pass over a trace produces.

    Unpacks as ``timeline, phases = reconstruct(events)``.

    Attributes:
        timeline: One point per event, sizes are the running cumulative total.
        phases: GC phases in closing order.
        live_bytes: Sum of the live set after the final sweep. Re-allocating an
            address that is still live overwrites its entry while the running
            total adds the new size, so this can differ from
            ``timeline[-1].size`` and ``freed_bytes + live_bytes`` can fall
            short of ``allocated_bytes``.
        allocated_bytes: Sum of all ALLOCATE sizes.
        kind_counts: Number of events seen per EventKind.
    """

    timeline: list[TimelinePoint] = field(default_factory=list)
    phases: list[GcPhase] = field(default_factory=list)
    live_bytes: int = 0
    allocated_bytes: int = 0
    kind_counts: Counter = field(default_factory=Counter)

    @property
    def freed_bytes(self) -> int:
        return sum(phase.freed_bytes for phase in self.phases)

    @property
    def peak_bytes(self) -> int:
        return max((point.size for point in self.timeline), default=0)

    def __iter__(self) -> Iterator[list]:
        return iter((self.timeline, self.phases))


def reconstruct(
    events: Sequence[Event],
    on_phase: Callable[[GcPhase], None] | None = None,
) -> Replay:
    """Replay decoded events, tracking live bytes and the GC phases between allocations.

    A phase opens on the first GCMark after an allocation and closes on the next
    allocation (or at the end of the trace). Closing sweeps every live address
    that was not marked during the phase. The closing allocation is applied after
    the sweep, so it is always live.

    Args:
        events: Decoded events in trace order.
        on_phase: Optional callback invoked with each phase as it closes.

    Returns:
        Replay with one timeline point per event and the phases in closing order.
    """
    replay = Replay()
    if not events:
        logger.info("Empty trace, nothing to replay")
        return replay

    live = LiveSet()
    marked: set[int] = set()
    base = 0
    cumulative = 0
    in_phase = False
    gc_start = 0

    def close_phase(end_index: int) -> None:
        nonlocal cumulative, in_phase
        freed = live.reconcile(marked)
        phase = GcPhase(gc_start, end_index, freed)
        if phase.is_degenerate:
            logger.debug(f"Zero-width GC phase at event {gc_start}")
        logger.debug(f"GC phase [{gc_start}, {end_index}) freed {freed} bytes")
        replay.phases.append(phase)
        if on_phase is not None:
            on_phase(phase)
        cumulative -= freed
        marked.clear()
        in_phase = False

    for index, event in enumerate(events):
        replay.kind_counts[event.kind] += 1
        match event.kind:
            case EventKind.BASE_ADDRESS:
                base = event.address
                position = base
            case EventKind.ALLOCATE:
                position = base + event.address
                if in_phase:
                    close_phase(index)
                live.record(position, event.size)
                cumulative += event.size
                replay.allocated_bytes += event.size
            case EventKind.GC_MARK:
                position = base + event.address
                if not in_phase:
                    gc_start = index
                    in_phase = True
                marked.add(position)

        replay.timeline.append(TimelinePoint(position, cumulative))

    if in_phase:
        close_phase(len(events))

    replay.live_bytes = live.total
    return replay
