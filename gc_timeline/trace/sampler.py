from collections.abc import Sequence
from dataclasses import dataclass, field

from gc_timeline.trace.replay import GcPhase, TimelinePoint

_MB = 1024 * 1024


@dataclass
class VizConfig:
    max_points: int = 1000
    width: int = 1200
    height: int = 600
    num_ticks: int = 10
    title: str = "Trace Events Timeline"


@dataclass(frozen=True)
class SampledPoint:
    index: int
    x: float
    y: float
    size: int


@dataclass(frozen=True)
class PhaseBand:
    x: float
    width: float
    freed_bytes: int
    start_index: int
    end_index: int

    @property
    def label(self) -> str:
        return f"{format_bytes(self.freed_bytes)} freed"


@dataclass(frozen=True)
class AxisTick:
    y: float
    value: int

    @property
    def label(self) -> str:
        return format_bytes(self.value)


@dataclass
class SampledTimeline:
    points: list[SampledPoint] = field(default_factory=list)
    bands: list[PhaseBand] = field(default_factory=list)
    ticks: list[AxisTick] = field(default_factory=list)
    stride: int = 1
    max_size: int = 0
    box: tuple[int, int] = (1200, 600)


def format_bytes(num_bytes: int) -> str:
    """Bytes as megabytes with two decimals, e.g. ``"1.50 MB"``"""
    return f"{num_bytes / _MB:.2f} MB"


def axis_ticks(max_size: int, height: int = 600, num_ticks: int = 10) -> list[AxisTick]:
    """Evenly spaced y-axis ticks from 0 up to max_size, bottom to top."""
    return [
        AxisTick(y=height - (i / num_ticks) * height, value=max_size * i // num_ticks)
        for i in range(num_ticks + 1)
    ]


def sample(
    timeline: Sequence[TimelinePoint],
    phases: Sequence[GcPhase],
    max_points: int = 1000,
    box: tuple[int, int] = (1200, 600),
    num_ticks: int = 10,
) -> SampledTimeline:
    """Downsample a timeline and project it, plus its GC phases, into a plotting box.

    Every ``stride``-th point is kept, where ``stride = max(1, N // max_points)``.
    The y axis is scaled so the largest size in the whole timeline touches the top
    of the box. Phase bands are positioned from original event indices, so they do
    not depend on the stride.

    Args:
        timeline: One point per replayed event.
        phases: GC phases from the same replay.
        max_points: Target upper bound on the number of sampled points.
        box: (width, height) of the plotting area.
        num_ticks: Number of y-axis intervals.

    Returns:
        SampledTimeline with points, phase bands and y-axis ticks.
    """
    width, height = box
    if max_points < 1:
        raise ValueError(f"max_points must be positive, got {max_points}")
    if width <= 0 or height <= 0:
        raise ValueError(f"Plotting box must have positive dimensions, got {box}")
    if num_ticks < 1:
        raise ValueError(f"num_ticks must be positive, got {num_ticks}")

    n = len(timeline)
    stride = max(1, n // max_points)
    max_size = max(0, max((point.size for point in timeline), default=0))
    scale = max_size or 1

    points = []
    for rank, index in enumerate(range(0, n, stride)):
        size = timeline[index].size
        points.append(
            SampledPoint(
                index=index,
                x=(rank / (n / stride)) * width,
                y=height - (size / scale) * height,
                size=size,
            )
        )

    bands = []
    if n:
        for phase in phases:
            bands.append(
                PhaseBand(
                    x=(phase.start_index / n) * width,
                    width=((phase.end_index - phase.start_index) / n) * width,
                    freed_bytes=phase.freed_bytes,
                    start_index=phase.start_index,
                    end_index=phase.end_index,
                )
            )

    return SampledTimeline(
        points=points,
        bands=bands,
        ticks=axis_ticks(max_size, height, num_ticks),
        stride=stride,
        max_size=max_size,
        box=(width, height),
    )
