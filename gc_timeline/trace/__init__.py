from gc_timeline.trace.decoder import decode, Event, EventKind, Layout, record_stride
from gc_timeline.trace.errors import TraceError, TruncatedRecord, UnknownEventKind
from gc_timeline.trace.live_set import LiveSet
from gc_timeline.trace.replay import GcPhase, reconstruct, Replay, TimelinePoint
from gc_timeline.trace.sampler import (
    AxisTick,
    format_bytes,
    PhaseBand,
    sample,
    SampledPoint,
    SampledTimeline,
    VizConfig,
)


def analyze(
    buffer: bytes | bytearray | memoryview,
    layout: Layout | str = Layout.ABSOLUTE,
    config: VizConfig | None = None,
) -> tuple[Replay, SampledTimeline]:
    """Decode, replay and sample a trace buffer in one go.

    Decode errors propagate, so a corrupt trace never yields a partial result.
    """
    config = config or VizConfig()
    replay = reconstruct(decode(buffer, layout))
    sampled = sample(
        replay.timeline,
        replay.phases,
        max_points=config.max_points,
        box=(config.width, config.height),
        num_ticks=config.num_ticks,
    )
    return replay, sampled
