import json
from collections.abc import Sequence
from html import escape

from gc_timeline.trace.decoder import Event, EventKind
from gc_timeline.trace.replay import Replay
from gc_timeline.trace.sampler import format_bytes, SampledTimeline


def _fmt(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _script_safe(payload: str) -> str:
    return payload.replace("&", "\\u0026").replace("<", "\\u003c").replace(">", "\\u003e")


def _y_axis(sampled: SampledTimeline) -> str:
    return "\n".join(
        f'<text class="y-axis" x="4" y="{_fmt(tick.y)}">{tick.label}</text>'
        for tick in sampled.ticks
    )


def _path_data(sampled: SampledTimeline) -> str:
    return " ".join(
        f"{'M' if rank == 0 else 'L'} {_fmt(point.x)},{_fmt(point.y)}"
        for rank, point in enumerate(sampled.points)
    )


def _gc_bars(sampled: SampledTimeline) -> str:
    _, height = sampled.box
    bars = []
    for band in sampled.bands:
        bars.append(
            f'<rect class="gc-bar" x="{_fmt(band.x)}" y="0" width="{_fmt(band.width)}" '
            f'height="{height}" />\n'
            f'<text class="gc-label" x="{_fmt(band.x + band.width / 2)}" y="20">{band.label}</text>'
        )
    return "\n".join(bars)


EVENT_HEADERS = ["index", "kind", "address", "absolute address", "size"]


def format_events(events: Sequence[Event]) -> list[list]:
    """One row per decoded event, addresses in hex.

    The absolute address adds the most recent BASE_ADDRESS to the recorded one,
    so rows of both layouts can be compared directly.
    """
    rows = []
    base = 0
    for index, event in enumerate(events):
        if event.kind is EventKind.BASE_ADDRESS:
            base = event.address
            absolute = base
        else:
            absolute = base + event.address
        rows.append([index, event.kind.name, hex(event.address), hex(absolute), event.size])
    return rows


def summarize(replay: Replay) -> list[list]:
    """Rows of (metric, value) for a console table of one replay."""
    rows = [[f"{kind.name.lower()} events", replay.kind_counts.get(kind, 0)] for kind in EventKind]
    degenerate = sum(1 for phase in replay.phases if phase.is_degenerate)
    rows += [
        ["gc phases", len(replay.phases)],
        ["zero-width phases", degenerate],
        ["allocated", format_bytes(replay.allocated_bytes)],
        ["freed", format_bytes(replay.freed_bytes)],
        ["peak live", format_bytes(replay.peak_bytes)],
        ["final live", format_bytes(replay.live_bytes)],
    ]
    return rows


def generate_gc_html(
    replay: Replay,
    sampled: SampledTimeline,
    title: str = "Trace Events Timeline",
) -> str:
    width, height = sampled.box
    meta = {
        "title": title,
        "num_events": len(replay.timeline),
        "kind_counts": {kind.name: replay.kind_counts.get(kind, 0) for kind in EventKind},
        "num_phases": len(replay.phases),
        "num_points": len(sampled.points),
        "stride": sampled.stride,
        "peak_bytes": replay.peak_bytes,
        "live_bytes": replay.live_bytes,
        "allocated_bytes": replay.allocated_bytes,
        "freed_bytes": replay.freed_bytes,
    }
    stats = (
        f"<strong>{len(replay.timeline)}</strong> events · "
        f"<strong>{len(replay.phases)}</strong> GC phases · "
        f"peak <strong>{format_bytes(replay.peak_bytes)}</strong> · "
        f"freed <strong>{format_bytes(replay.freed_bytes)}</strong>"
    )

    return (
        _GC_VIZ_TEMPLATE.replace("__TITLE__", escape(title))
        .replace("__STATS__", stats)
        .replace("__WIDTH__", str(width))
        .replace("__HEIGHT__", str(height))
        .replace("__Y_AXIS__", _y_axis(sampled))
        .replace("__PATH__", _path_data(sampled))
        .replace("__GC_BARS__", _gc_bars(sampled))
        .replace("__META__", _script_safe(json.dumps(meta)))
    )


_GC_VIZ_TEMPLATE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>__TITLE__</title>
<style>
  :root {
    --bg: #f4f4f4;
    --surface: #ffffff;
    --border: #cccccc;
    --axis: #666666;
    --line: #007acc;
    --gc-fill: rgba(0, 255, 0, 0.3);
    --gc-text: #008000;
    --font: Arial, -apple-system, BlinkMacSystemFont, sans-serif;
  }

  body {
    font-family: var(--font);
    margin: 20px;
    background: var(--bg);
  }

  h1 { text-align: center; }

  #stats {
    text-align: center;
    font-size: 13px;
    color: var(--axis);
  }

  .chart-container {
    width: 100%;
    max-width: __WIDTH__px;
    margin: 20px auto;
    padding: 20px;
    background: var(--surface);
    border: 1px solid var(--border);
    border-radius: 8px;
    box-shadow: 0 2px 4px rgba(0, 0, 0, 0.1);
  }

  .chart {
    width: 100%;
    height: __HEIGHT__px;
    border-left: 2px solid var(--axis);
    border-bottom: 2px solid var(--axis);
  }

  .chart-line { stroke: var(--line); stroke-width: 2; fill: none; }
  .gc-bar { fill: var(--gc-fill); }
  .gc-label { fill: var(--gc-text); font-size: 12px; text-anchor: middle; }
  .y-axis { font-size: 12px; fill: var(--axis); }
</style>
</head>
<body>
<h1>__TITLE__</h1>
<div id="stats">__STATS__</div>
<div class="chart-container">
<svg class="chart" viewBox="0 0 __WIDTH__ __HEIGHT__" xmlns="http://www.w3.org/2000/svg">
__Y_AXIS__
<path class="chart-line" d="__PATH__" />
__GC_BARS__
</svg>
</div>
<script type="application/json" id="meta">__META__</script>
</body>
</html>
"""
