import logging
from pathlib import Path
from typing import Literal

from jsonargparse import CLI
from rich import print
from tabulate import tabulate

from gc_timeline import init_logging
from gc_timeline.trace import analyze, decode, VizConfig
from gc_timeline.utils import EVENT_HEADERS, format_events, generate_gc_html, summarize

logger = logging.getLogger("gc_timeline.scripts.gc_trace_to_html")


def main(
    trace: Path,
    output: Path,
    layout: Literal["absolute", "relative"] = "absolute",
    max_points: int = 1000,
    width: int = 1200,
    height: int = 600,
    num_ticks: int = 10,
    title: str = "Trace Events Timeline",
    summary: bool = True,
    dump: bool = False,
):
    """Render a binary GC trace as an HTML memory timeline with GC phase bands

    Args:
        trace: Path to the binary trace written by the runtime (e.g. gc_events.bin)
        output: Path of the HTML file to write
        layout: Record layout of the trace, absolute (24 byte records) or relative (12 byte records after a base address header)
        max_points: Upper bound on the number of points drawn for the memory line
        width: Width of the plotting box in SVG units
        height: Height of the plotting box in SVG units
        num_ticks: Number of intervals on the y axis
        title: Page title
        summary: Whether to print a summary table of the replay
        dump: Whether to print every decoded event (type, address, size) before rendering
    """
    init_logging(logging.INFO)
    assert trace.is_file(), f"trace {trace} should be a file"

    config = VizConfig(
        max_points=max_points, width=width, height=height, num_ticks=num_ticks, title=title
    )
    buffer = trace.read_bytes()
    if dump:
        print(tabulate(format_events(decode(buffer, layout)), headers=EVENT_HEADERS))

    replay, sampled = analyze(buffer, layout, config)

    output.write_text(generate_gc_html(replay, sampled, title=config.title))
    logger.info(f"💾 Timeline 📄 saved to: {output}")

    if summary:
        print(f"[bold]{config.title}[/bold]")
        print(tabulate(summarize(replay), headers=["metric", "value"]))


if __name__ == "__main__":
    """Sample usage:
    python scripts/gc_trace_to_html.py gc_events.bin output.html
    python scripts/gc_trace_to_html.py gc_events_2.bin output_2.html --layout relative
    python scripts/gc_trace_to_html.py gc_events.bin output.html --dump true --num_ticks 5
    """
    CLI(main)
