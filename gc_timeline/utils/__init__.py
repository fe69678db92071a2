from gc_timeline.utils.gc_viz import EVENT_HEADERS, format_events, generate_gc_html, summarize
