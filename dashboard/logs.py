"""Dashboard rendering of session log records."""

from dash import html

_LEVEL_COLORS = {
    "ERROR": "#ef4444",
    "CRITICAL": "#ef4444",
    "WARNING": "#f97316",
    "INFO": "#22c55e",
}


def format_session_logs(entries):
    """Newest-last log lines as colored html rows."""
    formatted = []
    for entry in entries or []:
        level = str(entry.get("level", "")).upper()
        color = _LEVEL_COLORS.get(level, "#94a3b8")
        formatted.append(
            html.Div(
                [
                    html.Span(f"[{entry.get('timestamp', '')}] ", style={"color": "#94a3b8"}),
                    html.Span(f"{level}: ", style={"color": color, "fontWeight": "600"}),
                    html.Span(entry.get("message", ""), style={"color": "#e2e8f0"}),
                ]
            )
        )
    return formatted


def log_file_label(path):
    return f"File: {path}" if path else "File: -"
