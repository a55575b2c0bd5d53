"""Plot/theme helpers for dashboard figures."""

import numpy as np
import plotly.graph_objects as go

from dashboard.ui_state import chart_placeholder_text
from runtime.parsing import is_finite_number
from telemetry.window import TIME_KEY, color_for_field
from time_utils import epoch_ms_to_ts


DEFAULT_PLOT_THEME = {
    "font_family": "DM Sans, Segoe UI, Helvetica Neue, Arial, sans-serif",
    "paper_bg": "#ffffff",
    "plot_bg": "#ffffff",
    "grid": "#e4e4e7",
    "axis": "#27272a",
    "text": "#18181b",
    "muted": "#71717a",
}


def apply_figure_theme(fig, plot_theme, *, height, margin, uirevision, showlegend=True, legend_y=1.08):
    fig.update_layout(
        height=height,
        margin=margin,
        showlegend=showlegend,
        legend=dict(
            orientation="h",
            yanchor="bottom",
            y=legend_y,
            xanchor="center",
            x=0.5,
            bgcolor="rgba(255, 255, 255, 0.7)",
            bordercolor=plot_theme["grid"],
            borderwidth=1,
            font=dict(color=plot_theme["axis"], family=plot_theme["font_family"], size=11),
        ),
        plot_bgcolor=plot_theme["plot_bg"],
        paper_bgcolor=plot_theme["paper_bg"],
        font=dict(color=plot_theme["text"], family=plot_theme["font_family"], size=12),
        uirevision=uirevision,
    )
    axis_style = dict(
        gridcolor=plot_theme["grid"],
        linecolor=plot_theme["grid"],
        zerolinecolor=plot_theme["grid"],
        tickfont=dict(color=plot_theme["muted"], family=plot_theme["font_family"]),
        title_font=dict(color=plot_theme["axis"], family=plot_theme["font_family"]),
    )
    fig.update_xaxes(**axis_style)
    fig.update_yaxes(**axis_style)


def numeric_values(values):
    """Float array with NaN in place of anything that is not a finite number."""
    return np.array([value if is_finite_number(value) else np.nan for value in values], dtype=float)


def _empty_figure(message, plot_theme, uirevision):
    fig = go.Figure()
    fig.add_annotation(text=message, xref="paper", yref="paper", x=0.5, y=0.5, showarrow=False)
    apply_figure_theme(fig, plot_theme, height=360, margin=dict(l=50, r=20, t=40, b=30), uirevision=uirevision)
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    return fig


def create_telemetry_figure(
    window,
    *,
    selected_keys,
    numeric_keys,
    y_range,
    x_domain,
    tz,
    plot_theme=DEFAULT_PLOT_THEME,
    uirevision_key="telemetry",
):
    """
    One line per selected field over the windowed telemetry.

    `x_domain` is the committed zoom domain in epoch ms (None shows the whole
    window). `y_range` None leaves the value axis on autorange.
    """
    instants = [] if window is None or window.empty else window[TIME_KEY].tolist()
    placeholder = chart_placeholder_text(instants, numeric_keys)
    if placeholder is not None:
        return _empty_figure(placeholder, plot_theme, uirevision_key)

    x_values = [epoch_ms_to_ts(ms, tz) for ms in instants]
    fig = go.Figure()
    for key in selected_keys or []:
        if key not in window.columns:
            continue
        fig.add_trace(
            go.Scatter(
                x=x_values,
                y=numeric_values(window[key].tolist()),
                mode="lines",
                name=key,
                connectgaps=False,
                line=dict(color=color_for_field(key, numeric_keys), width=2),
            )
        )

    apply_figure_theme(
        fig,
        plot_theme,
        height=360,
        margin=dict(l=50, r=20, t=50, b=30),
        uirevision=uirevision_key,
    )
    fig.update_layout(dragmode="zoom")
    fig.update_xaxes(title_text="Time")
    if x_domain is not None:
        fig.update_xaxes(range=[epoch_ms_to_ts(x_domain[0], tz), epoch_ms_to_ts(x_domain[1], tz)], autorange=False)
    else:
        fig.update_xaxes(autorange=True)
    if y_range is not None:
        fig.update_yaxes(range=list(y_range), autorange=False)
    else:
        fig.update_yaxes(autorange=True)
    return fig


def slider_marks(instants, tz, max_marks=6):
    """A handful of evenly spaced time labels for the index slider."""
    count = len(instants or [])
    if count == 0:
        return {}
    positions = np.unique(np.linspace(0, count - 1, num=min(int(max_marks), count)).round().astype(int))
    return {int(idx): epoch_ms_to_ts(instants[idx], tz).strftime("%H:%M") for idx in positions}


def slider_value_for_domain(instants, x_domain):
    """Index pair covering `x_domain` on the slider; full range when unzoomed."""
    count = len(instants or [])
    if count == 0:
        return [0, 0]
    if x_domain is None:
        return [0, count - 1]
    values = np.asarray(instants, dtype=float)
    start = int(np.searchsorted(values, x_domain[0], side="left"))
    end = int(np.searchsorted(values, x_domain[1], side="right")) - 1
    start = min(max(start, 0), count - 1)
    end = min(max(end, start), count - 1)
    return [start, end]
