"""Decides what the chart surface and legend show for the current session."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from metricscope.core.history import TimePoint
from metricscope.core.registry import SeriesRecord
from metricscope.scrape.parser import label_block

if TYPE_CHECKING:  # pragma: no cover - only for static analysis
    from .state import Session

LEGEND_BOX_WIDTH = 35
LEGEND_LABEL_MAX = 30
LEGEND_MARKER = "■"
ELLIPSIS = "..."

CHART_HORIZONTAL_CHROME = 6
LEGEND_RESERVED_WIDTH = LEGEND_BOX_WIDTH + 3
HEADER_FOOTER_HEIGHT = 9
ERROR_BANNER_HEIGHT = 2
MIN_CHART_WIDTH = 40
MIN_CHART_HEIGHT = 10
DEFAULT_CHART_WIDTH = 100
DEFAULT_CHART_HEIGHT = 20
SERIES_PICKER_CHROME = 12
MIN_SERIES_ROWS = 3


class ChartSurface(Protocol):
    """Drawing target for time series; implemented by the plotext chart widget."""

    def clear(self) -> None: ...

    def set_y_range(self, y_min: float, y_max: float) -> None: ...

    def push(self, name: str, points: Sequence[TimePoint], color: int) -> None: ...

    def draw(self) -> None: ...


@dataclass(frozen=True, slots=True)
class LegendLine:
    color: int
    label: str


@dataclass(frozen=True, slots=True)
class ChartLayout:
    chart_width: int
    chart_height: int


@dataclass(frozen=True, slots=True)
class SeriesRow:
    index: int
    record: SeriesRecord
    selected: bool


def _drawable(session: Session) -> list[SeriesRecord]:
    return [
        record
        for record in session.registry
        if record.visible and record.identity in session.history
    ]


def redraw(session: Session, surface: ChartSurface) -> list[str]:
    """Rebuild ``surface`` from scratch and return the identities that were pushed."""

    surface.clear()
    if session.range.locked:
        surface.set_y_range(*session.range.as_tuple())
    drawn: list[str] = []
    for record in _drawable(session):
        points = session.history.points(record.identity)
        if not points:
            continue
        surface.push(record.identity, points, record.color())
        drawn.append(record.identity)
    surface.draw()
    return drawn


def legend_label(identity: str, max_width: int = LEGEND_LABEL_MAX) -> str:
    label = label_block(identity)
    if len(label) > max_width:
        label = label[: max_width - len(ELLIPSIS)] + ELLIPSIS
    return label


def legend_lines(session: Session) -> list[LegendLine]:
    return [
        LegendLine(color=record.color(), label=legend_label(record.identity))
        for record in _drawable(session)
    ]


def compute_layout(
    term_width: int, term_height: int, *, show_legend: bool, has_error: bool
) -> ChartLayout:
    chrome = HEADER_FOOTER_HEIGHT + (ERROR_BANNER_HEIGHT if has_error else 0)
    width = term_width - CHART_HORIZONTAL_CHROME
    if show_legend:
        width -= LEGEND_RESERVED_WIDTH
    height = term_height - chrome
    return ChartLayout(
        chart_width=max(width, MIN_CHART_WIDTH),
        chart_height=max(height, MIN_CHART_HEIGHT),
    )


def series_picker_rows(term_height: int) -> int:
    return max(term_height - SERIES_PICKER_CHROME, MIN_SERIES_ROWS)


def series_window(session: Session, cursor: int, scroll: int) -> list[SeriesRow]:
    end = min(scroll + series_picker_rows(session.term_height), len(session.registry))
    return [
        SeriesRow(index=i, record=session.registry[i], selected=i == cursor)
        for i in range(scroll, end)
    ]


def format_axis_value(value: float) -> str:
    """Y-axis label: two decimals for small values, fewer as magnitude grows."""

    if value == 0:
        return "0.00"
    magnitude = abs(value)
    if not math.isfinite(magnitude) or magnitude < 100:
        return f"{value:.2f}"
    if magnitude < 1000:
        return f"{value:.1f}"
    return f"{value:.0f}"


__all__ = [
    "ChartLayout",
    "ChartSurface",
    "LegendLine",
    "SeriesRow",
    "compute_layout",
    "format_axis_value",
    "legend_label",
    "legend_lines",
    "redraw",
    "series_picker_rows",
    "series_window",
]
