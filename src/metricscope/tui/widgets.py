"""Textual widgets backing the chart, legend and picker panels."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import datetime

import plotext as plt
from rich.style import Style
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical, VerticalScroll
from textual.widgets import Input, OptionList, Static
from textual.widgets.option_list import Option

from metricscope.core.history import TimePoint

from .render import (
    DEFAULT_CHART_HEIGHT,
    DEFAULT_CHART_WIDTH,
    LEGEND_MARKER,
    LegendLine,
    SeriesRow,
    format_axis_value,
)

Y_TICKS = 5
X_TICKS = 4


def _tick_positions(low: float, high: float, count: int) -> list[float]:
    if count < 2 or high <= low:
        return [low]
    step = (high - low) / (count - 1)
    return [low + step * i for i in range(count)]


def _clock_label(epoch: float) -> str:
    return datetime.fromtimestamp(epoch).strftime("%H:%M:%S")


class PlotextCanvas:
    """Collects datasets and renders them to an ANSI string with plotext."""

    def __init__(self, width: int = DEFAULT_CHART_WIDTH, height: int = DEFAULT_CHART_HEIGHT):
        self.width = width
        self.height = height
        self.y_range: tuple[float, float] | None = None
        self._datasets: dict[str, tuple[list[float], list[float], int]] = {}

    @property
    def datasets(self) -> dict[str, tuple[list[float], list[float], int]]:
        return dict(self._datasets)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    def clear(self) -> None:
        self._datasets.clear()
        self.y_range = None

    def set_y_range(self, y_min: float, y_max: float) -> None:
        self.y_range = (y_min, y_max)

    def push(self, name: str, points: Sequence[TimePoint], color: int) -> None:
        xs: list[float] = []
        ys: list[float] = []
        for point in points:
            if not math.isfinite(point.value):
                continue
            xs.append(point.timestamp.timestamp())
            ys.append(point.value)
        if xs:
            self._datasets[name] = (xs, ys, color)

    def build(self) -> str:
        if not self._datasets:
            return "Waiting for data…"
        plt.clf()
        plt.theme("clear")
        plt.plotsize(self.width, self.height)
        x_low = min(min(xs) for xs, _, _ in self._datasets.values())
        x_high = max(max(xs) for xs, _, _ in self._datasets.values())
        for xs, ys, color in self._datasets.values():
            plt.plot(xs, ys, color=color, marker="braille")
        if self.y_range is not None:
            y_low, y_high = self.y_range
            plt.ylim(y_low, y_high)
            ticks = _tick_positions(y_low, y_high, Y_TICKS)
            plt.yticks(ticks, [format_axis_value(tick) for tick in ticks])
        x_ticks = _tick_positions(x_low, x_high, X_TICKS)
        plt.xticks(x_ticks, [_clock_label(tick) for tick in x_ticks])
        return plt.build()


class ChartView(Static):
    """Static widget that shows the plotext canvas; satisfies the chart surface protocol."""

    def __init__(self, **kwargs: object) -> None:
        super().__init__("Waiting for data…", **kwargs)  # type: ignore[arg-type]
        self.canvas = PlotextCanvas()

    def resize_canvas(self, width: int, height: int) -> None:
        self.canvas.resize(width, height)
        self.styles.width = width
        self.styles.height = height
        self.draw()

    def clear(self) -> None:
        self.canvas.clear()

    def set_y_range(self, y_min: float, y_max: float) -> None:
        self.canvas.set_y_range(y_min, y_max)

    def push(self, name: str, points: Sequence[TimePoint], color: int) -> None:
        self.canvas.push(name, points, color)

    def draw(self) -> None:
        self.update(Text.from_ansi(self.canvas.build()))


def legend_text(lines: Iterable[LegendLine]) -> Text:
    text = Text()
    for line in lines:
        text.append(LEGEND_MARKER, style=Style(color=f"color({line.color})"))
        text.append(f" {line.label}\n")
    return text


class LegendPanel(VerticalScroll):
    """Scrollable legend listing visible series with their colors."""

    def compose(self) -> ComposeResult:
        yield Static("Legend", classes="legend-title")
        yield Static("", id="legend-body")

    def set_lines(self, lines: Sequence[LegendLine]) -> None:
        self.query_one("#legend-body", Static).update(legend_text(lines))

    @property
    def needs_scroll(self) -> bool:
        return self.max_scroll_y > 0


class MetricPicker(Vertical):
    """Substring-filterable list of metric names."""

    def __init__(self, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self._items: list[str] = []

    def compose(self) -> ComposeResult:
        yield Static("Select a metric:", classes="picker-title")
        yield Input(placeholder="type to filter", id="metric-filter")
        yield OptionList(id="metric-options")

    @property
    def _options(self) -> OptionList:
        return self.query_one("#metric-options", OptionList)

    @property
    def _filter(self) -> Input:
        return self.query_one("#metric-filter", Input)

    def show_loading(self) -> None:
        self._items = []
        options = self._options
        options.clear_options()
        options.add_option(Option("Loading metrics…", disabled=True))

    def set_items(self, items: Sequence[str]) -> None:
        self._items = list(items)
        self.apply_filter(self._filter.value)

    def apply_filter(self, text: str) -> None:
        needle = text.strip().lower()
        matches = [item for item in self._items if needle in item.lower()]
        options = self._options
        options.clear_options()
        options.add_options([Option(f"{i + 1}. {item}", id=item) for i, item in enumerate(matches)])
        if matches:
            options.highlighted = 0

    def highlighted_item(self) -> str | None:
        options = self._options
        index = options.highlighted
        if index is None or index >= options.option_count:
            return None
        option = options.get_option_at_index(index)
        return option.id if not option.disabled else None

    def cursor_up(self) -> None:
        self._options.action_cursor_up()

    def cursor_down(self) -> None:
        self._options.action_cursor_down()

    def reset_filter(self) -> None:
        self._filter.value = ""
        self._items = []
        self._options.clear_options()

    def focus_filter(self) -> None:
        self._filter.focus()


def series_picker_text(rows: Sequence[SeriesRow]) -> Text:
    text = Text("Select Series to Display:\n\n", style="bold color(202)")
    for row in rows:
        pointer = ">" if row.selected else " "
        check = "✓" if row.record.visible else " "
        line = f"  {pointer} [{check}] {row.record.identity}\n"
        text.append(line, style="color(202)" if row.selected else "")
    return text


__all__ = [
    "ChartView",
    "LegendPanel",
    "MetricPicker",
    "PlotextCanvas",
    "legend_text",
    "series_picker_text",
]
