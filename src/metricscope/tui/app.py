"""Textual application that runs the metric explorer event loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from functools import partial
from typing import Any

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Header, Input, Static

from metricscope.contracts.error import EndpointError, ScrapeError
from metricscope.scrape.client import ScrapeClient

from . import render
from .state import (
    Action,
    Effect,
    Event,
    FetchMetricNames,
    FetchSeries,
    KeyPress,
    MetricNamesResult,
    Mode,
    NormalMode,
    Quit,
    RebuildLegend,
    Redraw,
    ResetMetricFilter,
    Resize,
    ResizeChart,
    ScheduleTick,
    SelectingMetricMode,
    SelectingSeriesMode,
    SeriesResult,
    Session,
    ShowMetricChoices,
    Tick,
    handle,
    start,
)
from .widgets import ChartView, LegendPanel, MetricPicker, series_picker_text

logger = logging.getLogger(__name__)

_NORMAL_KEYS: dict[str, Action] = {
    "q": Action.QUIT,
    "m": Action.OPEN_METRIC_PICKER,
    "s": Action.OPEN_SERIES_PICKER,
    "l": Action.TOGGLE_LEGEND,
    "r": Action.RESET,
}
_SERIES_KEYS: dict[str, Action] = {
    "q": Action.CANCEL,
    "escape": Action.CANCEL,
    "enter": Action.CONFIRM,
    "space": Action.TOGGLE_ONE,
    "a": Action.TOGGLE_ALL,
    "up": Action.CURSOR_UP,
    "down": Action.CURSOR_DOWN,
}
# Printable keys belong to the filter input while the metric picker is open.
_METRIC_KEYS: dict[str, Action] = {
    "escape": Action.CANCEL,
    "enter": Action.CONFIRM,
}


def key_action(mode: Mode, key: str) -> Action | None:
    """Translate a key name into an abstract control for ``mode``."""

    if key == "ctrl+c":
        return Action.QUIT
    if isinstance(mode, SelectingSeriesMode):
        return _SERIES_KEYS.get(key)
    if isinstance(mode, SelectingMetricMode):
        return _METRIC_KEYS.get(key)
    return _NORMAL_KEYS.get(key)


def help_text(session: Session, *, legend_scrollable: bool = False) -> Text:
    if isinstance(session.mode, SelectingMetricMode):
        return Text("Enter: Select | Esc: Cancel | type to filter | ↑↓: Navigate")
    if isinstance(session.mode, SelectingSeriesMode):
        return Text("Space: Toggle | Enter: Accept | a: Toggle All | Esc/q: Cancel | ↑↓: Navigate")
    text = Text()
    entries = [("q", "Quit"), ("m", "Metrics"), ("s", "Series"), ("l", "Legend"), ("r", "Reset")]
    if session.show_legend and legend_scrollable:
        entries.append(("↑↓", "Scroll"))
    for key, label in entries:
        text.append(f" {key} ", style="bold white on grey23")
        text.append(f"{label} ", style="black on white")
        text.append(" ")
    return text


def title_text(session: Session) -> Text:
    text = Text(f"Metric: {session.current_metric}\n", style="bold color(202)")
    stamp = session.last_update.astimezone().strftime("%H:%M:%S") if session.last_update else "—"
    text.append(
        f"URL: {session.endpoint} | Interval: {session.poll_interval:g}s | Last update: {stamp}"
    )
    return text


def error_text(session: Session) -> str:
    if session.error is None:
        return ""
    return f"⚠  Error: {session.error}"


class MetricExplorerApp(App[None]):
    """Polls one metric and charts every series it exports."""

    TITLE = "metricscope"
    AUTO_FOCUS = None

    CSS = """
    Screen { layout: vertical; }
    #title { padding: 0 2; height: 2; }
    #error { padding: 0 2; color: #ef4444; height: auto; }
    #main { height: 1fr; padding: 0 2; }
    #chart { border: round #f97316; width: auto; height: auto; }
    #legend { border: round #f97316; width: 35; padding: 1; margin-left: 1; }
    .legend-title { color: #f97316; text-style: bold; }
    #metric-picker { height: 1fr; padding: 0 2; }
    .picker-title { color: #f97316; text-style: bold; }
    #series-picker { height: 1fr; padding: 0 2; }
    #help { dock: bottom; height: 1; background: white; color: black; }
    """

    def __init__(
        self,
        session: Session,
        client: ScrapeClient | Any,
    ) -> None:
        super().__init__()
        self.session = session
        self.client = client
        self._views_ready = False

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield Static("", id="title")
        yield Static("", id="error")
        with Horizontal(id="main"):
            yield ChartView(id="chart")
            yield LegendPanel(id="legend")
        yield MetricPicker(id="metric-picker")
        yield Static("", id="series-picker")
        yield Static("", id="help")

    async def on_mount(self) -> None:
        self._chart = self.query_one("#chart", ChartView)
        self._legend = self.query_one("#legend", LegendPanel)
        self._picker = self.query_one("#metric-picker", MetricPicker)
        self._series_picker = self.query_one("#series-picker", Static)
        self._main = self.query_one("#main", Horizontal)
        self._title = self.query_one("#title", Static)
        self._error = self.query_one("#error", Static)
        self._help = self.query_one("#help", Static)
        self._views_ready = True
        self.apply_event(Resize(self.size.width, self.size.height))
        self._chart.resize_canvas(self.session.chart_width, self.session.chart_height)
        self._run_effects(start(self.session).effects)
        self._sync_view()

    # ----------------------------------------------------------------
    # Event loop
    # ----------------------------------------------------------------
    def apply_event(self, event: Event) -> None:
        transition = handle(self.session, event)
        self.session = transition.session
        if not self._views_ready:
            # Widgets are not mounted yet; on_mount syncs the chart size.
            return
        self._run_effects(transition.effects)
        self._sync_view()

    def _run_effects(self, effects: list[Effect]) -> None:
        for effect in effects:
            runner = self._EFFECT_RUNNERS.get(type(effect))
            if runner is None:
                raise TypeError(f"Unsupported effect: {type(effect).__name__}")
            runner(self, effect)

    def _fetch_series(self, effect: FetchSeries) -> None:
        self.run_worker(self._scrape_series(effect.metric), group="scrape", exit_on_error=False)

    def _fetch_metric_names(self, effect: FetchMetricNames) -> None:
        del effect
        self._picker.show_loading()
        self.run_worker(self._scrape_metric_names(), group="discover", exit_on_error=False)

    def _schedule_tick(self, effect: ScheduleTick) -> None:
        self.set_timer(effect.delay, partial(self.apply_event, Tick(effect.generation)))

    def _redraw(self, effect: Redraw) -> None:
        del effect
        render.redraw(self.session, self._chart)

    def _rebuild_legend(self, effect: RebuildLegend) -> None:
        del effect
        self._legend.set_lines(render.legend_lines(self.session))

    def _resize_chart(self, effect: ResizeChart) -> None:
        self._chart.resize_canvas(effect.width, effect.height)

    def _show_metric_choices(self, effect: ShowMetricChoices) -> None:
        self._picker.set_items(effect.names)

    def _reset_metric_filter(self, effect: ResetMetricFilter) -> None:
        del effect
        self._picker.reset_filter()

    def _quit(self, effect: Quit) -> None:
        del effect
        self.exit()

    _EFFECT_RUNNERS: dict[type[Any], Callable[[MetricExplorerApp, Any], None]] = {
        FetchSeries: _fetch_series,
        FetchMetricNames: _fetch_metric_names,
        ScheduleTick: _schedule_tick,
        Redraw: _redraw,
        RebuildLegend: _rebuild_legend,
        ResizeChart: _resize_chart,
        ShowMetricChoices: _show_metric_choices,
        ResetMetricFilter: _reset_metric_filter,
        Quit: _quit,
    }

    async def _scrape_series(self, metric: str) -> None:
        try:
            samples = await asyncio.to_thread(self.client.fetch_series, metric)
        except ScrapeError as exc:
            logger.warning("Scrape of %s failed: %s", metric, exc)
            self.apply_event(SeriesResult(metric=metric, error=exc))
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure scraping %s", metric)
            error = EndpointError(f"failed to fetch metrics: {exc}")
            error.__cause__ = exc
            self.apply_event(SeriesResult(metric=metric, error=error))
            return
        self.apply_event(SeriesResult(metric=metric, samples=tuple(samples)))

    async def _scrape_metric_names(self) -> None:
        try:
            names = await asyncio.to_thread(self.client.discover_metric_names)
        except ScrapeError as exc:
            logger.warning("Metric discovery failed: %s", exc)
            self.apply_event(MetricNamesResult(error=exc))
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure discovering metrics")
            error = EndpointError(f"failed to fetch metrics: {exc}")
            error.__cause__ = exc
            self.apply_event(MetricNamesResult(error=error))
            return
        self.apply_event(MetricNamesResult(names=tuple(names)))

    # ----------------------------------------------------------------
    # Input
    # ----------------------------------------------------------------
    def on_key(self, event: events.Key) -> None:
        mode = self.session.mode
        if isinstance(mode, NormalMode) and self.session.show_legend and event.key in {"up", "down"}:
            if event.key == "up":
                self._legend.scroll_up()
            else:
                self._legend.scroll_down()
            event.stop()
            return
        if isinstance(mode, SelectingMetricMode) and event.key in {"up", "down"}:
            if event.key == "up":
                self._picker.cursor_up()
            else:
                self._picker.cursor_down()
            event.stop()
            return
        action = key_action(mode, event.key)
        if action is None:
            return
        event.stop()
        choice = None
        if isinstance(mode, SelectingMetricMode) and action is Action.CONFIRM:
            choice = self._picker.highlighted_item()
        self.apply_event(KeyPress(action, choice))

    def on_input_changed(self, event: Input.Changed) -> None:
        if isinstance(self.session.mode, SelectingMetricMode):
            self._picker.apply_filter(event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        if isinstance(self.session.mode, SelectingMetricMode):
            self.apply_event(KeyPress(Action.CONFIRM, self._picker.highlighted_item()))

    def on_resize(self, event: events.Resize) -> None:
        self.apply_event(Resize(event.size.width, event.size.height))

    # ----------------------------------------------------------------
    # View
    # ----------------------------------------------------------------
    def _sync_view(self) -> None:
        session = self.session
        mode = session.mode
        picking_metric = isinstance(mode, SelectingMetricMode)
        picking_series = isinstance(mode, SelectingSeriesMode)
        self._main.display = not (picking_metric or picking_series)
        self._legend.display = session.show_legend and len(session.registry) > 0
        self._picker.display = picking_metric
        self._series_picker.display = picking_series
        if picking_metric and not isinstance(self.focused, Input):
            self._picker.focus_filter()
        elif not picking_metric and isinstance(self.focused, Input):
            self.set_focus(None)
        if isinstance(mode, SelectingSeriesMode):
            rows = render.series_window(session, mode.cursor, mode.scroll)
            self._series_picker.update(series_picker_text(rows))
        self._title.update(title_text(session))
        self._error.update(error_text(session))
        self._error.display = session.error is not None and not picking_series
        self._help.update(help_text(session, legend_scrollable=self._legend.needs_scroll))


def run_app(session: Session, client: ScrapeClient) -> None:
    """Launch the explorer and block until the user quits."""

    MetricExplorerApp(session, client).run()


__all__ = ["MetricExplorerApp", "error_text", "help_text", "key_action", "run_app", "title_text"]
