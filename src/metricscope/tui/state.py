"""Interaction state machine for the metric explorer.

The :class:`Session` is an explicit value owned by the event loop. :func:`handle`
applies one event to it and returns the follow-up effects (fetches, timers,
redraws) for the caller to execute, so every transition can be exercised without
a terminal.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, TypeAlias

from metricscope.contracts.error import ScrapeError
from metricscope.core.history import DisplayRange, HistoryStore
from metricscope.core.registry import SeriesRegistry, belongs_to
from metricscope.scrape.parser import Sample

from .render import (
    DEFAULT_CHART_HEIGHT,
    DEFAULT_CHART_WIDTH,
    compute_layout,
    series_picker_rows,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Action(StrEnum):
    QUIT = "quit"
    OPEN_METRIC_PICKER = "open_metric_picker"
    OPEN_SERIES_PICKER = "open_series_picker"
    TOGGLE_LEGEND = "toggle_legend"
    RESET = "reset"
    CURSOR_UP = "cursor_up"
    CURSOR_DOWN = "cursor_down"
    TOGGLE_ONE = "toggle_one"
    TOGGLE_ALL = "toggle_all"
    CONFIRM = "confirm"
    CANCEL = "cancel"


# --------------------------------------------------------------------
# Modes
# --------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class NormalMode:
    pass


@dataclass(frozen=True, slots=True)
class SelectingMetricMode:
    choices: tuple[str, ...] = ()
    loading: bool = True


@dataclass(slots=True)
class SelectingSeriesMode:
    cursor: int = 0
    scroll: int = 0
    snapshot: dict[str, bool] = field(default_factory=dict)


Mode: TypeAlias = NormalMode | SelectingMetricMode | SelectingSeriesMode


# --------------------------------------------------------------------
# Events
# --------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Tick:
    generation: int


@dataclass(frozen=True, slots=True)
class SeriesResult:
    metric: str
    samples: tuple[Sample, ...] = ()
    error: ScrapeError | None = None
    received_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class MetricNamesResult:
    names: tuple[str, ...] = ()
    error: ScrapeError | None = None


@dataclass(frozen=True, slots=True)
class KeyPress:
    action: Action
    choice: str | None = None


@dataclass(frozen=True, slots=True)
class Resize:
    width: int
    height: int


Event: TypeAlias = Tick | SeriesResult | MetricNamesResult | KeyPress | Resize


# --------------------------------------------------------------------
# Effects
# --------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class FetchSeries:
    metric: str


@dataclass(frozen=True, slots=True)
class FetchMetricNames:
    pass


@dataclass(frozen=True, slots=True)
class ScheduleTick:
    generation: int
    delay: float


@dataclass(frozen=True, slots=True)
class Redraw:
    pass


@dataclass(frozen=True, slots=True)
class RebuildLegend:
    pass


@dataclass(frozen=True, slots=True)
class ResizeChart:
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class ShowMetricChoices:
    names: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ResetMetricFilter:
    pass


@dataclass(frozen=True, slots=True)
class Quit:
    pass


Effect: TypeAlias = (
    FetchSeries
    | FetchMetricNames
    | ScheduleTick
    | Redraw
    | RebuildLegend
    | ResizeChart
    | ShowMetricChoices
    | ResetMetricFilter
    | Quit
)


# --------------------------------------------------------------------
# Session
# --------------------------------------------------------------------
@dataclass
class Session:
    endpoint: str
    current_metric: str
    poll_interval: float = 2.0
    history_limit: int | None = None
    revert_series_on_cancel: bool = True
    show_legend: bool = False
    registry: SeriesRegistry = field(default_factory=SeriesRegistry)
    history: HistoryStore = field(init=False)
    mode: Mode = field(default_factory=NormalMode)
    error: ScrapeError | None = None
    last_update: datetime | None = None
    term_width: int = 0
    term_height: int = 0
    chart_width: int = DEFAULT_CHART_WIDTH
    chart_height: int = DEFAULT_CHART_HEIGHT
    tick_generation: int = 0

    def __post_init__(self) -> None:
        self.history = HistoryStore(max_points=self.history_limit)

    @property
    def range(self) -> DisplayRange:
        return self.history.range

    def switch_metric(self, metric: str) -> None:
        """Start a fresh metric session; registry, history and range are discarded."""

        self.current_metric = metric
        self.registry = SeriesRegistry()
        self.history = HistoryStore(max_points=self.history_limit)
        self.error = None
        self.last_update = None
        self.mode = NormalMode()


@dataclass(slots=True)
class Transition:
    session: Session
    effects: list[Effect] = field(default_factory=list)


def start(session: Session) -> Transition:
    """Effects that kick off the first scrape and the tick cycle."""

    return Transition(session, _scrape_cycle(session))


def _scrape_cycle(session: Session) -> list[Effect]:
    return [
        FetchSeries(session.current_metric),
        ScheduleTick(session.tick_generation, session.poll_interval),
    ]


def _relayout(session: Session) -> list[Effect]:
    if not session.term_width or not session.term_height:
        return []
    layout = compute_layout(
        session.term_width,
        session.term_height,
        show_legend=session.show_legend,
        has_error=session.error is not None,
    )
    if (layout.chart_width, layout.chart_height) == (session.chart_width, session.chart_height):
        return []
    session.chart_width = layout.chart_width
    session.chart_height = layout.chart_height
    return [ResizeChart(layout.chart_width, layout.chart_height)]


# --------------------------------------------------------------------
# Global events
# --------------------------------------------------------------------
def _on_tick(session: Session, event: Tick) -> list[Effect]:
    if event.generation != session.tick_generation:
        # A tick chain from before the last metric switch; let it die out.
        return []
    return _scrape_cycle(session)


def _on_series_result(session: Session, event: SeriesResult) -> list[Effect]:
    if event.metric != session.current_metric:
        logger.debug("Dropping result for %s (now showing %s)", event.metric, session.current_metric)
        return []
    if event.error is not None:
        session.error = event.error
        return _relayout(session)

    samples = event.samples
    if not samples:
        return []
    if not belongs_to(samples, session.current_metric):
        logger.debug("Dropping batch of %d stale samples", len(samples))
        return []

    had_error = session.error is not None
    session.error = None
    session.last_update = event.received_at
    created = session.registry.reconcile(samples)
    if not session.range.locked:
        session.history.compute_initial_range(samples)
    session.history.ingest(samples, event.received_at)

    effects: list[Effect] = _relayout(session) if had_error else []
    if isinstance(session.mode, SelectingSeriesMode):
        return effects
    effects.append(Redraw())
    if created and session.show_legend:
        effects.append(RebuildLegend())
    return effects


def _on_metric_names(session: Session, event: MetricNamesResult) -> list[Effect]:
    if not isinstance(session.mode, SelectingMetricMode):
        return []
    if event.error is not None:
        session.error = event.error
        session.mode = NormalMode()
        return [ResetMetricFilter(), *_relayout(session)]
    session.mode = SelectingMetricMode(choices=tuple(event.names), loading=False)
    return [ShowMetricChoices(tuple(event.names))]


def _on_resize(session: Session, event: Resize) -> list[Effect]:
    session.term_width = event.width
    session.term_height = event.height
    return _relayout(session)


# --------------------------------------------------------------------
# Mode-specific key handling
# --------------------------------------------------------------------
def _normal_keys(session: Session, mode: NormalMode, event: KeyPress) -> list[Effect]:
    del mode
    action = event.action
    if action is Action.OPEN_METRIC_PICKER:
        session.mode = SelectingMetricMode()
        return [FetchMetricNames()]
    if action is Action.OPEN_SERIES_PICKER:
        if session.history.is_empty():
            return []
        session.mode = SelectingSeriesMode(snapshot=session.registry.snapshot_visibility())
        return []
    if action is Action.TOGGLE_LEGEND:
        session.show_legend = not session.show_legend
        return [RebuildLegend(), *_relayout(session)]
    if action is Action.RESET:
        session.history.reset()
        return [Redraw(), RebuildLegend()]
    return []


def _metric_picker_keys(
    session: Session, mode: SelectingMetricMode, event: KeyPress
) -> list[Effect]:
    del mode
    if event.action is Action.CANCEL:
        session.mode = NormalMode()
        return [ResetMetricFilter()]
    if event.action is not Action.CONFIRM:
        return []
    if not event.choice:
        session.mode = NormalMode()
        return [ResetMetricFilter()]

    logger.info("Switching metric %s -> %s", session.current_metric, event.choice)
    session.switch_metric(event.choice)
    session.tick_generation += 1
    return [
        ResetMetricFilter(),
        *_relayout(session),
        Redraw(),
        RebuildLegend(),
        *_scrape_cycle(session),
    ]


def _series_picker_keys(
    session: Session, mode: SelectingSeriesMode, event: KeyPress
) -> list[Effect]:
    registry = session.registry
    action = event.action
    if action is Action.CURSOR_UP:
        if mode.cursor > 0:
            mode.cursor -= 1
            mode.scroll = min(mode.scroll, mode.cursor)
        return []
    if action is Action.CURSOR_DOWN:
        if mode.cursor < len(registry) - 1:
            mode.cursor += 1
            rows = series_picker_rows(session.term_height)
            if mode.cursor >= mode.scroll + rows:
                mode.scroll = mode.cursor - rows + 1
        return []
    if action is Action.TOGGLE_ONE:
        if 0 <= mode.cursor < len(registry):
            registry.toggle(registry[mode.cursor].identity)
        return []
    if action is Action.TOGGLE_ALL:
        registry.toggle_all()
        return []
    if action is Action.CONFIRM:
        session.mode = NormalMode()
        return [Redraw(), RebuildLegend()]
    if action is Action.CANCEL:
        if session.revert_series_on_cancel:
            registry.restore_visibility(mode.snapshot)
        session.mode = NormalMode()
        # Redraws were held back while the picker was open.
        return [Redraw(), RebuildLegend()]
    return []


_KEY_HANDLERS: dict[type[Any], Callable[[Session, Any, KeyPress], list[Effect]]] = {
    NormalMode: _normal_keys,
    SelectingMetricMode: _metric_picker_keys,
    SelectingSeriesMode: _series_picker_keys,
}


def _on_key(session: Session, event: KeyPress) -> list[Effect]:
    if event.action is Action.QUIT:
        return [Quit()]
    handler = _KEY_HANDLERS[type(session.mode)]
    return handler(session, session.mode, event)


_EVENT_HANDLERS: dict[type[Any], Callable[[Session, Any], list[Effect]]] = {
    Tick: _on_tick,
    SeriesResult: _on_series_result,
    MetricNamesResult: _on_metric_names,
    KeyPress: _on_key,
    Resize: _on_resize,
}


def handle(session: Session, event: Event) -> Transition:
    """Apply ``event`` to ``session`` and return the resulting effects."""

    handler = _EVENT_HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unsupported event: {type(event).__name__}")
    return Transition(session, handler(session, event))


__all__ = [
    "Action",
    "Effect",
    "Event",
    "FetchMetricNames",
    "FetchSeries",
    "KeyPress",
    "MetricNamesResult",
    "Mode",
    "NormalMode",
    "Quit",
    "RebuildLegend",
    "Redraw",
    "ResetMetricFilter",
    "Resize",
    "ResizeChart",
    "ScheduleTick",
    "SelectingMetricMode",
    "SelectingSeriesMode",
    "SeriesResult",
    "Session",
    "ShowMetricChoices",
    "Tick",
    "Transition",
    "handle",
    "start",
]
