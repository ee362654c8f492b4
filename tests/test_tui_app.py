from __future__ import annotations

import asyncio
import http.client
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from metricscope.contracts.error import EndpointError
from metricscope.core.history import TimePoint
from metricscope.scrape.parser import Sample
from metricscope.tui.app import MetricExplorerApp, error_text, help_text, key_action, title_text
from metricscope.tui.render import LegendLine, SeriesRow
from metricscope.tui.state import (
    Action,
    NormalMode,
    SelectingMetricMode,
    SelectingSeriesMode,
    Session,
)
from metricscope.tui.widgets import PlotextCanvas, legend_text, series_picker_text

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClient:
    def __init__(self) -> None:
        self.series_calls: list[str] = []
        self.discover_calls = 0
        self.names = ["cpu", "mem"]

    def fetch_series(self, metric: str) -> list[Sample]:
        self.series_calls.append(metric)
        return [
            Sample(identity=f'{metric}{{core="0"}}', value=1.0),
            Sample(identity=f'{metric}{{core="1"}}', value=2.0),
        ]

    def discover_metric_names(self) -> list[str]:
        self.discover_calls += 1
        return list(self.names)


def _session(**kwargs: Any) -> Session:
    return Session(
        endpoint="http://127.0.0.1:9100/metrics", current_metric="cpu", poll_interval=60.0, **kwargs
    )


@pytest.mark.parametrize(
    ("mode", "key", "expected"),
    [
        (NormalMode(), "q", Action.QUIT),
        (NormalMode(), "m", Action.OPEN_METRIC_PICKER),
        (NormalMode(), "x", None),
        (SelectingSeriesMode(), "q", Action.CANCEL),
        (SelectingSeriesMode(), "space", Action.TOGGLE_ONE),
        (SelectingMetricMode(), "q", None),
        (SelectingMetricMode(), "enter", Action.CONFIRM),
        (SelectingMetricMode(), "ctrl+c", Action.QUIT),
    ],
)
def test_key_action(mode: Any, key: str, expected: Action | None) -> None:
    assert key_action(mode, key) == expected


def test_help_text_depends_on_mode() -> None:
    session = _session(show_legend=True)
    assert "Scroll" not in help_text(session).plain
    assert "Scroll" in help_text(session, legend_scrollable=True).plain
    session.mode = SelectingSeriesMode()
    assert "Toggle All" in help_text(session).plain
    session.mode = SelectingMetricMode()
    assert "filter" in help_text(session).plain


def test_title_and_error_text() -> None:
    session = _session()
    assert "Metric: cpu" in title_text(session).plain
    assert error_text(session) == ""
    session.error = EndpointError("unexpected status code: 500", status=500)
    assert "unexpected status code: 500" in error_text(session)


def test_plotext_canvas_build() -> None:
    canvas = PlotextCanvas(60, 15)
    assert canvas.build() == "Waiting for data…"
    points = [TimePoint(T0 + timedelta(seconds=i), float(i)) for i in range(5)]
    points.append(TimePoint(T0 + timedelta(seconds=5), float("nan")))
    canvas.set_y_range(-1.0, 5.0)
    canvas.push("cpu{}", points, 202)
    xs, ys, color = canvas.datasets["cpu{}"]
    assert len(xs) == len(ys) == 5
    assert color == 202
    assert canvas.build()
    canvas.clear()
    assert canvas.datasets == {}
    assert canvas.y_range is None


def test_legend_and_series_picker_text() -> None:
    assert legend_text([LegendLine(202, '{core="0"}')]).plain == '■ {core="0"}\n'
    session = _session()
    session.registry.reconcile([Sample("cpu{}", 1.0)])
    session.registry.set_visible("cpu{}", False)
    text = series_picker_text([SeriesRow(0, session.registry[0], True)]).plain
    assert "> [ ] cpu{}" in text


@pytest.mark.tui
def test_app_scrapes_and_switches_metric() -> None:
    client = FakeClient()
    app = MetricExplorerApp(_session(), client)

    async def runner() -> None:
        async with app.run_test(size=(120, 40)) as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert client.series_calls == ["cpu"]
            assert len(app.session.registry) == 2
            assert app.session.range.locked

            await pilot.press("s")
            assert isinstance(app.session.mode, SelectingSeriesMode)
            await pilot.press("space")
            await pilot.press("enter")
            assert isinstance(app.session.mode, NormalMode)
            assert [r.visible for r in app.session.registry] == [False, True]

            await pilot.press("m")
            assert isinstance(app.session.mode, SelectingMetricMode)
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert client.discover_calls == 1
            await pilot.press("m", "e")
            await pilot.pause()
            await pilot.press("enter")
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert app.session.current_metric == "mem"
            assert client.series_calls[-1] == "mem"
            assert [r.identity for r in app.session.registry][0].startswith("mem")

            await pilot.press("q")

    asyncio.run(runner())


class BrokenClient:
    def fetch_series(self, metric: str) -> list[Sample]:
        raise http.client.BadStatusLine("garbage not http")

    def discover_metric_names(self) -> list[str]:
        raise http.client.BadStatusLine("garbage not http")


@pytest.mark.tui
def test_unexpected_client_failures_reach_the_error_banner() -> None:
    app = MetricExplorerApp(_session(), BrokenClient())

    async def runner() -> None:
        async with app.run_test(size=(120, 40)) as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert isinstance(app.session.error, EndpointError)
            assert "garbage not http" in error_text(app.session)

            app.session.error = None
            await pilot.press("m")
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert isinstance(app.session.mode, NormalMode)
            assert isinstance(app.session.error, EndpointError)

            await pilot.press("q")

    asyncio.run(runner())
