from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

import pytest

from metricscope.core.history import TimePoint
from metricscope.core.registry import SERIES_PALETTE
from metricscope.scrape.parser import Sample
from metricscope.tui.render import (
    compute_layout,
    format_axis_value,
    legend_label,
    legend_lines,
    redraw,
    series_picker_rows,
    series_window,
)
from metricscope.tui.state import SeriesResult, Session, handle

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingSurface:
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def clear(self) -> None:
        self.calls.append(("clear", None))

    def set_y_range(self, y_min: float, y_max: float) -> None:
        self.calls.append(("range", (y_min, y_max)))

    def push(self, name: str, points: Sequence[TimePoint], color: int) -> None:
        self.calls.append(("push", (name, len(points), color)))

    def draw(self) -> None:
        self.calls.append(("draw", None))


def _session_with(*identities: str) -> Session:
    session = Session(endpoint="http://localhost:9100/metrics", current_metric="cpu")
    samples = tuple(Sample(identity=identity, value=float(i + 1)) for i, identity in enumerate(identities))
    handle(session, SeriesResult("cpu", samples, received_at=T0))
    return session


def test_redraw_pushes_visible_series_with_stable_colors() -> None:
    session = _session_with('cpu{core="0"}', 'cpu{core="1"}')
    session.registry.set_visible('cpu{core="0"}', False)
    surface = RecordingSurface()

    drawn = redraw(session, surface)

    assert drawn == ['cpu{core="1"}']
    assert surface.calls[0] == ("clear", None)
    assert surface.calls[1][0] == "range"
    assert ("push", ('cpu{core="1"}', 1, SERIES_PALETTE[1])) in surface.calls
    assert surface.calls[-1] == ("draw", None)


def test_redraw_without_locked_range_skips_set_range() -> None:
    session = Session(endpoint="http://localhost:9100/metrics", current_metric="cpu")
    surface = RecordingSurface()
    assert redraw(session, surface) == []
    assert [name for name, _ in surface.calls] == ["clear", "draw"]


def test_redraw_after_reset_draws_nothing() -> None:
    session = _session_with("cpu{}")
    session.history.reset()
    surface = RecordingSurface()
    assert redraw(session, surface) == []


def test_legend_lines_follow_visibility() -> None:
    session = _session_with('cpu{core="0"}', 'cpu{core="1"}')
    session.registry.set_visible('cpu{core="1"}', False)
    lines = legend_lines(session)
    assert [line.label for line in lines] == ['{core="0"}']
    assert lines[0].color == SERIES_PALETTE[0]


def test_legend_label_truncates_long_label_blocks() -> None:
    identity = 'http_requests{method="GET",path="/api/v1/things"}'
    label = legend_label(identity)
    assert len(label) == 30
    assert label.endswith("...")
    assert label.startswith('{method="GET"')
    assert legend_label("plain{}") == "{}"


def test_compute_layout() -> None:
    assert compute_layout(120, 40, show_legend=False, has_error=False).chart_width == 114
    plain = compute_layout(120, 40, show_legend=True, has_error=True)
    assert (plain.chart_width, plain.chart_height) == (76, 29)
    tiny = compute_layout(20, 5, show_legend=True, has_error=True)
    assert (tiny.chart_width, tiny.chart_height) == (40, 10)


def test_series_window_follows_scroll() -> None:
    session = _session_with(*(f'cpu{{core="{i}"}}' for i in range(8)))
    session.term_height = 16
    assert series_picker_rows(16) == 4
    rows = series_window(session, cursor=5, scroll=3)
    assert [row.index for row in rows] == [3, 4, 5, 6]
    assert [row.selected for row in rows] == [False, False, True, False]
    assert series_picker_rows(0) == 3


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0.0, "0.00"),
        (0.456, "0.46"),
        (42.1234, "42.12"),
        (512.5, "512.5"),
        (5120.0, "5120"),
        (-0.3, "-0.30"),
        (-123.45, "-123.5"),
    ],
)
def test_format_axis_value(value: float, expected: str) -> None:
    assert format_axis_value(value) == expected
