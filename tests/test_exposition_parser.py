from __future__ import annotations

import math

import pytest
from hypothesis import given, strategies as st

from metricscope.scrape.parser import (
    ParsedSample,
    base_name,
    iter_parsed,
    label_block,
    parse_line,
)


@pytest.mark.parametrize(
    ("line", "name", "identity", "value"),
    [
        ("metric_total 123.45", "metric_total", "metric_total{}", 123.45),
        ('requests_total{code="200"} 12', "requests_total", 'requests_total{code="200"}', 12.0),
        ('name{l="v"} 12', "name", 'name{l="v"}', 12.0),
        ("name 5", "name", "name{}", 5.0),
        ('up{job="node"} 1 1627847261000', "up", 'up{job="node"}', 1627847261000.0),
        ("  padded_metric   3  ", "padded_metric", "padded_metric{}", 3.0),
        ("sci 1e-3", "sci", "sci{}", 0.001),
    ],
)
def test_parse_line_accepts_samples(line: str, name: str, identity: str, value: float) -> None:
    parsed = parse_line(line)
    assert parsed == ParsedSample(name=name, identity=identity, value=value)


def test_trailing_non_numeric_token_falls_back_to_previous() -> None:
    parsed = parse_line("metric_with_bad_suffix 7.89 not_a_number")
    assert parsed is not None
    assert parsed.value == pytest.approx(7.89)


def test_last_token_wins_when_numeric() -> None:
    # With a numeric timestamp present the last token is read as the value.
    parsed = parse_line("m 1 2")
    assert parsed is not None
    assert parsed.value == 2.0


@pytest.mark.parametrize(
    "line",
    [
        "",
        "   ",
        "# HELP metric_total Total things",
        "# TYPE metric_total counter",
        "   # indented comment 1",
        "not_a_metric_line",
        "name not_a_number",
        "name bad worse",
        "name 1_000",
    ],
)
def test_parse_line_rejects(line: str) -> None:
    assert parse_line(line) is None


def test_special_float_values_are_accepted() -> None:
    nan = parse_line("m NaN")
    inf = parse_line('m{le="+Inf"} +Inf')
    assert nan is not None and math.isnan(nan.value)
    assert inf is not None and inf.value == math.inf
    assert inf.identity == 'm{le="+Inf"}'


def test_base_name_and_label_block() -> None:
    assert base_name('http_requests{method="GET"}') == "http_requests"
    assert base_name("plain") == "plain"
    assert label_block('http_requests{method="GET"}') == '{method="GET"}'
    assert label_block("plain") == "{}"


def test_iter_parsed_skips_noise() -> None:
    lines = ["# comment", "a 1", "", "garbage", 'b{x="1"} 2']
    assert [p.identity for p in iter_parsed(lines)] == ["a{}", 'b{x="1"}']


@given(st.text())
def test_parse_line_is_total(line: str) -> None:
    result = parse_line(line)
    assert result is None or isinstance(result, ParsedSample)


_NAMES = st.from_regex(r"[a-zA-Z_:][a-zA-Z0-9_:]{0,20}", fullmatch=True)
_LABELS = st.from_regex(r'\{([a-z_]{1,8}="[a-z0-9]{0,8}")?\}', fullmatch=True)
_VALUES = st.floats(allow_nan=False, allow_infinity=False, width=64)


@given(name=_NAMES, labels=st.one_of(st.just(""), _LABELS), value=_VALUES)
def test_generated_lines_parse_back(name: str, labels: str, value: float) -> None:
    parsed = parse_line(f"{name}{labels} {value!r}")
    assert parsed is not None
    assert parsed.name == name
    assert parsed.identity == name + (labels or "{}")
    assert parsed.value == value
