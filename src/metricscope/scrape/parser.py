"""Line parser for the text exposition format served by metrics endpoints.

Each accepted line has the shape ``<name>[{<labels>}] <value> [<timestamp>]``.
The parser never raises: malformed lines, comments and blank lines all yield
``None`` and are skipped by callers.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

COMMENT_MARKER = "#"
LABEL_OPEN = "{"
EMPTY_LABELS = "{}"


@dataclass(frozen=True, slots=True)
class Sample:
    """One value for one series, produced fresh on every scrape."""

    identity: str
    value: float

    @property
    def name(self) -> str:
        return base_name(self.identity)


@dataclass(frozen=True, slots=True)
class ParsedSample:
    name: str
    identity: str
    value: float

    def to_sample(self) -> Sample:
        return Sample(identity=self.identity, value=self.value)


def base_name(token: str) -> str:
    """Return the metric name portion of ``token`` (everything before ``{``)."""

    name, _, _ = token.partition(LABEL_OPEN)
    return name


def label_block(identity: str) -> str:
    """Return the ``{...}`` part of ``identity``, or ``{}`` when it has none."""

    idx = identity.find(LABEL_OPEN)
    return identity[idx:] if idx != -1 else EMPTY_LABELS


def parse_float(token: str) -> float | None:
    if "_" in token:
        return None
    try:
        return float(token)
    except ValueError:
        return None


def parse_line(line: str) -> ParsedSample | None:
    """Parse one exposition line, or return ``None`` when it must be skipped."""

    stripped = line.strip()
    if not stripped or stripped.startswith(COMMENT_MARKER):
        return None
    parts = stripped.split()
    if len(parts) < 2:
        return None

    # A trailing timestamp is optional, so the value is either the last token or,
    # when that is not numeric, the one before it.
    value = parse_float(parts[-1])
    if value is None:
        if len(parts) < 3:
            return None
        value = parse_float(parts[-2])
        if value is None:
            return None

    token = parts[0]
    name = base_name(token)
    identity = token if LABEL_OPEN in token else token + EMPTY_LABELS
    return ParsedSample(name=name, identity=identity, value=value)


def iter_parsed(lines: Iterable[str]) -> Iterator[ParsedSample]:
    for line in lines:
        parsed = parse_line(line)
        if parsed is not None:
            yield parsed


__all__ = [
    "ParsedSample",
    "Sample",
    "base_name",
    "iter_parsed",
    "label_block",
    "parse_float",
    "parse_line",
]
