"""Append-only per-series history and the one-shot display range."""

from __future__ import annotations

import math
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Deque

from metricscope.scrape.parser import Sample

RANGE_PADDING = 0.1


@dataclass(frozen=True, slots=True)
class TimePoint:
    timestamp: datetime
    value: float


@dataclass(slots=True)
class DisplayRange:
    y_min: float = 0.0
    y_max: float = 0.0
    locked: bool = False

    def as_tuple(self) -> tuple[float, float]:
        return self.y_min, self.y_max


def padded_range(values: Iterable[float]) -> tuple[float, float] | None:
    """Return ``(y_min, y_max)`` padded by 10% of each bound's magnitude.

    Non-finite values are ignored. When every value is zero the window collapses
    and ``(-1.0, 1.0)`` is returned instead.
    """

    finite = [value for value in values if math.isfinite(value)]
    if not finite:
        return None
    low = min(finite)
    high = max(finite)
    y_min = low - abs(low) * RANGE_PADDING
    y_max = high + abs(high) * RANGE_PADDING
    if y_min == y_max:
        return -1.0, 1.0
    return y_min, y_max


class HistoryStore:
    """Maps series identity to its retained points.

    ``max_points`` bounds every series to a ring buffer of that many points; the
    default keeps everything until :meth:`reset`.
    """

    def __init__(self, max_points: int | None = None) -> None:
        if max_points is not None and max_points <= 0:
            raise ValueError("max_points must be > 0 when set")
        self.max_points = max_points
        self._series: dict[str, Deque[TimePoint]] = {}
        self.range = DisplayRange()

    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, identity: object) -> bool:
        return identity in self._series

    def __iter__(self) -> Iterator[str]:
        return iter(self._series)

    def is_empty(self) -> bool:
        return not self._series

    def append(self, identity: str, point: TimePoint) -> None:
        bucket = self._series.get(identity)
        if bucket is None:
            bucket = deque(maxlen=self.max_points)
            self._series[identity] = bucket
        bucket.append(point)

    def points(self, identity: str) -> list[TimePoint]:
        return list(self._series.get(identity, ()))

    def ingest(self, samples: Iterable[Sample], timestamp: datetime) -> int:
        count = 0
        for sample in samples:
            self.append(sample.identity, TimePoint(timestamp=timestamp, value=sample.value))
            count += 1
        return count

    def compute_initial_range(self, samples: Iterable[Sample]) -> DisplayRange:
        """Lock the display range from the first usable batch; later calls are no-ops."""

        if self.range.locked:
            return self.range
        bounds = padded_range(sample.value for sample in samples)
        if bounds is not None:
            self.range = DisplayRange(y_min=bounds[0], y_max=bounds[1], locked=True)
        return self.range

    def reset(self) -> None:
        self._series.clear()
        self.range = DisplayRange()


__all__ = ["DisplayRange", "HistoryStore", "RANGE_PADDING", "TimePoint", "padded_range"]
