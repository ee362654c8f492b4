"""Series bookkeeping shared by the interactive view."""

from .history import DisplayRange, HistoryStore, TimePoint, padded_range
from .registry import SERIES_PALETTE, SeriesRecord, SeriesRegistry, belongs_to

__all__ = [
    "DisplayRange",
    "HistoryStore",
    "SERIES_PALETTE",
    "SeriesRecord",
    "SeriesRegistry",
    "TimePoint",
    "belongs_to",
    "padded_range",
]
