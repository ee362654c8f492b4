"""Stable identity, visibility and color assignment for observed series."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from metricscope.scrape.parser import Sample, base_name

logger = logging.getLogger(__name__)

# 256-colour terminal palette indices, cycled by color_index.
SERIES_PALETTE: tuple[int, ...] = (
    202, 46, 226, 201, 51, 208, 99, 171,
    196, 33, 214, 40, 129, 39, 160, 45,
    220, 135, 118, 200, 81, 227, 161, 48,
    57, 190, 213, 38, 154, 124, 27, 141,
)  # fmt: skip


@dataclass(slots=True)
class SeriesRecord:
    identity: str
    visible: bool
    color_index: int

    def color(self, palette: Sequence[int] = SERIES_PALETTE) -> int:
        return palette[self.color_index % len(palette)]


def belongs_to(samples: Sequence[Sample], metric: str) -> bool:
    """Return ``True`` when a batch was scraped for ``metric``.

    Only the first sample is inspected; a scrape only ever returns samples for the
    metric it was issued for, so the whole batch stands or falls together.
    """

    if not samples:
        return True
    return base_name(samples[0].identity) == metric


class SeriesRegistry:
    """Insertion-ordered set of series records for one metric session."""

    def __init__(self) -> None:
        self._records: list[SeriesRecord] = []
        self._by_identity: dict[str, SeriesRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SeriesRecord]:
        return iter(self._records)

    def __contains__(self, identity: object) -> bool:
        return identity in self._by_identity

    def __getitem__(self, index: int) -> SeriesRecord:
        return self._records[index]

    def get(self, identity: str) -> SeriesRecord | None:
        return self._by_identity.get(identity)

    def reconcile(self, samples: Iterable[Sample]) -> list[SeriesRecord]:
        """Register unseen identities and return the records created by this call."""

        created: list[SeriesRecord] = []
        for sample in samples:
            if sample.identity in self._by_identity:
                continue
            record = SeriesRecord(
                identity=sample.identity, visible=True, color_index=len(self._records)
            )
            self._records.append(record)
            self._by_identity[record.identity] = record
            created.append(record)
        if created:
            logger.debug("Registered %d new series (total %d)", len(created), len(self._records))
        return created

    def set_visible(self, identity: str, visible: bool) -> None:
        record = self._by_identity.get(identity)
        if record is None:
            raise KeyError(identity)
        record.visible = visible

    def toggle(self, identity: str) -> bool:
        record = self._by_identity.get(identity)
        if record is None:
            raise KeyError(identity)
        record.visible = not record.visible
        return record.visible

    def all_visible(self) -> bool:
        return all(record.visible for record in self._records)

    def set_all(self, visible: bool) -> None:
        for record in self._records:
            record.visible = visible

    def toggle_all(self) -> bool:
        """Hide everything when all series are shown, otherwise show everything."""

        target = not self.all_visible()
        self.set_all(target)
        return target

    def visible_records(self) -> list[SeriesRecord]:
        return [record for record in self._records if record.visible]

    def snapshot_visibility(self) -> dict[str, bool]:
        return {record.identity: record.visible for record in self._records}

    def restore_visibility(self, snapshot: dict[str, bool]) -> None:
        # Records registered after the snapshot keep their current flag.
        for record in self._records:
            if record.identity in snapshot:
                record.visible = snapshot[record.identity]


__all__ = ["SERIES_PALETTE", "SeriesRecord", "SeriesRegistry", "belongs_to"]
