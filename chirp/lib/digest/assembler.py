from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional, Protocol, Sequence

from .attribution import AttributionIndex
from .curator import ClockFormatter, CuratedViews, TimeFormatter, curate
from .models import DetectionRecord, DigestError, DigestSummary, StoreUnavailable, Window
from .tally import SpeciesTally
from .window import select_window

logger = logging.getLogger("chirp.digest")


class RecordStore(Protocol):
    def fetch_detections(self, window: Window) -> Sequence[DetectionRecord]:
        ...


def assemble_digest(
    window: Window,
    index: AttributionIndex,
    tally: SpeciesTally,
    curated: CuratedViews,
) -> DigestSummary:
    return DigestSummary(
        new_count=len(index.best),
        species_count=tally.species_count,
        top_species=tally.top_species,
        window_start=window.start,
        timeline=curated.timeline,
        gallery=curated.gallery,
    )


class DigestEngine:
    """Compute the daily digest from a record store snapshot."""

    def __init__(
        self,
        store: RecordStore,
        *,
        tz: Optional[tzinfo] = None,
        formatter: Optional[TimeFormatter] = None,
    ) -> None:
        self._store = store
        self._tz = tz
        self._formatter = formatter or ClockFormatter(tz)

    def build(self, now: Optional[datetime] = None) -> DigestSummary:
        window = select_window(now, self._tz)
        records = self._fetch(window)

        index = AttributionIndex.build(records, window)
        tally = SpeciesTally.from_attributions(index.best.values())
        curated = curate(index.images, index.best, self._formatter)
        summary = assemble_digest(window, index, tally, curated)

        logger.info(
            "digest.built",
            extra={
                "window_start": window.start.isoformat(),
                "window_end": window.end.isoformat(),
                "records": len(records),
                "new_count": summary.new_count,
                "species_count": summary.species_count,
            },
        )
        return summary

    def _fetch(self, window: Window) -> Sequence[DetectionRecord]:
        try:
            return list(self._store.fetch_detections(window))
        except DigestError:
            raise
        except Exception as exc:  # noqa: BLE001 - any store failure aborts the digest
            logger.exception("digest.store_error", extra={"window_start": window.start.isoformat()})
            raise StoreUnavailable(f"Failed to fetch detections: {exc}") from exc
