from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Callable, Mapping, Optional, Sequence, Tuple

from .models import DetectionRecord, GalleryEntry, TimelineEntry, ensure_utc

TIMELINE_LIMIT = 8
GALLERY_LIMIT = 6
UNKNOWN_SPECIES = "Unknown"

TimeFormatter = Callable[[datetime], str]


class ClockFormatter:
    """Render capture times as wall-clock strings in the viewer's timezone."""

    def __init__(self, tz: Optional[tzinfo] = None, time_format: str = "%H:%M") -> None:
        self._tz = tz
        self._time_format = time_format

    def __call__(self, moment: datetime) -> str:
        moment = ensure_utc(moment)
        local = moment.astimezone(self._tz) if self._tz is not None else moment.astimezone()
        return local.strftime(self._time_format)


@dataclass(frozen=True, slots=True)
class CuratedViews:
    timeline: Tuple[TimelineEntry, ...] = field(default_factory=tuple)
    gallery: Tuple[GalleryEntry, ...] = field(default_factory=tuple)


def _species_for(image: DetectionRecord, best: Mapping[str, DetectionRecord]) -> str:
    attribution = best.get(image.image_id)
    if attribution is None:
        return UNKNOWN_SPECIES
    return attribution.species


def curate(
    images: Sequence[DetectionRecord],
    best: Mapping[str, DetectionRecord],
    formatter: TimeFormatter,
) -> CuratedViews:
    timeline = tuple(
        TimelineEntry(
            time=formatter(image.captured_at),
            species=_species_for(image, best),
            image_url=image.image_url,
        )
        for image in images[:TIMELINE_LIMIT]
    )
    gallery = tuple(
        GalleryEntry(
            id=image.image_id,
            species=_species_for(image, best),
            image_url=image.image_url,
        )
        for image in images[:GALLERY_LIMIT]
    )
    return CuratedViews(timeline=timeline, gallery=gallery)
