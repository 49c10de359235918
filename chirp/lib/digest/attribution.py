from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Tuple

from .models import DetectionRecord, Window, ensure_utc


@dataclass(frozen=True, slots=True)
class AttributionIndex:
    """
    Best attribution per image for one window.

    ``best`` maps each image id to its highest-confidence record; ``images``
    holds the same records ordered most recent first, the order the timeline
    and gallery consume.
    """

    best: Mapping[str, DetectionRecord] = field(default_factory=dict)
    images: Tuple[DetectionRecord, ...] = field(default_factory=tuple)

    @classmethod
    def build(cls, records: Iterable[DetectionRecord], window: Window) -> "AttributionIndex":
        best: Dict[str, DetectionRecord] = {}
        for record in records:
            if not window.contains(record.captured_at):
                continue
            current = best.get(record.image_id)
            # Strictly greater: on equal confidence the first record seen stays.
            if current is None or record.confidence > current.confidence:
                best[record.image_id] = record

        images = tuple(
            sorted(best.values(), key=lambda record: ensure_utc(record.captured_at), reverse=True)
        )
        return cls(best=best, images=images)

    def __len__(self) -> int:
        return len(self.best)
