from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


class DigestError(Exception):
    """Base class for failures that abort a digest computation."""


class StoreUnavailable(DigestError):
    """The record store (or subscriber directory) could not be read."""


class RecordValidationError(DigestError, ValueError):
    """A detection record handed over by the store violates the data model."""


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class DetectionRecord:
    """One candidate species identification for one captured image."""

    image_id: str
    captured_at: datetime
    species: str
    confidence: float
    image_url: str

    def __post_init__(self) -> None:
        if not str(self.image_id or "").strip():
            raise RecordValidationError("Detection record missing 'image_id'")
        if not str(self.species or "").strip():
            raise RecordValidationError(f"Detection for image '{self.image_id}' missing 'species'")
        try:
            confidence = float(self.confidence)
        except (TypeError, ValueError) as exc:
            raise RecordValidationError(
                f"Detection for image '{self.image_id}' has non-numeric confidence {self.confidence!r}"
            ) from exc
        if not 0.0 <= confidence <= 1.0:
            raise RecordValidationError(
                f"Detection for image '{self.image_id}' has confidence {confidence} outside [0, 1]"
            )
        object.__setattr__(self, "confidence", confidence)


@dataclass(frozen=True, slots=True)
class Window:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        moment = ensure_utc(moment)
        return ensure_utc(self.start) <= moment < ensure_utc(self.end)


@dataclass(frozen=True, slots=True)
class TimelineEntry:
    time: str
    species: str
    image_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"time": self.time, "species": self.species, "image_url": self.image_url}


@dataclass(frozen=True, slots=True)
class GalleryEntry:
    id: str
    species: str
    image_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "species": self.species, "image_url": self.image_url}


@dataclass(frozen=True, slots=True)
class DigestSummary:
    new_count: int
    species_count: int
    top_species: Optional[str]
    window_start: datetime
    timeline: Tuple[TimelineEntry, ...] = field(default_factory=tuple)
    gallery: Tuple[GalleryEntry, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return self.new_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "new_count": self.new_count,
            "species_count": self.species_count,
            "top_species": self.top_species,
            "window_start": self.window_start.isoformat(),
            "timeline": [entry.to_dict() for entry in self.timeline],
            "gallery": [entry.to_dict() for entry in self.gallery],
        }
