"""Daily digest engine: window selection, attribution, tally and curation."""

from .assembler import DigestEngine, RecordStore, assemble_digest
from .attribution import AttributionIndex
from .curator import GALLERY_LIMIT, TIMELINE_LIMIT, UNKNOWN_SPECIES, ClockFormatter, CuratedViews, curate
from .models import (
    DetectionRecord,
    DigestError,
    DigestSummary,
    GalleryEntry,
    RecordValidationError,
    StoreUnavailable,
    TimelineEntry,
    Window,
)
from .tally import SpeciesTally
from .window import select_window

__all__ = [
    "AttributionIndex",
    "ClockFormatter",
    "CuratedViews",
    "DetectionRecord",
    "DigestEngine",
    "DigestError",
    "DigestSummary",
    "GALLERY_LIMIT",
    "GalleryEntry",
    "RecordStore",
    "RecordValidationError",
    "SpeciesTally",
    "StoreUnavailable",
    "TIMELINE_LIMIT",
    "TimelineEntry",
    "UNKNOWN_SPECIES",
    "Window",
    "assemble_digest",
    "curate",
    "select_window",
]
