from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from .models import DetectionRecord


@dataclass(frozen=True, slots=True)
class SpeciesTally:
    counts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_attributions(cls, best_records: Iterable[DetectionRecord]) -> "SpeciesTally":
        """Count one vote per image, using only its best attribution."""
        counter: Counter[str] = Counter(record.species for record in best_records)
        return cls(counts=dict(counter))

    @property
    def species_count(self) -> int:
        return len(self.counts)

    @property
    def top_species(self) -> Optional[str]:
        if not self.counts:
            return None
        # Highest count first, then the lexicographically smallest name.
        return min(self.counts.items(), key=lambda item: (-item[1], item[0]))[0]
