from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Recipient:
    email: str
    name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class EmailMessage:
    sender: str
    subject: str
    text: str


@dataclass(frozen=True, slots=True)
class SpecialSighting:
    species: str
    image_url: Optional[str] = None
    confidence: Optional[float] = None
