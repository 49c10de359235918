from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from chirp.lib.digest import DigestSummary
from chirp.lib.notifications import DeliveryOutcome


class TimelineItem(BaseModel):
    time: str
    species: str
    image_url: str


class GalleryItem(BaseModel):
    id: str
    species: str
    image_url: str


class DigestResponse(BaseModel):
    new_count: int = Field(..., ge=0)
    species_count: int = Field(..., ge=0)
    top_species: Optional[str] = None
    window_start: str
    timeline: List[TimelineItem]
    gallery: List[GalleryItem]

    @classmethod
    def from_summary(cls, summary: DigestSummary) -> "DigestResponse":
        return cls.model_validate(summary.to_dict())


class DispatchResponse(BaseModel):
    success: bool = True
    requested: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    successful: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    cancelled: int = Field(0, ge=0)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class SpecialSightingRequest(BaseModel):
    species: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)

    model_config = ConfigDict(populate_by_name=True)


class SubscribeRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class SubscribeResponse(BaseModel):
    success: bool = True
    subscription_id: int
    email: str
    message_id: Optional[str] = None


class UnsubscribeResponse(BaseModel):
    success: bool = True
    message: str
    email: str


def dispatch_payload(outcome: DeliveryOutcome) -> Union[DispatchResponse, MessageResponse]:
    if outcome.requested == 0:
        return MessageResponse(message="No active subscribers")
    report = outcome.report
    return DispatchResponse(
        requested=outcome.requested,
        total=report.total_recipients,
        successful=report.succeeded,
        failed=report.failed,
        cancelled=report.cancelled,
    )
