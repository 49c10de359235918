"""Notification package exposing dispatch, delivery sinks and the service."""

from .channels.base import NotificationSink, SendError
from .dispatcher import BatchDispatcher, DispatchFailure, DispatchReport
from .models import EmailMessage, Recipient, SpecialSighting
from .service import DeliveryOutcome, NotificationService, Senders

__all__ = [
    "BatchDispatcher",
    "DeliveryOutcome",
    "DispatchFailure",
    "DispatchReport",
    "EmailMessage",
    "NotificationService",
    "NotificationSink",
    "Recipient",
    "Senders",
    "SendError",
    "SpecialSighting",
]
