from __future__ import annotations

from typing import Optional, Protocol

from ..models import EmailMessage, Recipient


class SendError(Exception):
    """Delivery to a single recipient failed."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class NotificationSink(Protocol):
    name: str

    def send(self, recipient: Recipient, message: EmailMessage) -> Optional[str]:
        """Deliver ``message`` and return the provider message id when one exists."""
        ...
