from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from chirp.lib.digest import DigestEngine, DigestSummary

from .channels.base import NotificationSink
from .dispatcher import BatchDispatcher, DispatchReport
from .models import EmailMessage, Recipient, SpecialSighting
from .render import daily_summary_message, special_sighting_message, welcome_message

logger = logging.getLogger("chirp.notifications")


class SubscriberDirectory(Protocol):
    def list_recipients(self, *, daily_summary_only: bool = False) -> List[Recipient]:
        ...

    def subscribe(self, email: str, name: Optional[str] = None) -> Dict[str, Any]:
        ...

    def unsubscribe(self, email: str) -> Optional[Dict[str, Any]]:
        ...


@dataclass(frozen=True)
class Senders:
    daily: str
    alerts: str
    welcome: str


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    requested: int
    report: DispatchReport
    summary: Optional[DigestSummary] = None


class NotificationService:
    """
    Ties the digest engine, subscriber directory and delivery sink together.

    All collaborators are injected; the service owns none of their lifecycles
    except closing the sink on :meth:`close`.
    """

    def __init__(
        self,
        engine: DigestEngine,
        subscribers: SubscriberDirectory,
        sink: NotificationSink,
        dispatcher: BatchDispatcher,
        senders: Senders,
    ) -> None:
        self._engine = engine
        self._subscribers = subscribers
        self._sink = sink
        self._dispatcher = dispatcher
        self._senders = senders

    def close(self) -> None:
        close_fn = getattr(self._sink, "close", None)
        if callable(close_fn):
            close_fn()

    def build_digest(self, now: Optional[datetime] = None) -> DigestSummary:
        return self._engine.build(now)

    def send_daily_summary(self, now: Optional[datetime] = None) -> DeliveryOutcome:
        recipients = self._subscribers.list_recipients(daily_summary_only=True)
        if not recipients:
            logger.info("daily_summary.no_subscribers")
            return DeliveryOutcome(requested=0, report=DispatchReport(0, 0, 0))

        summary = self._engine.build(now)
        message = daily_summary_message(summary, self._senders.daily)
        report = self._broadcast(recipients, message)
        logger.info(
            "daily_summary.sent",
            extra={"new_count": summary.new_count, "succeeded": report.succeeded, "failed": report.failed},
        )
        return DeliveryOutcome(requested=len(recipients), report=report, summary=summary)

    def send_special_sighting(self, sighting: SpecialSighting) -> DeliveryOutcome:
        if not sighting.species.strip():
            raise ValueError("species is required")
        recipients = self._subscribers.list_recipients()
        if not recipients:
            logger.info("special_sighting.no_subscribers", extra={"species": sighting.species})
            return DeliveryOutcome(requested=0, report=DispatchReport(0, 0, 0))

        message = special_sighting_message(sighting, self._senders.alerts)
        report = self._broadcast(recipients, message)
        logger.info(
            "special_sighting.sent",
            extra={"species": sighting.species, "succeeded": report.succeeded, "failed": report.failed},
        )
        return DeliveryOutcome(requested=len(recipients), report=report)

    def subscribe(self, email: str, name: Optional[str] = None) -> Dict[str, Any]:
        subscription = self._subscribers.subscribe(email, name)
        # A failed welcome email fails the request; the subscription stays stored.
        message_id = self._sink.send(
            Recipient(email=email, name=name),
            welcome_message(name, self._senders.welcome),
        )
        return {
            "subscription_id": subscription["id"],
            "email": subscription["email"],
            "message_id": message_id,
        }

    def unsubscribe(self, email: str) -> Optional[Dict[str, Any]]:
        return self._subscribers.unsubscribe(email)

    def _broadcast(self, recipients: List[Recipient], message: EmailMessage) -> DispatchReport:
        return self._dispatcher.dispatch(recipients, lambda recipient: self._sink.send(recipient, message))
