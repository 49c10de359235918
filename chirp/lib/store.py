from __future__ import annotations

import logging
from datetime import timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from chirp.lib.data import crud
from chirp.lib.data.db import Database
from chirp.lib.digest import DetectionRecord, StoreUnavailable, Window
from chirp.lib.notifications.models import Recipient

logger = logging.getLogger("chirp.store")


def _record_from_row(row: Dict[str, Any]) -> DetectionRecord:
    taken_on = row["taken_on"]
    if taken_on.tzinfo is None:
        taken_on = taken_on.replace(tzinfo=timezone.utc)
    return DetectionRecord(
        image_id=str(row["image_id"]),
        captured_at=taken_on,
        species=row["species"],
        confidence=row["confidence"],
        image_url=row["image_url"],
    )


class SqlRecordStore:
    """Read-only detection query over the images and attributions tables."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def fetch_detections(self, window: Window) -> List[DetectionRecord]:
        session = self._database.session()
        try:
            rows = crud.fetch_detection_rows(session, window.start, window.end)
        except SQLAlchemyError as exc:
            logger.exception("store.fetch_failed", extra={"window_start": window.start.isoformat()})
            raise StoreUnavailable(f"Failed to fetch detections: {exc}") from exc
        finally:
            session.close()
        return [_record_from_row(row) for row in rows]


class SubscriptionRepository:
    def __init__(self, database: Database) -> None:
        self._database = database

    def list_recipients(self, *, daily_summary_only: bool = False) -> List[Recipient]:
        session = self._database.session()
        try:
            rows = crud.list_subscriptions(session, daily_summary_only=daily_summary_only)
        except SQLAlchemyError as exc:
            logger.exception("store.subscribers_failed")
            raise StoreUnavailable(f"Failed to fetch subscribers: {exc}") from exc
        finally:
            session.close()
        return [Recipient(email=row["email"], name=row.get("name")) for row in rows]

    def subscribe(self, email: str, name: Optional[str] = None) -> Dict[str, Any]:
        session = self._database.session()
        try:
            subscription = crud.upsert_subscription(session, email, name)
            session.commit()
            return subscription
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreUnavailable(f"Failed to store subscription: {exc}") from exc
        finally:
            session.close()

    def unsubscribe(self, email: str) -> Optional[Dict[str, Any]]:
        session = self._database.session()
        try:
            subscription = crud.deactivate_subscription(session, email)
            session.commit()
            return subscription
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreUnavailable(f"Failed to update subscription: {exc}") from exc
        finally:
            session.close()
