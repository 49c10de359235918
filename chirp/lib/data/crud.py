from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, insert, select, update
from sqlalchemy.orm import Session

from .tables import attributions, email_subscriptions, images


def to_storage_time(value: datetime) -> datetime:
    """Normalize to the naive UTC representation used by the tables."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def insert_image(
    session: Session,
    *,
    image_id: str,
    image_url: str,
    taken_on: datetime,
    detections: Iterable[Dict[str, Any]] = (),
) -> None:
    session.execute(
        insert(images).values(id=image_id, image_url=image_url, taken_on=to_storage_time(taken_on))
    )
    for detection in detections:
        session.execute(
            insert(attributions).values(
                image_id=image_id,
                species=detection["species"],
                confidence=float(detection["confidence"]),
            )
        )


def fetch_detection_rows(session: Session, start: datetime, end: datetime) -> List[Dict[str, Any]]:
    stmt = (
        select(
            images.c.id.label("image_id"),
            images.c.image_url,
            images.c.taken_on,
            attributions.c.species,
            attributions.c.confidence,
        )
        .join(attributions, attributions.c.image_id == images.c.id)
        .where(
            and_(
                images.c.taken_on >= to_storage_time(start),
                images.c.taken_on < to_storage_time(end),
            )
        )
        .order_by(images.c.taken_on.desc(), attributions.c.confidence.desc(), attributions.c.id)
    )
    return [dict(row) for row in session.execute(stmt).mappings()]


def list_subscriptions(session: Session, *, daily_summary_only: bool = False) -> List[Dict[str, Any]]:
    conditions = [email_subscriptions.c.is_active.is_(True)]
    if daily_summary_only:
        conditions.append(email_subscriptions.c.daily_summary_enabled.is_(True))
    stmt = (
        select(email_subscriptions.c.email, email_subscriptions.c.name)
        .where(and_(*conditions))
        .order_by(email_subscriptions.c.id)
    )
    return [dict(row) for row in session.execute(stmt).mappings()]


def get_subscription(session: Session, email: str) -> Optional[Dict[str, Any]]:
    result = session.execute(
        select(email_subscriptions).where(email_subscriptions.c.email == email)
    ).mappings().first()
    return dict(result) if result is not None else None


def upsert_subscription(session: Session, email: str, name: Optional[str] = None) -> Dict[str, Any]:
    timestamp = datetime.utcnow()
    existing = get_subscription(session, email)
    if existing is not None:
        values: Dict[str, Any] = {"is_active": True, "updated_at": timestamp}
        if name:
            values["name"] = name
        session.execute(
            update(email_subscriptions)
            .where(email_subscriptions.c.id == existing["id"])
            .values(**values)
        )
    else:
        session.execute(
            insert(email_subscriptions).values(
                email=email,
                name=name,
                is_active=True,
                daily_summary_enabled=True,
                created_at=timestamp,
                updated_at=timestamp,
            )
        )
    subscription = get_subscription(session, email)
    if subscription is None:
        raise RuntimeError(f"Failed to store subscription for {email}")
    return subscription


def deactivate_subscription(session: Session, email: str) -> Optional[Dict[str, Any]]:
    existing = get_subscription(session, email)
    if existing is None:
        return None
    session.execute(
        update(email_subscriptions)
        .where(email_subscriptions.c.id == existing["id"])
        .values(is_active=False, updated_at=datetime.utcnow())
    )
    return get_subscription(session, email)
