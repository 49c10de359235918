from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
)


metadata = MetaData()


# Timestamps are stored as naive UTC.
images = Table(
    "images",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("image_url", String(1024), nullable=False),
    Column("taken_on", DateTime, nullable=False),
    Column("created_at", DateTime, default=datetime.utcnow, nullable=False),
)

attributions = Table(
    "attributions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "image_id",
        String(64),
        ForeignKey("images.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("species", String(255), nullable=False),
    Column("confidence", Float, nullable=False),
)

email_subscriptions = Table(
    "email_subscriptions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("name", String(255)),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("daily_summary_enabled", Boolean, nullable=False, default=True),
    Column("created_at", DateTime, default=datetime.utcnow, nullable=False),
    Column("updated_at", DateTime, default=datetime.utcnow, nullable=False),
)

Index("ix_images_taken_on", images.c.taken_on)
Index("ix_attributions_image_id", attributions.c.image_id)
Index("ix_email_subscriptions_active", email_subscriptions.c.is_active)
