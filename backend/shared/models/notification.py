"""
Notification record.

One row per (subscriber, feed item) written when a broadcast is fanned out.
Rows are never modified by the notifier after creation; is_read belongs to
whatever reads the notification list.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class Notification(Base):
    __tablename__ = "notification"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    feed_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_notification_user_created", "user_id", "created_at"),
        Index("ix_notification_feed", "feed_id"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, feed_id={self.feed_id})>"
