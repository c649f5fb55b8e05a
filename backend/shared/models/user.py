"""
Users, influencers and follow relationships.

Only what the notifier reads: display names and the subscription topology.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK


class User(Base):
    """Application user; subscribers are users."""

    __tablename__ = "app_user"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"


class Influencer(Base):
    """A user that publishes feed items other users can follow."""

    __tablename__ = "influencer"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, unique=True
    )

    user: Mapped[User] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<Influencer(id={self.id}, user_id={self.user_id})>"


class Follow(Base):
    """follower_id follows influencer_id."""

    __tablename__ = "follow"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    influencer_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("influencer.id"), nullable=False, index=True
    )
    follower_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("influencer_id", "follower_id", name="uq_follow_influencer_follower"),
    )

    def __repr__(self) -> str:
        return f"<Follow(influencer_id={self.influencer_id}, follower_id={self.follower_id})>"
