from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


class VoteChoice(str, Enum):
    YES = "yes"
    NO = "no"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint(
            "deployment_id",
            "voter_token",
            "market_slug",
            "provider",
            name="uq_votes_deployment_voter_market_provider",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deployment_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    voter_token: Mapped[str] = mapped_column(String(255), nullable=False)
    market_slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    vote: Mapped[str] = mapped_column(String(3), nullable=False)
    price_at_vote: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class BroadcastStateRecord(Base):
    """Single-row document holding the latest broadcast state."""

    __tablename__ = "broadcast_state"

    id: Mapped[str] = mapped_column(String(100), primary_key=True, default="default")
    state: Mapped[dict] = mapped_column(JSON, nullable=False)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
