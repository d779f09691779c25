"""Bet and settlement-claim models for per-match wagers."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from scrim.models.base import Base, utcnow


class Bet(Base):
    """Wager on the winner of one bracket match. Amount is debited when the bet is placed."""

    __tablename__ = "bets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    external_match_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    predicted_winner: Mapped[str] = mapped_column(String(128), nullable=False)  # Bracket participant name
    won: Mapped[bool] = mapped_column(Boolean, default=False)
    is_processed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", "external_match_id", name="uq_bet_user_match"),
    )


class MatchSettlement(Base):
    """Durable claim on a completed match. Whoever inserts it first pays the match out."""

    __tablename__ = "match_settlements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    external_match_id: Mapped[str] = mapped_column(String(64), nullable=False)
    winner_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    bets_settled: Mapped[int] = mapped_column(Integer, default=0)
    settled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("tournament_id", "external_match_id", name="uq_match_settlement"),
    )
