"""Participant model - a user registered for a tournament, and their MVP ballots."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scrim.models.base import Base, utcnow


class Participant(Base):
    """Registration of one user in one tournament."""

    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    in_waitlist: Mapped[bool] = mapped_column(Boolean, default=False)
    registration_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    has_checkin: Mapped[bool] = mapped_column(Boolean, default=False)
    is_caster: Mapped[bool] = mapped_column(Boolean, default=False)
    is_mvp: Mapped[bool] = mapped_column(Boolean, default=False)
    tier: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    tournament: Mapped["Tournament"] = relationship("Tournament", back_populates="players")

    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", name="uq_participant_tournament_user"),
    )


class MvpVote(Base):
    """Single-choice MVP ballot: one row per voter per tournament."""

    __tablename__ = "mvp_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    voter_id: Mapped[str] = mapped_column(String(64), nullable=False)
    candidate_id: Mapped[str] = mapped_column(String(64), nullable=False)  # Participant.user_id

    tournament: Mapped["Tournament"] = relationship("Tournament", back_populates="mvp_votes")

    __table_args__ = (
        UniqueConstraint("tournament_id", "voter_id", name="uq_mvp_vote_voter"),
    )
