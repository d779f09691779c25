"""Tournament aggregate: the event record with its players, teams, clips and MVP ballot."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scrim.models.base import Base, utcnow

# Lifecycle, derived from flags: registering -> teams_formed -> teams_published -> finished
STATUS_REGISTERING = "registering"
STATUS_TEAMS_FORMED = "teams_formed"
STATUS_TEAMS_PUBLISHED = "teams_published"
STATUS_FINISHED = "finished"


class Tournament(Base):
    """Scheduled event with capacity, participants and eventual team rankings."""

    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    game_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    player_cap: Mapped[int] = mapped_column(Integer, default=0)  # 0 = unlimited
    discord_channel_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    teams_published: Mapped[bool] = mapped_column(Boolean, default=False)
    finished: Mapped[bool] = mapped_column(Boolean, default=False)
    mvp_vote_open: Mapped[bool] = mapped_column(Boolean, default=True)

    # Reminder triggers are run by an external scheduler; these only record what was sent
    discord_reminder_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    private_reminder_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    reminder_sent_players: Mapped[bool] = mapped_column(Boolean, default=False)

    external_bracket_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # Challonge tournament id
    external_message_ref: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)  # Discord summary message id

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    players = relationship(
        "Participant",
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="Participant.id",
        lazy="selectin",
    )
    teams = relationship(
        "Team",
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="Team.id",
        lazy="selectin",
    )
    clips = relationship(
        "Clip",
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="Clip.id",
        lazy="selectin",
    )
    mvp_votes = relationship(
        "MvpVote",
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="MvpVote.id",
        lazy="selectin",
    )

    # Version is bumped by the service on every write; stale writers fail the UPDATE
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    @property
    def status(self) -> str:
        if self.finished:
            return STATUS_FINISHED
        if self.teams_published:
            return STATUS_TEAMS_PUBLISHED
        if self.teams:
            return STATUS_TEAMS_FORMED
        return STATUS_REGISTERING

    @property
    def active_players(self) -> list:
        """Participants holding a slot (not on the waitlist), in registration order."""
        return [p for p in self.players if not p.in_waitlist]

    @property
    def waitlist(self) -> list:
        return [p for p in self.players if p.in_waitlist]

    def find_player(self, user_id: str):
        return next((p for p in self.players if p.user_id == user_id), None)

    def find_team(self, name: str):
        return next((t for t in self.teams if t.name == name), None)

    def votes_for(self, user_id: str) -> set[str]:
        """Voter ids currently backing this candidate."""
        return {v.voter_id for v in self.mvp_votes if v.candidate_id == user_id}
