"""Tournament aggregate commands.

Every command loads the tournament, mutates it in memory and commits it as one
unit. Commits bump ``Tournament.version`` and the UPDATE is guarded by the
version read at load time, so two requests racing on the same tournament
(registrations near the cap, concurrent check-ins) cannot overwrite each other:
the loser gets ConcurrentModification and retries.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from scrim.errors import (
    ConcurrentModification,
    InvalidState,
    NotFound,
    TournamentNotFound,
    Unauthorized,
    VotingClosed,
)
from scrim.models import Clip, MvpVote, Participant, Team, TeamMember, Tournament
from scrim.models.base import utcnow
from scrim.services.clips import normalize_clip_url
from scrim.services.notifier import Notifier, NullNotifier

logger = logging.getLogger("scrim.tournaments")

UPDATABLE_FIELDS = {
    "name",
    "game_id",
    "date",
    "discord_channel_name",
    "player_cap",
    "description",
    "discord_reminder_date",
    "private_reminder_date",
    "reminder_sent",
    "reminder_sent_players",
    "external_bracket_id",
    "external_message_ref",
    "mvp_vote_open",
}


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything here is stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TournamentService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.notifier = notifier or NullNotifier()
        self.clock = clock

    async def get(self, tournament_id: int, refresh: bool = False) -> Tournament:
        t = await self.session.get(Tournament, tournament_id, populate_existing=refresh)
        if not t:
            raise TournamentNotFound(tournament_id)
        return t

    async def list(self, finished: Optional[bool] = None) -> list[Tournament]:
        query = select(Tournament).order_by(Tournament.date.desc(), Tournament.id.desc())
        if finished is not None:
            query = query.where(Tournament.finished == finished)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _commit(self, t: Tournament) -> None:
        tournament_id = t.id  # t is expired after a rollback
        t.version = (t.version or 0) + 1
        t.updated_at = self.clock()
        try:
            await self.session.commit()
        except StaleDataError:
            await self.session.rollback()
            logger.info("Stale write rejected on tournament %s", tournament_id)
            raise ConcurrentModification()

    # --- Admin settings ---

    async def create(
        self,
        name: str,
        date: datetime,
        discord_channel_name: str,
        player_cap: int = 0,
        **fields: Any,
    ) -> Tournament:
        if player_cap < 0:
            raise ValueError("player_cap must be 0 (unlimited) or positive")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown tournament fields: {', '.join(sorted(unknown))}")
        t = Tournament(
            name=name.strip(),
            date=date,
            discord_channel_name=discord_channel_name.strip(),
            player_cap=player_cap,
            **fields,
        )
        self.session.add(t)
        await self.session.commit()
        logger.info("Created tournament %s (%s)", t.id, t.name)
        return await self.get(t.id, refresh=True)

    async def update_settings(self, tournament_id: int, **fields: Any) -> Tournament:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown tournament fields: {', '.join(sorted(unknown))}")
        if fields.get("player_cap") is not None and fields["player_cap"] < 0:
            raise ValueError("player_cap must be 0 (unlimited) or positive")
        t = await self.get(tournament_id)
        for key, value in fields.items():
            setattr(t, key, value)
        await self._commit(t)
        return t

    # --- Registration ---

    async def register(self, tournament_id: int, user_id: str, as_caster: bool = False) -> Participant:
        """Add the user; beyond the cap they land on the waitlist."""
        t = await self.get(tournament_id)
        if t.finished:
            raise InvalidState("Tournament is finished")
        if t.find_player(user_id):
            raise InvalidState("Already registered for this tournament")

        in_waitlist = t.player_cap > 0 and len(t.active_players) >= t.player_cap
        registered_at = self.clock()
        last = max((as_utc(p.registration_date) for p in t.players), default=None)
        if last and registered_at <= last:
            registered_at = last + timedelta(microseconds=1)

        participant = Participant(
            user_id=user_id,
            in_waitlist=in_waitlist,
            registration_date=registered_at,
            is_caster=as_caster,
        )
        t.players.append(participant)
        try:
            await self._commit(t)
        except IntegrityError:
            await self.session.rollback()
            raise InvalidState("Already registered for this tournament")
        logger.info(
            "User %s registered for tournament %s%s", user_id, t.id, " (waitlist)" if in_waitlist else ""
        )
        await self.notifier.tournament_sync(t)
        return participant

    async def unregister(self, tournament_id: int, user_id: str) -> bool:
        """Remove the user. Waitlisted players are not promoted; admins backfill by hand."""
        t = await self.get(tournament_id)
        participant = t.find_player(user_id)
        if not participant:
            return False
        t.players.remove(participant)
        for vote in [v for v in t.mvp_votes if user_id in (v.voter_id, v.candidate_id)]:
            t.mvp_votes.remove(vote)
        await self._commit(t)
        logger.info("User %s left tournament %s", user_id, t.id)
        await self.notifier.tournament_sync(t)
        return True

    async def _set_checkin(self, tournament_id: int, user_id: str, value: bool) -> Optional[Participant]:
        t = await self.get(tournament_id)
        participant = t.find_player(user_id)
        if not participant or participant.has_checkin == value:
            return participant
        participant.has_checkin = value
        await self._commit(t)
        await self.notifier.tournament_sync(t)
        return participant

    async def checkin(self, tournament_id: int, user_id: str) -> Optional[Participant]:
        return await self._set_checkin(tournament_id, user_id, True)

    async def checkout(self, tournament_id: int, user_id: str) -> Optional[Participant]:
        return await self._set_checkin(tournament_id, user_id, False)

    async def update_participant(
        self,
        tournament_id: int,
        user_id: str,
        tier: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Participant:
        t = await self.get(tournament_id)
        participant = t.find_player(user_id)
        if not participant:
            raise NotFound(f"User {user_id} is not registered in tournament {tournament_id}")
        if tier is not None:
            participant.tier = tier
        if description is not None:
            participant.description = description
        await self._commit(t)
        return participant

    # --- Clips ---

    async def add_clip(self, tournament_id: int, user_id: str, raw_url: str) -> Clip:
        t = await self.get(tournament_id)
        clip = Clip(url=normalize_clip_url(raw_url), added_by=user_id, added_at=self.clock())
        t.clips.append(clip)
        await self._commit(t)
        return clip

    # --- MVP ballot ---

    async def vote_mvp(self, tournament_id: int, voter_id: str, candidate_id: str) -> None:
        """Single-choice ballot: the voter's previous choice, if any, is replaced."""
        t = await self.get(tournament_id)
        if not t.mvp_vote_open:
            raise VotingClosed()
        voter = t.find_player(voter_id)
        if not voter or voter.in_waitlist:
            raise Unauthorized("Only registered participants can vote")
        candidate = t.find_player(candidate_id)
        if not candidate or candidate.in_waitlist:
            raise NotFound(f"User {candidate_id} is not a participant of tournament {tournament_id}")

        existing = next((v for v in t.mvp_votes if v.voter_id == voter_id), None)
        if existing:
            if existing.candidate_id == candidate_id:
                return
            existing.candidate_id = candidate_id
        else:
            t.mvp_votes.append(MvpVote(voter_id=voter_id, candidate_id=candidate_id))
        await self._commit(t)

    async def mvp_ballot(self, tournament_id: int) -> list[dict[str, Any]]:
        """Candidates in player-list order with their current vote counts."""
        t = await self.get(tournament_id)
        return [
            {"user_id": p.user_id, "votes": len(t.votes_for(p.user_id)), "is_mvp": p.is_mvp}
            for p in t.active_players
        ]

    async def close_mvp_voting(self, tournament_id: int) -> Optional[Participant]:
        """Close the ballot and crown the MVP.

        The winner needs strictly more votes than everyone listed before them,
        so ties go to the earliest participant in player-list order. No votes,
        no MVP.
        """
        t = await self.get(tournament_id)
        t.mvp_vote_open = False
        winner, best = None, 0
        for p in t.players:
            count = len(t.votes_for(p.user_id))
            if count > best:
                winner, best = p, count
        for p in t.players:
            p.is_mvp = p is winner
        await self._commit(t)
        logger.info(
            "MVP voting closed for tournament %s: %s", t.id, f"{winner.user_id} ({best} votes)" if winner else "no votes"
        )
        await self.notifier.tournament_sync(t)
        await self.notifier.mvp_announcement(t)
        return winner

    # --- Teams and results ---

    def _build_teams(self, teams: list[dict[str, Any]]) -> list[Team]:
        names = [str(team.get("name") or "").strip() for team in teams]
        if any(not n for n in names):
            raise ValueError("Every team needs a name")
        if len(set(names)) != len(names):
            raise ValueError("Team names must be unique")
        return [
            Team(
                name=name,
                score=team.get("score") or 0,
                ranking=team.get("ranking") or 0,
                members=[TeamMember(user_id=u) for u in dict.fromkeys(team.get("users") or [])],
            )
            for name, team in zip(names, teams)
        ]

    async def set_teams(self, tournament_id: int, teams: list[dict[str, Any]]) -> Tournament:
        """Replace the whole team list without publishing it."""
        t = await self.get(tournament_id)
        if t.finished:
            raise InvalidState("Tournament is finished")
        t.teams = self._build_teams(teams)
        await self._commit(t)
        return t

    async def publish_teams(self, tournament_id: int, teams: Optional[list[dict[str, Any]]] = None) -> Tournament:
        """Publish the team list, replacing it wholesale first when ``teams`` is given."""
        t = await self.get(tournament_id)
        if t.finished:
            raise InvalidState("Tournament is finished")
        if teams is not None:
            t.teams = self._build_teams(teams)
        if not t.teams:
            raise InvalidState("No teams to publish")
        t.teams_published = True
        await self._commit(t)
        logger.info("Teams published for tournament %s (%d teams)", t.id, len(t.teams))
        await self.notifier.tournament_sync(t)
        return t

    async def update_team(
        self,
        tournament_id: int,
        old_name: str,
        name: Optional[str] = None,
        score: Optional[int] = None,
        ranking: Optional[int] = None,
    ) -> Team:
        t = await self.get(tournament_id)
        team = t.find_team(old_name)
        if not team:
            raise NotFound(f"Team {old_name!r} not found")
        if name is not None and name != old_name:
            if t.find_team(name):
                raise ValueError(f"Team {name!r} already exists")
            team.name = name
        if score is not None:
            team.score = score
        if ranking is not None:
            team.ranking = ranking
        await self._commit(t)
        return team

    async def finish(self, tournament_id: int) -> Tournament:
        """Mark results final. Team rankings are authoritative from here on."""
        t = await self.get(tournament_id)
        if t.finished:
            raise InvalidState("Tournament is already finished")
        if not t.teams_published:
            raise InvalidState("Teams are not published yet")
        t.finished = True
        await self._commit(t)
        logger.info("Tournament %s finished", t.id)
        await self.notifier.tournament_sync(t)
        return t
