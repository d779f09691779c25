"""Public and participant API routes: tournaments, registration, MVP ballot, clips, bets, own ledger."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from scrim.errors import InvalidState, NotFound
from scrim.models import Tournament
from scrim.services.bracket import BracketProvider, participant_names
from scrim.services.ledger import Ledger
from scrim.services.notifier import Notifier, tournament_summary
from scrim.services.tournaments import TournamentService
from scrim.services.wagers import WagerService
from web.api.deps import get_bracket_provider, get_notifier, get_session
from web.auth import CurrentUser, require_user

router = APIRouter(prefix="/api", tags=["tournaments"])


# --- Pydantic schemas ---


class RegisterRequest(BaseModel):
    as_caster: bool = False


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    in_waitlist: bool
    registration_date: datetime
    has_checkin: bool
    is_caster: bool
    is_mvp: bool
    tier: Optional[str] = None
    description: Optional[str] = None


class ClipCreate(BaseModel):
    url: str


class ClipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    added_by: Optional[str] = None
    added_at: datetime


class MvpVoteRequest(BaseModel):
    candidate_id: str


class BetRequest(BaseModel):
    predicted_winner: str
    amount: int = Field(gt=0)


class BetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    external_match_id: str
    amount: int
    predicted_winner: str
    won: bool
    is_processed: bool


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: int
    date: datetime
    description: str


def tournament_detail(t: Tournament) -> dict[str, Any]:
    """Full public view: the relay projection plus settings, clips and the bracket link."""
    data = tournament_summary(t)
    data.update(
        {
            "game_id": t.game_id,
            "description": t.description,
            "teams_published": t.teams_published,
            "finished": t.finished,
            "external_bracket_id": t.external_bracket_id,
            "version": t.version,
            "clips": [ClipResponse.model_validate(c).model_dump(mode="json") for c in t.clips],
        }
    )
    return data


# --- Tournaments ---


@router.get("/tournaments")
async def list_tournaments(finished: Optional[bool] = None, session: AsyncSession = Depends(get_session)):
    tournaments = await TournamentService(session).list(finished=finished)
    return [
        {
            "id": t.id,
            "name": t.name,
            "date": t.date,
            "status": t.status,
            "player_cap": t.player_cap,
            "registered": len(t.active_players),
            "waitlisted": len(t.waitlist),
        }
        for t in tournaments
    ]


@router.get("/tournaments/{tournament_id}")
async def get_tournament(tournament_id: int, session: AsyncSession = Depends(get_session)):
    t = await TournamentService(session).get(tournament_id)
    return tournament_detail(t)


@router.post("/tournaments/{tournament_id}/register", response_model=ParticipantResponse)
async def register(
    tournament_id: int,
    body: Optional[RegisterRequest] = None,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    as_caster = body.as_caster if body else False
    return await TournamentService(session, notifier).register(tournament_id, user.user_id, as_caster=as_caster)


@router.delete("/tournaments/{tournament_id}/register")
async def unregister(
    tournament_id: int,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    if not await TournamentService(session, notifier).unregister(tournament_id, user.user_id):
        raise NotFound("You are not registered for this tournament")
    return {"ok": True}


@router.post("/tournaments/{tournament_id}/checkin", response_model=ParticipantResponse)
async def checkin(
    tournament_id: int,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    participant = await TournamentService(session, notifier).checkin(tournament_id, user.user_id)
    if not participant:
        raise NotFound("You are not registered for this tournament")
    return participant


@router.delete("/tournaments/{tournament_id}/checkin", response_model=ParticipantResponse)
async def checkout(
    tournament_id: int,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    participant = await TournamentService(session, notifier).checkout(tournament_id, user.user_id)
    if not participant:
        raise NotFound("You are not registered for this tournament")
    return participant


@router.post("/tournaments/{tournament_id}/clips", response_model=ClipResponse)
async def add_clip(
    tournament_id: int,
    body: ClipCreate,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return await TournamentService(session).add_clip(tournament_id, user.user_id, body.url)


# --- MVP ballot ---


@router.get("/tournaments/{tournament_id}/mvp")
async def mvp_ballot(tournament_id: int, session: AsyncSession = Depends(get_session)):
    service = TournamentService(session)
    t = await service.get(tournament_id)
    return {"open": t.mvp_vote_open, "candidates": await service.mvp_ballot(tournament_id)}


@router.put("/tournaments/{tournament_id}/mvp-vote")
async def vote_mvp(
    tournament_id: int,
    body: MvpVoteRequest,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await TournamentService(session).vote_mvp(tournament_id, user.user_id, body.candidate_id)
    return {"ok": True, "candidate_id": body.candidate_id}


# --- Matches and bets ---


@router.get("/tournaments/{tournament_id}/matches")
async def list_matches(
    tournament_id: int,
    session: AsyncSession = Depends(get_session),
    provider: BracketProvider = Depends(get_bracket_provider),
):
    """Bracket matches with participant names, as the provider reports them."""
    t = await TournamentService(session).get(tournament_id)
    if not t.external_bracket_id:
        raise InvalidState("Tournament has no bracket linked")
    matches = await provider.get_matches(t.external_bracket_id)
    names = participant_names(await provider.get_participants(t.external_bracket_id))
    return [
        {
            "id": m.id,
            "state": m.state,
            "betting_open": not m.has_started,
            "participants": [names.get(pid, pid) for pid in m.participant_ids],
            "winner": names.get(m.winner_participant_id) if m.winner_participant_id else None,
        }
        for m in matches
    ]


@router.get("/tournaments/{tournament_id}/bets", response_model=list[BetResponse])
async def list_bets(
    tournament_id: int,
    mine: bool = False,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    provider: BracketProvider = Depends(get_bracket_provider),
):
    await TournamentService(session).get(tournament_id)
    return await WagerService(session, provider).list_bets(tournament_id, user.user_id if mine else None)


@router.put("/tournaments/{tournament_id}/matches/{match_id}/bet", response_model=BetResponse)
async def place_bet(
    tournament_id: int,
    match_id: str,
    body: BetRequest,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    provider: BracketProvider = Depends(get_bracket_provider),
):
    return await WagerService(session, provider).place_bet(
        tournament_id, user.user_id, match_id, body.predicted_winner, body.amount
    )


@router.delete("/tournaments/{tournament_id}/matches/{match_id}/bet")
async def cancel_bet(
    tournament_id: int,
    match_id: str,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    provider: BracketProvider = Depends(get_bracket_provider),
):
    refunded = await WagerService(session, provider).cancel_bet(tournament_id, user.user_id, match_id)
    return {"ok": True, "refunded": refunded}


# --- Ledger ---


@router.get("/ledger/me")
async def my_ledger(user: CurrentUser = Depends(require_user), session: AsyncSession = Depends(get_session)):
    ledger = Ledger(session)
    history = await ledger.history(user.user_id)
    return {
        "user_id": user.user_id,
        "balance": await ledger.balance(user.user_id),
        "transactions": [TransactionResponse.model_validate(tx) for tx in reversed(history)],
    }
