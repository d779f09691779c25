"""Admin API routes: tournament settings, teams, MVP close, results, settlement, ledger and rewards."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from scrim.services.bracket import BracketProvider
from scrim.services.ledger import Ledger
from scrim.services.notifier import Notifier
from scrim.services.rewards import RewardIssuer
from scrim.services.tournaments import TournamentService
from scrim.services.wagers import WagerService
from web.api.deps import get_bracket_provider, get_notifier, get_session
from web.api.routes import ParticipantResponse, TransactionResponse, tournament_detail
from web.auth import CurrentUser, require_admin_user

logger = logging.getLogger("scrim.admin")

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin_user)])

# Columns that cannot be cleared with an explicit null
REQUIRED_FIELDS = ("name", "date", "discord_channel_name", "player_cap", "mvp_vote_open", "reminder_sent", "reminder_sent_players")


# --- Pydantic schemas ---


class TournamentCreate(BaseModel):
    name: str
    date: datetime
    discord_channel_name: str
    player_cap: int = Field(default=0, ge=0)
    game_id: Optional[str] = None
    description: Optional[str] = None
    external_bracket_id: Optional[str] = None
    discord_reminder_date: Optional[datetime] = None
    private_reminder_date: Optional[datetime] = None


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    game_id: Optional[str] = None
    date: Optional[datetime] = None
    discord_channel_name: Optional[str] = None
    player_cap: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
    discord_reminder_date: Optional[datetime] = None
    private_reminder_date: Optional[datetime] = None
    reminder_sent: Optional[bool] = None
    reminder_sent_players: Optional[bool] = None
    external_bracket_id: Optional[str] = None
    external_message_ref: Optional[str] = None
    mvp_vote_open: Optional[bool] = None


class ParticipantUpdate(BaseModel):
    tier: Optional[str] = None
    description: Optional[str] = None


class TeamIn(BaseModel):
    name: str
    users: list[str] = []
    score: int = 0
    ranking: int = 0


class TeamsBulkUpdate(BaseModel):
    teams: list[TeamIn]


class PublishTeamsRequest(BaseModel):
    teams: Optional[list[TeamIn]] = None


class TeamUpdate(BaseModel):
    name: Optional[str] = None
    score: Optional[int] = None
    ranking: Optional[int] = None


class LedgerAdjust(BaseModel):
    action: Literal["add", "remove"]
    amount: int = Field(gt=0)


class RewardGrantRequest(BaseModel):
    user_id: str
    activity_type: str
    reward_type: str


# --- Tournament settings ---


@router.post("/tournaments")
async def create_tournament(
    body: TournamentCreate,
    session: AsyncSession = Depends(get_session),
):
    fields = body.model_dump(exclude_none=True)
    t = await TournamentService(session).create(
        fields.pop("name"), fields.pop("date"), fields.pop("discord_channel_name"), **fields
    )
    return tournament_detail(t)


@router.patch("/tournaments/{tournament_id}")
async def update_tournament(
    tournament_id: int,
    body: TournamentUpdate,
    session: AsyncSession = Depends(get_session),
):
    fields = body.model_dump(exclude_unset=True)
    for key in REQUIRED_FIELDS:
        if key in fields and fields[key] is None:
            del fields[key]
    t = await TournamentService(session).update_settings(tournament_id, **fields)
    return tournament_detail(t)


@router.patch("/tournaments/{tournament_id}/players/{user_id}", response_model=ParticipantResponse)
async def update_participant(
    tournament_id: int,
    user_id: str,
    body: ParticipantUpdate,
    session: AsyncSession = Depends(get_session),
):
    return await TournamentService(session).update_participant(
        tournament_id, user_id, tier=body.tier, description=body.description
    )


# --- Teams ---


@router.put("/tournaments/{tournament_id}/teams")
async def set_teams(
    tournament_id: int,
    body: TeamsBulkUpdate,
    session: AsyncSession = Depends(get_session),
):
    t = await TournamentService(session).set_teams(tournament_id, [team.model_dump() for team in body.teams])
    return tournament_detail(t)


@router.post("/tournaments/{tournament_id}/publish-teams")
async def publish_teams(
    tournament_id: int,
    body: Optional[PublishTeamsRequest] = None,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    teams = [team.model_dump() for team in body.teams] if body and body.teams is not None else None
    t = await TournamentService(session, notifier).publish_teams(tournament_id, teams)
    return tournament_detail(t)


@router.patch("/tournaments/{tournament_id}/teams/{team_name}")
async def update_team(
    tournament_id: int,
    team_name: str,
    body: TeamUpdate,
    session: AsyncSession = Depends(get_session),
):
    team = await TournamentService(session).update_team(
        tournament_id, team_name, name=body.name, score=body.score, ranking=body.ranking
    )
    return {"name": team.name, "users": team.user_ids, "score": team.score, "ranking": team.ranking}


# --- MVP and results ---


@router.post("/tournaments/{tournament_id}/mvp/close")
async def close_mvp_voting(
    tournament_id: int,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    winner = await TournamentService(session, notifier).close_mvp_voting(tournament_id)
    return {"mvp": winner.user_id if winner else None}


@router.post("/tournaments/{tournament_id}/finish")
async def finish_tournament(
    tournament_id: int,
    award: bool = True,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Mark results final, then (by default) hand out participation and placement rewards."""
    t = await TournamentService(session, notifier).finish(tournament_id)
    data = tournament_detail(t)
    data["rewards"] = await RewardIssuer(session).award_tournament(tournament_id) if award else {}
    return data


@router.post("/tournaments/{tournament_id}/rewards")
async def award_tournament(tournament_id: int, session: AsyncSession = Depends(get_session)):
    """Re-run tournament rewards. Already granted rewards are skipped."""
    return {"rewards": await RewardIssuer(session).award_tournament(tournament_id)}


@router.post("/tournaments/{tournament_id}/settle")
async def settle_tournament(
    tournament_id: int,
    session: AsyncSession = Depends(get_session),
    provider: BracketProvider = Depends(get_bracket_provider),
):
    return await WagerService(session, provider).settle_matches(tournament_id)


# --- Ledger and rewards ---


@router.get("/ledger")
async def list_accounts(session: AsyncSession = Depends(get_session)):
    return [{"user_id": a.user_id, "balance": a.balance} for a in await Ledger(session).accounts()]


@router.get("/ledger/{user_id}")
async def user_ledger(user_id: str, session: AsyncSession = Depends(get_session)):
    ledger = Ledger(session)
    history = await ledger.history(user_id)
    return {
        "user_id": user_id,
        "balance": await ledger.balance(user_id),
        "transactions": [TransactionResponse.model_validate(tx) for tx in reversed(history)],
    }


@router.post("/ledger/{user_id}/adjust")
async def adjust_balance(
    user_id: str,
    body: LedgerAdjust,
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin_user),
):
    account = await Ledger(session).adjust(user_id, body.action, body.amount)
    logger.info("Ledger adjustment by admin %s: %s %d for user %s", admin.user_id, body.action, body.amount, user_id)
    return {"user_id": account.user_id, "balance": account.balance}


@router.post("/rewards/grant")
async def grant_reward(body: RewardGrantRequest, session: AsyncSession = Depends(get_session)):
    points = await RewardIssuer(session).grant(body.user_id, body.activity_type, body.reward_type)
    return {"granted": points is not None, "points": points or 0}
