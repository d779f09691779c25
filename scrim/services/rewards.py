"""Reward issuer: fixed point rewards credited at most once per user, activity, reward and day."""
from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import config
from scrim.errors import InvalidState, TournamentNotFound
from scrim.models import RewardGrant, Tournament
from scrim.models.base import utcnow
from scrim.services.ledger import Ledger

logger = logging.getLogger("scrim.rewards")

PLACEMENT_VICTORY = "victory"
PLACEMENT_TOP25 = "top25"
PLACEMENT_PARTICIPATION = "participation"


def reward_description(activity_type: str, reward_type: str) -> str:
    return f"{activity_type} | {reward_type}"


def placement(ranking: int, team_count: int) -> str:
    """Badge tier of a team: winner, top quarter of the field, or just played."""
    if ranking == 1:
        return PLACEMENT_VICTORY
    if ranking > 0 and ranking <= math.ceil(team_count / 4):
        return PLACEMENT_TOP25
    return PLACEMENT_PARTICIPATION


class RewardIssuer:
    def __init__(
        self,
        session: AsyncSession,
        rewards: Optional[dict[str, dict[str, int]]] = None,
        clock: Callable[[], datetime] = utcnow,
        tz: Optional[str] = None,
    ):
        self.session = session
        self.ledger = Ledger(session)
        self.rewards = rewards if rewards is not None else config.REWARD_TABLE
        self.clock = clock
        self.tz = ZoneInfo(tz or config.REWARD_TIMEZONE)

    def points_for(self, activity_type: str, reward_type: str) -> Optional[int]:
        return (self.rewards.get(activity_type) or {}).get(reward_type)

    def reward_day(self) -> date:
        """Local calendar day the reward counts against (midnight to midnight)."""
        return self.clock().astimezone(self.tz).date()

    async def _already_granted(self, user_id: str, activity_type: str, reward_type: str, day: date) -> bool:
        result = await self.session.execute(
            select(RewardGrant.id).where(
                RewardGrant.user_id == user_id,
                RewardGrant.activity_type == activity_type,
                RewardGrant.reward_type == reward_type,
                RewardGrant.day == day,
            )
        )
        return result.first() is not None

    async def _ensure_account(self, user_id: str) -> None:
        """Create the ledger account up front so only the grant row can collide below."""
        try:
            await self.ledger.get_account(user_id)
            await self.session.commit()
        except IntegrityError:
            # Created by a concurrent request
            await self.session.rollback()

    async def grant(self, user_id: str, activity_type: str, reward_type: str) -> Optional[int]:
        """Credit the reward unless it was already given today. Returns points credited, or None.

        Unknown activity/reward combinations are ignored. The grant row and the
        ledger credit commit together; the unique key on the grant row makes a
        concurrent duplicate fail before anything is credited.
        """
        points = self.points_for(activity_type, reward_type)
        if points is None:
            logger.debug("No reward configured for %s", reward_description(activity_type, reward_type))
            return None
        day = self.reward_day()
        if await self._already_granted(user_id, activity_type, reward_type, day):
            return None
        await self._ensure_account(user_id)

        self.session.add(
            RewardGrant(
                user_id=user_id,
                activity_type=activity_type,
                reward_type=reward_type,
                day=day,
                points=points,
                granted_at=self.clock(),
            )
        )
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            logger.info("Duplicate reward %s for user %s on %s ignored", reward_description(activity_type, reward_type), user_id, day)
            return None
        await self.ledger.credit(user_id, points, reward_description(activity_type, reward_type))
        await self.session.commit()
        logger.info("Granted %d points to user %s for %s", points, user_id, reward_description(activity_type, reward_type))
        return points

    async def award_tournament(self, tournament_id: int) -> dict[str, list[str]]:
        """Participation and placement rewards for every member of a finished tournament's teams."""
        t = await self.session.get(Tournament, tournament_id)
        if not t:
            raise TournamentNotFound(tournament_id)
        if not t.finished:
            raise InvalidState("Tournament is not finished")

        # Resolve the plan before granting: a rolled-back duplicate expires loaded objects
        plan = []
        team_count = len(t.teams)
        for team in t.teams:
            tier = placement(team.ranking, team_count)
            reward_types = ["participation"]
            if tier == PLACEMENT_VICTORY:
                reward_types.append("first_place")
            elif tier == PLACEMENT_TOP25:
                reward_types.append("top25")
            plan.append((team.user_ids, reward_types))

        granted: dict[str, list[str]] = {}
        for user_ids, reward_types in plan:
            for user_id in user_ids:
                for reward_type in reward_types:
                    if await self.grant(user_id, "tournaments", reward_type) is not None:
                        granted.setdefault(user_id, []).append(reward_type)
        return granted
