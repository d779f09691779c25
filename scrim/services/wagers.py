"""Per-match wagers paid from and into the ledger.

Stakes are debited when a bet is placed, and only after the bracket provider
confirms the match has not started. Winnings (twice the stake) are credited
only once the provider reports the match complete. The first run to settle a
match records its winner in a MatchSettlement row; every bet is then claimed
individually with a conditional update on ``is_processed``, so a bet that
arrives after the match was recorded is still settled and none is paid twice.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scrim.errors import (
    ExternalProviderError,
    InvalidState,
    MatchAlreadyStarted,
    NotFound,
    TournamentNotFound,
)
from scrim.models import Bet, MatchSettlement, Tournament
from scrim.models.base import utcnow
from scrim.services.bracket import BracketProvider, MatchState, participant_names
from scrim.services.ledger import Ledger

logger = logging.getLogger("scrim.wagers")

PAYOUT_MULTIPLIER = 2


def bet_description(match_id: str) -> str:
    return f"Bet | match {match_id}"


def refund_description(match_id: str) -> str:
    return f"Bet cancelled | match {match_id}"


def payout_description(match_id: str) -> str:
    return f"Bet won | match {match_id}"


class WagerService:
    def __init__(self, session: AsyncSession, provider: BracketProvider):
        self.session = session
        self.provider = provider
        self.ledger = Ledger(session)

    async def _bracket_id(self, tournament_id: int) -> str:
        t = await self.session.get(Tournament, tournament_id)
        if not t:
            raise TournamentNotFound(tournament_id)
        if not t.external_bracket_id:
            raise InvalidState("Tournament has no bracket linked")
        return t.external_bracket_id

    async def _open_match(self, bracket_id: str, match_id: str) -> MatchState:
        match = await self.provider.get_match(bracket_id, match_id)
        if match.has_started:
            raise MatchAlreadyStarted(match_id)
        return match

    async def _find_bet(self, tournament_id: int, user_id: str, match_id: str) -> Optional[Bet]:
        result = await self.session.execute(
            select(Bet).where(
                Bet.tournament_id == tournament_id,
                Bet.user_id == user_id,
                Bet.external_match_id == match_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_bets(self, tournament_id: int, user_id: Optional[str] = None) -> list[Bet]:
        query = select(Bet).where(Bet.tournament_id == tournament_id).order_by(Bet.id)
        if user_id is not None:
            query = query.where(Bet.user_id == user_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def place_bet(
        self,
        tournament_id: int,
        user_id: str,
        match_id: str,
        predicted_winner: str,
        amount: int,
    ) -> Bet:
        """Place a bet, or edit the user's open bet on the same match.

        Editing replaces the prediction and the amount as-is: the difference is
        neither debited nor checked against the balance.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError("Bet amount must be a positive integer")
        bracket_id = await self._bracket_id(tournament_id)
        match = await self._open_match(bracket_id, match_id)
        names = participant_names(await self.provider.get_participants(bracket_id))
        if predicted_winner not in {names.get(pid) for pid in match.participant_ids}:
            raise NotFound(f"{predicted_winner!r} is not playing in match {match_id}")

        bet = await self._find_bet(tournament_id, user_id, match_id)
        if bet:
            if bet.is_processed:
                raise InvalidState(f"Bet on match {match_id} is already settled")
            bet.predicted_winner = predicted_winner
            bet.amount = amount
            await self.session.commit()
            logger.info("User %s edited bet on match %s (tournament %s)", user_id, match_id, tournament_id)
            return bet

        await self.ledger.debit(user_id, amount, bet_description(match_id))
        bet = Bet(
            tournament_id=tournament_id,
            user_id=user_id,
            external_match_id=match_id,
            amount=amount,
            predicted_winner=predicted_winner,
        )
        self.session.add(bet)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise InvalidState(f"A bet on match {match_id} already exists")
        logger.info(
            "User %s bet %d on %s in match %s (tournament %s)", user_id, amount, predicted_winner, match_id, tournament_id
        )
        return bet

    async def cancel_bet(self, tournament_id: int, user_id: str, match_id: str) -> int:
        """Refund and delete the user's bet. Returns the refunded amount."""
        bet = await self._find_bet(tournament_id, user_id, match_id)
        if not bet:
            raise NotFound(f"No bet on match {match_id}")
        if bet.is_processed:
            raise InvalidState(f"Bet on match {match_id} is already settled")
        bracket_id = await self._bracket_id(tournament_id)
        await self._open_match(bracket_id, match_id)

        amount = bet.amount
        result = await self.session.execute(
            delete(Bet)
            .where(Bet.id == bet.id, Bet.is_processed.is_(False))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Cancelled or settled by a concurrent request
            await self.session.rollback()
            raise NotFound(f"No open bet on match {match_id}")
        await self.ledger.credit(user_id, amount, refund_description(match_id))
        await self.session.commit()
        self.session.expunge(bet)
        logger.info("User %s cancelled bet on match %s (tournament %s), refunded %d", user_id, match_id, tournament_id, amount)
        return amount

    async def settle_matches(self, tournament_id: int) -> dict[str, int]:
        """Pay out every completed match that still has unprocessed bets.

        Provider state is fetched before anything is written, so a provider
        failure leaves every bet untouched. Safe to run repeatedly or concurrently.
        """
        summary = {"matches": 0, "bets": 0, "winners": 0, "failed": 0}
        t = await self.session.get(Tournament, tournament_id)
        if not t:
            raise TournamentNotFound(tournament_id)
        if not t.external_bracket_id:
            return summary
        bracket_id = t.external_bracket_id

        result = await self.session.execute(
            select(Bet.external_match_id).where(Bet.tournament_id == tournament_id, Bet.is_processed.is_(False))
        )
        pending = {row[0] for row in result.all()}
        if not pending:
            return summary

        matches = await self.provider.get_matches(bracket_id)
        names = participant_names(await self.provider.get_participants(bracket_id))

        for match in matches:
            if not match.is_complete or match.id not in pending:
                continue
            winner_name = names.get(match.winner_participant_id) if match.winner_participant_id else None
            if winner_name is None:
                logger.warning(
                    "Match %s of tournament %s is complete without a known winner; leaving bets open",
                    match.id,
                    tournament_id,
                )
                continue
            try:
                settled, winners = await self._settle_match(tournament_id, match.id, winner_name)
            except Exception:
                await self.session.rollback()
                summary["failed"] += 1
                logger.exception("Settlement failed for tournament %s match %s", tournament_id, match.id)
                continue
            if not settled:
                continue
            summary["matches"] += 1
            summary["bets"] += settled
            summary["winners"] += winners
        return summary

    async def _claim_match(self, tournament_id: int, match_id: str, winner_name: str) -> str:
        """Record the match outcome once. Returns the recorded winner.

        Bets that reach a claimed match later (placed in flight, or the match was
        reopened on the provider) are settled against the recorded winner.
        """
        query = select(MatchSettlement.winner_name).where(
            MatchSettlement.tournament_id == tournament_id,
            MatchSettlement.external_match_id == match_id,
        )
        recorded = (await self.session.execute(query)).scalar_one_or_none()
        if recorded is not None:
            return recorded
        self.session.add(
            MatchSettlement(
                tournament_id=tournament_id,
                external_match_id=match_id,
                winner_name=winner_name,
                settled_at=utcnow(),
            )
        )
        try:
            await self.session.flush()
        except IntegrityError:
            # Claimed by a concurrent run
            await self.session.rollback()
            recorded = (await self.session.execute(query)).scalar_one_or_none()
            if recorded is None:
                raise
        return recorded or winner_name

    async def _settle_match(self, tournament_id: int, match_id: str, winner_name: str) -> tuple[int, int]:
        winner_name = await self._claim_match(tournament_id, match_id, winner_name)

        result = await self.session.execute(
            select(Bet.id, Bet.user_id, Bet.amount, Bet.predicted_winner).where(
                Bet.tournament_id == tournament_id,
                Bet.external_match_id == match_id,
                Bet.is_processed.is_(False),
            )
        )
        settled = winners = 0
        for bet_id, user_id, amount, predicted_winner in result.all():
            won = predicted_winner == winner_name
            claimed = await self.session.execute(
                update(Bet)
                .where(Bet.id == bet_id, Bet.is_processed.is_(False))
                .values(is_processed=True, won=won)
                .execution_options(synchronize_session="fetch")
            )
            if claimed.rowcount != 1:
                continue  # settled or cancelled by a concurrent request
            settled += 1
            if won:
                winners += 1
                await self.ledger.credit(user_id, amount * PAYOUT_MULTIPLIER, payout_description(match_id))
                logger.info("Paid %d to user %s for match %s", amount * PAYOUT_MULTIPLIER, user_id, match_id)
        if settled:
            await self.session.execute(
                update(MatchSettlement)
                .where(
                    MatchSettlement.tournament_id == tournament_id,
                    MatchSettlement.external_match_id == match_id,
                )
                .values(bets_settled=MatchSettlement.bets_settled + settled)
                .execution_options(synchronize_session=False)
            )
        await self.session.commit()
        return settled, winners

    async def settle_all(self) -> dict[int, dict[str, int]]:
        """Settle every tournament with open bets. One tournament failing does not stop the others."""
        result = await self.session.execute(select(Bet.tournament_id).where(Bet.is_processed.is_(False)).distinct())
        summaries: dict[int, dict[str, int]] = {}
        for tournament_id in sorted(row[0] for row in result.all()):
            try:
                summaries[tournament_id] = await self.settle_matches(tournament_id)
            except (ExternalProviderError, NotFound) as e:
                logger.warning("Settlement skipped for tournament %s: %s", tournament_id, e)
        return summaries
