"""Background jobs run by the web process."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from scrim.models.base import async_session_factory
from scrim.services.bracket import BracketProvider, ChallongeProvider
from scrim.services.wagers import WagerService

logger = logging.getLogger("scrim.jobs")


async def settle_once(
    session_factory: async_sessionmaker = async_session_factory,
    provider: Optional[BracketProvider] = None,
) -> dict[int, dict[str, int]]:
    """One settlement pass over every tournament with open bets."""
    async with session_factory() as session:
        summaries = await WagerService(session, provider or ChallongeProvider()).settle_all()
    for tournament_id, summary in summaries.items():
        if summary["matches"] or summary["failed"]:
            logger.info("Settled tournament %s: %s", tournament_id, summary)
    return summaries


async def run_settlement_loop(
    interval: float,
    session_factory: async_sessionmaker = async_session_factory,
    provider: Optional[BracketProvider] = None,
) -> None:
    """Settle forever, ``interval`` seconds apart. Cancel the task to stop it.

    Runs may overlap with admin-triggered settlements; the per-match claim
    keeps each bet paid once.
    """
    own_provider = provider is None
    if own_provider:
        provider = ChallongeProvider()
    logger.info("Settlement loop started (every %ss)", interval)
    try:
        while True:
            try:
                await settle_once(session_factory, provider)
            except Exception:
                logger.exception("Settlement pass failed")
            await asyncio.sleep(interval)
    finally:
        if own_provider:
            await provider.close()
        logger.info("Settlement loop stopped")
