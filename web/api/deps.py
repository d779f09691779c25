"""FastAPI dependencies shared by the routers. Tests override these."""
from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from scrim.models.base import async_session_factory
from scrim.services.bracket import BracketProvider, ChallongeProvider
from scrim.services.notifier import Notifier, default_notifier

_provider: ChallongeProvider | None = None


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        yield session


def get_bracket_provider() -> BracketProvider:
    """Process-wide Challonge client so the participant cache is shared between requests."""
    global _provider
    if _provider is None:
        _provider = ChallongeProvider()
    return _provider


def get_notifier() -> Notifier:
    return default_notifier()


async def close_bracket_provider() -> None:
    global _provider
    if _provider is not None:
        await _provider.close()
        _provider = None
