"""Notification sink: pushes tournament events to the Discord relay bot.

Delivery is best-effort. A failed post is logged and never undoes the state
change that triggered it, so notifiers are always called after commit.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx

import config
from scrim.models import Tournament

logger = logging.getLogger("scrim.notify")

EVENT_SYNC = "tournament.sync"
EVENT_MVP = "tournament.mvp"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def tournament_summary(t: Tournament) -> dict[str, Any]:
    """Projection of the tournament sent with every event."""
    mvp = next((p.user_id for p in t.players if p.is_mvp), None)
    return {
        "id": t.id,
        "name": t.name,
        "date": _iso(t.date),
        "discord_channel_name": t.discord_channel_name,
        "external_message_ref": t.external_message_ref,
        "player_cap": t.player_cap,
        "status": t.status,
        "mvp_vote_open": t.mvp_vote_open,
        "mvp": mvp,
        "participants": [
            {
                "user_id": p.user_id,
                "in_waitlist": p.in_waitlist,
                "has_checkin": p.has_checkin,
                "is_caster": p.is_caster,
                "registration_date": _iso(p.registration_date),
            }
            for p in t.players
        ],
        "teams": [
            {"name": team.name, "users": team.user_ids, "score": team.score, "ranking": team.ranking}
            for team in t.teams
        ],
    }


class Notifier(Protocol):
    async def tournament_sync(self, t: Tournament) -> None: ...

    async def mvp_announcement(self, t: Tournament) -> None: ...


class NullNotifier:
    """Used when no relay is configured."""

    async def tournament_sync(self, t: Tournament) -> None:
        return None

    async def mvp_announcement(self, t: Tournament) -> None:
        return None


class HttpNotifier:
    """POSTs events to the bot's internal HTTP server."""

    def __init__(
        self,
        base_url: str | None = None,
        secret: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = f"{(base_url or config.BOT_INTERNAL_URL).rstrip('/')}/internal/tournament-event"
        self._secret = secret if secret is not None else config.INTERNAL_API_SECRET
        self._timeout = timeout or config.NOTIFY_TIMEOUT
        self._transport = transport

    async def _post(self, event: str, t: Tournament) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.post(
                    self._url,
                    json={"event": event, "tournament": tournament_summary(t)},
                    headers={"Authorization": f"Bearer {self._secret}"},
                )
                r.raise_for_status()
        except Exception as e:
            logger.warning("Failed to deliver %s for tournament %s: %s", event, t.id, e)

    async def tournament_sync(self, t: Tournament) -> None:
        await self._post(EVENT_SYNC, t)

    async def mvp_announcement(self, t: Tournament) -> None:
        await self._post(EVENT_MVP, t)


def default_notifier() -> Notifier:
    if not config.INTERNAL_API_SECRET:
        return NullNotifier()
    return HttpNotifier()
