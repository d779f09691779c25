"""Tests for tournament event delivery to the relay bot."""
import json

import httpx
import pytest

from conftest import T0
from scrim.services.notifier import HttpNotifier, NullNotifier, default_notifier
from scrim.services.tournaments import TournamentService


@pytest.mark.asyncio
async def test_events_are_posted_with_projection(session):
    posted = []

    def handler(request: httpx.Request) -> httpx.Response:
        posted.append(request)
        return httpx.Response(200, json={"ok": True})

    notifier = HttpNotifier(base_url="http://bot.test/", secret="s3cret", transport=httpx.MockTransport(handler))
    service = TournamentService(session, notifier)
    t = await service.create("Cup", T0, "cup-channel", player_cap=1)
    await service.register(t.id, "u1")
    await service.register(t.id, "u2")

    assert len(posted) == 2
    request = posted[-1]
    assert str(request.url) == "http://bot.test/internal/tournament-event"
    assert request.headers["Authorization"] == "Bearer s3cret"
    body = json.loads(request.content)
    assert body["event"] == "tournament.sync"
    summary = body["tournament"]
    assert summary["discord_channel_name"] == "cup-channel"
    assert summary["status"] == "registering"
    assert [(p["user_id"], p["in_waitlist"]) for p in summary["participants"]] == [("u1", False), ("u2", True)]


@pytest.mark.asyncio
async def test_delivery_failure_does_not_undo_the_change(session):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("bot down", request=request)

    notifier = HttpNotifier(base_url="http://bot.test", secret="s3cret", transport=httpx.MockTransport(handler))
    service = TournamentService(session, notifier)
    t = await service.create("Cup", T0, "cup")
    participant = await service.register(t.id, "u1")

    assert participant.user_id == "u1"
    assert (await service.get(t.id)).find_player("u1") is not None


@pytest.mark.asyncio
async def test_mvp_event(session):
    posted = []

    def handler(request: httpx.Request) -> httpx.Response:
        posted.append(json.loads(request.content))
        return httpx.Response(500)

    notifier = HttpNotifier(base_url="http://bot.test", secret="s3cret", transport=httpx.MockTransport(handler))
    service = TournamentService(session, notifier)
    t = await service.create("Cup", T0, "cup")
    await service.close_mvp_voting(t.id)

    assert [p["event"] for p in posted] == ["tournament.sync", "tournament.mvp"]
    assert posted[-1]["tournament"]["mvp"] is None


def test_null_notifier_without_secret():
    assert isinstance(default_notifier(), NullNotifier)
