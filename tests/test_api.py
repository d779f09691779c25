"""Tests for the HTTP API."""
import pytest

from conftest import auth_headers


async def create_tournament(client, admin_headers, **overrides):
    body = {
        "name": "Friday Scrim",
        "date": "2026-03-14T18:00:00+00:00",
        "discord_channel_name": "friday-scrim",
        "player_cap": 2,
        "external_bracket_id": "bk-1",
    }
    body.update(overrides)
    r = await client.post("/api/admin/tournaments", json=body, headers=admin_headers)
    assert r.status_code == 200, r.text
    return r.json()


@pytest.mark.asyncio
async def test_health(client):
    """Health endpoint returns ok."""
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_list_tournaments_empty(client):
    r = await client.get("/api/tournaments")
    assert r.status_code == 200
    assert r.json() == []


@pytest.mark.asyncio
async def test_admin_routes_require_admin(client):
    body = {"name": "X", "date": "2026-03-14T18:00:00Z", "discord_channel_name": "x"}
    r = await client.post("/api/admin/tournaments", json=body)
    assert r.status_code == 401
    r = await client.post("/api/admin/tournaments", json=body, headers=auth_headers("u1"))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_registration_flow(client, admin_headers, notifier):
    t = await create_tournament(client, admin_headers)
    assert t["status"] == "registering"

    r = await client.post(f"/api/tournaments/{t['id']}/register")
    assert r.status_code == 401

    for user_id in ("u1", "u2", "u3"):
        r = await client.post(f"/api/tournaments/{t['id']}/register", headers=auth_headers(user_id))
        assert r.status_code == 200, r.text
    assert r.json()["in_waitlist"] is True

    r = await client.post(f"/api/tournaments/{t['id']}/register", headers=auth_headers("u1"))
    assert r.status_code == 409
    assert r.json()["type"] == "InvalidState"

    r = await client.post(f"/api/tournaments/{t['id']}/checkin", headers=auth_headers("u1"))
    assert r.json()["has_checkin"] is True

    r = await client.get(f"/api/tournaments/{t['id']}")
    data = r.json()
    assert [p["user_id"] for p in data["participants"]] == ["u1", "u2", "u3"]
    assert [p["in_waitlist"] for p in data["participants"]] == [False, False, True]

    r = await client.get("/api/tournaments")
    assert r.json()[0]["registered"] == 2
    assert r.json()[0]["waitlisted"] == 1

    r = await client.delete(f"/api/tournaments/{t['id']}/register", headers=auth_headers("u2"))
    assert r.status_code == 200
    r = await client.delete(f"/api/tournaments/{t['id']}/register", headers=auth_headers("u2"))
    assert r.status_code == 404
    assert ("sync", t["id"]) in notifier.events


@pytest.mark.asyncio
async def test_unknown_tournament_is_404(client):
    r = await client.get("/api/tournaments/999")
    assert r.status_code == 404
    assert r.json() == {"detail": "Tournament 999 not found", "type": "TournamentNotFound"}


@pytest.mark.asyncio
async def test_clip_validation(client, admin_headers):
    t = await create_tournament(client, admin_headers)
    r = await client.post(
        f"/api/tournaments/{t['id']}/clips", json={"url": "https://youtu.be/abc123"}, headers=auth_headers("u1")
    )
    assert r.status_code == 200
    assert r.json()["url"] == "https://www.youtube-nocookie.com/embed/abc123"

    r = await client.post(
        f"/api/tournaments/{t['id']}/clips", json={"url": "https://vimeo.com/1"}, headers=auth_headers("u1")
    )
    assert r.status_code == 400
    assert r.json()["type"] == "UnsupportedMedia"


@pytest.mark.asyncio
async def test_mvp_and_results_flow(client, admin_headers, session_factory):
    t = await create_tournament(client, admin_headers, player_cap=0)
    tid = t["id"]
    for user_id in ("A", "B", "C", "D"):
        await client.post(f"/api/tournaments/{tid}/register", headers=auth_headers(user_id))

    for voter, candidate in (("A", "B"), ("C", "B"), ("B", "A")):
        r = await client.put(
            f"/api/tournaments/{tid}/mvp-vote", json={"candidate_id": candidate}, headers=auth_headers(voter)
        )
        assert r.status_code == 200, r.text
    r = await client.get(f"/api/tournaments/{tid}/mvp")
    assert {c["user_id"]: c["votes"] for c in r.json()["candidates"]} == {"A": 1, "B": 2, "C": 0, "D": 0}

    r = await client.post(f"/api/admin/tournaments/{tid}/mvp/close", headers=admin_headers)
    assert r.json() == {"mvp": "B"}
    r = await client.put(f"/api/tournaments/{tid}/mvp-vote", json={"candidate_id": "A"}, headers=auth_headers("D"))
    assert r.status_code == 409
    assert r.json()["type"] == "VotingClosed"

    r = await client.post(f"/api/admin/tournaments/{tid}/finish", headers=admin_headers)
    assert r.status_code == 409

    teams = [{"name": "Red", "users": ["A", "B"], "ranking": 1}, {"name": "Blue", "users": ["C", "D"], "ranking": 2}]
    r = await client.post(f"/api/admin/tournaments/{tid}/publish-teams", json={"teams": teams}, headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "teams_published"

    r = await client.post(f"/api/admin/tournaments/{tid}/finish", headers=admin_headers)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["status"] == "finished"
    assert data["mvp"] == "B"
    assert data["rewards"]["A"] == ["participation", "first_place"]
    assert data["rewards"]["C"] == ["participation"]

    r = await client.get("/api/ledger/me", headers=auth_headers("A"))
    assert r.json()["balance"] == 350
    assert r.json()["transactions"][0]["description"] == "tournaments | first_place"


@pytest.mark.asyncio
async def test_betting_flow(client, admin_headers, provider):
    provider.set_match("m1")
    t = await create_tournament(client, admin_headers)
    tid = t["id"]

    r = await client.post("/api/admin/ledger/u1/adjust", json={"action": "add", "amount": 100}, headers=admin_headers)
    assert r.json() == {"user_id": "u1", "balance": 100}

    r = await client.get(f"/api/tournaments/{tid}/matches")
    assert r.json() == [
        {"id": "m1", "state": "open", "betting_open": True, "participants": ["Alpha", "Bravo"], "winner": None}
    ]

    bet_url = f"/api/tournaments/{tid}/matches/m1/bet"
    r = await client.put(bet_url, json={"predicted_winner": "Alpha", "amount": 500}, headers=auth_headers("u1"))
    assert r.status_code == 400
    assert r.json()["type"] == "InsufficientFunds"

    r = await client.put(bet_url, json={"predicted_winner": "Alpha", "amount": 40}, headers=auth_headers("u1"))
    assert r.status_code == 200, r.text
    assert r.json()["amount"] == 40

    r = await client.delete(bet_url, headers=auth_headers("u1"))
    assert r.json() == {"ok": True, "refunded": 40}
    r = await client.put(bet_url, json={"predicted_winner": "Alpha", "amount": 40}, headers=auth_headers("u1"))
    assert r.status_code == 200

    provider.set_match("m1", state="started")
    r = await client.delete(bet_url, headers=auth_headers("u1"))
    assert r.status_code == 409
    assert r.json()["type"] == "MatchAlreadyStarted"

    provider.set_match("m1", state="complete", winner="p1")
    r = await client.post(f"/api/admin/tournaments/{tid}/settle", headers=admin_headers)
    assert r.json() == {"matches": 1, "bets": 1, "winners": 1, "failed": 0}

    r = await client.get(f"/api/tournaments/{tid}/bets?mine=true", headers=auth_headers("u1"))
    assert r.json()[0]["won"] is True

    r = await client.get("/api/ledger/me", headers=auth_headers("u1"))
    assert r.json()["balance"] == 140

    r = await client.get("/api/admin/ledger", headers=admin_headers)
    assert r.json() == [{"user_id": "u1", "balance": 140}]


@pytest.mark.asyncio
async def test_provider_outage_is_502(client, admin_headers, provider):
    t = await create_tournament(client, admin_headers)
    provider.fail = True
    r = await client.get(f"/api/tournaments/{t['id']}/matches")
    assert r.status_code == 502
    assert r.json()["type"] == "ExternalProviderError"


@pytest.mark.asyncio
async def test_manual_reward_grant(client, admin_headers):
    body = {"user_id": "u9", "activity_type": "acsdle", "reward_type": "completion"}
    r = await client.post("/api/admin/rewards/grant", json=body, headers=admin_headers)
    assert r.json() == {"granted": True, "points": 100}
    r = await client.post("/api/admin/rewards/grant", json=body, headers=admin_headers)
    assert r.json() == {"granted": False, "points": 0}
