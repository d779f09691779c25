"""Tests for the relay bot's embeds."""
from bot.services.discord_embeds import build_mvp_embed, build_summary_embed

SUMMARY = {
    "id": 3,
    "name": "Friday Scrim",
    "date": "2026-03-14T18:00:00+00:00",
    "discord_channel_name": "friday-scrim",
    "external_message_ref": None,
    "player_cap": 2,
    "status": "registering",
    "mvp_vote_open": True,
    "mvp": None,
    "participants": [
        {"user_id": "111", "in_waitlist": False, "has_checkin": True, "is_caster": False},
        {"user_id": "222", "in_waitlist": False, "has_checkin": False, "is_caster": True},
        {"user_id": "333", "in_waitlist": True, "has_checkin": False, "is_caster": False},
    ],
    "teams": [],
}


def test_summary_embed_lists_roster_and_waitlist():
    embed = build_summary_embed(SUMMARY)
    assert embed.title.endswith("Friday Scrim")
    assert "Registration open" in embed.description
    assert "<t:1773511200:F>" in embed.description
    fields = {f.name: f.value for f in embed.fields}
    assert fields["Players (2/2)"] == "✅ <@111>\n<@222> (caster)"
    assert fields["Waitlist (1)"] == "<@333>"
    assert embed.footer.text == "Tournament ID: 3"


def test_finished_summary_shows_ranked_teams():
    summary = dict(
        SUMMARY,
        status="finished",
        mvp="222",
        teams=[
            {"name": "Blue", "users": ["333"], "score": 1, "ranking": 2},
            {"name": "Red", "users": ["111", "222"], "score": 3, "ranking": 1},
        ],
    )
    embed = build_summary_embed(summary)
    names = [f.name for f in embed.fields]
    assert names[-2:] == ["#1 Red (3 pts)", "#2 Blue (1 pts)"]
    assert "**MVP:** <@222>" in embed.description


def test_teams_hidden_until_published():
    summary = dict(SUMMARY, status="teams_formed", teams=[{"name": "Red", "users": ["111"], "score": 0, "ranking": 0}])
    assert "Red" not in [f.name for f in build_summary_embed(summary).fields]


def test_long_rosters_are_truncated():
    participants = [
        {"user_id": str(10**17 + i), "in_waitlist": False, "has_checkin": False, "is_caster": False}
        for i in range(100)
    ]
    embed = build_summary_embed(dict(SUMMARY, player_cap=0, participants=participants))
    value = embed.fields[0].value
    assert len(value) <= 1024
    assert value.endswith("more")


def test_mvp_embed():
    assert "<@222>" in build_mvp_embed(dict(SUMMARY, mvp="222")).description
    assert "No votes" in build_mvp_embed(SUMMARY).description
