"""Discord embeds built from the tournament projection the web API pushes to the bot."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import discord

STATUS_LABELS = {
    "registering": "Registration open",
    "teams_formed": "Teams being formed",
    "teams_published": "Teams published",
    "finished": "Finished",
}

# Embed field values are capped at 1024 characters by Discord
FIELD_LIMIT = 1024


def mention(user_id: str) -> str:
    return f"<@{user_id}>"


def _timestamp(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _field_value(lines: list[str]) -> str:
    if not lines:
        return "(none)"
    value = ""
    for i, line in enumerate(lines):
        candidate = f"{value}\n{line}" if value else line
        if len(candidate) > FIELD_LIMIT - 20:
            return f"{value}\n... and {len(lines) - i} more"
        value = candidate
    return value


def _player_line(p: dict[str, Any]) -> str:
    line = mention(p["user_id"])
    if p.get("has_checkin"):
        line = f"✅ {line}"
    if p.get("is_caster"):
        line += " (caster)"
    return line


def build_summary_embed(summary: dict[str, Any]) -> discord.Embed:
    """Tournament card: date, status, roster, waitlist and, once published, the teams."""
    cap = summary.get("player_cap") or 0
    participants = summary.get("participants") or []
    active = [p for p in participants if not p.get("in_waitlist")]
    waitlist = [p for p in participants if p.get("in_waitlist")]

    description_lines = [f"**Status:** {STATUS_LABELS.get(summary.get('status'), summary.get('status'))}"]
    ts = _timestamp(summary.get("date"))
    if ts:
        description_lines.append(f"**Date:** <t:{ts}:F> (<t:{ts}:R>)")
    if summary.get("mvp"):
        description_lines.append(f"**MVP:** {mention(summary['mvp'])}")

    finished = summary.get("status") == "finished"
    embed = discord.Embed(
        title=f"🏆 {summary['name']}",
        description="\n".join(description_lines),
        color=discord.Color.gold() if finished else discord.Color.green(),
    )
    slots = f"{len(active)}/{cap}" if cap else str(len(active))
    embed.add_field(name=f"Players ({slots})", value=_field_value([_player_line(p) for p in active]), inline=False)
    if waitlist:
        embed.add_field(
            name=f"Waitlist ({len(waitlist)})",
            value=_field_value([mention(p["user_id"]) for p in waitlist]),
            inline=False,
        )
    if summary.get("status") in ("teams_published", "finished"):
        teams = sorted(summary.get("teams") or [], key=lambda t: (t.get("ranking") or 10**6, t["name"]))
        for team in teams:
            header = team["name"]
            if finished and team.get("ranking"):
                header = f"#{team['ranking']} {header} ({team.get('score', 0)} pts)"
            embed.add_field(name=header, value=_field_value([mention(u) for u in team.get("users") or []]), inline=True)
    embed.set_footer(text=f"Tournament ID: {summary['id']}")
    embed.timestamp = discord.utils.utcnow()
    return embed


def build_mvp_embed(summary: dict[str, Any]) -> discord.Embed:
    """MVP announcement posted when the ballot closes."""
    mvp = summary.get("mvp")
    embed = discord.Embed(
        title=f"⭐ MVP of {summary['name']}",
        description=f"Congratulations {mention(mvp)}!" if mvp else "No votes were cast, no MVP this time.",
        color=discord.Color.purple(),
    )
    embed.set_footer(text=f"Tournament ID: {summary['id']}")
    embed.timestamp = discord.utils.utcnow()
    return embed
