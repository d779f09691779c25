"""Configuration for Scrim Core."""
from __future__ import annotations

import json
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Discord relay bot
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN", "")
DISCORD_GUILD_ID = int(os.getenv("DISCORD_GUILD_ID", "0") or 0)
DISCORD_CATEGORY_ID = int(os.getenv("DISCORD_CATEGORY_ID", "0") or 0)  # Parent category for created tournament channels

# Web -> Bot internal API (tournament sync events)
BOT_INTERNAL_URL = os.getenv("BOT_INTERNAL_URL", "http://bot:8001")
INTERNAL_API_SECRET = os.getenv("INTERNAL_API_SECRET", "")  # Shared secret for web->bot requests
NOTIFY_TIMEOUT = float(os.getenv("NOTIFY_TIMEOUT", "5"))

# Bracket provider (Challonge v2.1)
CHALLONGE_API_URL = os.getenv("CHALLONGE_API_URL", "https://api.challonge.com/v2.1")
CHALLONGE_API_KEY = os.getenv("CHALLONGE_API_KEY", "")
BRACKET_TIMEOUT = float(os.getenv("BRACKET_TIMEOUT", "10"))
BRACKET_CACHE_TTL = int(os.getenv("BRACKET_CACHE_TTL", "300"))

# Settlement job: seconds between runs, 0 disables the loop
SETTLEMENT_INTERVAL = int(os.getenv("SETTLEMENT_INTERVAL", "0"))

# Clip embeds: Twitch requires the embedding site's domain
TWITCH_PARENT_DOMAIN = os.getenv("TWITCH_PARENT_DOMAIN", "localhost")

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'scrim.db'}",
)

# Rewards: one grant per user/activity/reward per calendar day in this timezone
REWARD_TIMEZONE = os.getenv("REWARD_TIMEZONE", "Europe/Paris")

DEFAULT_REWARD_TABLE: dict[str, dict[str, int]] = {
    "dailyquiz": {
        "participation": 50,
        "weekly_winner": 250,
        "weekly_second_place": 150,
        "weekly_third_place": 100,
    },
    "acsdle": {
        "participation": 50,
        "completion": 100,
    },
    "tournaments": {
        "participation": 100,
        "first_place": 250,
        "top25": 150,
    },
}


def _parse_reward_table(value: str) -> dict[str, dict[str, int]]:
    if not value:
        return DEFAULT_REWARD_TABLE
    table = json.loads(value)
    return {
        str(activity): {str(reward): int(points) for reward, points in rewards.items()}
        for activity, rewards in table.items()
    }


REWARD_TABLE = _parse_reward_table(os.getenv("REWARD_TABLE", ""))

# Web auth: tokens are issued by the platform's auth service (sub = user id, role)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
