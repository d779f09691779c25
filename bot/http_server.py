"""Internal HTTP server: relays tournament events from the web API to Discord."""
from __future__ import annotations

import logging
from typing import Any, Optional

import aiohttp.web
import discord

import config
from bot.services.discord_embeds import build_mvp_embed, build_summary_embed

logger = logging.getLogger("scrim.relay")

EVENT_SYNC = "tournament.sync"
EVENT_MVP = "tournament.mvp"

# Messages scanned when looking for an earlier summary card to edit
HISTORY_LIMIT = 50


async def find_or_create_channel(bot: discord.Client, name: str) -> discord.TextChannel:
    """Text channel with this name in the configured guild, created under the configured category if missing."""
    guild = bot.get_guild(config.DISCORD_GUILD_ID) or await bot.fetch_guild(config.DISCORD_GUILD_ID)
    channel = discord.utils.get(guild.text_channels, name=name)
    if channel:
        return channel
    category = guild.get_channel(config.DISCORD_CATEGORY_ID) if config.DISCORD_CATEGORY_ID else None
    logger.info("Creating channel #%s in guild %s", name, guild.id)
    return await guild.create_text_channel(name, category=category, reason="Tournament channel")


async def _find_summary_message(
    bot: discord.Client, channel: discord.TextChannel, summary: dict[str, Any]
) -> Optional[discord.Message]:
    ref = summary.get("external_message_ref")
    if ref:
        try:
            return await channel.fetch_message(int(ref))
        except (discord.NotFound, ValueError):
            logger.info("Summary message %s of tournament %s is gone, posting a new one", ref, summary["id"])
    footer = f"Tournament ID: {summary['id']}"
    async for message in channel.history(limit=HISTORY_LIMIT):
        if message.author != bot.user or not message.embeds:
            continue
        embed = message.embeds[0]
        if embed.footer and embed.footer.text == footer and not (embed.title or "").startswith("⭐"):
            return message
    return None


async def sync_summary(bot: discord.Client, summary: dict[str, Any]) -> discord.Message:
    """Edit the tournament's summary card in place, or post it."""
    channel = await find_or_create_channel(bot, summary["discord_channel_name"])
    embed = build_summary_embed(summary)
    message = await _find_summary_message(bot, channel, summary)
    if message:
        await message.edit(embed=embed)
        return message
    return await channel.send(embed=embed)


async def announce_mvp(bot: discord.Client, summary: dict[str, Any]) -> discord.Message:
    channel = await find_or_create_channel(bot, summary["discord_channel_name"])
    return await channel.send(embed=build_mvp_embed(summary))


async def _handle_tournament_event(request: aiohttp.web.Request) -> aiohttp.web.Response:
    """POST /internal/tournament-event - {"event": ..., "tournament": {...}} from the web API."""
    auth = request.headers.get("Authorization")
    if not config.INTERNAL_API_SECRET:
        logger.warning("INTERNAL_API_SECRET not set - rejecting tournament event")
        return aiohttp.web.json_response({"error": "Internal API not configured"}, status=503)
    if auth != f"Bearer {config.INTERNAL_API_SECRET}":
        return aiohttp.web.json_response({"error": "Unauthorized"}, status=401)

    try:
        body = await request.json()
    except ValueError:
        return aiohttp.web.json_response({"error": "Invalid JSON"}, status=400)

    event = body.get("event")
    summary = body.get("tournament")
    if event not in (EVENT_SYNC, EVENT_MVP) or not isinstance(summary, dict):
        return aiohttp.web.json_response({"error": "event and tournament required"}, status=400)
    if not summary.get("discord_channel_name"):
        return aiohttp.web.json_response({"error": "Tournament has no channel"}, status=400)

    bot = request.app["bot"]
    try:
        if event == EVENT_SYNC:
            message = await sync_summary(bot, summary)
        else:
            message = await announce_mvp(bot, summary)
    except discord.HTTPException as e:
        logger.exception("Failed to relay %s for tournament %s", event, summary.get("id"))
        return aiohttp.web.json_response(
            {"error": f"Discord rejected the message: {e}. Check bot permissions (Manage Channels, Send Messages, Embed Links)."},
            status=502,
        )
    return aiohttp.web.json_response({"ok": True, "message_id": str(message.id)})


def create_app(bot) -> aiohttp.web.Application:
    """Create aiohttp app with bot reference."""
    app = aiohttp.web.Application()
    app["bot"] = bot
    app.router.add_post("/internal/tournament-event", _handle_tournament_event)
    return app


async def start_http_server(bot, host: str = "0.0.0.0", port: int = 8001) -> Optional[aiohttp.web.AppRunner]:
    """Start the internal HTTP server (run alongside the bot). Returns the runner for cleanup."""
    if not config.INTERNAL_API_SECRET:
        logger.info("INTERNAL_API_SECRET not set - skipping internal HTTP server")
        return None
    app = create_app(bot)
    runner = aiohttp.web.AppRunner(app)
    await runner.setup()
    site = aiohttp.web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Internal HTTP server listening on %s:%d", host, port)
    return runner
