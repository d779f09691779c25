"""Clip URL normalization: only video hosts we can embed are accepted."""
from __future__ import annotations

import re
from urllib.parse import parse_qs, quote, urlparse

import config
from scrim.errors import UnsupportedMedia

YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com"}
YOUTUBE_EMBED_HOSTS = {"youtube-nocookie.com", "www.youtube-nocookie.com"}
YOUTUBE_SHORT_HOST = "youtu.be"
TWITCH_CLIP_HOST = "clips.twitch.tv"
TWITCH_HOSTS = {"twitch.tv", "www.twitch.tv", "m.twitch.tv"}

_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{6,}$")
_CLIP_SLUG = re.compile(r"^[A-Za-z0-9_-]+$")


def youtube_embed(video_id: str) -> str:
    return f"https://www.youtube-nocookie.com/embed/{video_id}"


def twitch_embed(slug: str, parent: str | None = None) -> str:
    parent = parent or config.TWITCH_PARENT_DOMAIN
    return f"https://clips.twitch.tv/embed?clip={slug}&parent={quote(parent)}"


def _youtube_id(host: str, path: str, query: str) -> str | None:
    parts = [p for p in path.split("/") if p]
    if host == YOUTUBE_SHORT_HOST:
        return parts[0] if parts else None
    if host in YOUTUBE_EMBED_HOSTS:
        return parts[1] if len(parts) >= 2 and parts[0] == "embed" else None
    if parts == ["watch"]:
        return (parse_qs(query).get("v") or [None])[0]
    if len(parts) >= 2 and parts[0] in ("shorts", "embed", "live"):
        return parts[1]
    return None


def _twitch_slug(host: str, path: str, query: str) -> str | None:
    parts = [p for p in path.split("/") if p]
    if host == TWITCH_CLIP_HOST:
        if parts == ["embed"]:
            return (parse_qs(query).get("clip") or [None])[0]
        return parts[0] if len(parts) == 1 else None
    # https://www.twitch.tv/<channel>/clip/<slug>
    if len(parts) == 3 and parts[1] == "clip":
        return parts[2]
    return None


def normalize_clip_url(raw_url: str, twitch_parent: str | None = None) -> str:
    """Return the embeddable form of a YouTube or Twitch clip URL.

    Raises UnsupportedMedia for any other host or an unrecognizable path.
    """
    url = (raw_url or "").strip()
    if url and "://" not in url:
        url = "https://" + url
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise UnsupportedMedia(raw_url)
    host = (parsed.hostname or "").lower()

    if host in YOUTUBE_HOSTS or host in YOUTUBE_EMBED_HOSTS or host == YOUTUBE_SHORT_HOST:
        video_id = _youtube_id(host, parsed.path, parsed.query)
        if video_id and _VIDEO_ID.match(video_id):
            return youtube_embed(video_id)
    elif host == TWITCH_CLIP_HOST or host in TWITCH_HOSTS:
        slug = _twitch_slug(host, parsed.path, parsed.query)
        if slug and _CLIP_SLUG.match(slug):
            return twitch_embed(slug, twitch_parent)

    raise UnsupportedMedia(raw_url)
