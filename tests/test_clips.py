"""Tests for clip URL normalization."""
import pytest

from scrim.errors import UnsupportedMedia
from scrim.services.clips import normalize_clip_url


@pytest.mark.parametrize(
    "raw",
    [
        "https://youtu.be/abc123",
        "https://www.youtube.com/watch?v=abc123",
        "https://www.youtube.com/watch?v=abc123&t=42s",
        "https://youtube.com/shorts/abc123",
        "https://m.youtube.com/watch?v=abc123",
        "youtu.be/abc123",
        "https://www.youtube-nocookie.com/embed/abc123",
    ],
)
def test_youtube_links_become_nocookie_embeds(raw):
    assert normalize_clip_url(raw) == "https://www.youtube-nocookie.com/embed/abc123"


@pytest.mark.parametrize(
    "raw",
    [
        "https://clips.twitch.tv/FunnySlugHere-abc",
        "https://www.twitch.tv/somechannel/clip/FunnySlugHere-abc",
        "https://clips.twitch.tv/embed?clip=FunnySlugHere-abc&parent=other.site",
    ],
)
def test_twitch_clips_get_parent_domain(raw):
    assert (
        normalize_clip_url(raw, twitch_parent="scrim.gg")
        == "https://clips.twitch.tv/embed?clip=FunnySlugHere-abc&parent=scrim.gg"
    )


@pytest.mark.parametrize(
    "raw",
    [
        "https://vimeo.com/123456",
        "https://www.youtube.com/channel/UCabcdef",
        "https://www.twitch.tv/somechannel",
        "ftp://youtu.be/abc123",
        "https://youtu.be/",
        "",
    ],
)
def test_other_urls_rejected(raw):
    with pytest.raises(UnsupportedMedia):
        normalize_clip_url(raw)
