"""Program and stream URL resolution.

Live programs are played from the CDN mount of their channel: the
per-program audio assets of the schedule are unreliable for live streams,
so a live program never plays an on-demand asset.
"""

from datetime import datetime
from typing import Iterable, Optional

from loguru import logger

from .exceptions import StreamResolutionError
from .models import Channel, Program

DEFAULT_STREAM_BASE_URL = "https://live-icy.gss.dr.dk"

# Channel slug -> CDN mount name
FALLBACK_STREAM_MOUNTS = {
    "p1": "AACP1",
    "p2": "AACP2",
    "p3": "AACP3",
    "p4kbh": "AACP4KBH",
    "p4fyn": "AACP4FYN",
    "p4sjaelland": "AACP4SJAEL",
    "p4bornholm": "AACP4BORNH",
    "p4trekanten": "AACP4TREK",
    "p4vest": "AACP4VEST",
    "p4syd": "AACP4SYD",
    "p4nord": "AACP4NORD",
    "p4aarhus": "AACP4AARHUS",
    "p5bornholm": "AACP5BORNHOLM",
    "p5esbjerg": "AACP5ESBJERG",
    "p5fyn": "AACP5FYN",
    "p5kbh": "AACP5KBH",
    "p5vest": "AACP5VEST",
    "p5nord": "AACP5NORD",
    "p5sjaelland": "AACP5SJAELLAND",
    "p5syd": "AACP5SYD",
    "p5trekanten": "AACP5TREKANTEN",
    "p5aarhus": "AACP5AARHUS",
    "p6beat": "AACP6BEAT",
    "p8jazz": "AACP8JAZZ",
}


def slug_stream_url(
    slug: str, stream_base_url: str = DEFAULT_STREAM_BASE_URL
) -> Optional[str]:
    """Stream URL synthesized from the slug pattern alone."""
    if not slug:
        return None
    return f"{stream_base_url}/AAC{slug.upper()}"


def fallback_stream_url(
    slug: str, stream_base_url: str = DEFAULT_STREAM_BASE_URL
) -> Optional[str]:
    """Live stream URL of a channel slug from the mount table.

    Unknown slugs fall back to the slug pattern.
    """
    mount = FALLBACK_STREAM_MOUNTS.get(slug.lower()) if slug else None
    if mount:
        return f"{stream_base_url}/{mount}"
    return slug_stream_url(slug, stream_base_url)


def stream_url(
    program: Program, stream_base_url: str = DEFAULT_STREAM_BASE_URL
) -> Optional[str]:
    """Best playable URL for a program.

    Priority: a live audio asset; for live programs the channel fallback;
    otherwise a "Stream" asset, a "Progressive" asset, then any asset.
    """
    assets = program.audio_assets
    if not assets:
        return fallback_stream_url(program.channel.slug, stream_base_url)

    for asset in assets:
        if asset.is_stream_live is True and asset.url:
            return asset.url

    if program.is_live:
        return fallback_stream_url(program.channel.slug, stream_base_url)

    for target in ("Stream", "Progressive"):
        for asset in assets:
            if asset.target == target and asset.url:
                return asset.url

    return assets[0].url or None


def current_program(
    channel: Channel, programs: Iterable[Program], now: datetime
) -> Optional[Program]:
    """The channel's program on air at ``now``.

    Windows include their end, so at a boundary where one program ends and
    the next starts both match; the one that started latest wins. Falls back
    to the channel's first cached program when none is on air, and to None
    when the channel has no cached programs.
    """
    channel_programs = [p for p in programs if p.channel.id == channel.id]
    on_air = [p for p in channel_programs if p.is_currently_playing(now)]
    if on_air:
        return max(on_air, key=lambda p: p.start_time)
    return channel_programs[0] if channel_programs else None


def resolve_channel_stream(
    channel: Channel,
    programs: Iterable[Program],
    now: datetime,
    stream_base_url: str = DEFAULT_STREAM_BASE_URL,
) -> str:
    """Stream URL for a channel: current program, any cached program, slug pattern.

    Raises:
        StreamResolutionError: If every step of the chain comes up empty
    """
    channel_programs = [p for p in programs if p.channel.id == channel.id]

    program = current_program(channel, channel_programs, now)
    url = stream_url(program, stream_base_url) if program else None

    if url is None and channel_programs:
        url = stream_url(channel_programs[0], stream_base_url)

    if url is None:
        url = slug_stream_url(channel.slug, stream_base_url)

    if url is None:
        logger.warning(f"No stream URL for channel {channel.id} ({channel.title!r})")
        raise StreamResolutionError(channel.title)

    return url
