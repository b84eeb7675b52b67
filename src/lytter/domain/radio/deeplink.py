"""Channel deep links (``lyt:///channel/<id>``)."""

from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

from loguru import logger

from .models import Channel
from .session import PlaybackSession

CHANNEL_LINK_SCHEMES = ("lyt", "lytter")


def channel_link(channel: Channel) -> str:
    return f"lyt:///channel/{channel.id}"


def parse_channel_link(url: str) -> Optional[str]:
    """Channel id of a deep link, or None if ``url`` is not one.

    Accepted forms: ``lyt:///channel/<id>`` and ``lytter://radio/channel/<id>``.
    """
    parsed = urlparse(url.strip())
    if parsed.scheme.lower() not in CHANNEL_LINK_SCHEMES:
        return None

    parts = [p for p in parsed.path.split("/") if p]
    if parsed.netloc and parsed.netloc != "radio":
        parts.insert(0, parsed.netloc)

    if len(parts) != 2 or parts[0] != "channel":
        return None
    return unquote(parts[1]) or None


def _match(channels: Iterable[Channel], channel_id: str) -> Optional[Channel]:
    for channel in channels:
        if channel.id == channel_id or channel.slug == channel_id:
            return channel
    return None


def open_channel_link(session: PlaybackSession, url: str) -> Optional[Channel]:
    """Play the channel a deep link points to.

    Loads the channel list once if the channel is not known yet.

    Returns:
        The channel that started playing, or None
    """
    channel_id = parse_channel_link(url)
    if channel_id is None:
        logger.warning(f"Not a channel link: {url}")
        return None

    channel = _match(session.state.available_channels, channel_id)
    if channel is None:
        session.load_channels()
        channel = _match(session.state.available_channels, channel_id)

    if channel is None:
        logger.warning(f"Channel {channel_id} from link not found")
        return None

    session.play_channel(channel)
    return channel
