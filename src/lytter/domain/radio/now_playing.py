"""Now-playing metadata for media-remote style consumers."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from .models import Channel, Program, Track

DEFAULT_ALBUM = "DR Radio"


@dataclass(frozen=True)
class NowPlayingInfo:
    """Title / artist / album triple as shown by lock-screen style widgets."""

    title: str
    artist: str
    album: str
    image_url: Optional[str] = None
    is_live: bool = True


class NowPlayingCenter(Protocol):
    """Consumer of channel/program/track state (notifications, remotes)."""

    def update_info(
        self, channel: Channel, program: Optional[Program], track: Optional[Track]
    ) -> None: ...

    def clear_info(self) -> None: ...

    def update_playback_state(self, is_playing: bool) -> None: ...


def build_now_playing_info(
    channel: Channel,
    program: Optional[Program],
    track: Optional[Track],
    now: datetime,
    asset_base_url: Optional[str] = None,
) -> NowPlayingInfo:
    """Compose what a now-playing display shows.

    A song on air shows the song as artist; otherwise the program; with
    neither, only the channel.
    """
    image_url = (
        program.primary_image_url(asset_base_url)
        if program is not None and asset_base_url
        else None
    )

    if track is not None and track.is_currently_playing(now):
        program_title = program.clean_title() if program is not None else ""
        return NowPlayingInfo(
            title=f"{channel.title} - {program_title}",
            artist=track.display_text,
            album=program_title or DEFAULT_ALBUM,
            image_url=image_url,
        )

    if program is not None:
        return NowPlayingInfo(
            title=channel.title,
            artist=program.clean_title(),
            album=DEFAULT_ALBUM,
            image_url=image_url,
        )

    return NowPlayingInfo(title=channel.title, artist=DEFAULT_ALBUM, album="Live")
