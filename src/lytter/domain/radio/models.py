"""
Radio domain models.

Contains data structures for channels, on-air programs, currently playing
tracks, and the immutable playback state snapshots published by the
playback session.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

# Role name the API uses for a track's main artist
MAIN_ARTIST_ROLE = "Hovedkunstner"

LANDSCAPE_RATIOS = ("16:9", "4:3", "3:2", "5:3")
SQUARE_RATIOS = ("1:1", "square")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Naive timestamps are taken as UTC. Returns None for missing or
    unparsable values.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, eq=False)
class Channel:
    """A broadcast stream identity, e.g. "P1" or "P4 København".

    Two channels are equal when their ids match, whatever their titles.
    """

    id: str
    title: str
    slug: str
    type: str = "Channel"
    presentation_url: Optional[str] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Channel):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def name(self) -> str:
        """Channel name: the title up to the first space."""
        return self.title.split(" ", 1)[0]

    @property
    def district(self) -> Optional[str]:
        """Regional qualifier after the first space, if any."""
        parts = self.title.split(" ", 1)
        return parts[1] if len(parts) > 1 else None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Channel":
        return cls(
            id=data.get("id") or "",
            title=data.get("title") or "",
            slug=data.get("slug") or "",
            type=data.get("type") or "Channel",
            presentation_url=data.get("presentationUrl"),
        )


@dataclass(frozen=True)
class AudioAsset:
    """A playable rendition of a program."""

    type: str
    target: str  # 'Stream' | 'Progressive' | ...
    format: str
    url: str
    is_stream_live: Optional[bool] = None
    bitrate: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AudioAsset":
        return cls(
            type=data.get("type") or "",
            target=data.get("target") or "",
            format=data.get("format") or "",
            url=data.get("url") or "",
            is_stream_live=data.get("isStreamLive"),
            bitrate=data.get("bitrate"),
        )


@dataclass(frozen=True)
class ImageAsset:
    """An image reference; the image itself lives under the asset base URL."""

    id: str
    target: str
    ratio: str
    format: str = ""
    blur_hash: Optional[str] = None

    def image_url(self, asset_base_url: str) -> str:
        return f"{asset_base_url}/{self.id}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageAsset":
        return cls(
            id=data.get("id") or "",
            target=data.get("target") or "",
            ratio=data.get("ratio") or "",
            format=data.get("format") or "",
            blur_hash=data.get("blurHash"),
        )


@dataclass(frozen=True)
class Program:
    """An on-air episode of a channel, as pulled from a schedule fetch.

    Programs are immutable snapshots; a new fetch replaces them wholesale.
    """

    id: str
    type: str
    channel: Channel
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    title: str
    learn_id: str = ""
    duration_ms: int = 0
    description: Optional[str] = None
    categories: tuple[str, ...] = ()
    audio_assets: tuple[AudioAsset, ...] = ()
    image_assets: tuple[ImageAsset, ...] = ()
    slug: str = ""
    series_title: Optional[str] = None
    presentation_url: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.type == "Live"

    @property
    def identity(self) -> Any:
        """Key used to decide whether the current program changed.

        Items without an upstream id all decode to an empty id, so those
        fall back to channel, time slot and title.
        """
        if self.id:
            return self.id
        return (self.channel.id, self.start_time, self.end_time, self.title)

    def is_currently_playing(self, now: datetime) -> bool:
        if self.start_time is None or self.end_time is None:
            return False
        return self.start_time <= now <= self.end_time

    def clean_title(self) -> str:
        """Program title with the channel slug and title removed."""
        title = self.title
        for needle in (self.channel.slug, self.channel.title):
            if needle:
                title = re.sub(re.escape(needle), "", title, flags=re.IGNORECASE)
        title = title.replace("  ", " ").replace(" - ", " ").replace(" | ", " ")
        title = title.strip()
        return title or self.title

    def square_image_url(self, asset_base_url: str) -> Optional[str]:
        for asset in self.image_assets:
            if asset.target == "SquareImage":
                return asset.image_url(asset_base_url)
        return None

    def primary_image_url(self, asset_base_url: str) -> Optional[str]:
        if not self.image_assets:
            return None
        for asset in self.image_assets:
            if asset.ratio in SQUARE_RATIOS:
                return asset.image_url(asset_base_url)
        return self.image_assets[0].image_url(asset_base_url)

    def landscape_image_url(self, asset_base_url: str) -> Optional[str]:
        if not self.image_assets:
            return None
        for ratio in LANDSCAPE_RATIOS:
            for asset in self.image_assets:
                if asset.ratio == ratio:
                    return asset.image_url(asset_base_url)
        for asset in self.image_assets:
            if asset.ratio not in SQUARE_RATIOS:
                return asset.image_url(asset_base_url)
        return self.primary_image_url(asset_base_url)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Program":
        """Decode a schedule item.

        Handles both the all-channels "now" items (identity in ``learnId``,
        title optional) and full episode items from a channel snapshot.

        Raises:
            ValueError: If the item has no channel object
        """
        channel_data = data.get("channel")
        if not isinstance(channel_data, dict):
            raise ValueError("schedule item has no channel")
        channel = Channel.from_dict(channel_data)

        series = data.get("series") if isinstance(data.get("series"), dict) else None
        series_title = series.get("title") if series else None
        learn_id = data.get("learnId") or ""

        return cls(
            id=data.get("id") or learn_id,
            learn_id=learn_id,
            type=data.get("type") or "",
            channel=channel,
            start_time=parse_timestamp(data.get("startTime")),
            end_time=parse_timestamp(data.get("endTime")),
            duration_ms=int(data.get("durationMilliseconds") or 0),
            title=data.get("title") or series_title or channel.title,
            description=data.get("description"),
            categories=tuple(data.get("categories") or ()),
            audio_assets=tuple(
                AudioAsset.from_dict(a)
                for a in data.get("audioAssets") or ()
                if isinstance(a, dict)
            ),
            image_assets=tuple(
                ImageAsset.from_dict(i)
                for i in data.get("imageAssets") or ()
                if isinstance(i, dict)
            ),
            slug=data.get("slug") or (series.get("slug") if series else None) or channel.slug,
            series_title=series_title,
            presentation_url=data.get("presentationUrl"),
        )


@dataclass(frozen=True)
class TrackRole:
    """A credited person on a track."""

    role: str
    name: str
    artist_urn: str = ""
    music_url: str = ""


@dataclass(frozen=True)
class Track:
    """A song identified as currently playing within a program."""

    track_urn: str
    played_at: Optional[datetime]
    duration_seconds: int
    title: str
    description: str = ""
    roles: tuple[TrackRole, ...] = ()
    type: str = ""
    music_url: str = ""
    classical: bool = False

    @property
    def id(self) -> str:
        return self.track_urn

    @property
    def end_time(self) -> Optional[datetime]:
        if self.played_at is None:
            return None
        return self.played_at + timedelta(seconds=self.duration_seconds)

    @property
    def artist_name(self) -> str:
        for role in self.roles:
            if role.role == MAIN_ARTIST_ROLE:
                return role.name
        return self.description

    @property
    def display_text(self) -> str:
        return f"{self.artist_name}: {self.title}"

    def is_currently_playing(self, now: datetime) -> bool:
        end_time = self.end_time
        if self.played_at is None or end_time is None:
            return False
        return self.played_at <= now <= end_time

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        return cls(
            track_urn=data.get("trackUrn") or "",
            played_at=parse_timestamp(data.get("playedTime")),
            duration_seconds=int(data.get("durationMilliseconds") or 0) // 1000,
            title=data.get("title") or "",
            description=data.get("description") or "",
            roles=tuple(
                TrackRole(
                    role=r.get("role") or "",
                    name=r.get("name") or "",
                    artist_urn=r.get("artistUrn") or "",
                    music_url=r.get("musicUrl") or "",
                )
                for r in data.get("roles") or ()
                if isinstance(r, dict)
            ),
            type=data.get("type") or "",
            music_url=data.get("musicUrl") or "",
            classical=bool(data.get("classical", False)),
        )


@dataclass(frozen=True)
class ChannelGroup:
    """Channels sharing a name, e.g. all regional P4 channels."""

    name: str
    channels: tuple[Channel, ...]

    @property
    def is_regional(self) -> bool:
        return len(self.channels) > 1


@dataclass(frozen=True)
class PlaybackState:
    """What is playing right now.

    ``current_program`` always belongs to ``playing_channel`` and
    ``current_track`` was always fetched for it.
    """

    playing_channel: Optional[Channel] = None
    current_program: Optional[Program] = None
    current_track: Optional[Track] = None
    is_playing: bool = False
    playback_error: Optional[str] = None


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot published to session observers.

    ``error`` is the channel-list load error; playback problems live in
    ``playback.playback_error``.
    """

    available_channels: tuple[Channel, ...] = ()
    is_loading: bool = False
    error: Optional[str] = None
    playback: PlaybackState = field(default_factory=PlaybackState)
