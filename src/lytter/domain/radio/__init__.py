"""
Radio domain module.

Live DR radio: channel and program schedules with a time-bounded cache,
stream URL resolution, schedule-aware now-playing track polling and the
playback session that keeps all of it consistent.
"""

from .api import DRRadioClient
from .deeplink import channel_link, open_channel_link, parse_channel_link
from .exceptions import (
    DecodingError,
    InvalidResponseError,
    InvalidURLError,
    NetworkError,
    NoConnectionError,
    RadioError,
    RequestTimeoutError,
    ServerError,
    StreamResolutionError,
)
from .models import (
    AudioAsset,
    Channel,
    ChannelGroup,
    ImageAsset,
    PlaybackState,
    Program,
    SessionState,
    Track,
    TrackRole,
)
from .now_playing import NowPlayingCenter, NowPlayingInfo, build_now_playing_info
from .preferences import PreferenceStore
from .schedule import (
    ScheduleRepository,
    consolidate_channels,
    find_channel,
    group_channels,
)
from .session import AudioOutput, PlaybackSession, SessionSettings, StateStore
from .stream_resolver import current_program, resolve_channel_stream, stream_url
from .timers import ThreadTimerScheduler
from .tracks import TrackPollScheduler

__all__ = [
    # Models
    "AudioAsset",
    "Channel",
    "ChannelGroup",
    "ImageAsset",
    "PlaybackState",
    "Program",
    "SessionState",
    "Track",
    "TrackRole",
    # Errors
    "RadioError",
    "NetworkError",
    "InvalidResponseError",
    "ServerError",
    "DecodingError",
    "InvalidURLError",
    "NoConnectionError",
    "RequestTimeoutError",
    "StreamResolutionError",
    # Schedule
    "DRRadioClient",
    "ScheduleRepository",
    "consolidate_channels",
    "group_channels",
    "find_channel",
    # Resolution
    "current_program",
    "resolve_channel_stream",
    "stream_url",
    # Tracks
    "TrackPollScheduler",
    "ThreadTimerScheduler",
    # Session
    "AudioOutput",
    "PlaybackSession",
    "SessionSettings",
    "StateStore",
    "PreferenceStore",
    "NowPlayingCenter",
    "NowPlayingInfo",
    "build_now_playing_info",
    # Deep links
    "channel_link",
    "parse_channel_link",
    "open_channel_link",
]
