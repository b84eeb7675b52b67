"""Playback domain - MPV integration.

This domain handles:
- MPV player integration via JSON IPC
- The AudioOutput adapter driven by the radio session
"""

from .player import (
    MpvAudioOutput,
    PlayerState,
    check_mpv_available,
    get_mpv_property,
    is_mpv_running,
    send_mpv_command,
    start_mpv,
    stop_mpv,
)

__all__ = [
    "MpvAudioOutput",
    "PlayerState",
    "check_mpv_available",
    "get_mpv_property",
    "is_mpv_running",
    "send_mpv_command",
    "start_mpv",
    "stop_mpv",
]
