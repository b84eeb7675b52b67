"""Desktop notification helpers for Lytter."""

import shutil
import subprocess
import threading
from typing import Literal, Optional

from loguru import logger

from lytter.core.config import NotificationsConfig
from lytter.domain.radio.models import Channel, Program, Track
from lytter.domain.radio.now_playing import NowPlayingInfo, build_now_playing_info
from lytter.domain.radio.timers import Clock, utc_now

APP_NAME = "Lytter"


def notify(
    title: str, message: str, urgency: Literal["low", "normal", "critical"] = "normal"
) -> None:
    """
    Show a desktop notification using notify-send.

    Args:
        title: Notification title
        message: Notification message body
        urgency: Urgency level ('low', 'normal', 'critical')

    Note:
        Skips the notification if notify-send is not available.
    """
    if not shutil.which("notify-send"):
        return

    try:
        subprocess.run(
            ["notify-send", "--urgency", urgency, "--app-name", APP_NAME, title, message],
            check=False,
            timeout=2.0,
            capture_output=True,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"notify-send failed: {e}")


class DesktopNowPlaying:
    """NowPlayingCenter that shows what is on air as desktop notifications.

    A notification is only sent when the composed text changes, so repeated
    updates for the same song or program stay quiet.
    """

    def __init__(
        self,
        config: NotificationsConfig,
        asset_base_url: Optional[str] = None,
        clock: Clock = utc_now,
        background: bool = True,
    ) -> None:
        self._config = config
        self._asset_base_url = asset_base_url
        self._clock = clock
        self._background = background
        self._last_info: Optional[NowPlayingInfo] = None
        self.is_playing = False

    @property
    def info(self) -> Optional[NowPlayingInfo]:
        return self._last_info

    def update_info(
        self, channel: Channel, program: Optional[Program], track: Optional[Track]
    ) -> None:
        info = build_now_playing_info(
            channel, program, track, self._clock(), self._asset_base_url
        )
        if info == self._last_info:
            return
        self._last_info = info

        if not self._config.enabled:
            return
        if track is not None and not self._config.show_tracks:
            return
        self._send(info.title, f"{info.artist}\n{info.album}")

    def clear_info(self) -> None:
        self._last_info = None

    def update_playback_state(self, is_playing: bool) -> None:
        self.is_playing = is_playing

    def _send(self, title: str, message: str) -> None:
        if not self._background:
            notify(title, message, urgency="low")
            return
        threading.Thread(
            target=notify, args=(title, message, "low"), name="notify", daemon=True
        ).start()
