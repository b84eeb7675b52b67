"""Application context for explicit service wiring.

This module provides the AppContext dataclass that owns every long-lived
service of a listening session. Services are constructed once here and
passed explicitly; nothing is looked up through module globals.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console

from lytter.core.config import Config
from lytter.core.console import get_console
from lytter.domain.playback.player import STATUS_POLL_SECONDS, MpvAudioOutput
from lytter.domain.radio.api import DRRadioClient
from lytter.domain.radio.preferences import PreferenceStore
from lytter.domain.radio.schedule import ScheduleRepository
from lytter.domain.radio.session import PlaybackSession, SessionSettings
from lytter.domain.radio.timers import ScheduledTask, ThreadTimerScheduler
from lytter.notifications import DesktopNowPlaying

FETCH_WORKERS = 4


def session_settings(config: Config) -> SessionSettings:
    """SessionSettings from the [api], [schedule], [tracks] and [preferences] sections."""
    return SessionSettings(
        stream_base_url=config.api.stream_base_url,
        program_refresh_interval=timedelta(
            seconds=config.schedule.program_refresh_seconds
        ),
        track_poll_interval=timedelta(seconds=config.tracks.poll_interval_seconds),
        track_end_buffer=timedelta(seconds=config.tracks.end_buffer_seconds),
        restore_within_hours=config.preferences.restore_within_hours,
    )


@dataclass
class AppContext:
    """Services of one application session.

    Attributes:
        config: Application configuration
        client: DR radio HTTP client
        repository: Cached schedule
        preferences: Last played channel store
        audio: MPV audio output
        now_playing: Desktop now-playing notifier
        session: Playback session controller
        console: Rich Console for formatted output
        status_poll: Timer that polls the audio output for stream failures
    """

    config: Config
    client: DRRadioClient
    repository: ScheduleRepository
    preferences: PreferenceStore
    audio: MpvAudioOutput
    now_playing: DesktopNowPlaying
    session: PlaybackSession
    console: Console
    status_poll: Optional[ScheduledTask] = field(default=None, repr=False)

    @classmethod
    def create(
        cls,
        config: Config,
        console: Optional[Console] = None,
        db_path: Optional[Path] = None,
    ) -> "AppContext":
        """Build the full service graph for ``config``."""
        client = DRRadioClient(config.api)
        repository = ScheduleRepository(
            client, cache_ttl=timedelta(seconds=config.schedule.cache_ttl_seconds)
        )
        preferences = PreferenceStore(db_path)
        audio = MpvAudioOutput(config.player)
        now_playing = DesktopNowPlaying(
            config.notifications, asset_base_url=config.api.asset_base_url
        )
        scheduler = ThreadTimerScheduler()
        session = PlaybackSession(
            repository,
            client,
            audio,
            now_playing,
            preferences,
            scheduler,
            ThreadPoolExecutor(max_workers=FETCH_WORKERS, thread_name_prefix="lytter"),
            settings=session_settings(config),
        )
        status_poll = scheduler.call_every(
            STATUS_POLL_SECONDS, audio.refresh_status, name="audio-status"
        )
        logger.debug("Application context created")
        return cls(
            config=config,
            client=client,
            repository=repository,
            preferences=preferences,
            audio=audio,
            now_playing=now_playing,
            session=session,
            console=console or get_console(),
            status_poll=status_poll,
        )

    def close(self) -> None:
        """Stop background work, the audio process and the HTTP session."""
        if self.status_poll is not None:
            self.status_poll.cancel()
        self.session.close()
        self.audio.shutdown()
        self.client.close()
        logger.debug("Application context closed")
