"""
Playback session: the single owner of channel, program and track state.

Every mutation happens under one re-entrant lock and is published to
observers as an immutable SessionState snapshot, so a reader never sees
a channel paired with another channel's program or track. Network work
(schedule fetches, track polls) runs on background threads without the
lock and re-checks that its channel is still playing before applying.
"""

import threading
from concurrent.futures import Executor
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Callable, Iterable, Optional, Protocol

from loguru import logger

from .exceptions import NetworkError, StreamResolutionError
from .models import Channel, SessionState, Track
from .now_playing import NowPlayingCenter
from .schedule import ScheduleRepository, find_channel
from .stream_resolver import (
    DEFAULT_STREAM_BASE_URL,
    current_program,
    resolve_channel_stream,
)
from .timers import Clock, ScheduledTask, TaskScheduler, utc_now
from .tracks import END_BUFFER, POLL_INTERVAL, TrackPollScheduler, TrackSource

StateListener = Callable[[SessionState], None]
AudioListener = Callable[[bool, Optional[str]], None]


class AudioOutput(Protocol):
    """Audio engine that plays stream URLs and reports its status."""

    def play(self, url: str) -> None: ...
    def pause(self) -> None: ...
    def resume(self) -> None: ...
    def stop(self) -> None: ...
    def seek(self, seconds: float) -> None: ...
    def add_listener(self, listener: AudioListener) -> None: ...


class LastPlayedStore(Protocol):
    """Persistence for the last played channel."""

    def save_last_played_channel(self, channel: Channel) -> None: ...
    def find_last_played_channel(self, channels: Iterable[Channel]) -> Optional[Channel]: ...
    def is_last_played_recent(self, within_hours: int = 24) -> bool: ...


@dataclass(frozen=True)
class SessionSettings:
    """Tunables of a playback session."""

    stream_base_url: str = DEFAULT_STREAM_BASE_URL
    program_refresh_interval: timedelta = timedelta(minutes=5)
    track_poll_interval: timedelta = POLL_INTERVAL
    track_end_buffer: timedelta = END_BUFFER
    restore_within_hours: int = 24


class StateStore:
    """Holds the current SessionState and notifies subscribers of every change."""

    def __init__(self, initial: Optional[SessionState] = None) -> None:
        self.lock = threading.RLock()
        self._state = initial or SessionState()
        self._listeners: list[StateListener] = []

    @property
    def snapshot(self) -> SessionState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        with self.lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes) -> SessionState:
        """Replace top-level fields and publish the new snapshot."""
        with self.lock:
            self._state = replace(self._state, **changes)
            self._publish(self._state)
            return self._state

    def update_playback(self, **changes) -> SessionState:
        """Replace playback fields and publish the new snapshot."""
        with self.lock:
            playback = replace(self._state.playback, **changes)
            self._state = replace(self._state, playback=playback)
            self._publish(self._state)
            return self._state

    def _publish(self, state: SessionState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener failed")


class PlaybackSession:
    """Coordinates channel selection, playback and now-playing state.

    Constructed once per application session with its collaborators:
    the schedule repository, a track source, the audio output, a
    now-playing consumer and the last-played store.
    """

    def __init__(
        self,
        repository: ScheduleRepository,
        track_source: TrackSource,
        audio: AudioOutput,
        now_playing: NowPlayingCenter,
        preferences: LastPlayedStore,
        scheduler: TaskScheduler,
        executor: Executor,
        clock: Clock = utc_now,
        settings: Optional[SessionSettings] = None,
    ) -> None:
        self._repository = repository
        self._audio = audio
        self._now_playing = now_playing
        self._preferences = preferences
        self._scheduler = scheduler
        self._executor = executor
        self._clock = clock
        self._settings = settings or SessionSettings()

        self._store = StateStore()
        self._refresh_task: Optional[ScheduledTask] = None
        self._stream_url: Optional[str] = None

        self._tracks = TrackPollScheduler(
            track_source,
            scheduler,
            executor,
            is_current=self._is_current_channel,
            on_track=self._apply_track,
            clock=clock,
            poll_interval=self._settings.track_poll_interval,
            end_buffer=self._settings.track_end_buffer,
        )
        self._audio.add_listener(self.on_audio_status)

    # ---- observation -------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._store.snapshot

    @property
    def tracks(self) -> TrackPollScheduler:
        return self._tracks

    @property
    def active_stream_url(self) -> Optional[str]:
        return self._stream_url

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._store.subscribe(listener)

    def find_channel(self, query: str) -> Optional[Channel]:
        return find_channel(self.state.available_channels, query)

    # ---- channel list ------------------------------------------------------

    def load_channels(self) -> list[Channel]:
        """Populate the available channels from the (cached) schedule.

        A failure only sets the channel-list ``error``; playback state is
        left untouched and nothing is retried automatically.
        """
        self._store.update(is_loading=True, error=None)
        try:
            channels = self._repository.get_channels()
        except NetworkError as e:
            logger.warning(f"Loading channels failed: {e}")
            self._store.update(is_loading=False, error=str(e))
            return []

        with self._store.lock:
            self._store.update(available_channels=tuple(channels), is_loading=False)
            self._restore_last_played_channel()
        logger.info(f"Loaded {len(channels)} channels")
        return channels

    def _restore_last_played_channel(self) -> None:
        """Show the last played channel again, without starting audio."""
        state = self.state
        if not state.available_channels or state.playback.playing_channel is not None:
            return

        channel = self._preferences.find_last_played_channel(state.available_channels)
        if channel is None:
            return
        if not self._preferences.is_last_played_recent(self._settings.restore_within_hours):
            return

        program = current_program(
            channel, self._repository.programs_for(channel), self._clock()
        )
        self._store.update_playback(
            playing_channel=channel, current_program=program, current_track=None
        )
        self._publish_now_playing()
        logger.info(f"Restored last played channel {channel.title}")

    # ---- playback ----------------------------------------------------------

    def play_channel(self, channel: Channel) -> None:
        """Switch playback to ``channel``."""
        with self._store.lock:
            now = self._clock()
            programs = self._repository.programs_for(channel)
            try:
                url = resolve_channel_stream(
                    channel, programs, now, self._settings.stream_base_url
                )
            except StreamResolutionError as e:
                self._store.update_playback(playback_error=str(e))
                return

            previous = self.state.playback.playing_channel
            if previous is not None and previous != channel:
                self._tracks.stop()

            self._store.update_playback(
                playing_channel=channel,
                current_program=current_program(channel, programs, now),
                current_track=None,
                playback_error=None,
            )
            self._stream_url = url

            self._tracks.start(channel)
            self._start_program_refresh()
            self._audio.play(url)
            self._save_last_played(channel)
            self._publish_now_playing()
        logger.info(f"Playing {channel.title} from {url}")

    def toggle_playback(self, channel: Channel) -> None:
        """Pause or resume ``channel``, or switch to it when another is playing."""
        with self._store.lock:
            playback = self.state.playback
            if playback.playing_channel != channel or self._stream_url is None:
                # Another channel, or a restored channel that never started
                self.play_channel(channel)
                return

            if playback.is_playing:
                self._audio.pause()
                self._tracks.stop()
                logger.info(f"Paused {channel.title}")
            else:
                self._audio.resume()
                self._tracks.start(channel)
                logger.info(f"Resumed {channel.title}")

    def stop_playback(self) -> None:
        """Stop audio and forget the playing channel."""
        with self._store.lock:
            self._audio.stop()
            self._tracks.stop()
            self._stop_program_refresh()
            self._stream_url = None
            self._store.update_playback(
                playing_channel=None, current_program=None, current_track=None
            )
            try:
                self._now_playing.clear_info()
            except Exception:
                logger.exception("Clearing now-playing info failed")
        logger.info("Playback stopped")

    def clear_playback_error(self) -> None:
        self._store.update_playback(playback_error=None)

    # ---- program refresh ---------------------------------------------------

    def _start_program_refresh(self) -> None:
        self._stop_program_refresh()
        self._refresh_task = self._scheduler.call_every(
            self._settings.program_refresh_interval.total_seconds(),
            self._submit_program_refresh,
            name="program-refresh",
        )

    def _submit_program_refresh(self) -> None:
        self._executor.submit(self._refresh_in_background)

    def _refresh_in_background(self) -> None:
        try:
            self.refresh_current_program()
        except Exception:
            logger.exception("Program refresh failed")

    def _stop_program_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    def refresh_current_program(self) -> None:
        """Re-resolve the playing channel's program; publish only if it changed."""
        channel = self.state.playback.playing_channel
        if channel is None:
            return

        try:
            self._repository.get_programs()
        except NetworkError as e:
            logger.warning(f"Program refresh is using the cached schedule: {e}")

        with self._store.lock:
            playback = self.state.playback
            if playback.playing_channel != channel:
                return

            program = current_program(
                channel, self._repository.programs_for(channel), self._clock()
            )
            old = playback.current_program
            if (program.identity if program else None) == (old.identity if old else None):
                return

            self._store.update_playback(current_program=program)
            self._publish_now_playing()
        logger.info(f"Now on {channel.title}: {program.title if program else '-'}")

    # ---- collaborators -----------------------------------------------------

    def on_audio_status(self, is_playing: bool, error: Optional[str] = None) -> None:
        """Audio output observer: mirror its playing flag and errors."""
        with self._store.lock:
            changes = {}
            if self.state.playback.is_playing != is_playing:
                changes["is_playing"] = is_playing
            if error:
                changes["playback_error"] = error
            if not changes:
                return

            self._store.update_playback(**changes)
            if "is_playing" in changes:
                try:
                    self._now_playing.update_playback_state(is_playing)
                except Exception:
                    logger.exception("Now-playing state update failed")

    def _is_current_channel(self, channel: Channel) -> bool:
        with self._store.lock:
            return self.state.playback.playing_channel == channel

    def _apply_track(self, channel: Channel, track: Optional[Track]) -> None:
        with self._store.lock:
            if not self._is_current_channel(channel):
                return
            if self.state.playback.current_track == track:
                return
            self._store.update_playback(current_track=track)
            self._publish_now_playing()
        if track is not None:
            logger.debug(f"Now playing on {channel.slug}: {track.display_text}")

    def _publish_now_playing(self) -> None:
        playback = self.state.playback
        if playback.playing_channel is None:
            return
        try:
            self._now_playing.update_info(
                playback.playing_channel, playback.current_program, playback.current_track
            )
        except Exception:
            logger.exception("Now-playing update failed")

    def _save_last_played(self, channel: Channel) -> None:
        try:
            self._preferences.save_last_played_channel(channel)
        except Exception:
            logger.exception(f"Saving last played channel {channel.id} failed")

    def close(self) -> None:
        """Cancel timers and background work; the session is unusable afterwards."""
        with self._store.lock:
            self._tracks.stop()
            self._stop_program_refresh()
        self._executor.shutdown(wait=False, cancel_futures=True)
