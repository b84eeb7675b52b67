"""
Now-playing track polling.

Polls a channel's live index points and schedules the next poll from the
current song's end (plus a small buffer) instead of a fixed interval.
Channels without song metadata (talk, news) fall back to a short default
interval.
"""

import threading
from concurrent.futures import Executor
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from loguru import logger

from .exceptions import NetworkError
from .models import Channel, Track
from .timers import Clock, ScheduledTask, TaskScheduler, utc_now

POLL_INTERVAL = timedelta(seconds=15)
END_BUFFER = timedelta(seconds=5)


class TrackSource(Protocol):
    """What the poller needs from the API client."""

    def fetch_index_points(self, channel_slug: str) -> list[Track]: ...


def find_current_track(tracks: list[Track], now: datetime) -> Optional[Track]:
    """First track that is playing at ``now``."""
    for track in tracks:
        if track.is_currently_playing(now):
            return track
    return None


class TrackPollScheduler:
    """Self-rescheduling poll loop for the playing channel's current song.

    States: idle (no channel) and polling. ``start`` polls immediately and
    keeps polling; ``stop`` cancels the pending timer. Every start/stop
    bumps a generation counter, and a timer or fetch result from an older
    generation, or for a channel that is no longer the current one, is
    dropped without rescheduling.
    """

    def __init__(
        self,
        source: TrackSource,
        scheduler: TaskScheduler,
        executor: Executor,
        is_current: Callable[[Channel], bool],
        on_track: Callable[[Channel, Optional[Track]], None],
        clock: Clock = utc_now,
        poll_interval: timedelta = POLL_INTERVAL,
        end_buffer: timedelta = END_BUFFER,
    ) -> None:
        self._source = source
        self._scheduler = scheduler
        self._executor = executor
        self._is_current = is_current
        self._on_track = on_track
        self._clock = clock
        self._poll_interval = poll_interval
        self._end_buffer = end_buffer

        self._lock = threading.Lock()
        self._generation = 0
        self._channel: Optional[Channel] = None
        self._timer: Optional[ScheduledTask] = None
        self._next_poll_at: Optional[datetime] = None

    @property
    def status(self) -> str:
        with self._lock:
            return "polling" if self._channel is not None else "idle"

    @property
    def channel(self) -> Optional[Channel]:
        with self._lock:
            return self._channel

    @property
    def next_poll_at(self) -> Optional[datetime]:
        with self._lock:
            return self._next_poll_at

    def start(self, channel: Channel) -> None:
        """Poll ``channel`` now and keep polling it."""
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            self._channel = channel
            generation = self._generation
        logger.debug(f"Track polling started for {channel.slug}")
        self._submit(channel, generation)

    def stop(self) -> None:
        """Cancel any pending poll and go idle."""
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            if self._channel is not None:
                logger.debug(f"Track polling stopped for {self._channel.slug}")
            self._channel = None

    def poll_track(self, channel: Channel) -> Optional[Track]:
        """Fetch the channel's currently playing song.

        Fetch failures read as "no track": a missing song only means the
        program title is shown on its own.
        """
        try:
            tracks = self._source.fetch_index_points(channel.slug)
        except NetworkError as e:
            logger.debug(f"Track poll for {channel.slug} failed: {e}")
            return None
        return find_current_track(tracks, self._clock())

    def next_poll_deadline(self, track: Optional[Track], now: datetime) -> datetime:
        """When to poll next: the song's end plus buffer, else the default interval."""
        if track is not None and track.is_currently_playing(now):
            end_time = track.end_time
            if end_time is not None:
                return end_time + self._end_buffer
        return now + self._poll_interval

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._next_poll_at = None

    def _is_stale(self, channel: Channel, generation: int) -> bool:
        with self._lock:
            if generation != self._generation:
                return True
        return not self._is_current(channel)

    def _submit(self, channel: Channel, generation: int) -> None:
        self._executor.submit(self._poll_cycle, channel, generation)

    def _poll_cycle(self, channel: Channel, generation: int) -> None:
        try:
            if self._is_stale(channel, generation):
                return

            track = self.poll_track(channel)
            if self._is_stale(channel, generation):
                logger.debug(f"Dropping track poll result for {channel.slug}")
                return

            self._on_track(channel, track)
            self._schedule_next(channel, generation, track)
        except Exception:
            logger.exception(f"Track poll cycle for {channel.slug} failed")

    def _schedule_next(
        self, channel: Channel, generation: int, track: Optional[Track]
    ) -> None:
        now = self._clock()
        deadline = self.next_poll_deadline(track, now)
        delay = max(0.0, (deadline - now).total_seconds())

        with self._lock:
            if generation != self._generation:
                return
            self._cancel_timer()
            self._next_poll_at = deadline
            self._timer = self._scheduler.call_later(
                delay,
                lambda: self._fire(channel, generation),
                name=f"track-poll-{channel.slug}",
            )
        logger.debug(f"Next track poll for {channel.slug} in {delay:.0f}s")

    def _fire(self, channel: Channel, generation: int) -> None:
        if self._is_stale(channel, generation):
            logger.debug(f"Ignoring stale track poll timer for {channel.slug}")
            return
        self._submit(channel, generation)
