"""
Schedule repository and channel organization.

The repository owns the time-bounded schedule cache; the module functions
derive, consolidate, group and look up channels from schedule data.
"""

import threading
from concurrent.futures import Future
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol

from loguru import logger

from .exceptions import NetworkError
from .models import Channel, ChannelGroup, Program
from .timers import Clock, utc_now

CACHE_TTL = timedelta(minutes=10)

# Display order of channel names; unknown names sort last
CHANNEL_PRIORITY = ["P1", "P2", "P3", "P4", "P5", "P6", "P8"]

# Names whose regional variants collapse to one representative
REGIONAL_NAMES = {"P4", "P5"}
PREFERRED_DISTRICT = "københavn"


class ScheduleSource(Protocol):
    """What the repository needs from the API client."""

    def fetch_all_schedules(self) -> list[Program]: ...
    def fetch_schedule_snapshot(self, channel_slug: str) -> list[Program]: ...


def channels_from_programs(programs: Iterable[Program]) -> list[Channel]:
    """De-duplicated channels of the given programs, sorted by title."""
    unique: dict[str, Channel] = {}
    for program in programs:
        unique.setdefault(program.channel.id, program.channel)
    return sorted(unique.values(), key=lambda c: c.title)


def _priority(name: str) -> int:
    try:
        return CHANNEL_PRIORITY.index(name)
    except ValueError:
        return len(CHANNEL_PRIORITY)


def _prefers_district(channel: Channel) -> bool:
    district = channel.district
    return bool(district) and PREFERRED_DISTRICT in district.lower()


def consolidate_channels(channels: Iterable[Channel]) -> list[Channel]:
    """One representative channel per name, in display priority order.

    For P4 and P5 the first København variant wins when present; otherwise
    the first channel seen for a name is kept. Names outside the priority list
    sort last in first-seen order.
    """
    representatives: dict[str, Channel] = {}
    for channel in channels:
        name = channel.name
        if name not in representatives:
            representatives[name] = channel
        elif (
            name in REGIONAL_NAMES
            and _prefers_district(channel)
            and not _prefers_district(representatives[name])
        ):
            representatives[name] = channel

    return sorted(representatives.values(), key=lambda c: _priority(c.name))


def group_channels(channels: Iterable[Channel]) -> list[ChannelGroup]:
    """Group channels by name, keeping every member, in display priority order."""
    groups: dict[str, list[Channel]] = {}
    for channel in channels:
        groups.setdefault(channel.name, []).append(channel)

    return [
        ChannelGroup(name=name, channels=tuple(members))
        for name, members in sorted(groups.items(), key=lambda item: _priority(item[0]))
    ]


def find_channel(channels: Iterable[Channel], query: str) -> Optional[Channel]:
    """Look a channel up by id, slug, title or name (case-insensitive)."""
    channels = list(channels)
    needle = query.strip().lower()
    if not needle:
        return None

    for attribute in ("id", "slug", "title", "name"):
        for channel in channels:
            if getattr(channel, attribute).lower() == needle:
                return channel
    return None


class ScheduleRepository:
    """Fetches the live schedule and keeps it cached for a limited time.

    The cache holds one ``(programs, fetched_at)`` pair and is replaced
    wholesale on every successful fetch. Callers racing on an expired
    cache share a single in-flight fetch.
    """

    def __init__(
        self,
        source: ScheduleSource,
        clock: Clock = utc_now,
        cache_ttl: timedelta = CACHE_TTL,
    ) -> None:
        self._source = source
        self._clock = clock
        self._cache_ttl = cache_ttl
        self._lock = threading.Lock()
        self._programs: list[Program] = []
        self._fetched_at: Optional[datetime] = None
        self._pending: Optional[Future] = None

    @property
    def fetched_at(self) -> Optional[datetime]:
        return self._fetched_at

    @property
    def cached_programs(self) -> list[Program]:
        with self._lock:
            return list(self._programs)

    def _is_valid(self) -> bool:
        if self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self._cache_ttl

    def is_cache_valid(self) -> bool:
        with self._lock:
            return self._is_valid()

    def invalidate(self) -> None:
        with self._lock:
            self._fetched_at = None

    def fetch_all(self) -> list[Program]:
        """Fetch every channel's schedule, bypassing the cache."""
        return self._source.fetch_all_schedules()

    def get_programs(self) -> list[Program]:
        """Cached programs, re-fetched once the cache has expired.

        Raises:
            NetworkError: If a needed fetch fails (the old cache is kept)
        """
        with self._lock:
            if self._is_valid():
                return list(self._programs)
            pending = self._pending
            owner = pending is None
            if owner:
                pending = Future()
                self._pending = pending

        if not owner:
            logger.debug("Joining in-flight schedule fetch")
            return list(pending.result())

        try:
            programs = self.fetch_all()
        except BaseException as e:
            # Waiters get the same error; the previous cache stays as it was
            if isinstance(e, NetworkError):
                logger.warning(f"Schedule fetch failed: {e}")
            with self._lock:
                self._pending = None
            pending.set_exception(e)
            raise

        with self._lock:
            self._programs = list(programs)
            self._fetched_at = self._clock()
            self._pending = None
        pending.set_result(programs)
        logger.info(f"Schedule cache refreshed: {len(programs)} programs")
        return list(programs)

    def get_channels(self) -> list[Channel]:
        """Channels with scheduled programs, de-duplicated and sorted by title."""
        return channels_from_programs(self.get_programs())

    def programs_for(self, channel: Channel) -> list[Program]:
        """Cached programs of one channel, without touching the network."""
        with self._lock:
            return [p for p in self._programs if p.channel.id == channel.id]

    def fetch_snapshot(self, channel: Channel) -> list[Program]:
        """Fetch a channel's full schedule snapshot (not cached)."""
        return self._source.fetch_schedule_snapshot(channel.slug)
