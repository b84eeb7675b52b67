"""Shared fixtures: a controllable clock, scheduler and executor, plus fakes
for the collaborators of the playback session."""

from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from lytter.domain.radio.models import (
    AudioAsset,
    Channel,
    Program,
    Track,
    TrackRole,
)

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class ManualTask:
    def __init__(self, due: datetime, callback: Callable[[], None], name: str,
                 interval: Optional[float] = None) -> None:
        self.due = due
        self.callback = callback
        self.name = name
        self.interval = interval
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualScheduler:
    """TaskScheduler whose timers fire only from ``advance``."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self.tasks: list[ManualTask] = []

    def call_later(self, delay, callback, name=""):
        task = ManualTask(self.clock.now + timedelta(seconds=delay), callback, name)
        self.tasks.append(task)
        return task

    def call_every(self, interval, callback, name=""):
        task = ManualTask(
            self.clock.now + timedelta(seconds=interval), callback, name, interval
        )
        self.tasks.append(task)
        return task

    def pending(self, prefix: str = "") -> list[ManualTask]:
        return [t for t in self.tasks if not t.cancelled and t.name.startswith(prefix)]

    def advance(self, seconds: float) -> None:
        """Move the clock and fire every due task in due order."""
        target = self.clock.now + timedelta(seconds=seconds)
        while True:
            due = [t for t in self.pending() if t.due <= target]
            if not due:
                break
            task = min(due, key=lambda t: t.due)
            self.clock.now = max(self.clock.now, task.due)
            if task.interval is None:
                task.cancel()
            else:
                task.due = task.due + timedelta(seconds=task.interval)
            task.callback()
        self.clock.now = target


class InlineExecutor:
    """Executor that runs work on the calling thread."""

    def __init__(self) -> None:
        self.shutdown_called = False

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait=True, cancel_futures=False) -> None:
        self.shutdown_called = True


class QueuedExecutor(InlineExecutor):
    """Executor that holds work until ``run_all`` (simulates slow fetches)."""

    def __init__(self) -> None:
        super().__init__()
        self.queue: list = []

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        while self.queue:
            future, fn, args, kwargs = self.queue.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


class FakeSource:
    """Schedule and track source with canned responses."""

    def __init__(self, programs=None, tracks=None) -> None:
        self.programs: list[Program] = list(programs or [])
        self.tracks: dict[str, list[Track]] = dict(tracks or {})
        self.schedule_error: Optional[Exception] = None
        self.track_error: Optional[Exception] = None
        self.schedule_calls = 0
        self.track_calls: list[str] = []

    def fetch_all_schedules(self) -> list[Program]:
        self.schedule_calls += 1
        if self.schedule_error is not None:
            raise self.schedule_error
        return list(self.programs)

    def fetch_schedule_snapshot(self, channel_slug: str) -> list[Program]:
        return [p for p in self.programs if p.channel.slug == channel_slug]

    def fetch_index_points(self, channel_slug: str) -> list[Track]:
        self.track_calls.append(channel_slug)
        if self.track_error is not None:
            raise self.track_error
        return list(self.tracks.get(channel_slug, []))


class FakeAudio:
    """AudioOutput that records calls and reports status synchronously."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.listeners: list = []

    def add_listener(self, listener) -> None:
        self.listeners.append(listener)

    def _notify(self, is_playing: bool, error: Optional[str] = None) -> None:
        for listener in self.listeners:
            listener(is_playing, error)

    def play(self, url: str) -> None:
        self.calls.append(("play", url))
        self._notify(True)

    def pause(self) -> None:
        self.calls.append(("pause",))
        self._notify(False)

    def resume(self) -> None:
        self.calls.append(("resume",))
        self._notify(True)

    def stop(self) -> None:
        self.calls.append(("stop",))
        self._notify(False)

    def seek(self, seconds: float) -> None:
        self.calls.append(("seek", seconds))


class FakeNowPlaying:
    def __init__(self) -> None:
        self.updates: list[tuple] = []
        self.cleared = 0
        self.playback_states: list[bool] = []

    def update_info(self, channel, program, track) -> None:
        self.updates.append((channel, program, track))

    def clear_info(self) -> None:
        self.cleared += 1

    def update_playback_state(self, is_playing: bool) -> None:
        self.playback_states.append(is_playing)


class FakePreferences:
    """In-memory last-played store."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self.channel: Optional[Channel] = None
        self.played_at: Optional[datetime] = None
        self.saved: list[Channel] = []

    def save_last_played_channel(self, channel: Channel) -> None:
        self.channel = channel
        self.played_at = self.clock()
        self.saved.append(channel)

    def find_last_played_channel(self, channels) -> Optional[Channel]:
        if self.channel is None:
            return None
        for channel in channels:
            if channel.id == self.channel.id:
                return channel
        return None

    def is_last_played_recent(self, within_hours: int = 24) -> bool:
        if self.played_at is None:
            return False
        return self.clock() - self.played_at < timedelta(hours=within_hours)


def build_channel(id: str = "p1", title: str = "P1", slug: Optional[str] = None) -> Channel:
    return Channel(id=id, title=title, slug=slug if slug is not None else id)


def build_program(
    channel: Channel,
    start: datetime = T0 - timedelta(minutes=30),
    minutes: int = 60,
    title: Optional[str] = None,
    id: Optional[str] = None,
    type: str = "Live",
    assets: tuple = (),
) -> Program:
    return Program(
        id=id if id is not None else f"{channel.id}-{start:%H%M}",
        type=type,
        channel=channel,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        title=title or f"{channel.title} program",
        audio_assets=assets,
    )


def build_track(
    played_at: datetime, seconds: int = 180, title: str = "Song", artist: str = "Artist"
) -> Track:
    return Track(
        track_urn=f"urn:dr:track:{title}:{played_at:%H%M%S}",
        played_at=played_at,
        duration_seconds=seconds,
        title=title,
        roles=(TrackRole(role="Hovedkunstner", name=artist),),
    )


def build_asset(url: str, target: str = "Stream", live: Optional[bool] = None) -> AudioAsset:
    return AudioAsset(type="AudioAsset", target=target, format="mp3", url=url,
                      is_stream_live=live)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock: ManualClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture
def make_channel():
    return build_channel


@pytest.fixture
def make_program():
    return build_program


@pytest.fixture
def make_track():
    return build_track


@pytest.fixture
def make_asset():
    return build_asset


@pytest.fixture
def p1() -> Channel:
    return build_channel("p1", "P1")


@pytest.fixture
def p3() -> Channel:
    return build_channel("p3", "P3")


@pytest.fixture
def source(p1: Channel, p3: Channel) -> FakeSource:
    return FakeSource(programs=[build_program(p1), build_program(p3)])


@pytest.fixture
def schedule_payload() -> list[dict]:
    """Two items of /schedules/all/now as served by the API."""
    return [
        {
            "type": "Live",
            "learnId": "urn:dr:ocs:audio:content:playable:11032411000",
            "startTime": "2024-03-01T11:30:00Z",
            "endTime": "2024-03-01T12:30:00Z",
            "title": "P1 Morgen",
            "channel": {
                "id": "5fa26b7b0e5d4a4a8f0e0d8c",
                "slug": "p1",
                "title": "P1",
                "type": "Channel",
                "presentationUrl": "https://www.dr.dk/lyd/p1",
            },
            "audioAssets": [
                {
                    "type": "AudioAsset",
                    "target": "Stream",
                    "format": "HLS",
                    "url": "https://live.example/p1/master.m3u8",
                    "isStreamLive": True,
                    "bitrate": 192,
                }
            ],
            "imageAssets": [
                {"id": "img-square", "target": "SquareImage", "ratio": "1:1"},
                {"id": "img-wide", "target": "Default", "ratio": "16:9"},
            ],
        },
        {
            "type": "Live",
            "learnId": "urn:dr:ocs:audio:content:playable:14032411000",
            "startTime": "2024-03-01T11:00:00Z",
            "endTime": "2024-03-01T13:00:00Z",
            "channel": {
                "id": "6a7b8c9d",
                "slug": "p4kbh",
                "title": "P4 København",
                "type": "Channel",
            },
            "series": {"title": "Formiddag på P4", "slug": "formiddag-paa-p4"},
        },
    ]


@pytest.fixture
def index_points_payload() -> dict:
    return {
        "channel": {"slug": "p6beat"},
        "items": [
            {
                "trackUrn": "urn:dr:radio:track:1",
                "playedTime": "2024-03-01T11:58:00Z",
                "durationMilliseconds": 185999,
                "title": "Heroes",
                "description": "David Bowie",
                "type": "Music",
                "classical": False,
                "roles": [
                    {"role": "Hovedkunstner", "name": "David Bowie", "artistUrn": "urn:a:1"},
                    {"role": "Komponist", "name": "Brian Eno"},
                ],
            }
        ],
    }


@pytest.fixture
def queued_executor() -> QueuedExecutor:
    return QueuedExecutor()


@pytest.fixture
def audio() -> FakeAudio:
    return FakeAudio()


@pytest.fixture
def now_playing() -> FakeNowPlaying:
    return FakeNowPlaying()


@pytest.fixture
def preferences(clock: ManualClock) -> FakePreferences:
    return FakePreferences(clock)


@pytest.fixture
def make_source():
    return FakeSource
