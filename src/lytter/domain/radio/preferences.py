"""Remembered listening state: the last played channel."""

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from lytter.core import database

from .models import Channel, parse_timestamp
from .timers import Clock, utc_now

LAST_PLAYED_KEY = "last_played_channel"


class PreferenceStore:
    """Persists the last played channel in the preferences table."""

    def __init__(self, db_path: Optional[Path] = None, clock: Clock = utc_now) -> None:
        self._db_path = db_path
        self._clock = clock
        database.init_database(db_path)
        self.last_played_channel: Optional[Channel] = None
        self.last_played_at: Optional[datetime] = None
        self._load_last_played_channel()

    def _load_last_played_channel(self) -> None:
        raw = database.get_preference(LAST_PLAYED_KEY, self._db_path)
        if not raw:
            return
        try:
            data = json.loads(raw)
            self.last_played_channel = Channel(
                id=data["id"],
                title=data["title"],
                slug=data.get("slug") or data["name"].lower().replace(" ", ""),
                type=data.get("type") or "Channel",
            )
            self.last_played_at = parse_timestamp(data.get("played_at"))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable last played channel: {e}")

    def save_last_played_channel(self, channel: Channel) -> None:
        played_at = self._clock()
        payload = {
            "id": channel.id,
            "title": channel.title,
            "slug": channel.slug,
            "type": channel.type,
            "name": channel.name,
            "district": channel.district,
            "played_at": played_at.isoformat(),
        }
        database.set_preference(LAST_PLAYED_KEY, json.dumps(payload), self._db_path)
        self.last_played_channel = channel
        self.last_played_at = played_at

    def find_last_played_channel(self, channels: Iterable[Channel]) -> Optional[Channel]:
        """The saved channel among ``channels``.

        Matches by id, then by title and name (ids can change), then by name.
        """
        last = self.last_played_channel
        if last is None:
            return None
        channels = list(channels)

        for channel in channels:
            if channel.id == last.id:
                return channel
        for channel in channels:
            if channel.title == last.title and channel.name == last.name:
                return channel
        for channel in channels:
            if channel.name == last.name:
                return channel
        return None

    def is_last_played_recent(self, within_hours: int = 24) -> bool:
        if self.last_played_at is None:
            return False
        return self._clock() - self.last_played_at < timedelta(hours=within_hours)

    def clear_last_played_channel(self) -> None:
        database.delete_preference(LAST_PLAYED_KEY, self._db_path)
        self.last_played_channel = None
        self.last_played_at = None
