"""
DR radio API client.

Fetches the live schedule for all channels, a single channel's schedule
snapshot, and the live index points (currently playing songs) of a channel.
All transport and decoding failures surface as NetworkError subclasses.
"""

import json
import time
from typing import Any, Optional
from urllib.parse import quote

import requests
from loguru import logger

from lytter.core.config import APIConfig

from .exceptions import (
    DecodingError,
    InvalidResponseError,
    InvalidURLError,
    NetworkError,
    NoConnectionError,
    RequestTimeoutError,
    ServerError,
)
from .models import Program, Track

CHUNK_SIZE = 64 * 1024


def _translate_request_error(error: requests.RequestException) -> NetworkError:
    """Map a requests exception onto the NetworkError taxonomy."""
    if isinstance(error, requests.exceptions.Timeout):
        return RequestTimeoutError()
    if isinstance(
        error,
        (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
        ),
    ):
        return InvalidURLError()
    if isinstance(error, requests.exceptions.ConnectionError):
        return NoConnectionError()
    return NetworkError(str(error))


def decode_programs(payload: Any) -> list[Program]:
    """Decode schedule items item by item.

    A malformed item is logged and skipped; it never fails the batch.

    Raises:
        DecodingError: If the payload is not a list
    """
    if not isinstance(payload, list):
        raise DecodingError("Expected a list of schedule items")

    programs = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            logger.warning(f"Skipping schedule item {index}: not an object")
            continue
        try:
            programs.append(Program.from_dict(item))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping schedule item {index}: {e}")
    return programs


def decode_tracks(payload: Any) -> list[Track]:
    """Decode an index points response into tracks.

    Raises:
        DecodingError: If the payload has no items list
    """
    items = payload.get("items") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise DecodingError("Expected an index points object with items")

    tracks = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            tracks.append(Track.from_dict(item))
        except (ValueError, TypeError) as e:
            logger.debug(f"Skipping index point: {e}")
    return tracks


class DRRadioClient:
    """HTTP client for the DR radio API.

    One instance per application session; owns its requests.Session.
    """

    def __init__(
        self, config: APIConfig, session: Optional[requests.Session] = None
    ) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.headers.update(
            {"User-Agent": config.user_agent, "Accept": "application/json"}
        )

    @property
    def config(self) -> APIConfig:
        return self._config

    def close(self) -> None:
        self._session.close()

    def _get_json(self, path: str) -> Any:
        """GET ``{base_url}{path}`` and decode the JSON body.

        The request timeout bounds each connect/read; the resource timeout
        bounds the whole response.
        """
        url = f"{self._config.base_url}{path}"
        request_timeout = self._config.request_timeout
        deadline = time.monotonic() + self._config.resource_timeout

        try:
            response = self._session.get(
                url, timeout=(request_timeout, request_timeout), stream=True
            )
        except requests.RequestException as e:
            logger.debug(f"GET {url} failed: {e}")
            raise _translate_request_error(e) from e

        with response:
            if response.status_code >= 500:
                raise ServerError(status_code=response.status_code)
            if response.status_code != 200:
                raise InvalidResponseError(status_code=response.status_code)

            chunks = []
            try:
                for chunk in response.iter_content(CHUNK_SIZE):
                    if time.monotonic() > deadline:
                        raise RequestTimeoutError()
                    chunks.append(chunk)
            except requests.RequestException as e:
                raise _translate_request_error(e) from e

        try:
            return json.loads(b"".join(chunks))
        except ValueError as e:
            raise DecodingError() from e

    def fetch_all_schedules(self) -> list[Program]:
        """Fetch every channel's currently scheduled items."""
        payload = self._get_json("/schedules/all/now")
        programs = decode_programs(payload)
        logger.debug(f"Fetched {len(programs)} scheduled programs")
        return programs

    def fetch_schedule_snapshot(self, channel_slug: str) -> list[Program]:
        """Fetch one channel's schedule snapshot."""
        if not channel_slug:
            raise InvalidURLError()
        payload = self._get_json(f"/schedules/snapshot/{quote(channel_slug)}")
        if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
            raise DecodingError("Expected a schedule snapshot with items")

        channel = payload.get("channel")
        items = [
            {**item, "channel": item.get("channel") or channel}
            if isinstance(item, dict)
            else item
            for item in payload["items"]
        ]
        return decode_programs(items)

    def fetch_index_points(self, channel_slug: str) -> list[Track]:
        """Fetch the live index points (recent and current songs) of a channel."""
        if not channel_slug:
            raise InvalidURLError()
        payload = self._get_json(f"/indexpoints/live/{quote(channel_slug)}")
        return decode_tracks(payload)
