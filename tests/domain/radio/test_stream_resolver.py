"""Tests for program and stream URL resolution."""

from datetime import timedelta

import pytest

from lytter.domain.radio.exceptions import StreamResolutionError
from lytter.domain.radio.models import Channel
from lytter.domain.radio.stream_resolver import (
    DEFAULT_STREAM_BASE_URL,
    current_program,
    fallback_stream_url,
    resolve_channel_stream,
    slug_stream_url,
    stream_url,
)

BASE = DEFAULT_STREAM_BASE_URL


class TestStreamUrl:
    """Tests for a single program's stream URL."""

    def test_live_asset_wins(self, p1, make_program, make_asset) -> None:
        program = make_program(
            p1,
            assets=(
                make_asset("https://cdn/progressive.mp3", target="Progressive"),
                make_asset("https://cdn/live.m3u8", live=True),
            ),
        )
        assert stream_url(program) == "https://cdn/live.m3u8"

    def test_live_program_never_uses_on_demand_asset(self, make_channel, make_program, make_asset) -> None:
        """A live program without a live asset plays the channel mount."""
        channel = make_channel("p4sj", "P4 Sjælland", "p4sjaelland")
        program = make_program(
            channel, type="Live", assets=(make_asset("https://cdn/ondemand.mp3"),)
        )
        assert stream_url(program) == f"{BASE}/AACP4SJAEL"

    def test_no_assets_uses_fallback(self, make_channel, make_program) -> None:
        channel = make_channel("p6", "P6 Beat", "p6beat")
        assert stream_url(make_program(channel)) == f"{BASE}/AACP6BEAT"

    def test_on_demand_prefers_stream_then_progressive(self, p1, make_program, make_asset) -> None:
        program = make_program(
            p1,
            type="Episode",
            assets=(
                make_asset("https://cdn/file.mp3", target="Progressive"),
                make_asset("https://cdn/stream.m3u8", target="Stream"),
            ),
        )
        assert stream_url(program) == "https://cdn/stream.m3u8"

    def test_on_demand_progressive(self, p1, make_program, make_asset) -> None:
        program = make_program(
            p1,
            type="Episode",
            assets=(
                make_asset("https://cdn/other", target="Download"),
                make_asset("https://cdn/file.mp3", target="Progressive"),
            ),
        )
        assert stream_url(program) == "https://cdn/file.mp3"

    def test_on_demand_first_asset(self, p1, make_program, make_asset) -> None:
        program = make_program(
            p1, type="Episode", assets=(make_asset("https://cdn/other", target="Download"),)
        )
        assert stream_url(program) == "https://cdn/other"


class TestFallbackUrls:
    """Tests for the slug-based fallbacks."""

    @pytest.mark.parametrize(
        "slug, mount",
        [
            ("p1", "AACP1"),
            ("p4bornholm", "AACP4BORNH"),
            ("p4trekanten", "AACP4TREK"),
            ("p5sjaelland", "AACP5SJAELLAND"),
            ("p8jazz", "AACP8JAZZ"),
        ],
    )
    def test_mount_table(self, slug, mount) -> None:
        assert fallback_stream_url(slug) == f"{BASE}/{mount}"

    def test_unknown_slug_uses_pattern(self) -> None:
        assert fallback_stream_url("p9test") == f"{BASE}/AACP9TEST"

    def test_custom_base(self) -> None:
        assert slug_stream_url("p2", "https://cdn.example") == "https://cdn.example/AACP2"

    def test_empty_slug(self) -> None:
        assert slug_stream_url("") is None
        assert fallback_stream_url("") is None


class TestCurrentProgram:
    """Tests for picking the program on air."""

    def test_picks_program_on_air(self, p1, clock, make_program) -> None:
        earlier = make_program(p1, start=clock.now - timedelta(hours=2), minutes=60)
        on_air = make_program(p1, start=clock.now - timedelta(minutes=10), minutes=60)
        assert current_program(p1, [earlier, on_air], clock.now) == on_air

    def test_falls_back_to_first_cached(self, p1, clock, make_program) -> None:
        """A schedule gap still yields the channel's first program."""
        first = make_program(p1, start=clock.now + timedelta(hours=1))
        second = make_program(p1, start=clock.now + timedelta(hours=2))
        assert current_program(p1, [first, second], clock.now) == first

    @pytest.mark.parametrize(
        "hour, minute, expected",
        [(9, 30, "A"), (10, 0, "B"), (8, 0, "A"), (11, 0, "B")],
    )
    def test_touching_programs(self, p1, clock, make_program, hour, minute, expected) -> None:
        """At the shared boundary the program that starts there is on air."""
        nine = clock.now.replace(hour=9, minute=0)
        a = make_program(p1, start=nine, minutes=60, title="A")
        b = make_program(p1, start=nine + timedelta(hours=1), minutes=60, title="B")
        now = clock.now.replace(hour=hour, minute=minute)

        assert current_program(p1, [a, b], now).title == expected
        assert current_program(p1, [b, a], now).title == (
            "B" if (hour, minute) == (8, 0) else expected
        )

    def test_ignores_other_channels(self, p1, p3, clock, make_program) -> None:
        assert current_program(p1, [make_program(p3)], clock.now) is None


class TestResolveChannelStream:
    """Tests for the channel stream fallback chain."""

    def test_every_channel_with_slug_resolves(self, clock) -> None:
        """A channel with a slug always has a URL, even without programs."""
        channel = Channel(id="x", title="Ukendt", slug="ukendt")
        assert resolve_channel_stream(channel, [], clock.now) == f"{BASE}/AACUKENDT"

    def test_uses_current_program(self, p1, clock, make_program, make_asset) -> None:
        program = make_program(p1, assets=(make_asset("https://cdn/p1live", live=True),))
        assert resolve_channel_stream(p1, [program], clock.now) == "https://cdn/p1live"

    def test_empty_slug_without_programs_fails(self, clock) -> None:
        channel = Channel(id="x", title="Mystery", slug="")
        with pytest.raises(StreamResolutionError) as exc_info:
            resolve_channel_stream(channel, [], clock.now)
        assert str(exc_info.value) == "No stream URL available for Mystery"
