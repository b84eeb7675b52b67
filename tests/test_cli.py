"""Tests for the command line and the interactive loop commands."""

from unittest.mock import MagicMock, patch

import pytest

from lytter import cli
from lytter.domain.radio.exceptions import NoConnectionError
from lytter.domain.radio.models import Channel, PlaybackState, SessionState
from lytter.main import handle_command

P1 = Channel(id="p1id", title="P1", slug="p1")
P3 = Channel(id="p3id", title="P3", slug="p3")


@pytest.fixture
def ctx() -> MagicMock:
    ctx = MagicMock()
    ctx.session.state = SessionState(available_channels=(P1, P3))
    ctx.repository.get_channels.return_value = [P1, P3]
    return ctx


class TestParser:
    def test_channels_all(self) -> None:
        args = cli.build_parser().parse_args(["channels", "--all"])
        assert args.func is cli.cmd_channels
        assert args.all

    def test_play_channel_optional(self) -> None:
        args = cli.build_parser().parse_args(["play"])
        assert args.channel is None


class TestCommands:
    """Tests for one-shot commands against a mocked context."""

    def test_link(self, ctx) -> None:
        args = cli.build_parser().parse_args(["link", "p3"])
        assert cli.cmd_link(ctx, args) == 0
        ctx.console.print.assert_called_once_with("lyt:///channel/p3id")

    def test_unknown_channel(self, ctx) -> None:
        args = cli.build_parser().parse_args(["link", "P9"])
        with patch("lytter.cli.log") as log:
            assert cli.cmd_link(ctx, args) == 1
        log.assert_called_once()

    def test_play_load_error(self, ctx) -> None:
        ctx.session.state = SessionState(error="No internet connection")
        args = cli.build_parser().parse_args(["play", "P1"])
        with patch("lytter.cli.log"):
            assert cli.cmd_play(ctx, args) == 1
        ctx.session.play_channel.assert_not_called()

    def test_run_reports_network_errors(self, ctx) -> None:
        ctx.repository.get_channels.side_effect = NoConnectionError()
        with patch("lytter.cli.config.load_config"), \
             patch("lytter.cli.setup_from_config"), \
             patch("lytter.cli.AppContext.create", return_value=ctx), \
             patch("lytter.cli.log") as log:
            assert cli.run(["channels"]) == 1
        log.assert_called_once_with("Network error: No internet connection", level="error")
        ctx.close.assert_called_once()


class TestHandleCommand:
    """Tests for interactive input handling."""

    def test_quit(self, ctx) -> None:
        assert handle_command(ctx, "q") is False

    def test_switch_channel_by_name(self, ctx) -> None:
        ctx.session.find_channel.return_value = P3
        assert handle_command(ctx, "P3") is True
        ctx.session.play_channel.assert_called_once_with(P3)

    def test_unknown_channel(self, ctx) -> None:
        ctx.session.find_channel.return_value = None
        assert handle_command(ctx, "P9") is True
        ctx.session.play_channel.assert_not_called()

    def test_toggle_playing_channel(self, ctx) -> None:
        ctx.session.state = SessionState(playback=PlaybackState(playing_channel=P1))
        handle_command(ctx, "p")
        ctx.session.toggle_playback.assert_called_once_with(P1)

    def test_toggle_without_channel(self, ctx) -> None:
        handle_command(ctx, "p")
        ctx.session.toggle_playback.assert_not_called()

    def test_stop(self, ctx) -> None:
        handle_command(ctx, "s")
        ctx.session.stop_playback.assert_called_once()

    def test_blank_line(self, ctx) -> None:
        assert handle_command(ctx, "   ") is True
