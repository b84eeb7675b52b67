"""Tests for the MPV audio output (subprocess and IPC are mocked)."""

import time
from unittest.mock import MagicMock, patch

import pytest

from lytter.core.config import PlayerConfig
from lytter.domain.playback import player
from lytter.domain.playback.player import MpvAudioOutput, PlayerState


@pytest.fixture
def running_state() -> PlayerState:
    process = MagicMock()
    process.poll.return_value = None
    return PlayerState(socket_path="/tmp/lytter-test.sock", process=process)


class TestPlayerFunctions:
    """Tests for the functional mpv helpers."""

    def test_check_mpv_available_missing(self) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            assert player.check_mpv_available() is False

    def test_is_mpv_running_without_process(self) -> None:
        assert player.is_mpv_running(PlayerState()) is False

    def test_load_url(self, running_state) -> None:
        with patch.object(player, "is_mpv_running", return_value=True), \
             patch.object(player, "send_mpv_command", return_value=True) as send:
            state, ok = player.load_url(running_state, "https://live/AACP1")

        assert ok
        assert state.current_url == "https://live/AACP1"
        assert state.is_playing
        assert send.call_args_list[0][0][1] == {
            "command": ["loadfile", "https://live/AACP1", "replace"]
        }

    def test_pause_failure_keeps_state(self, running_state) -> None:
        playing = running_state._replace(is_playing=True)
        with patch.object(player, "is_mpv_running", return_value=True), \
             patch.object(player, "send_mpv_command", return_value=False):
            state, ok = player.pause_playback(playing)
        assert not ok
        assert state.is_playing

    def test_commands_need_running_mpv(self) -> None:
        state, ok = player.resume_playback(PlayerState())
        assert not ok

    def test_update_player_status(self, running_state) -> None:
        values = {"pause": False, "idle-active": False}
        with patch.object(player, "is_mpv_running", return_value=True), \
             patch.object(player, "get_mpv_property", side_effect=lambda _, name: values[name]):
            assert player.update_player_status(running_state).is_playing

    def test_send_command_without_socket(self) -> None:
        assert player.send_mpv_command(None, {"command": ["stop"]}) is False
        assert player.get_mpv_property("/nonexistent/socket", "pause") is None


class TestMpvAudioOutput:
    """Tests for the AudioOutput adapter."""

    @pytest.fixture
    def output(self) -> MpvAudioOutput:
        return MpvAudioOutput(PlayerConfig())

    def test_play_starts_mpv_and_notifies(self, output, running_state) -> None:
        listener = MagicMock()
        output.add_listener(listener)

        with patch.object(player, "start_mpv", return_value=running_state) as start, \
             patch.object(player, "is_mpv_running", side_effect=[False, True]), \
             patch.object(player, "send_mpv_command", return_value=True):
            output.play("https://live/AACP3")

        start.assert_called_once()
        listener.assert_called_once_with(True, None)
        assert output.state.current_url == "https://live/AACP3"

    def test_play_reports_start_failure(self, output) -> None:
        listener = MagicMock()
        output.add_listener(listener)

        with patch.object(player, "start_mpv", return_value=None):
            output.play("https://live/AACP3")

        listener.assert_called_once_with(False, "Could not start mpv")

    def test_pause_and_resume(self, output, running_state) -> None:
        listener = MagicMock()
        output.add_listener(listener)
        output._state = running_state._replace(is_playing=True)

        with patch.object(player, "is_mpv_running", return_value=True), \
             patch.object(player, "send_mpv_command", return_value=True):
            output.pause()
            output.resume()

        assert [c.args for c in listener.call_args_list] == [(False, None), (True, None)]

    def test_stop_always_reports_stopped(self, output) -> None:
        listener = MagicMock()
        output.add_listener(listener)

        output.stop()

        listener.assert_called_once_with(False, None)
        assert output.state.current_url is None

    def test_listener_errors_are_contained(self, output) -> None:
        output.add_listener(MagicMock(side_effect=RuntimeError("boom")))
        second = MagicMock()
        output.add_listener(second)

        output.stop()

        second.assert_called_once_with(False, None)

    def test_shutdown(self, output, running_state) -> None:
        output._state = running_state
        with patch.object(player, "stop_mpv") as stop:
            output.shutdown()
        stop.assert_called_once_with(running_state)
        assert output.state == PlayerState()


class TestRefreshStatus:
    """Tests for polling MPV for streams that fail after loading."""

    @pytest.fixture
    def playing(self, running_state) -> MpvAudioOutput:
        output = MpvAudioOutput(PlayerConfig())
        output._state = running_state._replace(
            current_url="https://live/AACP1", is_playing=True
        )
        return output

    def test_idle_after_load_reports_error_once(self, playing) -> None:
        listener = MagicMock()
        playing.add_listener(listener)

        with patch.object(player, "is_mpv_running", return_value=True), \
             patch.object(player, "get_mpv_property", return_value=True):
            assert playing.refresh_status() is False
            playing.refresh_status()

        listener.assert_called_once_with(False, "Stream stopped: https://live/AACP1")
        assert playing.state.current_url is None

    def test_exited_mpv_reports_error(self, playing) -> None:
        listener = MagicMock()
        playing.add_listener(listener)

        with patch.object(player, "is_mpv_running", return_value=False):
            playing.refresh_status()

        listener.assert_called_once_with(False, "mpv exited")

    def test_healthy_stream_stays_quiet(self, playing) -> None:
        listener = MagicMock()
        playing.add_listener(listener)
        values = {"pause": False, "idle-active": False}

        with patch.object(player, "is_mpv_running", return_value=True), \
             patch.object(player, "get_mpv_property", side_effect=lambda _, name: values[name]):
            assert playing.refresh_status() is True

        listener.assert_not_called()

    def test_idle_right_after_load_is_not_an_error(self, playing) -> None:
        """MPV reports idle for a moment while a fresh stream opens."""
        listener = MagicMock()
        playing.add_listener(listener)
        playing._loaded_at = time.monotonic()

        with patch.object(player, "is_mpv_running", return_value=True), \
             patch.object(player, "get_mpv_property", return_value=False):
            playing.refresh_status()

        listener.assert_not_called()
        assert playing.state.current_url == "https://live/AACP1"

    def test_nothing_loaded_is_a_no_op(self) -> None:
        output = MpvAudioOutput(PlayerConfig())
        with patch.object(player, "is_mpv_running") as running:
            assert output.refresh_status() is False
        running.assert_not_called()
