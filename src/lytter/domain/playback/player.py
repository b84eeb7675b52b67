"""
MPV audio output with JSON IPC for Lytter
Functional mpv helpers plus the AudioOutput adapter the session drives
"""

import json
import os
import socket
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, NamedTuple, Optional

from loguru import logger

from lytter.core.config import PlayerConfig

AudioListener = Callable[[bool, Optional[str]], None]

SOCKET_WAIT_TIMEOUT = 5.0
LOAD_GRACE_SECONDS = 5.0  # MPV stays idle briefly after loadfile
STATUS_POLL_SECONDS = 5.0


class PlayerState(NamedTuple):
    """Immutable player state."""

    socket_path: Optional[str] = None
    process: Optional[subprocess.Popen] = None
    current_url: Optional[str] = None
    is_playing: bool = False


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def default_socket_path() -> str:
    return str(Path(tempfile.gettempdir()) / f"lytter-mpv-{os.getpid()}")


def start_mpv(config: PlayerConfig) -> Optional[PlayerState]:
    """Start MPV in idle mode with JSON IPC and return initial state."""
    socket_path = config.mpv_socket_path or default_socket_path()
    logger.info(f"Starting MPV player with socket: {socket_path}")

    try:
        if os.path.exists(socket_path):
            logger.debug(f"Removing existing socket: {socket_path}")
            os.unlink(socket_path)

        cmd = [
            "mpv",
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={socket_path}",
            f"--volume={config.volume}",
            "--cache=yes",
            "--load-scripts=no",
        ]
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
        )

        start_time = time.monotonic()
        while not os.path.exists(socket_path):
            if time.monotonic() - start_time > SOCKET_WAIT_TIMEOUT:
                logger.error(f"MPV socket creation timeout after {SOCKET_WAIT_TIMEOUT}s")
                process.kill()
                return None
            time.sleep(0.1)

        if send_mpv_command(socket_path, {"command": ["get_property", "idle-active"]}):
            logger.info("MPV started successfully")
            return PlayerState(socket_path=socket_path, process=process)

        logger.error("MPV socket connection test failed")
        process.kill()
        return None

    except (subprocess.SubprocessError, OSError) as e:
        logger.error(f"Failed to start MPV: {e}")
        return None


def stop_mpv(state: PlayerState) -> None:
    """Stop MPV process and remove its socket."""
    if state.process:
        try:
            state.process.kill()
            state.process.wait(timeout=2.0)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"MPV already gone: {e}")

    if state.socket_path and os.path.exists(state.socket_path):
        try:
            os.unlink(state.socket_path)
        except OSError as e:
            logger.debug(f"Could not remove MPV socket: {e}")


def is_mpv_running(state: PlayerState) -> bool:
    """Check if MPV process is still running."""
    if not state.process or state.process.poll() is not None:
        return False
    return bool(state.socket_path and os.path.exists(state.socket_path))


def _request(socket_path: Optional[str], command: dict[str, Any]) -> Optional[dict]:
    if not socket_path or not os.path.exists(socket_path):
        return None

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(2.0)
            sock.connect(socket_path)
            sock.sendall((json.dumps(command) + "\n").encode("utf-8"))
            response = sock.recv(4096).decode("utf-8").strip()
    except OSError:
        return None

    # MPV may interleave event lines; the reply is the line carrying "error"
    for line in response.splitlines():
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if "error" in data:
            return data
    return {} if not response else None


def send_mpv_command(socket_path: Optional[str], command: dict[str, Any]) -> bool:
    """Send JSON IPC command to MPV."""
    reply = _request(socket_path, command)
    if reply is None:
        return False
    return not reply or reply.get("error") == "success"


def get_mpv_property(socket_path: Optional[str], property_name: str) -> Any:
    """Get a property value from MPV."""
    reply = _request(socket_path, {"command": ["get_property", property_name]})
    if reply and reply.get("error") == "success":
        return reply.get("data")
    return None


def load_url(state: PlayerState, url: str) -> tuple[PlayerState, bool]:
    """Replace whatever is playing with ``url``."""
    if not is_mpv_running(state):
        return state, False

    success = send_mpv_command(state.socket_path, {"command": ["loadfile", url, "replace"]})
    if success:
        send_mpv_command(state.socket_path, {"command": ["set_property", "pause", False]})
        return state._replace(current_url=url, is_playing=True), True
    return state, False


def pause_playback(state: PlayerState) -> tuple[PlayerState, bool]:
    if not is_mpv_running(state):
        return state, False
    success = send_mpv_command(state.socket_path, {"command": ["set_property", "pause", True]})
    return (state._replace(is_playing=False), True) if success else (state, False)


def resume_playback(state: PlayerState) -> tuple[PlayerState, bool]:
    if not is_mpv_running(state):
        return state, False
    success = send_mpv_command(state.socket_path, {"command": ["set_property", "pause", False]})
    return (state._replace(is_playing=True), True) if success else (state, False)


def stop_playback(state: PlayerState) -> tuple[PlayerState, bool]:
    if not is_mpv_running(state):
        return state, False
    success = send_mpv_command(state.socket_path, {"command": ["stop"]})
    if success:
        return state._replace(current_url=None, is_playing=False), True
    return state, False


def seek_relative(state: PlayerState, seconds: float) -> tuple[PlayerState, bool]:
    """Seek within the stream's buffer, relative to the current position."""
    if not is_mpv_running(state):
        return state, False
    success = send_mpv_command(state.socket_path, {"command": ["seek", seconds, "relative"]})
    return state, success


def update_player_status(state: PlayerState) -> PlayerState:
    """Refresh the playing flag from MPV; keep the previous value if the query fails."""
    if not is_mpv_running(state):
        return state._replace(is_playing=False)
    paused = get_mpv_property(state.socket_path, "pause")
    idle = get_mpv_property(state.socket_path, "idle-active")
    if paused is None:
        return state
    return state._replace(is_playing=not paused and not idle)


class MpvAudioOutput:
    """AudioOutput backed by an ``mpv --idle`` process.

    MPV is started lazily on the first ``play``. Every command reports the
    resulting playing flag (and an error message on failure) to listeners.
    ``refresh_status`` is polled to catch streams that fail after loading.
    """

    def __init__(self, config: PlayerConfig) -> None:
        self._config = config
        self._state = PlayerState()
        self._lock = threading.Lock()
        self._listeners: list[AudioListener] = []
        self._loaded_at: Optional[float] = None

    @property
    def state(self) -> PlayerState:
        return self._state

    def add_listener(self, listener: AudioListener) -> None:
        self._listeners.append(listener)

    def _notify(self, is_playing: bool, error: Optional[str] = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(is_playing, error)
            except Exception:
                logger.exception("Audio listener failed")

    def _ensure_running(self) -> bool:
        if is_mpv_running(self._state):
            return True
        if self._state.process is not None:
            stop_mpv(self._state)
        state = start_mpv(self._config)
        if state is None:
            return False
        self._state = state
        return True

    def play(self, url: str) -> None:
        with self._lock:
            if not self._ensure_running():
                ok = False
                error = "Could not start mpv"
            else:
                self._state, ok = load_url(self._state, url)
                self._loaded_at = time.monotonic() if ok else None
                error = None if ok else f"mpv failed to load {url}"
            is_playing = self._state.is_playing
        if error:
            logger.error(error)
        self._notify(is_playing, error)

    def pause(self) -> None:
        with self._lock:
            self._state, ok = pause_playback(self._state)
            is_playing = self._state.is_playing
        self._notify(is_playing, None if ok else "mpv did not pause")

    def resume(self) -> None:
        with self._lock:
            self._state, ok = resume_playback(self._state)
            is_playing = self._state.is_playing
        self._notify(is_playing, None if ok else "mpv did not resume")

    def stop(self) -> None:
        with self._lock:
            self._state, _ = stop_playback(self._state)
            self._state = self._state._replace(current_url=None, is_playing=False)
        self._notify(False)

    def seek(self, seconds: float) -> None:
        with self._lock:
            self._state, ok = seek_relative(self._state, seconds)
        if not ok:
            logger.debug(f"Seek by {seconds}s ignored")

    def refresh_status(self) -> bool:
        """Re-read the playing flag from MPV and report changes.

        A loaded stream that left MPV idle, or an MPV process that exited,
        is reported once as a playback error and the stream is forgotten.
        """
        with self._lock:
            previous = self._state.is_playing
            url = self._state.current_url
            if url is None:
                return previous

            error = None
            if not is_mpv_running(self._state):
                error = "mpv exited"
            elif not self._loading() and get_mpv_property(
                self._state.socket_path, "idle-active"
            ) is True:
                error = f"Stream stopped: {url}"

            if error:
                self._state = self._state._replace(current_url=None, is_playing=False)
            else:
                self._state = update_player_status(self._state)
            is_playing = self._state.is_playing

        if error:
            logger.warning(error)
            self._notify(False, error)
        elif is_playing != previous:
            self._notify(is_playing)
        return is_playing

    def _loading(self) -> bool:
        if self._loaded_at is None:
            return False
        return time.monotonic() - self._loaded_at < LOAD_GRACE_SECONDS

    def shutdown(self) -> None:
        with self._lock:
            stop_mpv(self._state)
            self._state = PlayerState()
