"""
Configuration management for Lytter
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger


def _check_number(name: str, value, minimum: float = 0, inclusive: bool = False) -> None:
    """Raise ValueError unless value is a number above (or at) minimum."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if value < minimum or (value == minimum and not inclusive):
        bound = "at least" if inclusive else "greater than"
        raise ValueError(f"{name} must be {bound} {minimum}, got {value!r}")


@dataclass
class APIConfig:
    """Configuration for the DR radio API and stream endpoints."""

    base_url: str = "https://api.dr.dk/radio/v4"
    asset_base_url: str = "https://asset.dr.dk/drlyd/images"
    stream_base_url: str = "https://live-icy.gss.dr.dk"
    request_timeout: float = 30.0  # Per connect/read
    resource_timeout: float = 60.0  # Whole response, body included
    user_agent: str = "lytter/0.3"

    def validate(self) -> None:
        """Validate API configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        for name in ("base_url", "asset_base_url", "stream_base_url"):
            value = getattr(self, name)
            if not value.startswith(("http://", "https://")):
                raise ValueError(f"{name} must be an http(s) URL, got {value!r}")
        if self.request_timeout <= 0 or self.resource_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.resource_timeout < self.request_timeout:
            raise ValueError("resource_timeout must not be shorter than request_timeout")


@dataclass
class ScheduleConfig:
    """Configuration for schedule caching and program refresh."""

    cache_ttl_seconds: int = 600  # 10 minutes
    program_refresh_seconds: int = 300  # 5 minutes

    def validate(self) -> None:
        _check_number("cache_ttl_seconds", self.cache_ttl_seconds)
        _check_number("program_refresh_seconds", self.program_refresh_seconds)


@dataclass
class TracksConfig:
    """Configuration for now-playing track polling."""

    poll_interval_seconds: int = 15  # When no track is currently playing
    end_buffer_seconds: int = 5  # Added after a track's computed end

    def validate(self) -> None:
        _check_number("poll_interval_seconds", self.poll_interval_seconds)
        _check_number("end_buffer_seconds", self.end_buffer_seconds, inclusive=True)


@dataclass
class PlayerConfig:
    """Configuration for the mpv audio output."""

    mpv_socket_path: Optional[str] = None
    volume: int = 70

    def validate(self) -> None:
        if self.mpv_socket_path is not None and not isinstance(self.mpv_socket_path, str):
            raise ValueError(f"mpv_socket_path must be a path, got {self.mpv_socket_path!r}")
        _check_number("volume", self.volume, inclusive=True)
        if self.volume > 100:
            raise ValueError(f"volume must be at most 100, got {self.volume!r}")


@dataclass
class PreferencesConfig:
    """Configuration for remembered listening state."""

    restore_within_hours: int = 24

    def validate(self) -> None:
        _check_number("restore_within_hours", self.restore_within_hours)


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # Default: ~/.local/share/lytter/lytter.log
    console_output: bool = False  # Also log to stderr (for debugging)


@dataclass
class NotificationsConfig:
    """Configuration for desktop notifications."""

    enabled: bool = True
    show_tracks: bool = True


@dataclass
class Config:
    """Main configuration object."""

    api: APIConfig = field(default_factory=APIConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    tracks: TracksConfig = field(default_factory=TracksConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    preferences: PreferencesConfig = field(default_factory=PreferencesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "lytter"
    return Path.home() / ".config" / "lytter"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in the project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            return config_path if config_path.exists() else None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/lytter (or ~/.config/lytter)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "lytter"
    return Path.home() / ".local" / "share" / "lytter"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Lytter Configuration

[api]
# DR radio API (schedules and now-playing index points)
base_url = "https://api.dr.dk/radio/v4"

# Image assets are resolved as <asset_base_url>/<image id>
asset_base_url = "https://asset.dr.dk/drlyd/images"

# Live stream CDN used when a program carries no usable live asset
stream_base_url = "https://live-icy.gss.dr.dk"

# Seconds per connect/read, and for a whole response
request_timeout = 30
resource_timeout = 60

[schedule]
# How long a fetched schedule stays valid
cache_ttl_seconds = 600

# How often the playing channel's current program is re-resolved
program_refresh_seconds = 300

[tracks]
# Poll interval when no song is currently playing (talk, news)
poll_interval_seconds = 15

# Extra wait after a song's computed end before polling again
end_buffer_seconds = 5

[player]
# Path for mpv socket (auto-generated if not specified)
# mpv_socket_path = "/tmp/lytter-mpv.sock"

# Default volume (0-100)
volume = 70

[preferences]
# Restore the last played channel on startup if played within this many hours
restore_within_hours = 24

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/lytter/lytter.log)
# log_file = "/path/to/lytter.log"

# Also output logs to stderr (useful for debugging)
console_output = false

[notifications]
# Enable desktop notifications (notify-send)
enabled = true

# Notify when the playing song changes
show_tracks = true
""".strip()


def _validated_section(name: str, build: Callable[[], Any], default: Any) -> Any:
    """Build and validate one section; on bad values log a warning and keep ``default``."""
    try:
        section = build()
        section.validate()
    except (AttributeError, TypeError, ValueError) as e:
        logger.warning(f"Invalid [{name}] configuration, using defaults: {e}")
        return default
    return section


def _parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML, falling back per section on bad values."""
    config = Config()

    if "api" in toml_data:
        api_data = toml_data["api"]
        config.api = _validated_section(
            "api",
            lambda: APIConfig(
                base_url=api_data.get("base_url", config.api.base_url).rstrip("/"),
                asset_base_url=api_data.get(
                    "asset_base_url", config.api.asset_base_url
                ).rstrip("/"),
                stream_base_url=api_data.get(
                    "stream_base_url", config.api.stream_base_url
                ).rstrip("/"),
                request_timeout=float(
                    api_data.get("request_timeout", config.api.request_timeout)
                ),
                resource_timeout=float(
                    api_data.get("resource_timeout", config.api.resource_timeout)
                ),
                user_agent=api_data.get("user_agent", config.api.user_agent),
            ),
            config.api,
        )

    if "schedule" in toml_data:
        schedule_data = toml_data["schedule"]
        config.schedule = _validated_section(
            "schedule",
            lambda: ScheduleConfig(
                cache_ttl_seconds=schedule_data.get(
                    "cache_ttl_seconds", config.schedule.cache_ttl_seconds
                ),
                program_refresh_seconds=schedule_data.get(
                    "program_refresh_seconds", config.schedule.program_refresh_seconds
                ),
            ),
            config.schedule,
        )

    if "tracks" in toml_data:
        tracks_data = toml_data["tracks"]
        config.tracks = _validated_section(
            "tracks",
            lambda: TracksConfig(
                poll_interval_seconds=tracks_data.get(
                    "poll_interval_seconds", config.tracks.poll_interval_seconds
                ),
                end_buffer_seconds=tracks_data.get(
                    "end_buffer_seconds", config.tracks.end_buffer_seconds
                ),
            ),
            config.tracks,
        )

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = _validated_section(
            "player",
            lambda: PlayerConfig(
                mpv_socket_path=player_data.get("mpv_socket_path"),
                volume=player_data.get("volume", config.player.volume),
            ),
            config.player,
        )

    if "preferences" in toml_data:
        preferences_data = toml_data["preferences"]
        config.preferences = _validated_section(
            "preferences",
            lambda: PreferencesConfig(
                restore_within_hours=preferences_data.get(
                    "restore_within_hours", config.preferences.restore_within_hours
                ),
            ),
            config.preferences,
        )

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    if "notifications" in toml_data:
        notifications_data = toml_data["notifications"]
        config.notifications = NotificationsConfig(
            enabled=notifications_data.get("enabled", config.notifications.enabled),
            show_tracks=notifications_data.get(
                "show_tracks", config.notifications.show_tracks
            ),
        )

    return config


def _apply_env_overrides(config: Config) -> Config:
    """Override configuration values from the environment."""
    base_url = os.environ.get("LYTTER_API_BASE_URL")
    if base_url:
        config.api.base_url = base_url.rstrip("/")

    log_level = os.environ.get("LYTTER_LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    return config


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - LYTTER_API_BASE_URL
    - LYTTER_LOG_LEVEL
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()

    if not config_path.exists():
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(create_default_config())
            logger.info(f"Created default configuration at: {config_path}")
        except OSError as e:
            logger.warning(f"Could not write default configuration to {config_path}: {e}")
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Error loading configuration from {config_path}: {e}")
        return _apply_env_overrides(Config())

    return _apply_env_overrides(_parse_config(toml_data))


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
