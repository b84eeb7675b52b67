"""
Terminal rendering for Lytter with Rich
"""

from datetime import datetime
from typing import Iterable, Optional

from rich.table import Table
from rich.text import Text

from lytter.domain.radio.models import ChannelGroup, Program, SessionState
from lytter.domain.radio.now_playing import build_now_playing_info

ICONS = {
    "playing": "▶",
    "paused": "⏸",
    "stopped": "■",
    "live": "●",
}


def format_clock(value: Optional[datetime]) -> str:
    """Local HH:MM, or --:-- when unknown."""
    if value is None:
        return "--:--"
    return value.astimezone().strftime("%H:%M")


def channels_table(groups: Iterable[ChannelGroup], playing_id: Optional[str] = None) -> Table:
    """One row per channel; regional channels listed under their group."""
    table = Table(title="DR Radio", show_lines=False)
    table.add_column("Channel", style="bold")
    table.add_column("Region")
    table.add_column("Slug", style="dim")

    for group in groups:
        for channel in group.channels:
            marker = f"{ICONS['playing']} " if channel.id == playing_id else ""
            table.add_row(
                f"{marker}{channel.title}",
                channel.district or "",
                channel.slug,
            )
    return table


def schedule_table(title: str, programs: Iterable[Program], now: datetime) -> Table:
    """A channel's programs with the one on air highlighted."""
    table = Table(title=title)
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Program")

    for program in programs:
        on_air = program.is_currently_playing(now)
        table.add_row(
            format_clock(program.start_time),
            format_clock(program.end_time),
            program.clean_title(),
            style="bold green" if on_air else None,
        )
    return table


def now_playing_text(
    state: SessionState, now: datetime, asset_base_url: Optional[str] = None
) -> Text:
    """Status block for the interactive loop."""
    playback = state.playback
    text = Text()

    if playback.playing_channel is None:
        text.append(f"{ICONS['stopped']} Nothing playing", style="dim")
    else:
        info = build_now_playing_info(
            playback.playing_channel,
            playback.current_program,
            playback.current_track,
            now,
            asset_base_url,
        )
        icon = ICONS["playing"] if playback.is_playing else ICONS["paused"]
        text.append(f"{icon} {info.title}\n", style="bold cyan")
        text.append(f"  {info.artist}\n")
        text.append(f"  {info.album}", style="dim")
        if playback.current_program is not None:
            program = playback.current_program
            text.append(
                f"\n  {format_clock(program.start_time)}-{format_clock(program.end_time)}",
                style="dim",
            )

    if playback.playback_error:
        text.append(f"\n✗ {playback.playback_error}", style="bold red")
    if state.error:
        text.append(f"\n✗ {state.error}", style="yellow")
    return text
