"""
Lytter - interactive listening loop
"""

from typing import Callable, Optional

from loguru import logger

from lytter.context import AppContext
from lytter.domain.radio.deeplink import channel_link
from lytter.domain.radio.models import SessionState
from lytter.domain.radio.schedule import consolidate_channels, group_channels
from lytter.domain.radio.timers import utc_now
from lytter import ui

HELP_TEXT = """[bold]Keys[/bold]
  p        pause / resume
  s        stop
  n        show what is playing
  c        list channels
  l        print a link to the playing channel
  x        clear the playback error
  q        quit
  <name>   switch channel (P1, p4kbh, "P4 København", ...)"""


def _track_printer(ctx: AppContext) -> Callable[[SessionState], None]:
    """State listener that prints each new song once."""
    last_track_id: Optional[str] = None

    def on_state(state: SessionState) -> None:
        nonlocal last_track_id
        track = state.playback.current_track
        track_id = track.id if track is not None else None
        if track_id == last_track_id:
            return
        last_track_id = track_id
        if track is not None:
            ctx.console.print(f"[cyan]♪ {track.display_text}[/cyan]")

    return on_state


def show_now_playing(ctx: AppContext) -> None:
    ctx.console.print(
        ui.now_playing_text(
            ctx.session.state, utc_now(), ctx.config.api.asset_base_url
        )
    )


def handle_command(ctx: AppContext, user_input: str) -> bool:
    """Run one line of input. Returns False when the loop should end."""
    command = user_input.strip()
    if not command:
        return True

    session = ctx.session
    playback = session.state.playback
    key = command.lower()

    if key in ("q", "quit", "exit"):
        return False

    if key in ("h", "help", "?"):
        ctx.console.print(HELP_TEXT)
    elif key == "p":
        if playback.playing_channel is None:
            ctx.console.print("[yellow]Nothing to resume - type a channel name[/yellow]")
        else:
            session.toggle_playback(playback.playing_channel)
    elif key == "s":
        session.stop_playback()
    elif key == "n":
        show_now_playing(ctx)
    elif key == "c":
        channels = consolidate_channels(session.state.available_channels)
        playing_id = playback.playing_channel.id if playback.playing_channel else None
        ctx.console.print(ui.channels_table(group_channels(channels), playing_id))
    elif key == "l":
        if playback.playing_channel is None:
            ctx.console.print("[yellow]Nothing playing[/yellow]")
        else:
            ctx.console.print(channel_link(playback.playing_channel))
    elif key == "x":
        session.clear_playback_error()
    else:
        channel = session.find_channel(command)
        if channel is None:
            ctx.console.print(f"[yellow]Unknown channel: {command}[/yellow]")
            return True
        session.play_channel(channel)
        show_now_playing(ctx)

    return True


def interactive_mode(ctx: AppContext) -> None:
    """Read commands until the user quits or input ends."""
    unsubscribe = ctx.session.subscribe(_track_printer(ctx))

    ctx.console.print("[bold green]Lytter - DR Radio[/bold green]")
    ctx.console.print("Type a channel name to listen, 'h' for help, 'q' to quit.")
    show_now_playing(ctx)

    try:
        should_continue = True
        while should_continue:
            try:
                user_input = input("lytter> ")
                should_continue = handle_command(ctx, user_input)
            except KeyboardInterrupt:
                ctx.console.print("\n[yellow]Use 'q' to leave gracefully.[/yellow]")
            except EOFError:
                break
    finally:
        unsubscribe()
        ctx.console.print("[green]Farvel![/green]")
        logger.info("Interactive mode finished")
