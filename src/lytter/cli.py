"""
Lytter CLI - entry point

Listen to DR's live radio channels from the terminal.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from lytter.context import AppContext
from lytter.core import config
from lytter.core.output import log, setup_from_config
from lytter.domain.radio.deeplink import channel_link, open_channel_link
from lytter.domain.radio.exceptions import NetworkError
from lytter.domain.radio.models import Channel
from lytter.domain.radio.now_playing import build_now_playing_info
from lytter.domain.radio.schedule import (
    consolidate_channels,
    find_channel,
    group_channels,
)
from lytter.domain.radio.stream_resolver import current_program
from lytter.domain.radio.timers import utc_now
from lytter import ui


def _lookup_channel(ctx: AppContext, query: str) -> Optional[Channel]:
    channel = find_channel(ctx.repository.get_channels(), query)
    if channel is None:
        log(f"Unknown channel: {query}", level="warning")
    return channel


def cmd_channels(ctx: AppContext, args: argparse.Namespace) -> int:
    channels = ctx.repository.get_channels()
    if not args.all:
        channels = consolidate_channels(channels)
    ctx.console.print(ui.channels_table(group_channels(channels)))
    return 0


def cmd_now(ctx: AppContext, args: argparse.Namespace) -> int:
    channel = _lookup_channel(ctx, args.channel)
    if channel is None:
        return 1

    now = utc_now()
    program = current_program(channel, ctx.repository.programs_for(channel), now)
    track = ctx.session.tracks.poll_track(channel)
    info = build_now_playing_info(
        channel, program, track, now, ctx.config.api.asset_base_url
    )
    ctx.console.print(f"[bold cyan]{info.title}[/bold cyan]")
    ctx.console.print(info.artist)
    ctx.console.print(f"[dim]{info.album}[/dim]")
    if info.image_url:
        ctx.console.print(f"[dim]{info.image_url}[/dim]")
    return 0


def cmd_schedule(ctx: AppContext, args: argparse.Namespace) -> int:
    channel = _lookup_channel(ctx, args.channel)
    if channel is None:
        return 1
    programs = ctx.repository.fetch_snapshot(channel)
    ctx.console.print(ui.schedule_table(channel.title, programs, utc_now()))
    return 0


def cmd_link(ctx: AppContext, args: argparse.Namespace) -> int:
    channel = _lookup_channel(ctx, args.channel)
    if channel is None:
        return 1
    ctx.console.print(channel_link(channel))
    return 0


def cmd_play(ctx: AppContext, args: argparse.Namespace) -> int:
    from lytter.main import interactive_mode

    session = ctx.session
    session.load_channels()
    if session.state.error:
        log(session.state.error, level="error")
        return 1

    if args.channel:
        channel = session.find_channel(args.channel)
        if channel is None:
            log(f"Unknown channel: {args.channel}", level="warning")
            return 1
        session.play_channel(channel)
    elif session.state.playback.playing_channel is not None:
        # Resume the restored last played channel
        session.toggle_playback(session.state.playback.playing_channel)

    interactive_mode(ctx)
    return 0


def cmd_open(ctx: AppContext, args: argparse.Namespace) -> int:
    from lytter.main import interactive_mode

    if open_channel_link(ctx.session, args.link) is None:
        log(f"Could not open {args.link}", level="error")
        return 1
    interactive_mode(ctx)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lytter",
        description="Lytter - DR live radio in the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to config.toml")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level")

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    channels_parser = subparsers.add_parser("channels", help="List channels")
    channels_parser.add_argument(
        "--all", action="store_true", help="Include every regional channel"
    )
    channels_parser.set_defaults(func=cmd_channels)

    now_parser = subparsers.add_parser("now", help="Show what is on air")
    now_parser.add_argument("channel", help="Channel id, slug, title or name")
    now_parser.set_defaults(func=cmd_now)

    schedule_parser = subparsers.add_parser("schedule", help="Show a channel's schedule")
    schedule_parser.add_argument("channel", help="Channel id, slug, title or name")
    schedule_parser.set_defaults(func=cmd_schedule)

    play_parser = subparsers.add_parser("play", help="Listen (interactive)")
    play_parser.add_argument("channel", nargs="?", help="Channel to start with")
    play_parser.set_defaults(func=cmd_play)

    open_parser = subparsers.add_parser("open", help="Open a lyt:// channel link")
    open_parser.add_argument("link", help="e.g. lyt:///channel/<id>")
    open_parser.set_defaults(func=cmd_open)

    link_parser = subparsers.add_parser("link", help="Print a channel link")
    link_parser.add_argument("channel", help="Channel id, slug, title or name")
    link_parser.set_defaults(func=cmd_link)

    return parser


def run(argv: Optional[list[str]] = None) -> int:
    """Parse ``argv`` and run the chosen command. Returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        args.func = cmd_play
        args.channel = None

    current_config = config.load_config(
        Path(args.config) if args.config else None
    )
    if args.debug:
        current_config.logging.level = "DEBUG"
    setup_from_config(current_config.logging)

    ctx = AppContext.create(current_config)
    try:
        return args.func(ctx, args)
    except NetworkError as e:
        log(f"Network error: {e}", level="error")
        return 1
    except KeyboardInterrupt:
        log("Interrupted", level="warning")
        return 130
    finally:
        ctx.close()
        logger.debug(f"Command {args.subcommand or 'play'} finished")


def main() -> None:
    """Main entry point for the lytter command."""
    sys.exit(run())


if __name__ == "__main__":
    main()
