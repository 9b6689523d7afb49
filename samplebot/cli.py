"""
samplebot CLI entry point.

Usage:
    samplebot                       # Connect to the server from SAMPLEBOT_* env
    samplebot --server-url http://chat.example.com:8065 --team myteam
    samplebot --local               # In-memory server, type messages on stdin
    samplebot --help
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import threading
from typing import TYPE_CHECKING

from loguru import logger

from samplebot import __version__
from samplebot.errors import ChatError

if TYPE_CHECKING:
    from samplebot.clients.local import LocalServer
    from samplebot.config import BotConfig

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="samplebot",
        description="samplebot - Mattermost sample bot",
    )
    parser.add_argument("--server-url", default="", help="Server base URL (default: SAMPLEBOT_SERVER_URL or http://localhost:8065)")
    parser.add_argument("--team", default="", help="Team name to join")
    parser.add_argument("--channel", default="", help="Logging channel name")
    parser.add_argument("--email", default="", help="Bot account email")
    parser.add_argument("--password", default="", help="Bot account password")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--local",
        action="store_true",
        help="Run against an in-memory server and read messages from stdin",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"samplebot {__version__}",
    )
    return parser


def setup_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    sys.exit(asyncio.run(_run(args)))


async def _run(args: argparse.Namespace) -> int:
    from samplebot.bot import Bot
    from samplebot.config import BotConfig

    try:
        config = BotConfig.from_env().replace(
            server_url=args.server_url,
            team_name=args.team,
            log_channel_name=args.channel,
            email=args.email,
            password=args.password,
        )
    except ValueError as exc:
        logger.error(f"Invalid configuration: {exc}")
        return 2

    if args.local:
        return await _run_local(config)
    return await Bot(config).run()


# ----------------------------------------------------------------------
# Local mode
# ----------------------------------------------------------------------

async def _run_local(config: BotConfig) -> int:
    """Run the bot against a LocalServer; stdin lines become user messages."""
    from samplebot.bot import Bot
    from samplebot.clients.local import LocalServer

    server = LocalServer()
    server.add_user(config.username, config.email, config.password)
    server.add_team(config.team_name)
    human = server.add_user("you", "you@example.com", "")

    bot = Bot(config, client=server.client(), stream=server.stream())
    bot_task = asyncio.create_task(bot.run(), name="bot")

    # Wait for the bot to finish bootstrapping (or to fail doing so)
    while bot.dispatcher is None and not bot_task.done():
        await asyncio.sleep(0.05)
    if bot_task.done():
        return bot_task.result()

    bot_id = bot.session.user.id
    channel_id = bot.session.log_channel_id
    print(f"[samplebot local] Talking in #{config.log_channel_name}. Ctrl+C to quit.\n")
    seen = _print_bot_posts(server, bot_id, 0)

    # Daemon reader thread so a pending readline never blocks interpreter exit
    loop = asyncio.get_running_loop()
    lines: asyncio.Queue[str | None] = asyncio.Queue()
    threading.Thread(target=_read_stdin, args=(loop, lines), daemon=True).start()

    while True:
        next_line = asyncio.ensure_future(lines.get())
        done, _ = await asyncio.wait(
            {next_line, bot_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if bot_task in done:
            next_line.cancel()
            break
        line = next_line.result()
        if line is None:
            bot.shutdown.trigger()
            break
        text = line.strip()
        if not text:
            continue
        if not _deliver(server, human.id, channel_id, text):
            continue
        await asyncio.sleep(0.05)
        seen = _print_bot_posts(server, bot_id, seen)

    code = await bot_task
    _print_bot_posts(server, bot_id, seen)
    return code


def _deliver(server: LocalServer, user_id: str, channel_id: str, text: str) -> bool:
    """Post ``text`` as ``user_id``. Returns False when it could not be delivered."""
    if not channel_id:
        print("[samplebot local] No logging channel, the bot cannot hear you.")
        return False
    try:
        server.say(user_id, channel_id, text)
    except ChatError as exc:
        print(f"[samplebot local] Message not delivered: {exc.message}")
        return False
    return True


def _print_bot_posts(server: LocalServer, bot_user_id: str, since: int) -> int:
    for post in server.posts[since:]:
        if post.user_id == bot_user_id:
            prefix = "  ↳ " if post.root_id else ""
            print(f"\n{prefix}bot: {post.message}\n")
    return len(server.posts)


def _read_stdin(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None]) -> None:
    """Feed stdin lines into ``lines``; None marks EOF."""
    for line in sys.stdin:
        loop.call_soon_threadsafe(lines.put_nowait, line)
    loop.call_soon_threadsafe(lines.put_nowait, None)


if __name__ == "__main__":
    main()
