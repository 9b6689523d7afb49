"""
Bootstrap — the one-time startup sequence.

Steps, each a precondition for the next:
  1. liveness check      (fatal)
  2. login               (fatal)
  3. normalize identity  (fatal, only when something differs)
  4. resolve team        (fatal)
  5. resolve-or-create the logging channel  (best effort)
  6. announce startup                       (best effort)

Fatal failures log the error detail block and raise BootstrapError. Nothing
is retried. The result is an immutable ReadySession handed to the
dispatcher and the shutdown handler.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NoReturn

from loguru import logger

from samplebot.clients.base import (
    ChannelSpec,
    ChannelType,
    ChatChannel,
    OutgoingMessage,
    SessionClient,
    Team,
    User,
)
from samplebot.config import BotConfig
from samplebot.errors import BootstrapError, ChatError, log_error_details


@dataclass(frozen=True)
class ReadySession:
    """Authenticated identity plus the resolved team and logging channel."""

    user: User
    team: Team
    log_channel: ChatChannel | None
    token: str = ""

    @property
    def log_channel_id(self) -> str:
        return self.log_channel.id if self.log_channel else ""


class Bootstrapper:
    """Runs the startup steps against a SessionClient."""

    def __init__(self, client: SessionClient, config: BotConfig) -> None:
        self.client = client
        self.config = config

    async def run(self) -> ReadySession:
        await self.check_server()
        user = await self.login()
        user = await self.normalize_identity(user)
        team = await self.find_team()
        channel = await self.ensure_log_channel(team)
        session = ReadySession(
            user=user, team=team, log_channel=channel, token=self.client.token
        )
        await announce(self.client, session, self.config.started_message)
        return session

    # ------------------------------------------------------------------
    # Fatal steps
    # ------------------------------------------------------------------

    async def check_server(self) -> None:
        try:
            info = await self.client.check_server_reachable()
        except ChatError as exc:
            self._fatal(
                "check_server",
                exc,
                "There was a problem pinging the Mattermost server. Are you sure it's running?",
            )
        logger.info(f"[bootstrap] Server detected and is running version {info.version}")

    async def login(self) -> User:
        try:
            return await self.client.login(self.config.email, self.config.password)
        except ChatError as exc:
            self._fatal(
                "login",
                exc,
                "There was a problem logging into the Mattermost server. "
                "Are you sure the bot account exists?",
            )

    async def normalize_identity(self, user: User) -> User:
        cfg = self.config
        if not user.needs_update(cfg.first_name, cfg.last_name, cfg.username):
            return user

        wanted = User(
            id=user.id,
            username=cfg.username,
            first_name=cfg.first_name,
            last_name=cfg.last_name,
            email=user.email,
            raw=user.raw,
        )
        try:
            updated = await self.client.update_user(wanted)
        except ChatError as exc:
            self._fatal("normalize_identity", exc, "We failed to update the bot user")
        logger.info("[bootstrap] Looks like this might be the first run so we've updated the bot's account settings")
        return updated

    async def find_team(self) -> Team:
        name = self.config.team_name
        try:
            return await self.client.get_team_by_name(name)
        except ChatError as exc:
            self._fatal(
                "find_team",
                exc,
                f"We failed to get the team {name!r}, or the bot is not a member of it",
            )

    # ------------------------------------------------------------------
    # Best-effort step
    # ------------------------------------------------------------------

    async def ensure_log_channel(self, team: Team) -> ChatChannel | None:
        """Find the logging channel, creating it if the lookup fails.

        Returns None (degraded mode) if creation fails too.
        """
        cfg = self.config
        try:
            return await self.client.get_channel_by_name(cfg.log_channel_name, team.id)
        except ChatError as exc:
            logger.warning(f"[bootstrap] We failed to get the channel {cfg.log_channel_name!r}")
            log_error_details(exc, "WARNING")

        spec = ChannelSpec(
            team_id=team.id,
            name=cfg.log_channel_name,
            display_name=cfg.log_channel_display_name,
            purpose=cfg.log_channel_purpose,
            type=ChannelType.OPEN.value,
        )
        try:
            channel = await self.client.create_channel(spec)
        except ChatError as exc:
            logger.error(f"[bootstrap] We failed to create the channel {cfg.log_channel_name!r}")
            log_error_details(exc)
            return None

        logger.info(
            f"[bootstrap] Looks like this might be the first run so we've created "
            f"the channel {cfg.log_channel_name!r}"
        )
        return channel

    def _fatal(self, step: str, exc: ChatError, reason: str) -> NoReturn:
        logger.error(f"[bootstrap] {reason}")
        log_error_details(exc)
        raise BootstrapError(step, exc) from exc


async def announce(client: SessionClient, session: ReadySession, text: str) -> bool:
    """Post a status line to the logging channel. Never raises ChatError."""
    if session.log_channel is None:
        logger.warning(f"[bootstrap] No logging channel, not announcing: {text!r}")
        return False
    try:
        await client.create_post(OutgoingMessage(session.log_channel.id, text))
    except ChatError as exc:
        logger.error("[bootstrap] We failed to send a message to the logging channel")
        log_error_details(exc)
        return False
    return True
