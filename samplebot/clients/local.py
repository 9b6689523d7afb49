"""
In-memory chat server for local runs and tests.

Behaves like a tiny Mattermost: accounts, teams, channels (names unique per
team), posts. Every created post is pushed as a ``posted`` event to all
connected streams.

Usage::

    server = LocalServer()
    bot = server.add_user("samplebot", "bot@example.com", "secret")
    team = server.add_team("localteam")
    client, stream = server.client(), server.stream()
"""

from __future__ import annotations

import asyncio
import json
import uuid
from dataclasses import asdict
from typing import Any, AsyncIterator

from loguru import logger

from samplebot.clients.base import (
    ChannelSpec,
    ChatChannel,
    EventKind,
    EventStream,
    InboundEvent,
    OutgoingMessage,
    Post,
    ServerInfo,
    SessionClient,
    Team,
    User,
)
from samplebot.errors import AuthError, ChatError, NotFoundError, ServerError


def _new_id() -> str:
    return uuid.uuid4().hex[:26]


class LocalServer:
    """Shared state behind LocalClient and LocalEventStream."""

    version = "local"

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.teams: dict[str, Team] = {}
        self.channels: dict[str, ChatChannel] = {}
        self.posts: list[Post] = []

        # Operation name -> error raised instead of running it
        self.fail_on: dict[str, ChatError] = {}
        # Operation names in call order (client and stream)
        self.calls: list[str] = []

        self._passwords: dict[str, tuple[str, str]] = {}  # email -> (password, user_id)
        self._tokens: dict[str, str] = {}                 # token -> user_id
        self._streams: list[LocalEventStream] = []

    # ------------------------------------------------------------------
    # Fixtures
    # ------------------------------------------------------------------

    def add_user(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> User:
        user = User(
            id=_new_id(),
            username=username,
            first_name=first_name,
            last_name=last_name,
            email=email,
        )
        self.users[user.id] = user
        self._passwords[email] = (password, user.id)
        return user

    def add_team(self, name: str, display_name: str = "") -> Team:
        team = Team(id=_new_id(), name=name, display_name=display_name or name)
        self.teams[team.id] = team
        return team

    def add_channel(self, team_id: str, name: str, display_name: str = "") -> ChatChannel:
        return self._insert_channel(
            ChannelSpec(team_id=team_id, name=name, display_name=display_name or name)
        )

    def say(self, user_id: str, channel_id: str, text: str, root_id: str = "") -> Post:
        """Post as a (human) user; the post is pushed to connected streams."""
        return self._insert_post(user_id, OutgoingMessage(channel_id, text, root_id))

    def publish(self, event: InboundEvent) -> None:
        for stream in list(self._streams):
            stream.deliver(event)

    def posts_in(self, channel_id: str) -> list[Post]:
        return [p for p in self.posts if p.channel_id == channel_id]

    def client(self) -> "LocalClient":
        return LocalClient(self)

    def stream(self) -> "LocalEventStream":
        return LocalEventStream(self)

    # ------------------------------------------------------------------
    # Internals shared by the client and the stream
    # ------------------------------------------------------------------

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        err = self.fail_on.get(op)
        if err is not None:
            raise err

    def _user_for(self, token: str) -> User:
        user_id = self._tokens.get(token)
        if not token or user_id is None:
            raise AuthError(
                "Invalid or expired session, please login again.",
                error_id="api.context.session_expired.app_error",
                status_code=401,
            )
        return self.users[user_id]

    def _insert_channel(self, spec: ChannelSpec) -> ChatChannel:
        if spec.team_id not in self.teams:
            raise NotFoundError("Team not found", status_code=404)
        for ch in self.channels.values():
            if ch.team_id == spec.team_id and ch.name == spec.name:
                raise ServerError(
                    "A channel with that name already exists on the same team.",
                    error_id="store.sql_channel.save_channel.exists.app_error",
                    status_code=400,
                )
        channel = ChatChannel(id=_new_id(), **spec.to_dict())
        self.channels[channel.id] = channel
        return channel

    def _insert_post(self, user_id: str, message: OutgoingMessage) -> Post:
        if message.channel_id not in self.channels:
            raise NotFoundError("Channel not found", status_code=404)
        post = Post(
            id=_new_id(),
            channel_id=message.channel_id,
            user_id=user_id,
            message=message.text,
            root_id=message.parent_id,
        )
        self.posts.append(post)
        self.publish(
            InboundEvent(
                kind=EventKind.POSTED.value,
                channel_id=post.channel_id,
                data={"post": json.dumps(asdict(post))},
            )
        )
        return post


class LocalClient(SessionClient):
    """SessionClient backed by a LocalServer."""

    def __init__(self, server: LocalServer) -> None:
        self.server = server
        self._token = ""

    @property
    def token(self) -> str:
        return self._token

    async def check_server_reachable(self) -> ServerInfo:
        self.server._enter("check_server_reachable")
        return ServerInfo(version=self.server.version, raw={"Version": self.server.version})

    async def login(self, email: str, password: str) -> User:
        self.server._enter("login")
        password_and_id = self.server._passwords.get(email)
        if password_and_id is None or password_and_id[0] != password:
            raise AuthError(
                "Enter a valid email or username and/or password.",
                error_id="api.user.login.invalid_credentials_email_username",
                status_code=401,
            )
        token = uuid.uuid4().hex
        self.server._tokens[token] = password_and_id[1]
        self._token = token
        return self.server.users[password_and_id[1]]

    async def update_user(self, user: User) -> User:
        self.server._enter("update_user")
        self.server._user_for(self._token)
        if user.id not in self.server.users:
            raise NotFoundError("User not found", status_code=404)
        updated = User(**{k: v for k, v in asdict(user).items() if k != "raw"})
        self.server.users[user.id] = updated
        return updated

    async def get_team_by_name(self, name: str) -> Team:
        self.server._enter("get_team_by_name")
        self.server._user_for(self._token)
        for team in self.server.teams.values():
            if team.name == name:
                return team
        raise NotFoundError(
            "Unable to find the existing team.",
            error_id="app.team.get_by_name.missing.app_error",
            status_code=404,
        )

    async def get_channel_by_name(self, name: str, team_id: str) -> ChatChannel:
        self.server._enter("get_channel_by_name")
        self.server._user_for(self._token)
        for ch in self.server.channels.values():
            if ch.team_id == team_id and ch.name == name:
                return ch
        raise NotFoundError(
            "Unable to find the existing channel.",
            error_id="store.sql_channel.get_by_name.missing.app_error",
            status_code=404,
        )

    async def create_channel(self, spec: ChannelSpec) -> ChatChannel:
        self.server._enter("create_channel")
        self.server._user_for(self._token)
        return self.server._insert_channel(spec)

    async def create_post(self, message: OutgoingMessage) -> Post:
        self.server._enter("create_post")
        user = self.server._user_for(self._token)
        return self.server._insert_post(user.id, message)


class LocalEventStream(EventStream):
    """EventStream backed by a LocalServer."""

    def __init__(self, server: LocalServer) -> None:
        self.server = server
        self._queue: asyncio.Queue[InboundEvent | None] = asyncio.Queue()
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def connect(self, url: str, token: str) -> None:
        self.server._enter("connect")
        self.server._user_for(token)
        self._open = True
        self.server._streams.append(self)
        logger.debug(f"[local] Stream connected ({url})")

    def deliver(self, event: InboundEvent) -> None:
        if self._open:
            self._queue.put_nowait(event)

    async def events(self) -> AsyncIterator[InboundEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        if not self._open:
            return
        self.server.calls.append("close_stream")
        self._open = False
        if self in self.server._streams:
            self.server._streams.remove(self)
        self._queue.put_nowait(None)

    def drop(self) -> None:
        """Simulate the server dropping the connection."""
        self._open = False
        if self in self.server._streams:
            self.server._streams.remove(self)
        self._queue.put_nowait(None)
