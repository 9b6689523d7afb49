"""Pytest configuration and shared fixtures."""

import asyncio
import json
from dataclasses import asdict

import pytest
from loguru import logger

from samplebot.clients.base import EventKind, InboundEvent, Post, Team, User
from samplebot.clients.local import LocalServer
from samplebot.config import BotConfig


@pytest.fixture
def config() -> BotConfig:
    """Default sample configuration."""
    return BotConfig()


@pytest.fixture
def server() -> LocalServer:
    """An empty in-memory chat server."""
    return LocalServer()


@pytest.fixture
def bot_user(server: LocalServer, config: BotConfig) -> User:
    """Bot account whose identity already matches the config."""
    return server.add_user(
        config.username,
        config.email,
        config.password,
        first_name=config.first_name,
        last_name=config.last_name,
    )


@pytest.fixture
def team(server: LocalServer, config: BotConfig) -> Team:
    return server.add_team(config.team_name)


@pytest.fixture
def human(server: LocalServer) -> User:
    return server.add_user("alice", "alice@example.com", "hunter2", "Alice", "Liddell")


@pytest.fixture
def log_output():
    """Capture loguru output as a list of '<LEVEL> | <message>' strings."""
    lines: list[str] = []
    handler_id = logger.add(lines.append, format="{level} | {message}", level="DEBUG")
    yield lines
    logger.remove(handler_id)


def posted_event(post: Post, channel_id: str | None = None) -> InboundEvent:
    """Wrap a post in a 'posted' event the way the server sends it."""
    return InboundEvent(
        kind=EventKind.POSTED.value,
        channel_id=post.channel_id if channel_id is None else channel_id,
        data={"post": json.dumps(asdict(post))},
    )


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it is true or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
