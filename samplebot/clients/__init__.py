"""
Client package.
"""

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
from samplebot.clients.local import LocalServer
from samplebot.clients.mattermost import MattermostClient, WebSocketEventStream

__all__ = [
    "ChannelSpec",
    "ChatChannel",
    "EventKind",
    "EventStream",
    "InboundEvent",
    "OutgoingMessage",
    "Post",
    "ServerInfo",
    "SessionClient",
    "Team",
    "User",
    "LocalServer",
    "MattermostClient",
    "WebSocketEventStream",
]
