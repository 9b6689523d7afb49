"""
Data model and abstract collaborators for the chat server.

SessionClient covers request/response calls (login, lookups, posting).
EventStream covers the server-pushed event connection.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator

from samplebot.errors import DeserializationError, ValidationError


class EventKind(str, Enum):
    POSTED = "posted"


class ChannelType(str, Enum):
    OPEN = "O"
    PRIVATE = "P"


def _require_id(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict) or not data.get("id"):
        raise ValidationError(f"Malformed {what} record from server")
    return data


@dataclass
class ServerInfo:
    version: str
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "ServerInfo":
        if not isinstance(data, dict):
            raise ValidationError("Malformed client config from server")
        return cls(version=str(data.get("Version", "")), raw=data)


@dataclass
class User:
    """A user account, keeping the raw record so updates round-trip."""

    id: str
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Any) -> "User":
        data = _require_id(data, "user")
        return cls(
            id=data["id"],
            username=data.get("username", ""),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            email=data.get("email", ""),
            raw=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        d = dict(self.raw)
        d.update(
            id=self.id,
            username=self.username,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
        )
        return d

    def needs_update(self, first_name: str, last_name: str, username: str) -> bool:
        return (
            self.first_name != first_name
            or self.last_name != last_name
            or self.username != username
        )


@dataclass
class Team:
    id: str
    name: str = ""
    display_name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Team":
        data = _require_id(data, "team")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            display_name=data.get("display_name", ""),
        )


@dataclass
class ChatChannel:
    """A channel on the server (not to be confused with an asyncio queue)."""

    id: str
    team_id: str = ""
    name: str = ""
    display_name: str = ""
    purpose: str = ""
    type: str = ChannelType.OPEN.value

    @classmethod
    def from_dict(cls, data: Any) -> "ChatChannel":
        data = _require_id(data, "channel")
        return cls(
            id=data["id"],
            team_id=data.get("team_id", ""),
            name=data.get("name", ""),
            display_name=data.get("display_name", ""),
            purpose=data.get("purpose", ""),
            type=data.get("type", ChannelType.OPEN.value),
        )


@dataclass
class ChannelSpec:
    """Request body for creating a channel."""

    team_id: str
    name: str
    display_name: str
    purpose: str = ""
    type: str = ChannelType.OPEN.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": self.team_id,
            "name": self.name,
            "display_name": self.display_name,
            "purpose": self.purpose,
            "type": self.type,
        }


@dataclass
class Post:
    """A message posted to a channel."""

    id: str
    channel_id: str
    user_id: str
    message: str = ""
    root_id: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Post":
        if not isinstance(data, dict) or not data.get("id"):
            raise DeserializationError("Post record has no id")
        for key in ("id", "channel_id", "user_id", "message", "root_id"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise DeserializationError(f"Post field {key!r} is not a string")
        return cls(
            id=data["id"],
            channel_id=data.get("channel_id") or "",
            user_id=data.get("user_id") or "",
            message=data.get("message") or "",
            root_id=data.get("root_id") or "",
        )

    @classmethod
    def from_json(cls, raw: str) -> "Post":
        """Decode a post serialized as a JSON string (as events carry it)."""
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            raise DeserializationError(f"Invalid post payload: {exc}") from exc
        return cls.from_dict(data)


@dataclass
class OutgoingMessage:
    """A message to be posted. ``parent_id`` threads it under another post."""

    channel_id: str
    text: str
    parent_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "message": self.text,
            "root_id": self.parent_id,
        }


@dataclass
class InboundEvent:
    """An event pushed by the server."""

    kind: str
    channel_id: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    seq: int = 0

    @classmethod
    def from_dict(cls, frame: dict[str, Any]) -> "InboundEvent":
        broadcast = frame.get("broadcast")
        if not isinstance(broadcast, dict):
            broadcast = {}
        data = frame.get("data")
        try:
            seq = int(frame.get("seq") or 0)
        except (TypeError, ValueError):
            seq = 0
        return cls(
            kind=str(frame.get("event", "")),
            channel_id=str(broadcast.get("channel_id") or ""),
            data=data if isinstance(data, dict) else {},
            seq=seq,
        )

    @property
    def is_posted(self) -> bool:
        return self.kind == EventKind.POSTED.value

    def post(self) -> Post:
        """Decode the post carried by a ``posted`` event."""
        raw = self.data.get("post")
        if isinstance(raw, dict):
            return Post.from_dict(raw)
        if not isinstance(raw, str):
            raise DeserializationError("Event carries no post payload")
        return Post.from_json(raw)


class SessionClient(ABC):
    """Authenticated request/response calls to the chat server."""

    @property
    @abstractmethod
    def token(self) -> str:
        """Session token obtained by ``login`` (empty before)."""
        ...

    @abstractmethod
    async def check_server_reachable(self) -> ServerInfo:
        ...

    @abstractmethod
    async def login(self, email: str, password: str) -> User:
        ...

    @abstractmethod
    async def update_user(self, user: User) -> User:
        ...

    @abstractmethod
    async def get_team_by_name(self, name: str) -> Team:
        ...

    @abstractmethod
    async def get_channel_by_name(self, name: str, team_id: str) -> ChatChannel:
        ...

    @abstractmethod
    async def create_channel(self, spec: ChannelSpec) -> ChatChannel:
        ...

    @abstractmethod
    async def create_post(self, message: OutgoingMessage) -> Post:
        ...

    async def close(self) -> None:
        """Release connections (no-op by default)."""
        pass


class EventStream(ABC):
    """Long-lived connection delivering InboundEvents."""

    @abstractmethod
    async def connect(self, url: str, token: str) -> None:
        ...

    @abstractmethod
    def events(self) -> AsyncIterator[InboundEvent]:
        """Events in arrival order; the iterator ends when the connection closes."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...
