"""
Mattermost (API v4) clients — REST session + WebSocket event stream.

Features:
- REST calls over httpx (async), bearer token taken from the login reply
- Mattermost AppError bodies mapped onto samplebot.errors
- WebSocket event subscription with the authentication_challenge handshake
- Acks and undecodable frames are dropped; the stream ends when the
  connection closes

Setup:
1. Create a bot account (email + password login) on the server
2. Add it to the team named in SAMPLEBOT_TEAM

Environment variables:
    SAMPLEBOT_SERVER_URL     — e.g. http://localhost:8065
    SAMPLEBOT_WEBSOCKET_URL  — optional, derived from the server URL
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator

import httpx
import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, WebSocketException

from samplebot.clients.base import (
    ChannelSpec,
    ChatChannel,
    EventStream,
    InboundEvent,
    OutgoingMessage,
    Post,
    ServerInfo,
    SessionClient,
    Team,
    User,
)
from samplebot.errors import ChatError, TransportError, ValidationError

API_PREFIX = "/api/v4"
WEBSOCKET_PATH = "/api/v4/websocket"


class MattermostClient(SessionClient):
    """REST session client."""

    def __init__(
        self,
        server_url: str,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self._token = ""
        self._http = httpx.AsyncClient(
            base_url=self.server_url + API_PREFIX,
            timeout=timeout,
            transport=transport,
        )

    @property
    def token(self) -> str:
        return self._token

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def check_server_reachable(self) -> ServerInfo:
        resp = await self._request("GET", "/config/client", params={"format": "old"})
        return ServerInfo.from_dict(self._json(resp))

    async def login(self, email: str, password: str) -> User:
        resp = await self._request(
            "POST", "/users/login", json={"login_id": email, "password": password}
        )
        token = resp.headers.get("Token", "")
        if not token:
            raise ValidationError("Login reply carried no session token")
        user = User.from_dict(self._json(resp))
        self._token = token
        self._http.headers["Authorization"] = f"Bearer {token}"
        logger.debug(f"[mattermost] Logged in as {user.username!r} ({user.id})")
        return user

    async def update_user(self, user: User) -> User:
        resp = await self._request("PUT", f"/users/{user.id}", json=user.to_dict())
        return User.from_dict(self._json(resp))

    async def get_team_by_name(self, name: str) -> Team:
        resp = await self._request("GET", f"/teams/name/{name}")
        return Team.from_dict(self._json(resp))

    async def get_channel_by_name(self, name: str, team_id: str) -> ChatChannel:
        resp = await self._request("GET", f"/teams/{team_id}/channels/name/{name}")
        return ChatChannel.from_dict(self._json(resp))

    async def create_channel(self, spec: ChannelSpec) -> ChatChannel:
        resp = await self._request("POST", "/channels", json=spec.to_dict())
        return ChatChannel.from_dict(self._json(resp))

    async def create_post(self, message: OutgoingMessage) -> Post:
        resp = await self._request("POST", "/posts", json=message.to_dict())
        try:
            return Post.from_dict(self._json(resp))
        except ChatError as exc:
            raise ValidationError(f"Malformed post record from server: {exc.message}") from exc

    async def close(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._http.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise TransportError(
                f"Could not reach {self.server_url}",
                detailed_error=str(exc) or type(exc).__name__,
            ) from exc

        if resp.is_success:
            return resp

        try:
            body = resp.json()
        except ValueError:
            body = {"detailed_error": resp.text[:200]}
        raise ChatError.from_response(resp.status_code, body)

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise ValidationError(
                "Server reply is not JSON", detailed_error=resp.text[:200]
            ) from exc


def parse_frame(raw: str | bytes) -> InboundEvent | None:
    """Decode one websocket frame. Returns None for acks and junk."""
    try:
        frame = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug(f"[mattermost] Dropping undecodable frame: {raw!r:.80}")
        return None
    if not isinstance(frame, dict) or not frame.get("event"):
        # {"status": "OK", "seq_reply": 1} and friends
        return None
    return InboundEvent.from_dict(frame)


class WebSocketEventStream(EventStream):
    """Event stream over the Mattermost websocket endpoint."""

    def __init__(self) -> None:
        self._ws: Any = None
        self._seq = 0

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def connect(self, url: str, token: str) -> None:
        endpoint = url.rstrip("/") + WEBSOCKET_PATH
        try:
            self._ws = await websockets.connect(endpoint)
            await self._send("authentication_challenge", {"token": token})
        except (OSError, WebSocketException) as exc:
            await self.close()
            raise TransportError(
                f"We failed to connect to the web socket at {endpoint}",
                detailed_error=str(exc) or type(exc).__name__,
            ) from exc
        logger.info(f"[mattermost] WebSocket connected: {endpoint}")

    async def events(self) -> AsyncIterator[InboundEvent]:
        ws = self._ws
        if ws is None:
            return
        try:
            async for raw in ws:
                event = parse_frame(raw)
                if event is not None:
                    yield event
        except ConnectionClosed as exc:
            logger.warning(f"[mattermost] WebSocket closed: {exc}")

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except (OSError, WebSocketException) as exc:
            logger.warning(f"[mattermost] WebSocket close error: {exc}")

    async def _send(self, action: str, data: dict[str, Any]) -> None:
        self._seq += 1
        await self._ws.send(json.dumps({"seq": self._seq, "action": action, "data": data}))
