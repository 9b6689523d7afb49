"""Tests for the startup sequence.

Covers:
- Steps run in order and produce a ReadySession
- Identity is only updated when it differs from the config
- Liveness, login, identity update and team failures are fatal and
  short-circuit every later step
- Channel lookup failure falls back to creation; creation failure is
  tolerated (degraded mode)
- Resolve-or-create is idempotent
- The startup announcement is best effort
"""

import pytest

from samplebot.bootstrap import Bootstrapper, ReadySession, announce
from samplebot.clients.base import ChatChannel, Team, User
from samplebot.clients.local import LocalServer
from samplebot.config import BotConfig
from samplebot.errors import (
    AuthError,
    BootstrapError,
    NotFoundError,
    ServerError,
    TransportError,
)


@pytest.fixture
def bootstrapper(server: LocalServer, config: BotConfig) -> Bootstrapper:
    return Bootstrapper(server.client(), config)


# =============================================================================
# Happy path
# =============================================================================


class TestRun:
    @pytest.mark.asyncio
    async def test_first_run_creates_channel_and_announces(
        self, server: LocalServer, config: BotConfig, bootstrapper: Bootstrapper, bot_user: User, team: Team
    ) -> None:
        session = await bootstrapper.run()

        assert isinstance(session, ReadySession)
        assert session.user.id == bot_user.id
        assert session.team.id == team.id
        assert session.token == bootstrapper.client.token != ""
        assert server.calls == [
            "check_server_reachable",
            "login",
            "get_team_by_name",
            "get_channel_by_name",
            "create_channel",
            "create_post",
        ]

        channel = session.log_channel
        assert channel is not None
        assert channel.name == config.log_channel_name
        assert channel.display_name == "Debugging For Sample Bot"
        assert channel.purpose == config.log_channel_purpose
        assert channel.type == "O"
        assert channel.team_id == team.id

        (post,) = server.posts_in(channel.id)
        assert post.message == "_Mattermost Bot Sample has **started** running_"
        assert post.user_id == bot_user.id
        assert post.root_id == ""

    @pytest.mark.asyncio
    async def test_existing_channel_is_adopted(
        self, server: LocalServer, config: BotConfig, bootstrapper: Bootstrapper, bot_user: User, team: Team
    ) -> None:
        existing = server.add_channel(team.id, config.log_channel_name)

        session = await bootstrapper.run()

        assert session.log_channel_id == existing.id
        assert "create_channel" not in server.calls
        assert len(server.channels) == 1

    @pytest.mark.asyncio
    async def test_identity_updated_when_different(
        self, server: LocalServer, config: BotConfig, bootstrapper: Bootstrapper, team: Team
    ) -> None:
        server.add_user("old-name", config.email, config.password, "Old", "Name")

        session = await bootstrapper.run()

        assert "update_user" in server.calls
        assert server.calls.index("update_user") == server.calls.index("login") + 1
        assert session.user.username == "samplebot"
        assert (session.user.first_name, session.user.last_name) == ("Sample", "Bot")
        assert server.users[session.user.id].username == "samplebot"

    @pytest.mark.asyncio
    async def test_identity_left_alone_when_matching(
        self, server: LocalServer, bootstrapper: Bootstrapper, bot_user: User, team: Team
    ) -> None:
        await bootstrapper.run()
        assert "update_user" not in server.calls

    @pytest.mark.asyncio
    async def test_server_version_logged(
        self, bootstrapper: Bootstrapper, bot_user: User, team: Team, log_output: list[str]
    ) -> None:
        await bootstrapper.run()
        assert any("running version local" in line for line in log_output)


# =============================================================================
# Fatal steps
# =============================================================================


class TestFatalSteps:
    @pytest.mark.asyncio
    async def test_unreachable_server(
        self, server: LocalServer, bootstrapper: Bootstrapper, bot_user: User, team: Team, log_output: list[str]
    ) -> None:
        server.fail_on["check_server_reachable"] = TransportError(
            "Could not reach server", detailed_error="connection refused"
        )

        with pytest.raises(BootstrapError) as info:
            await bootstrapper.run()

        assert info.value.step == "check_server"
        assert isinstance(info.value.cause, TransportError)
        assert server.calls == ["check_server_reachable"]
        assert any("Error Details" in line and "connection refused" in line for line in log_output)

    @pytest.mark.asyncio
    async def test_bad_credentials(
        self, server: LocalServer, config: BotConfig, team: Team
    ) -> None:
        server.add_user(config.username, config.email, "wrong-password")

        with pytest.raises(BootstrapError) as info:
            await Bootstrapper(server.client(), config).run()

        assert info.value.step == "login"
        assert isinstance(info.value.cause, AuthError)
        assert server.calls == ["check_server_reachable", "login"]

    @pytest.mark.asyncio
    async def test_identity_update_failure(
        self, server: LocalServer, config: BotConfig, bootstrapper: Bootstrapper, team: Team
    ) -> None:
        server.add_user("someone-else", config.email, config.password)
        server.fail_on["update_user"] = ServerError("Invalid username", status_code=400)

        with pytest.raises(BootstrapError) as info:
            await bootstrapper.run()

        assert info.value.step == "normalize_identity"
        assert "get_team_by_name" not in server.calls

    @pytest.mark.asyncio
    async def test_missing_team_never_touches_channels(
        self, server: LocalServer, bootstrapper: Bootstrapper, bot_user: User
    ) -> None:
        with pytest.raises(BootstrapError) as info:
            await bootstrapper.run()

        assert info.value.step == "find_team"
        assert isinstance(info.value.cause, NotFoundError)
        assert "get_channel_by_name" not in server.calls
        assert "create_channel" not in server.calls
        assert "create_post" not in server.calls
        assert server.channels == {}

    @pytest.mark.asyncio
    async def test_team_transport_error_is_fatal(
        self, server: LocalServer, bootstrapper: Bootstrapper, bot_user: User, team: Team
    ) -> None:
        server.fail_on["get_team_by_name"] = TransportError("reset by peer")

        with pytest.raises(BootstrapError):
            await bootstrapper.run()

        assert server.calls[-1] == "get_team_by_name"


# =============================================================================
# Best-effort steps
# =============================================================================


class TestLogChannel:
    @pytest.mark.asyncio
    async def test_resolve_or_create_is_idempotent(
        self, server: LocalServer, config: BotConfig, bootstrapper: Bootstrapper, bot_user: User, team: Team
    ) -> None:
        await bootstrapper.client.login(config.email, config.password)

        first = await bootstrapper.ensure_log_channel(team)
        second = await bootstrapper.ensure_log_channel(team)

        assert first is not None and second is not None
        assert first.id == second.id
        assert server.calls.count("create_channel") == 1
        named = [c for c in server.channels.values() if c.name == config.log_channel_name]
        assert len(named) == 1

    @pytest.mark.asyncio
    async def test_creation_failure_is_tolerated(
        self, server: LocalServer, bootstrapper: Bootstrapper, bot_user: User, team: Team, log_output: list[str]
    ) -> None:
        server.fail_on["create_channel"] = AuthError("You do not have the appropriate permissions", status_code=403)

        session = await bootstrapper.run()

        assert session.log_channel is None
        assert session.log_channel_id == ""
        # No channel, so nothing to announce into
        assert "create_post" not in server.calls
        assert any("failed to create the channel" in line for line in log_output)

    @pytest.mark.asyncio
    async def test_announcement_failure_is_tolerated(
        self, server: LocalServer, bootstrapper: Bootstrapper, bot_user: User, team: Team
    ) -> None:
        server.fail_on["create_post"] = TransportError("write timeout")

        session = await bootstrapper.run()

        assert session.log_channel is not None
        assert server.posts == []


class TestAnnounce:
    @pytest.mark.asyncio
    async def test_posts_to_log_channel(
        self, server: LocalServer, config: BotConfig, bot_user: User, team: Team
    ) -> None:
        client = server.client()
        await client.login(config.email, config.password)
        channel = server.add_channel(team.id, "log")
        session = ReadySession(user=bot_user, team=team, log_channel=channel)

        assert await announce(client, session, "hi") is True
        assert [p.message for p in server.posts_in(channel.id)] == ["hi"]

    @pytest.mark.asyncio
    async def test_skipped_without_channel(self, server: LocalServer, bot_user: User, team: Team) -> None:
        session = ReadySession(user=bot_user, team=team, log_channel=None)
        assert await announce(server.client(), session, "hi") is False
        assert server.calls == []

    @pytest.mark.asyncio
    async def test_failure_returns_false(self, server: LocalServer, bot_user: User, team: Team) -> None:
        channel = ChatChannel(id="c1", team_id=team.id, name="log")
        session = ReadySession(user=bot_user, team=team, log_channel=channel)
        # Not logged in: the server rejects the post
        assert await announce(server.client(), session, "hi") is False
