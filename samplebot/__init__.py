"""samplebot — a minimal Mattermost bot: bootstrap, log channel, keyword replies."""

__version__ = "0.1.0"

from samplebot.bootstrap import Bootstrapper, ReadySession
from samplebot.bot import Bot
from samplebot.config import BotConfig
from samplebot.dispatcher import Dispatcher
from samplebot.errors import (
    AuthError,
    BootstrapError,
    ChatError,
    DeserializationError,
    NotFoundError,
    ServerError,
    TransportError,
    ValidationError,
)
from samplebot.rules import DEFAULT_RULES, KeywordRule, Reply, ReplyEngine
from samplebot.shutdown import ShutdownHandler

__all__ = [
    # Core
    "Bot", "BotConfig",
    "Bootstrapper", "ReadySession",
    "Dispatcher", "ShutdownHandler",
    # Rules
    "ReplyEngine", "KeywordRule", "Reply", "DEFAULT_RULES",
    # Errors
    "ChatError", "TransportError", "AuthError", "NotFoundError",
    "ValidationError", "DeserializationError", "ServerError", "BootstrapError",
]
