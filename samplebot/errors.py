"""
Error taxonomy for talking to the chat server.

Adapters translate library exceptions (httpx, websockets, json) into these
classes at the boundary, so the bootstrap sequencer and the dispatcher only
ever deal with ChatError subclasses.
"""

from __future__ import annotations

from typing import Any

from loguru import logger


class ChatError(Exception):
    """Base error. Mirrors the fields of a Mattermost AppError."""

    def __init__(
        self,
        message: str,
        *,
        error_id: str = "",
        detailed_error: str = "",
        status_code: int = 0,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_id = error_id
        self.detailed_error = detailed_error
        self.status_code = status_code

    @classmethod
    def from_response(cls, status_code: int, body: Any) -> "ChatError":
        """Build the right subclass for a non-2xx HTTP reply."""
        if not isinstance(body, dict):
            body = {}
        kwargs = {
            "error_id": str(body.get("id", "")),
            "detailed_error": str(body.get("detailed_error", "")),
            "status_code": status_code,
        }
        message = str(body.get("message") or f"HTTP {status_code}")

        if status_code in (401, 403):
            return AuthError(message, **kwargs)
        if status_code == 404:
            return NotFoundError(message, **kwargs)
        return ServerError(message, **kwargs)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"error_id={self.error_id!r}, status_code={self.status_code})"
        )


class TransportError(ChatError):
    """Server unreachable or the connection failed."""


class AuthError(ChatError):
    """Credentials rejected."""


class NotFoundError(ChatError):
    """Team, channel or user does not exist."""


class ValidationError(ChatError):
    """The server answered with something we cannot use."""


class DeserializationError(ChatError):
    """An event payload could not be decoded."""


class ServerError(ChatError):
    """Any other non-2xx reply."""


class BootstrapError(Exception):
    """A fatal startup step failed; the process must exit non-zero."""

    def __init__(self, step: str, cause: ChatError) -> None:
        super().__init__(f"bootstrap step {step!r} failed: {cause.message}")
        self.step = step
        self.cause = cause


def log_error_details(err: ChatError, level: str = "ERROR") -> None:
    """Write the operator-facing detail block for an error."""
    logger.log(
        level,
        "\tError Details:\n"
        f"\t\t{err.message}\n"
        f"\t\t{err.error_id}\n"
        f"\t\t{err.detailed_error}",
    )
