"""Tests for error mapping and the operator-facing detail block."""

import pytest

from samplebot.errors import (
    AuthError,
    BootstrapError,
    ChatError,
    NotFoundError,
    ServerError,
    TransportError,
    log_error_details,
)


@pytest.mark.parametrize(
    "status,cls",
    [(401, AuthError), (403, AuthError), (404, NotFoundError), (400, ServerError), (500, ServerError)],
)
def test_from_response_picks_class(status: int, cls: type) -> None:
    err = ChatError.from_response(status, {"message": "nope"})
    assert type(err) is cls
    assert err.status_code == status
    assert err.message == "nope"


def test_from_response_keeps_app_error_fields() -> None:
    err = ChatError.from_response(
        404,
        {
            "id": "app.team.get_by_name.missing.app_error",
            "message": "Unable to find the existing team.",
            "detailed_error": "name=localteam",
        },
    )
    assert err.error_id == "app.team.get_by_name.missing.app_error"
    assert err.detailed_error == "name=localteam"


def test_from_response_without_body() -> None:
    err = ChatError.from_response(502, None)
    assert isinstance(err, ServerError)
    assert err.message == "HTTP 502"
    assert err.error_id == ""


def test_bootstrap_error_carries_cause() -> None:
    cause = TransportError("down")
    err = BootstrapError("check_server", cause)
    assert err.step == "check_server"
    assert err.cause is cause
    assert "check_server" in str(err)


def test_detail_block(log_output: list[str]) -> None:
    log_error_details(
        NotFoundError("Unable to find the existing team.", error_id="team.missing", detailed_error="x=1")
    )
    (line,) = log_output
    assert line.startswith("ERROR | \tError Details:")
    assert "\t\tUnable to find the existing team.\n" in line
    assert "\t\tteam.missing\n" in line
    assert "\t\tx=1" in line


def test_detail_block_level(log_output: list[str]) -> None:
    log_error_details(TransportError("down"), "WARNING")
    assert log_output[0].startswith("WARNING | ")
