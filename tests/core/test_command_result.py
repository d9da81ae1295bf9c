"""Tests for CommandResult."""

from pathlib import Path

import pytest

from dockside.core.command_result import CommandResult
from dockside.core.errors import UnexpectedResponseError


def test_empty_command_is_rejected() -> None:
    with pytest.raises(ValueError, match="command may not be empty"):
        CommandResult(command=(), working_directory=Path("."), stdout="", stderr="", exit_code=0)


def test_command_is_stored_as_tuple() -> None:
    result = CommandResult(
        command=["docker", "info"],  # type: ignore[arg-type]
        working_directory=Path("."),
        stdout="",
        stderr="",
        exit_code=0,
    )

    assert result.command == ("docker", "info")
    assert result.succeeded


def test_unexpected_response_carries_result() -> None:
    result = CommandResult(
        command=("docker", "info"), working_directory=Path("."), stdout="", stderr="boom", exit_code=1
    )

    error = result.unexpected_response()

    assert isinstance(error, UnexpectedResponseError)
    assert error.result is result
    assert not result.succeeded
