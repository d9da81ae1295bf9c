"""Fake CommandRunner implementation for testing.

FakeCommandRunner hands back canned results in order and records every
invocation, so parsers and the client can be exercised without a container
engine.
"""

import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from dockside.core.command_result import CommandResult
from dockside.core.runner import CommandRunner

FAKE_EXECUTABLE = "/usr/bin/docker"
FAKE_DIRECTORY = Path("/fake/cwd")


def command_result(
    stdout: str = "",
    stderr: str = "",
    exit_code: int = 0,
    command: Sequence[str] = ("docker",),
) -> CommandResult:
    """Build a CommandResult for parser tests."""
    return CommandResult(
        command=tuple(command),
        working_directory=FAKE_DIRECTORY,
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
    )


def succeeded(stdout: str) -> CommandResult:
    return command_result(stdout=stdout)


def failed(stderr: str, exit_code: int = 1) -> CommandResult:
    return command_result(stderr=stderr, exit_code=exit_code)


@dataclass(frozen=True)
class FakeResponse:
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


@dataclass(frozen=True)
class RunCall:
    arguments: tuple[str, ...]
    stdin: str | None


class FakeCommandRunner(CommandRunner):
    """In-memory runner returning queued responses.

    This class has NO public setup methods. All state is provided via constructor
    or captured during execution.
    """

    def __init__(
        self,
        responses: Sequence[FakeResponse] = (),
        *,
        scripts: Sequence[str] = (),
    ) -> None:
        """Create FakeCommandRunner.

        Args:
            responses: Results returned by successive run() calls
            scripts: Python sources executed by successive start() calls, standing
                in for long-running commands such as builds
        """
        self._responses = list(responses)
        self._scripts = list(scripts)
        self._run_calls: list[RunCall] = []
        self._start_calls: list[tuple[str, ...]] = []

    @property
    def run_calls(self) -> list[RunCall]:
        return self._run_calls

    @property
    def start_calls(self) -> list[tuple[str, ...]]:
        return self._start_calls

    def run(self, arguments: Sequence[str], stdin: str | None = None) -> CommandResult:
        self._run_calls.append(RunCall(tuple(arguments), stdin))
        if not self._responses:
            raise AssertionError(f"Unexpected command: {list(arguments)}")
        response = self._responses.pop(0)
        return command_result(
            stdout=response.stdout,
            stderr=response.stderr,
            exit_code=response.exit_code,
            command=(FAKE_EXECUTABLE, *arguments),
        )

    def start(self, arguments: Sequence[str]) -> tuple[subprocess.Popen[str], list[str], Path]:
        self._start_calls.append(tuple(arguments))
        if not self._scripts:
            raise AssertionError(f"Unexpected command: {list(arguments)}")
        script = self._scripts.pop(0)
        process = subprocess.Popen(
            [sys.executable, "-c", script, *arguments],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
        )
        return process, [FAKE_EXECUTABLE, *arguments], FAKE_DIRECTORY
