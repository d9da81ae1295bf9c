"""Tests for the dockside diagnostic CLI."""

import json

from click.testing import CliRunner

from dockside.cli import cli
from dockside.client import DocksideClient
from tests.fakes.command_runner import FakeCommandRunner, FakeResponse
from tests.fakes.time import FakeTime


def _client(*responses: FakeResponse) -> DocksideClient:
    return DocksideClient(FakeCommandRunner(responses), FakeTime())


def test_builder_prints_name_and_status() -> None:
    client = _client(FakeResponse(stdout="Name: ci\nDriver: docker-container\nStatus: running"))

    result = CliRunner().invoke(cli, ["builder", "ci"], obj=client)

    assert result.exit_code == 0
    assert result.stdout == "ci\tRUNNING\n"


def test_builder_reports_error_on_stderr() -> None:
    client = _client(FakeResponse(stdout="Name: ci\nError: cannot reach daemon"))

    result = CliRunner().invoke(cli, ["builder"], obj=client)

    assert result.exit_code == 0
    assert result.stdout == "ci\tERROR\n"
    assert "cannot reach daemon" in result.stderr


def test_missing_builder_fails() -> None:
    client = _client(FakeResponse(stderr='ERROR: no builder "ghost" found', exit_code=1))

    result = CliRunner().invoke(cli, ["builder", "ghost"], obj=client)

    assert result.exit_code == 1
    assert "Error: Builder not found: ghost" in result.stderr


def test_platforms_are_sorted() -> None:
    client = _client(FakeResponse(stdout="Name: default\nStatus: running\nPlatforms: linux/arm64, linux/amd64"))

    result = CliRunner().invoke(cli, ["platforms"], obj=client)

    assert result.exit_code == 0
    assert result.stdout == "linux/amd64\nlinux/arm64\n"


def test_contexts_marks_current() -> None:
    output = "\n".join(
        [
            json.dumps({"Name": "default", "Current": False, "DockerEndpoint": "unix:///var/run/docker.sock"}),
            json.dumps({"Name": "remote", "Current": True, "DockerEndpoint": "tcp://10.0.0.5:2376"}),
        ]
    )

    result = CliRunner().invoke(cli, ["contexts"], obj=_client(FakeResponse(stdout=output)))

    assert result.exit_code == 0
    assert result.stdout == "  default\tunix:///var/run/docker.sock\n* remote\ttcp://10.0.0.5:2376\n"


def test_run_prints_stdout() -> None:
    runner = FakeCommandRunner([FakeResponse(stdout="27.3.1")])

    result = CliRunner().invoke(
        cli, ["run", "version", "--format", "{{.Client.Version}}"], obj=DocksideClient(runner, FakeTime())
    )

    assert result.exit_code == 0
    assert result.stdout == "27.3.1\n"
    assert runner.run_calls[0].arguments == ("version", "--format", "{{.Client.Version}}")


def test_run_failure_prints_diagnostic_dump() -> None:
    client = _client(FakeResponse(stdout="", stderr="unknown command: docker frobnicate", exit_code=125))

    result = CliRunner().invoke(cli, ["run", "frobnicate"], obj=client)

    assert result.exit_code == 1
    assert "Error: ['/usr/bin/docker', 'frobnicate'] returned an unexpected response." in result.stderr
    assert "exitCode   : 125" in result.stderr
    assert "stderr     : unknown command: docker frobnicate" in result.stderr


def test_parser_errors_become_styled_messages() -> None:
    client = _client(FakeResponse(stderr="ERROR: open /root/.docker/buildx/current: Access is denied.", exit_code=1))

    result = CliRunner().invoke(cli, ["builder"], obj=client)

    assert result.exit_code == 1
    assert "Error: Access is denied: /root/.docker/buildx/current" in result.stderr
