"""Tests for StreamListener and BuildListener."""

import subprocess
import sys

import pytest

from dockside.core.errors import (
    BuilderNotFoundError,
    ContextNotFoundError,
    UnexpectedResponseError,
    UnsupportedExporterError,
)
from dockside.core.listener import BuildListener, StreamListener
from dockside.parsing.buildx import BUILD_ERRORS
from tests.fakes.command_runner import command_result

PREFACE_WARNING = (
    "2025/06/11 15:53:20 http2: server: error reading preface from client //./pipe/dockerDesktopLinuxEngine: "
    "file has already been closed\n"
)


def _spawn(script: str) -> subprocess.Popen[str]:
    return subprocess.Popen(
        [sys.executable, "-c", script],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
    )


class RecordingListener(StreamListener):
    def __init__(self) -> None:
        super().__init__()
        self.seen: list[str] = []

    def on_stderr_line(self, line: str) -> None:
        self.seen.append(line)
        super().on_stderr_line(line)


def test_await_completion_returns_aggregate_output() -> None:
    process = _spawn("import sys; print('a'); print('b'); print('progress', file=sys.stderr); sys.exit(2)")
    listener = StreamListener()

    listener.start(process.stdout, process.stderr, process.wait)
    output = listener.await_completion()

    assert output.stdout == "a\nb"
    assert output.stderr == "progress"
    assert output.exit_code == 2


def test_await_completion_handles_no_output() -> None:
    process = _spawn("pass")
    listener = StreamListener()

    listener.start(process.stdout, process.stderr, process.wait)
    output = listener.await_completion()

    assert output.stdout == ""
    assert output.stderr == ""
    assert output.exit_code == 0


def test_await_completion_handles_large_output_on_both_streams() -> None:
    script = (
        "import sys\n"
        "line = 'x' * 1023\n"
        "for _ in range(300):\n"
        "    sys.stdout.write(line + '\\n')\n"
        "    sys.stderr.write(line + '\\n')\n"
    )
    process = _spawn(script)
    listener = StreamListener()

    listener.start(process.stdout, process.stderr, process.wait)
    output = listener.await_completion()

    assert output.stdout.split("\n") == ["x" * 1023] * 300
    assert output.stderr.split("\n") == ["x" * 1023] * 300
    assert output.exit_code == 0


def test_output_written_after_process_exit_is_kept() -> None:
    # The grandchild inherits the pipes and keeps writing after its parent exits
    script = (
        "import subprocess, sys\n"
        "print('early', flush=True)\n"
        "subprocess.Popen([sys.executable, '-c', "
        "\"import time; time.sleep(0.5); print('late', flush=True)\"])\n"
    )
    process = _spawn(script)
    listener = StreamListener()

    listener.start(process.stdout, process.stderr, process.wait)
    output = listener.await_completion()

    assert output.stdout == "early\nlate"
    assert output.exit_code == 0


def test_hooks_see_each_line() -> None:
    process = _spawn("import sys\nfor i in range(50):\n    print(i, file=sys.stderr)\n")
    listener = RecordingListener()

    listener.start(process.stdout, process.stderr, process.wait)
    listener.await_completion()

    assert listener.seen == [str(i) for i in range(50)]


def test_await_completion_requires_start() -> None:
    with pytest.raises(RuntimeError, match="start"):
        StreamListener().await_completion()


def test_close_is_idempotent() -> None:
    process = _spawn("print('x')")
    listener = StreamListener()
    listener.start(process.stdout, process.stderr, process.wait)
    listener.await_completion()

    listener.close()
    listener.close()


def test_build_failed_reports_missing_builder() -> None:
    result = command_result(stderr='ERROR: no builder "mybuilder" found', exit_code=1)

    with pytest.raises(BuilderNotFoundError) as exc_info:
        BuildListener(BUILD_ERRORS).build_failed(result)

    assert exc_info.value.name == "mybuilder"


def test_build_failed_ignores_preface_warning() -> None:
    result = command_result(stderr=PREFACE_WARNING + 'ERROR: no builder "mybuilder" found', exit_code=1)

    with pytest.raises(BuilderNotFoundError):
        BuildListener(BUILD_ERRORS).build_failed(result)


def test_build_failed_reports_missing_file() -> None:
    result = command_result(
        stderr="ERROR: resolve : lstat /work/missing: no such file or directory", exit_code=1
    )

    with pytest.raises(FileNotFoundError, match="/work/missing"):
        BuildListener(BUILD_ERRORS).build_failed(result)


def test_build_failed_reports_unsupported_exporter() -> None:
    result = command_result(
        stderr="ERROR: OCI exporter is not supported for the docker driver.\nSwitch to a different driver",
        exit_code=1,
    )

    with pytest.raises(UnsupportedExporterError, match="containerd image store"):
        BuildListener(BUILD_ERRORS).build_failed(result)


def test_build_failed_reports_unknown_context() -> None:
    result = command_result(
        stderr="ERROR: no valid drivers found: unable to parse docker host `missing`", exit_code=1
    )

    with pytest.raises(ContextNotFoundError, match="missing"):
        BuildListener(BUILD_ERRORS).build_failed(result)


def test_build_failed_reports_locked_file() -> None:
    result = command_result(
        stderr="ERROR: open C:\\ctx\\a.txt: The process cannot access the file because it is being used by "
        "another process.",
        exit_code=1,
    )

    with pytest.raises(OSError, match="being used by another process"):
        BuildListener(BUILD_ERRORS).build_failed(result)


def test_build_failed_falls_back_to_unexpected_response() -> None:
    result = command_result(stderr="ERROR: something new", exit_code=1)

    with pytest.raises(UnexpectedResponseError):
        BuildListener(BUILD_ERRORS).build_failed(result)
