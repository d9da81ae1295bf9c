"""Tests for RealCommandRunner against real processes.

The Python interpreter stands in for the container CLI: every invocation is
``python -c <script> ...``.
"""

import os
import signal
import threading
import sys
from datetime import timedelta
from pathlib import Path

import pytest

from dockside.core.errors import UnexpectedResponseError
from dockside.core.runner import RealCommandRunner
from tests.fakes.time import FakeTime

CONNECTION_RESET = 'error during connect: Get "http://docker/v1.47/info": EOF'

# Fails with a transient error until it has run ``failures`` times, then succeeds
FLAKY_SCRIPT = """
import sys
from pathlib import Path
counter = Path(sys.argv[1])
failures = int(sys.argv[2])
runs = int(counter.read_text()) if counter.exists() else 0
counter.write_text(str(runs + 1))
if runs < failures:
    sys.stderr.write(sys.argv[3])
    sys.exit(1)
print("ok")
"""


def _runner(time: FakeTime, **kwargs) -> RealCommandRunner:
    return RealCommandRunner(Path(sys.executable), time, **kwargs)


def test_run_captures_both_streams_and_exit_code() -> None:
    runner = _runner(FakeTime())

    result = runner.run(["-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"])

    assert result.stdout == "out"
    assert result.stderr == "err"
    assert result.exit_code == 3
    assert result.command[:2] == (sys.executable, "-c")


def test_run_joins_lines_without_trailing_terminator() -> None:
    runner = _runner(FakeTime())

    result = runner.run(["-c", "print('a'); print('b')"])

    assert result.stdout == "a\nb"


def test_run_handles_large_output_on_both_streams() -> None:
    script = (
        "import sys\n"
        "line = 'x' * 1023\n"
        "for _ in range(300):\n"
        "    sys.stdout.write(line + '\\n')\n"
        "    sys.stderr.write(line + '\\n')\n"
    )
    runner = _runner(FakeTime())

    result = runner.run(["-c", script])

    assert result.exit_code == 0
    assert len(result.stdout.split("\n")) == 300
    assert len(result.stderr.split("\n")) == 300
    assert len(result.stdout) >= 256 * 1024


def test_run_writes_stdin() -> None:
    runner = _runner(FakeTime())

    result = runner.run(["-c", "import sys; print(sys.stdin.read()[::-1])"], stdin="abc")

    assert result.stdout == "cba"


def test_run_uses_working_directory(tmp_path: Path) -> None:
    runner = _runner(FakeTime(), cwd=tmp_path)

    result = runner.run(["-c", "import os; print(os.getcwd())"])

    assert Path(result.stdout).resolve() == tmp_path.resolve()
    assert result.working_directory == tmp_path


def test_run_returns_failures_without_interpreting_them() -> None:
    runner = _runner(FakeTime())

    result = runner.run(["-c", "import sys; sys.stderr.write('Error response from daemon: nope'); sys.exit(1)"])

    assert result.exit_code == 1
    assert result.stderr == "Error response from daemon: nope"


def test_run_retries_transient_failure_then_succeeds(tmp_path: Path) -> None:
    time = FakeTime()
    runner = _runner(time)
    counter = tmp_path / "runs"

    result = runner.run(["-c", FLAKY_SCRIPT, str(counter), "1", CONNECTION_RESET])

    assert result.stdout == "ok"
    assert counter.read_text() == "2"
    assert time.sleep_calls == [0.1]


def test_run_stops_retrying_strictly_after_deadline(tmp_path: Path) -> None:
    time = FakeTime()
    runner = _runner(time, retry_timeout=timedelta(seconds=1), retry_backoff=0.25)
    counter = tmp_path / "runs"

    with pytest.raises(UnexpectedResponseError) as exc_info:
        runner.run(["-c", FLAKY_SCRIPT, str(counter), "1000", CONNECTION_RESET])

    # Attempts at t=0, 0.25, 0.5, 0.75 and 1.0 are within the deadline; t=1.25 is past it
    assert counter.read_text() == "6"
    assert time.sleep_calls == [0.25] * 5
    assert exc_info.value.result.stderr == CONNECTION_RESET


def test_custom_retry_predicate_is_honored(tmp_path: Path) -> None:
    time = FakeTime()
    runner = _runner(time, should_retry=lambda result: False)
    counter = tmp_path / "runs"

    result = runner.run(["-c", FLAKY_SCRIPT, str(counter), "1", CONNECTION_RESET])

    assert result.exit_code == 1
    assert time.sleep_calls == []


@pytest.mark.skipif(os.name == "nt", reason="uses POSIX process signals")
def test_interrupt_during_backoff_leaves_no_process_behind(tmp_path: Path) -> None:
    time = FakeTime(interrupt_on_sleep=True)
    runner = _runner(time)
    pid_file = tmp_path / "pid"
    script = (
        "import os, sys\n"
        f"open({str(pid_file)!r}, 'w').write(str(os.getpid()))\n"
        f"sys.stderr.write({CONNECTION_RESET!r})\n"
        "sys.exit(1)\n"
    )

    with pytest.raises(KeyboardInterrupt):
        runner.run(["-c", script])

    pid = int(pid_file.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


@pytest.mark.skipif(os.name == "nt", reason="uses POSIX process signals")
def test_interrupt_while_draining_kills_and_reaps_process(tmp_path: Path) -> None:
    runner = _runner(FakeTime())
    pid_file = tmp_path / "pid"
    script = (
        "import os, sys, time\n"
        f"open({str(pid_file)!r}, 'w').write(str(os.getpid()))\n"
        "print('started', flush=True)\n"
        "time.sleep(30)\n"
    )

    def interrupt_once_started() -> None:
        while not pid_file.exists() or not pid_file.read_text():
            threading.Event().wait(0.01)
        signal.pthread_kill(threading.main_thread().ident, signal.SIGINT)

    interrupter = threading.Thread(target=interrupt_once_started, daemon=True)
    interrupter.start()
    with pytest.raises(KeyboardInterrupt):
        runner.run(["-c", script])
    interrupter.join()

    assert not [thread for thread in threading.enumerate() if thread.name.endswith("-drainer")]
    pid = int(pid_file.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)
