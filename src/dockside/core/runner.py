"""Running the container CLI as a subprocess.

This module defines the ``CommandRunner`` interface and its production
implementation. The runner launches the process, drains both output streams
concurrently, retries transient failures until a deadline and hands every
other result to the caller unchanged.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import timedelta
from pathlib import Path

from dockside.core.command_result import CommandResult
from dockside.core.executable import resolve_invocation
from dockside.core.retry import (
    Fatal,
    Retryable,
    RetryDeadline,
    Success,
    assess_attempt,
    expire,
    is_transient_failure,
)
from dockside.core.streams import ErrorSink, combine_as_os_error, start_drainer, start_stdin_writer
from dockside.core.time.abc import Time

logger = logging.getLogger(__name__)
stdout_logger = logging.getLogger(f"{__name__}.stdout")
stderr_logger = logging.getLogger(f"{__name__}.stderr")

DEFAULT_RETRY_TIMEOUT = timedelta(seconds=10)
DEFAULT_RETRY_BACKOFF = 0.1


class CommandRunner(ABC):
    """Abstract interface for running CLI commands.

    Real implementations spawn the CLI. Fake implementations return canned
    results so parsers and the client can be tested without a container
    engine.
    """

    @abstractmethod
    def run(self, arguments: Sequence[str], stdin: str | None = None) -> CommandResult:
        """Run a command to completion.

        Args:
            arguments: Logical arguments, starting with the resource family
                (e.g. ``["container", "ls"]``)
            stdin: Data to write into the process's standard input, if any

        Returns:
            The captured result. A nonzero exit code is not an error at this
            level; the caller's parser interprets it.

        Raises:
            OSError: If reading the output or writing stdin failed
            UnexpectedResponseError: If a transient failure persisted past the
                retry deadline
        """
        ...

    @abstractmethod
    def start(self, arguments: Sequence[str]) -> tuple[subprocess.Popen[str], list[str], Path]:
        """Launch a command without waiting for it.

        Used by operations whose output is observed incrementally. The caller
        owns the returned process and must drain its streams.

        Returns:
            Tuple of (process, full command, working directory)
        """
        ...


class RealCommandRunner(CommandRunner):
    """Production implementation using ``subprocess.Popen``.

    Each attempt gets a new process and new drainer threads. Both drainers
    are joined before the exit code is read, because the exit code can be
    available before all buffered output has reached the reader.
    """

    def __init__(
        self,
        executable: Path,
        time: Time,
        *,
        cwd: Path | None = None,
        client_context: str = "",
        retry_timeout: timedelta = DEFAULT_RETRY_TIMEOUT,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        should_retry: Callable[[CommandResult], bool] = is_transient_failure,
    ) -> None:
        self.executable = executable
        self.time = time
        self.cwd = cwd
        self.client_context = client_context
        self.retry_timeout = retry_timeout
        self.retry_backoff = retry_backoff
        self.should_retry = should_retry

    @property
    def working_directory(self) -> Path:
        if self.cwd is not None:
            return self.cwd
        return Path.cwd()

    def _popen(self, command: list[str], *, with_stdin: bool) -> subprocess.Popen[str]:
        logger.debug("Running: %s", command)
        return subprocess.Popen(
            command,
            cwd=self.cwd,
            stdin=subprocess.PIPE if with_stdin else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )

    def start(self, arguments: Sequence[str]) -> tuple[subprocess.Popen[str], list[str], Path]:
        command = resolve_invocation(self.executable, arguments, self.client_context)
        return self._popen(command, with_stdin=False), command, self.working_directory

    def run(self, arguments: Sequence[str], stdin: str | None = None) -> CommandResult:
        command = resolve_invocation(self.executable, arguments, self.client_context)
        deadline = RetryDeadline.after(self.time, self.retry_timeout)
        attempt = 0
        while True:
            attempt += 1
            result = self._run_once(command, stdin)
            outcome = assess_attempt(result, self.should_retry)
            if isinstance(outcome, Retryable) and deadline.is_expired(self.time.now()):
                outcome = expire(result, outcome, deadline)

            match outcome:
                case Success(value=value):
                    return value
                case Retryable(reason=reason):
                    logger.debug(
                        "Attempt %d of %s hit a transient failure, retrying in %ss: %s",
                        attempt,
                        command,
                        self.retry_backoff,
                        reason,
                    )
                    self.time.sleep(self.retry_backoff)
                case Fatal(error=error):
                    raise error

    def _run_once(self, command: list[str], stdin: str | None) -> CommandResult:
        errors = ErrorSink()
        stdout_lines: list[str] = []
        stderr_lines: list[str] = []

        def on_stdout(line: str) -> None:
            stdout_lines.append(line)
            stdout_logger.info(line)

        def on_stderr(line: str) -> None:
            stderr_lines.append(line)
            stderr_logger.info(line)

        process = self._popen(command, with_stdin=stdin is not None)
        threads = []
        try:
            if stdin is not None and process.stdin is not None:
                threads.append(start_stdin_writer(process.stdin, stdin, errors))
            if process.stdout is not None:
                threads.append(start_drainer(process.stdout, on_stdout, errors, "stdout-drainer"))
            if process.stderr is not None:
                threads.append(start_drainer(process.stderr, on_stderr, errors, "stderr-drainer"))

            for thread in threads:
                thread.join()
            exit_code = process.wait()
        except BaseException:
            # Interrupted while waiting: leave no orphaned process or dangling drainer behind
            process.kill()
            process.wait()
            for thread in threads:
                thread.join()
            raise

        error = combine_as_os_error(errors.snapshot())
        if error is not None:
            raise error

        return CommandResult(
            command=tuple(command),
            working_directory=self.working_directory,
            stdout="\n".join(stdout_lines),
            stderr="\n".join(stderr_lines),
            exit_code=exit_code,
        )
