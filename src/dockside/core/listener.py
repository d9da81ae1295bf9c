"""Observing processes that outlive the call that started them.

A ``StreamListener`` starts draining a process's output as soon as it is
handed the streams and returns immediately. Lines are delivered to
overridable hooks while the process runs, and ``await_completion()`` blocks
for the aggregate output and exit code.
"""

import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING

from dockside.core.command_result import CommandResult
from dockside.core.streams import ErrorSink, combine_as_os_error, start_drainer

if TYPE_CHECKING:
    from dockside.parsing.patterns import ErrorPatternTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListenerOutput:
    """Aggregate output of an observed process."""

    stdout: str
    stderr: str
    exit_code: int


class StreamListener:
    """Drains a running process's stdout and stderr into buffers.

    Subclasses override ``on_stdout_line`` and ``on_stderr_line`` to react to
    output in real time; call ``super()`` to keep the line in the aggregate.
    """

    def __init__(self, log_name: str = __name__) -> None:
        self._stdout_logger = logging.getLogger(f"{log_name}.stdout")
        self._stderr_logger = logging.getLogger(f"{log_name}.stderr")
        self._stdout_lines: list[str] = []
        self._stderr_lines: list[str] = []
        self._errors = ErrorSink()
        self._streams: list[IO[str]] = []
        self._threads: list[threading.Thread] = []
        self._wait_for: Callable[[], int] | None = None

    def start(self, stdout: IO[str], stderr: IO[str], wait_for: Callable[[], int]) -> None:
        """Begin draining both streams without blocking.

        Args:
            stdout: The process's standard output
            stderr: The process's standard error
            wait_for: Blocks until the process exits and returns its exit code
        """
        self._stdout_lines = []
        self._stderr_lines = []
        self._errors = ErrorSink()
        self._streams = [stdout, stderr]
        self._wait_for = wait_for
        self._threads = [
            start_drainer(stdout, self.on_stdout_line, self._errors, "listener-stdout"),
            start_drainer(stderr, self.on_stderr_line, self._errors, "listener-stderr"),
        ]

    def on_stdout_line(self, line: str) -> None:
        self._stdout_lines.append(line)
        self._stdout_logger.info(line)

    def on_stderr_line(self, line: str) -> None:
        self._stderr_lines.append(line)
        self._stderr_logger.info(line)

    def await_completion(self) -> ListenerOutput:
        """Block until both streams are drained and the process has exited.

        Raises:
            RuntimeError: If ``start()`` was not called
            OSError: If reading either stream failed
        """
        if self._wait_for is None:
            raise RuntimeError("start() must be called before await_completion()")
        self.join()
        exit_code = self._wait_for()
        error = combine_as_os_error(self._errors.snapshot())
        if error is not None:
            raise error
        return ListenerOutput(
            stdout="\n".join(self._stdout_lines),
            stderr="\n".join(self._stderr_lines),
            exit_code=exit_code,
        )

    def join(self) -> None:
        """Wait for both drainers to reach the end of their streams."""
        for thread in self._threads:
            thread.join()

    @property
    def is_draining(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def close(self) -> None:
        """Close both streams. Safe to call more than once."""
        for stream in self._streams:
            stream.close()


# WORKAROUND: https://github.com/docker/buildx/issues/3238
# Intermittent warning that does not affect the build, e.g.
# "2025/06/11 15:53:20 http2: server: error reading preface from client //./pipe/x: file has already been closed"
ERROR_READING_PREFACE = re.compile(
    r".+? .+? http2: server: error reading preface from client .+?: file has already been closed\n"
)


class BuildListener(StreamListener):
    """Listener for image builds.

    Docker writes build progress to stderr, so stderr lines are logged at
    INFO and do not indicate an error by themselves.

    Args:
        errors: Table mapping a failed build's stderr to an exception
    """

    def __init__(self, errors: "ErrorPatternTable") -> None:
        super().__init__(log_name=f"{__name__}.build")
        self._build_errors = errors

    def build_passed(self) -> None:
        logger.debug("Build passed")

    def build_failed(self, result: CommandResult) -> None:
        """Raise the exception matching a failed build's stderr.

        Raises:
            FileNotFoundError: If a referenced path does not exist
            BuilderNotFoundError: If the selected builder does not exist
            UnsupportedExporterError: If the driver does not support an exporter
            ContextNotFoundError: If the client context does not exist
            OSError: If a file is locked by another process
            UnexpectedResponseError: If the failure is not recognized
        """
        match = ERROR_READING_PREFACE.search(result.stderr)
        if match is not None:
            result = CommandResult(
                command=result.command,
                working_directory=result.working_directory,
                stdout=result.stdout,
                stderr=result.stderr[match.end() :],
                exit_code=result.exit_code,
            )
        self._build_errors.raise_for(result)

    def build_completed(self) -> None:
        self.close()
