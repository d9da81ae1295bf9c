"""Concurrent draining of process output streams.

A child process blocks once its pipe buffer fills, so stdout and stderr must
each be read by an independent thread for as long as the process runs.
Failures on those threads are collected into an ``ErrorSink`` instead of being
raised, and the caller turns them into a single ``OSError`` after joining.
"""

import logging
import threading
from collections.abc import Callable, Iterable
from typing import IO

logger = logging.getLogger(__name__)


class ErrorSink:
    """Thread-safe, append-only collection of exceptions raised on worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: list[Exception] = []

    def add(self, error: Exception) -> None:
        with self._lock:
            self._errors.append(error)

    def snapshot(self) -> list[Exception]:
        """Return a copy of the collected exceptions in the order they were added."""
        with self._lock:
            return list(self._errors)

    def __bool__(self) -> bool:
        with self._lock:
            return len(self._errors) > 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)


def _strip_line_terminator(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n") or line.endswith("\r"):
        return line[:-1]
    return line


def drain_stream(stream: IO[str], consumer: Callable[[str], None], errors: ErrorSink) -> None:
    """Read ``stream`` to end-of-file, passing each line to ``consumer``.

    Lines are delivered in arrival order without their terminator. Any
    exception raised while reading or inside ``consumer`` ends the drain and is
    appended to ``errors``. The stream is closed on every exit path.

    Args:
        stream: Text stream to read
        consumer: Callback invoked once per line
        errors: Sink receiving any exception raised along the way
    """
    try:
        for line in stream:
            consumer(_strip_line_terminator(line))
    except Exception as e:
        errors.add(e)
    finally:
        try:
            stream.close()
        except Exception as e:
            errors.add(e)


def start_drainer(
    stream: IO[str],
    consumer: Callable[[str], None],
    errors: ErrorSink,
    name: str,
) -> threading.Thread:
    """Drain ``stream`` on a new daemon thread and return the started thread."""
    parent = threading.current_thread().name
    thread = threading.Thread(
        target=drain_stream,
        args=(stream, consumer, errors),
        name=name,
        daemon=True,
    )
    thread.start()
    logger.debug("Started %s, spawned by thread %r", name, parent)
    return thread


def _write_and_close(stdin: IO[str], data: str, errors: ErrorSink) -> None:
    try:
        stdin.write(data)
    except Exception as e:
        errors.add(e)
    finally:
        try:
            stdin.close()
        except Exception as e:
            errors.add(e)


def start_stdin_writer(stdin: IO[str], data: str, errors: ErrorSink) -> threading.Thread:
    """Write ``data`` into a process's stdin on a new daemon thread, then close it."""
    thread = threading.Thread(
        target=_write_and_close,
        args=(stdin, data, errors),
        name="stdin-writer",
        daemon=True,
    )
    thread.start()
    return thread


def combine_as_os_error(errors: Iterable[Exception]) -> OSError | None:
    """Combine exceptions collected from worker threads into one ``OSError``.

    Args:
        errors: Zero or more exceptions

    Returns:
        None if there were no exceptions, the exception itself if there was a
        single ``OSError``, otherwise an ``OSError`` describing all of them
    """
    collected = list(errors)
    if not collected:
        return None
    if len(collected) == 1:
        first = collected[0]
        if isinstance(first, OSError):
            return first
        combined = OSError(f"{type(first).__name__}: {first}")
        combined.__cause__ = first
        return combined

    lines = [f"The operation threw {len(collected)} exceptions."]
    for index, error in enumerate(collected, start=1):
        entry = f"{index}. {type(error).__module__}.{type(error).__qualname__}"
        message = str(error)
        if message:
            entry += f": {message}"
        lines.append(entry)
    combined = OSError("\n".join(lines))
    combined.__cause__ = collected[0]
    return combined
