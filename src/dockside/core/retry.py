"""Retry policy for transient CLI failures.

Only a narrow whitelist of stderr texts is considered transient. Everything
else is handed to the parsing layer untouched. Retries are bounded by a
deadline computed once at the start of an operation.
"""

import re
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, TypeVar

from dockside.core.command_result import CommandResult
from dockside.core.time.abc import Time

# The network connection has been unexpectedly terminated.
CONNECTION_RESET = re.compile(r'error during connect: [^ ]+ "[^"]+": EOF')
FILE_IN_USE_SUFFIX = "being used by another process."

IS_WINDOWS = sys.platform.startswith("win")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryDeadline:
    """Absolute point in time after which an operation stops retrying."""

    expires_at: datetime

    @staticmethod
    def after(time: Time, timeout: timedelta) -> "RetryDeadline":
        """Create a deadline ``timeout`` from the current time."""
        return RetryDeadline(expires_at=time.now() + timeout)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Retryable:
    reason: str


@dataclass(frozen=True)
class Fatal:
    error: Exception


Outcome = Success[T] | Retryable | Fatal


def is_transient_failure(result: CommandResult, *, windows: bool = IS_WINDOWS) -> bool:
    """Return True if the command failed in a way that repeating it may fix.

    Args:
        result: Result of a completed attempt
        windows: Whether Windows-only conditions apply (defaults to the host platform)
    """
    if result.exit_code == 0:
        return False
    stderr = result.stderr
    if CONNECTION_RESET.fullmatch(stderr):
        return True
    return windows and stderr.endswith(FILE_IN_USE_SUFFIX)


def assess_attempt(
    result: CommandResult,
    should_retry: Callable[[CommandResult], bool],
) -> Outcome[CommandResult]:
    """Decide whether an attempt should be repeated.

    The result is returned as ``Success`` even when the command failed: only
    the parsing layer may attach meaning to a nonzero exit code.
    """
    if should_retry(result):
        return Retryable(reason=result.stderr)
    return Success(result)


def expire(result: CommandResult, outcome: Retryable, deadline: RetryDeadline) -> Fatal:
    """Convert a retryable outcome whose deadline has passed into a fatal one."""
    return Fatal(
        result.unexpected_response(
            f"transient failure persisted past {deadline.expires_at.isoformat()}: {outcome.reason}"
        )
    )
