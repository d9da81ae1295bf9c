"""Ordered tables mapping stderr text to exceptions.

Each table is evaluated against a failed command's stderr. The first entry
whose pattern matches the *whole* stderr decides the exception, and the
match's capture groups are passed to the entry's factory. Known textual
variants of one condition are expressed as separate entries mapping to the
same exception.
"""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import NoReturn

from dockside.core.command_result import CommandResult

ErrorFactory = Callable[..., Exception]


@dataclass(frozen=True)
class ErrorPattern:
    """One row of an error table.

    Attributes:
        pattern: Regular expression that must match the entire stderr
        factory: Called with the match's capture groups; returns the exception to raise
    """

    pattern: re.Pattern[str]
    factory: ErrorFactory

    def match(self, stderr: str) -> Exception | None:
        matched = self.pattern.fullmatch(stderr)
        if matched is None:
            return None
        return self.factory(*matched.groups())


def entry(pattern: str, factory: ErrorFactory, flags: int = 0) -> ErrorPattern:
    """Compile ``pattern`` into an ``ErrorPattern``."""
    return ErrorPattern(re.compile(pattern, flags), factory)


def literal(text: str, factory: ErrorFactory) -> ErrorPattern:
    """Build an entry that matches ``text`` exactly."""
    return ErrorPattern(re.compile(re.escape(text)), factory)


def prefix(text: str, factory: ErrorFactory) -> ErrorPattern:
    """Build an entry that matches any stderr starting with ``text``."""
    return ErrorPattern(re.compile(re.escape(text) + ".*", re.DOTALL), factory)


@dataclass(frozen=True)
class ErrorPatternTable:
    """Ordered collection of ``ErrorPattern`` entries."""

    entries: tuple[ErrorPattern, ...]

    @staticmethod
    def of(*entries: ErrorPattern) -> "ErrorPatternTable":
        return ErrorPatternTable(tuple(entries))

    def __add__(self, other: "ErrorPatternTable") -> "ErrorPatternTable":
        return ErrorPatternTable(self.entries + other.entries)

    def find(self, stderr: str) -> Exception | None:
        """Return the exception for the first matching entry, or None."""
        for row in self.entries:
            error = row.match(stderr)
            if error is not None:
                return error
        return None

    def raise_for(self, result: CommandResult) -> NoReturn:
        """Raise the exception that explains a failed command.

        Raises:
            Exception: The first matching entry's exception
            UnexpectedResponseError: If no entry matches
        """
        error = self.find(result.stderr)
        if error is not None:
            raise error
        raise result.unexpected_response()


EMPTY_TABLE = ErrorPatternTable(())


def matches_any(stderr: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    return any(pattern.fullmatch(stderr) for pattern in patterns)
