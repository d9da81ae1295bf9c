"""Captured outcome of a single CLI invocation."""

from dataclasses import dataclass
from pathlib import Path

from dockside.core.errors import UnexpectedResponseError


@dataclass(frozen=True)
class CommandResult:
    """Result of running one command to completion.

    Both output streams are fully materialized: each holds the stream's lines
    joined with ``"\\n"`` and no trailing line terminator.

    Attributes:
        command: Full invocation, executable first
        working_directory: Directory the command ran in
        stdout: Contents of the standard output stream
        stderr: Contents of the standard error stream
        exit_code: Exit code returned by the process
    """

    command: tuple[str, ...]
    working_directory: Path
    stdout: str
    stderr: str
    exit_code: int

    def __post_init__(self) -> None:
        if not self.command:
            raise ValueError("command may not be empty")
        # Accept any sequence but store an immutable copy
        object.__setattr__(self, "command", tuple(self.command))

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def unexpected_response(self, reason: str | None = None) -> UnexpectedResponseError:
        """Return an error describing this result in full.

        Args:
            reason: Optional note on why the response was rejected

        Returns:
            UnexpectedResponseError carrying this result
        """
        return UnexpectedResponseError(self, reason)
