"""Locating the container CLI and turning logical arguments into an invocation."""

import logging
import os
import threading
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE_NAMES: tuple[str, ...] = ("docker", "docker.exe")
# The standalone plugin only understands the buildx family
BUILDX_EXECUTABLE_NAMES: tuple[str, ...] = ("docker-buildx", "docker-buildx.exe")


def search_path(filenames: Sequence[str], path_env: str | None = None) -> Path | None:
    """Search the ``PATH`` for an executable file with one of ``filenames``.

    Filenames earlier in ``filenames`` win even if a later one appears in an
    earlier ``PATH`` directory.

    Args:
        filenames: Acceptable file names, most preferred first
        path_env: Value to search instead of the ``PATH`` environment variable

    Returns:
        Path of the best match, or None if nothing matched
    """
    if path_env is None:
        path_env = os.environ.get("PATH", "")
    match: Path | None = None
    match_index = len(filenames)
    for directory in path_env.split(os.pathsep):
        if not directory:
            continue
        for index, filename in enumerate(filenames[:match_index]):
            candidate = Path(directory) / filename
            if candidate.is_file() and os.access(candidate, os.X_OK):
                match = candidate
                match_index = index
                break
    return match


class ExecutableLocator:
    """Resolves the CLI executable once and caches it for the life of the process.

    Concurrent first calls to ``get()`` resolve the path exactly once.
    """

    def __init__(self, filenames: Sequence[str] = DEFAULT_EXECUTABLE_NAMES) -> None:
        self._filenames = tuple(filenames)
        self._lock = threading.Lock()
        self._path: Path | None = None

    def get(self) -> Path:
        """Return the resolved executable path.

        Raises:
            FileNotFoundError: If no matching executable is on the PATH
        """
        path = self._path
        if path is not None:
            return path
        with self._lock:
            if self._path is None:
                found = search_path(self._filenames)
                if found is None:
                    raise FileNotFoundError(
                        f"None of {list(self._filenames)} were found on the PATH"
                    )
                logger.debug("Resolved executable: %s", found)
                self._path = found
            return self._path


_default_locator = ExecutableLocator()
_buildx_locator = ExecutableLocator(BUILDX_EXECUTABLE_NAMES)


def default_locator() -> ExecutableLocator:
    """Return the process-wide locator for the default CLI executable."""
    return _default_locator


def buildx_locator() -> ExecutableLocator:
    """Return the process-wide locator for a standalone ``docker-buildx``."""
    return _buildx_locator


def validate_executable(executable: Path) -> Path:
    """Check that ``executable`` exists and can be executed.

    Raises:
        FileNotFoundError: If the path does not exist or is not a regular file
        PermissionError: If the file is not executable
    """
    if not executable.is_file():
        raise FileNotFoundError(f"Executable not found: {executable}")
    if not os.access(executable, os.X_OK):
        raise PermissionError(f"File is not executable: {executable}")
    return executable


def is_plugin_for(executable: Path, argument: str) -> bool:
    """Return True if ``executable`` is the standalone plugin for ``argument``.

    ``docker-buildx`` (or ``buildx``) is the plugin for the ``buildx`` family.
    """
    stem = executable.stem
    return stem == argument or stem.endswith(f"-{argument}")


def resolve_invocation(
    executable: Path,
    arguments: Sequence[str],
    client_context: str = "",
) -> list[str]:
    """Build the full command line for a logical argument vector.

    When the executable is itself the plugin named by the first argument,
    that argument is spliced out rather than repeated.

    Args:
        executable: Path of the CLI executable
        arguments: Logical arguments, starting with the resource family
        client_context: Client context to select, or "" for the CLI's default

    Returns:
        Full argument vector, executable first
    """
    command = [str(executable)]
    remaining = list(arguments)
    if remaining and is_plugin_for(executable, remaining[0]):
        remaining = remaining[1:]
    elif client_context:
        command.extend(["--context", client_context])
    command.extend(remaining)
    return command
