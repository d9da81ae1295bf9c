"""Client configuration loaded from ~/.dockside/config.toml.

Every field has a default, so a missing file is equivalent to an empty one.
The ``DOCKSIDE_EXECUTABLE`` environment variable overrides the executable
named in the file.
"""

import os
import tomllib
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

EXECUTABLE_ENV_VAR = "DOCKSIDE_EXECUTABLE"


@dataclass(frozen=True)
class ClientConfig:
    """Immutable client configuration.

    Attributes:
        executable: CLI executable to run; None searches the PATH
        client_context: Client context passed via ``--context``; "" uses the CLI's current context
        retry_timeout_seconds: How long transient failures are retried
        retry_backoff_seconds: Pause between retries
    """

    executable: Path | None = None
    client_context: str = ""
    retry_timeout_seconds: float = 10.0
    retry_backoff_seconds: float = 0.1


def _number(data: Mapping[str, Any], key: str, default: float, config_path: Path) -> float:
    value = data.get(key, default)
    # bool is an int subclass but never a valid duration
    if isinstance(value, bool) or not isinstance(value, int | float) or value < 0:
        raise ValueError(f"'{key}' must be a non-negative number in {config_path}, got: {value!r}")
    return float(value)


def parse_config(data: Mapping[str, Any], config_path: Path) -> ClientConfig:
    """Build a ``ClientConfig`` from parsed TOML.

    Raises:
        ValueError: If a value has the wrong type
    """
    executable = data.get("executable")
    if executable is not None and not isinstance(executable, str):
        raise ValueError(f"'executable' must be a string in {config_path}")
    client_context = data.get("client_context", "")
    if not isinstance(client_context, str):
        raise ValueError(f"'client_context' must be a string in {config_path}")
    return ClientConfig(
        executable=Path(executable).expanduser() if executable else None,
        client_context=client_context,
        retry_timeout_seconds=_number(data, "retry_timeout_seconds", 10.0, config_path),
        retry_backoff_seconds=_number(data, "retry_backoff_seconds", 0.1, config_path),
    )


def apply_environment(config: ClientConfig, environ: Mapping[str, str]) -> ClientConfig:
    """Return ``config`` with environment overrides applied."""
    executable = environ.get(EXECUTABLE_ENV_VAR)
    if executable:
        return replace(config, executable=Path(executable).expanduser())
    return config


class ConfigOps(ABC):
    """Abstract interface for loading client configuration.

    Lets tests supply configuration in memory without touching the filesystem.
    """

    @abstractmethod
    def exists(self) -> bool:
        """Check if a config file exists."""
        ...

    @abstractmethod
    def load(self) -> ClientConfig:
        """Load the configuration.

        Returns:
            ClientConfig with defaults for any missing field

        Raises:
            ValueError: If the config is malformed
        """
        ...

    @abstractmethod
    def path(self) -> Path:
        """Get the path to the config file (for error messages and debugging)."""
        ...


class FilesystemConfigOps(ConfigOps):
    """Production implementation that reads ~/.dockside/config.toml."""

    def __init__(self, config_path: Path | None = None, environ: Mapping[str, str] | None = None) -> None:
        self._config_path = config_path
        self._environ = os.environ if environ is None else environ

    def exists(self) -> bool:
        return self.path().exists()

    def load(self) -> ClientConfig:
        config_path = self.path()
        if not config_path.exists():
            return apply_environment(ClientConfig(), self._environ)
        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Malformed config file {config_path}: {e}") from e
        return apply_environment(parse_config(data, config_path), self._environ)

    def path(self) -> Path:
        if self._config_path is not None:
            return self._config_path
        return Path.home() / ".dockside" / "config.toml"


class InMemoryConfigOps(ConfigOps):
    """Test implementation that holds the config in memory."""

    def __init__(self, config: ClientConfig | None = None) -> None:
        """Initialize in-memory config ops.

        Args:
            config: Config to return (None = no config file, so defaults apply)
        """
        self._config = config

    def exists(self) -> bool:
        return self._config is not None

    def load(self) -> ClientConfig:
        if self._config is None:
            return ClientConfig()
        return self._config

    def path(self) -> Path:
        return Path("/fake/dockside/config.toml")
