"""Tests for loading ClientConfig from TOML and the environment."""

from pathlib import Path

import pytest

from dockside.config import EXECUTABLE_ENV_VAR, ClientConfig, FilesystemConfigOps, InMemoryConfigOps


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    ops = FilesystemConfigOps(tmp_path / "config.toml", environ={})

    assert not ops.exists()
    assert ops.load() == ClientConfig()


def test_load_reads_all_fields(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        'executable = "/opt/docker/bin/docker"\n'
        'client_context = "remote"\n'
        "retry_timeout_seconds = 30\n"
        "retry_backoff_seconds = 0.5\n",
        encoding="utf-8",
    )

    config = FilesystemConfigOps(config_path, environ={}).load()

    assert config == ClientConfig(
        executable=Path("/opt/docker/bin/docker"),
        client_context="remote",
        retry_timeout_seconds=30.0,
        retry_backoff_seconds=0.5,
    )


def test_environment_overrides_executable(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('executable = "/opt/docker/bin/docker"\n', encoding="utf-8")

    config = FilesystemConfigOps(config_path, environ={EXECUTABLE_ENV_VAR: "/usr/local/bin/podman"}).load()

    assert config.executable == Path("/usr/local/bin/podman")


def test_malformed_toml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("executable = \n", encoding="utf-8")

    with pytest.raises(ValueError, match="Malformed config file"):
        FilesystemConfigOps(config_path, environ={}).load()


@pytest.mark.parametrize(
    "content",
    ["executable = 3\n", "client_context = false\n", "retry_timeout_seconds = -1\n", "retry_backoff_seconds = true\n"],
)
def test_wrongly_typed_values(tmp_path: Path, content: str) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError, match="must be"):
        FilesystemConfigOps(config_path, environ={}).load()


def test_default_path_is_under_home() -> None:
    assert FilesystemConfigOps(environ={}).path() == Path.home() / ".dockside" / "config.toml"


def test_in_memory_config() -> None:
    assert not InMemoryConfigOps().exists()
    assert InMemoryConfigOps().load() == ClientConfig()

    config = ClientConfig(client_context="remote")
    ops = InMemoryConfigOps(config)

    assert ops.exists()
    assert ops.load() is config
