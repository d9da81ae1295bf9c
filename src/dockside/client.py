"""High-level client that runs CLI commands and decodes their results.

Each method builds the argument vector for one operation, runs it through a
``CommandRunner`` and hands the captured result to the resource family's
parser. Nothing here interprets output directly.
"""

import logging
import os
import subprocess
import tempfile
from collections.abc import Callable, Sequence
from datetime import timedelta
from functools import partial
from pathlib import Path

from dockside.config import ClientConfig
from dockside.core.command_result import CommandResult
from dockside.core.executable import ExecutableLocator, default_locator, validate_executable
from dockside.core.listener import BuildListener
from dockside.core.retry import RetryDeadline
from dockside.core.runner import DEFAULT_RETRY_BACKOFF, DEFAULT_RETRY_TIMEOUT, CommandRunner, RealCommandRunner
from dockside.core.time.abc import Time
from dockside.core.time.real import RealTime
from dockside.parsing import (
    BUILD_ERRORS,
    BuildXParser,
    ConfigParser,
    ContainerParser,
    ContextParser,
    ImageParser,
    NetworkParser,
    NodeParser,
    SwarmParser,
)
from dockside.types import (
    Builder,
    Config,
    ConfigElement,
    Container,
    ContextElement,
    Image,
    JoinToken,
    Network,
    NodeElement,
    NodeRole,
    WelcomePackage,
)

logger = logging.getLogger(__name__)


class DocksideClient:
    """Typed operations over the container CLI.

    Example:
        >>> client = DocksideClient.connect(ClientConfig())
        >>> builder = client.get_builder()
        >>> image_id = client.build_image(Path("."), tags=["app:latest"])
    """

    def __init__(
        self,
        runner: CommandRunner,
        time: Time,
        *,
        retry_timeout: timedelta = DEFAULT_RETRY_TIMEOUT,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
    ) -> None:
        self.runner = runner
        self.time = time
        self.retry_timeout = retry_timeout
        self.retry_backoff = retry_backoff
        self.buildx = BuildXParser()
        self.configs = ConfigParser()
        self.containers = ContainerParser()
        self.contexts = ContextParser()
        self.images = ImageParser()
        self.networks = NetworkParser()
        self.nodes = NodeParser()
        self.swarm = SwarmParser()

    @staticmethod
    def connect(
        config: ClientConfig, time: Time | None = None, *, locator: ExecutableLocator | None = None
    ) -> "DocksideClient":
        """Create a client backed by the real CLI.

        Args:
            config: Client configuration
            time: Clock and sleeper; defaults to the system clock
            locator: Finds the executable when the config names none; defaults to
                ``default_locator()``. Pass ``buildx_locator()`` for a client that
                only runs buildx operations through a standalone plugin.

        Raises:
            FileNotFoundError: If the executable cannot be found
            PermissionError: If the configured executable is not executable
        """
        if config.executable is not None:
            executable = validate_executable(config.executable)
        else:
            executable = (locator or default_locator()).get()
        if time is None:
            time = RealTime()
        retry_timeout = timedelta(seconds=config.retry_timeout_seconds)
        runner = RealCommandRunner(
            executable,
            time,
            client_context=config.client_context,
            retry_timeout=retry_timeout,
            retry_backoff=config.retry_backoff_seconds,
        )
        return DocksideClient(
            runner, time, retry_timeout=retry_timeout, retry_backoff=config.retry_backoff_seconds
        )

    def run(self, arguments: Sequence[str], stdin: str | None = None) -> CommandResult:
        """Run raw arguments and return the result without interpreting it."""
        return self.runner.run(arguments, stdin)

    # buildx

    def get_builder(self, name: str = "") -> Builder | None:
        """Look up a builder, or the current builder if ``name`` is empty.

        Returns:
            The builder, or None if it does not exist
        """
        arguments = ["buildx", "inspect"]
        if name:
            arguments.append(name)
        return self.buildx.get_builder(self.run(arguments))

    def get_supported_build_platforms(self) -> frozenset[str]:
        return self.buildx.get_supported_build_platforms(self.run(["buildx", "inspect"]))

    def build_image(
        self,
        build_context: Path,
        *,
        dockerfile: Path | None = None,
        platforms: Sequence[str] = (),
        tags: Sequence[str] = (),
        cache_from: Sequence[str] = (),
        builder: str = "",
        listener_factory: Callable[[], BuildListener] | None = None,
    ) -> str:
        """Build an image with ``buildx build``.

        Progress is streamed to a fresh listener on every attempt. I/O
        failures other than a missing file are retried until the retry
        deadline.

        Args:
            build_context: Directory sent to the builder
            dockerfile: Dockerfile to use instead of ``<build_context>/Dockerfile``
            platforms: Target platforms, e.g. ``linux/amd64``
            tags: References to tag the image with
            cache_from: External cache sources
            builder: Builder to use; "" uses the current builder
            listener_factory: Creates the listener observing each attempt; defaults
                to a ``BuildListener`` using ``BUILD_ERRORS``

        Returns:
            The built image's ID

        Raises:
            FileNotFoundError: If the build context or Dockerfile is missing
            PermissionError: If the executable cannot be started
            BuilderNotFoundError: If the builder does not exist
            UnsupportedExporterError: If the builder's driver cannot export the image
            ContextNotFoundError: If the client context does not exist
            OSError: If a file stayed locked past the retry deadline
            UnexpectedResponseError: If the build failed for an unrecognized reason
        """
        arguments = ["buildx", "build"]
        arguments.extend(f"--cache-from={source}" for source in cache_from)
        if dockerfile is not None:
            arguments.extend(["--file", str(dockerfile.resolve())])
        if platforms:
            arguments.append(f"--platform={','.join(platforms)}")
        for tag in tags:
            arguments.extend(["--tag", tag])
        if builder:
            arguments.extend(["--builder", builder])

        fd, name = tempfile.mkstemp(prefix="dockside-", suffix=".iid")
        os.close(fd)
        image_id_file = Path(name)
        try:
            arguments.extend(["--iidfile", str(image_id_file), str(build_context.resolve())])
            self._build_with_retry(arguments, listener_factory)
            return image_id_file.read_text(encoding="utf-8").strip()
        finally:
            # The CLI deletes the file itself when a build fails
            image_id_file.unlink(missing_ok=True)

    def _build_with_retry(
        self, arguments: list[str], listener_factory: Callable[[], BuildListener] | None
    ) -> None:
        if listener_factory is None:
            listener_factory = partial(BuildListener, BUILD_ERRORS)
        deadline = RetryDeadline.after(self.time, self.retry_timeout)
        while True:
            listener = listener_factory()
            # Spawn failures are not retried
            process, command, working_directory = self.runner.start(arguments)
            try:
                self._observe_build(process, command, working_directory, listener)
                return
            except FileNotFoundError:
                raise
            except OSError as e:
                # WORKAROUND: https://github.com/moby/moby/issues/50160
                if deadline.is_expired(self.time.now()):
                    raise
                logger.debug("Build failed with a transient I/O error, retrying: %s", e)
                self.time.sleep(self.retry_backoff)

    def _observe_build(
        self,
        process: subprocess.Popen[str],
        command: list[str],
        working_directory: Path,
        listener: BuildListener,
    ) -> None:
        if process.stdout is None or process.stderr is None:
            raise RuntimeError("build process must be started with piped stdout and stderr")
        try:
            listener.start(process.stdout, process.stderr, process.wait)
            output = listener.await_completion()
        except BaseException:
            process.kill()
            process.wait()
            listener.join()
            listener.close()
            raise
        try:
            if output.exit_code == 0:
                listener.build_passed()
            else:
                listener.build_failed(
                    CommandResult(
                        command=tuple(command),
                        working_directory=working_directory,
                        stdout=output.stdout,
                        stderr=output.stderr,
                        exit_code=output.exit_code,
                    )
                )
        finally:
            listener.build_completed()

    # config

    def list_configs(self) -> list[ConfigElement]:
        return self.configs.list_configs(self.run(["config", "ls", "--format", "json"]))

    def get_config(self, id_or_name: str) -> Config | None:
        return self.configs.get(self.run(["config", "inspect", id_or_name]))

    def create_config(self, name: str, data: str) -> str:
        """Create a swarm config from ``data`` and return its ID.

        Raises:
            NotSwarmManagerError: If the current node is not a manager
            ResourceInUseError: If the name is already taken
        """
        return self.configs.create(self.run(["config", "create", name, "-"], stdin=data))

    # container

    def get_container(self, id_or_name: str) -> Container | None:
        return self.containers.get(self.run(["container", "inspect", id_or_name]))

    def remove_container(self, id_or_name: str, *, force: bool = False, volumes: bool = False) -> None:
        """Remove a container. Removing a missing container is a no-op.

        Raises:
            ResourceInUseError: If the container is running and ``force`` is False
        """
        arguments = ["container", "rm"]
        if force:
            arguments.append("--force")
        if volumes:
            arguments.append("--volumes")
        arguments.append(id_or_name)
        self.containers.remove(self.run(arguments))

    # context

    def list_contexts(self) -> list[ContextElement]:
        return self.contexts.list_contexts(self.run(["context", "ls", "--format", "json"]))

    # image

    def get_image(self, id_or_reference: str) -> Image | None:
        return self.images.get(self.run(["image", "inspect", id_or_reference]))

    def pull_image(self, reference: str, *, platform: str = "") -> str:
        """Pull an image and return its digest.

        Raises:
            ResourceNotFoundError: If the image does not exist or requires a login
        """
        arguments = ["image", "pull"]
        if platform:
            arguments.append(f"--platform={platform}")
        arguments.append(reference)
        return self.images.pull(self.run(arguments), reference)

    # network

    def get_network(self, id_or_name: str) -> Network | None:
        return self.networks.get(self.run(["network", "inspect", id_or_name]))

    # node

    def list_nodes(self) -> list[NodeElement]:
        return self.nodes.list_nodes(self.run(["node", "ls", "--format", "json"]))

    def get_node_id(self) -> str:
        """Return the current node's ID.

        Raises:
            NotSwarmMemberError: If the current node is not part of a swarm
        """
        return self.nodes.get_node_id(self.run(["system", "info", "--format", "{{json .Swarm.NodeID}}"]))

    def demote_node(self, id_or_hostname: str) -> None:
        """Demote a manager to a worker.

        Raises:
            LastManagerError: If the node is the last manager of the swarm
        """
        self.nodes.update(self.run(["node", "demote", id_or_hostname]))

    # swarm

    def init_swarm(self) -> WelcomePackage:
        return self.swarm.init(self.run(["swarm", "init"]))

    def get_join_token(self, role: NodeRole) -> JoinToken:
        return self.swarm.get_join_token(self.run(["swarm", "join-token", role.lower()]), role)

    def leave_swarm(self, *, force: bool = False) -> None:
        arguments = ["swarm", "leave"]
        if force:
            arguments.append("--force")
        self.swarm.leave(self.run(arguments))
