"""Named failure conditions reported by the container CLI.

The execution core raises only ``OSError`` (for I/O failures while talking to
the process) and ``UnexpectedResponseError`` (when a transient failure
outlives its retry deadline). Every other exception in this module is chosen
by the parsing layer after matching the CLI's stderr.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dockside.core.command_result import CommandResult


class DocksideError(Exception):
    """Base class for conditions reported by the container CLI."""


class ResourceNotFoundError(DocksideError):
    """A referenced resource (image, container, TLS file, ...) does not exist."""


class ResourceInUseError(DocksideError):
    """A resource is in use, or its name conflicts with an existing resource."""


class NotSwarmManagerError(DocksideError):
    """The current node is not a swarm manager."""

    def __init__(self) -> None:
        super().__init__(
            "This node is not a swarm manager. Worker nodes cannot be used to view or "
            "modify the cluster state."
        )


class NotSwarmMemberError(DocksideError):
    """The current node is not a member of a swarm."""

    def __init__(self) -> None:
        super().__init__("This node is not a member of a swarm")


class AlreadySwarmMemberError(DocksideError):
    """The current node already belongs to a swarm."""

    def __init__(self) -> None:
        super().__init__("This node is already a member of a swarm")


class LastManagerError(DocksideError):
    """The request would demote or remove the last manager of the swarm."""


class UnsupportedExporterError(DocksideError):
    """The selected builder driver does not support the requested exporter."""


class ContextNotFoundError(DocksideError):
    """The referenced client context does not exist."""


class BuilderNotFoundError(DocksideError):
    """The referenced builder does not exist.

    Attributes:
        name: Name of the missing builder, without quotes
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"Builder not found: {name}")
        self.name = name


class UnexpectedResponseError(DocksideError):
    """The CLI returned a response that no known pattern explains.

    The message is a full diagnostic dump of the command so nothing is lost
    when the error is logged or shown to a user.

    Attributes:
        result: The captured result that could not be interpreted
    """

    def __init__(self, result: "CommandResult", reason: str | None = None) -> None:
        lines = [
            f"{list(result.command)} returned an unexpected response.",
            f"exitCode   : {result.exit_code}",
            f"stdout     : {result.stdout}",
            f"stderr     : {result.stderr}",
            f"directory  : {result.working_directory}",
        ]
        if reason is not None:
            lines.append(f"reason     : {reason}")
        super().__init__("\n".join(lines))
        self.result = result


class ResponseDecodeError(UnexpectedResponseError):
    """A successful command produced output that does not match its documented format.

    This is a broken contract between dockside and the CLI, not a condition
    callers are expected to handle.
    """
