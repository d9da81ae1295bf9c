"""Parsing ``buildx`` command output."""

import re

from dockside.core.command_result import CommandResult
from dockside.core.errors import (
    BuilderNotFoundError,
    ContextNotFoundError,
    ResponseDecodeError,
    UnsupportedExporterError,
)
from dockside.parsing.base import classify, expect, parse_prefixed_fields, split_lines
from dockside.parsing.patterns import ErrorPatternTable, entry, prefix
from dockside.types import Builder

# Known variants:
# ERROR: open <path>: Access is denied.
# ERROR: failed to read metadata: open <path>: Access is denied.
ACCESS_DENIED = r"ERROR: (?:.*?: )?open (.+?): Access is denied\."
BUILDER_NOT_FOUND = r'ERROR: no builder "([^"]+)" found'

OCI_UNSUPPORTED_MESSAGE = (
    'The "docker" driver does not support the OCI exporter. Switch to a builder with a driver '
    "that does, or enable the containerd image store. For more information, see "
    "https://docs.docker.com/build/builders/drivers/ and "
    "https://docs.docker.com/engine/storage/containerd/."
)


def _access_denied(path: str) -> PermissionError:
    return PermissionError(f"Access is denied: {path}")


def _file_in_use(path: str) -> OSError:
    return OSError(
        "Failed to build the image because a file is being used by another process.\n"
        f"File     : {path}"
    )


BUILD_ERRORS = ErrorPatternTable.of(
    entry(
        r"ERROR: resolve : CreateFile (.+?): The system cannot find the file specified\.",
        FileNotFoundError,
    ),
    entry(r"ERROR: resolve : lstat (.+?): no such file or directory", FileNotFoundError),
    entry(BUILDER_NOT_FOUND, BuilderNotFoundError),
    prefix(
        "ERROR: OCI exporter is not supported for the docker driver.",
        lambda: UnsupportedExporterError(OCI_UNSUPPORTED_MESSAGE),
    ),
    # Variants:
    # ERROR: unable to parse docker host `<host>`
    # ERROR: no valid drivers found: unable to parse docker host `<host>`
    entry(r"ERROR: (?:.*?: )?unable to parse docker host `([^`]+)`", ContextNotFoundError),
    entry(
        r"ERROR: open (.+?): The process cannot access the file because it is being used by "
        r"another process\.",
        _file_in_use,
    ),
)


class BuildXParser:
    """Interprets the output of ``buildx inspect``, ``buildx ls`` and ``buildx create``."""

    get_errors = ErrorPatternTable.of(entry(ACCESS_DENIED, _access_denied))

    def get_builder(self, result: CommandResult) -> Builder | None:
        """Decode ``buildx inspect [NAME]``.

        Returns:
            The builder, or None if no builder has that name

        Raises:
            PermissionError: If the builder's metadata could not be read
        """
        return classify(
            result,
            self._decode_builder,
            self.get_errors,
            absent=(re.compile(BUILDER_NOT_FOUND),),
        )

    def _decode_builder(self, result: CommandResult) -> Builder:
        fields = parse_prefixed_fields(result.stdout, ("Name:", "Status:", "Error:"))
        error = fields.get("Error:", "")
        status = fields.get("Status:", "").upper()
        if not status and error:
            status = "ERROR"
        if not status:
            raise ResponseDecodeError(result, "builder status is missing")
        name = fields.get("Name:")
        if not name:
            raise ResponseDecodeError(result, "builder name is missing")
        return Builder(name=name, status=status, error=error)

    def get_supported_build_platforms(self, result: CommandResult) -> frozenset[str]:
        """Decode the ``Platforms:`` lines of ``buildx inspect``."""
        return expect(result, self._decode_platforms)

    def _decode_platforms(self, result: CommandResult) -> frozenset[str]:
        platforms: set[str] = set()
        for line in split_lines(result.stdout):
            if not line.startswith("Platforms:"):
                continue
            for platform in line[len("Platforms:") :].split(","):
                platform = platform.strip()
                if platform:
                    platforms.add(platform)
        return frozenset(platforms)

    def create(self, result: CommandResult) -> str:
        """Decode ``buildx create``; returns the new builder's name."""
        return expect(result, lambda r: r.stdout.strip())
