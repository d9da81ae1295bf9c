"""Parsing ``context`` command output."""

import re

from dockside.core.command_result import CommandResult
from dockside.core.errors import ResourceInUseError, ResourceNotFoundError
from dockside.parsing.base import (
    classify,
    expect,
    optional_field,
    parse_json_document,
    parse_json_lines,
    text_field,
)
from dockside.parsing.patterns import ErrorPatternTable, entry
from dockside.types import Context, ContextElement

CONTEXT_NOT_FOUND = re.compile(r'context "([^"]+)" does not exist')


def _file_in_use(context: str, path: str) -> OSError:
    return OSError(
        "Failed to remove metadata because the file is being used by another process.\n"
        f"Context  : {context}\n"
        f"File     : {path}"
    )


class ContextParser:
    """Interprets the output of ``context`` commands."""

    create_errors = ErrorPatternTable.of(
        entry(r'context "([^"]+)" already exists', lambda name: ResourceInUseError(f"Name already in use: {name}")),
        entry(
            r"unable to create docker endpoint config: open (.+?): The system cannot find the "
            r"(?:file|path) specified\.",
            lambda path: ResourceNotFoundError(f"TLS certificate not found: {path}"),
        ),
        entry(
            r"unable to create docker endpoint config: invalid docker endpoint options: failed to retrieve "
            r"context tls info: tls: failed to find any PEM data in certificate input",
            lambda: ResourceNotFoundError("One of the TLS files referenced by the context endpoint is empty"),
        ),
    )
    remove_errors = ErrorPatternTable.of(
        entry(
            r"failed to remove context (.+?): failed to remove metadata: remove (.+?): The process cannot "
            r"access the file because it is being used by another process\.",
            _file_in_use,
        ),
    )

    def list_contexts(self, result: CommandResult) -> list[ContextElement]:
        """Decode ``context ls --format json``."""
        return expect(result, self._decode_list)

    def _decode_list(self, result: CommandResult) -> list[ContextElement]:
        return [
            ContextElement(
                name=text_field(result, context, "Name"),
                current=bool(optional_field(context, "Current")),
                description=optional_field(context, "Description") or "",
                endpoint=optional_field(context, "DockerEndpoint") or "",
                error=optional_field(context, "Error") or "",
            )
            for context in parse_json_lines(result)
        ]

    def get(self, result: CommandResult) -> Context | None:
        """Decode ``context inspect``.

        Returns:
            The context, or None if it does not exist
        """
        return classify(result, self._decode_context, absent=(CONTEXT_NOT_FOUND,))

    def _decode_context(self, result: CommandResult) -> Context:
        context = parse_json_document(result)
        return Context(
            name=text_field(result, context, "Name"),
            description=optional_field(context, "Metadata", "Description") or "",
            endpoint=text_field(result, context, "Endpoints", "docker", "Host"),
        )

    def show(self, result: CommandResult) -> str:
        """Decode ``context show``; returns the name of the current context."""
        return expect(result, lambda r: r.stdout.strip())

    def use(self, result: CommandResult) -> None:
        expect(result, lambda r: None)

    def create(self, result: CommandResult) -> None:
        """Decode ``context create``.

        Raises:
            ResourceInUseError: If a context with the same name exists
            ResourceNotFoundError: If a referenced TLS file is missing or empty
        """
        expect(result, lambda r: None, self.create_errors)

    def remove(self, result: CommandResult) -> None:
        """Decode ``context rm``. Removing a missing context is a no-op.

        Raises:
            OSError: If the context's metadata is locked by another process
        """
        classify(result, lambda r: None, self.remove_errors, absent=(CONTEXT_NOT_FOUND,))
