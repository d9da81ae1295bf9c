"""Parsing ``service`` command output."""

from dockside.core.command_result import CommandResult
from dockside.parsing.base import expect, first_line, parse_json_document, text_field
from dockside.parsing.container import CONFLICTING_NAME, IMAGE_NOT_FOUND
from dockside.parsing.node import NOT_SWARM_MANAGER, parse_task_state
from dockside.parsing.patterns import ErrorPatternTable
from dockside.types import Task


class ServiceParser:
    """Interprets the output of ``service`` commands."""

    create_errors = ErrorPatternTable.of(IMAGE_NOT_FOUND, CONFLICTING_NAME, NOT_SWARM_MANAGER)

    def create(self, result: CommandResult) -> str:
        """Decode ``service create``; returns the new service's ID.

        The CLI may print convergence progress after the ID.

        Raises:
            ResourceNotFoundError: If the image does not exist
            ResourceInUseError: If the name is already taken
            NotSwarmManagerError: If the current node is not a manager
        """
        return expect(result, first_line, self.create_errors)

    def get_task(self, result: CommandResult) -> Task:
        """Decode ``inspect`` of a single task."""
        return expect(result, self._decode_task, ErrorPatternTable.of(NOT_SWARM_MANAGER))

    def _decode_task(self, result: CommandResult) -> Task:
        task = parse_json_document(result)
        return Task(
            id=text_field(result, task, "ID"),
            name=text_field(result, task, "Name"),
            state=parse_task_state(result, text_field(result, task, "CurrentState")),
        )
