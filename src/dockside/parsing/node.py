"""Parsing ``node`` command output."""

import re

from dockside.core.command_result import CommandResult
from dockside.core.errors import LastManagerError, NotSwarmManagerError, NotSwarmMemberError, ResponseDecodeError
from dockside.parsing.base import (
    JsonObject,
    expect,
    optional_field,
    parse_json_document,
    parse_json_lines,
    parse_json_value,
    text_field,
)
from dockside.parsing.patterns import ErrorPattern, ErrorPatternTable, entry, literal, prefix
from dockside.types import Node, NodeElement, NodeRole, Task

# Known variants:
# Error response from daemon: This node is not a swarm manager. Use "docker swarm init" or "docker swarm
#   join" to connect this node to swarm and try again.
# Error response from daemon: This node is not a swarm manager. Worker nodes can't be used to view or
#   modify cluster state. Please run this command on a manager node or promote the current node to a manager.
NOT_SWARM_MANAGER: ErrorPattern = prefix(
    "Error response from daemon: This node is not a swarm manager.", NotSwarmManagerError
)

DEMOTING_LAST_MANAGER = (
    "Error response from daemon: rpc error: code = FailedPrecondition desc = attempting to demote the "
    "last manager of the swarm"
)
UNIX_SOCKET_MISSING = (
    r"Error response from daemon: rpc error: code = Unavailable desc = connection error: desc = "
    r'"transport: Error while dialing: dial (unix .+?): connect: no such file or directory"'
)
LABEL_KEY = re.compile(r"[a-zA-Z0-9._-]+")


def _parse_role(result: CommandResult, value: str) -> NodeRole:
    role = value.upper()
    if role == "MANAGER":
        return "MANAGER"
    if role == "WORKER":
        return "WORKER"
    raise ResponseDecodeError(result, f"unknown node role: {value}")


def parse_task_state(result: CommandResult, current_state: str) -> str:
    """Extract the state from a task's ``CurrentState``, e.g. ``"Running 2 minutes ago"`` -> ``"RUNNING"``."""
    state, separator, _ = current_state.partition(" ")
    if not separator:
        raise ResponseDecodeError(result, f"invalid task state: {current_state}")
    return state.upper()


def parse_tasks(result: CommandResult) -> list[Task]:
    """Decode ``--format json`` task listings, one task per line."""
    return [
        Task(
            id=text_field(result, task, "ID"),
            name=text_field(result, task, "Name"),
            state=parse_task_state(result, text_field(result, task, "CurrentState")),
        )
        for task in parse_json_lines(result)
    ]


class NodeParser:
    """Interprets the output of ``node`` commands."""

    manager_errors = ErrorPatternTable.of(NOT_SWARM_MANAGER)
    get_errors = manager_errors + ErrorPatternTable.of(
        entry(
            UNIX_SOCKET_MISSING,
            lambda socket: FileNotFoundError(f"No such file or directory: {socket}"),
        ),
    )
    update_errors = ErrorPatternTable.of(
        literal(
            DEMOTING_LAST_MANAGER,
            lambda: LastManagerError("Attempting to demote the last manager of the swarm"),
        ),
    )

    def list_nodes(self, result: CommandResult) -> list[NodeElement]:
        """Decode ``node ls --format json``."""
        return expect(result, self._decode_list, self.manager_errors)

    def _decode_list(self, result: CommandResult) -> list[NodeElement]:
        elements = []
        for node in parse_json_lines(result):
            manager_status = optional_field(node, "ManagerStatus")
            # Workers have no manager status at all
            if not manager_status:
                role: NodeRole = "WORKER"
                leader = False
                reachability = "UNKNOWN"
            elif manager_status == "Leader":
                role, leader, reachability = "MANAGER", True, "REACHABLE"
            elif manager_status == "Reachable":
                role, leader, reachability = "MANAGER", False, "REACHABLE"
            else:
                raise ResponseDecodeError(result, f"unexpected manager status: {manager_status}")
            elements.append(
                NodeElement(
                    id=text_field(result, node, "ID"),
                    hostname=text_field(result, node, "Hostname"),
                    role=role,
                    leader=leader,
                    status=text_field(result, node, "Status").upper(),
                    reachability=reachability,
                    availability=text_field(result, node, "Availability").upper(),
                    engine_version=text_field(result, node, "EngineVersion"),
                )
            )
        return elements

    def get(self, result: CommandResult) -> Node:
        """Decode ``node inspect``.

        Raises:
            NotSwarmManagerError: If the current node is not a manager
            FileNotFoundError: If the engine's socket does not exist
        """
        return expect(result, self._decode_node, self.get_errors)

    def _decode_node(self, result: CommandResult) -> Node:
        node = parse_json_document(result)
        manager_status: JsonObject | None = optional_field(node, "ManagerStatus")
        if manager_status is None:
            leader = False
            reachability = "UNKNOWN"
            manager_address = ""
        else:
            leader = bool(manager_status.get("Leader", False))
            reachability = text_field(result, manager_status, "Reachability").upper()
            manager_address = text_field(result, manager_status, "Addr")

        return Node(
            id=text_field(result, node, "ID"),
            hostname=text_field(result, node, "Description", "Hostname"),
            role=_parse_role(result, text_field(result, node, "Spec", "Role")),
            leader=leader,
            status=text_field(result, node, "Status", "State").upper(),
            reachability=reachability,
            availability=text_field(result, node, "Spec", "Availability").upper(),
            manager_address=manager_address,
            address=text_field(result, node, "Status", "Addr"),
            labels=self._decode_labels(result, node),
            engine_version=text_field(result, node, "Description", "Engine", "EngineVersion"),
        )

    def _decode_labels(self, result: CommandResult, node: JsonObject) -> tuple[str, ...]:
        # Spec.Labels constrain scheduling; Description.Engine.Labels are informational only
        labels = optional_field(node, "Spec", "Labels") or {}
        if isinstance(labels, dict):
            pairs = [f"{key}={value}" for key, value in labels.items()]
        else:
            pairs = [str(label) for label in labels]
        for pair in pairs:
            key, separator, _ = pair.partition("=")
            if not separator or not LABEL_KEY.fullmatch(key):
                raise ResponseDecodeError(result, f"labels must follow the format key=value, got: {pair}")
        return tuple(pairs)

    def remove(self, result: CommandResult) -> None:
        expect(result, lambda r: None, self.manager_errors)

    def update(self, result: CommandResult) -> str:
        """Decode ``node update``/``node demote``/``node promote``.

        Raises:
            LastManagerError: If the request would demote the last manager
        """
        return expect(result, lambda r: r.stdout, self.update_errors)

    def list_tasks(self, result: CommandResult) -> list[Task]:
        """Decode ``node ps --format json`` or ``service ps --format json``."""
        return expect(result, parse_tasks, self.manager_errors)

    def get_node_id(self, result: CommandResult) -> str:
        """Decode ``info --format {{json .Swarm.NodeID}}``.

        Raises:
            NotSwarmMemberError: If the current node is not part of a swarm
        """
        return expect(result, self._decode_node_id)

    def _decode_node_id(self, result: CommandResult) -> str:
        node_id = parse_json_value(result)
        if not isinstance(node_id, str):
            raise ResponseDecodeError(result, f"expected a JSON string, got: {node_id!r}")
        if not node_id:
            raise NotSwarmMemberError()
        return node_id
