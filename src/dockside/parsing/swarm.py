"""Parsing ``swarm`` command output."""

import re

from dockside.core.command_result import CommandResult
from dockside.core.errors import AlreadySwarmMemberError, ResourceInUseError, ResponseDecodeError
from dockside.parsing.base import expect, parse_socket_address
from dockside.parsing.node import NOT_SWARM_MANAGER
from dockside.parsing.patterns import ErrorPattern, ErrorPatternTable, entry, literal
from dockside.types import JoinToken, NodeRole, WelcomePackage

CREATE_SWARM = re.compile(
    r"Swarm initialized: current node \(([^)]+)\) is now a manager\.\n"
    r"\n"
    r"To add a worker to this swarm, run the following command:\n"
    r"\n"
    r" *docker swarm join --token ([^ ]+) (.+?)\n"
    r"\n"
    r"To add a manager to this swarm, run 'docker swarm join-token manager' and follow the instructions\.\s*"
)
JOIN_TOKEN = re.compile(
    r"To add a (?:manager|worker) to this swarm, run the following command:\n"
    r"\n"
    r" *docker swarm join --token ([^ ]+) (.+?)\s*"
)
JOINED_SWARM = re.compile(r"This node joined a swarm as a (manager|worker)\.")
LEFT_SWARM = "Node left the swarm."

ALREADY_IN_SWARM: ErrorPattern = literal(
    'Error response from daemon: This node is already part of a swarm. Use "docker swarm leave" to leave '
    "this swarm and join another one.",
    AlreadySwarmMemberError,
)
MANAGER_LEAVING = (
    "Error response from daemon: You are attempting to leave the swarm on a node that is participating as a "
    "manager. Removing the last manager erases all current state of the swarm. Use `--force` to ignore this "
    "message."
)


def _manager_address(result: CommandResult, address: str) -> tuple[str, int]:
    try:
        return parse_socket_address(address)
    except ValueError as e:
        raise ResponseDecodeError(result, str(e)) from e


class SwarmParser:
    """Interprets the output of ``swarm`` commands."""

    init_errors = ErrorPatternTable.of(ALREADY_IN_SWARM)
    join_token_errors = ErrorPatternTable.of(NOT_SWARM_MANAGER)
    join_errors = ErrorPatternTable.of(
        ALREADY_IN_SWARM,
        entry(
            r"Error response from daemon: rpc error: code = Unavailable desc = connection error: desc = "
            r'"transport: Error while dialing: dial (.+?): connect: connection refused"',
            lambda address: ConnectionRefusedError(f"Connection refused: {address}"),
        ),
        literal("Error response from daemon: invalid join token", lambda: ValueError("Invalid join token")),
    )
    leave_errors = ErrorPatternTable.of(
        literal(
            MANAGER_LEAVING,
            lambda: ResourceInUseError(
                "To safely remove this manager from the swarm, first demote it to a worker, then leave the "
                "quorum. If you intend to remove the final manager and erase the swarm's state, leave with "
                "force."
            ),
        ),
    )

    def init(self, result: CommandResult) -> WelcomePackage:
        """Decode ``swarm init``.

        Raises:
            AlreadySwarmMemberError: If the node already belongs to a swarm
        """
        return expect(result, self._decode_welcome_package, self.init_errors)

    def _decode_welcome_package(self, result: CommandResult) -> WelcomePackage:
        matched = CREATE_SWARM.fullmatch(result.stdout)
        if matched is None:
            raise ResponseDecodeError(result, "unrecognized swarm init output")
        node_id, token, address = matched.groups()
        return WelcomePackage(
            node_id=node_id,
            worker_join_token=JoinToken("WORKER", token, _manager_address(result, address)),
        )

    def get_join_token(self, result: CommandResult, role: NodeRole) -> JoinToken:
        """Decode ``swarm join-token <role>``."""
        return expect(result, lambda r: self._decode_join_token(r, role), self.join_token_errors)

    def _decode_join_token(self, result: CommandResult, role: NodeRole) -> JoinToken:
        matched = JOIN_TOKEN.fullmatch(result.stdout)
        if matched is None:
            raise ResponseDecodeError(result, "unrecognized join-token output")
        token, address = matched.groups()
        return JoinToken(role, token, _manager_address(result, address))

    def join(self, result: CommandResult) -> NodeRole:
        """Decode ``swarm join``; returns the role the node joined as.

        Raises:
            AlreadySwarmMemberError: If the node already belongs to a swarm
            ConnectionRefusedError: If the manager refused the connection
            ValueError: If the join token was rejected
        """
        return expect(result, self._decode_role, self.join_errors)

    def _decode_role(self, result: CommandResult) -> NodeRole:
        matched = JOINED_SWARM.fullmatch(result.stdout.strip())
        if matched is None:
            raise ResponseDecodeError(result, "unrecognized swarm join output")
        return "MANAGER" if matched.group(1) == "manager" else "WORKER"

    def leave(self, result: CommandResult) -> None:
        """Decode ``swarm leave``.

        Raises:
            ResourceInUseError: If the node is a manager and leaving was not forced
        """
        expect(result, self._check_left, self.leave_errors)

    def _check_left(self, result: CommandResult) -> None:
        if result.stdout.strip() != LEFT_SWARM:
            raise ResponseDecodeError(result, f"expected {LEFT_SWARM!r}")
