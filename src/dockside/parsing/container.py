"""Parsing ``container`` command output."""

import re

from dockside.core.command_result import CommandResult
from dockside.core.errors import ResourceInUseError, ResourceNotFoundError, ResponseDecodeError
from dockside.parsing.base import (
    JsonObject,
    classify,
    expect,
    optional_field,
    parse_json_document,
    parse_json_lines,
    text_field,
)
from dockside.parsing.patterns import ErrorPattern, ErrorPatternTable, entry
from dockside.types import Container, ContainerElement, PortBinding

CONTAINER_NOT_FOUND = re.compile(r"Error response from daemon: No such container: ([^ ]+).*", re.DOTALL)
IMAGE_NOT_FOUND: ErrorPattern = entry(
    r"Unable to find image '([^']+)' locally.*",
    lambda image: ResourceNotFoundError(f"Image not found: {image}"),
    re.DOTALL,
)
CONFLICTING_NAME: ErrorPattern = entry(
    r'Error response from daemon: Conflict\. The container name "([^"]+)" is already in use by container '
    r'"([^"]+)"\. You have to remove \(or rename\) that container to be able to reuse that name\.',
    lambda name, owner: ResourceInUseError(
        f'The container name "{name}" is already in use by container "{owner}". You have to remove '
        "(or rename) that container to be able to reuse that name."
    ),
)
CONTAINER_IN_USE = (
    r'Error response from daemon: cannot remove container "([^"]+)": container is running: stop the '
    r"container before removing or force remove"
)


def _container_not_found(container: str) -> ResourceNotFoundError:
    return ResourceNotFoundError(f"Container not found: {container}")


def parse_port_bindings(result: CommandResult, bindings: JsonObject | None) -> tuple[PortBinding, ...]:
    """Decode a ``{"80/tcp": [{"HostIp": "", "HostPort": "8080"}]}`` port map.

    A null host list means the container port is exposed but not published.
    """
    if not bindings:
        return ()
    decoded = []
    for port_and_protocol, hosts in bindings.items():
        port, separator, protocol = port_and_protocol.partition("/")
        if not separator or not port.isdigit():
            raise ResponseDecodeError(result, f"invalid port specification: {port_and_protocol}")
        addresses = []
        # One container port may be published on several host ports
        for host in hosts or ():
            host_ip = text_field(result, host, "HostIp") or "0.0.0.0"
            host_port = text_field(result, host, "HostPort")
            if not host_port.isdigit():
                raise ResponseDecodeError(result, f"invalid host port: {host_port}")
            addresses.append((host_ip, int(host_port)))
        decoded.append(PortBinding(int(port), protocol.upper(), tuple(addresses)))
    return tuple(decoded)


class ContainerParser:
    """Interprets the output of ``container`` commands."""

    create_errors = ErrorPatternTable.of(IMAGE_NOT_FOUND, CONFLICTING_NAME)
    not_found_errors = ErrorPatternTable.of(ErrorPattern(CONTAINER_NOT_FOUND, _container_not_found))
    remove_errors = ErrorPatternTable.of(
        entry(CONTAINER_IN_USE, lambda name: ResourceInUseError(f"Container must be stopped first: {name}")),
    )

    def list_containers(self, result: CommandResult) -> list[ContainerElement]:
        """Decode ``container ls --format json``."""
        return expect(result, self._decode_list)

    def _decode_list(self, result: CommandResult) -> list[ContainerElement]:
        elements = []
        for container in parse_json_lines(result):
            name = text_field(result, container, "Names")
            if "," in name:
                raise ResponseDecodeError(result, f"expected a single container name, got: {name}")
            elements.append(ContainerElement(id=text_field(result, container, "ID"), name=name))
        return elements

    def get(self, result: CommandResult) -> Container | None:
        """Decode ``container inspect``.

        Returns:
            The container, or None if it does not exist
        """
        return classify(result, self._decode_container, absent=(CONTAINER_NOT_FOUND,))

    def _decode_container(self, result: CommandResult) -> Container:
        container = parse_json_document(result)
        name = text_field(result, container, "Name")
        # Engine-internal names start with a slash
        if not name.startswith("/"):
            raise ResponseDecodeError(result, f"container name should start with '/': {name}")
        return Container(
            id=text_field(result, container, "Id"),
            name=name[1:],
            status=text_field(result, container, "State", "Status").upper(),
            host_port_bindings=parse_port_bindings(
                result, optional_field(container, "HostConfig", "PortBindings")
            ),
            network_port_bindings=parse_port_bindings(
                result, optional_field(container, "NetworkSettings", "Ports")
            ),
        )

    def create(self, result: CommandResult) -> str:
        """Decode ``container create``; returns the new container's ID.

        Raises:
            ResourceNotFoundError: If the image does not exist
            ResourceInUseError: If the name is already taken
        """
        return expect(result, lambda r: r.stdout.strip(), self.create_errors)

    def rename(self, result: CommandResult) -> None:
        expect(result, lambda r: None, self.create_errors)

    def start(self, result: CommandResult) -> None:
        expect(result, lambda r: None, self.not_found_errors)

    def stop(self, result: CommandResult) -> None:
        expect(result, lambda r: None, self.not_found_errors)

    def wait_until_stopped(self, result: CommandResult) -> int:
        """Decode ``container wait``; returns the container's exit code."""
        return expect(result, self._decode_exit_code, self.not_found_errors)

    def _decode_exit_code(self, result: CommandResult) -> int:
        try:
            return int(result.stdout.strip())
        except ValueError as e:
            raise ResponseDecodeError(result, "expected an exit code") from e

    def remove(self, result: CommandResult) -> None:
        """Decode ``container rm``. Removing a missing container is a no-op.

        Raises:
            ResourceInUseError: If the container is running and removal was not forced
        """
        classify(result, lambda r: None, self.remove_errors, absent=(CONTAINER_NOT_FOUND,))
