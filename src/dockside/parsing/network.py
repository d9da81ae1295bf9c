"""Parsing ``network`` command output."""

import re

from dockside.core.command_result import CommandResult
from dockside.parsing.base import classify, optional_field, parse_json_document, text_field
from dockside.types import Network, NetworkConfiguration

NOT_FOUND = re.compile(r"Error response from daemon: network .+? not found")


class NetworkParser:
    def get(self, result: CommandResult) -> Network | None:
        """Decode ``network inspect``.

        Returns:
            The network, or None if it does not exist
        """
        return classify(result, self._decode_network, absent=(NOT_FOUND,))

    def _decode_network(self, result: CommandResult) -> Network:
        network = parse_json_document(result)
        # IPAM.Config is null for networks without address management (e.g. "none")
        configurations = tuple(
            NetworkConfiguration(
                subnet=text_field(result, entry, "Subnet"),
                gateway=optional_field(entry, "Gateway") or "",
            )
            for entry in optional_field(network, "IPAM", "Config") or ()
        )
        return Network(
            id=text_field(result, network, "Id"),
            name=text_field(result, network, "Name"),
            configurations=configurations,
        )
