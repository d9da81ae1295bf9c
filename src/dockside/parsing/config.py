"""Parsing ``config`` command output."""

import base64
import binascii
import re

from dockside.core.command_result import CommandResult
from dockside.core.errors import ResourceInUseError, ResponseDecodeError
from dockside.parsing.base import classify, expect, parse_json_document, parse_json_lines, text_field
from dockside.parsing.node import NOT_SWARM_MANAGER
from dockside.parsing.patterns import ErrorPatternTable, entry
from dockside.types import Config, ConfigElement

NOT_FOUND = re.compile(r"Error response from daemon: config [^ ]+ not found")


def _decode_data(result: CommandResult, data: str) -> bytes:
    try:
        return base64.urlsafe_b64decode(data)
    except (binascii.Error, ValueError) as e:
        raise ResponseDecodeError(result, f"config data is not valid base64: {e}") from e


class ConfigParser:
    """Interprets the output of ``config`` commands. Configs only exist on swarm managers."""

    errors = ErrorPatternTable.of(NOT_SWARM_MANAGER)
    create_errors = errors + ErrorPatternTable.of(
        entry(
            r"Error response from daemon: rpc error: code = AlreadyExists desc = config ([^ ]+) already exists",
            lambda name: ResourceInUseError(f'Config name "{name}" is already in use.'),
        ),
    )

    def list_configs(self, result: CommandResult) -> list[ConfigElement]:
        """Decode ``config ls --format json``."""
        return expect(result, self._decode_list, self.errors)

    def _decode_list(self, result: CommandResult) -> list[ConfigElement]:
        return [
            ConfigElement(id=text_field(result, config, "ID"), name=text_field(result, config, "Name"))
            for config in parse_json_lines(result)
        ]

    def get(self, result: CommandResult) -> Config | None:
        """Decode ``config inspect``.

        Returns:
            The config, or None if it does not exist
        """
        return classify(result, self._decode_config, self.errors, absent=(NOT_FOUND,))

    def _decode_config(self, result: CommandResult) -> Config:
        config = parse_json_document(result)
        return Config(
            id=text_field(result, config, "ID"),
            name=text_field(result, config, "Spec", "Name"),
            data=_decode_data(result, text_field(result, config, "Spec", "Data")),
        )

    def create(self, result: CommandResult) -> str:
        """Decode ``config create``; returns the new config's ID.

        Raises:
            NotSwarmManagerError: If the current node is not a manager
            ResourceInUseError: If the name is already taken
        """
        return expect(result, lambda r: r.stdout.strip(), self.create_errors)
