"""Shared decoding helpers and the classification entry point.

``classify`` is a pure function of a ``CommandResult``: calling it twice on the
same result always yields the same value or raises the same kind of error.
"""

import json
import re
from collections.abc import Callable, Iterable, Sequence
from typing import Any, TypeVar
from urllib.parse import urlsplit

from dockside.core.command_result import CommandResult
from dockside.core.errors import ResponseDecodeError
from dockside.parsing.patterns import EMPTY_TABLE, ErrorPatternTable, matches_any

JsonObject = dict[str, Any]

T = TypeVar("T")


def classify(
    result: CommandResult,
    decode: Callable[[CommandResult], T],
    errors: ErrorPatternTable = EMPTY_TABLE,
    *,
    absent: Iterable[re.Pattern[str]] = (),
) -> T | None:
    """Interpret a command result.

    Args:
        result: The captured result
        decode: Turns a successful result into a value
        errors: Table consulted when the command failed
        absent: Failure patterns meaning "no such resource"; these yield None

    Returns:
        The decoded value, or None if the failure matched ``absent``

    Raises:
        Exception: The exception chosen by ``errors``
        UnexpectedResponseError: If the failure is not recognized
    """
    if result.exit_code == 0:
        return decode(result)
    if matches_any(result.stderr, absent):
        return None
    errors.raise_for(result)


def require_success(result: CommandResult, errors: ErrorPatternTable = EMPTY_TABLE) -> None:
    """Raise the matching error if the command failed; otherwise do nothing."""
    if result.exit_code != 0:
        errors.raise_for(result)


def expect(
    result: CommandResult,
    decode: Callable[[CommandResult], T],
    errors: ErrorPatternTable = EMPTY_TABLE,
) -> T:
    """Like ``classify`` for operations where every failure is an error."""
    require_success(result, errors)
    return decode(result)


def split_lines(text: str) -> list[str]:
    """Split ``text`` into lines, skipping blank ones."""
    return [line for line in text.split("\n") if line.strip()]


def parse_prefixed_fields(text: str, prefixes: Sequence[str]) -> dict[str, str]:
    """Extract ``Prefix: value`` fields from text output.

    Only prefixes that appear are returned, so a field that is present but
    empty (``""``) can be told apart from a missing one (key absent). If a
    prefix appears more than once the last value wins.

    Args:
        text: Command output
        prefixes: Field prefixes including the colon, e.g. ``"Name:"``
    """
    fields: dict[str, str] = {}
    for line in split_lines(text):
        for field_prefix in prefixes:
            if line.startswith(field_prefix):
                fields[field_prefix] = line[len(field_prefix) :].strip()
    return fields


def parse_json_lines(result: CommandResult) -> list[JsonObject]:
    """Decode stdout holding one JSON object per line."""
    objects: list[JsonObject] = []
    for line in split_lines(result.stdout):
        try:
            value = json.loads(line)
        except json.JSONDecodeError as e:
            raise ResponseDecodeError(result, f"invalid JSON line: {e}") from e
        if not isinstance(value, dict):
            raise ResponseDecodeError(result, f"expected a JSON object per line, got: {line}")
        objects.append(value)
    return objects


def parse_json_document(result: CommandResult) -> JsonObject:
    """Decode ``inspect`` output: a JSON array holding exactly one object."""
    try:
        value = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ResponseDecodeError(result, f"invalid JSON: {e}") from e
    if not isinstance(value, list) or len(value) != 1 or not isinstance(value[0], dict):
        raise ResponseDecodeError(result, "expected a JSON array with exactly one object")
    return value[0]


def parse_json_value(result: CommandResult) -> Any:
    """Decode stdout holding a single JSON value of any type."""
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ResponseDecodeError(result, f"invalid JSON: {e}") from e


def field(result: CommandResult, node: JsonObject, *path: str) -> Any:
    """Return the value at ``path`` inside ``node``.

    Raises:
        ResponseDecodeError: If any key along the path is missing
    """
    value: Any = node
    for key in path:
        if not isinstance(value, dict) or key not in value:
            raise ResponseDecodeError(result, f"missing field: {'.'.join(path)}")
        value = value[key]
    return value


def text_field(result: CommandResult, node: JsonObject, *path: str) -> str:
    value = field(result, node, *path)
    if not isinstance(value, str):
        raise ResponseDecodeError(result, f"expected text at {'.'.join(path)}, got: {value!r}")
    return value


def optional_field(node: JsonObject, *path: str) -> Any:
    """Return the value at ``path`` inside ``node``, or None if any key is missing."""
    value: Any = node
    for key in path:
        if not isinstance(value, dict) or key not in value:
            return None
        value = value[key]
    return value


def first_line(result: CommandResult) -> str:
    """Return the first line of stdout.

    Raises:
        ResponseDecodeError: If stdout is empty
    """
    lines = split_lines(result.stdout)
    if not lines:
        raise ResponseDecodeError(result, "expected at least one line of output")
    return lines[0].strip()


def parse_socket_address(address: str) -> tuple[str, int]:
    """Parse ``host:port`` (or ``[ipv6]:port``) into a ``(host, port)`` tuple.

    Raises:
        ValueError: If the address contains whitespace, is empty, or has no port
    """
    if not address or any(c.isspace() for c in address):
        raise ValueError(f"Address may not be empty or contain whitespace.\nActual: {address!r}")
    parts = urlsplit(f"tcp://{address}")
    if parts.hostname is None or parts.port is None:
        raise ValueError(f"Address must contain a port number.\nActual: {address}")
    return parts.hostname, parts.port
