"""Parsing ``image`` command output."""

import re
from collections import defaultdict

from dockside.core.command_result import CommandResult
from dockside.core.errors import ResourceInUseError, ResourceNotFoundError, ResponseDecodeError
from dockside.parsing.base import (
    JsonObject,
    classify,
    expect,
    optional_field,
    parse_json_document,
    parse_json_lines,
    parse_prefixed_fields,
    text_field,
)
from dockside.parsing.patterns import ErrorPattern, ErrorPatternTable, entry, literal
from dockside.types import Image, ImageElement

NONE = "<none>"

NOT_FOUND = re.compile(r"Error response from daemon: No such image: ([^ ]+)")
PULL_NOT_FOUND = (
    r"Error response from daemon: pull access denied for [^,]+, repository does not exist or may require "
    r"'docker login'",
    r"Error response from daemon: manifest for [^ ]+ not found: manifest unknown: manifest unknown",
    r'Error response from daemon: Head "[^"]+": denied',
)
PULL_ACCESS_DENIED = "Error response from daemon: error from registry: denied\ndenied"
REMOVE_MUST_BE_FORCED = re.compile(
    r"Error response from daemon: conflict: unable to delete ([^ ]+) \(must be forced\) -"
)
CONFLICT_PREFIX = "Error response from daemon: conflict: "


def _image_not_found(image: str) -> ResourceNotFoundError:
    return ResourceNotFoundError(f"Image not found: {image}")


def _pull_errors(reference: str) -> ErrorPatternTable:
    def not_found() -> ResourceNotFoundError:
        return ResourceNotFoundError(f'Image not found or may require "docker login": {reference}')

    return ErrorPatternTable.of(
        *(entry(pattern, not_found) for pattern in PULL_NOT_FOUND),
        literal(PULL_ACCESS_DENIED, not_found),
    )


def _split_reference(result: CommandResult, value: str, separator: str) -> tuple[str, str]:
    # Registry hosts may carry a port, so split on the last separator
    name, found, suffix = value.rpartition(separator)
    if not found or not name:
        raise ResponseDecodeError(result, f"expected <name>{separator}<value>, got: {value}")
    return name, suffix


class ImageParser:
    """Interprets the output of ``image`` commands."""

    tag_errors = ErrorPatternTable.of(ErrorPattern(NOT_FOUND, _image_not_found))
    push_errors = ErrorPatternTable.of(
        entry(
            r"Error response from daemon: push access denied for ([^,]+), repository does not exist or may "
            r"require 'docker login'",
            _image_not_found,
        ),
    )

    def list_images(self, result: CommandResult) -> list[ImageElement]:
        """Decode ``image ls --format json``.

        The CLI prints one line per (repository, tag) pair. Lines are grouped
        by image ID and ``<none>`` placeholders are dropped.
        """
        return expect(result, self._decode_list)

    def _decode_list(self, result: CommandResult) -> list[ImageElement]:
        id_to_tags: dict[str, defaultdict[str, set[str]]] = {}
        id_to_digests: dict[str, dict[str, str]] = {}
        for line in parse_json_lines(result):
            image_id = text_field(result, line, "ID")
            repository_to_tags = id_to_tags.setdefault(image_id, defaultdict(set))
            repository_to_digest = id_to_digests.setdefault(image_id, {})

            repository = text_field(result, line, "Repository")
            if repository == NONE:
                continue
            digest = optional_field(line, "Digest") or NONE
            if digest != NONE:
                repository_to_digest[repository] = digest
            tag = optional_field(line, "Tag") or NONE
            if tag != NONE:
                repository_to_tags[repository].add(tag)

        return [
            ImageElement(
                id=image_id,
                repository_to_tags={repository: frozenset(tags) for repository, tags in tags_by_repo.items()},
                repository_to_digest=id_to_digests[image_id],
            )
            for image_id, tags_by_repo in id_to_tags.items()
        ]

    def get(self, result: CommandResult) -> Image | None:
        """Decode ``image inspect``.

        Returns:
            The image, or None if it does not exist
        """
        return classify(result, self._decode_image, absent=(NOT_FOUND,))

    def _decode_image(self, result: CommandResult) -> Image:
        image: JsonObject = parse_json_document(result)
        reference_to_tags: defaultdict[str, set[str]] = defaultdict(set)
        for repo_tag in optional_field(image, "RepoTags") or ():
            name, tag = _split_reference(result, repo_tag, ":")
            if name != NONE and tag != NONE:
                reference_to_tags[name].add(tag)
        reference_to_digest: dict[str, str] = {}
        for repo_digest in optional_field(image, "RepoDigests") or ():
            name, digest = _split_reference(result, repo_digest, "@")
            if name != NONE and digest != NONE:
                reference_to_digest[name] = digest
        return Image(
            id=text_field(result, image, "Id"),
            reference_to_tags={name: frozenset(tags) for name, tags in reference_to_tags.items()},
            reference_to_digest=reference_to_digest,
        )

    def tag(self, result: CommandResult) -> None:
        expect(result, lambda r: None, self.tag_errors)

    def pull(self, result: CommandResult, reference: str) -> str:
        """Decode ``image pull``; returns the pulled image's digest.

        Args:
            result: The captured result
            reference: The reference that was pulled, used in error messages

        Raises:
            ResourceNotFoundError: If the image does not exist or requires a login
        """
        return expect(result, self._decode_digest, _pull_errors(reference))

    def _decode_digest(self, result: CommandResult) -> str:
        digest = parse_prefixed_fields(result.stdout, ("Digest:",)).get("Digest:")
        if not digest:
            raise ResponseDecodeError(result, "pull output has no digest")
        return digest

    def push(self, result: CommandResult) -> None:
        expect(result, lambda r: None, self.push_errors)

    def remove(self, result: CommandResult) -> None:
        """Decode ``image rm``. Removing a missing image is a no-op.

        Raises:
            ResourceInUseError: If the image is referenced and removal was not forced
        """
        if result.exit_code != 0 and REMOVE_MUST_BE_FORCED.search(result.stderr):
            message = result.stderr.removeprefix(CONFLICT_PREFIX)
            raise ResourceInUseError(message[:1].upper() + message[1:])
        classify(result, lambda r: None, absent=(NOT_FOUND,))
