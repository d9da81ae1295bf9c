"""Typed values decoded from CLI output."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

NodeRole = Literal["MANAGER", "WORKER"]


@dataclass(frozen=True)
class Builder:
    """A BuildKit builder as reported by ``buildx inspect``."""

    name: str
    status: str  # "RUNNING", "INACTIVE", "STOPPED", "ERROR", ...
    error: str = ""


@dataclass(frozen=True)
class ConfigElement:
    id: str
    name: str


@dataclass(frozen=True)
class Config:
    """A swarm config, with its payload decoded."""

    id: str
    name: str
    data: bytes


@dataclass(frozen=True)
class ContainerElement:
    id: str
    name: str


@dataclass(frozen=True)
class PortBinding:
    """Mapping of one container port to zero or more host addresses."""

    container_port: int
    protocol: str  # "TCP", "UDP", "SCTP"
    host_addresses: tuple[tuple[str, int], ...] = ()


@dataclass(frozen=True)
class Container:
    id: str
    name: str
    status: str  # "CREATED", "RUNNING", "EXITED", ...
    host_port_bindings: tuple[PortBinding, ...] = ()
    network_port_bindings: tuple[PortBinding, ...] = ()


@dataclass(frozen=True)
class ContextElement:
    name: str
    current: bool
    description: str
    endpoint: str
    error: str


@dataclass(frozen=True)
class Context:
    name: str
    description: str
    endpoint: str


@dataclass(frozen=True)
class ImageElement:
    """One image from ``image ls``, with tags and digests grouped by repository."""

    id: str
    repository_to_tags: Mapping[str, frozenset[str]] = field(default_factory=dict)
    repository_to_digest: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Image:
    id: str
    reference_to_tags: Mapping[str, frozenset[str]] = field(default_factory=dict)
    reference_to_digest: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NetworkConfiguration:
    subnet: str
    gateway: str


@dataclass(frozen=True)
class Network:
    id: str
    name: str
    configurations: tuple[NetworkConfiguration, ...] = ()


@dataclass(frozen=True)
class NodeElement:
    """One node from ``node ls``."""

    id: str
    hostname: str
    role: NodeRole
    leader: bool
    status: str  # "READY", "DOWN", "UNKNOWN", "DISCONNECTED"
    reachability: str  # "REACHABLE", "UNREACHABLE", "UNKNOWN"
    availability: str  # "ACTIVE", "PAUSE", "DRAIN"
    engine_version: str


@dataclass(frozen=True)
class Node:
    """A swarm node as reported by ``node inspect``."""

    id: str
    hostname: str
    role: NodeRole
    leader: bool
    status: str
    reachability: str
    availability: str
    manager_address: str
    address: str
    labels: tuple[str, ...]
    engine_version: str


@dataclass(frozen=True)
class Task:
    id: str
    name: str
    state: str  # "RUNNING", "SHUTDOWN", "FAILED", ...


@dataclass(frozen=True)
class JoinToken:
    """Secret needed to join a swarm in a given role."""

    role: NodeRole
    token: str
    manager_address: tuple[str, int]


@dataclass(frozen=True)
class WelcomePackage:
    """What ``swarm init`` hands back: the manager's node ID and a worker join token."""

    node_id: str
    worker_join_token: JoinToken
