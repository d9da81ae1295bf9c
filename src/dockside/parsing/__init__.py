"""Response interpretation: turns captured command results into values or exceptions.

Each parser owns the error tables for one resource family and is a pure
function of the ``CommandResult`` it is given.
"""

from dockside.parsing.buildx import BUILD_ERRORS, BuildXParser
from dockside.parsing.config import ConfigParser
from dockside.parsing.container import ContainerParser
from dockside.parsing.context import ContextParser
from dockside.parsing.image import ImageParser
from dockside.parsing.network import NetworkParser
from dockside.parsing.node import NodeParser
from dockside.parsing.service import ServiceParser
from dockside.parsing.swarm import SwarmParser

__all__ = [
    "BUILD_ERRORS",
    "BuildXParser",
    "ConfigParser",
    "ContainerParser",
    "ContextParser",
    "ImageParser",
    "NetworkParser",
    "NodeParser",
    "ServiceParser",
    "SwarmParser",
]
