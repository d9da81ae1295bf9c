import json

import pytest

from dockside.core.errors import NotSwarmManagerError, ResourceNotFoundError, ResponseDecodeError
from dockside.parsing.service import ServiceParser
from dockside.types import Task
from tests.fakes.command_runner import failed, succeeded


def test_create_returns_id_before_progress_output() -> None:
    output = "kxq8v4pd3vc7\noverall progress: 1 out of 1 tasks\n1/1: running\nverify: Service converged\n"

    assert ServiceParser().create(succeeded(output)) == "kxq8v4pd3vc7"


def test_create_requires_output() -> None:
    with pytest.raises(ResponseDecodeError):
        ServiceParser().create(succeeded(""))


def test_create_reports_missing_image() -> None:
    stderr = "Unable to find image 'nope:latest' locally\nimage nope:latest could not be accessed on a registry"

    with pytest.raises(ResourceNotFoundError, match="nope:latest"):
        ServiceParser().create(failed(stderr))


def test_create_requires_manager() -> None:
    with pytest.raises(NotSwarmManagerError):
        ServiceParser().create(failed("Error response from daemon: This node is not a swarm manager. Use it."))


def test_get_task_decodes_state() -> None:
    output = json.dumps([{"ID": "t1", "Name": "web.1", "CurrentState": "Shutdown 5 seconds ago"}])

    assert ServiceParser().get_task(succeeded(output)) == Task("t1", "web.1", "SHUTDOWN")
