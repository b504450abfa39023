"""Shared fixtures for the navigation and detail view tests."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from planscope.core.result import Ok
from planscope.core.types import (
    HelmData,
    InfraProgressRecord,
    ManagedResource,
    ResourceDescription,
    ResourceEntity,
    TerraformState,
    WorkflowSnapshot,
)

INSTANCE = "inst-1"

ENTITIES = [
    ResourceEntity(id="r-net", key="network", type="terraform"),
    ResourceEntity(id="r-app", key="app", type="helm"),
    ResourceEntity(id="r-dns", key="dns", type="dns-zone"),
]

DEPENDENCIES = {"r-app": ["r-net"], "r-dns": ["r-net"]}


class FakeRuntime:
    """Records everything the controller asks of the runtime."""

    def __init__(self):
        self.spawned = []
        self.scheduled = []
        self.posted = []
        self.cancelled = []
        self.quit_called = False

    def spawn(self, work, token):
        self.spawned.append((work, token))

    def cancel(self, token):
        token.cancel()
        self.cancelled.append(token)

    def post(self, message):
        self.posted.append(message)

    def schedule(self, delay, message):
        self.scheduled.append((delay, message))

    def quit(self):
        self.quit_called = True

    def run_spawned(self, controller, limit=None):
        """Run queued tasks in order and dispatch their results like the real loop."""
        ran = 0
        while self.spawned and (limit is None or ran < limit):
            work, token = self.spawned.pop(0)
            result = asyncio.run(work)
            ran += 1
            if result is not None and not token.cancelled:
                controller.dispatch(result)

    def discard(self):
        for work, _ in self.spawned:
            work.close()
        self.spawned.clear()


@pytest.fixture
def runtime():
    fake = FakeRuntime()
    yield fake
    fake.discard()


async def _describe(instance_id, resource_id):
    return Ok(ResourceDescription(resource_id=resource_id, dependencies=DEPENDENCIES.get(resource_id, [])))


@pytest.fixture
def source():
    source = MagicMock()
    source.list_resources = AsyncMock(return_value=Ok(list(ENTITIES)))
    source.describe_resource = AsyncMock(side_effect=_describe)
    source.fetch_workflow = AsyncMock(return_value=Ok(WorkflowSnapshot(workflow_id="wf-1")))
    source.fetch_progress_records = AsyncMock(return_value=Ok([
        InfraProgressRecord(
            resource_id="r-net",
            instance_id=INSTANCE,
            operation_id="op-1",
            status="running",
            total_resources=4,
            resources=[ManagedResource(address="aws_vpc.main", state="ready")],
        ),
    ]))
    source.fetch_state = AsyncMock(return_value=Ok(TerraformState()))
    source.list_files = AsyncMock(return_value=Ok(["main.tf", "modules/vpc/main.tf"]))
    source.read_file = AsyncMock(return_value=Ok("resource \"aws_vpc\" \"main\" {}"))
    source.fetch_helm = AsyncMock(return_value=Ok(HelmData(
        release_name="app",
        namespace="default",
        chart_values='{"image": {"tag": "1.0"}, "replicas": 2}',
        install_log="installing\ndone\n",
    )))
    return source
