"""Unit tests for the snapshot-backed source."""

import asyncio
import json

import pytest
import yaml

from planscope.core.errors import SnapshotError
from planscope.core.types import ResourceEntity, TerraformState
from planscope.sources.snapshot import SnapshotSource, load_snapshot, parse_each

SNAPSHOT = {
    "instanceId": "inst-1",
    "resources": [
        {"id": "r-net", "key": "network", "type": "terraform", "dependencies": []},
        {"id": "r-app", "key": "app", "type": "helm", "dependencies": ["r-net"]},
        {"id": "r-bad", "describeError": "describe timed out"},
        {"key": "no-id"},
    ],
    "workflow": {
        "workflowId": "wf-1",
        "workflowStatus": "running",
        "resources": [{"resourceId": "r-net", "steps": {"network": [{"eventType": "Completed"}]}}],
    },
    "infraProgress": [{"resourceId": "r-net", "instanceId": "inst-1", "status": "running", "totalResources": 2}],
    "terraformState": {
        "tf-rnet": {"history": [{"operation": "apply", "operationId": "op1", "status": "completed"}], "data": {"op1-apply.log": "ok"}},
    },
    "files": {"r-net": {"main.tf": "resource {}", "modules/": None}},
    "helm": {"r-app": {"releaseName": "app", "namespace": "default", "chartValues": "{}"}},
}


@pytest.fixture
def snapshot_path(tmp_path):
    path = tmp_path / "snapshot.yaml"
    path.write_text(yaml.safe_dump(SNAPSHOT))
    return path


@pytest.fixture
def source(snapshot_path):
    return SnapshotSource(snapshot_path)


def run(coro):
    return asyncio.run(coro)


class TestLoadSnapshot:
    def test_json(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text(json.dumps({"instanceId": "x"}))
        assert load_snapshot(path) == {"instanceId": "x"}

    def test_missing(self, tmp_path):
        with pytest.raises(SnapshotError):
            load_snapshot(tmp_path / "none.yaml")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "s.yaml"
        path.write_text("- a\n")
        with pytest.raises(SnapshotError) as exc:
            load_snapshot(path)
        assert "mapping" in str(exc.value)

    def test_parse_each_skips_malformed(self):
        parsed = parse_each(ResourceEntity, [{"id": "a"}, {"name": "no id"}, {"id": "b"}], "resource")
        assert [e.id for e in parsed] == ["a", "b"]
        assert parse_each(ResourceEntity, None, "resource") == []


class TestSnapshotSource:
    def test_instance_id(self, source):
        assert source.instance_id == "inst-1"

    def test_list_resources(self, source):
        result = run(source.list_resources("inst-1"))
        assert [e.id for e in result.value] == ["r-net", "r-app", "r-bad"]

    def test_describe(self, source):
        assert run(source.describe_resource("inst-1", "r-app")).value.dependencies == ["r-net"]
        failed = run(source.describe_resource("inst-1", "r-bad"))
        assert failed.is_err()
        assert failed.error.message == "describe timed out"
        assert run(source.describe_resource("inst-1", "ghost")).is_err()

    def test_workflow(self, source):
        snapshot = run(source.fetch_workflow("inst-1")).value
        assert snapshot.workflow_id == "wf-1"
        assert snapshot.resources[0].resource_id == "r-net"

    def test_progress_records(self, source):
        records = run(source.fetch_progress_records("inst-1")).value
        assert records[0].total_resources == 2

    def test_state_uses_identifier_variants(self, source):
        state = run(source.fetch_state("inst-1", "R-Net")).value
        assert state.history[0].operation_id == "op1"
        assert run(source.fetch_state("inst-1", "unknown")).value == TerraformState()

    def test_files(self, source):
        assert run(source.list_files("inst-1", "r-net")).value == ["main.tf", "modules/"]
        assert run(source.read_file("inst-1", "r-net", "main.tf")).value == "resource {}"
        assert run(source.read_file("inst-1", "r-net", "modules/")).is_err()
        assert run(source.list_files("inst-1", "r-app")).value == []

    def test_helm(self, source):
        assert run(source.fetch_helm("inst-1", "r-app")).value.release_name == "app"
        assert run(source.fetch_helm("inst-1", "r-net")).is_err()

    def test_unavailable_sources(self, snapshot_path):
        data = dict(SNAPSHOT, unavailable=["workflow", "infra"])
        snapshot_path.write_text(yaml.safe_dump(data))
        source = SnapshotSource(snapshot_path)
        result = run(source.fetch_workflow("inst-1"))
        assert result.is_err()
        assert str(result.error) == "workflow: service unavailable"
        assert run(source.fetch_state("inst-1", "r-net")).is_err()
        assert run(source.list_resources("inst-1")).is_ok()

    def test_reread_on_every_fetch(self, snapshot_path, source):
        run(source.list_resources("inst-1"))
        snapshot_path.write_text(yaml.safe_dump(dict(SNAPSHOT, resources=[{"id": "only"}])))
        assert [e.id for e in run(source.list_resources("inst-1")).value] == ["only"]

    def test_missing_file_is_soft(self, tmp_path):
        result = run(SnapshotSource(tmp_path / "gone.yaml").list_resources("x"))
        assert result.is_err()
        assert result.error.source == "plan"
