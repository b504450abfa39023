"""Unit tests for infra-operation progress."""

from datetime import datetime, timezone

from planscope.core.graph import GraphBuilder
from planscope.core.result import Ok
from planscope.core.types import (
    HistoryEntry,
    InfraProgressRecord,
    ManagedResource,
    Node,
    ProgressStatus,
    ResourceDescription,
    ResourceEntity,
)
from planscope.progress.infra import (
    build_infra_index,
    is_in_flight,
    latest_operation_id,
    normalize_status,
    record_progress,
    status_summary,
)


def managed(*states):
    return [ManagedResource(address=f"res.{i}", state=s) for i, s in enumerate(states)]


def at(day, hour=0):
    return datetime(2024, 1, day, hour, tzinfo=timezone.utc)


class TestRecordProgress:
    def test_ready_over_total(self):
        record = InfraProgressRecord(status="in_progress", total_resources=4, resources=managed("ready", "creating", "Ready"))
        progress = record_progress(record)
        assert progress.percent == 50
        assert progress.status == ProgressStatus.RUNNING
        assert (progress.completed_steps, progress.total_steps) == (2, 4)

    def test_planned_resources_as_total(self):
        record = InfraProgressRecord(status="running", planned_resources=["a", "b", "c"], resources=managed("ready"))
        assert record_progress(record).percent == 33

    def test_completed_without_counts_shows_full(self):
        progress = record_progress(InfraProgressRecord(status="Completed"))
        assert progress.percent == 100
        assert progress.status == ProgressStatus.COMPLETED

    def test_no_data(self):
        assert record_progress(InfraProgressRecord(status="running")) is None

    def test_percent_clamped_when_ready_exceeds_total(self):
        record = InfraProgressRecord(status="running", total_resources=1, resources=managed("ready", "ready", "ready"))
        assert record_progress(record).percent == 100

    def test_normalize_status(self):
        assert normalize_status("SUCCESS") == ProgressStatus.COMPLETED
        assert normalize_status("error") == ProgressStatus.FAILED
        assert normalize_status("pending") == ProgressStatus.PENDING
        assert normalize_status("creating") == ProgressStatus.RUNNING


class TestInfraIndex:
    def test_only_terraform_nodes(self):
        entities = [
            ResourceEntity(id="tf-1", key="net", name="Network", type="terraform"),
            ResourceEntity(id="helm-1", type="helm"),
        ]
        descriptions = {e.id: Ok(ResourceDescription(resource_id=e.id)) for e in entities}
        graph = GraphBuilder([]).build(entities, descriptions, "inst")
        records = [
            InfraProgressRecord(resource_id="TF-1", instance_id="inst", status="running", total_resources=2, resources=managed("ready")),
            InfraProgressRecord(resource_id="helm-1", instance_id="inst", status="running", total_resources=2),
        ]
        index = build_infra_index(graph, records, "inst")
        assert index.lookup(Node(id="other", key="net")).percent == 50
        assert index.lookup(Node(id="x", name="Network")).percent == 50
        assert index.lookup(Node(id="helm-1")) is None


class TestDetailHelpers:
    def test_in_flight(self):
        assert is_in_flight(InfraProgressRecord(status="creating", total_resources=2, resources=managed("ready")))
        assert not is_in_flight(InfraProgressRecord(status="creating", total_resources=1, resources=managed("ready")))
        assert not is_in_flight(InfraProgressRecord(status="completed", total_resources=2))
        assert is_in_flight(InfraProgressRecord(status="running", total_resources=0))
        assert not is_in_flight(None)

    def test_status_summary_order(self):
        record = InfraProgressRecord(resources=managed("zeta", "failed", "ready", "creating", "ready", "alpha", ""))
        assert status_summary(record) == [
            ("ready", 2), ("creating", 1), ("failed", 1), ("alpha", 1), ("unknown", 1), ("zeta", 1),
        ]

    def test_latest_operation_id(self):
        history = [
            HistoryEntry(operation="diff", operation_id="op-a", started_at=at(1)),
            HistoryEntry(operation="diff", operation_id="op-b", started_at=at(2)),
            HistoryEntry(operation="apply", operation_id="op-a", started_at=at(3)),
        ]
        assert latest_operation_id(history) == "op-a"
        assert latest_operation_id([]) == ""
