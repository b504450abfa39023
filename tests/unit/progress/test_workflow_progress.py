"""Unit tests for workflow-derived progress."""

import pytest

from planscope.core.types import (
    EventType,
    Node,
    ProgressStatus,
    ResourceWorkflowEvents,
    StepCategory,
    WorkflowEvent,
    WorkflowSnapshot,
)
from planscope.progress.workflow import (
    build_workflow_index,
    categorize_step,
    compute_resource_progress,
    highest_priority,
    progress_from_workflow_status,
)


def ev(kind: str) -> WorkflowEvent:
    return WorkflowEvent(event_type=EventType(kind))


class TestCategories:
    def test_known_and_unknown_steps(self):
        assert categorize_step("Network") == StepCategory.NETWORK
        assert categorize_step("mystery-step") == StepCategory.UNKNOWN

    def test_priority(self):
        assert highest_priority([ev("Started"), ev("Completed")]) == EventType.COMPLETED
        assert highest_priority([ev("Completed"), ev("Failed"), ev("Debug")]) == EventType.FAILED
        assert highest_priority([]) is None


class TestComputeResourceProgress:
    def test_silent_category_does_not_block_completion(self):
        """Three categories completed and one silent resolves to completed."""
        steps = {
            "bootstrap": [ev("Started"), ev("Completed")],
            "storage": [ev("Completed")],
            "network": [ev("Completed")],
            "compute": [],
        }
        progress = compute_resource_progress(steps)
        assert progress.status == ProgressStatus.COMPLETED
        assert progress.percent == 100
        assert (progress.completed_steps, progress.total_steps) == (3, 3)

    def test_failure_dominates(self):
        steps = {"storage": [ev("Completed")], "network": [ev("Started"), ev("Failed")]}
        progress = compute_resource_progress(steps)
        assert progress.status == ProgressStatus.FAILED
        assert progress.percent == 50

    def test_running_percent_rounds(self):
        steps = {
            "bootstrap": [ev("Completed")],
            "storage": [ev("Started")],
            "network": [ev("Debug")],
        }
        progress = compute_resource_progress(steps)
        assert progress.status == ProgressStatus.RUNNING
        assert progress.percent == 33

    def test_unknown_steps_share_a_category(self):
        steps = {"foo": [ev("Completed")], "bar": [ev("Started")]}
        progress = compute_resource_progress(steps)
        assert progress.total_steps == 1
        assert progress.status == ProgressStatus.COMPLETED

    @pytest.mark.parametrize("status,expected,percent", [
        ("success", ProgressStatus.COMPLETED, 100),
        ("Cancelled", ProgressStatus.FAILED, 100),
        ("in-progress", ProgressStatus.RUNNING, 0),
        ("queued", ProgressStatus.PENDING, 0),
    ])
    def test_falls_back_to_workflow_status(self, status, expected, percent):
        progress = compute_resource_progress({}, status)
        assert (progress.status, progress.percent) == (expected, percent)
        assert progress_from_workflow_status(status).status == expected


class TestWorkflowIndex:
    def test_indexed_by_every_identifier(self):
        snapshot = WorkflowSnapshot(
            workflow_id="wf",
            workflow_status="running",
            resources=[
                ResourceWorkflowEvents(resource_key="net", steps={"network": [ev("Completed")]}),
                ResourceWorkflowEvents(resource_name="App", steps={}),
            ],
        )
        index = build_workflow_index(snapshot)
        assert index.lookup(Node(id="r1", key="net")).status == ProgressStatus.COMPLETED
        assert index.lookup(Node(id="r2", name="App")).status == ProgressStatus.RUNNING

    def test_resource_status_beats_workflow_status(self):
        snapshot = WorkflowSnapshot(
            workflow_status="running",
            resources=[ResourceWorkflowEvents(resource_id="a", workflow_status="failed")],
        )
        assert build_workflow_index(snapshot).lookup(Node(id="a")).status == ProgressStatus.FAILED

    def test_parses_camel_case_payload(self):
        snapshot = WorkflowSnapshot.model_validate({
            "workflowId": "wf-9",
            "resources": [{
                "resourceId": "a",
                "steps": {"compute": [{"eventType": "Started", "eventTime": "2024-03-01T10:00:00"}]},
            }],
        })
        assert snapshot.workflow_id == "wf-9"
        event = snapshot.resources[0].steps["compute"][0]
        assert event.event_time.tzinfo is not None
