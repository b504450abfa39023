"""
Workflow-derived progress.

Each resource reports events grouped by workflow step. Steps are folded into
categories, each category resolves to its highest-priority event type, and
the categories resolve to one overall status and percent.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from ..core.identifiers import ProgressIndex
from ..core.types import (
    EventType,
    Progress,
    ProgressStatus,
    ResourceWorkflowEvents,
    StepCategory,
    WorkflowEvent,
    WorkflowSnapshot,
)

logger = logging.getLogger(__name__)

# Higher wins. Debug and Started both mean "in progress".
EVENT_PRIORITY: Dict[EventType, int] = {
    EventType.FAILED: 3,
    EventType.COMPLETED: 2,
    EventType.DEBUG: 1,
    EventType.STARTED: 1,
}

_WORKFLOW_COMPLETED = {"success", "completed"}
_WORKFLOW_FAILED = {"failed", "cancelled", "canceled", "error"}
_WORKFLOW_RUNNING = {"running", "in_progress", "in-progress", "started"}


def categorize_step(step_name: str) -> StepCategory:
    """Map a workflow step name onto its category; unrecognized names are UNKNOWN."""
    try:
        return StepCategory(step_name.strip().lower())
    except ValueError:
        return StepCategory.UNKNOWN


def highest_priority(events: Iterable[WorkflowEvent]) -> Optional[EventType]:
    best: Optional[EventType] = None
    for event in events:
        if best is None or EVENT_PRIORITY[event.event_type] > EVENT_PRIORITY[best]:
            best = event.event_type
    return best


def group_by_category(steps: Mapping[str, List[WorkflowEvent]]) -> Dict[StepCategory, List[WorkflowEvent]]:
    grouped: Dict[StepCategory, List[WorkflowEvent]] = {}
    for step_name, events in steps.items():
        grouped.setdefault(categorize_step(step_name), []).extend(events)
    return grouped


def progress_from_workflow_status(status: str) -> Progress:
    """Fallback when a resource has no categorized events at all."""
    lowered = status.strip().lower()
    if lowered in _WORKFLOW_COMPLETED:
        return Progress(status=ProgressStatus.COMPLETED, percent=100)
    if lowered in _WORKFLOW_FAILED:
        return Progress(status=ProgressStatus.FAILED, percent=100)
    if lowered in _WORKFLOW_RUNNING:
        return Progress(status=ProgressStatus.RUNNING, percent=0)
    return Progress(status=ProgressStatus.PENDING, percent=0)


def compute_resource_progress(steps: Mapping[str, List[WorkflowEvent]], workflow_status: str = "") -> Progress:
    """
    Derive one resource's progress from its step events.

    Args:
        steps: Events keyed by workflow step name.
        workflow_status: Resource or workflow status, used only when no
            category reported any events.

    Returns:
        Progress: failed if any category failed; completed if every
        category with events completed; running if any category has
        events; else pending. Percent is completed/with-events, forced to
        100 on completion.
    """
    grouped = group_by_category(steps)

    total = 0
    completed = 0
    has_failed = False
    has_running = False
    for category in StepCategory:
        top = highest_priority(grouped.get(category, []))
        if top is None:
            continue
        total += 1
        if top == EventType.FAILED:
            has_failed = True
        elif top == EventType.COMPLETED:
            completed += 1
        else:
            has_running = True

    if total == 0:
        return progress_from_workflow_status(workflow_status)

    if has_failed:
        status = ProgressStatus.FAILED
    elif completed == total:
        status = ProgressStatus.COMPLETED
    elif has_running:
        status = ProgressStatus.RUNNING
    else:
        status = ProgressStatus.PENDING

    percent = 100 if status == ProgressStatus.COMPLETED else round(100 * completed / total)
    return Progress(percent=percent, status=status, completed_steps=completed, total_steps=total)


def build_workflow_index(snapshot: WorkflowSnapshot) -> ProgressIndex:
    """Index every resource's workflow progress by its id, key and name."""
    index = ProgressIndex()
    for resource in snapshot.resources:
        progress = resource_progress(resource, snapshot.workflow_status)
        index.put(progress, id=resource.resource_id, key=resource.resource_key, name=resource.resource_name)
    logger.debug(f"Workflow progress for {len(snapshot.resources)} resources")
    return index


def resource_progress(resource: ResourceWorkflowEvents, workflow_status: str = "") -> Progress:
    return compute_resource_progress(resource.steps, resource.workflow_status or workflow_status)
