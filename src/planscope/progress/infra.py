"""
Infra-operation progress.

Converts Terraform operation progress records into node progress, and
provides the helpers the Terraform detail view uses to summarize a record
and its operation history.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.graph import PlanGraph
from ..core.identifiers import ProgressIndex, match_record
from ..core.types import HistoryEntry, InfraProgressRecord, Progress, ProgressStatus, ResourceKind

logger = logging.getLogger(__name__)

IN_FLIGHT_STATUSES = {"in_progress", "running", "creating", "updating"}

_COMPLETED = {"completed", "success"}
_FAILED = {"failed", "error", "cancelled", "canceled"}

# Status summary ordering; anything else follows alphabetically
SUMMARY_ORDER = ("ready", "in_progress", "creating", "failed")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_status(status: str) -> ProgressStatus:
    lowered = status.strip().lower()
    if lowered in _COMPLETED:
        return ProgressStatus.COMPLETED
    if lowered in _FAILED:
        return ProgressStatus.FAILED
    if lowered == "pending":
        return ProgressStatus.PENDING
    return ProgressStatus.RUNNING


def record_progress(record: InfraProgressRecord) -> Optional[Progress]:
    """
    Node progress for a record.

    Returns:
        Optional[Progress]: None when the record carries no usable data
        (no resource total, zero percent and not completed).
    """
    total = record.total
    ready = record.ready
    percent = int(ready * 100 / total) if total > 0 else 0
    raw_status = record.status.strip().lower() or "running"
    completed = raw_status in _COMPLETED

    if completed and percent == 0:
        percent = 100
    if total == 0 and percent == 0 and not completed:
        return None

    return Progress(
        percent=percent,
        status=normalize_status(raw_status),
        completed_steps=ready,
        total_steps=total,
    )


def build_infra_index(graph: PlanGraph, records: Iterable[InfraProgressRecord], instance_id: str) -> ProgressIndex:
    """
    Index infra progress for every Terraform node in the graph.

    Each entry is written under the node's id, key and name so it
    overrides workflow progress however that feed addressed the node.
    """
    records = list(records)
    index = ProgressIndex()
    for node in graph.nodes.values():
        if node.kind != ResourceKind.TERRAFORM:
            continue
        record = match_record(node.id, instance_id, records)
        if record is None:
            continue
        progress = record_progress(record)
        if progress is not None:
            index.put_node(node, progress)
    return index


def is_in_flight(record: Optional[InfraProgressRecord]) -> bool:
    """True while the operation is still converging."""
    if record is None:
        return False
    if record.total > 0 and record.ready >= record.total:
        return False
    return record.status.strip().lower() in IN_FLIGHT_STATUSES


def status_summary(record: InfraProgressRecord) -> List[Tuple[str, int]]:
    """Count managed resources per state, known states first."""
    counts: Dict[str, int] = {}
    for resource in record.resources:
        state = resource.state.lower() or "unknown"
        counts[state] = counts.get(state, 0) + 1

    def rank(state: str) -> Tuple[int, str]:
        if state in SUMMARY_ORDER:
            return (SUMMARY_ORDER.index(state), state)
        return (len(SUMMARY_ORDER), state)

    return [(state, counts[state]) for state in sorted(counts, key=rank)]


def latest_operation_id(history: Iterable[HistoryEntry]) -> str:
    """Operation id whose newest entry started last."""
    latest: Dict[str, datetime] = {}
    for entry in history:
        started = entry.started_at or _EPOCH
        if entry.operation_id not in latest or started > latest[entry.operation_id]:
            latest[entry.operation_id] = started
    if not latest:
        return ""
    return max(latest, key=lambda op_id: latest[op_id])
