"""
Operation log collection.

Terraform writes one log per operation step into the state store, keyed
`<operation id>-<operation>.log`. These helpers find the operation worth
tailing and stitch its step logs into one buffer.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..core.types import HistoryEntry, TerraformState

TAILED_OPERATIONS = ("apply", "destroy")

OUTPUT_LOG_SUFFIX = "-output.log"


@dataclass(frozen=True)
class LogSnapshot:
    """One poll's worth of log content for a single operation."""
    operation_id: str
    lines: Tuple[str, ...] = ()
    label: str = ""


def log_key(operation_id: str, operation: str) -> str:
    return f"{operation_id}-{operation.lower()}.log"


def latest_tailed_operation(state: TerraformState) -> str:
    """
    Latest operation id that has an apply or destroy log.

    History is scanned from its end, so the most recently recorded entry wins.
    """
    for entry in reversed(state.history):
        operation = entry.operation.lower()
        if operation in TAILED_OPERATIONS and log_key(entry.operation_id, operation) in state.data:
            return entry.operation_id
    return ""


def _trim_trailing_blank(lines: List[str]) -> List[str]:
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def collect_operation_logs(state: TerraformState, operation_id: str) -> Tuple[List[str], str]:
    """
    Stitch every step log of an operation into one buffer.

    Steps appear in history order, each under a `─── <step> ───` separator.
    When a step was recorded twice only the later record is kept.

    Returns:
        Tuple of (lines, label). The label reads "<short id> (diff → apply)".
    """
    if not operation_id:
        return [], ""

    by_operation: Dict[str, str] = {}
    for entry in state.history:
        if entry.operation_id != operation_id:
            continue
        operation = entry.operation.lower()
        content = state.data.get(log_key(operation_id, operation), "")
        if not content.strip():
            continue
        # A repeated step keeps its later log and its later position
        by_operation.pop(operation, None)
        by_operation[operation] = content

    if not by_operation:
        return [], ""

    lines: List[str] = []
    for idx, (operation, content) in enumerate(by_operation.items()):
        if idx:
            lines.append("")
        lines.append(f"─── {operation} ───")
        lines.append("")
        lines.extend(_trim_trailing_blank(content.split("\n")))

    label = f"{operation_id[:8]} ({' → '.join(by_operation)})"
    return lines, label


def snapshot_terraform_logs(state: TerraformState) -> LogSnapshot:
    """Log snapshot for the latest apply or destroy operation."""
    operation_id = latest_tailed_operation(state)
    lines, label = collect_operation_logs(state, operation_id)
    return LogSnapshot(operation_id=operation_id, lines=tuple(lines), label=label)


def latest_output_log(state: TerraformState) -> Optional[str]:
    """
    Content of the newest Terraform output log.

    Prefers the output log of the newest operation in history, else the
    last output log by key order.
    """
    newest: Optional[HistoryEntry] = None
    for entry in state.history:
        if (log_key(entry.operation_id, "output") in state.data
                and (newest is None or _started(entry) >= _started(newest))):
            newest = entry
    if newest is not None:
        return state.data[log_key(newest.operation_id, "output")]

    keys = sorted(k for k in state.data if k.endswith(OUTPUT_LOG_SUFFIX))
    return state.data[keys[-1]] if keys else None


def _started(entry: HistoryEntry) -> str:
    return entry.started_at.isoformat() if entry.started_at else ""
