"""
Terraform detail view.

Tabs:
- Progress: the resource's latest infra progress record, re-polled while
  the operation is in flight.
- Terraform Files: rendered configuration files as a tree, with a
  file-content sub-view.
- Terraform Output: the newest output log as a tree with sensitive values
  masked.
- Logs: live tail of the latest apply or destroy operation.
- Operation History: timeline of every recorded operation.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from rich.style import Style
from rich.text import Text

from ... import config
from ...core.errors import SourceError
from ...core.identifiers import match_record
from ...core.result import Err, Ok, Result, map_ok
from ...core.types import HistoryEntry, InfraProgressRecord, TerraformState
from ...progress.infra import is_in_flight, latest_operation_id, status_summary
from ...streaming.logs import LogSnapshot, latest_output_log, snapshot_terraform_logs
from ...streaming.watcher import LogBatch, LogRetrying, LogStreamEnded
from ..messages import (
    DetailRefreshTick,
    FileContentLoaded,
    FileListLoaded,
    InfraRecordLoaded,
    OpenError,
    OpenFile,
    StateLoaded,
    ToggleDate,
    ToggleDirectory,
    ToggleNode,
    ToggleOperation,
    ToggleSensitive,
)
from ..trees import FileTree, HistoryTimeline, OutputTree
from .base import STYLE_DIM, STYLE_ERROR, STYLE_TITLE, DetailController, LogPane, TreePane

logger = logging.getLogger(__name__)

TAB_PROGRESS = "Progress"
TAB_FILES = "Terraform Files"
TAB_OUTPUT = "Terraform Output"
TAB_LOGS = "Logs"
TAB_HISTORY = "Operation History"

SUMMARY_ICONS = {"ready": "✓", "in_progress": "◌", "creating": "◌", "failed": "✗"}
BAR_WIDTH = 40


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "—"
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_elapsed(start: datetime, end: datetime) -> str:
    seconds = max(0, int((end - start).total_seconds()))
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def error_lines(entry: HistoryEntry) -> List[str]:
    """Error modal body; upstream errors carry escaped newlines."""
    header = [f"{entry.operation} ({entry.operation_id or 'unknown'}) {entry.status}", ""]
    return header + entry.error.replace("\\n", "\n").split("\n")


def progress_lines(record: Optional[InfraProgressRecord], now: Optional[datetime] = None) -> List[Text]:
    """Body of the Progress tab."""
    if record is None:
        return [Text("No infra progress recorded for this resource.", style=STYLE_DIM)]

    total, ready = record.total, record.ready
    lines = [
        Text("Status:    ", style=STYLE_DIM) + Text(record.status or "unknown", style=STYLE_TITLE),
        Text("Operation: ", style=STYLE_DIM) + Text(record.operation_id or "—"),
        Text(""),
    ]

    percent = int(ready * 100 / total) if total else 0
    filled = round(BAR_WIDTH * min(percent, 100) / 100)
    bar = Text("█" * filled, style=Style(color=config.COLOR_SUCCESS)) + Text("░" * (BAR_WIDTH - filled), style=STYLE_DIM)
    bar.append(f"  {ready}/{total} resources ready")
    lines.append(bar)
    lines.append(Text(""))

    summary = status_summary(record)
    if summary:
        lines.append(Text("Resource Status Summary", style=STYLE_TITLE))
        for state, count in summary:
            lines.append(Text(f"  {SUMMARY_ICONS.get(state, '·')} {state}: {count}"))
        lines.append(Text(""))

    lines.append(Text("Started:   ", style=STYLE_DIM) + Text(format_timestamp(record.started_at)))
    if record.completed_at is not None:
        lines.append(Text("Completed: ", style=STYLE_DIM) + Text(format_timestamp(record.completed_at)))
    elif record.started_at is not None:
        now = now or datetime.now(timezone.utc)
        lines.append(Text("Elapsed:   ", style=STYLE_DIM) + Text(format_elapsed(record.started_at, now)))

    if record.resources:
        lines.append(Text(""))
        lines.append(Text(f"Resources ({len(record.resources)})", style=STYLE_TITLE))
        for resource in record.resources:
            icon = SUMMARY_ICONS.get(resource.state.lower(), "·")
            lines.append(Text(f"  {icon} {resource.address or resource.name}") + Text(f"  {resource.state}", style=STYLE_DIM))
    return lines


class TerraformDetail(DetailController):
    """Drill-down for a Terraform resource."""

    tabs = (TAB_PROGRESS, TAB_FILES, TAB_OUTPUT, TAB_LOGS, TAB_HISTORY)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.record: Optional[InfraProgressRecord] = None
        self.record_error = ""
        self.record_loaded = False
        self.state: Optional[TerraformState] = None
        self.files = TreePane()
        self.output = TreePane()
        self.history = TreePane()
        self.logs = LogPane("Operation Logs")

    # --- Background work ---

    async def fetch_record(self) -> InfraRecordLoaded:
        result = await self.source.fetch_progress_records(self.instance_id)
        record = map_ok(result, lambda records: match_record(self.node.id, self.instance_id, records))
        return InfraRecordLoaded(self.generation, record)

    async def fetch_state(self) -> StateLoaded:
        return StateLoaded(self.generation, await self.source.fetch_state(self.instance_id, self.node.id))

    async def fetch_files(self) -> FileListLoaded:
        return FileListLoaded(self.generation, await self.source.list_files(self.instance_id, self.node.id))

    async def fetch_file(self, path: str) -> FileContentLoaded:
        content = await self.source.read_file(self.instance_id, self.node.id, path)
        return FileContentLoaded(self.generation, path, content)

    async def fetch_logs(self) -> Result[LogSnapshot, SourceError]:
        state = await self.source.fetch_state(self.instance_id, self.node.id)
        return map_ok(state, snapshot_terraform_logs)

    def start(self) -> None:
        logger.debug(f"Opening Terraform detail for {self.node.id}")
        self.spawn(self.fetch_record())
        self.spawn(self.fetch_state())
        self.spawn(self.fetch_files())

    def on_tab_entered(self) -> None:
        if self.tab_name == TAB_LOGS:
            self.start_log_watcher(self.logs, self.fetch_logs)

    # --- Messages ---

    def on_message(self, message: object) -> None:
        match message:
            case InfraRecordLoaded(record=Ok(value=record)):
                self.record, self.record_error, self.record_loaded = record, "", True
                if is_in_flight(record):
                    self.runtime.schedule(self.settings.refresh_interval, DetailRefreshTick(self.generation))
            case InfraRecordLoaded(record=Err(error=error)):
                logger.warning(f"Infra progress fetch failed for {self.node.id}: {error}")
                self.record_error, self.record_loaded = str(error), True
                if is_in_flight(self.record):
                    self.runtime.schedule(self.settings.refresh_interval, DetailRefreshTick(self.generation))
            case DetailRefreshTick():
                self.spawn(self.fetch_record())
            case StateLoaded(state=Ok(value=state)):
                self.set_state(state)
            case StateLoaded(state=Err(error=error)):
                self.history.status = f"Operation history unavailable: {error}"
                self.output.status = f"Terraform output unavailable: {error}"
            case FileListLoaded(listing=Ok(value=listing)):
                self.files.tree = FileTree(listing)
                self.files.status = "No files found."
            case FileListLoaded(listing=Err(error=error)):
                self.files.status = f"Files unavailable: {error}"
            case FileContentLoaded(path=path, content=content):
                if self.file_view is not None and self.file_view[0] == path:
                    match content:
                        case Ok(value=text):
                            self.file_view = (path, text)
                        case Err(error=error):
                            self.file_view = (path, f"Could not read file: {error}")
            case LogBatch() | LogRetrying() | LogStreamEnded():
                self.logs.apply(message)

    def set_state(self, state: TerraformState) -> None:
        self.state = state
        self.history.tree = HistoryTimeline(state.history)
        self.history.status = "No operations recorded."
        self.output.tree = OutputTree.from_output(latest_output_log(state))
        self.output.status = "No Terraform outputs."

    # --- Keys ---

    def _active_tree(self) -> Optional[TreePane]:
        return {TAB_FILES: self.files, TAB_OUTPUT: self.output, TAB_HISTORY: self.history}.get(self.tab_name)

    def on_key(self, key: str) -> bool:
        if self.tab_name == TAB_LOGS:
            if key == "f":
                self.logs.toggle_follow()
                return True
            if key in ("up", "k", "pageup"):
                self.logs.follow = False
            return False

        pane = self._active_tree()
        if pane is None:
            return False
        if key in ("up", "k"):
            pane.move(-1)
        elif key in ("down", "j"):
            pane.move(1)
        elif key in ("home", "g"):
            pane.move(-len(pane.rows()))
        elif key in ("end", "G"):
            pane.move(len(pane.rows()))
        elif key == "enter":
            self.select(pane)
        else:
            return False
        return True

    def select(self, pane: TreePane) -> None:
        match pane.selected():
            case ToggleDirectory(path=path):
                self.files.tree.toggle(path)
            case OpenFile(path=path):
                self.open_file(path)
                self.spawn(self.fetch_file(path))
            case ToggleNode(path=path):
                self.output.tree.toggle(path)
            case ToggleSensitive(path=path):
                self.output.tree.toggle_sensitive(path)
            case ToggleDate(date=date):
                self.history.tree.toggle_date(date)
            case ToggleOperation(date=date, operation_id=operation_id):
                self.history.tree.toggle_operation(date, operation_id)
            case OpenError(entry=entry):
                self.open_modal(error_lines(entry))
            case None:
                pass

    # --- Rendering ---

    def tab_body(self, width: int) -> Tuple[List[Text], Optional[int]]:
        name = self.tab_name
        if name == TAB_PROGRESS:
            if not self.record_loaded:
                return [Text("Loading…", style=STYLE_DIM)], None
            if not self.record_error:
                return progress_lines(self.record), None
            warning = Text(f"Infra progress unavailable: {self.record_error}", style=STYLE_ERROR)
            if self.record is None:
                return [warning], None
            return [warning, Text("")] + progress_lines(self.record), None

        if name == TAB_LOGS:
            body = self.logs.body()
            return body, (len(body) - 1 if self.logs.follow else None)

        pane = self._active_tree()
        lines, cursor = pane.lines()
        if name == TAB_HISTORY and self.state is not None and self.state.history:
            latest = latest_operation_id(self.state.history)
            header = [Text(f"{len(self.state.history)} entries · latest operation {latest[:8]}", style=STYLE_DIM), Text("")]
            return header + lines, (cursor + len(header) if cursor is not None else None)
        return lines, cursor
