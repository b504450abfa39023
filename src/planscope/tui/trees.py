"""
Expandable tree models for the detail views.

Each tree keeps its own expansion state and flattens to a list of `TreeRow`s
for display. A row's `selection` says what Enter on that row means; the
detail controller dispatches on it.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from rich.style import Style
from rich.text import Text

from .. import config
from ..core.types import HistoryEntry
from .messages import (
    OpenError,
    OpenFile,
    Selection,
    ToggleDate,
    ToggleDirectory,
    ToggleNode,
    ToggleOperation,
    ToggleSensitive,
)

MASKED_VALUE = "••••••••  (sensitive, press enter to reveal)"
RAW_OUTPUT_LIMIT = 500
UNKNOWN_DATE = "(unknown date)"
UNKNOWN_OPERATION = "(unknown)"

STYLE_DIR = Style(color="color(75)", bold=True)
STYLE_KEY = Style(color="color(252)")
STYLE_DIM = Style(color="color(245)")
STYLE_STRING = Style(color="color(150)")
STYLE_NUMBER = Style(color="color(180)")
STYLE_SENSITIVE = Style(color="color(203)")


@dataclass
class TreeRow:
    depth: int
    text: Text
    selection: Optional[Selection] = None


def _marker(expandable: bool, expanded: bool) -> str:
    if not expandable:
        return "  "
    return "▾ " if expanded else "▸ "


# --- File tree ---

@dataclass
class FileEntry:
    path: str
    name: str
    is_dir: bool
    children: List["FileEntry"] = field(default_factory=list)


class FileTree:
    """
    Directory tree built from a flat listing.

    Directory entries end with "/". Parents missing from the listing are
    synthesized. Directories sort before files, then by name.
    """

    def __init__(self, listing: List[str]):
        self.roots: List[FileEntry] = []
        self.expanded: Set[str] = set()
        self._by_path: Dict[str, FileEntry] = {}
        for item in listing:
            self._insert(item)
        self._sort(self.roots)

    def _ensure(self, parts: List[str], is_dir: bool) -> FileEntry:
        path = "/".join(parts)
        if path in self._by_path:
            entry = self._by_path[path]
            entry.is_dir = entry.is_dir or is_dir
            return entry
        entry = FileEntry(path=path, name=parts[-1], is_dir=is_dir)
        self._by_path[path] = entry
        if len(parts) == 1:
            self.roots.append(entry)
        else:
            self._ensure(parts[:-1], True).children.append(entry)
        return entry

    def _insert(self, item: str) -> None:
        parts = [p for p in item.strip().split("/") if p]
        if parts:
            self._ensure(parts, item.endswith("/"))

    def _sort(self, entries: List[FileEntry]) -> None:
        entries.sort(key=lambda e: (not e.is_dir, e.name))
        for entry in entries:
            self._sort(entry.children)

    def toggle(self, path: str) -> None:
        if path in self.expanded:
            self.expanded.discard(path)
        else:
            self.expanded.add(path)

    def rows(self) -> List[TreeRow]:
        rows: List[TreeRow] = []

        def walk(entries: List[FileEntry], depth: int) -> None:
            for entry in entries:
                if entry.is_dir:
                    open_ = entry.path in self.expanded
                    text = Text(_marker(True, open_)) + Text(entry.name + "/", style=STYLE_DIR)
                    rows.append(TreeRow(depth, text, ToggleDirectory(entry.path)))
                    if open_:
                        walk(entry.children, depth + 1)
                else:
                    text = Text(_marker(False, False)) + Text(entry.name, style=STYLE_KEY)
                    rows.append(TreeRow(depth, text, OpenFile(entry.path)))

        walk(self.roots, 0)
        return rows


# --- Structured values ---

def _json_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if value is None:
        return "null"
    return "string"


def _leaf_text(value: Any) -> Text:
    kind = _json_kind(value)
    if kind == "string":
        return Text(json.dumps(value, ensure_ascii=False), style=STYLE_STRING)
    if kind in ("number", "bool"):
        return Text(json.dumps(value), style=STYLE_NUMBER)
    return Text("null", style=STYLE_DIM)


@dataclass
class ValueNode:
    path: str
    key: str
    value: Any
    sensitive: bool = False
    children: List["ValueNode"] = field(default_factory=list)

    @property
    def expandable(self) -> bool:
        return isinstance(self.value, (dict, list)) and bool(self.value)


def build_value_node(path: str, key: str, value: Any, sensitive: bool = False) -> ValueNode:
    node = ValueNode(path=path, key=key, value=value, sensitive=sensitive)
    if isinstance(value, dict):
        items = sorted(value.items())
    elif isinstance(value, list):
        items = [(f"[{i}]", v) for i, v in enumerate(value)]
    else:
        items = []
    for child_key, child_value in items:
        node.children.append(build_value_node(f"{path}.{child_key}", str(child_key), child_value))
    return node


class ValueTree:
    """A JSON document as an expandable tree. Top-level nodes start expanded."""

    def __init__(self, roots: List[ValueNode]):
        self.roots = roots
        self.expanded: Set[str] = {root.path for root in roots if root.expandable}
        self.error = ""

    @classmethod
    def from_json(cls, raw: str) -> "ValueTree":
        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            tree = cls([])
            tree.error = f"invalid JSON: {e}"
            return tree
        if isinstance(data, dict):
            return cls([build_value_node(str(k), str(k), v) for k, v in sorted(data.items())])
        return cls([build_value_node("$", "$", data)])

    def toggle(self, path: str) -> None:
        if path in self.expanded:
            self.expanded.discard(path)
        else:
            self.expanded.add(path)

    def expand(self, path: str) -> None:
        self.expanded.add(path)

    def collapse(self, path: str) -> None:
        self.expanded.discard(path)

    def _node_text(self, node: ValueNode) -> Text:
        open_ = node.path in self.expanded
        text = Text(_marker(node.expandable, open_)) + Text(node.key, style=STYLE_KEY)
        if node.expandable:
            count = len(node.value)
            noun = "keys" if isinstance(node.value, dict) else "items"
            text.append(f"  {{{count} {noun}}}" if isinstance(node.value, dict) else f"  [{count} {noun}]", style=STYLE_DIM)
        else:
            text.append(": ")
            text.append_text(_leaf_text(node.value))
        return text

    def _selection(self, node: ValueNode) -> Optional[Selection]:
        return ToggleNode(node.path) if node.expandable else None

    def _walk(self, nodes: List[ValueNode], depth: int, rows: List[TreeRow]) -> None:
        for node in nodes:
            rows.append(TreeRow(depth, self._node_text(node), self._selection(node)))
            if node.expandable and node.path in self.expanded:
                self._walk(node.children, depth + 1, rows)

    def rows(self) -> List[TreeRow]:
        rows: List[TreeRow] = []
        self._walk(self.roots, 0, rows)
        return rows


class OutputTree(ValueTree):
    """
    Terraform outputs, `{name: {sensitive, type, value}}`.

    Sensitive outputs are masked until revealed. Unparsable content becomes
    a single raw node.
    """

    def __init__(self, roots: List[ValueNode], raw: str = ""):
        super().__init__(roots)
        self.revealed: Set[str] = set()
        self.raw = raw

    @classmethod
    def from_output(cls, raw: Optional[str]) -> "OutputTree":
        if not raw or not raw.strip():
            return cls([])
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return cls([], raw=raw.strip()[:RAW_OUTPUT_LIMIT])
        if not isinstance(data, dict):
            return cls([], raw=raw.strip()[:RAW_OUTPUT_LIMIT])

        roots = []
        for name, output in sorted(data.items()):
            if isinstance(output, dict) and "value" in output:
                roots.append(build_value_node(name, name, output.get("value"), bool(output.get("sensitive"))))
            else:
                roots.append(build_value_node(name, name, output))
        return cls(roots)

    def toggle_sensitive(self, path: str) -> None:
        if path in self.revealed:
            self.revealed.discard(path)
        else:
            self.revealed.add(path)

    def _masked(self, node: ValueNode) -> bool:
        return node.sensitive and node.path not in self.revealed

    def _node_text(self, node: ValueNode) -> Text:
        if self._masked(node):
            return Text(_marker(False, False)) + Text(node.key, style=STYLE_KEY) + Text(": ") + Text(MASKED_VALUE, style=STYLE_SENSITIVE)
        text = super()._node_text(node)
        if node.sensitive:
            text.append("  (sensitive)", style=STYLE_SENSITIVE)
        return text

    def _selection(self, node: ValueNode) -> Optional[Selection]:
        if node.sensitive and (self._masked(node) or not node.expandable):
            return ToggleSensitive(node.path)
        return super()._selection(node)

    def _walk(self, nodes: List[ValueNode], depth: int, rows: List[TreeRow]) -> None:
        for node in nodes:
            rows.append(TreeRow(depth, self._node_text(node), self._selection(node)))
            if self._masked(node):
                continue
            if node.expandable and node.path in self.expanded:
                self._walk(node.children, depth + 1, rows)

    def rows(self) -> List[TreeRow]:
        if self.raw:
            return [TreeRow(0, Text(self.raw, style=STYLE_DIM))]
        return super().rows()


# --- Operation history ---

def status_icon(status: str) -> Text:
    lowered = status.lower()
    if lowered in ("completed", "success", "ready"):
        return Text("●", style=Style(color=config.COLOR_SUCCESS))
    if lowered in ("failed", "error"):
        return Text("✗", style=Style(color=config.COLOR_FAILURE))
    if lowered in ("in_progress", "running", "creating", "updating"):
        return Text("◐", style=Style(color=config.COLOR_RUNNING))
    return Text("○", style=STYLE_DIM)


def _is_failure(status: str) -> bool:
    return status.lower() in ("failed", "error")


@dataclass
class OperationGroup:
    """
    History entries sharing an operation id, in chronological order.

    `status` is the status of the most recent entry. `earlier_failure`
    flags a failed entry that a later entry's status would otherwise hide.
    """
    operation_id: str
    entries: List[HistoryEntry] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return " → ".join(e.operation for e in self.entries)

    @property
    def status(self) -> str:
        return self.entries[-1].status if self.entries else ""

    @property
    def earlier_failure(self) -> bool:
        return not _is_failure(self.status) and any(_is_failure(e.status) for e in self.entries[:-1])

    @property
    def date(self) -> str:
        first = self.entries[0] if self.entries else None
        if first is None or first.started_at is None:
            return UNKNOWN_DATE
        return first.started_at.date().isoformat()


@dataclass
class DateSection:
    date: str
    groups: List[OperationGroup] = field(default_factory=list)


def build_timeline(history: List[HistoryEntry]) -> List[DateSection]:
    """
    Group history by operation id, then by date.

    Groups and dates are ordered newest first by their position in history;
    entries inside a group stay chronological.
    """
    groups: Dict[str, OperationGroup] = {}
    for entry in reversed(history):
        op_id = entry.operation_id or UNKNOWN_OPERATION
        groups.setdefault(op_id, OperationGroup(op_id)).entries.insert(0, entry)

    sections: Dict[str, DateSection] = {}
    for group in groups.values():
        sections.setdefault(group.date, DateSection(group.date)).groups.append(group)
    return list(sections.values())


def _time_only(entry: HistoryEntry) -> str:
    if entry.started_at is None:
        return "—"
    return entry.started_at.strftime("%H:%M:%S")


class HistoryTimeline:
    """
    Expandable operation timeline.

    Every date starts expanded, along with the newest operation group.
    """

    def __init__(self, history: List[HistoryEntry]):
        self.sections = build_timeline(history)
        self.expanded_dates: Set[str] = {section.date for section in self.sections}
        self.expanded_operations: Set[str] = set()
        if self.sections:
            newest = self.sections[0]
            if newest.groups:
                self.expanded_operations.add(self._group_key(newest.date, newest.groups[0].operation_id))

    @staticmethod
    def _group_key(date: str, operation_id: str) -> str:
        return f"{date}/{operation_id}"

    def toggle_date(self, date: str) -> None:
        if date in self.expanded_dates:
            self.expanded_dates.discard(date)
        else:
            self.expanded_dates.add(date)

    def toggle_operation(self, date: str, operation_id: str) -> None:
        key = self._group_key(date, operation_id)
        if key in self.expanded_operations:
            self.expanded_operations.discard(key)
        else:
            self.expanded_operations.add(key)

    def rows(self) -> List[TreeRow]:
        rows: List[TreeRow] = []
        for section in self.sections:
            open_date = section.date in self.expanded_dates
            header = Text(_marker(True, open_date)) + Text(section.date, style=Style(bold=True))
            header.append(f"  ({len(section.groups)} operations)", style=STYLE_DIM)
            rows.append(TreeRow(0, header, ToggleDate(section.date)))
            if not open_date:
                continue

            for group in section.groups:
                open_group = self._group_key(section.date, group.operation_id) in self.expanded_operations
                text = Text(_marker(True, open_group)) + status_icon(group.status)
                text.append(f" {group.operation_id[:8]}  ", style=STYLE_KEY)
                text.append(group.summary, style=STYLE_DIM)
                if group.earlier_failure:
                    text.append("  ⚠ earlier step failed", style=STYLE_SENSITIVE)
                rows.append(TreeRow(1, text, ToggleOperation(section.date, group.operation_id)))
                if not open_group:
                    continue

                for idx, entry in enumerate(group.entries):
                    branch = "└─ " if idx == len(group.entries) - 1 else "├─ "
                    text = Text(branch, style=STYLE_DIM) + status_icon(entry.status)
                    text.append(f" {entry.operation:<8} {entry.status:<12} {_time_only(entry)}")
                    selection = OpenError(entry) if _is_failure(entry.status) and entry.error else None
                    if selection is not None:
                        text.append("  (enter for error)", style=STYLE_SENSITIVE)
                    rows.append(TreeRow(2, text, selection))
        return rows
