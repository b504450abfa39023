"""
Helm detail view: the release's install log and its chart values.
"""

import logging
from typing import List, Optional, Tuple

from rich.text import Text

from ...core.errors import SourceError
from ...core.result import Err, Ok, Result, map_ok
from ...core.types import HelmData
from ...streaming.logs import LogSnapshot
from ...streaming.watcher import LogBatch, LogRetrying, LogStreamEnded
from ..messages import HelmLoaded, ToggleNode
from ..trees import ValueTree
from .base import STYLE_DIM, STYLE_ERROR, STYLE_TITLE, DetailController, LogPane, TreePane

logger = logging.getLogger(__name__)

TAB_LOGS = "Helm Logs"
TAB_VALUES = "Chart Values"

INSTALL_OPERATION = "install"


def helm_log_snapshot(helm: HelmData) -> LogSnapshot:
    lines = helm.install_log.rstrip("\n").split("\n") if helm.install_log.strip() else []
    return LogSnapshot(operation_id=INSTALL_OPERATION, lines=tuple(lines), label=helm.release_name)


def release_summary(helm: HelmData) -> List[Text]:
    rows = [
        ("Release", helm.release_name),
        ("Namespace", helm.namespace),
        ("Chart repo", f"{helm.chart_repo_name} ({helm.chart_repo_url})" if helm.chart_repo_url else helm.chart_repo_name),
        ("Chart version", helm.chart_version),
    ]
    return [Text(f"{label + ':':<15}", style=STYLE_DIM) + Text(value or "—") for label, value in rows]


class HelmDetail(DetailController):
    """Drill-down for a Helm release."""

    tabs = (TAB_LOGS, TAB_VALUES)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.helm: Optional[HelmData] = None
        self.error = ""
        self.values = TreePane()
        self.logs = LogPane("Helm Logs")

    async def fetch_helm(self) -> HelmLoaded:
        return HelmLoaded(self.generation, await self.source.fetch_helm(self.instance_id, self.node.id))

    async def fetch_logs(self) -> Result[LogSnapshot, SourceError]:
        result = await self.source.fetch_helm(self.instance_id, self.node.id)
        return map_ok(result, helm_log_snapshot)

    def start(self) -> None:
        logger.debug(f"Opening Helm detail for {self.node.id}")
        self.spawn(self.fetch_helm())
        self.start_log_watcher(self.logs, self.fetch_logs)

    def on_message(self, message: object) -> None:
        match message:
            case HelmLoaded(helm=Ok(value=helm)):
                self.helm = helm
                tree = ValueTree.from_json(helm.chart_values)
                self.values.tree = tree
                self.values.status = tree.error or "No chart values."
            case HelmLoaded(helm=Err(error=error)):
                self.error = str(error)
                self.values.status = f"Chart values unavailable: {error}"
            case LogBatch() | LogRetrying() | LogStreamEnded():
                self.logs.apply(message)

    def on_key(self, key: str) -> bool:
        if self.tab_name == TAB_LOGS:
            if key == "f":
                self.logs.toggle_follow()
                return True
            if key in ("up", "k", "pageup"):
                self.logs.follow = False
            return False

        pane = self.values
        row = pane.current()
        if key in ("up", "k"):
            pane.move(-1)
        elif key in ("down", "j"):
            pane.move(1)
        elif key in ("enter", "right", "left"):
            if row is None or not isinstance(row.selection, ToggleNode):
                return True
            path = row.selection.path
            if key == "enter":
                pane.tree.toggle(path)
            elif key == "right":
                pane.tree.expand(path)
            else:
                pane.tree.collapse(path)
        else:
            return False
        return True

    def tab_body(self, width: int) -> Tuple[List[Text], Optional[int]]:
        header: List[Text] = []
        if self.helm is not None:
            header = release_summary(self.helm) + [Text("")]
        elif self.error:
            header = [Text(f"Helm data unavailable: {self.error}", style=STYLE_ERROR), Text("")]

        if self.tab_name == TAB_LOGS:
            body = header + self.logs.body()
            return body, (len(body) - 1 if self.logs.follow else None)

        lines, cursor = self.values.lines()
        header = header + [Text("Chart Values", style=STYLE_TITLE), Text("")]
        return header + lines, (cursor + len(header) if cursor is not None else None)
