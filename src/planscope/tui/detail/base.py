"""
Detail Controller Base - Shared tab, scroll and sub-view handling.

A detail controller owns one resource's drill-down. It starts its own
background loads, receives their results through `handle_message`, and
renders itself into styled lines. Every task it spawns shares one cancel
token, so closing the view drops whatever is still in flight.

Escape pops one level at a time: error modal, then file view, then the
controller itself.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.style import Style
from rich.text import Text

from ...config import Settings
from ...core.cancel import CancelToken
from ...core.types import Node
from ...sources.base import DeploymentSource
from ...streaming.watcher import LogBatch, LogRetrying, LogStreamEnded, LogWatcher
from ..messages import Selection
from ..runtime import Runtime
from ..trees import TreeRow

logger = logging.getLogger(__name__)

STYLE_TITLE = Style(bold=True)
STYLE_TAB = Style(color="color(245)")
STYLE_TAB_ACTIVE = Style(color="color(205)", bold=True, underline=True)
STYLE_CURSOR = Style(reverse=True)
STYLE_DIM = Style(color="color(245)")
STYLE_ERROR = Style(color="color(203)")
STYLE_MODAL = Style(color="color(203)", bold=True)

SCROLL_PAGE = 10
LOADING_TEXT = "Loading…"


class TreePane:
    """Cursor over a tree's flattened rows."""

    def __init__(self):
        self.tree: Any = None
        self.cursor = 0
        self.status = LOADING_TEXT

    def rows(self) -> List[TreeRow]:
        return self.tree.rows() if self.tree is not None else []

    def move(self, delta: int) -> None:
        rows = self.rows()
        if not rows:
            self.cursor = 0
            return
        self.cursor = max(0, min(len(rows) - 1, self.cursor + delta))

    def current(self) -> Optional[TreeRow]:
        rows = self.rows()
        if not rows:
            return None
        self.cursor = min(self.cursor, len(rows) - 1)
        return rows[self.cursor]

    def selected(self) -> Optional[Selection]:
        row = self.current()
        return row.selection if row is not None else None

    def lines(self) -> Tuple[List[Text], Optional[int]]:
        rows = self.rows()
        if not rows:
            return [Text(self.status, style=STYLE_DIM)], None
        self.cursor = min(self.cursor, len(rows) - 1)
        lines = []
        for idx, row in enumerate(rows):
            line = Text("  " * row.depth) + row.text
            if idx == self.cursor:
                line.stylize(STYLE_CURSOR)
            lines.append(line)
        return lines, self.cursor


class LogPane:
    """Buffer fed by a log watcher, with follow mode."""

    def __init__(self, title: str):
        self.title = title
        self.lines: List[str] = []
        self.label = ""
        self.follow = True
        self.ended = False
        self.error = ""
        self.retrying = ""
        self.started = False
        self.scroll = 0

    def apply(self, message: object) -> None:
        match message:
            case LogBatch(lines=lines, label=label, replace=replace):
                if replace:
                    self.lines = list(lines)
                else:
                    self.lines.extend(lines)
                if label:
                    self.label = label
                self.retrying = ""
            case LogRetrying(attempt=attempt, limit=limit, error=error):
                self.retrying = f"retrying ({attempt}/{limit}): {error}"
            case LogStreamEnded(error=error):
                self.ended = True
                self.retrying = ""
                self.error = error or ""

    def toggle_follow(self) -> None:
        self.follow = not self.follow

    def header(self) -> Text:
        text = Text(f"{self.title} ({len(self.lines)} lines)", style=STYLE_TITLE)
        if self.ended:
            text.append("  ended", style=STYLE_DIM)
        elif self.started:
            text.append("  ● live", style=Style(color="color(82)"))
        if self.follow:
            text.append("  [follow]", style=Style(color="color(75)"))
        if self.label:
            text.append(f"  {self.label}", style=STYLE_DIM)
        return text

    def body(self) -> List[Text]:
        body = [self.header(), Text("")]
        if self.retrying:
            body.append(Text(self.retrying, style=STYLE_ERROR))
        if self.error:
            body.append(Text(f"Log stream stopped: {self.error}", style=STYLE_ERROR))
        if not self.lines and not self.error:
            body.append(Text("Waiting for logs…" if not self.ended else "No logs available.", style=STYLE_DIM))
        body.extend(Text(line) for line in self.lines)
        return body


class DetailController(ABC):
    """
    Drill-down for one resource.

    Args:
        node: The selected graph node.
        instance_id: Deployment instance the node belongs to.
        source: Where detail data is fetched from.
        runtime: Spawns background work and delivers its results.
        settings: Refresh and log streaming tunables.
    """

    tabs: Sequence[str] = ()

    def __init__(self, node: Node, instance_id: str, source: DeploymentSource, runtime: Runtime, settings: Settings):
        self.node = node
        self.instance_id = instance_id
        self.source = source
        self.runtime = runtime
        self.settings = settings
        self.token = CancelToken()
        self.tab = 0
        self.scroll: Dict[int, int] = {}
        self.modal: Optional[List[str]] = None
        self.file_view: Optional[Tuple[str, Optional[str]]] = None
        self.file_scroll = 0
        self.closed = False

    @property
    def generation(self) -> int:
        return self.token.generation

    @property
    def tab_name(self) -> str:
        return self.tabs[self.tab]

    def spawn(self, work) -> None:
        self.runtime.spawn(work, self.token)

    def start_log_watcher(self, pane: LogPane, fetch) -> None:
        if pane.started:
            return
        pane.started = True
        watcher = LogWatcher(
            fetch,
            self.runtime.post,
            self.token,
            poll_interval=self.settings.log_poll_interval,
            retry_limit=self.settings.log_retry_limit,
            retry_delay=self.settings.log_retry_delay,
            batch_interval=self.settings.log_batch_interval,
            batch_size=self.settings.log_batch_size,
        )
        self.spawn(watcher.run())

    @abstractmethod
    def start(self) -> None:
        """Kick off the initial background loads."""

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        logger.debug(f"Closing detail view for {self.node.id} (generation {self.generation})")
        self.runtime.cancel(self.token)

    # --- Messages ---

    def handle_message(self, message: object) -> bool:
        """
        Apply a background result.

        Returns:
            bool: True if the message belonged to this view.
        """
        if getattr(message, "generation", None) != self.generation or self.closed:
            return False
        self.on_message(message)
        return True

    @abstractmethod
    def on_message(self, message: object) -> None:
        ...

    # --- Keys ---

    def open_modal(self, lines: List[str]) -> None:
        self.modal = lines

    def open_file(self, path: str) -> None:
        self.file_view = (path, None)
        self.file_scroll = 0

    def switch_tab(self, delta: int) -> None:
        self.tab = (self.tab + delta) % len(self.tabs)
        self.on_tab_entered()

    def on_tab_entered(self) -> None:
        """Hook for tabs that start work lazily."""

    def handle_key(self, key: str) -> bool:
        """
        Handle a key press.

        Returns:
            bool: True when the view should close.
        """
        if self.modal is not None:
            if key in ("escape", "enter", "q"):
                self.modal = None
            return False

        if self.file_view is not None:
            if key == "escape":
                self.file_view = None
            elif key in ("up", "k"):
                self.file_scroll = max(0, self.file_scroll - 1)
            elif key in ("down", "j"):
                self.file_scroll += 1
            elif key == "pageup":
                self.file_scroll = max(0, self.file_scroll - SCROLL_PAGE)
            elif key == "pagedown":
                self.file_scroll += SCROLL_PAGE
            return False

        if key == "escape":
            return True
        if key == "tab":
            self.switch_tab(1)
            return False
        if key == "shift+tab":
            self.switch_tab(-1)
            return False
        if self.on_key(key):
            return False
        if key == "right":
            self.switch_tab(1)
        elif key == "left":
            self.switch_tab(-1)
        elif key in ("up", "k"):
            self.scroll_by(-1)
        elif key in ("down", "j"):
            self.scroll_by(1)
        elif key == "pageup":
            self.scroll_by(-SCROLL_PAGE)
        elif key == "pagedown":
            self.scroll_by(SCROLL_PAGE)
        return False

    def on_key(self, key: str) -> bool:
        """Tab-specific keys. Returns True when consumed."""
        return False

    def scroll_by(self, delta: int) -> None:
        self.scroll[self.tab] = max(0, self.scroll.get(self.tab, 0) + delta)

    # --- Rendering ---

    def title(self) -> Text:
        return Text(f"{self.node.label}", style=STYLE_TITLE) + Text(f"  ({self.node.type or 'resource'})", style=STYLE_DIM)

    def tab_bar(self) -> Text:
        text = Text()
        for idx, name in enumerate(self.tabs):
            if idx:
                text.append("  │  ", style=STYLE_DIM)
            text.append(name, style=STYLE_TAB_ACTIVE if idx == self.tab else STYLE_TAB)
        return text

    @abstractmethod
    def tab_body(self, width: int) -> Tuple[List[Text], Optional[int]]:
        """Lines of the active tab plus the row the viewport must keep visible."""

    def footer(self) -> Text:
        if self.modal is not None:
            return Text("esc close", style=STYLE_DIM)
        if self.file_view is not None:
            return Text("↑/↓ scroll · esc back", style=STYLE_DIM)
        return Text("tab/shift+tab switch tabs · ↑/↓ move · enter select · esc back · q quit", style=STYLE_DIM)

    def _window(self, body: List[Text], focus: Optional[int], height: int) -> List[Text]:
        if height <= 0:
            return []
        offset = self.scroll.get(self.tab, 0)
        if focus is not None:
            if focus < offset:
                offset = focus
            elif focus >= offset + height:
                offset = focus - height + 1
        offset = max(0, min(offset, max(0, len(body) - height)))
        self.scroll[self.tab] = offset
        return body[offset: offset + height]

    def _file_lines(self, height: int) -> List[Text]:
        path, content = self.file_view
        header = Text(path, style=STYLE_TITLE)
        if content is None:
            return [header, Text(""), Text(LOADING_TEXT, style=STYLE_DIM)]
        body = content.split("\n")
        self.file_scroll = max(0, min(self.file_scroll, max(0, len(body) - height + 2)))
        visible = body[self.file_scroll: self.file_scroll + max(height - 2, 0)]
        return [header, Text("")] + [Text(line) for line in visible]

    def render(self, width: int, height: int) -> List[Text]:
        """Render the whole view into at most `height` lines."""
        lines = [self.title(), self.tab_bar(), Text("─" * max(width, 1), style=STYLE_DIM)]
        available = max(height - len(lines) - 2, 1)

        if self.modal is not None:
            lines.append(Text("Error details", style=STYLE_MODAL))
            lines.append(Text(""))
            lines.extend(Text(line, style=STYLE_ERROR) for line in self.modal[: max(available - 2, 0)])
        elif self.file_view is not None:
            lines.extend(self._file_lines(available))
        else:
            body, focus = self.tab_body(width)
            lines.extend(self._window(body, focus, available))

        lines.append(Text(""))
        lines.append(self.footer())
        return lines
