"""
Navigation Controller - The dashboard's state machine.

All navigation, graph and progress state lives here and is only changed
inside `dispatch`, which the UI loop calls once per message. Background
work (graph build, progress collection, detail loads, log polling) is
handed to the runtime and comes back as messages.

States:
- Dashboard: the plan graph with a cursor. Progress is re-collected on a
  fixed interval while any node is still in flight.
- Detail: a per-kind drill-down. Scheduled dashboard refreshes are
  suspended while it is open and resumed when it closes.
"""

import logging
from enum import StrEnum
from typing import Dict, List, Optional, Type

from rich.style import Style
from rich.text import Text

from .. import config
from ..config import Settings
from ..core.cancel import CancelToken
from ..core.errors import GraphBuildError
from ..core.graph import GraphBuilder, PlanGraph, load_plan_graph
from ..core.types import Node, ResourceKind
from ..layout.engine import LevelOrder, order_levels
from ..layout.render import RenderState, RenderedPlan, header_line, render_plan
from ..progress.aggregator import ProgressAggregator, ProgressState
from ..sources.base import DeploymentSource
from .detail.base import DetailController
from .detail.helm import HelmDetail
from .detail.terraform import TerraformDetail
from .messages import GraphLoaded, Key, ProgressCollected, RefreshTick, Resize, SpinnerTick
from .runtime import Runtime

logger = logging.getLogger(__name__)

SPINNER_INTERVAL = 0.1
SCROLL_PAGE = 10

STYLE_FOOTER = Style(color="color(245)")
STYLE_ERROR = Style(color="color(203)")

DETAIL_VIEWS: Dict[ResourceKind, Type[DetailController]] = {
    ResourceKind.TERRAFORM: TerraformDetail,
    ResourceKind.HELM: HelmDetail,
}

QUIT_KEYS = ("q", "ctrl+c")


class Mode(StrEnum):
    DASHBOARD = "dashboard"
    DETAIL = "detail"


class NavigationController:
    """
    Drives the dashboard.

    Args:
        source: Supplies the plan, both progress feeds and detail data.
        instance_id: Deployment instance to show.
        runtime: Background task and timer seam.
        settings: Refresh intervals and filters.
    """

    def __init__(self, source: DeploymentSource, instance_id: str, runtime: Runtime, settings: Optional[Settings] = None):
        self.source = source
        self.instance_id = instance_id
        self.runtime = runtime
        self.settings = settings or Settings()
        self.builder = GraphBuilder(self.settings.hidden_substrings)
        self.aggregator = ProgressAggregator(source, source, instance_id)
        self.token = CancelToken()

        self.graph: Optional[PlanGraph] = None
        self.graph_error = ""
        self.graph_loading = True
        self.order: Optional[LevelOrder] = None

        self.progress = ProgressState()
        self.progress_warnings: List[str] = []
        self.refreshing = False
        self.refresh_scheduled = False
        self.spinner_running = False
        self.spinner_tick = 0

        self.column = 0
        self.row = 0
        self.detail: Optional[DetailController] = None

        self.width = 120
        self.height = 40
        self.scroll_y = 0
        self.scroll_x = 0
        self._follow_cursor = False

    @property
    def mode(self) -> Mode:
        return Mode.DETAIL if self.detail is not None else Mode.DASHBOARD

    @property
    def selected_id(self) -> str:
        if self.order is None or not self.order.levels:
            return ""
        level = self.order.levels[self.column]
        return level[self.row] if level else ""

    @property
    def selected_node(self) -> Optional[Node]:
        if self.graph is None or not self.selected_id:
            return None
        return self.graph.get_node(self.selected_id)

    @property
    def progress_loading(self) -> bool:
        return self.graph is not None and not self.progress.resolved

    # --- Background work ---

    async def load_graph(self) -> GraphLoaded:
        try:
            graph = await load_plan_graph(self.source, self.instance_id, self.builder)
        except GraphBuildError as e:
            logger.error(f"Could not build plan graph: {e}")
            return GraphLoaded(graph=None, error=str(e))
        return GraphLoaded(graph=graph)

    async def collect_progress(self, graph: PlanGraph) -> ProgressCollected:
        return ProgressCollected(await self.aggregator.collect(graph))

    def start(self) -> None:
        logger.info(f"Loading deployment plan for {self.instance_id}")
        self.runtime.spawn(self.load_graph(), self.token)
        self.start_spinner()

    def start_spinner(self) -> None:
        if not self.spinner_running:
            self.spinner_running = True
            self.runtime.schedule(SPINNER_INTERVAL, SpinnerTick())

    def start_refresh(self) -> None:
        if self.graph is None or self.refreshing:
            return
        self.refreshing = True
        self.runtime.spawn(self.collect_progress(self.graph), self.token)

    def schedule_refresh(self) -> None:
        """Arm the refresh timer if on the dashboard and anything is in flight."""
        if self.mode != Mode.DASHBOARD or self.graph is None:
            return
        if self.refresh_scheduled or self.refreshing:
            return
        if not self.progress.merged.any_in_flight(list(self.graph.nodes.values())):
            logger.debug("All nodes terminal; progress refresh idle")
            return
        self.refresh_scheduled = True
        self.runtime.schedule(self.settings.refresh_interval, RefreshTick())

    # --- Dispatch ---

    def dispatch(self, message: object) -> None:
        match message:
            case Key(key=key):
                self.on_key(key)
            case Resize(width=width, height=height):
                self.width, self.height = width, height
            case GraphLoaded(graph=graph, error=error):
                self.on_graph_loaded(graph, error)
            case ProgressCollected(refresh=refresh):
                self.refreshing = False
                self.progress_warnings = self.progress.apply(refresh)
                for warning in self.progress_warnings:
                    logger.warning(warning)
                self.schedule_refresh()
            case RefreshTick():
                self.refresh_scheduled = False
                if self.mode == Mode.DASHBOARD:
                    self.start_refresh()
            case SpinnerTick():
                self.spinner_tick += 1
                if self.graph_loading or self.progress_loading:
                    self.runtime.schedule(SPINNER_INTERVAL, SpinnerTick())
                else:
                    self.spinner_running = False
            case _:
                if self.detail is None or not self.detail.handle_message(message):
                    logger.debug(f"Dropping stale message {type(message).__name__}")

    def on_graph_loaded(self, graph: Optional[PlanGraph], error: str) -> None:
        self.graph_loading = False
        self.graph = graph
        self.graph_error = error
        self.column = self.row = 0
        if graph is None:
            return
        self.order = order_levels(graph)
        logger.info(f"Plan graph ready: {graph.node_count} nodes, {graph.edge_count} edges")
        self.start_refresh()

    # --- Keys ---

    def on_key(self, key: str) -> None:
        if key in QUIT_KEYS and (key == "ctrl+c" or self.detail is None or self.detail.modal is None):
            self.quit()
            return

        if self.detail is not None:
            if self.detail.handle_key(key):
                self.close_detail()
            return

        match key:
            case "up" | "k":
                self.move_row(-1)
            case "down" | "j":
                self.move_row(1)
            case "left" | "h":
                self.move_column(-1)
            case "right" | "l":
                self.move_column(1)
            case "tab":
                self.move_linear(1)
            case "shift+tab":
                self.move_linear(-1)
            case "enter":
                self.open_detail()
            case "pageup":
                self.scroll_y = max(0, self.scroll_y - SCROLL_PAGE)
            case "pagedown":
                self.scroll_y += SCROLL_PAGE
            case "home" | "g":
                self.scroll_y = 0
            case "end" | "G":
                self.scroll_y = 1 << 30

    def _levels(self) -> List[List[str]]:
        return self.order.levels if self.order is not None else []

    def move_row(self, delta: int) -> None:
        levels = self._levels()
        if not levels:
            return
        self.row = max(0, min(len(levels[self.column]) - 1, self.row + delta))
        self._follow_cursor = True

    def move_column(self, delta: int) -> None:
        levels = self._levels()
        if not levels:
            return
        self.column = max(0, min(len(levels) - 1, self.column + delta))
        self.row = max(0, min(len(levels[self.column]) - 1, self.row))
        self._follow_cursor = True

    def move_linear(self, delta: int) -> None:
        if self.order is None:
            return
        flat = self.order.flatten()
        if not flat:
            return
        idx = min(max(flat.index(self.selected_id) + delta, 0), len(flat) - 1)
        target = flat[idx]
        for col, level in enumerate(self.order.levels):
            if target in level:
                self.column, self.row = col, level.index(target)
                break
        self._follow_cursor = True

    def open_detail(self) -> None:
        node = self.selected_node
        if node is None:
            return
        view = DETAIL_VIEWS.get(node.kind)
        if view is None:
            logger.debug(f"No detail view for {node.id} ({node.type})")
            return
        self.detail = view(node, self.instance_id, self.source, self.runtime, self.settings)
        self.detail.start()

    def close_detail(self) -> None:
        if self.detail is None:
            return
        self.detail.close()
        self.detail = None
        if not self.progress.resolved:
            self.start_refresh()
        else:
            self.schedule_refresh()

    def quit(self) -> None:
        if self.detail is not None:
            self.detail.close()
            self.detail = None
        self.runtime.cancel(self.token)
        self.runtime.quit()

    # --- Rendering ---

    def render_state(self) -> RenderState:
        return RenderState(
            selected_id=self.selected_id,
            progress=self.progress.merged if self.progress.resolved else None,
            loading=self.progress_loading,
            spinner_tick=self.spinner_tick,
            width=self.width,
            extra_warnings=list(self.progress_warnings),
        )

    def footer(self) -> Text:
        text = Text("↑/↓ ←/→ move · enter details · pgup/pgdn scroll · q quit", style=STYLE_FOOTER)
        if self.refreshing:
            text.append("  · refreshing…", style=STYLE_FOOTER)
        elif self.refresh_scheduled:
            text.append(f"  · auto-refresh every {self.settings.refresh_interval:g}s", style=STYLE_FOOTER)
        return text

    def _viewport(self, rendered: RenderedPlan, height: int) -> List[Text]:
        lines = rendered.lines
        if self._follow_cursor and rendered.layout is not None:
            top = rendered.row_of(self.selected_id)
            if top is not None:
                bottom = top + rendered.layout.card_height + 1
                if top - 1 < self.scroll_y:
                    self.scroll_y = max(0, top - 1)
                elif bottom >= self.scroll_y + height:
                    self.scroll_y = bottom - height + 1
                placement = rendered.layout.placements[self.selected_id]
                right = placement.x + rendered.layout.card_width + 1
                if placement.x - 2 < self.scroll_x:
                    self.scroll_x = max(0, placement.x - 2)
                elif right >= self.scroll_x + self.width:
                    self.scroll_x = right - self.width + 1
            self._follow_cursor = False

        self.scroll_y = max(0, min(self.scroll_y, max(0, len(lines) - height)))
        visible = lines[self.scroll_y: self.scroll_y + height]
        if self.scroll_x:
            visible = [line[self.scroll_x:] for line in visible]
        return visible

    def render(self) -> List[Text]:
        """Render the active screen into styled lines."""
        if self.detail is not None:
            return self.detail.render(self.width, self.height)

        header = header_line(self.instance_id, self.progress.workflow_id)
        body_height = max(self.height - 3, 1)
        frames = config.SPINNER_FRAMES

        if self.graph_loading:
            spinner = frames[self.spinner_tick % len(frames)]
            return [header, Text(""), Text(f"{spinner} Loading deployment plan…")]

        rendered = render_plan(self.graph, self.render_state(), self.order)
        if self.graph is None and self.graph_error:
            rendered.lines.append(Text(self.graph_error, style=STYLE_ERROR))
        return [header, Text("")] + self._viewport(rendered, body_height) + [self.footer()]
