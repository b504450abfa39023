"""
Plan Renderer - Paints the laid-out plan graph onto a canvas.

Draws, in order: the dot background, the outer frame, dotted separators
between levels, connectors for forward edges, node cards (with progress
bars or loading shimmer), and the selection arrow. Warnings and the cycle
notice are emitted above the canvas.
"""

import textwrap
from dataclasses import dataclass, field
from typing import List, Optional

from rich.style import Style
from rich.text import Text

from .. import config
from ..core.graph import PlanGraph
from ..core.identifiers import ProgressIndex, short_id
from ..core.types import Node, Progress, ProgressStatus
from .canvas import Canvas
from .engine import Layout, LevelOrder, Placement, compute_layout, order_levels
from .glyphs import ARROW_HEAD, corner

UNAVAILABLE_TEXT = "Deployment plan unavailable"
EMPTY_PLAN_TEXT = "No resources found for this plan version."
CYCLE_WARNING = "Cycle detected in dependencies; layout may be incomplete."
FAILED_MARKER = "! "

STYLE_WARNING = Style(color="red", bold=True)
STYLE_SUBTLE = Style(color="color(245)")
STYLE_BORDER = Style(color=config.COLOR_BORDER)
STYLE_CARD_BORDER = Style(color="color(245)")
STYLE_SELECTED = Style(color=config.COLOR_SELECTED, bold=True)
STYLE_GLOW = Style(color=config.COLOR_SELECTED)
STYLE_TITLE = Style(color="color(255)", bold=True)
STYLE_TITLE_SELECTED = Style(color="color(230)", bold=True)
STYLE_LABEL = Style(color="color(245)")
STYLE_VALUE = Style(color="color(252)")
STYLE_CONNECTOR = Style(color=config.COLOR_CONNECTOR)
STYLE_SEPARATOR = Style(color="color(238)")
STYLE_DOTS = Style(color=config.COLOR_DOTS)
STYLE_SHIMMER = Style(color="color(241)")
STYLE_FAILED = Style(color=config.COLOR_FAILURE, bold=True)

_TYPE_TAGS = (("helm", "Helm"), ("terraform", "Terraform"), ("kustomize", "Kustomize"))
_ICONS = {"Helm": "H", "Terraform": "T", "Kustomize": "K"}

_COMPLETED = {"completed", "success"}
_FAILED = {"failed", "error", "cancelled", "canceled"}
_RUNNING = {"running", "in_progress", "in-progress", "started"}


def format_type_tag(resource_type: str) -> str:
    """Human-facing type tag for a card."""
    lowered = resource_type.lower()
    if not lowered:
        return "Resource"
    for needle, tag in _TYPE_TAGS:
        if needle in lowered:
            return tag
    return lowered[0].upper() + lowered[1:]


def type_icon(tag: str) -> str:
    return _ICONS.get(tag, "R")


def status_color(status: str) -> str:
    lowered = status.lower()
    if lowered in _COMPLETED:
        return config.COLOR_SUCCESS
    if lowered in _FAILED:
        return config.COLOR_FAILURE
    if lowered in _RUNNING:
        return config.COLOR_RUNNING
    return "color(252)"


def wrap_text(text: str, width: int) -> List[str]:
    if width <= 0:
        return [text]
    return textwrap.wrap(text, width) or [""]


@dataclass
class NodeCard:
    """Everything drawn inside one card."""
    title: str
    type_tag: str
    key_label: str
    key_value: str
    progress: Optional[Progress] = None
    loading: bool = False
    spinner: str = config.SPINNER_FRAMES[0]

    @property
    def icon(self) -> str:
        return type_icon(self.type_tag)

    @property
    def has_progress(self) -> bool:
        return self.loading or self.progress is not None

    @property
    def failed(self) -> bool:
        return not self.loading and self.progress is not None and self.progress.status == ProgressStatus.FAILED

    @property
    def content_width(self) -> int:
        return max(
            len(FAILED_MARKER) + len(self.title),
            len(f"Type: {self.type_tag}"),
            len(f"{self.key_label}: {self.key_value}"),
        )


def build_card(node: Node, progress: Optional[Progress], loading: bool = False, spinner_tick: int = 0) -> NodeCard:
    if node.key:
        key_label, key_value = "Key", node.key
    else:
        key_label, key_value = "ID", short_id(node.id)
    frames = config.SPINNER_FRAMES
    return NodeCard(
        title=node.label,
        type_tag=format_type_tag(node.type),
        key_label=key_label,
        key_value=key_value,
        progress=progress,
        loading=loading,
        spinner=frames[spinner_tick % len(frames)],
    )


def draw_progress_bar(canvas: Canvas, x: int, y: int, width: int, card: NodeCard) -> None:
    """
    Inline percentage bar, or a shimmer plus spinner while loading.
    """
    if width <= 0 or not card.has_progress:
        return

    if card.loading:
        bar_width = max(width - 2, 1)
        canvas.write_text(x, y, "░" * bar_width, STYLE_SHIMMER)
        canvas.set(x + bar_width, y, " ")
        canvas.set(x + bar_width + 1, y, card.spinner, STYLE_GLOW)
        return

    progress = card.progress
    label = f"{progress.percent:3d}%"
    text_style = STYLE_TITLE
    if width <= len(label) + 1:
        canvas.write_text(x, y, label, text_style, width)
        return

    bar_width = width - len(label) - 1
    filled = max(0, min(bar_width, round(bar_width * progress.percent / 100)))
    fill_style = Style(color=status_color(progress.status))
    canvas.write_text(x, y, "█" * filled, fill_style)
    canvas.write_text(x + filled, y, "░" * (bar_width - filled), STYLE_LABEL)
    canvas.set(x + bar_width, y, " ")
    canvas.write_text(x + bar_width + 1, y, label, text_style)


def _write_label_value(canvas: Canvas, x: int, y: int, label: str, value: str, max_width: int) -> None:
    used = canvas.write_text(x, y, label, STYLE_LABEL, max_width)
    remaining = max_width - used - 1
    if remaining <= 0:
        return
    canvas.set(x + used, y, " ")
    canvas.write_text(x + used + 1, y, value, STYLE_VALUE, remaining)


def draw_card(canvas: Canvas, placement: Placement, layout: Layout, card: NodeCard, selected: bool) -> None:
    x, y = placement.x, placement.y
    width, height = layout.card_width, layout.card_height
    inner = width - 2

    border_style = STYLE_CARD_BORDER
    title_style = STYLE_TITLE
    if selected:
        border_style = STYLE_SELECTED
        title_style = STYLE_TITLE_SELECTED
        canvas.draw_border(x - 1, y - 1, width + 2, height + 2, STYLE_GLOW)

    canvas.draw_border(x, y, width, height, border_style, lock=True)
    canvas.fill(x + 1, y + 1, inner, height - 2)
    canvas.write_text(x + 2, y, f" {card.icon} ", STYLE_TITLE)

    offset = 1 if height >= config.CARD_HEIGHT_WITH_PROGRESS else 0
    if card.has_progress and offset:
        draw_progress_bar(canvas, x + 1, y + 1, inner, card)

    title_x = x + 1
    remaining = inner
    if card.failed and remaining >= len(FAILED_MARKER):
        canvas.write_text(title_x, y + 1 + offset, FAILED_MARKER, STYLE_FAILED)
        title_x += len(FAILED_MARKER)
        remaining -= len(FAILED_MARKER)
    if remaining > 0:
        canvas.write_text(title_x, y + 1 + offset, card.title, title_style, remaining)

    _write_label_value(canvas, x + 1, y + 2 + offset, "Type:", card.type_tag, inner)
    _write_label_value(canvas, x + 1, y + 3 + offset, f"{card.key_label}:", card.key_value, inner)


def draw_connector(canvas: Canvas, source: Placement, target: Placement, layout: Layout, style: Style = STYLE_CONNECTOR) -> None:
    """
    Orthogonal connector from the right edge of `source` to the left edge of
    `target`: across to the gutter midpoint, down or up, then across into an
    arrowhead.
    """
    from_y = source.y + layout.card_height // 2
    to_y = target.y + layout.card_height // 2
    start_x = source.x + layout.card_width
    end_x = max(target.x - 1, start_x)
    mid_x = start_x + (end_x - start_x) // 2

    if from_y == to_y:
        if end_x - 1 >= start_x:
            canvas.hline(from_y, start_x, end_x - 1, style)
        canvas.set(end_x, to_y, ARROW_HEAD, style)
        return

    going_down = from_y < to_y
    if mid_x > start_x:
        canvas.hline(from_y, start_x, mid_x - 1, style)
    canvas.draw_glyph(mid_x, from_y, corner(turning_down=going_down, entering_from_left=True), style)

    top, bottom = min(from_y, to_y), max(from_y, to_y)
    if bottom - top > 1:
        canvas.vline(mid_x, top + 1, bottom - 1, style)

    canvas.draw_glyph(mid_x, to_y, corner(turning_down=not going_down, entering_from_left=False), style)
    if end_x - 1 > mid_x:
        canvas.hline(to_y, mid_x + 1, end_x - 1, style)
    canvas.set(end_x, to_y, ARROW_HEAD, style)


@dataclass
class RenderState:
    """Per-render inputs that are not part of the graph."""
    selected_id: str = ""
    progress: Optional[ProgressIndex] = None
    loading: bool = False
    spinner_tick: int = 0
    width: int = 120
    extra_warnings: List[str] = field(default_factory=list)


@dataclass
class RenderedPlan:
    """
    Output of `render_plan`.

    Attributes:
        lines: Styled lines, header first.
        layout: Canvas geometry, None when nothing was laid out.
        canvas_top: Index in `lines` where the canvas starts.
    """
    lines: List[Text] = field(default_factory=list)
    layout: Optional[Layout] = None
    canvas_top: int = 0

    @property
    def plain(self) -> List[str]:
        return [line.plain for line in self.lines]

    def row_of(self, node_id: str) -> Optional[int]:
        """Line index of a node card's top edge."""
        if self.layout is None or node_id not in self.layout.placements:
            return None
        return self.canvas_top + self.layout.placements[node_id].y


def draw_plan(graph: PlanGraph, order: LevelOrder, state: RenderState) -> Optional[Layout]:
    """Lay out the ordered levels and return the geometry, or None for an empty plan."""
    if not order.levels:
        return None
    cards = _build_cards(graph, order, state)
    inner_width = max(card.content_width for card in cards.values())
    with_progress = any(card.has_progress for card in cards.values())
    return compute_layout(order, inner_width, with_progress)


def _build_cards(graph: PlanGraph, order: LevelOrder, state: RenderState):
    nodes = graph.nodes
    cards = {}
    for node_id in order.flatten():
        node = nodes.get(node_id) or Node(id=node_id, name=node_id)
        progress = state.progress.lookup(node) if state.progress is not None else None
        cards[node_id] = build_card(node, progress, loading=state.loading, spinner_tick=state.spinner_tick)
    return cards


def paint(graph: PlanGraph, layout: Layout, state: RenderState) -> Canvas:
    """Paint every layer of the plan onto a fresh canvas."""
    cards = _build_cards(graph, layout.order, state)
    canvas = Canvas(layout.width, layout.height)
    canvas.fill_dots(STYLE_DOTS)
    canvas.draw_border(0, 0, layout.width, layout.height, STYLE_BORDER, lock=True)

    for col in range(len(layout.order.levels) - 1):
        sep_x = layout.separator_x(col)
        for y in range(1, layout.height - 1):
            canvas.set(sep_x, y, "┊", STYLE_SEPARATOR)

    for edge in graph.edges:
        source = layout.placements.get(edge.source)
        target = layout.placements.get(edge.target)
        if source is None or target is None or source.column >= target.column:
            continue
        draw_connector(canvas, source, target, layout)

    for node_id, placement in layout.placements.items():
        draw_card(canvas, placement, layout, cards[node_id], node_id == state.selected_id)

    selected = layout.placements.get(state.selected_id)
    if selected is not None and selected.x - 1 >= 0:
        canvas.set(selected.x - 1, selected.y + layout.card_height // 2, "▶", STYLE_SELECTED)

    return canvas


def render_plan(graph: Optional[PlanGraph], state: RenderState, order: Optional[LevelOrder] = None) -> RenderedPlan:
    """
    Render the full dashboard body: warnings, cycle notice and canvas.

    Args:
        graph: The plan graph, or None if it could not be built.
        state: Selection, progress overlay and viewport width.
        order: Precomputed level order; computed from the graph if omitted.

    Returns:
        RenderedPlan: Styled lines plus the layout used.
    """
    if graph is None:
        return RenderedPlan(lines=[Text(UNAVAILABLE_TEXT, style=STYLE_WARNING)])

    lines: List[Text] = []
    warnings = list(graph.errors) + list(state.extra_warnings)
    if warnings:
        lines.append(Text("Warnings:", style=STYLE_WARNING))
        for error in warnings:
            for wrapped in wrap_text(error, state.width - 4):
                lines.append(Text("  ") + Text(wrapped, style=STYLE_SUBTLE))
        lines.append(Text(""))

    if graph.has_cycle:
        lines.append(Text(CYCLE_WARNING, style=STYLE_WARNING))
        lines.append(Text(""))

    order = order or order_levels(graph)
    layout = draw_plan(graph, order, state)
    if layout is None:
        lines.append(Text(EMPTY_PLAN_TEXT))
        return RenderedPlan(lines=lines)

    canvas_top = len(lines)
    lines.extend(paint(graph, layout, state).render())
    return RenderedPlan(lines=lines, layout=layout, canvas_top=canvas_top)


def header_line(instance_id: str, workflow_id: str = "") -> Text:
    """Dashboard title line."""
    text = Text("Deployment Plan", style=Style(bold=True))
    if instance_id:
        text.append(f" · {instance_id}")
    if workflow_id:
        text.append(f" · workflow: {workflow_id}", style=STYLE_SUBTLE)
    return text
