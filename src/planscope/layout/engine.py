"""
Layered layout for the plan graph.

Orders the nodes of each level to reduce edge crossings with the barycenter
heuristic, then assigns every node a card position on the canvas. Level
membership is never changed here; only the order within a level.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .. import config
from ..core.graph import PlanGraph

SWEEP_PASSES = 2


@dataclass(frozen=True)
class Placement:
    """Where a node's card sits. Recomputed on every render."""
    node_id: str
    column: int
    row: int
    x: int
    y: int


@dataclass
class LevelOrder:
    """Levels with their final within-level order."""
    levels: List[List[str]]
    positions: Dict[str, int] = field(default_factory=dict)

    def flatten(self) -> List[str]:
        return [node_id for level in self.levels for node_id in level]


@dataclass
class Layout:
    """Canvas geometry for one render."""
    order: LevelOrder
    placements: Dict[str, Placement]
    card_width: int
    card_height: int
    level_gap: int
    level_x: List[int]
    width: int
    height: int

    def separator_x(self, column: int) -> int:
        """X of the dotted separator to the right of `column`."""
        return self.level_x[column] + self.card_width + self.level_gap // 2


def _update_positions(levels: Sequence[Sequence[str]], positions: Dict[str, int]) -> None:
    for level in levels:
        for idx, node_id in enumerate(level):
            positions[node_id] = idx


def _sort_by_barycenter(
    level: List[str],
    neighbors: Dict[str, List[str]],
    positions: Dict[str, int],
    labels: Dict[str, str],
) -> List[str]:
    keyed = []
    for idx, node_id in enumerate(level):
        known = [positions[n] for n in neighbors.get(node_id, []) if n in positions]
        barycenter = sum(known) / len(known) if known else float(idx)
        keyed.append((barycenter, labels[node_id], node_id))
    keyed.sort()
    return [node_id for _, _, node_id in keyed]


def order_levels(graph: PlanGraph, passes: int = SWEEP_PASSES) -> LevelOrder:
    """
    Order nodes within each level to minimize crossings.

    Each level starts sorted by label. Every pass sweeps down (levels
    1..last, by mean predecessor position) then up (levels last-1..0, by
    mean successor position). Positions update after each level so later
    levels in the same sweep see the new order. Nodes without neighbors in
    the sweep direction keep their current index.

    Args:
        graph: A graph with `levels` computed.
        passes: Number of down+up sweep pairs.

    Returns:
        LevelOrder: Reordered levels and the node -> index lookup.
    """
    nodes = graph.nodes
    labels: Dict[str, str] = {}
    for level in graph.levels:
        for node_id in level:
            node = nodes.get(node_id)
            labels[node_id] = node.label if node else node_id

    levels = [sorted(level, key=lambda n: (labels[n], n)) for level in graph.levels]

    incoming: Dict[str, List[str]] = {}
    outgoing: Dict[str, List[str]] = {}
    for edge in graph.edges:
        incoming.setdefault(edge.target, []).append(edge.source)
        outgoing.setdefault(edge.source, []).append(edge.target)

    positions: Dict[str, int] = {}
    _update_positions(levels, positions)

    for _ in range(passes):
        for idx in range(1, len(levels)):
            levels[idx] = _sort_by_barycenter(levels[idx], incoming, positions, labels)
            _update_positions(levels, positions)
        for idx in range(len(levels) - 2, -1, -1):
            levels[idx] = _sort_by_barycenter(levels[idx], outgoing, positions, labels)
            _update_positions(levels, positions)

    return LevelOrder(levels=levels, positions=positions)


def compute_layout(order: LevelOrder, inner_width: int, with_progress: bool) -> Layout:
    """
    Assign canvas coordinates to every card.

    Args:
        order: Output of `order_levels`.
        inner_width: Widest card content; clamped to the configured range.
        with_progress: Whether cards need the extra progress bar row.

    Returns:
        Layout: Placements plus the canvas size, including the outer border
        and padding.
    """
    levels = order.levels
    card_inner = max(config.CARD_MIN_INNER_WIDTH, min(config.CARD_MAX_INNER_WIDTH, inner_width))
    card_width = card_inner + 2
    card_height = config.CARD_HEIGHT_WITH_PROGRESS if with_progress else config.CARD_HEIGHT
    level_gap = config.LEVEL_GAP_COMPACT if len(levels) > config.COMPACT_LEVEL_THRESHOLD else config.LEVEL_GAP
    row_gap = config.ROW_GAP

    offset_x = config.CANVAS_PAD_X + 1
    offset_y = config.CANVAS_PAD_Y + 1

    # One extra column per separator to the left of the level
    level_x = [offset_x + col * (card_width + level_gap) + col for col in range(len(levels))]

    placements: Dict[str, Placement] = {}
    for col, level in enumerate(levels):
        for row, node_id in enumerate(level):
            y = offset_y + row * (card_height + row_gap)
            placements[node_id] = Placement(node_id=node_id, column=col, row=row, x=level_x[col], y=y)

    max_rows = max((len(level) for level in levels), default=0)
    columns = len(levels)
    inner_w = columns * card_width + max(columns - 1, 0) * (level_gap + 1)
    inner_h = max_rows * card_height + max(max_rows - 1, 0) * row_gap

    width = max(inner_w, card_width) + 2 * config.CANVAS_PAD_X + 2
    height = max(inner_h, card_height) + 2 * config.CANVAS_PAD_Y + 2

    return Layout(
        order=order,
        placements=placements,
        card_width=card_width,
        card_height=card_height,
        level_gap=level_gap,
        level_x=level_x,
        width=width,
        height=height,
    )
