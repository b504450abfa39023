"""
Deployment plan graph backed by rustworkx.

This module manages:
- The bimap between resource ids and rustworkx integer indices.
- Filtering of platform-internal helper resources.
- Stub nodes for dependencies that were never declared as resources.
- Soft per-resource errors that do not abort the build.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Sequence

import rustworkx as rx

from ..config import HIDDEN_SUBSTRINGS
from .errors import GraphBuildError, SourceError
from .levels import assign_levels
from .result import Result
from .types import Edge, Node, ResourceDescription, ResourceEntity

if TYPE_CHECKING:
    from ..sources.base import PlanSource

logger = logging.getLogger(__name__)


class PlanGraph:
    """
    The dependency graph of one deployment plan.

    Edges point from a dependency to its dependent. After `compute_levels`
    the `levels` partition covers every node exactly once.
    """

    def __init__(self, instance_id: str = ""):
        self._graph = rx.PyDiGraph(multigraph=False)
        self._id_to_idx: Dict[str, int] = {}
        self._idx_to_id: Dict[int, str] = {}
        self._edges: List[Edge] = []

        self.instance_id = instance_id
        self.workflow_id = ""
        self.levels: List[List[str]] = []
        self.has_cycle = False
        self.errors: List[str] = []

    def add_node(self, node: Node) -> None:
        """Add or replace a node."""
        if node.id in self._id_to_idx:
            self._graph[self._id_to_idx[node.id]] = node
            return
        idx = self._graph.add_node(node)
        self._id_to_idx[node.id] = idx
        self._idx_to_id[idx] = node.id

    def add_edge(self, source: str, target: str) -> bool:
        """
        Add a dependency edge between two existing nodes.

        Returns:
            bool: False if an endpoint is missing or the edge already exists.
        """
        if source not in self._id_to_idx or target not in self._id_to_idx:
            return False
        src_idx = self._id_to_idx[source]
        tgt_idx = self._id_to_idx[target]
        if self._graph.has_edge(src_idx, tgt_idx):
            return False
        edge = Edge(source=source, target=target)
        self._graph.add_edge(src_idx, tgt_idx, edge)
        self._edges.append(edge)
        return True

    def get_node(self, node_id: str) -> Optional[Node]:
        idx = self._id_to_idx.get(node_id)
        return self._graph[idx] if idx is not None else None

    def has_node(self, node_id: str) -> bool:
        return node_id in self._id_to_idx

    @property
    def nodes(self) -> Dict[str, Node]:
        return {node_id: self._graph[idx] for node_id, idx in self._id_to_idx.items()}

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges)

    @property
    def node_count(self) -> int:
        return self._graph.num_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.num_edges()

    def predecessors(self, node_id: str) -> List[str]:
        """Ids of the node's dependencies, sorted."""
        idx = self._id_to_idx.get(node_id)
        if idx is None:
            return []
        return sorted(self._idx_to_id[i] for i in self._graph.predecessor_indices(idx))

    def successors(self, node_id: str) -> List[str]:
        """Ids of the node's dependents, sorted."""
        idx = self._id_to_idx.get(node_id)
        if idx is None:
            return []
        return sorted(self._idx_to_id[i] for i in self._graph.successor_indices(idx))

    def is_acyclic(self) -> bool:
        return rx.is_directed_acyclic_graph(self._graph)

    def compute_levels(self) -> None:
        self.levels, self.has_cycle = assign_levels(self._id_to_idx.keys(), self._edges)

    def __repr__(self) -> str:
        return f"PlanGraph(nodes={self.node_count}, edges={self.edge_count}, levels={len(self.levels)})"


class GraphBuilder:
    """
    Turns catalog entities and their describe results into a `PlanGraph`.

    Resources whose id, key or name contains one of the hidden substrings
    are dropped together with every edge touching them.
    """

    def __init__(self, hidden_substrings: Sequence[str] = HIDDEN_SUBSTRINGS):
        self.hidden_substrings = [s.lower() for s in hidden_substrings if s]

    def is_hidden(self, *identifiers: str) -> bool:
        for identifier in identifiers:
            lowered = identifier.lower()
            if lowered and any(s in lowered for s in self.hidden_substrings):
                return True
        return False

    def build(
        self,
        entities: Iterable[ResourceEntity],
        descriptions: Mapping[str, Result[ResourceDescription, SourceError]],
        instance_id: str = "",
    ) -> PlanGraph:
        """
        Build the graph and its level partition.

        Args:
            entities: Every resource listed for the plan, hidden ones included.
            descriptions: Describe result per resource id. A missing entry or
                an `Err` is recorded in `graph.errors`; the node is kept.
            instance_id: Deployment instance the plan belongs to.

        Returns:
            PlanGraph: The graph with `levels` and `has_cycle` populated.
        """
        graph = PlanGraph(instance_id)
        hidden_ids = set()
        visible: List[Node] = []

        for entity in entities:
            if self.is_hidden(entity.id, entity.key, entity.name):
                hidden_ids.add(entity.id)
                continue
            node = Node(id=entity.id, key=entity.key, name=entity.name, type=entity.type)
            graph.add_node(node)
            visible.append(node)

        for node in visible:
            result = descriptions.get(node.id)
            if result is None:
                graph.errors.append(f"resource {node.label}: no description returned")
                continue
            if result.is_err():
                logger.warning(f"Describe failed for {node.id}: {result.error}")
                graph.errors.append(f"resource {node.label}: {result.error.message}")
                continue

            for dep_id in result.value.dependencies:
                if not dep_id or dep_id in hidden_ids or self.is_hidden(dep_id):
                    continue
                if not graph.has_node(dep_id):
                    logger.debug(f"Synthesizing stub node for undeclared dependency {dep_id}")
                    graph.add_node(Node(id=dep_id, name=dep_id))
                graph.add_edge(dep_id, node.id)

        graph.compute_levels()
        if graph.has_cycle:
            logger.warning("Cycle detected in plan dependencies")
        return graph


async def load_plan_graph(source: "PlanSource", instance_id: str, builder: GraphBuilder) -> PlanGraph:
    """
    Fetch the plan from a source and build its graph.

    Resources are described concurrently.

    Raises:
        GraphBuildError: If the resource listing itself cannot be fetched.
    """
    listing = await source.list_resources(instance_id)
    if listing.is_err():
        raise GraphBuildError(instance_id, listing.error.message)

    entities = listing.value
    targets = [e for e in entities if not builder.is_hidden(e.id, e.key, e.name)]
    results = await asyncio.gather(*(source.describe_resource(instance_id, e.id) for e in targets))
    descriptions = {entity.id: result for entity, result in zip(targets, results)}

    graph = builder.build(entities, descriptions, instance_id)
    logger.info(f"Built plan graph for {instance_id}: {graph}")
    return graph
