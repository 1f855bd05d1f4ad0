"""Arena-backed mixed graph of primitives (unaries) and relations (binaries)."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Sequence, Tuple

from .types import (
    BinaryElement,
    EdgeHandle,
    InvariantViolation,
    NodeHandle,
    UnaryElement,
)

logger = logging.getLogger(__name__)

_RATIO_TOLERANCE = 1e-2


class MixedGraph:
    """Undirected graph whose nodes and edges live in dense lists.

    Handles are positions in those lists and stay valid for the lifetime of
    the graph; nothing is ever removed. Patches refer to the graph only
    through handles, so they can be copied freely.
    """

    def __init__(self) -> None:
        self._nodes: List[UnaryElement] = []
        self._edges: List[BinaryElement] = []
        self._endpoints: List[Tuple[NodeHandle, NodeHandle]] = []
        self._incident: List[List[EdgeHandle]] = []

    def __repr__(self) -> str:
        return f"MixedGraph(nodes={len(self._nodes)}, edges={len(self._edges)})"

    # --- construction ---

    def add_node(self, element: UnaryElement) -> NodeHandle:
        handle = NodeHandle(len(self._nodes))
        self._nodes.append(element)
        self._incident.append([])
        return handle

    def add_edge(self, node1: NodeHandle, node2: NodeHandle, element: BinaryElement) -> EdgeHandle:
        self._require_node(node1)
        self._require_node(node2)
        if node1 == node2:
            raise InvariantViolation(f"edge endpoints must differ (node {node1})")
        handle = EdgeHandle(len(self._edges))
        self._edges.append(element)
        self._endpoints.append((node1, node2))
        self._incident[node1].append(handle)
        self._incident[node2].append(handle)
        return handle

    # --- access ---

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def nodes(self) -> Iterator[NodeHandle]:
        return (NodeHandle(idx) for idx in range(len(self._nodes)))

    def edges(self) -> Iterator[EdgeHandle]:
        return (EdgeHandle(idx) for idx in range(len(self._edges)))

    def has_node(self, handle: int) -> bool:
        return isinstance(handle, int) and 0 <= handle < len(self._nodes)

    def has_edge(self, handle: int) -> bool:
        return isinstance(handle, int) and 0 <= handle < len(self._edges)

    def node(self, handle: NodeHandle) -> UnaryElement:
        self._require_node(handle)
        return self._nodes[handle]

    def edge(self, handle: EdgeHandle) -> BinaryElement:
        self._require_edge(handle)
        return self._edges[handle]

    def endpoints(self, handle: EdgeHandle) -> Tuple[NodeHandle, NodeHandle]:
        self._require_edge(handle)
        return self._endpoints[handle]

    def other_endpoint(self, edge: EdgeHandle, node: NodeHandle) -> NodeHandle:
        first, second = self.endpoints(edge)
        if node == first:
            return second
        if node == second:
            return first
        raise InvariantViolation(f"node {node} is not an endpoint of edge {edge}")

    def neighbors(self, node: NodeHandle) -> Sequence[EdgeHandle]:
        """All edges incident to ``node``."""

        self._require_node(node)
        return tuple(self._incident[node])

    # --- importance ratios ---

    def compute_importance_ratios(self) -> None:
        """Share of ``weight * len(anchors)`` each edge holds at both endpoints."""

        sums: Dict[NodeHandle, float] = {handle: 0.0 for handle in self.nodes()}
        for handle, element in enumerate(self._edges):
            contribution = element.weight * len(element.anchors)
            first, second = self._endpoints[handle]
            sums[first] += contribution
            sums[second] += contribution

        for handle, element in enumerate(self._edges):
            contribution = element.weight * len(element.anchors)
            first, second = self._endpoints[handle]
            element.importance_ratio = (
                contribution / sums[first] if sums[first] > 0.0 else 0.0,
                contribution / sums[second] if sums[second] > 0.0 else 0.0,
            )

        if not self.importance_ratios_are_normalized():
            raise InvariantViolation("importance ratios do not sum to one at every node")
        logger.debug("Computed importance ratios for %d edges", len(self._edges))

    def importance_ratios_are_normalized(self, tol: float = _RATIO_TOLERANCE) -> bool:
        for node in self.nodes():
            total = 0.0
            carried = False
            for edge in self._incident[node]:
                element = self._edges[edge]
                first, _ = self._endpoints[edge]
                ratio = element.importance_ratio[0 if first == node else 1]
                total += ratio
                carried = carried or element.weight * len(element.anchors) > 0.0
            if carried and abs(total - 1.0) > tol:
                logger.debug("Importance ratios at node %d sum to %.6g", node, total)
                return False
        return True

    # --- helpers ---

    def _require_node(self, handle: NodeHandle) -> None:
        if not self.has_node(handle):
            raise InvariantViolation(f"invalid node handle {handle!r}")

    def _require_edge(self, handle: EdgeHandle) -> None:
        if not self.has_edge(handle):
            raise InvariantViolation(f"invalid edge handle {handle!r}")


__all__ = ["MixedGraph"]
