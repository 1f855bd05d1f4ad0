"""Patches: independently optimizable connected views over a :class:`MixedGraph`.

A patch owns copies of the variable bindings of the nodes and edges it
covers, so solving one patch never touches the graph or any other patch.
Two invariants hold for every patch produced in this package:

* edges valid: both endpoints of every bound edge are bound nodes;
* nodes connected: the bound nodes form one component under the bound,
  enabled edges.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, Set

from .graph import MixedGraph
from .types import EdgeHandle, InvariantViolation, NodeHandle
from .variables import BinaryVarTable, BinaryVariable, UnaryVarTable, UnaryVariable

logger = logging.getLogger(__name__)


@dataclass
class Patch:
    node_bindings: Dict[NodeHandle, UnaryVariable] = field(default_factory=dict)
    edge_bindings: Dict[EdgeHandle, BinaryVariable] = field(default_factory=dict)
    name: str = ""

    def __contains__(self, handle: object) -> bool:
        return handle in self.node_bindings

    def __repr__(self) -> str:
        return (
            f"Patch(name={self.name!r}, nodes={len(self.node_bindings)}, "
            f"edges={len(self.edge_bindings)})"
        )

    @property
    def nodes(self) -> Set[NodeHandle]:
        return set(self.node_bindings)

    @property
    def edges(self) -> Set[EdgeHandle]:
        return set(self.edge_bindings)

    def enabled_edges(self) -> Iterable[EdgeHandle]:
        return (edge for edge, state in self.edge_bindings.items() if state.enabled)

    def has_fixed_node(self) -> bool:
        return any(var.fixed for var in self.node_bindings.values())

    def copy(self) -> "Patch":
        return Patch(
            node_bindings={node: var.copy() for node, var in self.node_bindings.items()},
            edge_bindings={edge: state.copy() for edge, state in self.edge_bindings.items()},
            name=self.name,
        )


def edges_valid_in_patch(graph: MixedGraph, patch: Patch) -> bool:
    for edge in patch.edge_bindings:
        if not graph.has_edge(edge):
            return False
        first, second = graph.endpoints(edge)
        if first not in patch.node_bindings or second not in patch.node_bindings:
            return False
    return True


def nodes_connected_in_patch(graph: MixedGraph, patch: Patch) -> bool:
    """Breadth-first search over the patch's enabled edges."""

    if not patch.node_bindings:
        return True
    start = next(iter(patch.node_bindings))
    visited = {start}
    queue = deque([start])
    while queue:
        node = queue.popleft()
        for edge in graph.neighbors(node):
            state = patch.edge_bindings.get(edge)
            if state is None or not state.enabled:
                continue
            other = graph.other_endpoint(edge, node)
            if other in patch.node_bindings and other not in visited:
                visited.add(other)
                queue.append(other)
    return len(visited) == len(patch.node_bindings)


def ensure_patch_invariants(graph: MixedGraph, patch: Patch, *, context: str = "patch") -> Patch:
    """Raise :class:`InvariantViolation` unless both patch invariants hold."""

    for node in patch.node_bindings:
        if not graph.has_node(node):
            raise InvariantViolation(f"{context}: invalid node handle {node!r}")
    if not edges_valid_in_patch(graph, patch):
        raise InvariantViolation(f"{context}: edge endpoints missing from patch")
    if not nodes_connected_in_patch(graph, patch):
        raise InvariantViolation(f"{context}: nodes are not connected by enabled edges")
    return patch


def make_patch_on_edge(
    graph: MixedGraph,
    edge: EdgeHandle,
    unary_vars: UnaryVarTable,
    binary_vars: BinaryVarTable,
) -> Patch:
    """The two endpoints of ``edge`` and the edge itself."""

    first, second = graph.endpoints(edge)
    patch = Patch(
        node_bindings={first: unary_vars[first].copy(), second: unary_vars[second].copy()},
        edge_bindings={edge: binary_vars[edge].copy()},
        name=f"edge:{edge}",
    )
    return ensure_patch_invariants(graph, patch, context="make_patch_on_edge")


def make_star_patch(
    graph: MixedGraph,
    node: NodeHandle,
    unary_vars: UnaryVarTable,
    binary_vars: BinaryVarTable,
) -> Patch:
    """``node`` with every enabled incident edge and the nodes across them."""

    patch = Patch(node_bindings={node: unary_vars[node].copy()}, name=f"star:{node}")
    for edge in graph.neighbors(node):
        state = binary_vars[edge]
        if not state.enabled:
            continue
        other = graph.other_endpoint(edge, node)
        patch.edge_bindings[edge] = state.copy()
        if other not in patch.node_bindings:
            patch.node_bindings[other] = unary_vars[other].copy()
    return ensure_patch_invariants(graph, patch, context="make_star_patch")


def write_back(patch: Patch, unary_vars: UnaryVarTable, binary_vars: BinaryVarTable) -> None:
    """Copy a patch's bindings into session-wide binding tables."""

    for node, var in patch.node_bindings.items():
        unary_vars[node] = var.copy()
    for edge, state in patch.edge_bindings.items():
        binary_vars[edge] = state.copy()


__all__ = [
    "Patch",
    "edges_valid_in_patch",
    "nodes_connected_in_patch",
    "ensure_patch_invariants",
    "make_patch_on_edge",
    "make_star_patch",
    "write_back",
]
