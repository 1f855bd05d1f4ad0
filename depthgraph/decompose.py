"""Splitting graphs and patches into connected patches, and pruning them to trees."""

from __future__ import annotations

import functools
import logging
from collections import deque
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .graph import MixedGraph
from .patch import Patch, ensure_patch_invariants
from .types import EdgeHandle, NodeHandle
from .variables import BinaryVarTable, UnaryVarTable

logger = logging.getLogger(__name__)

EdgePredicate = Callable[[EdgeHandle], bool]
EdgeKey = Callable[[EdgeHandle], Any]


def connected_components(
    nodes: Sequence[NodeHandle],
    neighbors: Callable[[NodeHandle], Iterable[NodeHandle]],
) -> Dict[NodeHandle, int]:
    """Label every node with a component id, numbered in order of first visit."""

    labels: Dict[NodeHandle, int] = {}
    count = 0
    for root in nodes:
        if root in labels:
            continue
        labels[root] = count
        queue = deque([root])
        while queue:
            node = queue.popleft()
            for other in neighbors(node):
                if other not in labels:
                    labels[other] = count
                    queue.append(other)
        count += 1
    return labels


def _group_patches(
    graph: MixedGraph,
    labels: Dict[NodeHandle, int],
    node_source: UnaryVarTable,
    edge_source: BinaryVarTable,
    edges: Iterable[EdgeHandle],
    name_prefix: str,
) -> List[Patch]:
    count = max(labels.values()) + 1 if labels else 0
    patches = [Patch(name=f"{name_prefix}{idx}") for idx in range(count)]
    for node, label in labels.items():
        patches[label].node_bindings[node] = node_source[node].copy()
    for edge in edges:
        first, second = graph.endpoints(edge)
        if labels[first] == labels[second]:
            patches[labels[first]].edge_bindings[edge] = edge_source[edge].copy()
    for patch in patches:
        ensure_patch_invariants(graph, patch, context=name_prefix.rstrip(":"))
    return patches


def decompose_graph(
    graph: MixedGraph, unary_vars: UnaryVarTable, binary_vars: BinaryVarTable
) -> List[Patch]:
    """Partition all nodes and enabled edges into maximal connected patches.

    Nodes without enabled edges end up as singleton patches. Disabled edges
    are not carried into any patch.
    """

    nodes = list(graph.nodes())

    def neighbors(node: NodeHandle) -> Iterable[NodeHandle]:
        for edge in graph.neighbors(node):
            if binary_vars[edge].enabled:
                yield graph.other_endpoint(edge, node)

    labels = connected_components(nodes, neighbors)
    enabled = [edge for edge in graph.edges() if binary_vars[edge].enabled]
    patches = _group_patches(graph, labels, unary_vars, binary_vars, enabled, "component:")
    logger.info(
        "Decomposed graph with %d nodes / %d enabled edges into %d patches",
        graph.node_count,
        len(enabled),
        len(patches),
    )
    return patches


def split_patch(
    graph: MixedGraph, patch: Patch, use_edge: Optional[EdgePredicate] = None
) -> List[Patch]:
    """Split ``patch`` along its enabled edges accepted by ``use_edge``.

    Every enabled patch edge whose endpoints land in the same piece is kept
    in that piece, whether or not ``use_edge`` accepted it.
    """

    ensure_patch_invariants(graph, patch, context="split_patch")
    accept = use_edge or (lambda edge: True)

    def neighbors(node: NodeHandle) -> Iterable[NodeHandle]:
        for edge in graph.neighbors(node):
            state = patch.edge_bindings.get(edge)
            if state is None or not state.enabled or not accept(edge):
                continue
            yield graph.other_endpoint(edge, node)

    labels = connected_components(list(patch.node_bindings), neighbors)
    prefix = f"{patch.name}/" if patch.name else "split:"
    pieces = _group_patches(
        graph, labels, patch.node_bindings, patch.edge_bindings, list(patch.enabled_edges()), prefix
    )
    logger.debug("Split %r into %d pieces", patch, len(pieces))
    return pieces


class _DisjointSet:
    def __init__(self, items: Iterable[NodeHandle]) -> None:
        self._parent: Dict[NodeHandle, NodeHandle] = {item: item for item in items}
        self._rank: Dict[NodeHandle, int] = {item: 0 for item in self._parent}

    def find(self, item: NodeHandle) -> NodeHandle:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: NodeHandle, b: NodeHandle) -> bool:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return False
        if self._rank[root_a] < self._rank[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        if self._rank[root_a] == self._rank[root_b]:
            self._rank[root_a] += 1
        return True


def minimum_spanning_tree_patch(graph: MixedGraph, patch: Patch, key: EdgeKey) -> Patch:
    """Keep every node of a connected ``patch`` and only its tree edges.

    Edges are considered in ascending ``key`` order (Kruskal), so lower keys
    are preferred. Only enabled edges take part.
    """

    ensure_patch_invariants(graph, patch, context="minimum_spanning_tree_patch")
    forest = _DisjointSet(patch.node_bindings)
    tree = Patch(
        node_bindings={node: var.copy() for node, var in patch.node_bindings.items()},
        name=f"{patch.name}/mst" if patch.name else "mst",
    )
    for edge in sorted(patch.enabled_edges(), key=key):
        first, second = graph.endpoints(edge)
        if forest.union(first, second):
            tree.edge_bindings[edge] = patch.edge_bindings[edge].copy()
            if len(tree.edge_bindings) == len(tree.node_bindings) - 1:
                break
    logger.debug(
        "Spanning tree kept %d of %d edges", len(tree.edge_bindings), len(patch.edge_bindings)
    )
    return ensure_patch_invariants(graph, tree, context="minimum_spanning_tree_patch")


def edge_order_from_less(less: Callable[[EdgeHandle, EdgeHandle], bool]) -> EdgeKey:
    """Turn a strict "edge a is preferred over edge b" predicate into a sort key."""

    def compare(a: EdgeHandle, b: EdgeHandle) -> int:
        if less(a, b):
            return -1
        if less(b, a):
            return 1
        return 0

    return functools.cmp_to_key(compare)


def slack_key(source: Union[Patch, Mapping[EdgeHandle, Optional[float]]]) -> EdgeKey:
    """Order edges by slack, smallest first, edges without a slack last.

    ``source`` is either a patch, whose recorded edge slacks are used, or a
    mapping from edge to slack such as :attr:`DepthSolution.edge_slack`.
    """

    def key(edge: EdgeHandle):
        if isinstance(source, Patch):
            slack = source.edge_bindings[edge].slack
        else:
            slack = source.get(edge)
        return (slack is None, slack if slack is not None else 0.0, edge)

    return key


__all__ = [
    "connected_components",
    "decompose_graph",
    "split_patch",
    "minimum_spanning_tree_patch",
    "edge_order_from_less",
    "slack_key",
]
