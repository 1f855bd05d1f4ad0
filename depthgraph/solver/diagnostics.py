"""Read-only depth statistics over a patch's current bindings."""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from ..graph import MixedGraph
from ..logging_utils import apply_debug_logging
from ..patch import Patch
from ..types import EdgeHandle, InvariantViolation

logger = logging.getLogger(__name__)


def edge_anchor_distance_sum(
    graph: MixedGraph, edge: EdgeHandle, patch: Patch, vanishing_points: Sequence[np.ndarray]
) -> float:
    """Sum over all anchors of ``|depth1 - depth2|``."""

    if edge not in patch.edge_bindings:
        raise InvariantViolation(f"edge {edge} is not part of {patch!r}")
    first, second = graph.endpoints(edge)
    var1, var2 = patch.node_bindings[first], patch.node_bindings[second]
    elem1, elem2 = graph.node(first), graph.node(second)
    total = 0.0
    for anchor in graph.edge(edge).anchors:
        total += abs(
            var1.depth_at(anchor, elem1, vanishing_points) - var2.depth_at(anchor, elem2, vanishing_points)
        )
    return total


def edge_distance(
    graph: MixedGraph, edge: EdgeHandle, patch: Patch, vanishing_points: Sequence[np.ndarray]
) -> float:
    """Mean depth disagreement of ``edge`` over its anchors."""

    anchors = graph.edge(edge).anchors
    if not anchors:
        return 0.0
    return edge_anchor_distance_sum(graph, edge, patch, vanishing_points) / len(anchors)


def average_edge_distance(graph: MixedGraph, patch: Patch, vanishing_points: Sequence[np.ndarray]) -> float:
    if not patch.edge_bindings:
        return 0.0
    total = sum(edge_distance(graph, edge, patch, vanishing_points) for edge in patch.edge_bindings)
    return total / len(patch.edge_bindings)


def average_center_depth(graph: MixedGraph, patch: Patch, vanishing_points: Sequence[np.ndarray]) -> float:
    if not patch.node_bindings:
        return 0.0
    total = sum(
        var.depth_at_center(graph.node(node), vanishing_points) for node, var in patch.node_bindings.items()
    )
    return total / len(patch.node_bindings)


apply_debug_logging(globals(), logger=logger)
