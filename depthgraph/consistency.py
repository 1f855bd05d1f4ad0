"""Detect fixed regions that cannot all hold inside one rigid cluster.

Regions joined by edges with three necessary anchors must share one plane.
When two of them are fixed to different planes, no solve can honour both;
:func:`check_fixed_consistency` reports such pairs instead of letting the
optimizer average them away.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .decompose import split_patch
from .graph import MixedGraph
from .patch import Patch
from .solver.anchors import DEFAULT_KINK_TOLERANCE, has_strong_anchors
from .types import NodeHandle

logger = logging.getLogger(__name__)

DEFAULT_FIXED_TOLERANCE = 1e-2


@dataclass
class FixedConsistencyWarning:
    component: Tuple[NodeHandle, ...]
    nodes: Tuple[NodeHandle, NodeHandle]
    distance: float
    message: str

    def __str__(self) -> str:
        return self.message


def strong_components(graph: MixedGraph, patch: Patch, kink_tolerance: float = DEFAULT_KINK_TOLERANCE) -> List[Patch]:
    """Pieces of ``patch`` held together by three-anchor edges only."""

    return split_patch(graph, patch, lambda edge: has_strong_anchors(graph, edge, kink_tolerance))


def check_fixed_consistency(
    graph: MixedGraph,
    patch: Patch,
    vanishing_points: Sequence[np.ndarray],
    tolerance: float = DEFAULT_FIXED_TOLERANCE,
    kink_tolerance: float = DEFAULT_KINK_TOLERANCE,
) -> List[FixedConsistencyWarning]:
    warnings: List[FixedConsistencyWarning] = []
    for component in strong_components(graph, patch, kink_tolerance):
        fixed = [
            node
            for node in sorted(component.node_bindings)
            if component.node_bindings[node].fixed and graph.node(node).is_region
        ]
        if len(fixed) < 2:
            continue
        reference = fixed[0]
        expected = component.node_bindings[reference].plane_equation(graph.node(reference), vanishing_points)
        for node in fixed[1:]:
            actual = component.node_bindings[node].plane_equation(graph.node(node), vanishing_points)
            distance = float(np.linalg.norm(actual - expected))
            if distance <= tolerance:
                continue
            message = (
                f"fixed regions {reference} and {node} are rigidly connected "
                f"but their planes differ by {distance:.3g}"
            )
            logger.warning("%s (%r)", message, patch)
            warnings.append(
                FixedConsistencyWarning(
                    component=tuple(sorted(component.node_bindings)),
                    nodes=(reference, node),
                    distance=distance,
                    message=message,
                )
            )
    return warnings


__all__ = [
    "FixedConsistencyWarning",
    "strong_components",
    "check_fixed_consistency",
]
