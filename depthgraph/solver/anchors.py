"""Necessary anchors: the subset of an edge's anchors that enters the equations."""

from __future__ import annotations

import logging
from typing import List

import numpy as np

from ..geometry import _DENOM_EPS, max_offset_from_plane, norm
from ..graph import MixedGraph
from ..logging_utils import apply_debug_logging
from ..types import EdgeHandle, RelationType

logger = logging.getLogger(__name__)

DEFAULT_KINK_TOLERANCE = 1e-3


def _plane_normal(a: np.ndarray, b: np.ndarray):
    normal = np.cross(a, b)
    length = norm(normal)
    if length <= _DENOM_EPS:
        return None
    return normal / length


def _overlap_anchors(anchors: List[np.ndarray], tolerance: float) -> List[np.ndarray]:
    first, second = anchors[0], anchors[1]
    normal = _plane_normal(first, second)
    if normal is None or abs(float(np.dot(normal, anchors[2]))) > tolerance:
        return [first, second, anchors[2]]
    # The first three are (nearly) coplanar with the origin: take the anchor
    # farthest from the plane spanned by the first two.
    idx, offset = max_offset_from_plane(normal, anchors[2:])
    if idx < 0 or offset <= tolerance:
        return [first, second, anchors[2]]
    return [first, second, anchors[2 + idx]]


def _adjacency_anchors(anchors: List[np.ndarray], tolerance: float) -> List[np.ndarray]:
    first, last = anchors[0], anchors[-1]
    normal = _plane_normal(first, last)
    if normal is None or len(anchors) < 3:
        return [first, last]
    idx, offset = max_offset_from_plane(normal, anchors[1:-1])
    if idx >= 0 and offset > tolerance:
        return [first, anchors[1 + idx], last]
    return [first, last]


def necessary_anchors(
    graph: MixedGraph, edge: EdgeHandle, kink_tolerance: float = DEFAULT_KINK_TOLERANCE
) -> List[np.ndarray]:
    """Anchors of ``edge`` that produce equations, chosen by relation type.

    * intersections and incidences: every anchor;
    * overlaps: three anchors not coplanar with the camera center when
      possible;
    * region/line contacts: the first and the last anchor;
    * adjacencies: the first and the last anchor, plus the boundary anchor
      that bends farthest out of their plane when it exceeds
      ``kink_tolerance``.
    """

    element = graph.edge(edge)
    anchors = [np.asarray(anchor, dtype=float) for anchor in element.anchors]
    if not anchors:
        return []
    relation = element.relation
    if relation in (RelationType.LINE_LINE_INTERSECTION, RelationType.LINE_LINE_INCIDENCE):
        return anchors
    if relation is RelationType.REGION_REGION_OVERLAP:
        if len(anchors) < 3:
            return anchors
        return _overlap_anchors(anchors, kink_tolerance)
    if relation is RelationType.REGION_LINE_CONTACT:
        if len(anchors) == 1:
            return anchors
        return [anchors[0], anchors[-1]]
    if relation is RelationType.REGION_REGION_ADJACENCY:
        if len(anchors) == 1:
            return anchors
        return _adjacency_anchors(anchors, kink_tolerance)
    raise ValueError(f"unknown relation type {relation!r}")


def has_strong_anchors(
    graph: MixedGraph, edge: EdgeHandle, kink_tolerance: float = DEFAULT_KINK_TOLERANCE
) -> bool:
    """True when the edge pins both endpoints to one plane (three necessary anchors)."""

    return len(necessary_anchors(graph, edge, kink_tolerance)) == 3


apply_debug_logging(globals(), logger=logger)
