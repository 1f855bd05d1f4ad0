"""Synthetic scenes with known geometry, used by the CLI, the examples and the tests.

All cameras share the origin and the world axes are the vanishing
directions, so every 3D point ``p`` is observed along ``p / |p|`` and its
true depth is ``|p|``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

import numpy as np

from .builder import (
    BuildReport,
    LineIncidence,
    LineObservation,
    LineRelation,
    LineRelationKind,
    RegionAdjacency,
    RegionLineContact,
    RegionObservation,
    RegionOverlap,
    ViewFeatures,
    build_mixed_graph,
)
from .geometry import normalize, ray_depth_to_line
from .graph import MixedGraph
from .types import NodeHandle
from .variables import BinaryVarTable, UnaryVarTable

AXES = [np.array([1.0, 0.0, 0.0]), np.array([0.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0])]


@dataclass
class DemoScene:
    name: str
    graph: MixedGraph
    unary_vars: UnaryVarTable
    binary_vars: BinaryVarTable
    vanishing_points: List[np.ndarray]
    report: BuildReport
    # True depth of every node along its center direction.
    center_depths: Dict[NodeHandle, float] = field(default_factory=dict)


def _points(*coords: Sequence[float]) -> List[np.ndarray]:
    return [np.asarray(c, dtype=float) for c in coords]


def _region(corners: Sequence[np.ndarray]) -> RegionObservation:
    center = np.mean(corners, axis=0)
    return RegionObservation(contour=[normalize(c) for c in corners], center=normalize(center))


def _line(first: np.ndarray, second: np.ndarray, orientation_class: int) -> LineObservation:
    return LineObservation(first=normalize(first), second=normalize(second), orientation_class=orientation_class)


def _scene(name, views, overlaps=(), incidences=(), truth=None, config=None) -> DemoScene:
    result = build_mixed_graph(views, AXES, overlaps, incidences, config)
    depths: Dict[NodeHandle, float] = {}
    for index, handle in result.region_handles.items():
        depths[handle] = float(np.linalg.norm(truth["regions"][index]))
    for index, handle in result.line_handles.items():
        first, second = truth["lines"][index]
        center = result.graph.node(handle).normalized_center
        depths[handle] = ray_depth_to_line(center, first, second - first)
    return DemoScene(
        name=name,
        graph=result.graph,
        unary_vars=result.unary_vars,
        binary_vars=result.binary_vars,
        vanishing_points=list(AXES),
        report=result.report,
        center_depths=depths,
    )


def two_squares_scene(fix_first: bool = True) -> DemoScene:
    """Two unit squares on the plane ``z = 1`` sharing the edge ``x = 0``.

    With ``fix_first`` the left square is pinned to the plane ``[0, 0, 1]``.
    """

    left = _points((-1, -0.5, 1), (0, -0.5, 1), (0, 0.5, 1), (-1, 0.5, 1))
    right = _points((0, -0.5, 1), (1, -0.5, 1), (1, 0.5, 1), (0, 0.5, 1))
    view = ViewFeatures(
        regions=[_region(left), _region(right)],
        region_adjacencies=[RegionAdjacency(0, 1, [normalize(p) for p in (left[1], left[2])])],
    )
    truth = {"regions": {(0, 0): np.mean(left, axis=0), (0, 1): np.mean(right, axis=0)}, "lines": {}}
    scene = _scene("two_squares", [view], truth=truth)
    if fix_first:
        first = min(scene.unary_vars)
        scene.unary_vars[first].parameters = [0.0, 0.0, 1.0]
        scene.unary_vars[first].fixed = True
    return scene


def box_lines_scene() -> DemoScene:
    """Two faces of a box meeting at a vertical edge, with the three corner lines."""

    p = np.array([0.5, 0.3, 3.0])
    x, y, z = AXES
    lines = {
        (0, 0): (p, p + x),
        (0, 1): (p, p + y),
        (0, 2): (p, p + z),
    }
    face_xz = [p, p + x, p + x + z, p + z]
    face_yz = [p, p + y, p + y + z, p + z]
    view = ViewFeatures(
        regions=[_region(face_xz), _region(face_yz)],
        lines=[_line(first, second, cls) for cls, (first, second) in enumerate(lines.values())],
        region_adjacencies=[RegionAdjacency(0, 1, [normalize(p), normalize(p + 0.5 * z), normalize(p + z)])],
        region_line_contacts=[
            RegionLineContact(0, 0, [normalize(p), normalize(p + x)]),
            RegionLineContact(0, 2, [normalize(p), normalize(p + z)]),
            RegionLineContact(1, 1, [normalize(p), normalize(p + y)]),
            RegionLineContact(1, 2, [normalize(p), normalize(p + z)]),
        ],
        line_relations=[
            LineRelation(0, 1, LineRelationKind.INTERSECTION, normalize(p)),
            LineRelation(1, 2, LineRelationKind.INTERSECTION, normalize(p)),
            LineRelation(0, 2, LineRelationKind.INTERSECTION, normalize(p)),
        ],
    )
    truth = {
        "regions": {(0, 0): np.mean(face_xz, axis=0), (0, 1): np.mean(face_yz, axis=0)},
        "lines": lines,
    }
    return _scene("box_lines", [view], truth=truth)


def two_view_scene() -> DemoScene:
    """The two squares of :func:`two_squares_scene` seen again by a second view.

    The second view sees a square overlapping the right one and a segment of
    the same 3D line along its lower border.
    """

    left = _points((-1, -0.5, 1), (0, -0.5, 1), (0, 0.5, 1), (-1, 0.5, 1))
    right = _points((0, -0.5, 1), (1, -0.5, 1), (1, 0.5, 1), (0, 0.5, 1))
    shifted = _points((0.5, -0.5, 1), (1.5, -0.5, 1), (1.5, 0.5, 1), (0.5, 0.5, 1))
    lines0 = {
        (0, 0): (np.array([0.0, -0.5, 1.0]), np.array([1.0, -0.5, 1.0])),
        (0, 1): (np.array([-1.0, 0.2, 1.0]), np.array([0.0, 0.2, 1.0])),
        (0, 2): (np.array([-0.5, -0.5, 1.0]), np.array([-0.5, 0.5, 1.0])),
    }
    lines1 = {(1, 0): (np.array([0.5, -0.5, 1.0]), np.array([1.5, -0.5, 1.0]))}

    view0 = ViewFeatures(
        regions=[_region(left), _region(right)],
        lines=[
            _line(*lines0[(0, 0)], 0),
            _line(*lines0[(0, 1)], 0),
            _line(*lines0[(0, 2)], 1),
        ],
        region_adjacencies=[RegionAdjacency(0, 1, [normalize(left[1]), normalize(left[2])])],
        region_line_contacts=[
            RegionLineContact(1, 0, [normalize(p) for p in lines0[(0, 0)]]),
            RegionLineContact(0, 1, [normalize(p) for p in lines0[(0, 1)]]),
            RegionLineContact(0, 2, [normalize(p) for p in lines0[(0, 2)]]),
        ],
    )
    view1 = ViewFeatures(
        regions=[_region(shifted)],
        lines=[_line(*lines1[(1, 0)], 0)],
        region_line_contacts=[RegionLineContact(0, 0, [normalize(p) for p in lines1[(1, 0)]])],
    )
    truth = {
        "regions": {
            (0, 0): np.mean(left, axis=0),
            (0, 1): np.mean(right, axis=0),
            (1, 0): np.mean(shifted, axis=0),
        },
        "lines": {**lines0, **lines1},
    }
    overlaps = [RegionOverlap((0, 1), (1, 0), ratio=0.5)]
    incidences = [LineIncidence((0, 0), (1, 0), normalize([0.75, -0.5, 1.0]))]
    return _scene("two_view", [view0, view1], overlaps, incidences, truth=truth)


SCENES: Dict[str, Callable[[], DemoScene]] = {
    "two_squares": two_squares_scene,
    "box_lines": box_lines_scene,
    "two_view": two_view_scene,
}


__all__ = ["DemoScene", "AXES", "SCENES", "two_squares_scene", "box_lines_scene", "two_view_scene"]
