"""Build a :class:`MixedGraph` from per-view and cross-view observations.

Feature extraction, calibration and vanishing point estimation happen
elsewhere; the records below carry their results as camera-ray directions
(any length, normalized here). The builder decides relation types, weights
and anchors and returns the graph together with initial bindings and a
:class:`BuildReport` describing what was admitted or skipped.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .geometry import angle_between_undirected, normalize, propose_xy_from_z
from .graph import MixedGraph
from .types import (
    FREE_ORIENTATION,
    BinaryElement,
    NodeHandle,
    RelationType,
    UnaryElement,
    UnaryKind,
)
from .validate import validate_graph
from .variables import (
    BinaryVarTable,
    BinaryVariable,
    UnaryVarTable,
    initial_unary_variable,
)

logger = logging.getLogger(__name__)

Direction = Sequence[float]
RegionIndex = Tuple[int, int]
LineIndex = Tuple[int, int]


class LineRelationKind(str, Enum):
    INTERSECTION = "intersection"
    INCIDENCE = "incidence"


@dataclass
class RegionObservation:
    contour: Sequence[Direction]
    center: Direction


@dataclass
class LineObservation:
    first: Direction
    second: Direction
    orientation_class: int
    center: Optional[Direction] = None


@dataclass
class RegionAdjacency:
    region1: int
    region2: int
    anchors: Sequence[Direction]


@dataclass
class RegionLineContact:
    region: int
    line: int
    anchors: Sequence[Direction]


@dataclass
class LineRelation:
    line1: int
    line2: int
    kind: LineRelationKind
    center: Direction
    junction_weight: float = 1.0


@dataclass
class ViewFeatures:
    regions: List[RegionObservation] = field(default_factory=list)
    lines: List[LineObservation] = field(default_factory=list)
    region_adjacencies: List[RegionAdjacency] = field(default_factory=list)
    region_line_contacts: List[RegionLineContact] = field(default_factory=list)
    line_relations: List[LineRelation] = field(default_factory=list)


@dataclass
class RegionOverlap:
    first: RegionIndex
    second: RegionIndex
    ratio: float


@dataclass
class LineIncidence:
    first: LineIndex
    second: LineIndex
    direction: Direction


@dataclass
class GraphBuildConfig:
    overlap_ratio_threshold: float = 0.2
    adjacency_weight: float = 1.0
    region_line_weight: float = 1.0
    junction_weight_scale: float = 10.0
    overlap_weight: float = 100.0
    cross_view_incidence_weight: float = 10.0
    min_contour_size: int = 3
    validate: bool = True


@dataclass
class BuildReport:
    regions: int = 0
    lines: int = 0
    edges: Counter = field(default_factory=Counter)
    skipped: List[str] = field(default_factory=list)

    def summary(self) -> str:
        parts = [f"regions={self.regions}", f"lines={self.lines}"]
        parts.extend(f"{relation.value}={count}" for relation, count in sorted(self.edges.items()))
        parts.append(f"skipped={len(self.skipped)}")
        return ", ".join(parts)


@dataclass
class GraphBuildResult:
    graph: MixedGraph
    unary_vars: UnaryVarTable
    binary_vars: BinaryVarTable
    region_handles: Dict[RegionIndex, NodeHandle]
    line_handles: Dict[LineIndex, NodeHandle]
    report: BuildReport


def _nearest_class(center: np.ndarray, vanishing_points: Sequence[np.ndarray]) -> Optional[int]:
    if not vanishing_points:
        return None
    angles = [angle_between_undirected(center, vp) for vp in vanishing_points]
    return int(np.argmin(angles))


def _overlap_anchors(first: UnaryElement, second: UnaryElement) -> List[np.ndarray]:
    """Extreme corners of both regions along two axes around their mean center."""

    z = normalize(first.normalized_center + second.normalized_center)
    x, y = propose_xy_from_z(z)
    anchors = [z, z, z, z]
    min_x = min_y = np.inf
    max_x = max_y = -np.inf
    for corner in list(first.normalized_corners) + list(second.normalized_corners):
        dx = float(np.dot(corner, x))
        dy = float(np.dot(corner, y))
        if dx < min_x:
            anchors[0], min_x = corner, dx
        if dx > max_x:
            anchors[1], max_x = corner, dx
        if dy < min_y:
            anchors[2], min_y = corner, dy
        if dy > max_y:
            anchors[3], max_y = corner, dy
    return anchors


class _GraphBuilder:
    def __init__(self, vanishing_points: Sequence[np.ndarray], config: GraphBuildConfig) -> None:
        self.vanishing_points = [np.asarray(vp, dtype=float) for vp in vanishing_points]
        self.config = config
        self.graph = MixedGraph()
        self.unary_vars: UnaryVarTable = {}
        self.binary_vars: BinaryVarTable = {}
        self.region_handles: Dict[RegionIndex, NodeHandle] = {}
        self.line_handles: Dict[LineIndex, NodeHandle] = {}
        self.report = BuildReport()

    def _connect(self, first: NodeHandle, second: NodeHandle, element: BinaryElement, what: str) -> None:
        if not element.anchors:
            self.report.skipped.append(f"{what}: no anchors")
            return
        edge = self.graph.add_edge(first, second, element)
        self.binary_vars[edge] = BinaryVariable(enabled=True)
        self.report.edges[element.relation] += 1

    def add_view(self, view: int, features: ViewFeatures) -> None:
        for idx, region in enumerate(features.regions):
            contour = [normalize(d) for d in region.contour]
            if len(contour) < self.config.min_contour_size:
                self.report.skipped.append(f"region {(view, idx)}: contour has {len(contour)} directions")
                continue
            center = normalize(region.center)
            element = UnaryElement(UnaryKind.REGION, contour, center, FREE_ORIENTATION)
            handle = self.graph.add_node(element)
            self.region_handles[(view, idx)] = handle
            self.unary_vars[handle] = initial_unary_variable(
                element, self.vanishing_points, _nearest_class(center, self.vanishing_points)
            )
            self.report.regions += 1

        for idx, line in enumerate(features.lines):
            first = normalize(line.first)
            second = normalize(line.second)
            center = normalize(line.center) if line.center is not None else normalize(first + second)
            element = UnaryElement(UnaryKind.LINE, [first, second], center, line.orientation_class)
            handle = self.graph.add_node(element)
            self.line_handles[(view, idx)] = handle
            self.unary_vars[handle] = initial_unary_variable(element, self.vanishing_points)
            self.report.lines += 1

        for adjacency in features.region_adjacencies:
            r1 = self.region_handles.get((view, adjacency.region1))
            r2 = self.region_handles.get((view, adjacency.region2))
            what = f"adjacency {(view, adjacency.region1)}-{(view, adjacency.region2)}"
            if r1 is None or r2 is None:
                self.report.skipped.append(f"{what}: region missing")
                continue
            element = BinaryElement(
                RelationType.REGION_REGION_ADJACENCY,
                [normalize(a) for a in adjacency.anchors],
                self.config.adjacency_weight,
            )
            self._connect(r1, r2, element, what)

        for contact in features.region_line_contacts:
            region = self.region_handles.get((view, contact.region))
            line = self.line_handles.get((view, contact.line))
            what = f"contact region {(view, contact.region)} line {(view, contact.line)}"
            if region is None or line is None:
                self.report.skipped.append(f"{what}: element missing")
                continue
            element = BinaryElement(
                RelationType.REGION_LINE_CONTACT,
                [normalize(a) for a in contact.anchors],
                self.config.region_line_weight,
            )
            self._connect(region, line, element, what)

        for relation in features.line_relations:
            l1 = self.line_handles.get((view, relation.line1))
            l2 = self.line_handles.get((view, relation.line2))
            what = f"{relation.kind.value} {(view, relation.line1)}-{(view, relation.line2)}"
            if l1 is None or l2 is None:
                self.report.skipped.append(f"{what}: line missing")
                continue
            relation_type = (
                RelationType.LINE_LINE_INTERSECTION
                if relation.kind is LineRelationKind.INTERSECTION
                else RelationType.LINE_LINE_INCIDENCE
            )
            element = BinaryElement(
                relation_type,
                [normalize(relation.center)],
                relation.junction_weight * self.config.junction_weight_scale,
            )
            self._connect(l1, l2, element, what)

    def add_overlaps(self, overlaps: Sequence[RegionOverlap]) -> None:
        for overlap in overlaps:
            what = f"overlap {overlap.first}-{overlap.second}"
            if overlap.ratio < self.config.overlap_ratio_threshold:
                self.report.skipped.append(f"{what}: ratio {overlap.ratio:.3f} below threshold")
                continue
            r1 = self.region_handles.get(overlap.first)
            r2 = self.region_handles.get(overlap.second)
            if r1 is None or r2 is None:
                self.report.skipped.append(f"{what}: region missing")
                continue
            anchors = _overlap_anchors(self.graph.node(r1), self.graph.node(r2))
            element = BinaryElement(RelationType.REGION_REGION_OVERLAP, anchors, self.config.overlap_weight)
            self._connect(r1, r2, element, what)

    def add_incidences(self, incidences: Sequence[LineIncidence]) -> None:
        for incidence in incidences:
            l1 = self.line_handles.get(incidence.first)
            l2 = self.line_handles.get(incidence.second)
            what = f"incidence {incidence.first}-{incidence.second}"
            if l1 is None or l2 is None:
                self.report.skipped.append(f"{what}: line missing")
                continue
            element = BinaryElement(
                RelationType.LINE_LINE_INCIDENCE,
                [normalize(incidence.direction)],
                self.config.cross_view_incidence_weight,
            )
            self._connect(l1, l2, element, what)


def build_mixed_graph(
    views: Sequence[ViewFeatures],
    vanishing_points: Sequence[Direction],
    region_overlaps: Sequence[RegionOverlap] = (),
    line_incidences: Sequence[LineIncidence] = (),
    config: Optional[GraphBuildConfig] = None,
) -> GraphBuildResult:
    """Assemble the constraint graph for a multi-view scene."""

    config = config or GraphBuildConfig()
    builder = _GraphBuilder(vanishing_points, config)
    for view, features in enumerate(views):
        builder.add_view(view, features)
    builder.add_overlaps(region_overlaps)
    builder.add_incidences(line_incidences)

    graph = builder.graph
    graph.compute_importance_ratios()
    if config.validate:
        validate_graph(graph, builder.vanishing_points, builder.binary_vars)

    for reason in builder.report.skipped:
        logger.debug("Skipped %s", reason)
    logger.info("Built mixed graph from %d view(s): %s", len(views), builder.report.summary())

    return GraphBuildResult(
        graph=graph,
        unary_vars=builder.unary_vars,
        binary_vars=builder.binary_vars,
        region_handles=builder.region_handles,
        line_handles=builder.line_handles,
        report=builder.report,
    )


__all__ = [
    "LineRelationKind",
    "RegionObservation",
    "LineObservation",
    "RegionAdjacency",
    "RegionLineContact",
    "LineRelation",
    "ViewFeatures",
    "RegionOverlap",
    "LineIncidence",
    "GraphBuildConfig",
    "BuildReport",
    "GraphBuildResult",
    "build_mixed_graph",
]
