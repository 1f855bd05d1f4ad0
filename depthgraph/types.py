from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, NewType, Tuple

import numpy as np

NodeHandle = NewType("NodeHandle", int)
EdgeHandle = NewType("EdgeHandle", int)

FREE_ORIENTATION = -1


class DepthGraphError(Exception):
    """Base class for errors raised by :mod:`depthgraph`."""


class InvariantViolation(DepthGraphError):
    """Raised when a handle, graph or patch precondition does not hold."""


class OptimizationFailed(DepthGraphError):
    """Raised inside the solver when a patch system cannot be solved."""


class UnaryKind(str, Enum):
    REGION = "region"
    LINE = "line"


class RelationType(str, Enum):
    REGION_REGION_ADJACENCY = "region_region_adjacency"
    REGION_LINE_CONTACT = "region_line_contact"
    LINE_LINE_INTERSECTION = "line_line_intersection"
    LINE_LINE_INCIDENCE = "line_line_incidence"
    REGION_REGION_OVERLAP = "region_region_overlap"


# Smallest anchor count that makes a relation geometrically meaningful.
MIN_ANCHORS = {
    RelationType.REGION_REGION_ADJACENCY: 2,
    RelationType.REGION_LINE_CONTACT: 1,
    RelationType.LINE_LINE_INTERSECTION: 1,
    RelationType.LINE_LINE_INCIDENCE: 1,
    RelationType.REGION_REGION_OVERLAP: 3,
}

# Endpoint kinds each relation type connects, in endpoint order.
RELATION_ENDPOINTS = {
    RelationType.REGION_REGION_ADJACENCY: (UnaryKind.REGION, UnaryKind.REGION),
    RelationType.REGION_LINE_CONTACT: (UnaryKind.REGION, UnaryKind.LINE),
    RelationType.LINE_LINE_INTERSECTION: (UnaryKind.LINE, UnaryKind.LINE),
    RelationType.LINE_LINE_INCIDENCE: (UnaryKind.LINE, UnaryKind.LINE),
    RelationType.REGION_REGION_OVERLAP: (UnaryKind.REGION, UnaryKind.REGION),
}


@dataclass
class UnaryElement:
    """One region or line primitive, described by unit camera-ray directions."""

    kind: UnaryKind
    normalized_corners: List[np.ndarray]
    normalized_center: np.ndarray
    orientation_class: int = FREE_ORIENTATION

    @property
    def is_region(self) -> bool:
        return self.kind is UnaryKind.REGION

    @property
    def is_line(self) -> bool:
        return self.kind is UnaryKind.LINE

    @property
    def is_oriented(self) -> bool:
        return self.orientation_class != FREE_ORIENTATION


@dataclass
class BinaryElement:
    """A weighted relation asserting depth agreement along ``anchors``."""

    relation: RelationType
    anchors: List[np.ndarray]
    weight: float = 1.0
    importance_ratio: Tuple[float, float] = field(default=(0.0, 0.0))


__all__ = [
    "NodeHandle",
    "EdgeHandle",
    "FREE_ORIENTATION",
    "DepthGraphError",
    "InvariantViolation",
    "OptimizationFailed",
    "UnaryKind",
    "RelationType",
    "MIN_ANCHORS",
    "RELATION_ENDPOINTS",
    "UnaryElement",
    "BinaryElement",
]
