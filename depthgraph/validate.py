from typing import Optional, Sequence

import numpy as np

from .geometry import is_unit
from .graph import MixedGraph
from .types import FREE_ORIENTATION, MIN_ANCHORS, RELATION_ENDPOINTS, DepthGraphError, UnaryKind
from .variables import BinaryVarTable


class GraphValidationError(DepthGraphError):
    pass


def _check_direction(vec, what: str) -> None:
    arr = np.asarray(vec, dtype=float)
    if arr.shape != (3,) or not is_unit(arr):
        raise GraphValidationError(f'{what} must be a unit 3-vector (got {arr.tolist()})')


def validate_graph(
    graph: MixedGraph,
    vanishing_points: Sequence[np.ndarray],
    binary_vars: Optional[BinaryVarTable] = None,
) -> None:
    for node in graph.nodes():
        u = graph.node(node)
        _check_direction(u.normalized_center, f'node {node} center')
        for idx, corner in enumerate(u.normalized_corners):
            _check_direction(corner, f'node {node} corner {idx}')
        if u.kind is UnaryKind.LINE:
            if len(u.normalized_corners) < 2:
                raise GraphValidationError(f'line node {node} needs two endpoint directions')
            if u.orientation_class == FREE_ORIENTATION:
                raise GraphValidationError(f'line node {node} must be bound to a vanishing direction')
        elif u.kind is UnaryKind.REGION:
            if len(u.normalized_corners) < 3:
                raise GraphValidationError(f'region node {node} needs at least 3 contour directions')
        if u.orientation_class != FREE_ORIENTATION and not 0 <= u.orientation_class < len(vanishing_points):
            raise GraphValidationError(
                f'node {node} orientation class {u.orientation_class} is out of range '
                f'({len(vanishing_points)} vanishing directions)'
            )

    for edge in graph.edges():
        b = graph.edge(edge)
        first, second = graph.endpoints(edge)
        enabled = binary_vars[edge].enabled if binary_vars is not None else True
        if b.weight < 0 or not np.isfinite(b.weight):
            raise GraphValidationError(f'edge {edge} weight must be non-negative (got {b.weight})')
        kinds = {graph.node(first).kind, graph.node(second).kind}
        if kinds != set(RELATION_ENDPOINTS[b.relation]):
            raise GraphValidationError(
                f'edge {edge} {b.relation.value} cannot connect '
                f'{graph.node(first).kind.value} and {graph.node(second).kind.value}'
            )
        if not enabled:
            continue
        if not b.anchors:
            raise GraphValidationError(f'edge {edge} has no anchors')
        if len(b.anchors) < MIN_ANCHORS[b.relation]:
            raise GraphValidationError(
                f'edge {edge} {b.relation.value} needs at least {MIN_ANCHORS[b.relation]} anchors, '
                f'got {len(b.anchors)}'
            )
        for idx, anchor in enumerate(b.anchors):
            _check_direction(anchor, f'edge {edge} anchor {idx}')
