"""Turn a patch into a sparse linear system over inverse-depth parameters."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy import sparse

from ..geometry import _DENOM_EPS
from ..graph import MixedGraph
from ..logging_utils import apply_debug_logging
from ..patch import Patch, ensure_patch_invariants
from ..types import EdgeHandle, InvariantViolation, NodeHandle, OptimizationFailed
from .anchors import necessary_anchors
from .model import Equation, LinearSystem, SolveOptions

logger = logging.getLogger(__name__)


def _variable_layout(patch: Patch):
    offsets: Dict[NodeHandle, int] = {}
    sizes: Dict[NodeHandle, int] = {}
    count = 0
    for node in sorted(patch.node_bindings):
        var = patch.node_bindings[node]
        if var.fixed:
            continue
        offsets[node] = count
        sizes[node] = len(var.parameters)
        count += len(var.parameters)
    return offsets, sizes, count


def _checked_coefficients(coeffs: np.ndarray, what: str) -> np.ndarray:
    if not np.all(np.isfinite(coeffs)):
        raise OptimizationFailed(f"{what}: degenerate depth coefficients")
    return coeffs


def edge_equations(
    graph: MixedGraph,
    patch: Patch,
    edge: EdgeHandle,
    vanishing_points: Sequence[np.ndarray],
    offsets: Dict[NodeHandle, int],
    options: SolveOptions,
) -> List[Equation]:
    """One equation per necessary anchor: ``c1 . p1 - c2 . p2 = 0``.

    Parameters of fixed endpoints are folded into the right-hand side.
    """

    element = graph.edge(edge)
    first, second = graph.endpoints(edge)
    var1, var2 = patch.node_bindings[first], patch.node_bindings[second]
    elem1, elem2 = graph.node(first), graph.node(second)
    weight = element.weight if options.use_weights else 1.0

    anchors = necessary_anchors(graph, edge, options.kink_tolerance)
    if not anchors:
        raise InvariantViolation(f"edge {edge} has no necessary anchors")

    equations = []
    for idx, anchor in enumerate(anchors):
        what = f"edge {edge} anchor {idx}"
        c1 = _checked_coefficients(var1.coefficients(anchor, elem1, vanishing_points), what)
        c2 = _checked_coefficients(var2.coefficients(anchor, elem2, vanishing_points), what)
        columns: List[int] = []
        values: List[float] = []
        rhs = 0.0
        if var1.fixed:
            rhs -= float(np.dot(c1, var1.parameters))
        else:
            columns.extend(range(offsets[first], offsets[first] + len(c1)))
            values.extend(c1.tolist())
        if var2.fixed:
            rhs += float(np.dot(c2, var2.parameters))
        else:
            columns.extend(range(offsets[second], offsets[second] + len(c2)))
            values.extend((-c2).tolist())
        equations.append(Equation(columns, values, rhs, weight, edge=edge, anchor_index=idx))
    return equations


def _scale_equation(
    graph: MixedGraph,
    patch: Patch,
    vanishing_points: Sequence[np.ndarray],
    offsets: Dict[NodeHandle, int],
) -> Equation:
    node = min(patch.node_bindings)
    element = graph.node(node)
    coeffs = _checked_coefficients(
        patch.node_bindings[node].coefficients(element.normalized_center, element, vanishing_points),
        f"scale anchor at node {node}",
    )
    if float(np.max(np.abs(coeffs))) <= _DENOM_EPS:
        raise OptimizationFailed(f"scale anchor at node {node}: zero inverse depth at its center")
    start = offsets[node]
    return Equation(list(range(start, start + len(coeffs))), coeffs.tolist(), 1.0, 1.0)


def _center_matrix(
    graph: MixedGraph,
    patch: Patch,
    vanishing_points: Sequence[np.ndarray],
    offsets: Dict[NodeHandle, int],
    count: int,
) -> sparse.csr_matrix:
    rows: List[int] = []
    cols: List[int] = []
    vals: List[float] = []
    for row, (node, start) in enumerate(offsets.items()):
        element = graph.node(node)
        coeffs = _checked_coefficients(
            patch.node_bindings[node].coefficients(element.normalized_center, element, vanishing_points),
            f"center of node {node}",
        )
        rows.extend([row] * len(coeffs))
        cols.extend(range(start, start + len(coeffs)))
        vals.extend(coeffs.tolist())
    return sparse.csr_matrix((vals, (rows, cols)), shape=(len(offsets), count))


def assemble_system(
    graph: MixedGraph,
    patch: Patch,
    vanishing_points: Sequence[np.ndarray],
    options: Optional[SolveOptions] = None,
) -> LinearSystem:
    """Number the free parameters of ``patch`` and emit its weighted equations.

    Raises :class:`OptimizationFailed` when the patch has nothing to solve
    or a coefficient is not finite.
    """

    options = options or SolveOptions()
    ensure_patch_invariants(graph, patch, context="assemble_system")
    offsets, sizes, count = _variable_layout(patch)
    if count == 0:
        raise OptimizationFailed("patch has no free variables")

    equations: List[Equation] = []
    for edge in sorted(patch.enabled_edges()):
        first, second = graph.endpoints(edge)
        if patch.node_bindings[first].fixed and patch.node_bindings[second].fixed:
            continue
        equations.extend(edge_equations(graph, patch, edge, vanishing_points, offsets, options))

    scale_node = None
    if not patch.has_fixed_node():
        scale = _scale_equation(graph, patch, vanishing_points, offsets)
        scale_node = min(patch.node_bindings)
        equations.append(scale)

    if not equations:
        raise OptimizationFailed("patch produced no equations")

    rows: List[int] = []
    cols: List[int] = []
    vals: List[float] = []
    for row, equation in enumerate(equations):
        rows.extend([row] * len(equation.columns))
        cols.extend(equation.columns)
        vals.extend(equation.values)
    matrix = sparse.csr_matrix((vals, (rows, cols)), shape=(len(equations), count))
    center_matrix = _center_matrix(graph, patch, vanishing_points, offsets, count)

    logger.debug(
        "Assembled %d equations over %d variables for %r (scale anchor: %s)",
        len(equations),
        count,
        patch,
        scale_node,
    )
    return LinearSystem(
        matrix=matrix,
        rhs=np.array([eq.rhs for eq in equations], dtype=float),
        weights=np.array([eq.weight for eq in equations], dtype=float),
        offsets=offsets,
        sizes=sizes,
        row_edges=[eq.edge for eq in equations],
        scale_node=scale_node,
        center_matrix=center_matrix,
    )


def residuals(system: LinearSystem, x: np.ndarray) -> np.ndarray:
    """Weighted residual ``W (A x - b)`` per equation."""

    return system.weights * (system.matrix @ x - system.rhs)


def edge_slack(
    graph: MixedGraph,
    patch: Patch,
    edge: EdgeHandle,
    vanishing_points: Sequence[np.ndarray],
    options: Optional[SolveOptions] = None,
) -> float:
    """Mean absolute weighted inverse-depth mismatch over the edge's necessary anchors."""

    options = options or SolveOptions()
    element = graph.edge(edge)
    first, second = graph.endpoints(edge)
    var1, var2 = patch.node_bindings[first], patch.node_bindings[second]
    elem1, elem2 = graph.node(first), graph.node(second)
    weight = element.weight if options.use_weights else 1.0
    anchors = necessary_anchors(graph, edge, options.kink_tolerance)
    if not anchors:
        return 0.0
    mismatch = [
        abs(var1.inverse_depth_at(anchor, elem1, vanishing_points) - var2.inverse_depth_at(anchor, elem2, vanishing_points))
        for anchor in anchors
    ]
    return weight * float(np.mean(mismatch))


apply_debug_logging(globals(), logger=logger)
