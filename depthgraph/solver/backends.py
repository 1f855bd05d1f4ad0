"""Numerical back ends: both consume the same :class:`LinearSystem`."""

from __future__ import annotations

import logging
from typing import Callable, Dict

import numpy as np
from scipy import sparse
from scipy.optimize import linprog
from scipy.sparse.linalg import lsqr

from ..logging_utils import apply_debug_logging
from ..types import OptimizationFailed
from .model import LinearSystem, SolveOptions, SolverBackend

logger = logging.getLogger(__name__)

# lsqr stop reasons that do not describe a solution.
_LSQR_FAILURES = {
    3: "condition number limit reached",
    6: "system too ill-conditioned for machine precision",
    7: "iteration limit reached",
}

# Below this a center inverse depth counts as zero, i.e. infinite depth.
_MIN_CENTER_INVERSE_DEPTH = 1e-12

Backend = Callable[[LinearSystem, SolveOptions], np.ndarray]


def _finite_or_fail(x: np.ndarray, backend: str) -> np.ndarray:
    if not np.all(np.isfinite(x)):
        raise OptimizationFailed(f"{backend} produced non-finite parameters")
    return x


def solve_least_squares(system: LinearSystem, options: SolveOptions) -> np.ndarray:
    """Minimize ``|W (A x - b)|^2`` with sparse LSQR.

    Underdetermined systems resolve to the minimum-norm solution.
    """

    matrix, rhs = system.weighted()
    if not (np.all(np.isfinite(matrix.data)) and np.all(np.isfinite(rhs))):
        raise OptimizationFailed("least-squares system has non-finite entries")
    iter_lim = options.max_iterations or max(10 * system.variable_count, 100)
    x, istop, itn, r1norm = lsqr(matrix, rhs, atol=options.tol, btol=options.tol, iter_lim=iter_lim)[:4]
    logger.debug("lsqr stopped with istop=%d after %d iterations (residual %.3g)", istop, itn, r1norm)
    if istop in _LSQR_FAILURES:
        raise OptimizationFailed(f"lsqr failed: {_LSQR_FAILURES[istop]}")
    return _finite_or_fail(np.asarray(x, dtype=float), "lsqr")


def solve_linear_program(system: LinearSystem, options: SolveOptions) -> np.ndarray:
    """Minimize ``sum(w_i * s_i)`` subject to ``|A_i x - b_i| <= s_i``.

    The scale anchor row, when present, is an equality. Every free node's
    inverse depth at its center is bounded below by
    ``options.lp_min_inverse_depth``. The bound is a small positive inverse
    depth rather than a unit depth, and it holds at node centers only:
    depths at anchors away from the center are not bounded.
    """

    n = system.variable_count
    soft = [row for row, edge in enumerate(system.row_edges) if edge is not None]
    hard = [row for row, edge in enumerate(system.row_edges) if edge is None]
    m = len(soft)

    centers = system.center_matrix
    if centers is None:
        centers = sparse.csr_matrix((0, n))

    # Columns: parameters, then one slack per soft row.
    blocks = []
    b_ub = []
    if m:
        a_soft = system.matrix[soft, :]
        b_soft = system.rhs[soft]
        slack = sparse.identity(m, format="csr")
        blocks.append(sparse.hstack([a_soft, -slack]))
        blocks.append(sparse.hstack([-a_soft, -slack]))
        b_ub.extend([b_soft, -b_soft])
    if centers.shape[0]:
        bound_rows = -centers
        if m:
            bound_rows = sparse.hstack([bound_rows, sparse.csr_matrix((centers.shape[0], m))])
        blocks.append(bound_rows)
        b_ub.append(np.full(centers.shape[0], -options.lp_min_inverse_depth))
    a_ub = sparse.vstack(blocks, format="csr") if blocks else None
    b_ub_vec = np.concatenate(b_ub) if b_ub else None

    a_eq = None
    b_eq = None
    if hard:
        a_eq = system.matrix[hard, :]
        if m:
            a_eq = sparse.hstack([a_eq, sparse.csr_matrix((len(hard), m))], format="csr")
        b_eq = system.rhs[hard]

    cost = np.concatenate([np.zeros(n), system.weights[soft]])
    bounds = [(None, None)] * n + [(0.0, None)] * m
    lp_options = {}
    if options.max_iterations is not None:
        lp_options["maxiter"] = options.max_iterations

    result = linprog(
        cost,
        A_ub=a_ub,
        b_ub=b_ub_vec,
        A_eq=a_eq,
        b_eq=b_eq,
        bounds=bounds,
        method="highs",
        options=lp_options,
    )
    logger.debug("linprog finished with status %d: %s", result.status, result.message)
    if result.status != 0 or result.x is None:
        raise OptimizationFailed(f"linprog failed: {result.message}")
    return _finite_or_fail(np.asarray(result.x[:n], dtype=float), "linprog")


def check_solution(system: LinearSystem, x: np.ndarray) -> None:
    """Reject solutions that put a free node at infinite or undefined depth."""

    if system.center_matrix is None:
        return
    centers = system.center_matrix @ x
    for node, inverse_depth in zip(system.offsets, centers):
        if not np.isfinite(inverse_depth) or abs(float(inverse_depth)) <= _MIN_CENTER_INVERSE_DEPTH:
            raise OptimizationFailed(
                f"node {node} has inverse depth {float(inverse_depth):.3g} at its center"
            )


BACKENDS: Dict[SolverBackend, Backend] = {
    SolverBackend.LEAST_SQUARES: solve_least_squares,
    SolverBackend.LINEAR_PROGRAM: solve_linear_program,
}


def objective(system: LinearSystem, x: np.ndarray, backend: SolverBackend) -> float:
    """Value the given backend minimizes, evaluated at ``x``."""

    weighted = system.weights * (system.matrix @ x - system.rhs)
    if backend is SolverBackend.LINEAR_PROGRAM:
        return float(np.sum(np.abs(weighted)))
    return float(np.dot(weighted, weighted))


apply_debug_logging(globals(), logger=logger)
