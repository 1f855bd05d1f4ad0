"""Depth optimizer façade: assemble, solve, write back, refine."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import List, Optional, Sequence

import numpy as np

from ..consistency import check_fixed_consistency
from ..decompose import minimum_spanning_tree_patch, slack_key
from ..graph import MixedGraph
from ..patch import Patch
from ..types import OptimizationFailed
from .anchors import has_strong_anchors, necessary_anchors
from .assembly import assemble_system, edge_slack, residuals
from .backends import BACKENDS, check_solution, objective, solve_least_squares, solve_linear_program
from .config import get_default_solve_options, set_default_solve_options
from .diagnostics import (
    average_center_depth,
    average_edge_distance,
    edge_anchor_distance_sum,
    edge_distance,
)
from .model import DepthSolution, Equation, LinearSystem, SolveOptions, SolverBackend

logger = logging.getLogger(__name__)


def optimize_patch(
    graph: MixedGraph,
    patch: Patch,
    vanishing_points: Sequence[np.ndarray],
    options: Optional[SolveOptions] = None,
) -> DepthSolution:
    """Solve the free parameters of ``patch`` in place.

    On failure the returned solution has ``success=False`` and ``patch`` is
    left exactly as it was passed in.
    """

    options = options or get_default_solve_options()
    backend = SolverBackend(options.backend)
    working = patch.copy()
    warnings: List[str] = []

    try:
        inconsistent = check_fixed_consistency(
            graph, working, vanishing_points, options.fixed_tolerance, options.kink_tolerance
        )
        warnings.extend(str(item) for item in inconsistent)
        if inconsistent and options.check_fixed_consistency:
            raise OptimizationFailed("; ".join(warnings))
        system = assemble_system(graph, working, vanishing_points, options)
        x = BACKENDS[backend](system, options)
        check_solution(system, x)
    except OptimizationFailed as exc:
        logger.info("Optimization of %r with %s failed: %s", patch, backend.value, exc)
        return DepthSolution(patch=patch, success=False, backend=backend, message=str(exc), warnings=warnings)

    for node, parameters in system.unpack(x).items():
        working.node_bindings[node].parameters = parameters

    slack = {
        edge: edge_slack(graph, working, edge, vanishing_points, options) for edge in working.enabled_edges()
    }
    if options.record_slack:
        for edge, value in slack.items():
            working.edge_bindings[edge].slack = value

    weighted = residuals(system, x)
    max_residual = float(np.max(np.abs(weighted))) if weighted.size else 0.0
    if weighted.size:
        worst = int(np.argmax(np.abs(weighted)))
        logger.debug("Largest residual %.3g on row %d (edge %s)", max_residual, worst, system.row_edges[worst])

    patch.node_bindings.update(working.node_bindings)
    patch.edge_bindings.update(working.edge_bindings)
    logger.info(
        "Optimized %r with %s: %d variables, %d equations, max residual %.3g",
        patch,
        backend.value,
        system.variable_count,
        system.equation_count,
        max_residual,
    )
    return DepthSolution(
        patch=patch,
        success=True,
        backend=backend,
        message="ok",
        max_residual=max_residual,
        objective=objective(system, x, backend),
        warnings=warnings,
        edge_slack=slack,
    )


def optimize_patches(
    graph: MixedGraph,
    patches: Sequence[Patch],
    vanishing_points: Sequence[np.ndarray],
    options: Optional[SolveOptions] = None,
    *,
    workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> List[DepthSolution]:
    """Optimize independent patches concurrently, results in input order.

    Each worker solves a private copy; results are written back only for
    solves that finished within ``timeout`` seconds of being awaited. An
    abandoned solve is reported as a failure and its patch is untouched.
    """

    options = options or get_default_solve_options()
    backend = SolverBackend(options.backend)
    if not patches:
        return []

    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        futures = [
            executor.submit(optimize_patch, graph, patch.copy(), vanishing_points, options) for patch in patches
        ]
        solutions: List[DepthSolution] = []
        for patch, future in zip(patches, futures):
            try:
                result = future.result(timeout=timeout)
            except FutureTimeoutError:
                future.cancel()
                logger.warning("Optimization of %r timed out after %.3g s", patch, timeout)
                solutions.append(
                    DepthSolution(patch=patch, success=False, backend=backend, message="timed out")
                )
                continue
            if result.success:
                patch.node_bindings.update(result.patch.node_bindings)
                patch.edge_bindings.update(result.patch.edge_bindings)
            result.patch = patch
            solutions.append(result)
    finally:
        executor.shutdown(wait=timeout is None, cancel_futures=True)

    logger.info(
        "Optimized %d patches: %d succeeded", len(solutions), sum(1 for s in solutions if s.success)
    )
    return solutions


def refine_patch(
    graph: MixedGraph,
    patch: Patch,
    vanishing_points: Sequence[np.ndarray],
    options: Optional[SolveOptions] = None,
) -> DepthSolution:
    """Solve, keep a spanning tree of the lowest-slack edges, solve again.

    Edges outside the tree are disabled in ``patch``. If either solve fails
    the patch is left unmodified.
    """

    options = options or get_default_solve_options()
    trial = patch.copy()
    first = optimize_patch(graph, trial, vanishing_points, options)
    if not first.success:
        first.patch = patch
        return first

    tree = minimum_spanning_tree_patch(graph, trial, slack_key(first.edge_slack))
    second = optimize_patch(graph, tree, vanishing_points, options)
    if not second.success:
        second.patch = patch
        return second

    pruned = 0
    for edge, state in trial.edge_bindings.items():
        if edge in tree.edge_bindings:
            trial.edge_bindings[edge] = tree.edge_bindings[edge]
        elif state.enabled:
            state.enabled = False
            pruned += 1
    trial.node_bindings.update(tree.node_bindings)

    patch.node_bindings.update(trial.node_bindings)
    patch.edge_bindings.update(trial.edge_bindings)
    logger.info("Refined %r: pruned %d of %d edges", patch, pruned, len(patch.edge_bindings))
    second.patch = patch
    second.warnings = first.warnings + second.warnings
    return second


__all__ = [
    "SolverBackend",
    "SolveOptions",
    "Equation",
    "LinearSystem",
    "DepthSolution",
    "get_default_solve_options",
    "set_default_solve_options",
    "necessary_anchors",
    "has_strong_anchors",
    "assemble_system",
    "residuals",
    "edge_slack",
    "solve_least_squares",
    "solve_linear_program",
    "BACKENDS",
    "check_solution",
    "edge_anchor_distance_sum",
    "edge_distance",
    "average_edge_distance",
    "average_center_depth",
    "optimize_patch",
    "optimize_patches",
    "refine_patch",
]
