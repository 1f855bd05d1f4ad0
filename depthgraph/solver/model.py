"""Data structures shared by equation assembly, the backends and the façade."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy import sparse

from ..patch import Patch
from ..types import EdgeHandle, NodeHandle


class SolverBackend(str, Enum):
    LEAST_SQUARES = "least_squares"
    LINEAR_PROGRAM = "linear_program"


@dataclass
class SolveOptions:
    """Tunables of the depth optimizer."""

    backend: SolverBackend = SolverBackend.LEAST_SQUARES
    use_weights: bool = True
    kink_tolerance: float = 1e-3
    tol: float = 1e-12
    max_iterations: Optional[int] = None
    # Lower bound on every non-fixed node's inverse depth at its center (LP only).
    lp_min_inverse_depth: float = 1e-3
    record_slack: bool = True
    check_fixed_consistency: bool = True
    fixed_tolerance: float = 1e-2


@dataclass
class Equation:
    """One anchor equation ``sum(values[i] * x[columns[i]]) = rhs``."""

    columns: List[int]
    values: List[float]
    rhs: float
    weight: float
    edge: Optional[EdgeHandle] = None
    anchor_index: int = 0


@dataclass
class LinearSystem:
    """Sparse system of a patch together with its variable layout.

    Row ``i`` of ``matrix`` and ``rhs`` is unweighted; ``weights[i]`` is the
    row scale the backends apply.
    """

    matrix: sparse.csr_matrix
    rhs: np.ndarray
    weights: np.ndarray
    offsets: Dict[NodeHandle, int]
    sizes: Dict[NodeHandle, int]
    row_edges: List[Optional[EdgeHandle]]
    scale_node: Optional[NodeHandle] = None
    # One row per free node: its inverse depth along its own center direction.
    center_matrix: Optional[sparse.csr_matrix] = None

    @property
    def variable_count(self) -> int:
        return int(self.matrix.shape[1])

    @property
    def equation_count(self) -> int:
        return int(self.matrix.shape[0])

    def weighted(self) -> Tuple[sparse.csr_matrix, np.ndarray]:
        scale = sparse.diags(self.weights)
        return (scale @ self.matrix).tocsr(), self.weights * self.rhs

    def unpack(self, x: np.ndarray) -> Dict[NodeHandle, List[float]]:
        return {
            node: [float(v) for v in x[offset : offset + self.sizes[node]]]
            for node, offset in self.offsets.items()
        }


@dataclass
class DepthSolution:
    patch: Patch
    success: bool
    backend: SolverBackend
    message: str = ""
    max_residual: float = float("nan")
    objective: float = float("nan")
    warnings: List[str] = field(default_factory=list)
    edge_slack: Dict[EdgeHandle, float] = field(default_factory=dict)


__all__ = [
    "SolverBackend",
    "SolveOptions",
    "Equation",
    "LinearSystem",
    "DepthSolution",
]
