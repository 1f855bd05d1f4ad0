"""Depth-model bindings attached to graph elements during optimization.

A :class:`UnaryVariable` maps a small parameter vector to the inverse depth
of its primitive along any camera ray, linearly in the parameters:

* free region, 3 parameters ``(a, b, c)``: the plane ``a*x + b*y + c*z = 1``,
  so ``1/depth(d) = a*d[0] + b*d[1] + c*d[2]``;
* oriented region, 1 parameter ``s``: the plane with the normal of its
  vanishing direction ``n`` (flipped to face the region center), so
  ``1/depth(d) = s * (n . d)``;
* line, 1 parameter ``s``: the inverse depth of the line center; a ray ``d``
  meets the 3D line (through the center at unit depth, along its vanishing
  direction) at relative depth ``r(d)``, so ``1/depth(d) = s / r(d)``.

:meth:`UnaryVariable.coefficients` returns the gradient of the inverse depth
with respect to the parameters, which is all the optimizer needs.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .geometry import Line3, Plane3, closest_points_between_lines, ray_depth_to_line
from .types import EdgeHandle, NodeHandle, UnaryElement, UnaryKind


def parameter_count(element: UnaryElement) -> int:
    if element.kind is UnaryKind.REGION:
        return 1 if element.is_oriented else 3
    if element.kind is UnaryKind.LINE:
        return 1
    raise ValueError(f"unknown unary kind {element.kind!r}")


def _facing_normal(element: UnaryElement, vanishing_points: Sequence[np.ndarray]) -> np.ndarray:
    normal = np.asarray(vanishing_points[element.orientation_class], dtype=float)
    if float(np.dot(normal, element.normalized_center)) < 0.0:
        normal = -normal
    return normal


@dataclass
class UnaryVariable:
    parameters: List[float]
    fixed: bool = False

    def copy(self) -> "UnaryVariable":
        return UnaryVariable(parameters=list(self.parameters), fixed=self.fixed)

    def coefficients(
        self, direction: np.ndarray, element: UnaryElement, vanishing_points: Sequence[np.ndarray]
    ) -> np.ndarray:
        """Coefficients of ``1/depth`` along ``direction`` w.r.t. ``parameters``."""

        direction = np.asarray(direction, dtype=float)
        if element.kind is UnaryKind.REGION:
            if element.is_oriented:
                normal = _facing_normal(element, vanishing_points)
                return np.array([float(np.dot(normal, direction))])
            return direction.copy()
        if element.kind is UnaryKind.LINE:
            line_direction = np.asarray(vanishing_points[element.orientation_class], dtype=float)
            depth_ratio = ray_depth_to_line(direction, element.normalized_center, line_direction)
            if not np.isfinite(depth_ratio) or depth_ratio <= 0.0:
                return np.array([np.nan])
            return np.array([1.0 / depth_ratio])
        raise ValueError(f"unknown unary kind {element.kind!r}")

    def inverse_depth_at(
        self, direction: np.ndarray, element: UnaryElement, vanishing_points: Sequence[np.ndarray]
    ) -> float:
        coeffs = self.coefficients(direction, element, vanishing_points)
        return float(np.dot(coeffs, np.asarray(self.parameters, dtype=float)))

    def depth_at(
        self, direction: np.ndarray, element: UnaryElement, vanishing_points: Sequence[np.ndarray]
    ) -> float:
        inverse = self.inverse_depth_at(direction, element, vanishing_points)
        if inverse == 0.0:
            return float("inf")
        return 1.0 / inverse

    def depth_at_center(self, element: UnaryElement, vanishing_points: Sequence[np.ndarray]) -> float:
        return self.depth_at(element.normalized_center, element, vanishing_points)

    def plane_equation(self, element: UnaryElement, vanishing_points: Sequence[np.ndarray]) -> np.ndarray:
        """Coefficients ``(a, b, c)`` of the plane ``a*x + b*y + c*z = 1``."""

        if element.kind is not UnaryKind.REGION:
            raise ValueError("only regions can be interpreted as planes")
        if element.is_oriented:
            return self.parameters[0] * _facing_normal(element, vanishing_points)
        return np.asarray(self.parameters, dtype=float)

    def interpret_as_plane(
        self, element: UnaryElement, vanishing_points: Sequence[np.ndarray]
    ) -> Plane3:
        a, b, c = self.plane_equation(element, vanishing_points).tolist()
        return Plane3.from_equation(a, b, c)

    def interpret_as_line(
        self, element: UnaryElement, vanishing_points: Sequence[np.ndarray]
    ) -> Line3:
        if element.kind is not UnaryKind.LINE:
            raise ValueError("only lines can be interpreted as 3D segments")
        center = np.asarray(element.normalized_center, dtype=float) / self.parameters[0]
        line_direction = np.asarray(vanishing_points[element.orientation_class], dtype=float)
        origin = np.zeros(3)
        _, first = closest_points_between_lines(
            origin, element.normalized_corners[0], center, line_direction
        )
        _, second = closest_points_between_lines(
            origin, element.normalized_corners[-1], center, line_direction
        )
        return Line3(first=tuple(first.tolist()), second=tuple(second.tolist()))


@dataclass
class BinaryVariable:
    enabled: bool = True
    slack: Optional[float] = None

    def copy(self) -> "BinaryVariable":
        return BinaryVariable(enabled=self.enabled, slack=self.slack)


UnaryVarTable = Dict[NodeHandle, UnaryVariable]
BinaryVarTable = Dict[EdgeHandle, BinaryVariable]


def initial_unary_variable(
    element: UnaryElement, vanishing_points: Sequence[np.ndarray], nearest_class: Optional[int] = None
) -> UnaryVariable:
    """Starting guess: unit inverse depth, facing the nearest vanishing direction."""

    if element.kind is UnaryKind.LINE or element.is_oriented:
        return UnaryVariable(parameters=[1.0])
    if nearest_class is None:
        return UnaryVariable(parameters=element.normalized_center.tolist())
    normal = np.asarray(vanishing_points[nearest_class], dtype=float)
    if float(np.dot(normal, element.normalized_center)) < 0.0:
        normal = -normal
    return UnaryVariable(parameters=normal.tolist())


def copy_bindings(table: Dict) -> Dict:
    return {handle: copy.deepcopy(value) for handle, value in table.items()}


__all__ = [
    "UnaryVariable",
    "BinaryVariable",
    "UnaryVarTable",
    "BinaryVarTable",
    "parameter_count",
    "initial_unary_variable",
    "copy_bindings",
]
