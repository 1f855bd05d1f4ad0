"""Small 3D vector helpers shared by the graph and the solver."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

import numpy as np

Vec3 = np.ndarray

_DENOM_EPS = 1e-12
_UNIT_TOLERANCE = 1e-6


def as_vec3(value: Iterable[float]) -> Vec3:
    vec = np.asarray(list(value) if not isinstance(value, np.ndarray) else value, dtype=float)
    if vec.shape != (3,):
        raise ValueError(f"expected a 3-vector, got shape {vec.shape}")
    return vec


def _norm_sq(vec: np.ndarray) -> float:
    return float(np.dot(vec, vec))


def norm(vec: np.ndarray) -> float:
    return math.sqrt(max(_norm_sq(vec), 0.0))


def normalize(value: Iterable[float]) -> Vec3:
    """Return ``value`` scaled to unit length.

    Raises ``ValueError`` for (near) zero vectors: a camera ray direction
    must always be defined.
    """

    vec = as_vec3(value)
    length = norm(vec)
    if length <= _DENOM_EPS or not math.isfinite(length):
        raise ValueError(f"cannot normalize degenerate direction {vec.tolist()}")
    return vec / length


def is_unit(vec: np.ndarray, tol: float = _UNIT_TOLERANCE) -> bool:
    length = norm(vec)
    return math.isfinite(length) and abs(length - 1.0) <= tol


def angle_between_undirected(a: np.ndarray, b: np.ndarray) -> float:
    denom = max(norm(a) * norm(b), _DENOM_EPS)
    cos = abs(float(np.dot(a, b))) / denom
    return math.acos(min(cos, 1.0))


def propose_xy_from_z(z: np.ndarray) -> Tuple[Vec3, Vec3]:
    """Build two unit axes orthogonal to ``z`` (and to each other)."""

    zn = normalize(z)
    helper = np.array([1.0, 0.0, 0.0])
    if abs(float(np.dot(helper, zn))) > 0.9:
        helper = np.array([0.0, 1.0, 0.0])
    x = normalize(np.cross(helper, zn))
    y = normalize(np.cross(zn, x))
    return x, y


def closest_points_between_lines(
    p1: np.ndarray, u: np.ndarray, p2: np.ndarray, v: np.ndarray
) -> Tuple[Vec3, Vec3]:
    """Closest points of the infinite lines ``p1 + t*u`` and ``p2 + s*v``.

    Parallel lines have no unique answer; both points come back as NaN so
    callers can detect the degenerate case.
    """

    w0 = p1 - p2
    a = _norm_sq(u)
    b = float(np.dot(u, v))
    c = _norm_sq(v)
    d = float(np.dot(u, w0))
    e = float(np.dot(v, w0))
    denom = a * c - b * b
    if abs(denom) <= _DENOM_EPS * max(a * c, _DENOM_EPS):
        nan = np.full(3, np.nan)
        return nan, nan.copy()
    t = (b * e - c * d) / denom
    s = (a * e - b * d) / denom
    return p1 + t * u, p2 + s * v


def ray_depth_to_line(direction: np.ndarray, line_point: np.ndarray, line_direction: np.ndarray) -> float:
    """Distance from the origin to the point on ray ``direction`` nearest a 3D line."""

    on_ray, _ = closest_points_between_lines(np.zeros(3), direction, line_point, line_direction)
    return norm(on_ray)


def max_offset_from_plane(normal: np.ndarray, candidates: Sequence[np.ndarray]) -> Tuple[int, float]:
    """Index and magnitude of the candidate farthest from the plane through the origin."""

    best_index = -1
    best_offset = 0.0
    for idx, candidate in enumerate(candidates):
        offset = abs(float(np.dot(normal, candidate)))
        if offset > best_offset:
            best_offset = offset
            best_index = idx
    return best_index, best_offset


@dataclass(frozen=True)
class Plane3:
    """Plane ``normal . X = distance`` with a unit ``normal``."""

    normal: Tuple[float, float, float]
    distance: float

    @classmethod
    def from_equation(cls, a: float, b: float, c: float) -> "Plane3":
        # a*x + b*y + c*z = 1
        length = math.sqrt(a * a + b * b + c * c)
        if length <= _DENOM_EPS:
            raise ValueError("plane equation has a zero normal")
        return cls(normal=(a / length, b / length, c / length), distance=1.0 / length)


@dataclass(frozen=True)
class Line3:
    first: Tuple[float, float, float]
    second: Tuple[float, float, float]

    @property
    def length(self) -> float:
        return norm(np.asarray(self.second) - np.asarray(self.first))


__all__ = [
    "Vec3",
    "as_vec3",
    "norm",
    "normalize",
    "is_unit",
    "angle_between_undirected",
    "propose_xy_from_z",
    "closest_points_between_lines",
    "ray_depth_to_line",
    "max_offset_from_plane",
    "Plane3",
    "Line3",
]
