import math

import numpy as np
import pytest

from depthgraph.demo import box_lines_scene
from depthgraph.geometry import (
    Plane3,
    closest_points_between_lines,
    is_unit,
    normalize,
    propose_xy_from_z,
    ray_depth_to_line,
)
from depthgraph.types import NodeHandle, UnaryElement, UnaryKind
from depthgraph.variables import UnaryVariable, initial_unary_variable, parameter_count

AXES = [np.array([1.0, 0.0, 0.0]), np.array([0.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0])]


def _square(orientation_class=-1):
    corners = [normalize(p) for p in [(-1, -1, 2), (1, -1, 2), (1, 1, 2), (-1, 1, 2)]]
    return UnaryElement(UnaryKind.REGION, corners, normalize((0, 0, 1)), orientation_class)


def test_normalize_rejects_zero_vectors():
    with pytest.raises(ValueError):
        normalize([0.0, 0.0, 0.0])
    assert is_unit(normalize([3.0, 4.0, 0.0]))


def test_propose_xy_from_z_is_orthonormal():
    z = normalize([0.2, -0.3, 1.0])
    x, y = propose_xy_from_z(z)
    basis = np.stack([x, y, z])
    assert np.allclose(basis @ basis.T, np.eye(3))


def test_parallel_lines_have_no_closest_points():
    p, q = closest_points_between_lines(np.zeros(3), AXES[2], np.array([1.0, 0, 0]), AXES[2])
    assert np.all(np.isnan(p)) and np.all(np.isnan(q))
    assert math.isnan(ray_depth_to_line(AXES[2], np.array([0.1, 0, 1.0]), AXES[2]))


def test_plane_from_equation():
    plane = Plane3.from_equation(0.0, 0.0, 2.0)
    assert plane.normal == pytest.approx((0.0, 0.0, 1.0))
    assert plane.distance == pytest.approx(0.5)


def test_free_region_coefficients_are_the_direction():
    element = _square()
    var = UnaryVariable([0.0, 0.0, 0.5])
    direction = normalize([0.3, 0.1, 1.0])

    assert parameter_count(element) == 3
    assert np.allclose(var.coefficients(direction, element, AXES), direction)
    # Plane z = 2 seen along the optical axis.
    assert var.depth_at_center(element, AXES) == pytest.approx(2.0)


def test_oriented_region_normal_faces_its_center():
    element = _square(orientation_class=2)
    flipped = [AXES[0], AXES[1], -AXES[2]]
    var = UnaryVariable([0.5])
    direction = normalize([0.3, 0.1, 1.0])

    assert parameter_count(element) == 1
    assert var.coefficients(direction, element, flipped) == pytest.approx([direction[2]])
    assert var.interpret_as_plane(element, flipped).normal == pytest.approx((0.0, 0.0, 1.0))


def test_depth_is_infinite_for_zero_inverse_depth():
    element = _square()
    var = UnaryVariable([1.0, 0.0, 0.0])
    assert math.isinf(var.depth_at(np.array([0.0, 0.0, 1.0]), element, AXES))


def test_line_coefficient_is_one_at_its_center():
    scene = box_lines_scene()
    line = scene.graph.node(NodeHandle(2))
    var = UnaryVariable([0.5])
    assert var.coefficients(line.normalized_center, line, AXES) == pytest.approx([1.0])
    assert var.depth_at_center(line, AXES) == pytest.approx(2.0)


def test_line_coefficient_is_nan_along_its_direction():
    element = UnaryElement(
        UnaryKind.LINE, [normalize((0.1, 0, 1)), normalize((0.1, 0, 2))], normalize((0.1, 0, 1)), 2
    )
    coeffs = UnaryVariable([1.0]).coefficients(AXES[2], element, AXES)
    assert np.all(np.isnan(coeffs))


def test_interpret_as_line_recovers_the_segment():
    scene = box_lines_scene()
    node = NodeHandle(2)
    line = scene.graph.node(node)
    var = UnaryVariable([1.0 / scene.center_depths[node]])

    segment = var.interpret_as_line(line, AXES)

    assert segment.first == pytest.approx((0.5, 0.3, 3.0))
    assert segment.second == pytest.approx((1.5, 0.3, 3.0))
    assert segment.length == pytest.approx(1.0)


def test_interpret_as_plane_for_box_face():
    scene = box_lines_scene()
    element = scene.graph.node(NodeHandle(0))
    plane = UnaryVariable([0.0, 1.0 / 0.3, 0.0]).interpret_as_plane(element, AXES)
    assert plane.normal == pytest.approx((0.0, 1.0, 0.0))
    assert plane.distance == pytest.approx(0.3)


def test_initial_variables():
    region = _square()
    assert initial_unary_variable(region, AXES, nearest_class=2).parameters == pytest.approx([0.0, 0.0, 1.0])
    flipped = [AXES[0], AXES[1], -AXES[2]]
    assert initial_unary_variable(region, flipped, nearest_class=2).parameters == pytest.approx([0.0, 0.0, 1.0])
    line = box_lines_scene().graph.node(NodeHandle(3))
    assert initial_unary_variable(line, AXES).parameters == [1.0]
