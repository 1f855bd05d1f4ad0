import math

import pytest

from depthgraph.decompose import decompose_graph
from depthgraph.demo import two_squares_scene
from depthgraph.patch import Patch
from depthgraph.solver import (
    average_center_depth,
    average_edge_distance,
    edge_anchor_distance_sum,
    edge_distance,
    optimize_patch,
)
from depthgraph.types import EdgeHandle, InvariantViolation, NodeHandle


def _halved_scene():
    """The right square is put at half the depth of the left one."""

    scene = two_squares_scene()
    [patch] = decompose_graph(scene.graph, scene.unary_vars, scene.binary_vars)
    patch.node_bindings[NodeHandle(1)].parameters = [0.0, 0.0, 2.0]
    return scene, patch


def test_edge_distances():
    scene, patch = _halved_scene()
    edge = EdgeHandle(0)

    # Anchors (0, +-0.5, 1): depth sqrt(1.25) on the left, half of it on the right.
    expected_sum = math.sqrt(1.25)
    assert edge_anchor_distance_sum(scene.graph, edge, patch, scene.vanishing_points) == pytest.approx(expected_sum)
    assert edge_distance(scene.graph, edge, patch, scene.vanishing_points) == pytest.approx(expected_sum / 2)
    assert average_edge_distance(scene.graph, patch, scene.vanishing_points) == pytest.approx(expected_sum / 2)


def test_average_center_depth():
    scene, patch = _halved_scene()
    expected = (math.sqrt(1.25) + math.sqrt(1.25) / 2) / 2
    assert average_center_depth(scene.graph, patch, scene.vanishing_points) == pytest.approx(expected)


def test_distances_vanish_after_optimization():
    scene, patch = _halved_scene()
    optimize_patch(scene.graph, patch, scene.vanishing_points)
    assert average_edge_distance(scene.graph, patch, scene.vanishing_points) == pytest.approx(0.0, abs=1e-6)


def test_edge_outside_patch_is_rejected():
    scene, _ = _halved_scene()
    with pytest.raises(InvariantViolation):
        edge_anchor_distance_sum(scene.graph, EdgeHandle(0), Patch(), scene.vanishing_points)


def test_empty_patch_statistics():
    scene, _ = _halved_scene()
    assert average_edge_distance(scene.graph, Patch(), scene.vanishing_points) == 0.0
    assert average_center_depth(scene.graph, Patch(), scene.vanishing_points) == 0.0
