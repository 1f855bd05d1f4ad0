import numpy as np
import pytest

from depthgraph.decompose import decompose_graph
from depthgraph.demo import box_lines_scene, two_squares_scene
from depthgraph.graph import MixedGraph
from depthgraph.patch import Patch
from depthgraph.solver.assembly import assemble_system, edge_slack, residuals
from depthgraph.solver.model import SolveOptions
from depthgraph.types import EdgeHandle, InvariantViolation, NodeHandle, OptimizationFailed


def _single_patch(scene):
    [patch] = decompose_graph(scene.graph, scene.unary_vars, scene.binary_vars)
    return patch


def test_fixed_endpoint_moves_to_the_right_hand_side():
    scene = two_squares_scene()
    patch = _single_patch(scene)

    system = assemble_system(scene.graph, patch, scene.vanishing_points)

    anchors = scene.graph.edge(EdgeHandle(0)).anchors
    assert system.variable_count == 3
    assert system.equation_count == 2
    assert system.offsets == {NodeHandle(1): 0}
    assert system.scale_node is None
    dense = system.matrix.toarray()
    for row, anchor in enumerate(anchors):
        assert dense[row] == pytest.approx(-anchor)
        assert system.rhs[row] == pytest.approx(-anchor[2])
    assert system.weights == pytest.approx([1.0, 1.0])


def test_scale_equation_added_without_fixed_nodes():
    scene = two_squares_scene(fix_first=False)
    patch = _single_patch(scene)

    system = assemble_system(scene.graph, patch, scene.vanishing_points)

    assert system.variable_count == 6
    assert system.equation_count == 3
    assert system.scale_node == NodeHandle(0)
    assert system.row_edges == [EdgeHandle(0), EdgeHandle(0), None]
    center = scene.graph.node(NodeHandle(0)).normalized_center
    assert system.matrix.toarray()[2] == pytest.approx(np.concatenate([center, np.zeros(3)]))
    assert system.rhs[2] == 1.0
    assert system.weights[2] == 1.0


def test_weights_follow_use_weights():
    scene = box_lines_scene()
    patch = _single_patch(scene)

    weighted = assemble_system(scene.graph, patch, scene.vanishing_points, SolveOptions(use_weights=True))
    unweighted = assemble_system(scene.graph, patch, scene.vanishing_points, SolveOptions(use_weights=False))

    assert 10.0 in set(weighted.weights.tolist())
    assert set(unweighted.weights.tolist()) == {1.0}
    assert weighted.matrix.shape == unweighted.matrix.shape


def test_edges_between_fixed_nodes_are_skipped():
    scene = two_squares_scene()
    patch = _single_patch(scene)
    for var in patch.node_bindings.values():
        var.fixed = True

    with pytest.raises(OptimizationFailed):
        assemble_system(scene.graph, patch, scene.vanishing_points)


def test_residuals_vanish_at_the_true_solution():
    scene = two_squares_scene()
    patch = _single_patch(scene)
    system = assemble_system(scene.graph, patch, scene.vanishing_points)

    assert residuals(system, np.array([0.0, 0.0, 1.0])) == pytest.approx([0.0, 0.0])
    assert np.all(np.abs(residuals(system, np.array([0.0, 0.0, 2.0]))) > 0.5)


def test_edge_slack_is_weighted_mean_mismatch():
    scene = two_squares_scene()
    patch = _single_patch(scene)
    patch.node_bindings[NodeHandle(1)].parameters = [0.0, 0.0, 2.0]
    anchors = scene.graph.edge(EdgeHandle(0)).anchors

    expected = np.mean([abs(anchor[2] - 2.0 * anchor[2]) for anchor in anchors])
    assert edge_slack(scene.graph, patch, EdgeHandle(0), scene.vanishing_points) == pytest.approx(expected)


def test_singleton_free_patch_has_only_the_scale_equation():
    scene = two_squares_scene(fix_first=False)
    scene.binary_vars[EdgeHandle(0)].enabled = False
    patches = decompose_graph(scene.graph, scene.unary_vars, scene.binary_vars)

    system = assemble_system(scene.graph, patches[1], scene.vanishing_points)

    assert system.equation_count == 1
    assert system.scale_node == NodeHandle(1)


def test_assembly_rejects_disconnected_patches():
    scene = two_squares_scene(fix_first=False)
    patch = Patch(node_bindings={node: var.copy() for node, var in scene.unary_vars.items()})
    with pytest.raises(InvariantViolation):
        assemble_system(scene.graph, patch, scene.vanishing_points)


def test_empty_graph_patch_fails():
    with pytest.raises(OptimizationFailed):
        assemble_system(MixedGraph(), Patch(), [])
