import numpy as np
import pytest

from depthgraph.decompose import (
    connected_components,
    decompose_graph,
    edge_order_from_less,
    minimum_spanning_tree_patch,
    slack_key,
    split_patch,
)
from depthgraph.graph import MixedGraph
from depthgraph.patch import Patch, edges_valid_in_patch, nodes_connected_in_patch
from depthgraph.types import BinaryElement, InvariantViolation, RelationType, UnaryElement, UnaryKind
from depthgraph.variables import BinaryVariable, UnaryVariable

Z = np.array([0.0, 0.0, 1.0])


def _graph(node_count, edges):
    graph = MixedGraph()
    for _ in range(node_count):
        graph.add_node(UnaryElement(UnaryKind.REGION, [Z, Z, Z], Z))
    handles = [
        graph.add_edge(a, b, BinaryElement(RelationType.REGION_REGION_ADJACENCY, [Z, Z])) for a, b in edges
    ]
    unary_vars = {node: UnaryVariable([0.0, 0.0, 1.0]) for node in graph.nodes()}
    binary_vars = {edge: BinaryVariable() for edge in handles}
    return graph, unary_vars, binary_vars


def _assert_invariants(graph, patch):
    assert edges_valid_in_patch(graph, patch)
    assert nodes_connected_in_patch(graph, patch)


def test_connected_components_labels_in_visit_order():
    adjacency = {0: [1], 1: [0], 2: [], 3: [4], 4: [3]}
    labels = connected_components([0, 1, 2, 3, 4], lambda node: adjacency[node])
    assert labels == {0: 0, 1: 0, 2: 1, 3: 2, 4: 2}


def test_decompose_partitions_nodes_and_enabled_edges():
    graph, unary_vars, binary_vars = _graph(6, [(0, 1), (1, 2), (3, 4), (4, 5)])
    binary_vars[3].enabled = False

    patches = decompose_graph(graph, unary_vars, binary_vars)

    node_sets = [patch.nodes for patch in patches]
    assert sorted(node for nodes in node_sets for node in nodes) == list(range(6))
    assert {0, 1, 2} in node_sets and {3, 4} in node_sets and {5} in node_sets
    edges = sorted(edge for patch in patches for edge in patch.edges)
    assert edges == [0, 1, 2]
    for patch in patches:
        _assert_invariants(graph, patch)


def test_decompose_copies_bindings():
    graph, unary_vars, binary_vars = _graph(2, [(0, 1)])
    [patch] = decompose_graph(graph, unary_vars, binary_vars)

    patch.node_bindings[0].parameters[2] = 5.0
    patch.edge_bindings[0].enabled = False

    assert unary_vars[0].parameters == [0.0, 0.0, 1.0]
    assert binary_vars[0].enabled


def test_isolated_node_is_a_singleton_patch():
    graph, unary_vars, binary_vars = _graph(3, [(0, 1)])
    patches = decompose_graph(graph, unary_vars, binary_vars)
    singleton = [patch for patch in patches if patch.nodes == {2}]
    assert len(singleton) == 1
    assert singleton[0].edges == set()


def test_split_patch_by_predicate():
    graph, unary_vars, binary_vars = _graph(3, [(0, 1), (1, 2)])
    [patch] = decompose_graph(graph, unary_vars, binary_vars)

    pieces = split_patch(graph, patch, lambda edge: edge != 1)

    assert sorted(sorted(piece.nodes) for piece in pieces) == [[0, 1], [2]]
    for piece in pieces:
        _assert_invariants(graph, piece)


def test_split_patch_keeps_rejected_edges_inside_a_piece():
    graph, unary_vars, binary_vars = _graph(3, [(0, 1), (1, 2), (0, 2)])
    [patch] = decompose_graph(graph, unary_vars, binary_vars)

    [piece] = split_patch(graph, patch, lambda edge: edge != 2)

    assert piece.edges == {0, 1, 2}


def test_split_patch_rejects_disconnected_input():
    graph, unary_vars, binary_vars = _graph(2, [])
    patch = Patch(node_bindings={0: unary_vars[0], 1: unary_vars[1]})
    with pytest.raises(InvariantViolation):
        split_patch(graph, patch)


def test_minimum_spanning_tree_keeps_lowest_keys():
    # Complete graph on four nodes.
    edges = [(0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3)]
    graph, unary_vars, binary_vars = _graph(4, edges)
    for edge, slack in zip(range(6), [5.0, 0.1, 4.0, 0.2, 3.0, 0.3]):
        binary_vars[edge].slack = slack
    [patch] = decompose_graph(graph, unary_vars, binary_vars)

    tree = minimum_spanning_tree_patch(graph, patch, slack_key(patch))

    assert tree.nodes == patch.nodes
    assert len(tree.edges) == 3
    assert tree.edges == {1, 3, 5}
    _assert_invariants(graph, tree)


def test_edge_order_from_less_matches_key_order():
    edges = [(0, 1), (1, 2), (2, 3), (3, 0)]
    graph, unary_vars, binary_vars = _graph(4, edges)
    [patch] = decompose_graph(graph, unary_vars, binary_vars)
    preference = {0: 3, 1: 0, 2: 1, 3: 2}

    tree = minimum_spanning_tree_patch(
        graph, patch, edge_order_from_less(lambda a, b: preference[a] < preference[b])
    )

    assert tree.edges == {1, 2, 3}


def test_slack_key_puts_unsolved_edges_last():
    graph, unary_vars, binary_vars = _graph(3, [(0, 1), (1, 2), (0, 2)])
    binary_vars[0].slack = 2.0
    binary_vars[2].slack = 1.0
    [patch] = decompose_graph(graph, unary_vars, binary_vars)

    assert sorted(patch.edges, key=slack_key(patch)) == [2, 0, 1]


def test_slack_key_accepts_a_slack_mapping():
    graph, unary_vars, binary_vars = _graph(3, [(0, 1), (1, 2), (0, 2)])
    binary_vars[0].slack = 0.0
    [patch] = decompose_graph(graph, unary_vars, binary_vars)

    # Patch slack is ignored when a mapping is given.
    assert sorted(patch.edges, key=slack_key({1: 3.0, 2: 0.5})) == [2, 1, 0]
