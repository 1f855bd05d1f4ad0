import numpy as np
import pytest

from depthgraph.graph import MixedGraph
from depthgraph.types import (
    BinaryElement,
    InvariantViolation,
    NodeHandle,
    RelationType,
    UnaryElement,
    UnaryKind,
)

Z = np.array([0.0, 0.0, 1.0])


def _region() -> UnaryElement:
    return UnaryElement(UnaryKind.REGION, [Z, Z, Z], Z)


def _adjacency(weight: float = 1.0, anchors: int = 2) -> BinaryElement:
    return BinaryElement(RelationType.REGION_REGION_ADJACENCY, [Z] * anchors, weight)


def test_handles_are_dense_and_stable():
    graph = MixedGraph()
    a = graph.add_node(_region())
    b = graph.add_node(_region())
    edge = graph.add_edge(a, b, _adjacency())

    assert (a, b, edge) == (0, 1, 0)
    assert graph.node_count == 2
    assert graph.edge_count == 1
    assert graph.endpoints(edge) == (a, b)
    assert list(graph.nodes()) == [a, b]
    assert graph.neighbors(a) == (edge,)


def test_add_edge_rejects_invalid_handles_and_self_loops():
    graph = MixedGraph()
    a = graph.add_node(_region())

    with pytest.raises(InvariantViolation):
        graph.add_edge(a, NodeHandle(7), _adjacency())
    with pytest.raises(InvariantViolation):
        graph.add_edge(a, a, _adjacency())
    with pytest.raises(InvariantViolation):
        graph.node(NodeHandle(3))


def test_other_endpoint():
    graph = MixedGraph()
    a, b, c = (graph.add_node(_region()) for _ in range(3))
    edge = graph.add_edge(a, b, _adjacency())

    assert graph.other_endpoint(edge, a) == b
    assert graph.other_endpoint(edge, b) == a
    with pytest.raises(InvariantViolation):
        graph.other_endpoint(edge, c)


def test_importance_ratios_split_weighted_anchor_counts():
    graph = MixedGraph()
    hub, left, right = (graph.add_node(_region()) for _ in range(3))
    e1 = graph.add_edge(hub, left, _adjacency(weight=1.0, anchors=2))
    e2 = graph.add_edge(right, hub, _adjacency(weight=3.0, anchors=2))

    graph.compute_importance_ratios()

    assert graph.edge(e1).importance_ratio == pytest.approx((0.25, 1.0))
    assert graph.edge(e2).importance_ratio == pytest.approx((1.0, 0.75))
    assert graph.importance_ratios_are_normalized()


def test_zero_weight_edges_get_zero_ratio():
    graph = MixedGraph()
    a = graph.add_node(_region())
    b = graph.add_node(_region())
    edge = graph.add_edge(a, b, _adjacency(weight=0.0))

    graph.compute_importance_ratios()

    assert graph.edge(edge).importance_ratio == (0.0, 0.0)
    assert graph.importance_ratios_are_normalized()
