import numpy as np
import pytest

from depthgraph.builder import (
    GraphBuildConfig,
    LineObservation,
    RegionAdjacency,
    RegionLineContact,
    RegionObservation,
    RegionOverlap,
    ViewFeatures,
    build_mixed_graph,
)
from depthgraph.demo import AXES, box_lines_scene, two_squares_scene, two_view_scene
from depthgraph.geometry import normalize
from depthgraph.types import RelationType
from depthgraph.validate import GraphValidationError

SQUARE = [(-1, -0.5, 1), (0, -0.5, 1), (0, 0.5, 1), (-1, 0.5, 1)]


def _square(dx: float = 0.0) -> RegionObservation:
    corners = [np.array([x + dx, y, z], dtype=float) for x, y, z in SQUARE]
    return RegionObservation(contour=corners, center=np.mean(corners, axis=0))


def test_two_view_scene_counts():
    scene = two_view_scene()
    report = scene.report

    assert report.regions == 3
    assert report.lines == 4
    assert report.edges[RelationType.REGION_REGION_ADJACENCY] == 1
    assert report.edges[RelationType.REGION_LINE_CONTACT] == 4
    assert report.edges[RelationType.REGION_REGION_OVERLAP] == 1
    assert report.edges[RelationType.LINE_LINE_INCIDENCE] == 1
    assert report.skipped == []
    assert scene.graph.node_count == 7
    assert scene.graph.edge_count == 7
    assert "regions=3" in report.summary()


def test_relation_weights_follow_config():
    scene = two_view_scene()
    weights = {}
    for edge in scene.graph.edges():
        element = scene.graph.edge(edge)
        weights.setdefault(element.relation, set()).add(element.weight)

    assert weights[RelationType.REGION_REGION_ADJACENCY] == {1.0}
    assert weights[RelationType.REGION_LINE_CONTACT] == {1.0}
    assert weights[RelationType.REGION_REGION_OVERLAP] == {100.0}
    assert weights[RelationType.LINE_LINE_INCIDENCE] == {10.0}

    box = box_lines_scene()
    junctions = [
        box.graph.edge(edge).weight
        for edge in box.graph.edges()
        if box.graph.edge(edge).relation is RelationType.LINE_LINE_INTERSECTION
    ]
    assert junctions == [10.0, 10.0, 10.0]


def test_overlap_carries_four_corner_anchors():
    scene = two_view_scene()
    [overlap] = [
        scene.graph.edge(edge)
        for edge in scene.graph.edges()
        if scene.graph.edge(edge).relation is RelationType.REGION_REGION_OVERLAP
    ]
    assert len(overlap.anchors) == 4
    for anchor in overlap.anchors:
        assert np.linalg.norm(anchor) == pytest.approx(1.0)


def test_initial_variables():
    scene = two_squares_scene(fix_first=False)
    for node, var in scene.unary_vars.items():
        element = scene.graph.node(node)
        assert not var.fixed
        if element.is_line:
            assert var.parameters == [1.0]
        else:
            # Both square centers are nearest to +z.
            assert var.parameters == pytest.approx([0.0, 0.0, 1.0])
    assert all(state.enabled and state.slack is None for state in scene.binary_vars.values())

    box = box_lines_scene()
    lines = [node for node in box.graph.nodes() if box.graph.node(node).is_line]
    assert [box.unary_vars[node].parameters for node in lines] == [[1.0]] * 3


def test_importance_ratios_are_normalized():
    scene = two_view_scene()
    assert scene.graph.importance_ratios_are_normalized()
    for edge in scene.graph.edges():
        first, second = scene.graph.edge(edge).importance_ratio
        assert 0.0 < first <= 1.0
        assert 0.0 < second <= 1.0


def test_rejected_observations_are_reported():
    view = ViewFeatures(
        regions=[
            _square(),
            RegionObservation(contour=[(0, 0, 1), (0.1, 0, 1)], center=(0.05, 0, 1)),
            _square(1.0),
        ],
        lines=[LineObservation(first=(0, -0.5, 1), second=(1, -0.5, 1), orientation_class=0)],
        region_adjacencies=[
            RegionAdjacency(0, 1, [(0, -0.5, 1), (0, 0.5, 1)]),
            RegionAdjacency(0, 2, [(0, -0.5, 1), (0, 0.5, 1)]),
        ],
        region_line_contacts=[RegionLineContact(2, 0, [])],
    )
    other = ViewFeatures(regions=[_square(1.5)])

    result = build_mixed_graph(
        [view, other],
        AXES,
        region_overlaps=[RegionOverlap((0, 2), (1, 0), ratio=0.1)],
    )

    report = result.report
    assert report.regions == 3
    assert (0, 1) not in result.region_handles
    assert report.edges[RelationType.REGION_REGION_ADJACENCY] == 1
    assert RelationType.REGION_LINE_CONTACT not in report.edges
    assert RelationType.REGION_REGION_OVERLAP not in report.edges
    assert len(report.skipped) == 4
    assert any("contour" in reason for reason in report.skipped)
    assert any("region missing" in reason for reason in report.skipped)
    assert any("below threshold" in reason for reason in report.skipped)
    assert any("no anchors" in reason for reason in report.skipped)
    assert result.graph.edge_count == 1


def test_lower_overlap_threshold_admits_overlap():
    view = ViewFeatures(regions=[_square(1.0)])
    other = ViewFeatures(regions=[_square(1.5)])
    config = GraphBuildConfig(overlap_ratio_threshold=0.05, overlap_weight=50.0)

    result = build_mixed_graph([view, other], AXES, [RegionOverlap((0, 0), (1, 0), ratio=0.1)], config=config)

    [edge] = list(result.graph.edges())
    assert result.graph.edge(edge).relation is RelationType.REGION_REGION_OVERLAP
    assert result.graph.edge(edge).weight == 50.0


def test_directions_are_normalized():
    view = ViewFeatures(regions=[_square()])
    result = build_mixed_graph([view], AXES)
    element = result.graph.node(result.region_handles[(0, 0)])

    assert np.allclose(element.normalized_center, normalize(np.mean([np.array(c, dtype=float) for c in SQUARE], axis=0)))
    for corner in element.normalized_corners:
        assert np.linalg.norm(corner) == pytest.approx(1.0)


def test_out_of_range_line_class_is_rejected():
    view = ViewFeatures(lines=[LineObservation(first=(0, 0, 1), second=(1, 0, 1), orientation_class=5)])

    with pytest.raises(GraphValidationError):
        build_mixed_graph([view], AXES)

    result = build_mixed_graph([view], AXES, config=GraphBuildConfig(validate=False))
    assert result.report.lines == 1
