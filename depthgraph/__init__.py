from .types import (
    NodeHandle,
    EdgeHandle,
    FREE_ORIENTATION,
    DepthGraphError,
    InvariantViolation,
    OptimizationFailed,
    UnaryKind,
    RelationType,
    UnaryElement,
    BinaryElement,
)
from .geometry import Plane3, Line3
from .variables import UnaryVariable, BinaryVariable, UnaryVarTable, BinaryVarTable
from .graph import MixedGraph
from .validate import validate_graph, GraphValidationError
from .patch import (
    Patch,
    edges_valid_in_patch,
    nodes_connected_in_patch,
    ensure_patch_invariants,
    make_patch_on_edge,
    make_star_patch,
    write_back,
)
from .decompose import (
    decompose_graph,
    split_patch,
    minimum_spanning_tree_patch,
    edge_order_from_less,
    slack_key,
)
from .solver import (
    SolverBackend,
    SolveOptions,
    DepthSolution,
    get_default_solve_options,
    set_default_solve_options,
    necessary_anchors,
    optimize_patch,
    optimize_patches,
    refine_patch,
    edge_anchor_distance_sum,
    edge_distance,
    average_edge_distance,
    average_center_depth,
)
from .consistency import check_fixed_consistency, FixedConsistencyWarning
from .builder import (
    RegionObservation,
    LineObservation,
    RegionAdjacency,
    RegionLineContact,
    LineRelation,
    LineRelationKind,
    ViewFeatures,
    RegionOverlap,
    LineIncidence,
    GraphBuildConfig,
    BuildReport,
    GraphBuildResult,
    build_mixed_graph,
)

__all__ = [
    'NodeHandle',
    'EdgeHandle',
    'FREE_ORIENTATION',
    'DepthGraphError',
    'InvariantViolation',
    'OptimizationFailed',
    'UnaryKind',
    'RelationType',
    'UnaryElement',
    'BinaryElement',
    'Plane3',
    'Line3',
    'UnaryVariable',
    'BinaryVariable',
    'UnaryVarTable',
    'BinaryVarTable',
    'MixedGraph',
    'validate_graph',
    'GraphValidationError',
    'Patch',
    'edges_valid_in_patch',
    'nodes_connected_in_patch',
    'ensure_patch_invariants',
    'make_patch_on_edge',
    'make_star_patch',
    'write_back',
    'decompose_graph',
    'split_patch',
    'minimum_spanning_tree_patch',
    'edge_order_from_less',
    'slack_key',
    'SolverBackend',
    'SolveOptions',
    'DepthSolution',
    'get_default_solve_options',
    'set_default_solve_options',
    'necessary_anchors',
    'optimize_patch',
    'optimize_patches',
    'refine_patch',
    'edge_anchor_distance_sum',
    'edge_distance',
    'average_edge_distance',
    'average_center_depth',
    'check_fixed_consistency',
    'FixedConsistencyWarning',
    'RegionObservation',
    'LineObservation',
    'RegionAdjacency',
    'RegionLineContact',
    'LineRelation',
    'LineRelationKind',
    'ViewFeatures',
    'RegionOverlap',
    'LineIncidence',
    'GraphBuildConfig',
    'BuildReport',
    'GraphBuildResult',
    'build_mixed_graph',
]
