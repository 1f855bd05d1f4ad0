"""Solve the two-view scene with both numerical back ends and compare."""

from depthgraph import SolveOptions, SolverBackend, average_edge_distance, decompose_graph, optimize_patches
from depthgraph.demo import two_view_scene


def main() -> None:
    for backend in SolverBackend:
        scene = two_view_scene()
        patches = decompose_graph(scene.graph, scene.unary_vars, scene.binary_vars)
        solutions = optimize_patches(scene.graph, patches, scene.vanishing_points, SolveOptions(backend=backend))
        print(f"{backend.value}:")
        for solution in solutions:
            distance = average_edge_distance(scene.graph, solution.patch, scene.vanishing_points)
            print(
                f"  {solution.patch.name}: success={solution.success} objective={solution.objective:.3e} "
                f"mean edge distance={distance:.3e}"
            )


if __name__ == "__main__":
    main()
