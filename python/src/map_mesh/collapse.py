"""Progressive mesh simplification by greedy edge collapse.

Follows Stan Melax's progressive mesh polygon reduction: every vertex caches
the cheapest neighbour to collapse into, and the globally cheapest vertex is
collapsed until the target vertex count is reached.
"""

from __future__ import annotations

import heapq
import logging
from typing import Optional

from map_mesh.errors import GraphInvariantError
from map_mesh.graph import MeshGraph, distance, dot

logger = logging.getLogger(__name__)

# Cost of a vertex with no neighbours; always collapsed first.
ISOLATED_COST = -0.01


class EdgeCollapseReducer:
    """Minimum-cost edge collapse over a :class:`MeshGraph`.

    Example:
        graph = MeshGraph.build(mesh)
        reducer = EdgeCollapseReducer(graph)
        reducer.reduce(int(mesh.vertex_count * 0.9))
        reduced = graph.to_buffers()
    """

    def __init__(self, graph: MeshGraph, collapse_enabled: bool = True) -> None:
        """Initialize reducer.

        Args:
            graph: Graph built with neighbour tracking
            collapse_enabled: When off, costs are computed but nothing is
                collapsed and the graph is emitted unchanged
        """
        if not graph.track_neighbours:
            raise GraphInvariantError("Edge collapse needs a graph with neighbour tracking")

        self.graph = graph
        self.collapse_enabled = collapse_enabled
        self.collapses = 0

        self._active = {
            index for index, vertex in enumerate(graph.vertices) if not vertex.removed
        }
        self._versions = {index: 0 for index in self._active}
        self._live = sum(1 for index in self._active if graph.vertices[index].triangles)
        self._heap: list[tuple[float, int, int]] = []

        for index in self._active:
            self.compute_cost(index)

    def edge_cost(self, u: int, v: int) -> float:
        """Cost of collapsing ``u`` into its neighbour ``v``."""
        graph = self.graph
        vertex = graph.vertices[u]
        edge_length = distance(vertex.position, graph.vertices[v].position)

        sides = [
            graph.triangles[t] for t in vertex.triangles
            if graph.triangles[t].has_vertex(v)
        ]

        curvature = 0.0
        for t in vertex.triangles:
            normal = graph.triangles[t].normal
            min_curvature = 1.0
            for side in sides:
                min_curvature = min(min_curvature, (1.0 - dot(normal, side.normal)) / 2.0)
            curvature = max(curvature, min_curvature)

        return edge_length * curvature

    def compute_cost(self, u: int) -> None:
        """Recompute the cached collapse target and cost of ``u``."""
        vertex = self.graph.vertices[u]

        if not vertex.neighbours:
            vertex.cost = ISOLATED_COST
            vertex.collapse = None
        else:
            vertex.cost = float("inf")
            vertex.collapse = None
            # Sorted so that equal costs resolve the same way on every run.
            for n in sorted(vertex.neighbours):
                cost = self.edge_cost(u, n)
                if vertex.collapse is None or cost < vertex.cost:
                    vertex.collapse = n
                    vertex.cost = cost

        self._versions[u] += 1
        heapq.heappush(self._heap, (vertex.cost, u, self._versions[u]))

    def _pop_minimum(self) -> Optional[int]:
        while self._heap:
            _, u, version = heapq.heappop(self._heap)
            if u in self._active and self._versions[u] == version:
                return u
        return None

    @property
    def vertex_count(self) -> int:
        """Vertices that still have triangles."""
        return self._live

    def reduce(self, target_vertex_count: int) -> int:
        """Collapse vertices until at most ``target_vertex_count`` have triangles.

        Returns:
            Number of vertices collapsed or removed
        """
        if not self.collapse_enabled:
            logger.debug("Edge collapse disabled, keeping %d vertices", self.vertex_count)
            return 0

        performed = 0
        while self._live > target_vertex_count:
            u = self._pop_minimum()
            if u is None:
                break
            self.collapse(u, self.graph.vertices[u].collapse)
            performed += 1

        # Vertices left without triangles are not counted but still dropped.
        for u in sorted(self._active):
            if not self.graph.vertices[u].triangles:
                self.collapse(u, None)
                performed += 1

        self.collapses += performed
        return performed

    def collapse(self, u: int, v: Optional[int]) -> None:
        """Merge ``u`` into ``v``, or drop ``u`` if it has no target."""
        graph = self.graph

        if v is None:
            graph.remove_vertex(u)
            self._active.discard(u)
            return

        original_neighbours = list(graph.vertices[u].neighbours)
        was_live = [n for n in original_neighbours if graph.vertices[n].triangles]
        if graph.vertices[u].triangles:
            self._live -= 1

        for t in list(graph.vertices[u].triangles):
            if graph.triangles[t].has_vertex(v):
                graph.remove_triangle(t)

        for t in list(graph.vertices[u].triangles):
            graph.replace_vertex(t, u, v)

        graph.remove_vertex(u)
        self._active.discard(u)
        self._live -= sum(1 for n in was_live if not graph.vertices[n].triangles)

        for n in original_neighbours:
            if n in self._active:
                self.compute_cost(n)
