"""Deduplicated vertex/triangle adjacency graph.

Vertices and triangles live in index-addressed pools owned by the graph.
Every cross reference is a pool index, so removing an element only marks it
dead and clears its references; nothing ever points at freed memory.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator, Optional

import numpy as np

from map_mesh.errors import (
    DegenerateInputError,
    DegenerateTriangleError,
    GraphInvariantError,
)
from map_mesh.models import MeshBuffers

Vec3 = tuple[float, float, float]

ZERO_COLOR = (0.0, 0.0, 0.0, 0.0)
ZERO_UV = (0.0, 0.0)


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def normalize(a: Vec3) -> Vec3:
    length = math.sqrt(dot(a, a))
    if length == 0.0:
        # Zero-area triangle, tolerated.
        return (0.0, 0.0, 0.0)
    return (a[0] / length, a[1] / length, a[2] / length)


def distance(a: Vec3, b: Vec3) -> float:
    d = sub(a, b)
    return math.sqrt(dot(d, d))


@dataclass
class Vertex:
    position: Vec3
    normal: Vec3
    color: tuple[float, float, float, float] = ZERO_COLOR
    uv: tuple[float, float] = ZERO_UV
    neighbours: set[int] = field(default_factory=set)
    triangles: list[int] = field(default_factory=list)
    new_index: int = -1
    removed: bool = False

    # Edge collapse state
    cost: float = 0.0
    collapse: Optional[int] = None

    @property
    def key(self) -> tuple:
        return (self.position, self.normal, self.color, self.uv)

    @property
    def live(self) -> bool:
        return bool(self.triangles)


@dataclass
class Triangle:
    vertices: list[int]
    normal: Vec3 = (0.0, 0.0, 0.0)
    removed: bool = False

    def has_vertex(self, vertex: int) -> bool:
        return vertex in self.vertices


class MeshGraph:
    """Vertex/triangle adjacency built from flat mesh buffers.

    Vertices are keyed by exact equality of (position, normal, color, uv);
    two input entries with identical attributes become one graph vertex.
    Neighbour sets are only maintained when ``track_neighbours`` is set,
    which the edge collapse reducer needs and the type strategies do not.
    """

    def __init__(
        self,
        track_neighbours: bool = True,
        has_colors: bool = False,
        has_uv: bool = False,
    ) -> None:
        self.track_neighbours = track_neighbours
        self.has_colors = has_colors
        self.has_uv = has_uv

        self.vertices: list[Vertex] = []
        self.triangles: list[Triangle] = []
        self._lookup: dict[tuple, int] = {}

        # Input statistics
        self.input_vertex_count = 0
        self.input_triangle_count = 0
        self.skipped_triangles = 0

    @classmethod
    def build(cls, mesh: MeshBuffers, track_neighbours: bool = True) -> MeshGraph:
        """Build a graph from mesh buffers.

        Triangles whose three indices are all zero are skipped: the map
        generator emits them as padding.

        Raises:
            DegenerateInputError: Malformed buffers.
            DegenerateTriangleError: A triangle repeats a vertex.
        """
        if len(mesh.triangles) % 3 != 0:
            raise DegenerateInputError(
                f"Triangle index count {len(mesh.triangles)} is not a multiple of 3"
            )

        count = len(mesh.positions)
        for name, channel in (("normals", mesh.normals), ("colors", mesh.colors), ("uv", mesh.uv)):
            if channel is not None and len(channel) != count:
                raise DegenerateInputError(
                    f"Mesh has {count} positions but {len(channel)} {name}"
                )

        graph = cls(
            track_neighbours=track_neighbours,
            has_colors=mesh.colors is not None,
            has_uv=mesh.uv is not None,
        )
        graph.input_vertex_count = count
        graph.input_triangle_count = len(mesh.triangles) // 3

        positions = [tuple(p) for p in mesh.positions.tolist()]
        normals = [tuple(n) for n in mesh.normals.tolist()]
        colors = [tuple(c) for c in mesh.colors.tolist()] if mesh.colors is not None else None
        uvs = [tuple(t) for t in mesh.uv.tolist()] if mesh.uv is not None else None
        indices = mesh.triangles.tolist()

        for t in range(0, len(indices), 3):
            a, b, c = indices[t], indices[t + 1], indices[t + 2]
            if a == 0 and b == 0 and c == 0:
                graph.skipped_triangles += 1
                continue

            if a == b or a == c or b == c:
                raise DegenerateTriangleError(t // 3, (a, b, c))

            corners = []
            for index in (a, b, c):
                if not (0 <= index < count):
                    raise DegenerateInputError(
                        f"Triangle {t // 3} references vertex {index}, mesh has {count}"
                    )
                corners.append(graph.add_vertex(
                    positions[index],
                    normals[index],
                    colors[index] if colors is not None else ZERO_COLOR,
                    uvs[index] if uvs is not None else ZERO_UV,
                ))

            # Distinct indices may still share every attribute.
            if len(set(corners)) != 3:
                raise DegenerateTriangleError(t // 3, (a, b, c))

            graph.add_triangle(*corners)

        return graph

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def add_vertex(
        self,
        position: Vec3,
        normal: Vec3,
        color: tuple[float, float, float, float] = ZERO_COLOR,
        uv: tuple[float, float] = ZERO_UV,
    ) -> int:
        """Look up or insert a vertex, returning its pool index.

        A dead vertex still in the lookup is revived when matched.
        """
        vertex = Vertex(
            position=tuple(float(x) for x in position),
            normal=tuple(float(x) for x in normal),
            color=tuple(float(x) for x in color),
            uv=tuple(float(x) for x in uv),
        )
        existing = self._lookup.get(vertex.key)
        if existing is not None:
            self.vertices[existing].removed = False
            return existing

        index = len(self.vertices)
        self.vertices.append(vertex)
        self._lookup[vertex.key] = index
        return index

    def add_triangle(self, a: int, b: int, c: int) -> int:
        if a == b or a == c or b == c:
            raise GraphInvariantError(f"Triangle repeats a vertex: {(a, b, c)}")

        index = len(self.triangles)
        triangle = Triangle(vertices=[a, b, c])
        self.triangles.append(triangle)

        for v in triangle.vertices:
            vertex = self.vertices[v]
            if vertex.removed:
                raise GraphInvariantError(f"Vertex {v} was removed")
            vertex.triangles.append(index)
            if self.track_neighbours:
                vertex.neighbours.update(u for u in triangle.vertices if u != v)

        self.compute_normal(index)
        return index

    def compute_normal(self, t: int) -> None:
        triangle = self.triangles[t]
        p0, p1, p2 = (self.vertices[v].position for v in triangle.vertices)
        triangle.normal = normalize(cross(sub(p1, p0), sub(p2, p1)))

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def _detach(self, vertex: int, t: int) -> None:
        try:
            self.vertices[vertex].triangles.remove(t)
        except ValueError:
            raise GraphInvariantError(
                f"Triangle {t} is not attached to vertex {vertex}"
            ) from None

    def _remove_if_non_neighbour(self, vertex: int, other: int) -> None:
        v = self.vertices[vertex]
        if other not in v.neighbours:
            return
        for t in v.triangles:
            if self.triangles[t].has_vertex(other):
                return
        v.neighbours.discard(other)

    def remove_triangle(self, t: int) -> None:
        """Detach a triangle from all three of its vertices."""
        triangle = self.triangles[t]
        if triangle.removed:
            raise GraphInvariantError(f"Triangle {t} already removed")

        for v in triangle.vertices:
            self._detach(v, t)

        if self.track_neighbours:
            for i in range(3):
                a = triangle.vertices[i]
                b = triangle.vertices[(i + 1) % 3]
                self._remove_if_non_neighbour(a, b)
                self._remove_if_non_neighbour(b, a)

        triangle.removed = True

    def remove_vertex(self, vertex: int) -> None:
        """Remove a vertex that no longer has any triangles."""
        v = self.vertices[vertex]
        if v.triangles:
            raise GraphInvariantError(
                f"Vertex {vertex} still has {len(v.triangles)} triangles"
            )

        for n in v.neighbours:
            self.vertices[n].neighbours.discard(vertex)
        v.neighbours.clear()
        v.removed = True

    def kill_vertex(self, vertex: int) -> None:
        """Remove a vertex together with every triangle using it."""
        for t in list(self.vertices[vertex].triangles):
            self.remove_triangle(t)
        self.remove_vertex(vertex)

    def replace_vertex(self, t: int, old: int, new: int) -> None:
        """Re-point one corner of a triangle from ``old`` to ``new``."""
        triangle = self.triangles[t]
        if old not in triangle.vertices:
            raise GraphInvariantError(f"Vertex {old} is not in triangle {t}")
        if new in triangle.vertices:
            raise GraphInvariantError(f"Vertex {new} is already in triangle {t}")

        triangle.vertices[triangle.vertices.index(old)] = new

        self._detach(old, t)
        new_triangles = self.vertices[new].triangles
        if t in new_triangles:
            raise GraphInvariantError(f"Triangle {t} already attached to vertex {new}")
        new_triangles.append(t)

        if self.track_neighbours:
            for v in triangle.vertices:
                self._remove_if_non_neighbour(old, v)
                self._remove_if_non_neighbour(v, old)

            for v in triangle.vertices:
                self.vertices[v].neighbours.update(
                    u for u in triangle.vertices if u != v
                )

        self.compute_normal(t)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def live_vertices(self) -> Iterator[int]:
        for index, vertex in enumerate(self.vertices):
            if vertex.triangles:
                yield index

    def live_triangles(self) -> Iterator[int]:
        for index, triangle in enumerate(self.triangles):
            if not triangle.removed:
                yield index

    @property
    def live_vertex_count(self) -> int:
        return sum(1 for _ in self.live_vertices())

    @property
    def triangle_count(self) -> int:
        return sum(1 for _ in self.live_triangles())

    def to_buffers(self) -> MeshBuffers:
        """Emit live vertices and triangles with compacted indices."""
        live = list(self.live_vertices())
        for new_index, v in enumerate(live):
            self.vertices[v].new_index = new_index

        vertices = [self.vertices[v] for v in live]
        triangles = [
            self.vertices[v].new_index
            for t in self.live_triangles()
            for v in self.triangles[t].vertices
        ]

        return MeshBuffers(
            positions=np.array([v.position for v in vertices], dtype=np.float64).reshape(-1, 3),
            normals=np.array([v.normal for v in vertices], dtype=np.float64).reshape(-1, 3),
            triangles=np.array(triangles, dtype=np.int64),
            colors=(
                np.array([v.color for v in vertices], dtype=np.float64).reshape(-1, 4)
                if self.has_colors else None
            ),
            uv=(
                np.array([v.uv for v in vertices], dtype=np.float64).reshape(-1, 2)
                if self.has_uv else None
            ),
        )
