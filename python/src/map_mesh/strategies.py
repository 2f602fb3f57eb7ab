"""Reduction strategies for floor and wall meshes.

Both operate in place on a :class:`MeshGraph` built without neighbour
tracking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from map_mesh.errors import DegenerateFaceError
from map_mesh.graph import MeshGraph, Vec3

logger = logging.getLogger(__name__)

X, Y, Z = 0, 1, 2


def strip_floor(graph: MeshGraph, epsilon: float = 2.0) -> int:
    """Remove the invisible underside slab of a floor mesh.

    Every vertex within ``epsilon`` of the lowest height is killed, taking
    its triangles with it. Vertices only used by those triangles die too.

    Returns:
        Number of vertices killed
    """
    live = list(graph.live_vertices())
    if not live:
        return 0

    heights = [graph.vertices[v].position[Y] for v in live]
    min_y = min(heights)
    max_y = max(heights)

    killed = 0
    for v in live:
        if graph.vertices[v].position[Y] - min_y <= epsilon:
            graph.kill_vertex(v)
            killed += 1

    logger.debug(
        "Floor strip: heights %.3f..%.3f, removed %d vertices below %.3f",
        min_y, max_y, killed, min_y + epsilon,
    )
    return killed


class _DisjointSet:
    def __init__(self, size: int) -> None:
        self.parent = list(range(size))

    def find(self, item: int) -> int:
        root = item
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]
        return root

    def union(self, a: int, b: int) -> None:
        a, b = self.find(a), self.find(b)
        if a != b:
            self.parent[max(a, b)] = min(a, b)


@dataclass
class Face:
    """Connected coplanar triangles sharing one normal."""

    normal: Vec3
    triangles: list[int] = field(default_factory=list)

    # Per axis: (min value, vertex at min, max value, vertex at max)
    extents: list[tuple[float, int, float, int]] = field(default_factory=list)
    positions: set[Vec3] = field(default_factory=set)

    def extent(self, axis: int) -> float:
        low, _, high, _ = self.extents[axis]
        return high - low


def find_faces(graph: MeshGraph) -> list[Face]:
    """Group live triangles into faces.

    Two triangles share a face when their normals are exactly equal and they
    have a vertex position in common; the relation is closed transitively.
    """
    triangles = list(graph.live_triangles())
    sets = _DisjointSet(len(triangles))

    first_at: dict[tuple[Vec3, Vec3], int] = {}
    for i, t in enumerate(triangles):
        triangle = graph.triangles[t]
        for v in triangle.vertices:
            key = (graph.vertices[v].position, triangle.normal)
            if key in first_at:
                sets.union(first_at[key], i)
            else:
                first_at[key] = i

    faces: dict[int, Face] = {}
    for i, t in enumerate(triangles):
        root = sets.find(i)
        if root not in faces:
            faces[root] = Face(normal=graph.triangles[t].normal)
        faces[root].triangles.append(t)

    for face in faces.values():
        _measure(graph, face)

    return list(faces.values())


def _measure(graph: MeshGraph, face: Face) -> None:
    extents = None
    for t in face.triangles:
        for v in graph.triangles[t].vertices:
            position = graph.vertices[v].position
            face.positions.add(position)
            if extents is None:
                extents = [[position[a], v, position[a], v] for a in (X, Y, Z)]
                continue
            for a in (X, Y, Z):
                if position[a] < extents[a][0]:
                    extents[a][0], extents[a][1] = position[a], v
                if position[a] > extents[a][2]:
                    extents[a][2], extents[a][3] = position[a], v

    face.extents = [tuple(e) for e in extents]


def _check_face(face: Face) -> None:
    if len(face.positions) < 3:
        raise DegenerateFaceError(
            f"Face with normal {face.normal} has only {len(face.positions)} distinct positions"
        )
    if max(face.extent(X), face.extent(Z)) == 0:
        raise DegenerateFaceError(f"Face with normal {face.normal} has zero width")
    if face.extent(Y) == 0:
        raise DegenerateFaceError(f"Face with normal {face.normal} has zero height")


def rebuild_face(graph: MeshGraph, face: Face) -> tuple[int, int]:
    """Replace a face's triangles with a single two-triangle quad."""
    width_axis = X if face.extent(X) >= face.extent(Z) else Z
    _, low_vertex, _, high_vertex = face.extents[width_axis]
    min_y, _, max_y, _ = face.extents[Y]

    # Width along +X with a -Z normal, or along +Z with a +X normal, gives
    # bottom-left, top-left, top-right a clockwise order matching the face.
    if width_axis == X:
        clockwise = face.normal[Z] < 0
    else:
        clockwise = face.normal[X] > 0

    low = graph.vertices[low_vertex]
    high = graph.vertices[high_vertex]

    for t in face.triangles:
        graph.remove_triangle(t)

    def corner(source, y: float) -> int:
        return graph.add_vertex(
            (source.position[X], y, source.position[Z]),
            face.normal,
            source.color,
            source.uv,
        )

    bottom_left = corner(low, min_y)
    top_left = corner(low, max_y)
    bottom_right = corner(high, min_y)
    top_right = corner(high, max_y)

    if clockwise:
        return (
            graph.add_triangle(bottom_left, top_left, top_right),
            graph.add_triangle(bottom_left, top_right, bottom_right),
        )
    return (
        graph.add_triangle(bottom_left, top_right, top_left),
        graph.add_triangle(bottom_left, bottom_right, top_right),
    )


def rebuild_walls(
    graph: MeshGraph,
    face_policy: str = "abort",
    warnings: Optional[list[str]] = None,
) -> int:
    """Rebuild every wall face as a minimal axis-aligned quad.

    Args:
        graph: Graph of a wall mesh
        face_policy: "abort" raises on a degenerate face, "skip" leaves
            that face untouched
        warnings: Collects a message for every face left untouched

    Returns:
        Number of faces rebuilt

    Raises:
        DegenerateFaceError: A face has no width or height and the policy
            is "abort"
    """
    faces = find_faces(graph)
    rebuilt = 0

    for face in faces:
        try:
            _check_face(face)
        except DegenerateFaceError as e:
            if face_policy != "skip":
                raise
            logger.warning("Keeping wall face as-is: %s", e)
            if warnings is not None:
                warnings.append(f"Kept degenerate wall face: {e}")
            continue

        rebuild_face(graph, face)
        rebuilt += 1

    logger.debug("Wall rebuild: %d of %d faces rebuilt", rebuilt, len(faces))
    return rebuilt
