"""Exceptions raised by map-mesh."""

from __future__ import annotations


class MeshError(Exception):
    """Base class for mesh processing failures."""


class DegenerateInputError(MeshError, ValueError):
    """Raw mesh buffers are malformed (index count, channel lengths, ranges)."""


class DegenerateTriangleError(MeshError, ValueError):
    """A triangle references the same vertex index more than once."""

    def __init__(self, triangle: int, indices: tuple[int, int, int]) -> None:
        super().__init__(
            f"Triangle {triangle} repeats a vertex index: {list(indices)}"
        )
        self.triangle = triangle
        self.indices = indices


class DegenerateFaceError(MeshError, ValueError):
    """A wall face has no usable width or height."""


class OversizedMeshError(MeshError, ValueError):
    """A single mesh holds more vertices than a combined mesh can address."""

    def __init__(self, vertex_count: int, capacity: int, source_index: int | None = None) -> None:
        where = f"Source mesh {source_index}" if source_index is not None else "Mesh"
        super().__init__(
            f"{where} has {vertex_count} vertices, more than the capacity of {capacity}"
        )
        self.vertex_count = vertex_count
        self.capacity = capacity
        self.source_index = source_index


class GraphInvariantError(MeshError, RuntimeError):
    """Internal consistency of a mesh graph was violated."""
