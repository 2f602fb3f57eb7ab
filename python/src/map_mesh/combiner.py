"""Greedy packing of reduced meshes into capacity-bounded combined meshes."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

import numpy as np

from map_mesh.errors import OversizedMeshError
from map_mesh.models import (
    CAPACITY,
    CombinedGroup,
    CombinedMesh,
    GroupEntry,
    MeshBuffers,
    SemanticType,
)

logger = logging.getLogger(__name__)


class MeshCombiner:
    """First-fit bin packing of meshes into combined groups.

    Each mesh goes into the first existing group (in creation order) with
    room for it and, when partitioning, the same semantic type; otherwise
    it opens a new group. Meshes are never split or reordered.

    A combiner is an accumulator for a single batch and must only be fed
    from one thread.

    Example:
        combiner = MeshCombiner(partition_by_type=True)
        for mesh, transform, kind in meshes:
            combiner.add(mesh, transform, kind)
        combined = combiner.materialize_all()
    """

    def __init__(
        self,
        capacity: int = CAPACITY,
        partition_by_type: bool = False,
    ) -> None:
        if not (1 <= capacity <= CAPACITY):
            raise ValueError(f"Capacity must be between 1 and {CAPACITY}")

        self.capacity = capacity
        self.partition_by_type = partition_by_type
        self.groups: list[CombinedGroup] = []
        self._next_index = 0

    def add(
        self,
        mesh: MeshBuffers,
        transform: Optional[np.ndarray] = None,
        semantic_type: Union[SemanticType, str] = SemanticType.GENERIC,
        vertex_count: Optional[int] = None,
        source_index: Optional[int] = None,
    ) -> CombinedGroup:
        """Place a mesh in a group and return that group.

        Raises:
            OversizedMeshError: The mesh alone exceeds the capacity
        """
        semantic_type = SemanticType(semantic_type)
        if vertex_count is None:
            vertex_count = mesh.vertex_count
        if source_index is None:
            source_index = self._next_index
        self._next_index = max(self._next_index, source_index + 1)

        if vertex_count > self.capacity:
            raise OversizedMeshError(vertex_count, self.capacity, source_index)

        target = None
        for group in self.groups:
            if self.partition_by_type and group.semantic_type != semantic_type:
                continue
            if group.total_vertex_count + vertex_count <= self.capacity:
                target = group
                break

        if target is None:
            target = CombinedGroup(semantic_type=semantic_type)
            self.groups.append(target)

        target.entries.append(GroupEntry(
            source_index=source_index,
            mesh=mesh,
            transform=np.eye(4) if transform is None else np.asarray(transform, dtype=np.float64),
            semantic_type=semantic_type,
            vertex_count=vertex_count,
        ))
        target.total_vertex_count += vertex_count
        return target

    def pack(
        self,
        items: Iterable[tuple[MeshBuffers, np.ndarray, Union[SemanticType, str], int]],
    ) -> list[CombinedGroup]:
        """Add every (mesh, transform, semantic type, vertex count) in order."""
        for mesh, transform, semantic_type, vertex_count in items:
            self.add(mesh, transform, semantic_type, vertex_count)
        return self.groups

    @property
    def wastage(self) -> int:
        """Unused vertex capacity summed over all groups."""
        return sum(self.capacity - group.total_vertex_count for group in self.groups)

    def materialize_all(self, name_prefix: str = "Mesh") -> list[CombinedMesh]:
        return [
            materialize(group, name=f"{name_prefix}_{i}")
            for i, group in enumerate(self.groups)
        ]


def pack(
    items: Iterable[tuple[MeshBuffers, np.ndarray, Union[SemanticType, str], int]],
    capacity: int = CAPACITY,
    partition_by_type: bool = False,
) -> list[CombinedGroup]:
    """Pack meshes into combined groups.

    Convenience function that creates a MeshCombiner instance.
    """
    combiner = MeshCombiner(capacity=capacity, partition_by_type=partition_by_type)
    return combiner.pack(items)


def transform_mesh(mesh: MeshBuffers, transform: np.ndarray) -> MeshBuffers:
    """Apply a 4x4 source-to-world transform to a mesh."""
    transform = np.asarray(transform, dtype=np.float64)

    homogeneous = np.hstack([mesh.positions, np.ones((mesh.vertex_count, 1))])
    positions = (homogeneous @ transform.T)[:, :3]

    # Normals go through the cofactor matrix, the inverse transpose scaled by
    # the determinant, which still exists for zero-scale transforms.
    linear = transform[:3, :3]
    normal_matrix = np.column_stack([
        np.cross(linear[:, 1], linear[:, 2]),
        np.cross(linear[:, 2], linear[:, 0]),
        np.cross(linear[:, 0], linear[:, 1]),
    ])
    if np.linalg.det(linear) < 0:
        normal_matrix = -normal_matrix
    normals = mesh.normals @ normal_matrix.T
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    normals = np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)

    return MeshBuffers(
        positions=positions,
        normals=normals,
        triangles=mesh.triangles.copy(),
        colors=None if mesh.colors is None else mesh.colors.copy(),
        uv=None if mesh.uv is None else mesh.uv.copy(),
    )


def materialize(group: CombinedGroup, name: str = "Mesh") -> CombinedMesh:
    """Merge a group's meshes into one set of world-space buffers.

    A channel present in only some of the meshes is zero-filled for the
    others.
    """
    meshes = [transform_mesh(e.mesh, e.transform) for e in group.entries]
    has_colors = any(m.colors is not None for m in meshes)
    has_uv = any(m.uv is not None for m in meshes)

    if not meshes:
        combined = MeshBuffers.empty(colors=has_colors, uv=has_uv)
    else:
        offsets = np.cumsum([0] + [m.vertex_count for m in meshes[:-1]])
        combined = MeshBuffers(
            positions=np.concatenate([m.positions for m in meshes]),
            normals=np.concatenate([m.normals for m in meshes]),
            triangles=np.concatenate([
                m.triangles + offset for m, offset in zip(meshes, offsets)
            ]),
            colors=np.concatenate([
                m.colors if m.colors is not None else np.zeros((m.vertex_count, 4))
                for m in meshes
            ]) if has_colors else None,
            uv=np.concatenate([
                m.uv if m.uv is not None else np.zeros((m.vertex_count, 2))
                for m in meshes
            ]) if has_uv else None,
        )

    logger.info("Creating mesh %s with %d vertices", name, combined.vertex_count)

    return CombinedMesh(
        name=name,
        semantic_type=group.semantic_type,
        mesh=combined,
        sources=group.sources,
    )
