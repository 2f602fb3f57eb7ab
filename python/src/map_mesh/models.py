"""Data models for map-mesh."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

# Largest vertex count addressable by a 16-bit index buffer.
CAPACITY = 65534

INFO_NODE_PREFIX = "info Node"


class SemanticType(str, Enum):
    """Role of a source mesh in the generated map."""
    GENERIC = "generic"
    WATER = "water"
    FLOOR = "floor"
    WALL = "wall"
    OTHER = "other"


@dataclass
class MeshBuffers:
    """Flat mesh buffers.

    ``positions`` and ``normals`` are (N, 3) arrays, ``colors`` an optional
    (N, 4) array, ``uv`` an optional (N, 2) array and ``triangles`` a flat
    index array whose length is a multiple of 3.
    """

    positions: np.ndarray
    normals: np.ndarray
    triangles: np.ndarray
    colors: Optional[np.ndarray] = None
    uv: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)
        self.normals = np.asarray(self.normals, dtype=np.float64).reshape(-1, 3)
        self.triangles = np.asarray(self.triangles, dtype=np.int64).reshape(-1)
        if self.colors is not None:
            self.colors = np.asarray(self.colors, dtype=np.float64).reshape(-1, 4)
        if self.uv is not None:
            self.uv = np.asarray(self.uv, dtype=np.float64).reshape(-1, 2)

    @classmethod
    def empty(cls, colors: bool = False, uv: bool = False) -> MeshBuffers:
        return cls(
            positions=np.zeros((0, 3)),
            normals=np.zeros((0, 3)),
            triangles=np.zeros(0, dtype=np.int64),
            colors=np.zeros((0, 4)) if colors else None,
            uv=np.zeros((0, 2)) if uv else None,
        )

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles) // 3

    def copy(self) -> MeshBuffers:
        return MeshBuffers(
            positions=self.positions.copy(),
            normals=self.normals.copy(),
            triangles=self.triangles.copy(),
            colors=None if self.colors is None else self.colors.copy(),
            uv=None if self.uv is None else self.uv.copy(),
        )


@dataclass
class SourceMesh:
    """A mesh handed over by the map generator, with its classification."""
    name: str
    mesh: MeshBuffers
    semantic_type: SemanticType = SemanticType.GENERIC
    transform: np.ndarray = field(default_factory=lambda: np.eye(4))

    def __post_init__(self) -> None:
        self.semantic_type = SemanticType(self.semantic_type)
        self.transform = np.asarray(self.transform, dtype=np.float64).reshape(4, 4)

    @property
    def is_info_node(self) -> bool:
        return self.name.startswith(INFO_NODE_PREFIX)


@dataclass
class MeshAnalysis:
    """Analysis results for a mesh."""

    # Basic counts
    vertex_count: int
    unique_vertex_count: int
    triangle_count: int
    skipped_triangle_count: int = 0

    # Channels
    has_colors: bool = False
    has_uvs: bool = False

    # Bounds
    bounds_min: tuple[float, float, float] = (0, 0, 0)
    bounds_max: tuple[float, float, float] = (0, 0, 0)

    @property
    def bounds_size(self) -> tuple[float, float, float]:
        """Bounding box dimensions."""
        return (
            self.bounds_max[0] - self.bounds_min[0],
            self.bounds_max[1] - self.bounds_min[1],
            self.bounds_max[2] - self.bounds_min[2],
        )

    @property
    def duplicate_vertex_count(self) -> int:
        return self.vertex_count - self.unique_vertex_count


@dataclass
class ReductionResult:
    """Result of a reduction operation."""

    mesh: MeshBuffers
    semantic_type: SemanticType
    strategy: str

    # Counts
    original_vertices: int = 0
    original_tris: int = 0
    final_vertices: int = 0
    final_tris: int = 0

    # Timing
    reduction_time_ms: float = 0

    warnings: list[str] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return self.final_vertices

    @property
    def reduction_ratio(self) -> float:
        """Actual vertex reduction ratio achieved."""
        if self.original_vertices == 0:
            return 0.0
        return self.final_vertices / self.original_vertices


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ReductionSettings:
    """Settings for per-mesh reduction."""

    reduction_enabled: bool = True

    # Generic edge collapse
    collapse_enabled: bool = True
    target_factor: float = 0.9

    # Floor strip: vertices this close to the lowest point are removed.
    floor_epsilon: float = 2.0

    # Wall rebuild: "abort" raises on a degenerate face, "skip" keeps it as-is.
    wall_face_policy: str = "abort"

    def validate(self) -> None:
        """Validate settings."""
        if not (0 < self.target_factor <= 1):
            raise ValueError("Target factor must be between 0 and 1")

        if self.floor_epsilon < 0:
            raise ValueError("Floor epsilon must not be negative")

        if self.wall_face_policy not in ("abort", "skip"):
            raise ValueError(f"Unknown wall face policy: {self.wall_face_policy}")

    @classmethod
    def from_env(cls) -> ReductionSettings:
        defaults = cls()
        settings = cls(
            reduction_enabled=_env_bool("MAPMESH_REDUCTION", defaults.reduction_enabled),
            collapse_enabled=_env_bool("MAPMESH_COLLAPSE", defaults.collapse_enabled),
            target_factor=float(os.environ.get("MAPMESH_TARGET_FACTOR", defaults.target_factor)),
            floor_epsilon=float(os.environ.get("MAPMESH_FLOOR_EPSILON", defaults.floor_epsilon)),
            wall_face_policy=os.environ.get("MAPMESH_WALL_FACE_POLICY", defaults.wall_face_policy),
        )
        settings.validate()
        return settings


@dataclass
class CombineSettings:
    """Settings for combining reduced meshes."""

    capacity: int = CAPACITY
    partition_by_type: bool = False
    flatten_water: bool = True
    filter_info_nodes: bool = True

    def validate(self) -> None:
        """Validate settings."""
        if not (1 <= self.capacity <= CAPACITY):
            raise ValueError(f"Capacity must be between 1 and {CAPACITY}")

    @classmethod
    def from_env(cls) -> CombineSettings:
        defaults = cls()
        settings = cls(
            capacity=int(os.environ.get("MAPMESH_CAPACITY", defaults.capacity)),
            partition_by_type=_env_bool("MAPMESH_PARTITION", defaults.partition_by_type),
            flatten_water=_env_bool("MAPMESH_FLATTEN_WATER", defaults.flatten_water),
            filter_info_nodes=_env_bool("MAPMESH_FILTER_INFO_NODES", defaults.filter_info_nodes),
        )
        settings.validate()
        return settings


@dataclass
class GroupEntry:
    """One source mesh placed in a combined group."""
    source_index: int
    mesh: MeshBuffers
    transform: np.ndarray
    semantic_type: SemanticType
    vertex_count: int


@dataclass
class CombinedGroup:
    """A capacity-bounded bucket of source meshes."""

    semantic_type: SemanticType
    total_vertex_count: int = 0
    entries: list[GroupEntry] = field(default_factory=list)

    @property
    def homogeneous(self) -> bool:
        """Whether every entry has the group's semantic type."""
        return all(e.semantic_type == self.semantic_type for e in self.entries)

    @property
    def sources(self) -> list[tuple[int, np.ndarray]]:
        return [(e.source_index, e.transform) for e in self.entries]


@dataclass
class CombinedMesh:
    """A materialized combined group, ready for the host to instantiate."""
    name: str
    semantic_type: SemanticType
    mesh: MeshBuffers
    sources: list[tuple[int, np.ndarray]] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return self.mesh.vertex_count
