"""Main reducer functionality."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Optional, Union

import numpy as np

from map_mesh.collapse import EdgeCollapseReducer
from map_mesh.graph import MeshGraph
from map_mesh.models import (
    MeshAnalysis,
    MeshBuffers,
    ReductionResult,
    ReductionSettings,
    SemanticType,
)
from map_mesh.strategies import rebuild_walls, strip_floor

logger = logging.getLogger(__name__)


class MeshReducer:
    """Reduces a source mesh with the strategy matching its semantic type.

    - Generic and other meshes: edge collapse down to ``target_factor`` of
      the original vertex count.
    - Floor meshes: the underside slab is stripped.
    - Wall meshes: every face is rebuilt as a single quad.
    - Water meshes: kept as they are; they are flattened once combined.
    """

    def __init__(
        self,
        settings: Optional[ReductionSettings] = None,
        **overrides,
    ) -> None:
        """Initialize reducer.

        Args:
            settings: Reduction settings (defaults when omitted)
            **overrides: Individual settings replacing those in ``settings``
        """
        settings = settings or ReductionSettings()
        if overrides:
            settings = replace(settings, **overrides)
        settings.validate()

        self.settings = settings

    def reduce(
        self,
        mesh: MeshBuffers,
        semantic_type: Union[SemanticType, str] = SemanticType.GENERIC,
    ) -> ReductionResult:
        """Reduce a mesh.

        Args:
            mesh: Source mesh buffers
            semantic_type: Classification of the source mesh

        Returns:
            ReductionResult holding the new buffers and statistics
        """
        start_time = time.perf_counter()
        semantic_type = SemanticType(semantic_type)
        warnings: list[str] = []

        if not self.settings.reduction_enabled:
            strategy, reduced = "identity", mesh
        elif semantic_type in (SemanticType.GENERIC, SemanticType.OTHER):
            strategy, reduced = "collapse", self._reduce_generic(mesh)
        elif semantic_type == SemanticType.FLOOR:
            strategy, reduced = "floor", self._reduce_floor(mesh)
        elif semantic_type == SemanticType.WALL:
            strategy, reduced = "wall", self._reduce_wall(mesh, warnings)
        elif semantic_type == SemanticType.WATER:
            strategy, reduced = "identity", mesh
        else:
            raise AssertionError(f"Unhandled semantic type: {semantic_type}")

        elapsed_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(
            "Reduced %d/%d to %d/%d in %.0fms (%s, %s)",
            mesh.vertex_count, mesh.triangle_count,
            reduced.vertex_count, reduced.triangle_count,
            elapsed_ms, semantic_type.value, strategy,
        )

        return ReductionResult(
            mesh=reduced,
            semantic_type=semantic_type,
            strategy=strategy,
            original_vertices=mesh.vertex_count,
            original_tris=mesh.triangle_count,
            final_vertices=reduced.vertex_count,
            final_tris=reduced.triangle_count,
            reduction_time_ms=elapsed_ms,
            warnings=warnings,
        )

    def _reduce_generic(self, mesh: MeshBuffers) -> MeshBuffers:
        graph = MeshGraph.build(mesh, track_neighbours=True)
        reducer = EdgeCollapseReducer(graph, collapse_enabled=self.settings.collapse_enabled)

        # Relative to the raw vertex count, before duplicates are merged.
        target = int(mesh.vertex_count * self.settings.target_factor)
        reducer.reduce(target)
        return graph.to_buffers()

    def _reduce_floor(self, mesh: MeshBuffers) -> MeshBuffers:
        graph = MeshGraph.build(mesh, track_neighbours=False)
        strip_floor(graph, epsilon=self.settings.floor_epsilon)
        return graph.to_buffers()

    def _reduce_wall(self, mesh: MeshBuffers, warnings: list[str]) -> MeshBuffers:
        graph = MeshGraph.build(mesh, track_neighbours=False)
        rebuild_walls(graph, face_policy=self.settings.wall_face_policy, warnings=warnings)
        return graph.to_buffers()

    def analyze(self, mesh: MeshBuffers) -> MeshAnalysis:
        """Analyze a mesh.

        Args:
            mesh: Mesh buffers

        Returns:
            MeshAnalysis with mesh statistics
        """
        graph = MeshGraph.build(mesh, track_neighbours=False)

        if mesh.vertex_count:
            bounds_min = tuple(float(x) for x in np.min(mesh.positions, axis=0))
            bounds_max = tuple(float(x) for x in np.max(mesh.positions, axis=0))
        else:
            bounds_min = bounds_max = (0.0, 0.0, 0.0)

        return MeshAnalysis(
            vertex_count=mesh.vertex_count,
            unique_vertex_count=graph.live_vertex_count,
            triangle_count=graph.triangle_count,
            skipped_triangle_count=graph.skipped_triangles,
            has_colors=mesh.colors is not None,
            has_uvs=mesh.uv is not None,
            bounds_min=bounds_min,
            bounds_max=bounds_max,
        )


# Convenience functions
def reduce(
    mesh: MeshBuffers,
    semantic_type: Union[SemanticType, str] = SemanticType.GENERIC,
    **kwargs,
) -> ReductionResult:
    """Reduce a mesh.

    Convenience function that creates a MeshReducer instance.
    """
    reducer = MeshReducer(**kwargs)
    return reducer.reduce(mesh, semantic_type)


def analyze(mesh: MeshBuffers) -> MeshAnalysis:
    """Analyze a mesh.

    Convenience function that creates a MeshReducer instance.
    """
    reducer = MeshReducer()
    return reducer.analyze(mesh)
