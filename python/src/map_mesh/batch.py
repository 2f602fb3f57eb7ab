"""Reduce and combine all meshes of one map tile."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, TypeVar

from map_mesh.combiner import MeshCombiner, materialize
from map_mesh.models import (
    CombinedMesh,
    CombineSettings,
    ReductionResult,
    ReductionSettings,
    SemanticType,
    SourceMesh,
)
from map_mesh.reducer import MeshReducer
from map_mesh.water import flatten

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_inline(fn: Callable[[], T]) -> T:
    return fn()


@dataclass
class BatchResult:
    """Result of exporting one batch."""
    meshes: list[CombinedMesh]
    reductions: list[ReductionResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    wastage: int = 0

    @property
    def original_vertices(self) -> int:
        return sum(r.original_vertices for r in self.reductions)

    @property
    def final_vertices(self) -> int:
        return sum(r.final_vertices for r in self.reductions)


class ExportBatch:
    """Reduce every source mesh of a tile and pack the results.

    Sources are reduced as they are added; :meth:`finish` merges the
    groups into combined meshes and flattens water.

    Reading source buffers and materializing combined meshes both go
    through ``owner``, which runs a callable on whatever context the host
    requires for mesh resources and returns its result.

    Example:
        batch = ExportBatch(tile=(0, 1))
        for source in sources:
            batch.add(source)
        result = batch.finish()
    """

    def __init__(
        self,
        reduction: Optional[ReductionSettings] = None,
        combine: Optional[CombineSettings] = None,
        tile: tuple[int, int] = (0, 0),
        owner: Callable[[Callable[[], T]], T] = run_inline,
    ) -> None:
        """Initialize batch.

        Args:
            reduction: Per-mesh reduction settings
            combine: Packing settings
            tile: Tile index, used to name combined meshes
            owner: Runs buffer reads and materialization
        """
        self.combine_settings = combine or CombineSettings()
        self.combine_settings.validate()

        self.reducer = MeshReducer(reduction)
        self.combiner = MeshCombiner(
            capacity=self.combine_settings.capacity,
            partition_by_type=self.combine_settings.partition_by_type,
        )
        self.tile = tile
        self.owner = owner

        self.reductions: list[ReductionResult] = []
        self.skipped: list[str] = []
        self._source_count = 0

    def add(self, source: SourceMesh) -> Optional[ReductionResult]:
        """Reduce a source mesh and place it in a group.

        Returns:
            The reduction result, or None if the source was filtered out
        """
        index = self._source_count
        self._source_count += 1

        if self.combine_settings.filter_info_nodes and source.is_info_node:
            logger.debug("Skipping info node %s", source.name)
            self.skipped.append(source.name)
            return None

        mesh = self.owner(source.mesh.copy)
        result = self.reducer.reduce(mesh, source.semantic_type)
        self.reductions.append(result)

        self.combiner.add(
            result.mesh,
            source.transform,
            source.semantic_type,
            result.vertex_count,
            source_index=index,
        )
        return result

    def finish(self) -> BatchResult:
        """Materialize all groups into combined meshes."""
        x, y = self.tile
        meshes = []
        for i, group in enumerate(self.combiner.groups):
            name = f"Tile_{x}_{y}_{i}"
            combined = self.owner(lambda: materialize(group, name=name))

            if (
                self.combine_settings.flatten_water
                and group.semantic_type == SemanticType.WATER
                and group.homogeneous
            ):
                combined.mesh = flatten(combined.mesh)

            meshes.append(combined)

        wastage = self.combiner.wastage
        logger.info("Generated tile %d %d, wasted %d vertices", x, y, wastage)

        return BatchResult(
            meshes=meshes,
            reductions=list(self.reductions),
            skipped=list(self.skipped),
            wastage=wastage,
        )

    def run(
        self,
        sources: Iterable[SourceMesh],
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> BatchResult:
        """Add all sources and finish.

        Args:
            sources: Source meshes in arrival order
            on_progress: Optional callback (current_source, total_sources)
        """
        sources = list(sources)
        for i, source in enumerate(sources):
            if on_progress:
                on_progress(i, len(sources))
            self.add(source)

        if on_progress:
            on_progress(len(sources), len(sources))

        return self.finish()
