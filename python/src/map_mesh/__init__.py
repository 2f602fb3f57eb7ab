"""Map Mesh - Reduce and combine procedural map meshes."""

__version__ = "0.1.0"

from map_mesh.reducer import MeshReducer, reduce, analyze
from map_mesh.models import (
    CAPACITY,
    CombinedGroup,
    CombinedMesh,
    CombineSettings,
    MeshAnalysis,
    MeshBuffers,
    ReductionResult,
    ReductionSettings,
    SemanticType,
    SourceMesh,
)
from map_mesh.graph import MeshGraph
from map_mesh.collapse import EdgeCollapseReducer
from map_mesh.combiner import MeshCombiner, pack
from map_mesh.water import flatten
from map_mesh.batch import BatchResult, ExportBatch

__all__ = [
    "MeshReducer",
    "reduce",
    "analyze",
    "CAPACITY",
    "CombinedGroup",
    "CombinedMesh",
    "CombineSettings",
    "MeshAnalysis",
    "MeshBuffers",
    "ReductionResult",
    "ReductionSettings",
    "SemanticType",
    "SourceMesh",
    "MeshGraph",
    "EdgeCollapseReducer",
    "MeshCombiner",
    "pack",
    "flatten",
    "BatchResult",
    "ExportBatch",
]
