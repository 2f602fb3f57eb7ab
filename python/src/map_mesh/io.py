"""JSON file format for meshes and batch manifests."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional, Union

import numpy as np
from pydantic import BaseModel, Field

from map_mesh.models import CombinedMesh, MeshBuffers, SemanticType, SourceMesh

Vector3 = tuple[float, float, float]
Matrix4 = Annotated[list[float], Field(min_length=16, max_length=16)]


class MeshModel(BaseModel):
    """Mesh buffers as stored on disk."""
    vertices: list[Vector3] = Field(default_factory=list, description="Vertex positions")
    normals: list[Vector3] = Field(default_factory=list, description="Vertex normals")
    colors: Optional[list[tuple[float, float, float, float]]] = Field(None, description="RGBA vertex colors")
    uv: Optional[list[tuple[float, float]]] = Field(None, description="Texture coordinates")
    triangles: list[int] = Field(default_factory=list, description="Flat triangle index list")

    def to_buffers(self) -> MeshBuffers:
        return MeshBuffers(
            positions=np.array(self.vertices, dtype=np.float64).reshape(-1, 3),
            normals=np.array(self.normals, dtype=np.float64).reshape(-1, 3),
            triangles=np.array(self.triangles, dtype=np.int64),
            colors=None if self.colors is None else np.array(self.colors, dtype=np.float64).reshape(-1, 4),
            uv=None if self.uv is None else np.array(self.uv, dtype=np.float64).reshape(-1, 2),
        )

    @classmethod
    def from_buffers(cls, mesh: MeshBuffers) -> MeshModel:
        return cls(
            vertices=[tuple(p) for p in mesh.positions.tolist()],
            normals=[tuple(n) for n in mesh.normals.tolist()],
            colors=None if mesh.colors is None else [tuple(c) for c in mesh.colors.tolist()],
            uv=None if mesh.uv is None else [tuple(t) for t in mesh.uv.tolist()],
            triangles=mesh.triangles.tolist(),
        )


class SourceModel(BaseModel):
    """A source mesh entry of a batch manifest."""
    name: str = ""
    type: SemanticType = SemanticType.GENERIC
    transform: Optional[Matrix4] = Field(None, description="Row-major 4x4 source-to-world matrix")
    mesh: MeshModel

    def to_source(self) -> SourceMesh:
        transform = np.eye(4) if self.transform is None else np.array(self.transform).reshape(4, 4)
        return SourceMesh(
            name=self.name,
            mesh=self.mesh.to_buffers(),
            semantic_type=self.type,
            transform=transform,
        )


class ManifestModel(BaseModel):
    """All source meshes of one tile."""
    tile: tuple[int, int] = (0, 0)
    sources: list[SourceModel] = Field(default_factory=list)


class CombinedSourceModel(BaseModel):
    index: int
    transform: list[float]


class CombinedModel(MeshModel):
    """A combined mesh as written to disk."""
    name: str
    type: SemanticType
    sources: list[CombinedSourceModel] = Field(default_factory=list)

    @classmethod
    def from_combined(cls, combined: CombinedMesh) -> CombinedModel:
        mesh = MeshModel.from_buffers(combined.mesh)
        return cls(
            **mesh.model_dump(),
            name=combined.name,
            type=combined.semantic_type,
            sources=[
                CombinedSourceModel(index=index, transform=np.asarray(transform).reshape(-1).tolist())
                for index, transform in combined.sources
            ],
        )


def load_mesh(path: Union[str, Path]) -> MeshBuffers:
    """Load mesh buffers from a JSON file."""
    return MeshModel.model_validate_json(Path(path).read_text()).to_buffers()


def save_mesh(path: Union[str, Path], mesh: MeshBuffers) -> None:
    """Write mesh buffers to a JSON file."""
    Path(path).write_text(MeshModel.from_buffers(mesh).model_dump_json(exclude_none=True))


def load_manifest(path: Union[str, Path]) -> tuple[tuple[int, int], list[SourceMesh]]:
    """Load a batch manifest, returning the tile index and its sources."""
    manifest = ManifestModel.model_validate_json(Path(path).read_text())
    return manifest.tile, [s.to_source() for s in manifest.sources]


def save_combined(path: Union[str, Path], combined: CombinedMesh) -> None:
    """Write a combined mesh to a JSON file."""
    Path(path).write_text(CombinedModel.from_combined(combined).model_dump_json(exclude_none=True))
