"""Tests for reducing and combining a whole tile."""

import numpy as np
import pytest

from conftest import make_mesh, slab
from map_mesh import CombineSettings, ExportBatch, ReductionSettings, SemanticType, SourceMesh
from map_mesh.errors import OversizedMeshError


def water(y, x=0.0):
    positions, triangles = slab(y)
    return make_mesh(np.asarray(positions) + [x, 0, 0], triangles)


def translation(x, y, z):
    transform = np.eye(4)
    transform[:3, 3] = [x, y, z]
    return transform


@pytest.fixture
def sources(terrain, two_slabs, wall):
    return [
        SourceMesh("ground", terrain, SemanticType.GENERIC),
        SourceMesh("lake", water(1.0), SemanticType.WATER, translation(0, 2, 0)),
        SourceMesh("info Node 12", terrain, SemanticType.GENERIC),
        SourceMesh("house floor", two_slabs, SemanticType.FLOOR),
        SourceMesh("house wall", wall, SemanticType.WALL),
        SourceMesh("pond", water(3.0, x=10.0), SemanticType.WATER),
    ]


def test_partitioned_batch(sources):
    batch = ExportBatch(combine=CombineSettings(partition_by_type=True), tile=(3, -1))

    result = batch.run(sources)

    assert result.skipped == ["info Node 12"]
    assert len(result.reductions) == 5
    assert [m.name for m in result.meshes] == [f"Tile_3_-1_{i}" for i in range(4)]
    assert [m.semantic_type for m in result.meshes] == [
        SemanticType.GENERIC, SemanticType.WATER, SemanticType.FLOOR, SemanticType.WALL,
    ]

    lake = result.meshes[1]
    assert [index for index, _ in lake.sources] == [1, 5]
    # The lake sits at 1 + 2 after its transform, the pond at 3.
    assert (lake.mesh.positions[:, 1] == 3.0).all()

    wall = result.meshes[3]
    assert wall.mesh.triangle_count == 2
    assert result.wastage == sum(65534 - m.vertex_count for m in result.meshes)


def test_water_in_a_mixed_group_is_not_flattened(sources):
    batch = ExportBatch()

    result = batch.run([sources[1], sources[3]])

    assert len(result.meshes) == 1
    assert result.meshes[0].semantic_type == SemanticType.WATER
    heights = set(result.meshes[0].mesh.positions[:, 1].tolist())
    assert heights == {3.0, 10.0}


def test_flattening_can_be_disabled(sources):
    pool = SourceMesh("pool", water(5.0), SemanticType.WATER)

    kept = ExportBatch(combine=CombineSettings(flatten_water=False)).run([sources[1], pool])
    flat = ExportBatch(combine=CombineSettings(flatten_water=True)).run([sources[1], pool])

    assert set(kept.meshes[0].mesh.positions[:, 1].tolist()) == {3.0, 5.0}
    assert set(flat.meshes[0].mesh.positions[:, 1].tolist()) == {3.0}


def test_reduction_disabled_keeps_counts(sources):
    batch = ExportBatch(reduction=ReductionSettings(reduction_enabled=False))

    result = batch.run(sources)

    assert result.final_vertices == result.original_vertices
    assert sum(m.vertex_count for m in result.meshes) == result.original_vertices


def test_info_nodes_kept_when_not_filtered(sources):
    batch = ExportBatch(combine=CombineSettings(filter_info_nodes=False))

    result = batch.run(sources)

    assert result.skipped == []
    assert len(result.reductions) == 6


def test_oversized_source_is_surfaced(terrain):
    batch = ExportBatch(
        reduction=ReductionSettings(reduction_enabled=False),
        combine=CombineSettings(capacity=10),
    )

    with pytest.raises(OversizedMeshError):
        batch.add(SourceMesh("big", terrain))


def test_owner_runs_reads_and_materialization(sources):
    calls = []

    def owner(fn):
        calls.append(fn)
        return fn()

    batch = ExportBatch(owner=owner)
    result = batch.run(sources[:2])

    # One read per source, one materialization per combined mesh.
    assert len(calls) == 2 + len(result.meshes)


def test_progress_callback(sources):
    seen = []

    ExportBatch().run(sources, on_progress=lambda current, total: seen.append((current, total)))

    assert seen[0] == (0, 6)
    assert seen[-1] == (6, 6)
