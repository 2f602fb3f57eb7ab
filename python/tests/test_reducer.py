"""Tests for per-type reduction dispatch."""

import pytest

from conftest import make_mesh
from map_mesh import MeshReducer, SemanticType, analyze, reduce
from map_mesh.errors import DegenerateFaceError, DegenerateTriangleError
from map_mesh.models import ReductionSettings


def test_generic_mesh_is_collapsed(terrain):
    result = reduce(terrain, SemanticType.GENERIC)

    assert result.strategy == "collapse"
    assert result.original_vertices == 36
    assert result.final_vertices <= int(36 * 0.9)
    assert result.vertex_count == result.mesh.vertex_count
    assert result.reduction_time_ms >= 0


def test_other_mesh_is_collapsed(terrain):
    assert reduce(terrain, "other").strategy == "collapse"


def test_collapse_can_be_disabled(terrain):
    result = MeshReducer(collapse_enabled=False).reduce(terrain)

    assert result.strategy == "collapse"
    assert result.final_vertices == 36
    assert result.final_tris == terrain.triangle_count


def test_target_factor(terrain):
    result = MeshReducer(target_factor=0.5).reduce(terrain)

    assert result.final_vertices <= 18


def test_floor_strategy(two_slabs):
    result = reduce(two_slabs, SemanticType.FLOOR)

    assert result.strategy == "floor"
    assert result.final_vertices == 4
    assert result.final_tris == 2


def test_floor_epsilon_setting(two_slabs):
    result = MeshReducer(floor_epsilon=20.0).reduce(two_slabs, SemanticType.FLOOR)

    assert result.final_vertices == 0


def test_wall_strategy(wall):
    result = reduce(wall, SemanticType.WALL)

    assert result.strategy == "wall"
    assert result.original_tris == 20
    assert result.final_tris == 2
    assert result.final_vertices == 4


def test_wall_face_policy(quad):
    with pytest.raises(DegenerateFaceError):
        reduce(quad, SemanticType.WALL)

    result = reduce(quad, SemanticType.WALL, wall_face_policy="skip")
    assert result.final_tris == 2
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Kept degenerate wall face")


def test_no_warnings_for_clean_reduction(wall):
    assert reduce(wall, SemanticType.WALL).warnings == []


def test_water_is_left_alone(terrain):
    result = reduce(terrain, SemanticType.WATER)

    assert result.strategy == "identity"
    assert result.mesh is terrain


def test_reduction_disabled(wall):
    result = MeshReducer(ReductionSettings(reduction_enabled=False)).reduce(wall, SemanticType.WALL)

    assert result.strategy == "identity"
    assert result.final_vertices == wall.vertex_count
    assert result.reduction_ratio == 1.0


def test_degenerate_triangle_aborts(quad):
    mesh = make_mesh(quad.positions, [0, 1, 2, 3, 3, 1])

    with pytest.raises(DegenerateTriangleError):
        reduce(mesh)


def test_invalid_settings():
    with pytest.raises(ValueError):
        MeshReducer(target_factor=1.5)
    with pytest.raises(ValueError):
        MeshReducer(wall_face_policy="ignore")


def test_analyze():
    positions = [(0, 0, 0), (1, 0, 0), (1, 2, 1), (0, 0, 0)]
    mesh = make_mesh(positions, [0, 2, 1, 3, 1, 2, 0, 0, 0])

    analysis = analyze(mesh)

    assert analysis.vertex_count == 4
    assert analysis.unique_vertex_count == 3
    assert analysis.duplicate_vertex_count == 1
    assert analysis.triangle_count == 2
    assert analysis.skipped_triangle_count == 1
    assert analysis.bounds_size == (1.0, 2.0, 1.0)
    assert not analysis.has_colors
