"""Tests for the JSON file format."""

import json

import numpy as np
import pytest
from pydantic import ValidationError

from map_mesh.io import load_manifest, load_mesh, save_combined, save_mesh
from map_mesh.models import CombinedMesh, SemanticType


def test_mesh_file(tmp_path, quad):
    path = tmp_path / "quad.json"

    save_mesh(path, quad)
    data = json.loads(path.read_text())
    loaded = load_mesh(path)

    assert "colors" not in data
    assert data["triangles"] == quad.triangles.tolist()
    np.testing.assert_array_equal(loaded.positions, quad.positions)
    assert loaded.colors is None


def test_mesh_file_with_colors(tmp_path):
    path = tmp_path / "tri.json"
    path.write_text(json.dumps({
        "vertices": [[0, 0, 0], [1, 0, 0], [0, 0, 1]],
        "normals": [[0, 1, 0]] * 3,
        "colors": [[1, 0, 0, 1]] * 3,
        "uv": [[0, 0], [1, 0], [0, 1]],
        "triangles": [0, 2, 1],
    }))

    mesh = load_mesh(path)

    assert mesh.colors.shape == (3, 4)
    assert mesh.uv.shape == (3, 2)


def test_malformed_vertex_rejected(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"vertices": [[0, 0]], "normals": [], "triangles": []}))

    with pytest.raises(ValidationError):
        load_mesh(path)


def test_manifest(tmp_path):
    transform = np.eye(4)
    transform[0, 3] = 5.0
    path = tmp_path / "tile.json"
    path.write_text(json.dumps({
        "tile": [2, 7],
        "sources": [
            {"name": "lake", "type": "water", "transform": transform.reshape(-1).tolist(),
             "mesh": {"vertices": [[0, 0, 0], [1, 0, 0], [0, 0, 1]],
                      "normals": [[0, 1, 0]] * 3, "triangles": [0, 2, 1]}},
            {"mesh": {"vertices": [], "normals": [], "triangles": []}},
        ],
    }))

    tile, sources = load_manifest(path)

    assert tile == (2, 7)
    assert sources[0].semantic_type == SemanticType.WATER
    assert sources[0].transform[0, 3] == 5.0
    assert sources[1].semantic_type == SemanticType.GENERIC
    np.testing.assert_array_equal(sources[1].transform, np.eye(4))


def test_manifest_rejects_short_transform(tmp_path):
    path = tmp_path / "tile.json"
    path.write_text(json.dumps({
        "sources": [{"transform": [1, 0, 0], "mesh": {}}],
    }))

    with pytest.raises(ValidationError):
        load_manifest(path)


def test_combined_file(tmp_path, quad):
    path = tmp_path / "Tile_0_0_0.json"
    combined = CombinedMesh("Tile_0_0_0", SemanticType.FLOOR, quad, [(4, np.eye(4))])

    save_combined(path, combined)
    data = json.loads(path.read_text())

    assert data["name"] == "Tile_0_0_0"
    assert data["type"] == "floor"
    assert data["sources"] == [{"index": 4, "transform": np.eye(4).reshape(-1).tolist()}]
    assert len(data["vertices"]) == 4
