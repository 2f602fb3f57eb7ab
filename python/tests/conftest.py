"""Shared fixtures: small synthetic meshes."""

import numpy as np
import pytest

from map_mesh.models import MeshBuffers

UP = np.array([0.0, 1.0, 0.0])


def make_mesh(positions, triangles, normals=None, colors=None, uv=None):
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    if normals is None:
        normals = np.tile([0.0, 1.0, 0.0], (len(positions), 1))
    return MeshBuffers(
        positions=positions,
        normals=normals,
        triangles=triangles,
        colors=colors,
        uv=uv,
    )


def slab(y, size=4.0, offset=0):
    """Horizontal square at height ``y`` facing up (4 vertices, 2 triangles)."""
    positions = [(0, y, 0), (0, y, size), (size, y, size), (size, y, 0)]
    triangles = [offset, offset + 1, offset + 2, offset, offset + 2, offset + 3]
    return positions, triangles


def wall_grid(origin=(0, 0, 0), direction=(1, 0, 0), width=10.0, height=5.0,
              cols=5, rows=2, flip=False):
    """Vertical rectangle tessellated into ``2 * cols * rows`` triangles.

    The face normal is ``direction x up``, negated when ``flip`` is set.
    """
    origin = np.asarray(origin, dtype=np.float64)
    direction = np.asarray(direction, dtype=np.float64)
    normal = np.cross(direction, UP) * (-1.0 if flip else 1.0)

    positions = []
    for j in range(rows + 1):
        for i in range(cols + 1):
            positions.append(origin + direction * (width * i / cols) + UP * (height * j / rows))

    triangles = []
    for j in range(rows):
        for i in range(cols):
            a = j * (cols + 1) + i
            b, c, d = a + 1, a + cols + 2, a + cols + 1
            if flip:
                triangles += [a, c, b, a, d, c]
            else:
                triangles += [a, b, c, a, c, d]

    return make_mesh(positions, triangles, normals=np.tile(normal, (len(positions), 1)))


def concat(*meshes):
    offsets = np.cumsum([0] + [m.vertex_count for m in meshes[:-1]])
    return MeshBuffers(
        positions=np.concatenate([m.positions for m in meshes]),
        normals=np.concatenate([m.normals for m in meshes]),
        triangles=np.concatenate([m.triangles + o for m, o in zip(meshes, offsets)]),
    )


@pytest.fixture
def quad():
    positions, triangles = slab(0.0, size=1.0)
    return make_mesh(positions, triangles)


@pytest.fixture
def two_slabs():
    low, low_tris = slab(0.0)
    high, high_tris = slab(10.0, offset=4)
    return make_mesh(low + high, low_tris + high_tris)


@pytest.fixture
def wall():
    return wall_grid()


@pytest.fixture
def terrain():
    """Bumpy 6x6 height field (36 vertices, 50 triangles)."""
    n = 6
    rng = np.random.default_rng(7)
    heights = rng.uniform(0.0, 2.0, size=(n, n))
    positions = [(x, heights[z, x], z) for z in range(n) for x in range(n)]
    triangles = []
    for z in range(n - 1):
        for x in range(n - 1):
            a = z * n + x
            b, c, d = a + 1, a + n + 1, a + n
            triangles += [a, c, b, a, d, c]
    return make_mesh(positions, triangles)
