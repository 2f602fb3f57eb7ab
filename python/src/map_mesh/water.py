"""Water surface flattening for combined meshes."""

from __future__ import annotations

import logging

from map_mesh.models import MeshBuffers

logger = logging.getLogger(__name__)


def flatten(mesh: MeshBuffers) -> MeshBuffers:
    """Return a copy of ``mesh`` with every height set to the lowest one.

    Each tile computes its own level, so abutting tiles agree only as far
    as their lowest water vertex does.
    """
    flat = mesh.copy()
    if flat.vertex_count == 0:
        return flat

    level = flat.positions[:, 1].min()
    flat.positions[:, 1] = level
    logger.debug("Flattened %d water vertices to height %.3f", flat.vertex_count, level)
    return flat
